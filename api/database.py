"""
Database connection management for the API.

Queries live in ``shopscraper.database``; this module only hands out
connections to the configured catalog.
"""
import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from shopscraper.database import db_connect, db_init

from .config import config

logger = logging.getLogger(__name__)


@contextmanager
def get_db_connection() -> Iterator[sqlite3.Connection]:
    """Get a database connection with proper error handling."""
    conn = None
    try:
        if not config.DB_PATH:
            raise ValueError("Database path not configured")

        os.makedirs(os.path.dirname(config.DB_PATH) or ".", exist_ok=True)
        conn = db_connect(config.DB_PATH)
        db_init(conn)
        yield conn
    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        raise
    finally:
        if conn is not None:
            conn.close()
