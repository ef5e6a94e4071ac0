"""
Shared pytest fixtures.
"""
import pytest

from .config import Config
from .database import db_connect, db_init


@pytest.fixture
def cfg(tmp_path):
    """Config with no retry delays and a throwaway database."""
    c = Config()
    c.DB_PATH = str(tmp_path / "catalog.db")
    c.LISTING_RETRY_BACKOFF_S = 0
    c.AUTO_REFRESH_COOLDOWN_S = 1800
    c.DISABLE_AUTO_SCRAPE = False
    c.CONFIRM_RESET = False
    return c


@pytest.fixture
def conn(cfg):
    c = db_connect(cfg.DB_PATH)
    db_init(c)
    yield c
    c.close()
