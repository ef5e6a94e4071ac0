"""
Export utilities for the catalog.
"""
import logging
import sqlite3

import pandas as pd

logger = logging.getLogger(__name__)

CATALOG_QUERY = """
SELECT
  p.id AS post_id,
  p.title,
  p.author,
  p.created_utc,
  p.flair,
  p.permalink,
  COALESCE(s.brand, p.brand) AS brand,
  COALESCE(s.type, p.type) AS type,
  s.position AS link_position,
  s.item_name,
  s.url AS seller_url,
  s.domain,
  s.price_value,
  s.price_currency,
  s.image_urls,
  (SELECT GROUP_CONCAT(tag, '|') FROM tags t WHERE t.post_id = p.id) AS tags
FROM seller_links s
JOIN posts p ON p.id = s.post_id
ORDER BY p.created_utc DESC, p.id, s.position
"""


def export_catalog(conn: sqlite3.Connection) -> pd.DataFrame:
    """One row per seller link, joined with its post."""
    cur = conn.execute(CATALOG_QUERY)
    columns = [desc[0] for desc in cur.description]
    return pd.DataFrame([tuple(r) for r in cur.fetchall()], columns=columns)


def save_catalog(conn: sqlite3.Connection, out_path: str) -> int:
    """Save the catalog to CSV or Excel file; returns the row count."""
    df = export_catalog(conn)
    if out_path.lower().endswith(".xlsx"):
        df.to_excel(out_path, index=False)
    else:
        df.to_csv(out_path, index=False)

    logger.info(f">>> Saved {len(df)} rows to {out_path}")
    return len(df)
