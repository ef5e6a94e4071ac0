"""
Database operations for the catalog.

Posts own their media, seller links, comments and tags. A post and all of
its children are replaced together inside one transaction.
"""
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .models import ScrapedPost


# Schema definitions
DDL_POSTS = """
CREATE TABLE IF NOT EXISTS posts (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  body TEXT,
  author TEXT NOT NULL,
  created_utc INTEGER NOT NULL,
  flair TEXT,
  permalink TEXT NOT NULL,
  brand TEXT,
  type TEXT
);
"""

DDL_MEDIA = """
CREATE TABLE IF NOT EXISTS media (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
  position INTEGER NOT NULL,
  url TEXT NOT NULL,
  kind TEXT NOT NULL CHECK (kind IN ('image', 'video', 'gif'))
);
"""

DDL_SELLER_LINKS = """
CREATE TABLE IF NOT EXISTS seller_links (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
  position INTEGER NOT NULL,
  url TEXT NOT NULL,
  domain TEXT NOT NULL,
  item_name TEXT,
  price_value REAL,
  price_currency TEXT,
  brand TEXT,
  type TEXT,
  image_urls TEXT
);
"""

DDL_COMMENTS = """
CREATE TABLE IF NOT EXISTS comments (
  id TEXT NOT NULL,
  post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
  position INTEGER NOT NULL,
  author TEXT NOT NULL,
  body TEXT NOT NULL,
  is_op INTEGER NOT NULL DEFAULT 0,
  PRIMARY KEY (post_id, id)
);
"""

DDL_TAGS = """
CREATE TABLE IF NOT EXISTS tags (
  post_id TEXT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
  tag TEXT NOT NULL,
  PRIMARY KEY (post_id, tag)
);
"""

DDL_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_posts_created ON posts(created_utc);",
    "CREATE INDEX IF NOT EXISTS idx_posts_brand ON posts(brand);",
    "CREATE INDEX IF NOT EXISTS idx_posts_type ON posts(type);",
    "CREATE INDEX IF NOT EXISTS idx_media_post ON media(post_id);",
    "CREATE INDEX IF NOT EXISTS idx_seller_links_post ON seller_links(post_id);",
    "CREATE INDEX IF NOT EXISTS idx_comments_post ON comments(post_id);",
]

CHILD_TABLES = ["media", "seller_links", "comments", "tags"]

FACET_COLUMNS = {"brand", "type"}

SORT_OPTIONS = {
    "newest": "ORDER BY p.created_utc DESC, p.id",
    "oldest": "ORDER BY p.created_utc ASC, p.id",
    "price_asc": "ORDER BY min_price IS NULL, min_price ASC, p.created_utc DESC",
    "price_desc": "ORDER BY max_price IS NULL, max_price DESC, p.created_utc DESC",
}


def db_connect(path: str) -> sqlite3.Connection:
    """
    Create database connection with optimized settings.

    The connection runs in autocommit mode; multi-statement work goes
    through ``transaction``.
    """
    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    return conn


def db_init(conn: sqlite3.Connection):
    """Initialize database schema with tables and indexes."""
    for ddl in (DDL_POSTS, DDL_MEDIA, DDL_SELLER_LINKS, DDL_COMMENTS, DDL_TAGS):
        conn.execute(ddl)
    for ddl in DDL_INDEXES:
        conn.execute(ddl)


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements atomically: commit on success, roll back on error."""
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    """Convert sqlite3.Row to dictionary."""
    return dict(row) if row is not None else None


def _split_urls(value: Optional[str]) -> List[str]:
    return [u for u in (value or "").split("|") if u]


def db_get_post(conn: sqlite3.Connection, post_id: str) -> Optional[Dict[str, Any]]:
    """Retrieve a post row by id."""
    row = conn.execute("SELECT * FROM posts WHERE id = ?", (post_id,)).fetchone()
    return row_to_dict(row)


def db_get_post_detail(conn: sqlite3.Connection, post_id: str) -> Optional[Dict[str, Any]]:
    """Retrieve a post with all of its children, each in stored order."""
    post = db_get_post(conn, post_id)
    if post is None:
        return None
    post["media"] = [
        dict(r) for r in conn.execute(
            "SELECT url, kind FROM media WHERE post_id = ? ORDER BY position", (post_id,)
        )
    ]
    links = []
    for r in conn.execute(
        "SELECT url, domain, item_name, price_value, price_currency, brand, type, image_urls "
        "FROM seller_links WHERE post_id = ? ORDER BY position",
        (post_id,),
    ):
        link = dict(r)
        link["image_urls"] = _split_urls(link["image_urls"])
        links.append(link)
    post["seller_links"] = links
    post["comments"] = [
        {**dict(r), "is_op": bool(r["is_op"])} for r in conn.execute(
            "SELECT id, author, body, is_op FROM comments WHERE post_id = ? ORDER BY position",
            (post_id,),
        )
    ]
    post["tags"] = sorted(
        r["tag"] for r in conn.execute("SELECT tag FROM tags WHERE post_id = ?", (post_id,))
    )
    return post


def save_scraped_post(conn: sqlite3.Connection, post: ScrapedPost) -> bool:
    """
    Replace a post and all of its children atomically.

    Returns:
        True if the post did not exist before.
    """
    is_new = db_get_post(conn, post.id) is None
    with transaction(conn):
        conn.execute("""
        INSERT INTO posts (id, title, body, author, created_utc, flair, permalink, brand, type)
        VALUES (?,?,?,?,?,?,?,?,?)
        ON CONFLICT(id) DO UPDATE SET
          title=excluded.title, body=excluded.body, author=excluded.author,
          created_utc=excluded.created_utc, flair=excluded.flair,
          permalink=excluded.permalink, brand=excluded.brand, type=excluded.type
        """, (
            post.id, post.title, post.body, post.author, post.created_utc,
            post.flair, post.permalink, post.brand, post.type
        ))

        for table in CHILD_TABLES:
            conn.execute(f"DELETE FROM {table} WHERE post_id = ?", (post.id,))

        conn.executemany(
            "INSERT INTO media (post_id, position, url, kind) VALUES (?,?,?,?)",
            [(post.id, i, m.url, m.kind) for i, m in enumerate(post.media)],
        )
        conn.executemany("""
        INSERT INTO seller_links (
          post_id, position, url, domain, item_name, price_value, price_currency,
          brand, type, image_urls
        ) VALUES (?,?,?,?,?,?,?,?,?,?)
        """, [
            (post.id, link.position, link.url, link.domain, link.item_name, link.price_value,
             link.price_currency, link.brand, link.type, "|".join(link.image_urls))
            for link in post.seller_links
        ])
        conn.executemany(
            "INSERT INTO comments (id, post_id, position, author, body, is_op) VALUES (?,?,?,?,?,?)",
            [(c.id, post.id, i, c.author, c.body, int(c.is_op)) for i, c in enumerate(post.comments)],
        )
        conn.executemany(
            "INSERT INTO tags (post_id, tag) VALUES (?,?)",
            [(post.id, tag) for tag in dict.fromkeys(post.tags)],
        )
    return is_new


def build_where_clause(filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
    """Build WHERE clause and parameters from filters."""
    where_conditions = []
    parameters: List[Any] = []

    # Text search
    q = filters.get("q")
    if q:
        where_conditions.append("(lower(p.title) LIKE ? OR lower(p.body) LIKE ? OR lower(p.author) LIKE ?)")
        search_term = f"%{q.lower()}%"
        parameters.extend([search_term, search_term, search_term])

    for column in ("brand", "type"):
        value = filters.get(column)
        if value:
            where_conditions.append(f"lower(p.{column}) = ?")
            parameters.append(value.lower())

    # Price range, satisfied by any seller link of the post
    min_price = filters.get("min_price")
    max_price = filters.get("max_price")
    if min_price is not None or max_price is not None:
        cond = "s.price_value IS NOT NULL"
        if min_price is not None:
            cond += " AND s.price_value >= ?"
            parameters.append(min_price)
        if max_price is not None:
            cond += " AND s.price_value <= ?"
            parameters.append(max_price)
        where_conditions.append(
            f"EXISTS (SELECT 1 FROM seller_links s WHERE s.post_id = p.id AND {cond})"
        )

    where_clause = " WHERE " + " AND ".join(where_conditions) if where_conditions else ""
    return where_clause, parameters


def get_order_clause(sort: str) -> str:
    """Generate ORDER BY clause based on sort parameter."""
    return SORT_OPTIONS.get(sort, SORT_OPTIONS["newest"])


def find_posts(
    conn: sqlite3.Connection,
    filters: Optional[Dict[str, Any]] = None,
    sort: str = "newest",
    limit: int = 24,
    offset: int = 0,
) -> Tuple[int, List[Dict[str, Any]]]:
    """
    Filtered, sorted page of posts.

    Returns:
        Tuple of (total matching posts, rows for the requested page)
    """
    where_clause, parameters = build_where_clause(filters or {})
    total = conn.execute(f"SELECT COUNT(*) FROM posts p {where_clause}", parameters).fetchone()[0]

    sql = f"""
    SELECT p.*,
      (SELECT MIN(price_value) FROM seller_links WHERE post_id = p.id) AS min_price,
      (SELECT MAX(price_value) FROM seller_links WHERE post_id = p.id) AS max_price,
      (SELECT COUNT(*) FROM seller_links WHERE post_id = p.id) AS link_count,
      (SELECT url FROM media WHERE post_id = p.id ORDER BY position LIMIT 1) AS thumbnail_url
    FROM posts p {where_clause} {get_order_clause(sort)} LIMIT ? OFFSET ?
    """
    rows = conn.execute(sql, [*parameters, limit, offset]).fetchall()
    return total, [dict(r) for r in rows]


def distinct_values(conn: sqlite3.Connection, column: str) -> List[str]:
    """Distinct non-empty values of a facet column, most common first."""
    if column not in FACET_COLUMNS:
        raise ValueError(f"Unsupported facet column: {column}")
    rows = conn.execute(
        f"SELECT {column}, COUNT(*) AS n FROM posts WHERE {column} IS NOT NULL AND {column} != '' "
        f"GROUP BY {column} ORDER BY n DESC, {column}"
    ).fetchall()
    return [r[0] for r in rows]


def count_catalog_items(conn: sqlite3.Connection) -> int:
    """Number of purchasable items, one per seller link."""
    return conn.execute("SELECT COUNT(*) FROM seller_links").fetchone()[0]


def clear_catalog(conn: sqlite3.Connection):
    """Delete every row of every catalog table."""
    with transaction(conn):
        for table in CHILD_TABLES:
            conn.execute(f"DELETE FROM {table}")
        conn.execute("DELETE FROM posts")
