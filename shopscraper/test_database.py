"""
Tests for catalog persistence.
"""
import pytest

from .database import (
    clear_catalog,
    count_catalog_items,
    db_get_post,
    db_get_post_detail,
    distinct_values,
    find_posts,
    save_scraped_post,
    transaction,
)
from .models import ScrapedComment, ScrapedMedia, ScrapedPost, ScrapedSellerLink


def make_post(post_id="abc123", created=1700000000, brand="Nike", item_type="Hoodie", prices=(120.0,)):
    links = [
        ScrapedSellerLink(
            url=f"https://seller.com/{post_id}/{i}",
            domain="seller.com",
            position=i,
            item_name="Nike Tech",
            price_value=price,
            price_currency="USD" if price is not None else None,
            brand=brand,
            type=item_type,
            image_urls=[f"https://i.redd.it/{post_id}-{i}.jpg"],
        )
        for i, price in enumerate(prices)
    ]
    return ScrapedPost(
        id=post_id,
        title=f"{brand} {item_type} W2C",
        body="Check it",
        author="opUser",
        created_utc=created,
        flair=None,
        permalink=f"/r/FashionReps/comments/{post_id}/",
        brand=brand,
        type=item_type,
        tags=["W2C"],
        media=[ScrapedMedia(f"https://i.redd.it/{post_id}.png"), ScrapedMedia("https://v.redd.it/x.mp4", "video")],
        seller_links=links,
        comments=[ScrapedComment("c1", "opUser", "W2C https://seller.com", True)],
    )


def table_counts(conn):
    return {
        t: conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
        for t in ("posts", "media", "seller_links", "comments", "tags")
    }


def test_save_and_read_back(conn):
    assert save_scraped_post(conn, make_post()) is True

    post = db_get_post_detail(conn, "abc123")
    assert post["brand"] == "Nike"
    assert [m["kind"] for m in post["media"]] == ["image", "video"]
    assert post["seller_links"][0]["image_urls"] == ["https://i.redd.it/abc123-0.jpg"]
    assert post["seller_links"][0]["price_value"] == 120.0
    assert post["comments"] == [{"id": "c1", "author": "opUser", "body": "W2C https://seller.com", "is_op": True}]
    assert post["tags"] == ["W2C"]
    assert db_get_post_detail(conn, "missing") is None


def test_resave_replaces_children_without_duplicates(conn):
    save_scraped_post(conn, make_post(prices=(120.0, 80.0)))
    before = table_counts(conn)
    row_before = db_get_post(conn, "abc123")

    assert save_scraped_post(conn, make_post(prices=(120.0, 80.0))) is False
    assert table_counts(conn) == before
    assert db_get_post(conn, "abc123") == row_before

    save_scraped_post(conn, make_post(prices=(99.0,)))
    assert table_counts(conn)["seller_links"] == 1


def test_transaction_rolls_back_on_error(conn):
    save_scraped_post(conn, make_post())
    with pytest.raises(RuntimeError):
        with transaction(conn):
            conn.execute("DELETE FROM seller_links")
            raise RuntimeError("boom")
    assert count_catalog_items(conn) == 1


def test_find_posts_filters_and_sorts(conn):
    save_scraped_post(conn, make_post("p1", created=100, brand="Nike", item_type="Hoodie", prices=(120.0,)))
    save_scraped_post(conn, make_post("p2", created=200, brand="Adidas", item_type="Sneakers", prices=(60.0, 75.0)))
    save_scraped_post(conn, make_post("p3", created=300, brand="Nike", item_type="Sneakers", prices=(None,)))

    total, rows = find_posts(conn)
    assert total == 3
    assert [r["id"] for r in rows] == ["p3", "p2", "p1"]
    assert rows[1]["link_count"] == 2
    assert rows[1]["min_price"] == 60.0
    assert rows[0]["thumbnail_url"] == "https://i.redd.it/p3.png"

    total, rows = find_posts(conn, {"brand": "nike"})
    assert total == 2

    total, rows = find_posts(conn, {"brand": "Nike", "type": "Sneakers"})
    assert [r["id"] for r in rows] == ["p3"]

    _, rows = find_posts(conn, {"min_price": 70, "max_price": 100})
    assert [r["id"] for r in rows] == ["p2"]

    _, rows = find_posts(conn, sort="price_asc")
    assert [r["id"] for r in rows] == ["p2", "p1", "p3"]

    total, rows = find_posts(conn, limit=1, offset=1)
    assert total == 3
    assert [r["id"] for r in rows] == ["p2"]


def test_distinct_values(conn):
    save_scraped_post(conn, make_post("p1", brand="Nike"))
    save_scraped_post(conn, make_post("p2", brand="Nike"))
    save_scraped_post(conn, make_post("p3", brand="Adidas"))
    assert distinct_values(conn, "brand") == ["Nike", "Adidas"]
    with pytest.raises(ValueError):
        distinct_values(conn, "author")


def test_clear_catalog(conn):
    save_scraped_post(conn, make_post("p1"))
    save_scraped_post(conn, make_post("p2"))
    clear_catalog(conn)
    assert set(table_counts(conn).values()) == {0}
