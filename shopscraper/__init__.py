"""
Community catalog scraper package.
"""
from .models import ListingEntry, PostContent, ScrapedPost, ScrapedSellerLink, ScrapeSummary
from .core import Scraper, reset_catalog, run_scrape
from .database import (
    db_connect,
    db_init,
    save_scraped_post,
    db_get_post,
    db_get_post_detail,
    find_posts,
)
from .export import export_catalog, save_catalog
from .scheduler import FreshnessScheduler, build_scheduler, ensure_catalog_data_fresh
from .utils import init_logger

__version__ = "1.0.0"

__all__ = [
    "ListingEntry",
    "PostContent",
    "ScrapedPost",
    "ScrapedSellerLink",
    "ScrapeSummary",
    "Scraper",
    "run_scrape",
    "reset_catalog",
    "db_connect",
    "db_init",
    "save_scraped_post",
    "db_get_post",
    "db_get_post_detail",
    "find_posts",
    "export_catalog",
    "save_catalog",
    "FreshnessScheduler",
    "build_scheduler",
    "ensure_catalog_data_fresh",
    "init_logger",
]
