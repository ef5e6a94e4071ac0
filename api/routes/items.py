"""
API route handlers for catalog endpoints.
"""
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from shopscraper.database import db_get_post_detail, distinct_values, find_posts
from shopscraper.scheduler import ensure_catalog_data_fresh

from ..config import config
from ..database import get_db_connection
from ..models import FacetsOut, ItemsResponse, PostOut, PostSummaryOut

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["items"])


async def refresh_catalog(request: Request):
    """Give the scheduler a chance to refresh before any catalog read."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None:
        await ensure_catalog_data_fresh(scheduler)


@router.get("/items", response_model=ItemsResponse)
async def get_api_items(
    request: Request,
    brand: Optional[str] = None,
    type: Optional[str] = None,
    limit: int = Query(config.DEFAULT_API_LIMIT, ge=1, le=config.MAX_API_LIMIT),
    offset: int = Query(0, ge=0)
):
    """Newest posts first, optionally filtered by exact brand and type."""
    await refresh_catalog(request)
    try:
        with get_db_connection() as conn:
            total, rows = find_posts(conn, {"brand": brand, "type": type}, "newest", limit, offset)
        return ItemsResponse(total=total, items=[PostSummaryOut(**row) for row in rows])

    except Exception as e:
        logger.error(f"Error fetching items: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/items/{post_id}", response_model=PostOut)
async def get_api_item(request: Request, post_id: str):
    """Get a post with its media, seller links, comments and tags."""
    await refresh_catalog(request)
    try:
        with get_db_connection() as conn:
            post = db_get_post_detail(conn, post_id)
        if not post:
            raise HTTPException(status_code=404, detail="Post not found")

        return PostOut(**post)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching post {post_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/facets", response_model=FacetsOut)
async def get_api_facets(request: Request):
    """Known brands and types, most common first."""
    await refresh_catalog(request)
    try:
        with get_db_connection() as conn:
            return FacetsOut(
                brands=distinct_values(conn, "brand"),
                types=distinct_values(conn, "type"),
            )

    except Exception as e:
        logger.error(f"Error fetching facets: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")
