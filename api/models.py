"""
Pydantic models for API response serialization.
"""
from typing import List, Optional

from pydantic import BaseModel


class MediaOut(BaseModel):
    url: str
    kind: str = "image"


class SellerLinkOut(BaseModel):
    """One purchasable item: a seller URL with its derived attributes."""
    url: str
    domain: str
    item_name: Optional[str] = None
    price_value: Optional[float] = None
    price_currency: Optional[str] = None
    brand: Optional[str] = None
    type: Optional[str] = None
    image_urls: List[str] = []


class CommentOut(BaseModel):
    id: str
    author: str
    body: str
    is_op: bool = False


class PostSummaryOut(BaseModel):
    """Output model for a post in a paginated listing."""
    id: str
    title: str
    author: str
    created_utc: int
    flair: Optional[str] = None
    permalink: str
    brand: Optional[str] = None
    type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    link_count: int = 0
    thumbnail_url: Optional[str] = None


class PostOut(BaseModel):
    """Output model for a post with all of its children."""
    id: str
    title: str
    body: Optional[str] = None
    author: str
    created_utc: int
    flair: Optional[str] = None
    permalink: str
    brand: Optional[str] = None
    type: Optional[str] = None
    tags: List[str] = []
    media: List[MediaOut] = []
    seller_links: List[SellerLinkOut] = []
    comments: List[CommentOut] = []


class ItemsResponse(BaseModel):
    """Response model for paginated posts."""
    total: int
    items: List[PostSummaryOut]


class FacetsOut(BaseModel):
    brands: List[str]
    types: List[str]
