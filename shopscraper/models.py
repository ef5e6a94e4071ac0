"""
Data models and errors for the catalog scraper.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


class ScraperError(Exception):
    """Base class for scraper failures."""


class UpstreamError(ScraperError):
    """Upstream answered with a non-OK status or an unusable payload."""


class RateLimitedError(UpstreamError):
    """Upstream answered 429."""


class ListingUnavailableError(ScraperError):
    """Every listing acquisition tier failed."""


class PostUnavailableError(ScraperError):
    """Every post acquisition tier failed and no listing data is available."""


class ResetNotConfirmedError(ScraperError):
    """Catalog reset was requested without confirmation."""


@dataclass(frozen=True)
class PriceInfo:
    value: float
    currency: str


@dataclass
class ListingEntry:
    """One row of the post listing, from either the JSON or the markup feed."""

    id: str
    permalink: str
    title: str = ""
    author: str = "unknown"
    created_utc: Optional[int] = None
    flair: Optional[str] = None
    # Structured payload for this post, when the listing came from JSON
    raw: Optional[Dict[str, Any]] = None


@dataclass
class ScrapedMedia:
    url: str
    kind: str = "image"  # image | video | gif


@dataclass
class ScrapedComment:
    id: str
    author: str
    body: str
    is_op: bool = False
    # Anchor targets in the comment markup, which its plain text may not show
    links: List[str] = field(default_factory=list)


@dataclass
class PostContent:
    """Full content of one post as returned by an acquisition tier."""

    title: str
    body: Optional[str]
    author: str
    created_utc: Optional[int]
    flair: Optional[str]
    permalink: str
    media: List[ScrapedMedia] = field(default_factory=list)
    comments: List[ScrapedComment] = field(default_factory=list)
    # False when comments could not be fetched at all
    comments_ok: bool = True
    # Outbound links found in the page markup, not only in text
    page_links: List[str] = field(default_factory=list)
    source: str = "json"


@dataclass
class ScrapedSellerLink:
    url: str
    domain: str
    position: int = 0
    item_name: Optional[str] = None
    price_value: Optional[float] = None
    price_currency: Optional[str] = None
    brand: Optional[str] = None
    type: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)


@dataclass
class ScrapedPost:
    """A fully extracted post, ready to be persisted."""

    id: str
    title: str
    body: Optional[str]
    author: str
    created_utc: int
    flair: Optional[str]
    permalink: str
    brand: Optional[str] = None
    type: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    media: List[ScrapedMedia] = field(default_factory=list)
    seller_links: List[ScrapedSellerLink] = field(default_factory=list)
    comments: List[ScrapedComment] = field(default_factory=list)


@dataclass
class ScrapeSummary:
    created: int = 0
    updated: int = 0
    errors: int = 0
    skipped: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
