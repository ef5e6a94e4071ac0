"""
Seller page enrichment: live price lookup and preview image discovery.

Both lookups are best effort. Any network failure, timeout or bad response
yields "no data"; nothing is raised to the caller. Results, including
misses, are cached per URL on the client instance.
"""
import asyncio
import logging
import re
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlsplit

import httpx
from bs4 import BeautifulSoup

from .config import Config, config
from .models import PriceInfo
from .text import extract_price_from_text

logger = logging.getLogger(__name__)

PREVIEW_META_KEYS = [
    ("property", "og:image"),
    ("property", "og:image:secure_url"),
    ("property", "og:image:url"),
    ("name", "twitter:image"),
    ("name", "twitter:image:src"),
    ("itemprop", "image"),
]
IMG_SOURCE_ATTRS = ["src", "data-src", "data-lazy-src", "data-original", "data-lazy", "data-zoom-image"]
IMG_SRCSET_ATTRS = ["srcset", "data-srcset"]

NON_PRODUCT_REGEX = re.compile(
    r"(logo|icon|sprite|favicon|avatar|placeholder|blank|spacer|pixel|loading|spinner|badge|qrcode|qr-code)",
    re.I,
)
PHOTO_EXT_REGEX = re.compile(r"\.(jpe?g|png|webp|avif)(?=$|[_.!/?@])", re.I)


def is_non_product_image(url: str) -> bool:
    """Logos, icons, sprites and similar page chrome, judged by file name."""
    path = urlsplit(url).path
    filename = path.rsplit("/", 1)[-1]
    return bool(NON_PRODUCT_REGEX.search(filename))


def is_likely_product_photo(url: str) -> bool:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return False
    return bool(PHOTO_EXT_REGEX.search(parts.path))


def _first_srcset_candidate(srcset: str) -> Optional[str]:
    first = srcset.split(",")[0].strip()
    return first.split()[0] if first else None


def preview_candidates(soup: BeautifulSoup) -> List[str]:
    """Candidate image URLs, social preview tags first, then page images."""
    candidates: List[str] = []
    for attr, key in PREVIEW_META_KEYS:
        for meta in soup.find_all("meta", attrs={attr: key}):
            content = meta.get("content")
            if content:
                candidates.append(content.strip())

    for img in soup.find_all("img"):
        for attr in IMG_SOURCE_ATTRS:
            value = img.get(attr)
            if value:
                candidates.append(value.strip())
        for attr in IMG_SRCSET_ATTRS:
            value = img.get(attr)
            if value:
                first = _first_srcset_candidate(value)
                if first:
                    candidates.append(first)
    return candidates


def pick_preview_image(markup: str, base_url: str) -> Optional[str]:
    """First candidate that resolves to an absolute, product-looking photo URL."""
    soup = BeautifulSoup(markup, "lxml")
    for candidate in preview_candidates(soup):
        resolved = urljoin(base_url, candidate)
        if is_non_product_image(resolved):
            continue
        if is_likely_product_photo(resolved):
            return resolved
    return None


def visible_text(markup: str) -> str:
    soup = BeautifulSoup(markup, "lxml")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    return body.get_text(" ")


class SellerClient:
    """
    Per-URL seller lookups with their own caches and timeout.

    Caches are plain dicts owned by the instance; pass shared dicts to share
    results between clients, or nothing for a fresh cache.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cfg: Config = config,
        price_cache: Optional[Dict[str, Optional[PriceInfo]]] = None,
        preview_cache: Optional[Dict[str, Optional[str]]] = None,
    ):
        self.client = client
        self.cfg = cfg
        self.timeout = httpx.Timeout(cfg.SELLER_FETCH_TIMEOUT_S)
        self.price_cache = price_cache if price_cache is not None else {}
        self.preview_cache = preview_cache if preview_cache is not None else {}

    async def _fetch(self, url: str) -> Optional[httpx.Response]:
        try:
            # Per-phase httpx timeouts do not bound a slowly dripping body
            response = await asyncio.wait_for(
                self.client.get(
                    url,
                    headers={"User-Agent": self.cfg.SELLER_USER_AGENT},
                    timeout=self.timeout,
                    follow_redirects=True,
                ),
                timeout=self.cfg.SELLER_FETCH_TIMEOUT_S,
            )
        except httpx.HTTPError as e:
            logger.debug("Seller fetch failed for %s: %s", url, e)
            return None
        except asyncio.TimeoutError:
            logger.debug("Seller fetch timed out for %s", url)
            return None
        if not response.is_success:
            logger.debug("Seller fetch for %s returned %s", url, response.status_code)
            return None
        return response

    async def fetch_seller_price(self, url: str) -> Optional[PriceInfo]:
        """Price found in the seller page's visible text, or None."""
        if url in self.price_cache:
            return self.price_cache[url]
        price = None
        response = await self._fetch(url)
        if response is not None:
            try:
                price = extract_price_from_text(visible_text(response.text))
            except (UnicodeDecodeError, ValueError) as e:
                logger.debug("Could not read seller page %s: %s", url, e)
        self.price_cache[url] = price
        return price

    async def get_seller_preview_image(self, url: str) -> Optional[str]:
        """Product photo for a seller page, or None."""
        if url in self.preview_cache:
            return self.preview_cache[url]
        image = None
        response = await self._fetch(url)
        if response is not None:
            try:
                image = pick_preview_image(response.text, str(response.url))
            except (UnicodeDecodeError, ValueError) as e:
                logger.debug("Could not read seller page %s: %s", url, e)
        self.preview_cache[url] = image
        return image
