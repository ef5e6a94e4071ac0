"""
Structured-endpoint client and markup parsers for the forum source.

JSON helpers talk to the machine-readable endpoints; the ``parse_*`` helpers
turn old-style listing and post markup into the same shapes.
"""
import logging
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit

import httpx
from bs4 import BeautifulSoup
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from .config import Config, config
from .models import (
    ListingEntry,
    RateLimitedError,
    ScrapedComment,
    ScrapedMedia,
    UpstreamError,
)
from .text import decode_html_entities, extract_urls, is_image_url
from .utils import clean_text, parse_iso_epoch

logger = logging.getLogger(__name__)


def _check_response(response: httpx.Response) -> None:
    if response.status_code == 429:
        raise RateLimitedError(f"Rate limited: {response.request.url}")
    if response.status_code >= 400:
        raise UpstreamError(f"Request failed with {response.status_code}: {response.request.url}")


def media_kind(url: str) -> str:
    path = urlsplit(url).path.lower()
    if path.endswith(".gif"):
        return "gif"
    if path.endswith((".mp4", ".webm", ".mov")):
        return "video"
    return "image"


# ---------------------------------------------------------------------------
# Structured (JSON) source
# ---------------------------------------------------------------------------

def listing_retrying(cfg: Config = config) -> AsyncRetrying:
    """Retry policy for the JSON listing: wait ``attempt x backoff`` after each failure."""
    return AsyncRetrying(
        stop=stop_after_attempt(cfg.LISTING_RETRY_ATTEMPTS),
        wait=wait_incrementing(start=cfg.LISTING_RETRY_BACKOFF_S, increment=cfg.LISTING_RETRY_BACKOFF_S),
        retry=retry_if_exception_type((RateLimitedError, httpx.TransportError)),
        reraise=True,
    )


async def fetch_listing_json(client: httpx.AsyncClient, cfg: Config = config) -> List[Dict[str, Any]]:
    """
    Fetch the listing from the JSON endpoint.

    Retries on rate limits and network errors, and raises once attempts are
    exhausted.
    """
    async for attempt in listing_retrying(cfg):
        with attempt:
            n = attempt.retry_state.attempt_number
            logger.debug("JSON listing attempt %d: %s", n, cfg.listing_json_url)
            response = await client.get(cfg.listing_json_url, headers={"User-Agent": cfg.USER_AGENT})
            _check_response(response)
            payload = response.json()

    children = _children(payload)
    posts = [c.get("data") for c in children]
    posts = [p for p in posts if isinstance(p, dict) and p.get("id")]
    if not posts:
        raise UpstreamError("JSON listing returned no posts")
    return posts[: cfg.LISTING_LIMIT]


def listing_entry_from_json(post: Dict[str, Any]) -> ListingEntry:
    created = post.get("created_utc")
    return ListingEntry(
        id=str(post["id"]),
        permalink=post.get("permalink") or "",
        title=post.get("title") or "",
        author=post.get("author") or "unknown",
        created_utc=int(created) if isinstance(created, (int, float)) else None,
        flair=post.get("link_flair_text") or None,
        raw=post,
    )


async def fetch_post_json(client: httpx.AsyncClient, permalink: str, cfg: Config = config) -> List[Any]:
    """Fetch ``[post_listing, comment_listing]`` for a permalink."""
    url = f"{cfg.JSON_BASE}{permalink.rstrip('/')}.json?limit={cfg.COMMENT_LIMIT}&raw_json=1"
    response = await client.get(url, headers={"User-Agent": cfg.USER_AGENT})
    _check_response(response)
    payload = response.json()
    if not isinstance(payload, list) or len(payload) < 2:
        raise UpstreamError(f"Unexpected post payload shape for {permalink}")
    return payload


def post_data_from_payload(payload: List[Any]) -> Optional[Dict[str, Any]]:
    try:
        data = payload[0]["data"]["children"][0]["data"]
    except (KeyError, IndexError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _children(listing: Any) -> List[Dict[str, Any]]:
    if not isinstance(listing, dict):
        return []
    data = listing.get("data")
    if not isinstance(data, dict):
        return []
    return [c for c in data.get("children") or [] if isinstance(c, dict)]


def flatten_comments(payload: List[Any], op_author: str) -> List[ScrapedComment]:
    """Top-level comments plus the OP's direct replies to them."""
    comments: List[ScrapedComment] = []
    seen = set()

    def add(data: Dict[str, Any], is_op: bool) -> None:
        cid = str(data.get("id") or "")
        if not cid or cid in seen:
            return
        seen.add(cid)
        comments.append(ScrapedComment(
            id=cid,
            author=data.get("author") or "unknown",
            body=data["body"],
            is_op=is_op,
        ))

    for child in _children(payload[1] if len(payload) > 1 else None):
        if child.get("kind") != "t1" or not isinstance(child.get("data"), dict):
            continue
        comment = child["data"]
        if not comment.get("body"):
            continue
        add(comment, comment.get("author") == op_author)

        for reply in _children(comment.get("replies")):
            data = reply.get("data")
            if reply.get("kind") != "t1" or not isinstance(data, dict):
                continue
            if data.get("author") != op_author or not data.get("body"):
                continue
            add(data, True)

    return comments


def extract_media(post: Dict[str, Any]) -> List[ScrapedMedia]:
    """Preview images, gallery items, hosted video and a linked image file."""
    found: Dict[str, str] = {}

    def add(url: Optional[str], kind: Optional[str] = None) -> None:
        if not url:
            return
        url = decode_html_entities(url)
        if url not in found:
            found[url] = kind or media_kind(url)

    preview = post.get("preview") or {}
    for image in preview.get("images") or []:
        add(((image or {}).get("source") or {}).get("url"))

    gallery = post.get("gallery_data") or {}
    metadata = post.get("media_metadata") or {}
    for item in gallery.get("items") or []:
        media = metadata.get((item or {}).get("media_id")) or {}
        source = media.get("s") or {}
        if source.get("u"):
            add(source["u"], "gif" if media.get("e") == "AnimatedImage" else "image")
        elif source.get("gif"):
            add(source["gif"], "gif")

    video = ((post.get("secure_media") or {}).get("reddit_video") or {}).get("fallback_url")
    add(video, "video")

    override = post.get("url_overridden_by_dest")
    if override and is_image_url(decode_html_entities(override)):
        add(override)

    return [ScrapedMedia(url=u, kind=k) for u, k in found.items()]


# ---------------------------------------------------------------------------
# Markup source
# ---------------------------------------------------------------------------

def _soup(markup: Union[str, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(markup, BeautifulSoup):
        return markup
    return BeautifulSoup(markup, "lxml")


def _permalink_path(link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    if link.startswith("/"):
        return link
    try:
        path = urlsplit(link).path
    except ValueError:
        return link
    return path or link


def parse_listing_html(markup: Union[str, BeautifulSoup]) -> List[ListingEntry]:
    """Parse rows of an old-style listing page."""
    soup = _soup(markup)
    entries: List[ListingEntry] = []
    seen = set()
    for row in soup.select("div.thing[data-fullname]"):
        fullname = row.get("data-fullname") or ""
        if not fullname.startswith("t3_") or row.get("data-promoted") == "true":
            continue
        post_id = fullname[3:]
        if post_id in seen:
            continue
        seen.add(post_id)

        title_el = row.select_one("a.title")
        permalink = _permalink_path(row.get("data-permalink")) or _permalink_path(
            title_el.get("href") if title_el else None
        )
        if not permalink:
            continue

        created = None
        timestamp = row.get("data-timestamp")
        if timestamp and timestamp.isdigit():
            created = int(timestamp) // 1000
        else:
            time_el = row.select_one("time[datetime]")
            created = parse_iso_epoch(time_el.get("datetime")) if time_el else None

        author_el = row.select_one("a.author")
        flair_el = row.select_one("span.linkflairlabel")
        entries.append(ListingEntry(
            id=post_id,
            permalink=permalink,
            title=clean_text(title_el.get_text()) if title_el else "",
            author=row.get("data-author") or (clean_text(author_el.get_text()) if author_el else "unknown"),
            created_utc=created,
            flair=(clean_text(flair_el.get_text()) or None) if flair_el else None,
        ))
    return entries


def parse_html_title(markup: Union[str, BeautifulSoup]) -> Optional[str]:
    el = _soup(markup).select_one("a.title")
    return (clean_text(el.get_text()) or None) if el else None


def parse_html_body(markup: Union[str, BeautifulSoup]) -> Optional[str]:
    el = _soup(markup).select_one(".expando .usertext-body")
    return (el.get_text().strip() or None) if el else None


def parse_html_author(markup: Union[str, BeautifulSoup]) -> Optional[str]:
    el = _soup(markup).select_one("a.author")
    return (clean_text(el.get_text()) or None) if el else None


def parse_html_created_utc(markup: Union[str, BeautifulSoup]) -> Optional[int]:
    el = _soup(markup).select_one("time[datetime]")
    return parse_iso_epoch(el.get("datetime")) if el else None


def parse_html_permalink(markup: Union[str, BeautifulSoup]) -> Optional[str]:
    """
    Comments-page path of the post.

    Link posts point ``a.title`` at the outbound target, so the title link
    is only used when it is itself a comments path.
    """
    soup = _soup(markup)
    thing = soup.select_one("div.thing[data-permalink]")
    if thing is not None:
        return _permalink_path(thing.get("data-permalink"))
    for selector in ("a.bylink", "a.comments", "a.title"):
        el = soup.select_one(selector)
        path = _permalink_path(el.get("href")) if el else None
        if path and "/comments/" in path:
            return path
    return None


def parse_html_flair(markup: Union[str, BeautifulSoup]) -> Optional[str]:
    el = _soup(markup).select_one("span.linkflairlabel")
    return (clean_text(el.get_text()) or None) if el else None


def parse_html_comments(markup: Union[str, BeautifulSoup], op_author: str) -> List[ScrapedComment]:
    """
    Comment blocks keyed by author attribute.

    Keeps top-level comments and the OP's direct replies to them, the same
    slice the JSON source produces.
    """
    soup = _soup(markup)
    comments: List[ScrapedComment] = []
    seen = set()
    for index, el in enumerate(soup.select(".comment")):
        parent = el.find_parent(class_="comment")
        if parent is not None:
            if parent.find_parent(class_="comment") is not None:
                continue
        author = el.get("data-author")
        if not author:
            author_el = el.select_one("a.author")
            author = clean_text(author_el.get_text()) if author_el else ""
        body_el = el.select_one(".usertext-body")
        body = body_el.get_text().strip() if body_el else ""
        links = [
            a["href"] for a in body_el.find_all("a", href=True) if a["href"].startswith("http")
        ] if body_el else []
        if not author or not body:
            continue
        if parent is not None and author != op_author:
            continue

        fullname = el.get("data-fullname") or ""
        cid = fullname[3:] if fullname.startswith("t1_") else (fullname or f"html-{index}")
        if cid in seen:
            continue
        seen.add(cid)
        comments.append(ScrapedComment(
            id=cid, author=author, body=body, is_op=author == op_author, links=links
        ))
    return comments


def parse_html_media(markup: Union[str, BeautifulSoup]) -> List[ScrapedMedia]:
    urls: Dict[str, None] = {}
    for img in _soup(markup).find_all("img"):
        src = img.get("src")
        if src and is_image_url(src):
            urls[src] = None
    return [ScrapedMedia(url=u, kind=media_kind(u)) for u in urls]


def extract_html_links(markup: Union[str, BeautifulSoup]) -> List[str]:
    """Outbound links inside post and comment bodies, anchors and plain text."""
    links: Dict[str, None] = {}
    for body in _soup(markup).select(".usertext-body"):
        for a in body.find_all("a", href=True):
            href = a["href"]
            if href.startswith("http"):
                links[href] = None
        for url in extract_urls(body.get_text(" ")):
            links[url] = None
    return list(links)
