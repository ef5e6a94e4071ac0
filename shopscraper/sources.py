"""
Tiered acquisition of the post listing and of individual posts.

Each tier is a strategy object; ``acquire_listing`` and ``acquire_post`` try
them in order and stop at the first success:

    structured endpoint -> plain markup fetch -> headless render
"""
import functools
import logging
from typing import List, Sequence

import httpx
from bs4 import BeautifulSoup

from . import reddit
from .browser import Renderer, render_page
from .config import Config, config
from .models import (
    ListingEntry,
    ListingUnavailableError,
    PostContent,
    PostUnavailableError,
    UpstreamError,
)

logger = logging.getLogger(__name__)


class ListingSource:
    """Produces the list of posts to evaluate."""

    name = "listing"

    async def fetch_listing(self) -> List[ListingEntry]:
        raise NotImplementedError


class PostSource:
    """Produces the full content of one post."""

    name = "post"

    async def fetch_post(self, entry: ListingEntry) -> PostContent:
        raise NotImplementedError


def _require_entries(entries: List[ListingEntry], source: str) -> List[ListingEntry]:
    if not entries:
        raise UpstreamError(f"{source} listing contained no posts")
    return entries


def bind_renderer(renderer: Renderer, cfg: Config) -> Renderer:
    """Give the browser renderer the same settings as its source."""
    if renderer is render_page:
        return functools.partial(render_page, cfg=cfg)
    return renderer


def post_page_url(permalink: str, cfg: Config = config) -> str:
    return permalink if permalink.startswith("http") else cfg.HTML_BASE + permalink


def content_from_markup(markup: str, entry: ListingEntry, source: str) -> PostContent:
    """Build post content from a rendered or fetched post page."""
    soup = BeautifulSoup(markup, "lxml")
    title = reddit.parse_html_title(soup)
    body = reddit.parse_html_body(soup)
    author = reddit.parse_html_author(soup) or entry.author
    comments = reddit.parse_html_comments(soup, author)
    if not title and not body and not comments:
        raise UpstreamError(f"No post content in {source} markup for {entry.id}")

    return PostContent(
        title=title or entry.title,
        body=body,
        author=author,
        created_utc=reddit.parse_html_created_utc(soup) or entry.created_utc,
        flair=reddit.parse_html_flair(soup) or entry.flair,
        permalink=entry.permalink or reddit.parse_html_permalink(soup) or "",
        media=reddit.parse_html_media(soup),
        comments=comments,
        comments_ok=True,
        page_links=reddit.extract_html_links(soup),
        source=source,
    )


def content_from_listing(entry: ListingEntry) -> PostContent:
    """Last resort: whatever the listing payload carried, without comments."""
    raw = entry.raw or {}
    return PostContent(
        title=raw.get("title") or entry.title,
        body=raw.get("selftext") or None,
        author=raw.get("author") or entry.author,
        created_utc=entry.created_utc,
        flair=entry.flair,
        permalink=entry.permalink,
        media=reddit.extract_media(raw),
        comments=[],
        comments_ok=False,
        source="listing",
    )


class JsonListingSource(ListingSource):
    name = "json"

    def __init__(self, client: httpx.AsyncClient, cfg: Config = config):
        self.client = client
        self.cfg = cfg

    async def fetch_listing(self) -> List[ListingEntry]:
        posts = await reddit.fetch_listing_json(self.client, self.cfg)
        return [reddit.listing_entry_from_json(p) for p in posts]


class HtmlListingSource(ListingSource):
    name = "html"

    def __init__(self, client: httpx.AsyncClient, cfg: Config = config):
        self.client = client
        self.cfg = cfg

    async def fetch_listing(self) -> List[ListingEntry]:
        response = await self.client.get(
            self.cfg.listing_html_url,
            headers={"User-Agent": self.cfg.USER_AGENT},
            follow_redirects=True,
        )
        if response.status_code >= 400:
            raise UpstreamError(f"Markup listing failed with {response.status_code}")
        return _require_entries(reddit.parse_listing_html(response.text), self.name)


class RenderedListingSource(ListingSource):
    name = "rendered"

    def __init__(self, renderer: Renderer = render_page, cfg: Config = config):
        self.renderer = bind_renderer(renderer, cfg)
        self.cfg = cfg

    async def fetch_listing(self) -> List[ListingEntry]:
        markup = await self.renderer(self.cfg.listing_html_url)
        return _require_entries(reddit.parse_listing_html(markup), self.name)


class JsonPostSource(PostSource):
    name = "json"

    def __init__(self, client: httpx.AsyncClient, cfg: Config = config):
        self.client = client
        self.cfg = cfg

    async def fetch_post(self, entry: ListingEntry) -> PostContent:
        if not entry.permalink:
            raise UpstreamError(f"Post {entry.id} has no permalink")
        payload = await reddit.fetch_post_json(self.client, entry.permalink, self.cfg)
        data = reddit.post_data_from_payload(payload) or entry.raw or {}
        author = data.get("author") or entry.author
        created = data.get("created_utc")
        return PostContent(
            title=data.get("title") or entry.title,
            body=data.get("selftext") or None,
            author=author,
            created_utc=int(created) if isinstance(created, (int, float)) else entry.created_utc,
            flair=data.get("link_flair_text") or entry.flair,
            permalink=data.get("permalink") or entry.permalink,
            media=reddit.extract_media(data),
            comments=reddit.flatten_comments(payload, author),
            comments_ok=True,
            source=self.name,
        )


class HtmlPostSource(PostSource):
    name = "html"

    def __init__(self, client: httpx.AsyncClient, cfg: Config = config):
        self.client = client
        self.cfg = cfg

    async def fetch_post(self, entry: ListingEntry) -> PostContent:
        url = post_page_url(entry.permalink, self.cfg)
        response = await self.client.get(
            url, headers={"User-Agent": self.cfg.USER_AGENT}, follow_redirects=True
        )
        if response.status_code >= 400:
            raise UpstreamError(f"Markup post fetch failed with {response.status_code}: {url}")
        return content_from_markup(response.text, entry, self.name)


class RenderedPostSource(PostSource):
    name = "rendered"

    def __init__(self, renderer: Renderer = render_page, cfg: Config = config):
        self.renderer = bind_renderer(renderer, cfg)
        self.cfg = cfg

    async def fetch_post(self, entry: ListingEntry) -> PostContent:
        url = post_page_url(entry.permalink, self.cfg)
        markup = await self.renderer(url)
        return content_from_markup(markup, entry, self.name)


def default_listing_sources(
    client: httpx.AsyncClient, renderer: Renderer = render_page, cfg: Config = config
) -> List[ListingSource]:
    return [JsonListingSource(client, cfg), HtmlListingSource(client, cfg), RenderedListingSource(renderer, cfg)]


def default_post_sources(
    client: httpx.AsyncClient, renderer: Renderer = render_page, cfg: Config = config
) -> List[PostSource]:
    return [JsonPostSource(client, cfg), HtmlPostSource(client, cfg), RenderedPostSource(renderer, cfg)]


async def acquire_listing(sources: Sequence[ListingSource]) -> List[ListingEntry]:
    """Return the listing from the first tier that succeeds."""
    for source in sources:
        try:
            entries = await source.fetch_listing()
        except Exception as e:
            logger.warning("Listing tier '%s' failed: %s", source.name, e)
            continue
        logger.info(">>> Listing acquired via '%s': %d posts", source.name, len(entries))
        return entries
    raise ListingUnavailableError("All listing tiers failed")


async def acquire_post(sources: Sequence[PostSource], entry: ListingEntry) -> PostContent:
    """Return post content from the first tier that succeeds."""
    for source in sources:
        try:
            return await source.fetch_post(entry)
        except Exception as e:
            logger.warning("Post tier '%s' failed for %s: %s", source.name, entry.id, e)
    if entry.raw:
        logger.info("Using listing data only for %s", entry.id)
        return content_from_listing(entry)
    raise PostUnavailableError(f"All post tiers failed for {entry.id}")
