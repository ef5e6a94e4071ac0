"""
Core scraping orchestration.

Drives listing -> per-post enrichment -> extraction -> media and seller link
resolution -> transactional upsert, one listing entry at a time.
"""
import logging
import os
import sqlite3
import time
from typing import Callable, Dict, List, Optional, Sequence

import httpx

from .browser import Renderer, render_page
from .config import ITEM_NAME_PRIORITY, Config, config
from .database import clear_catalog, db_connect, db_init, save_scraped_post
from .item_name import derive_item_name, is_generic_item_name
from .models import (
    ListingEntry,
    PostContent,
    ResetNotConfirmedError,
    ScrapedPost,
    ScrapedSellerLink,
    ScrapeSummary,
)
from .seller import SellerClient
from .sources import (
    ListingSource,
    PostSource,
    acquire_listing,
    acquire_post,
    default_listing_sources,
    default_post_sources,
)
from .text import (
    build_corpus,
    build_link_context_map,
    extract_price_from_text,
    extract_seller_links,
    extract_tags,
    extract_urls,
    infer_brand_from_text,
    infer_brand_from_urls,
    infer_type_from_text,
    is_image_url,
    url_host,
)
from .utils import now_epoch

logger = logging.getLogger(__name__)

WANT_TO_COPY_TAG = "W2C"


def assign_media_to_links(media_urls: Sequence[str], link_count: int, cap: int) -> List[List[str]]:
    """
    Distribute a post's media among its seller links.

    One link takes everything (up to ``cap``). With several links, link ``i``
    takes every ``link_count``-th item starting at ``i``; a link left empty
    gets the single item at ``i mod len(media)``.
    """
    if link_count <= 0:
        return []
    if link_count == 1:
        return [list(media_urls[:cap])]
    assigned = []
    for i in range(link_count):
        picks = list(media_urls[i::link_count][:cap])
        if not picks and media_urls:
            picks = [media_urls[i % len(media_urls)]]
        assigned.append(picks)
    return assigned


def pick_item_name(
    context: Optional[str],
    title_name: str,
    brand: Optional[str],
    item_type: Optional[str],
    domain: str,
    priority: Sequence[str] = ITEM_NAME_PRIORITY,
) -> Optional[str]:
    """First non-generic name from the configured providers."""
    providers: Dict[str, Callable[[], str]] = {
        "context": lambda: derive_item_name(context),
        "title": lambda: title_name,
        "brand_type": lambda: " ".join(p for p in (brand, item_type) if p) if brand and item_type else "",
        "type": lambda: item_type or "",
        "domain": lambda: f"Item from {domain}" if domain else "",
    }
    for key in priority:
        provider = providers.get(key)
        if provider is None:
            continue
        name = provider()
        if not name:
            continue
        if key in ("context", "title") and is_generic_item_name(name):
            continue
        return name
    return None


class Scraper:
    """One pipeline instance: acquisition tiers, seller client and a database connection."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        listing_sources: Sequence[ListingSource],
        post_sources: Sequence[PostSource],
        seller: SellerClient,
        cfg: Config = config,
    ):
        self.conn = conn
        self.listing_sources = list(listing_sources)
        self.post_sources = list(post_sources)
        self.seller = seller
        self.cfg = cfg

    async def run(self) -> ScrapeSummary:
        """Run one full pass. Raises ListingUnavailableError if no listing can be acquired."""
        started = time.monotonic()
        summary = ScrapeSummary()
        listing = await acquire_listing(self.listing_sources)

        for entry in listing:
            try:
                post = await self.scrape_entry(entry)
                if post is None:
                    summary.skipped += 1
                    continue
                if save_scraped_post(self.conn, post):
                    summary.created += 1
                else:
                    summary.updated += 1
            except Exception:
                summary.errors += 1
                logger.exception("Failed to process post %s", entry.id)

        logger.info(
            ">>> Scrape done in %ds | created=%d updated=%d errors=%d skipped=%d",
            round(time.monotonic() - started), summary.created, summary.updated,
            summary.errors, summary.skipped,
        )
        return summary

    async def scrape_entry(self, entry: ListingEntry) -> Optional[ScrapedPost]:
        """Enrich and extract one listing entry; None when it is not catalogable."""
        if not entry.id:
            return None
        content = await acquire_post(self.post_sources, entry)
        return await self.extract_post(entry.id, content)

    async def extract_post(self, post_id: str, content: PostContent) -> Optional[ScrapedPost]:
        # Hyperlinked targets count as part of the comment they sit in
        comment_bodies = [" ".join([c.body, *c.links]) for c in content.comments]
        tags = extract_tags(f"{content.title} {content.body or ''}", content.flair)

        comment_links = extract_seller_links(comment_bodies)
        if WANT_TO_COPY_TAG in tags and not comment_links and content.comments_ok:
            logger.debug("Skipping %s: W2C post without a seller link in comments", post_id)
            return None

        corpus = build_corpus(content.title, content.body, *comment_bodies)
        item_type = infer_type_from_text(corpus)
        segments = [content.title, content.body or "", *comment_bodies]
        seller_urls = extract_seller_links([*segments, *content.page_links])
        if not seller_urls and not item_type:
            logger.debug("Skipping %s: no seller link and no item type", post_id)
            return None

        link_contexts = build_link_context_map(segments)
        resolvable = [u for u in seller_urls if url_host(u)]
        brand = infer_brand_from_urls(resolvable) or infer_brand_from_text(corpus)
        links = await self.resolve_seller_links(
            seller_urls, corpus, link_contexts, derive_item_name(content.title), brand, item_type
        )
        self.apply_link_attributes(links, link_contexts, brand, item_type)
        await self.attach_link_media(links, [m.url for m in content.media], content.body)

        return ScrapedPost(
            id=post_id,
            title=content.title,
            body=content.body,
            author=content.author,
            created_utc=content.created_utc if content.created_utc is not None else now_epoch(),
            flair=content.flair,
            permalink=content.permalink,
            brand=brand,
            type=item_type,
            tags=tags,
            media=content.media,
            seller_links=links,
            comments=content.comments,
        )

    async def resolve_seller_links(
        self,
        urls: Sequence[str],
        corpus: str,
        link_contexts: Dict[str, str],
        title_name: str,
        brand: Optional[str],
        fallback_type: Optional[str],
    ) -> List[ScrapedSellerLink]:
        price_from_text = extract_price_from_text(corpus)
        links: List[ScrapedSellerLink] = []

        for index, url in enumerate(urls):
            domain = url_host(url)
            if not domain:
                continue
            price = price_from_text
            # Live lookups only for the first few links of a post
            if price is None and index < self.cfg.SELLER_FETCH_LIMIT:
                price = await self.seller.fetch_seller_price(url)

            links.append(ScrapedSellerLink(
                url=url,
                domain=domain,
                position=len(links),
                item_name=pick_item_name(
                    link_contexts.get(url), title_name, brand, fallback_type, domain
                ),
                price_value=price.value if price else None,
                price_currency=price.currency if price else None,
            ))
        return links

    def apply_link_attributes(
        self,
        links: List[ScrapedSellerLink],
        link_contexts: Dict[str, str],
        post_brand: Optional[str],
        post_type: Optional[str],
    ):
        """Brand and type per link; a single link simply inherits the post's."""
        if len(links) == 1:
            links[0].brand = post_brand
            links[0].type = post_type
            return
        for link in links:
            context = link_contexts.get(link.url, "")
            link.brand = (
                infer_brand_from_urls([link.url])
                or infer_brand_from_text(context)
                or post_brand
            )
            link.type = infer_type_from_text(context) or post_type

    async def attach_link_media(
        self, links: List[ScrapedSellerLink], media_urls: List[str], body: Optional[str]
    ):
        assigned = assign_media_to_links(media_urls, len(links), self.cfg.MEDIA_PER_LINK)
        body_image = next((u for u in extract_urls(body) if is_image_url(u)), None)
        for index, (link, images) in enumerate(zip(links, assigned)):
            if not images and body_image:
                images = [body_image]
            if not images and index < self.cfg.SELLER_FETCH_LIMIT:
                preview = await self.seller.get_seller_preview_image(link.url)
                if preview:
                    images = [preview]
            link.image_urls = images


async def run_scrape(
    conn: Optional[sqlite3.Connection] = None,
    cfg: Config = config,
    client: Optional[httpx.AsyncClient] = None,
    renderer: Renderer = render_page,
    seller: Optional[SellerClient] = None,
) -> ScrapeSummary:
    """
    Run one full pipeline pass and return its summary.

    Opens the configured database and an HTTP client unless given.
    """
    own_conn = conn is None
    if own_conn:
        os.makedirs(os.path.dirname(cfg.DB_PATH) or ".", exist_ok=True)
        conn = db_connect(cfg.DB_PATH)
    db_init(conn)

    own_client = client is None
    if own_client:
        client = httpx.AsyncClient(timeout=httpx.Timeout(cfg.REQUEST_TIMEOUT_S))
    try:
        scraper = Scraper(
            conn,
            default_listing_sources(client, renderer, cfg),
            default_post_sources(client, renderer, cfg),
            seller or SellerClient(client, cfg),
            cfg,
        )
        return await scraper.run()
    finally:
        if own_client:
            await client.aclose()
        if own_conn:
            conn.close()


async def reset_catalog(
    confirmed: Optional[bool] = None,
    conn: Optional[sqlite3.Connection] = None,
    cfg: Config = config,
    **scrape_kwargs,
) -> ScrapeSummary:
    """
    Delete every catalog row, then run a fresh scrape.

    Refuses to run unless confirmed, either by argument or CONFIRM_RESET=1.
    """
    if not (cfg.CONFIRM_RESET if confirmed is None else confirmed):
        raise ResetNotConfirmedError("Refusing to reset without confirmation (set CONFIRM_RESET=1)")

    own_conn = conn is None
    if own_conn:
        os.makedirs(os.path.dirname(cfg.DB_PATH) or ".", exist_ok=True)
        conn = db_connect(cfg.DB_PATH)
    try:
        db_init(conn)
        logger.info(">>> Clearing existing catalog data...")
        clear_catalog(conn)
        logger.info(">>> Running fresh scrape...")
        return await run_scrape(conn=conn, cfg=cfg, **scrape_kwargs)
    finally:
        if own_conn:
            conn.close()
