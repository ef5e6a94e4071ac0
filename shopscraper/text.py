"""
URL and text extraction helpers.

Pure functions, no I/O: URL normalization, seller link discovery, brand/type
inference, price parsing and tag extraction.
"""
import re
from typing import Dict, Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .config import (
    BRAND_TEXT_RULES,
    BRAND_URL_RULES,
    LINK_CONTEXT_NOISE,
    PLATFORM_HOSTS,
    PRICE_RULES,
    TAG_KEYWORDS,
    TRACKING_PARAM_PREFIXES,
    TRACKING_PARAMS,
    TYPE_KEYWORDS,
)
from .models import PriceInfo
from .utils import clean_text

URL_REGEX = re.compile(r"\bhttps?://[^\s<>()\[\]\"']+", re.I)
TRAILING_PUNCT = re.compile(r"[),.?!:;\]*]+$")
IMAGE_URL_REGEX = re.compile(r"\.(png|jpe?g|gif|webp)(\?|$)", re.I)
NOISE_REGEX = re.compile(r"\b(" + "|".join(LINK_CONTEXT_NOISE) + r")\b", re.I)
# Only the entities that show up escaped inside links; "&currency=" must survive.
URL_ENTITIES = {"amp": "&", "quot": "\"", "#39": "'", "#x27": "'", "lt": "<", "gt": ">"}
URL_ENTITY_REGEX = re.compile(r"&(amp|quot|#39|#x27|lt|gt);", re.I)


def decode_html_entities(text: str) -> str:
    """Decode the HTML entities a link can carry, in a single pass."""
    return URL_ENTITY_REGEX.sub(lambda m: URL_ENTITIES[m.group(1).lower()], text)


def _is_tracking_param(name: str) -> bool:
    lowered = name.lower()
    return lowered in TRACKING_PARAMS or lowered.startswith(TRACKING_PARAM_PREFIXES)


def normalize_url(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a raw URL token.

    Decodes HTML entities, strips trailing punctuation, drops the fragment and
    tracking parameters, lowercases the host without a leading ``www.`` and
    removes a trailing slash from non-root paths. Returns None when the input
    is not an absolute http(s) URL.
    """
    if not raw:
        return None
    candidate = TRAILING_PUNCT.sub("", decode_html_entities(raw.strip()))
    try:
        parts = urlsplit(candidate)
        host = parts.hostname
        port = parts.port
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not host:
        return None

    host = host.lower()
    if host.startswith("www."):
        host = host[4:]
    if not host or " " in host:
        return None
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{port}" if port else host

    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    query_pairs = [
        (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
        if not _is_tracking_param(k)
    ]
    query = urlencode(query_pairs)

    normalized = urlunsplit((parts.scheme.lower(), netloc, path, query, ""))
    # Re-encoding a query can expose trailing punctuation again
    if TRAILING_PUNCT.search(normalized):
        return normalize_url(normalized)
    return normalized


def url_host(url: str) -> Optional[str]:
    """Lowercased host of a URL without ``www.``, or None if unparseable."""
    try:
        host = urlsplit(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    host = host.lower()
    return host[4:] if host.startswith("www.") else host


def is_image_url(url: str) -> bool:
    return bool(IMAGE_URL_REGEX.search(url))


def extract_urls(text: Optional[str]) -> List[str]:
    """Find every http(s) URL in text, normalized, first-seen order."""
    if not text:
        return []
    seen: Dict[str, None] = {}
    for match in URL_REGEX.findall(text):
        url = normalize_url(match)
        if url and url not in seen:
            seen[url] = None
    return list(seen)


def is_platform_url(url: str) -> bool:
    host = url_host(url)
    if host is None:
        return True
    return any(host == blocked or host.endswith("." + blocked) for blocked in PLATFORM_HOSTS)


def extract_seller_links(segments: Iterable[Optional[str]]) -> List[str]:
    """Collect outbound URLs from all segments, excluding the platform's own hosts."""
    seen: Dict[str, None] = {}
    for segment in segments:
        for url in extract_urls(segment):
            if url not in seen and not is_platform_url(url):
                seen[url] = None
    return list(seen)


def build_link_context_map(segments: Iterable[Optional[str]]) -> Dict[str, str]:
    """
    Map each URL to the text around it.

    The context is the segment with its URLs and noise markers (QC, haul,
    review...) removed. When several segments mention a URL, the longest
    context wins.
    """
    contexts: Dict[str, str] = {}
    for segment in segments:
        if not segment:
            continue
        urls = extract_urls(segment)
        if not urls:
            continue
        context = URL_REGEX.sub(" ", segment)
        context = NOISE_REGEX.sub(" ", context)
        context = clean_text(context)
        for url in urls:
            if len(context) > len(contexts.get(url, "")) or url not in contexts:
                contexts[url] = context
    return contexts


def infer_brand_from_urls(urls: Iterable[str]) -> Optional[str]:
    for url in urls:
        for pattern, brand in BRAND_URL_RULES:
            if pattern.search(url):
                return brand
    return None


def infer_brand_from_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    for pattern, brand in BRAND_TEXT_RULES:
        if pattern.search(text):
            return brand
    return None


def infer_type_from_text(text: Optional[str]) -> Optional[str]:
    if not text:
        return None
    lowered = text.lower()
    for item_type, keywords in TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return item_type
    return None


def extract_price_from_text(text: Optional[str]) -> Optional[PriceInfo]:
    """Return the first currency/amount pair found in text."""
    if not text:
        return None
    for pattern, currency in PRICE_RULES:
        m = pattern.search(text)
        if not m:
            continue
        try:
            value = float(m.group(1).replace(",", ""))
        except ValueError:
            continue
        return PriceInfo(value=value, currency=currency)
    return None


def extract_tags(text: Optional[str], flair: Optional[str] = None) -> List[str]:
    """Tags from the fixed vocabulary present in text or flair."""
    corpus = f"{text or ''} {flair or ''}"
    return [
        tag for tag in TAG_KEYWORDS
        if re.search(rf"\b{re.escape(tag)}\b", corpus, re.I)
    ]


def build_corpus(*segments: Optional[str]) -> str:
    return " ".join(s for s in segments if s)
