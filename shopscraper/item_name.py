"""
Item name derivation from noisy post titles.
"""
import re
from typing import Optional

from .utils import clean_text

JARGON_WORDS = [
    "QC", "LC", "GL", "RL", "W2C", "WTS", "WTB", "WTT", "FS", "FT",
    "REVIEW", "HAUL", "FIND", "FINDS", "HELP", "QUESTION", "LINK", "LINKS",
]

JARGON_REGEX = re.compile(r"\b(" + "|".join(JARGON_WORDS) + r")\b", re.I)
BRACKETS_REGEX = re.compile(r"\[[^\]]*\]|\([^)]*\)|\{[^}]*\}")
SIZE_REGEX = re.compile(r"\b(size|sz)\b\s*[:=-]?\s*[a-z0-9.]+", re.I)
MEASURE_REGEX = re.compile(r"\b(us|eu|uk|cm)\s*\d+(?:\.\d+)?", re.I)
PREFIX_PRICE_REGEX = re.compile(r"(?:USD|EUR|GBP|CNY|RMB|¥|€|£|\$)\s*\d+(?:[.,]\d+)*", re.I)
SUFFIX_PRICE_REGEX = re.compile(r"\b\d+(?:[.,]\d+)*\s*(?:cny|rmb|usd|eur|gbp|元|¥|€|£|\$)", re.I)
WEIGHT_REGEX = re.compile(r"\b\d+(?:\.\d+)?\s*(kg|g|lb|lbs)\b", re.I)
SEPARATOR_REGEX = re.compile(r"\s*[|•·:/\-–—~]+\s*")

GENERIC_PHRASES = [
    re.compile(r"^(my )?first (ever|time|order|haul)\b", re.I),
    re.compile(r"^(my )?(latest|last|second|third|next|big|huge|small) (order|haul|package|parcel)\b", re.I),
    re.compile(r"\b(mulebuy|pandabuy|cssbuy|sugargoo|superbuy|wegobuy|hoobuy|kakobuy|allchinabuy|acbuy|cnfans|oopbuy|litbuy)\b.*\b(to|haul|order|shipping)\b", re.I),
    re.compile(r"^(any|need|looking for|where to|what is|is this|thoughts|opinions?)\b", re.I),
    re.compile(r"^(gl|rl|gl or rl)\??$", re.I),
]

GENERIC_WORDS = {
    "a", "an", "and", "the", "of", "to", "for", "from", "my", "me", "this", "that",
    "these", "first", "ever", "new", "latest", "last", "order", "orders", "package",
    "parcel", "shipment", "shipping", "stuff", "items", "item", "clothes", "fits",
    "fit", "random", "misc", "batch", "check", "pics", "pictures", "photos",
    "please", "thanks", "streetwear", "agent", "eu", "us", "uk", "pt", "part",
    "mulebuy", "pandabuy", "cssbuy", "sugargoo", "superbuy", "hoobuy", "kakobuy",
    "cnfans", "allchinabuy", "acbuy", "oopbuy", "litbuy", "here", "link", "it",
}


def _clean_once(text: str) -> str:
    text = BRACKETS_REGEX.sub(" ", text)
    text = JARGON_REGEX.sub(" ", text)
    text = SIZE_REGEX.sub(" ", text)
    text = MEASURE_REGEX.sub(" ", text)
    text = PREFIX_PRICE_REGEX.sub(" ", text)
    text = SUFFIX_PRICE_REGEX.sub(" ", text)
    text = WEIGHT_REGEX.sub(" ", text)
    text = SEPARATOR_REGEX.sub(" ", text)
    return clean_text(text)


def derive_item_name(title: Optional[str]) -> str:
    """
    Strip marketplace noise from a title, leaving the product words.

    Removes bracketed segments, jargon tokens (QC, W2C, HAUL...), sizes,
    prices, weights and separators. Passes repeat until the text stops
    changing, so the result is a fixed point.
    """
    if not title:
        return ""
    cleaned = clean_text(title)
    while True:
        next_value = _clean_once(cleaned)
        if next_value == cleaned:
            return cleaned
        cleaned = next_value


def is_generic_item_name(name: Optional[str]) -> bool:
    """True when the cleaned name says nothing about the product."""
    cleaned = derive_item_name(name)
    if len(cleaned) < 3:
        return True
    if any(p.search(cleaned) for p in GENERIC_PHRASES):
        return True
    words = re.findall(r"[a-z0-9']+", cleaned.lower())
    return not words or all(w in GENERIC_WORDS for w in words)
