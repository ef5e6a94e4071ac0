"""
Scraper configuration and inference rule tables.

Runtime settings come from environment variables; the rule tables are plain
data evaluated first-match-wins, so adding a brand, type or currency means
adding a row here.
"""
import os
import re
from typing import List, Pattern, Tuple


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes")


class Config:
    """Scraper configuration."""

    # Database
    DB_PATH: str = os.getenv("SHOP_DB", "./data/db/shop_catalog.db")

    # Upstream source
    SUBREDDIT: str = os.getenv("SHOP_SUBREDDIT", "FashionReps")
    LISTING_LIMIT: int = int(os.getenv("SHOP_LISTING_LIMIT", "100"))
    COMMENT_LIMIT: int = 50
    JSON_BASE: str = "https://www.reddit.com"
    HTML_BASE: str = "https://old.reddit.com"
    USER_AGENT: str = "reddit-shop/1.0 (local catalog)"
    SELLER_USER_AGENT: str = "reddit-shop/1.0 (seller fetch)"

    # Fetching
    LISTING_RETRY_ATTEMPTS: int = 3
    LISTING_RETRY_BACKOFF_S: float = float(os.getenv("SHOP_RETRY_BACKOFF_S", "2.0"))
    REQUEST_TIMEOUT_S: float = 20.0
    RENDER_TIMEOUT_MS: int = 30_000
    HEADLESS: bool = os.getenv("HEADLESS", "1").strip().lower() not in ("0", "false", "no")

    # Seller enrichment
    SELLER_FETCH_LIMIT: int = 8
    SELLER_FETCH_TIMEOUT_S: float = 10.0
    MEDIA_PER_LINK: int = 6

    # Scheduling
    DISABLE_AUTO_SCRAPE: bool = _env_flag("DISABLE_AUTO_SCRAPE")
    CONFIRM_RESET: bool = _env_flag("CONFIRM_RESET")
    AUTO_REFRESH_COOLDOWN_S: float = float(os.getenv("AUTO_REFRESH_COOLDOWN_S", str(30 * 60)))
    DAEMON_HOUR: int = int(os.getenv("SHOP_DAEMON_HOUR", "12"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def listing_json_url(self) -> str:
        return f"{self.JSON_BASE}/r/{self.SUBREDDIT}/new.json?limit={self.LISTING_LIMIT}&raw_json=1"

    @property
    def listing_html_url(self) -> str:
        return f"{self.HTML_BASE}/r/{self.SUBREDDIT}/new/"


# Global config instance
config = Config()


def _rules(rows: List[Tuple[str, str]], flags: int = re.I) -> List[Tuple[Pattern, str]]:
    return [(re.compile(pattern, flags), value) for pattern, value in rows]


# Matched against whole URLs, so no word boundaries on the left.
BRAND_URL_RULES = _rules([
    (r"nike", "Nike"),
    (r"adidas", "Adidas"),
    (r"yeezy", "Yeezy"),
    (r"jordan", "Jordan"),
    (r"newbalance|new-balance|nb\b", "New Balance"),
    (r"stone\s*island|stoneisland|stone-island", "Stone Island"),
    (r"supreme", "Supreme"),
    (r"off-?white", "Off-White"),
    (r"balenciaga", "Balenciaga"),
    (r"louis\s*vuitton|louis-vuitton|lv\b", "Louis Vuitton"),
    (r"gucci", "Gucci"),
    (r"dior", "Dior"),
    (r"prada", "Prada"),
    (r"arcteryx|arc'teryx|arc-teryx", "Arc'teryx"),
    (r"patagonia", "Patagonia"),
    (r"canada\s*goose|canada-goose", "Canada Goose"),
])

BRAND_TEXT_RULES = _rules([
    (r"\bnike\b", "Nike"),
    (r"\badidas\b", "Adidas"),
    (r"\byeezy\b", "Yeezy"),
    (r"\bjordan\b", "Jordan"),
    (r"\bnew\s*balance\b|\bnb\b", "New Balance"),
    (r"\bstone\s*island\b", "Stone Island"),
    (r"\bsupreme\b", "Supreme"),
    (r"\boff-?white\b", "Off-White"),
    (r"\bbalenciaga\b", "Balenciaga"),
    (r"\blouis\s*vuitton\b|\blv\b", "Louis Vuitton"),
    (r"\bgucci\b", "Gucci"),
    (r"\bdior\b", "Dior"),
    (r"\bprada\b", "Prada"),
    (r"\barc'teryx\b|\barcteryx\b", "Arc'teryx"),
    (r"\bpatagonia\b", "Patagonia"),
    (r"\bcanada\s*goose\b", "Canada Goose"),
])

TYPE_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("Hoodie", ["hoodie", "hoody", "pullover"]),
    ("Sweatshirt", ["crewneck", "sweatshirt"]),
    ("T-Shirt", ["tee", "t-shirt", "tshirt", "shirt"]),
    ("Jacket", ["jacket", "windbreaker", "bomber", "anorak"]),
    ("Coat", ["coat", "parka", "puffer"]),
    ("Sneakers", ["sneaker", "sneakers", "shoe", "shoes", "trainer"]),
    ("Pants", ["pants", "trousers", "cargo", "chino"]),
    ("Jeans", ["jeans", "denim"]),
    ("Shorts", ["shorts"]),
    ("Accessories", ["cap", "hat", "beanie", "belt", "bag"]),
    ("Jewelry", ["ring", "bracelet", "necklace"]),
]

# Amount group accepts "1,200" and "120.50"; commas are stripped before parsing.
_AMOUNT = r"(\d+(?:,\d{3})*(?:\.\d{1,2})?)"

PRICE_RULES = _rules([
    (r"(?:USD|US\$|\$)\s*" + _AMOUNT, "USD"),
    (r"(?:EUR|€)\s*" + _AMOUNT, "EUR"),
    (r"(?:GBP|£)\s*" + _AMOUNT, "GBP"),
    (r"(?:CNY|RMB|¥)\s*" + _AMOUNT, "CNY"),
    (_AMOUNT + r"\s*(?:USD|\$)(?![A-Za-z])", "USD"),
    (_AMOUNT + r"\s*(?:EUR|€)(?![A-Za-z])", "EUR"),
    (_AMOUNT + r"\s*(?:GBP|£)(?![A-Za-z])", "GBP"),
    (_AMOUNT + r"\s*(?:CNY|RMB|¥|元)(?![A-Za-z])", "CNY"),
])

TAG_KEYWORDS = ["QC", "LC", "W2C"]

# Stripped from a segment when it is used as the context of a link.
LINK_CONTEXT_NOISE = ["QC", "LC", "W2C", "HAUL", "REVIEW", "GL", "RL"]

PLATFORM_HOSTS = [
    "reddit.com",
    "www.reddit.com",
    "old.reddit.com",
    "new.reddit.com",
    "np.reddit.com",
    "redd.it",
    "i.redd.it",
    "v.redd.it",
    "preview.redd.it",
    "external-preview.redd.it",
    "reddit.app.link",
    "redditmedia.com",
]

TRACKING_PARAMS = {
    "fbclid",
    "gclid",
    "dclid",
    "msclkid",
    "igshid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "ref_source",
    "share_id",
    "si",
    "spm",
    "scm",
    "_branch_match_id",
}
TRACKING_PARAM_PREFIXES = ("utm_",)

# Providers: context, title, brand_type, type, domain.
ITEM_NAME_PRIORITY = ["context", "title", "type"]
