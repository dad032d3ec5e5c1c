import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_FEED_URLS = [
    "https://feeds.content.dowjones.io/public/rss/mw_topstories",
    "https://economictimes.indiatimes.com/markets/rssfeeds/1977021501.cms",
    "https://www.moneycontrol.com/rss/marketreports.xml",
]

DEFAULT_BULLISH_KEYWORDS = [
    "surge",
    "record high",
    "upbeat",
    "rally",
    "gains",
    "rise",
    "beat estimates",
    "positive",
    "bullish",
    "momentum",
    "buying",
    "breakout",
    "outperform",
]

DEFAULT_BEARISH_KEYWORDS = [
    "plunge",
    "selloff",
    "downbeat",
    "fall",
    "losses",
    "decline",
    "miss estimates",
    "negative",
    "bearish",
    "slump",
    "crash",
    "selling",
    "fear",
    "underperform",
]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_ALT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/119.0.0.0 "
    "Safari/537.36 Edg/119.0.0.0"
)
DEFAULT_ALT_REFERER = "https://www.google.com/search?q=market+news"

DEFAULT_CONTENT_TYPES = [
    "application/rss+xml",
    "application/atom+xml",
    "application/xml",
    "text/xml",
    "text/html",
]


def _env_float_opt(name: str) -> Optional[float]:
    """
    Read an optional float from env. Returns None if unset, blank, or non-numeric.
    """
    raw = os.getenv(name)
    if raw is None:
        return None
    raw = raw.strip()
    if raw == "" or raw.lower() in {"none", "null"} or raw.startswith("#"):
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _env_float(name: str, default: float) -> float:
    value = _env_float_opt(name)
    return default if value is None else value


def _env_int(name: str, default: int) -> int:
    value = _env_float_opt(name)
    return default if value is None else int(value)


def _env_list(name: str, default: List[str]) -> List[str]:
    """Comma-separated env list; blank or unset falls back to ``default``."""
    raw = os.getenv(name, "")
    items = [p.strip() for p in raw.split(",") if p.strip()]
    return items or list(default)


def _b(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in {
        "1",
        "true",
        "yes",
        "y",
        "on",
    }


@dataclass
class Settings:
    # --- Feeds ---
    # Comma-separated list of RSS/Atom/HTML sources polled every ingest cycle.
    feed_urls: List[str] = field(
        default_factory=lambda: _env_list("NEWS_URLS", DEFAULT_FEED_URLS)
    )
    bullish_keywords: List[str] = field(
        default_factory=lambda: _env_list(
            "NEWS_BULLISH_KEYWORDS", DEFAULT_BULLISH_KEYWORDS
        )
    )
    bearish_keywords: List[str] = field(
        default_factory=lambda: _env_list(
            "NEWS_BEARISH_KEYWORDS", DEFAULT_BEARISH_KEYWORDS
        )
    )
    max_items_per_feed: int = _env_int("NEWS_MAX_ITEMS_PER_FEED", 30)
    max_total_items: int = _env_int("NEWS_MAX_TOTAL_ITEMS", 300)
    # Below this many items across >= 3 feeds the snapshot stays in the
    # lower confidence tier.
    min_items_high_confidence: int = _env_int("NEWS_MIN_ITEMS_HIGH_CONFIDENCE", 12)

    # --- Cache / health ---
    cache_ttl_minutes: float = _env_float("NEWS_CACHE_TTL_MINUTES", 15)
    health_ttl_minutes: float = _env_float("NEWS_HEALTH_TTL_MINUTES", 30)

    # --- HTTP ---
    connect_timeout_ms: int = _env_int("NEWS_CONNECT_TIMEOUT_MS", 15000)
    read_timeout_ms: int = _env_int("NEWS_READ_TIMEOUT_MS", 15000)
    probe_timeout_ms: int = _env_int("NEWS_PROBE_TIMEOUT_MS", 5000)
    user_agent: str = os.getenv("NEWS_USER_AGENT", DEFAULT_USER_AGENT)
    alt_user_agent: str = os.getenv("NEWS_ALT_USER_AGENT", DEFAULT_ALT_USER_AGENT)
    alt_referer: str = os.getenv("NEWS_ALT_REFERER", DEFAULT_ALT_REFERER)
    allow_html_scrape: bool = _b("NEWS_ALLOW_HTML_SCRAPE", True)
    allowed_content_types: List[str] = field(
        default_factory=lambda: _env_list(
            "NEWS_ALLOWED_CONTENT_TYPES", DEFAULT_CONTENT_TYPES
        )
    )
    broadcast_enabled: bool = _b("NEWS_BROADCAST", True)

    # --- Dedup / clustering ---
    embed_dedupe_threshold: float = _env_float("EMBED_DEDUPE_THRESHOLD", 0.86)
    embed_cluster_threshold: float = _env_float("EMBED_CLUSTER_THRESHOLD", 0.80)
    embedding_dim: int = _env_int("EMBEDDING_DIM", 384)
    vector_top_k: int = _env_int("VECTOR_TOP_K", 20)
    vector_num_candidates: int = _env_int("VECTOR_NUM_CANDIDATES", 50)
    linear_scan_limit: int = _env_int("LINEAR_SCAN_LIMIT", 1000)
    max_title_len: int = _env_int("MAX_TITLE_LEN", 400)
    max_desc_len: int = _env_int("MAX_DESC_LEN", 2000)

    # --- Trading signals ---
    # Signal generation is opt-in. FEATURE_TRADING_SIGNALS=1 enables it.
    feature_trading_signals: bool = _b("FEATURE_TRADING_SIGNALS", False)
    signal_confidence_threshold: float = _env_float(
        "SIGNAL_CONFIDENCE_THRESHOLD", 0.7
    )
    price_impact_threshold: float = _env_float("PRICE_IMPACT_THRESHOLD", 0.02)
    signal_workers: int = _env_int("SIGNAL_WORKERS", 4)
    signal_lookback_minutes: float = _env_float("SIGNAL_LOOKBACK_MINUTES", 30)
    max_high_confidence_symbols: int = _env_int("MAX_HIGH_CONFIDENCE_SYMBOLS", 5)
    symbols: List[str] = field(default_factory=lambda: _env_list("NEWS_SYMBOLS", []))

    # --- Credibility feedback ---
    credibility_min: float = _env_float("CREDIBILITY_MIN", 0.7)
    credibility_max: float = _env_float("CREDIBILITY_MAX", 1.3)
    credibility_step: float = _env_float("CREDIBILITY_STEP", 0.02)

    # --- Event ring buffer ---
    event_buffer_capacity: int = _env_int("EVENT_BUFFER_CAPACITY", 2000)
    burst_window_minutes: float = _env_float("BURST_WINDOW_MINUTES", 10)
    burst_purge_horizon_minutes: float = _env_float(
        "BURST_PURGE_HORIZON_MINUTES", 180
    )

    # --- Scheduling ---
    refresh_seconds: int = _env_int("NEWS_REFRESH_SECONDS", 30)
    cache_clear_hours: float = _env_float("NEWS_CACHE_CLEAR_HOURS", 4)
    health_check_minutes: float = _env_float("NEWS_HEALTH_CHECK_MINUTES", 10)
    cleanup_minutes: float = _env_float("SIGNAL_CLEANUP_MINUTES", 5)
    market_hours_only: bool = _b("NEWS_MARKET_HOURS_ONLY", False)
    market_timezone: str = os.getenv("NEWS_MARKET_TIMEZONE", "Asia/Kolkata")

    # --- Logging / paths ---
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # LOG_PLAIN=1 switches console output to the colourised single-line format.
    log_plain: bool = _b("LOG_PLAIN", False)
    data_dir: Path = Path(os.getenv("DATA_DIR", "data"))


SETTINGS = Settings()


def get_settings() -> Settings:
    return SETTINGS
