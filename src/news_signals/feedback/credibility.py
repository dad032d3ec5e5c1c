"""Per-source credibility ratings.

Every source label (feed host, e.g. ``moneycontrol.com``) carries a
multiplier read by the sentiment scorer and the risk model. A source with no
history starts from a tier prior:

    - Tier 1 (1.1x): regulators and premium wires (SEBI, RBI, SEC, Reuters,
      Bloomberg, WSJ, FT)
    - Tier 2 (1.0x): established market news (MarketWatch/Dow Jones,
      Economic Times, Moneycontrol, Mint, Business Standard, Yahoo Finance)
    - Tier 3 (1.0x): anything else

Each recorded signal outcome moves the rating of every contributing source by
a fixed step, up when the signal was accurate and down otherwise. Ratings
are clamped to ``[credibility_min, credibility_max]`` no matter how many
updates are applied.

Usage:
    >>> cred = SourceCredibility()
    >>> cred.rating("reuters.com")
    1.1
"""

from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional

from ..config import Settings, get_settings
from ..logging_utils import get_logger
from ..models import clamp

log = get_logger("credibility")

CREDIBILITY_TIERS: Dict[str, Dict[str, object]] = {
    # Tier 1: regulators
    "sebi.gov.in": {"tier": 1, "prior": 1.1, "category": "regulatory"},
    "rbi.org.in": {"tier": 1, "prior": 1.1, "category": "regulatory"},
    "sec.gov": {"tier": 1, "prior": 1.1, "category": "regulatory"},
    # Tier 1: premium financial news
    "reuters.com": {"tier": 1, "prior": 1.1, "category": "premium_news"},
    "bloomberg.com": {"tier": 1, "prior": 1.1, "category": "premium_news"},
    "wsj.com": {"tier": 1, "prior": 1.1, "category": "premium_news"},
    "ft.com": {"tier": 1, "prior": 1.1, "category": "premium_news"},
    # Tier 2: established market news
    "dowjones.io": {"tier": 2, "prior": 1.0, "category": "financial_news"},
    "marketwatch.com": {"tier": 2, "prior": 1.0, "category": "financial_news"},
    "economictimes.indiatimes.com": {
        "tier": 2,
        "prior": 1.0,
        "category": "financial_news",
    },
    "moneycontrol.com": {"tier": 2, "prior": 1.0, "category": "financial_news"},
    "livemint.com": {"tier": 2, "prior": 1.0, "category": "financial_news"},
    "business-standard.com": {"tier": 2, "prior": 1.0, "category": "financial_news"},
    "finance.yahoo.com": {"tier": 2, "prior": 1.0, "category": "financial_news"},
}

DEFAULT_TIER = 3
DEFAULT_PRIOR = 1.0


def _tier_info(source: str) -> Optional[Dict[str, object]]:
    host = (source or "").strip().lower()
    if host.startswith("www."):
        host = host[4:]
    if not host:
        return None
    for domain, info in CREDIBILITY_TIERS.items():
        if host == domain or host.endswith("." + domain):
            return info
    return None


def get_source_tier(source: str) -> int:
    """Credibility tier of a source label (1=high, 2=medium, 3=unknown).

    >>> get_source_tier("feeds.content.dowjones.io")
    2
    >>> get_source_tier("unknown-blog.example")
    3
    """
    info = _tier_info(source)
    return int(info["tier"]) if info else DEFAULT_TIER


def get_prior_rating(source: str) -> float:
    info = _tier_info(source)
    return float(info["prior"]) if info else DEFAULT_PRIOR


class SourceCredibility:
    """Thread-safe ``source -> rating`` map with clamped nudges."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._ratings: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _clamp(self, value: float) -> float:
        return clamp(value, self.settings.credibility_min, self.settings.credibility_max)

    def rating(self, source: str) -> float:
        current = self._ratings.get(source)
        if current is None:
            return self._clamp(get_prior_rating(source))
        return current

    def average(self, sources: Iterable[str]) -> Optional[float]:
        values = [self.rating(s) for s in sources]
        if not values:
            return None
        return sum(values) / len(values)

    def nudge(self, sources: Iterable[str], accurate: bool) -> Dict[str, float]:
        """Move every listed source one step. Repeated labels move repeatedly."""
        step = self.settings.credibility_step if accurate else -self.settings.credibility_step
        updated: Dict[str, float] = {}
        with self._lock:
            for source in sources:
                if not source:
                    continue
                current = self._ratings.get(source)
                if current is None:
                    current = self._clamp(get_prior_rating(source))
                self._ratings[source] = self._clamp(current + step)
                updated[source] = self._ratings[source]
        if updated:
            log.debug("credibility_nudged accurate=%s sources=%s", accurate, updated)
        return updated

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._ratings)
