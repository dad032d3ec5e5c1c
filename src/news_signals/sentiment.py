"""Keyword-weighted market and symbol sentiment.

Two variants share the same hit counting:

* the market snapshot, which sums bullish/bearish keyword hits over every
  fetched item of an ingest cycle into a 0-100 score with a tiered
  confidence, and
* the per-symbol analysis, which averages per-item scores weighted by symbol
  weight, source credibility, publish-age decay and topical category.

Keyword matching is case-insensitive substring counting with no word
boundaries; several occurrences in one item all count.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .config import Settings, get_settings
from .feedback.credibility import SourceCredibility
from .logging_utils import get_logger
from .models import MarketSentimentSnapshot, NewsItem, SentimentAnalysis, clamp
from .time_utils import Clock, now_utc

log = get_logger("sentiment")

# Category boosts: any keyword in the group multiplies the item weight once.
CATEGORY_WEIGHTS = (
    (("earnings", "results"), 1.3),
    (("merger", "acquisition"), 1.25),
    (("regulator", "policy"), 1.2),
)
SYMBOL_MENTION_WEIGHT = 1.15


def count_hits(text: Optional[str], keywords: Iterable[str]) -> int:
    """Non-overlapping, case-insensitive occurrences of every keyword.

    >>> count_hits("Rally extends; rally broadens", ["rally"])
    2
    """
    haystack = (text or "").lower()
    if not haystack:
        return 0
    total = 0
    for kw in keywords:
        needle = (kw or "").strip().lower()
        if needle:
            total += haystack.count(needle)
    return total


def item_hits(item: NewsItem, keywords: Iterable[str]) -> int:
    return count_hits(f"{item.title} {item.description}", keywords)


def raw_signal(bull: int, bear: int) -> float:
    if bull + bear <= 0:
        return 0.0
    return clamp((bull - bear) / float(bull + bear), -1.0, 1.0)


def sentiment_score(raw: float) -> int:
    """Map a raw signal in [-1, 1] onto 0-100 (50 neutral), rounding half up."""
    return int(clamp(math.floor(50 + raw * 50 + 0.5), 0, 100))


def market_confidence(successful_feeds: int, total_items: int, min_items: int) -> int:
    """Tiered confidence in 0-100.

    High tier needs at least three successful feeds and ``min_items`` items;
    otherwise any successful feed gives the lower tier; none gives a floor.
    """
    if successful_feeds >= 3 and total_items >= min_items:
        conf = 80 + min(20, (total_items - min_items) // 5)
    elif successful_feeds >= 1:
        conf = 40 + min(40, successful_feeds * 10 + total_items * 2)
    else:
        conf = 10
    return int(clamp(conf, 0, 100))


@dataclass
class MarketTally:
    """Accumulates one ingest cycle's keyword hits."""

    bull: int = 0
    bear: int = 0
    total: int = 0
    successful_feeds: int = 0

    def add_feed(
        self,
        items: Sequence[NewsItem],
        bullish: Sequence[str],
        bearish: Sequence[str],
    ) -> None:
        if not items:
            return
        self.successful_feeds += 1
        for item in items:
            self.bull += item_hits(item, bullish)
            self.bear += item_hits(item, bearish)
            self.total += 1

    def snapshot(self, as_of: datetime, min_items: int) -> MarketSentimentSnapshot:
        return MarketSentimentSnapshot(
            as_of=as_of,
            score=sentiment_score(raw_signal(self.bull, self.bear)),
            confidence=market_confidence(self.successful_feeds, self.total, min_items),
            bullish_hits=self.bull,
            bearish_hits=self.bear,
            total_items=self.total,
            successful_feeds=self.successful_feeds,
        )


def time_decay(age_minutes: Optional[float]) -> float:
    """Weight by whole minutes since publication; unknown age gets 0.5."""
    if age_minutes is None:
        return 0.5
    minutes = int(age_minutes)
    if minutes <= 15:
        return 1.0
    if minutes <= 60:
        return 0.8
    if minutes <= 240:
        return 0.6
    if minutes <= 1440:
        return 0.3
    return 0.1


def category_weight(item: NewsItem, symbol: Optional[str]) -> float:
    text = item.text
    weight = 1.0
    for keywords, boost in CATEGORY_WEIGHTS:
        if any(k in text for k in keywords):
            weight *= boost
    if symbol and symbol.lower() in text:
        weight *= SYMBOL_MENTION_WEIGHT
    return weight


def sentiment_confidence(news_count: int, total_weight: float) -> float:
    base = min(1.0, news_count / 10.0)
    weight_factor = min(1.0, total_weight / max(1.0, float(news_count)))
    return clamp(base * 0.6 + weight_factor * 0.4)


class SentimentAggregator:
    """Per-symbol weighted sentiment.

    Parameters
    ----------
    credibility : SourceCredibility
        Supplies the per-source weight of every item.
    clock : callable, optional
        Returns "now" for publish-age decay.
    """

    def __init__(
        self,
        credibility: SourceCredibility,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or get_settings()
        self.credibility = credibility
        self._clock = clock or now_utc
        self._symbol_weights: Dict[str, float] = {}
        self._lock = threading.Lock()

    def update_symbol_weights(self, weights: Mapping[str, float]) -> int:
        if not weights:
            return 0
        with self._lock:
            for symbol, weight in weights.items():
                self._symbol_weights[symbol.upper()] = float(weight)
        log.info("symbol_weights_updated count=%d", len(weights))
        return len(weights)

    def symbol_weight(self, symbol: str) -> float:
        return self._symbol_weights.get((symbol or "").upper(), 1.0)

    def analyze(self, symbol: str, news: List[NewsItem]) -> SentimentAnalysis:
        bullish = self.settings.bullish_keywords
        bearish = self.settings.bearish_keywords
        now = self._clock()
        sym_weight = self.symbol_weight(symbol)

        total_score = 0.0
        total_weight = 0.0
        bullish_count = 0
        bearish_count = 0
        for item in news:
            bull = item_hits(item, bullish)
            bear = item_hits(item, bearish)
            if bull + bear == 0:
                continue
            score = (bull - bear) / float(bull + bear)
            weight = (
                sym_weight
                * self.credibility.rating(item.source)
                * time_decay(item.age_minutes(now))
                * category_weight(item, symbol)
            )
            total_score += score * weight
            total_weight += weight
            if score > 0.1:
                bullish_count += 1
            if score < -0.1:
                bearish_count += 1

        return SentimentAnalysis(
            symbol=symbol,
            score=total_score / total_weight if total_weight > 0 else 0.0,
            confidence=sentiment_confidence(len(news), total_weight),
            bullish_count=bullish_count,
            bearish_count=bearish_count,
            news_volume=len(news),
            sources=tuple(item.source for item in news),
        )
