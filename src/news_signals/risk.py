"""Risk scoring for news-driven signals.

Total risk is the sum of four parts, capped at 1:

- base risk ``1 - sentiment confidence``
- conflict risk: ``1 - |positive - negative| / items`` (balanced news is risky)
- source risk: ``clamp(1.2 - average credibility, 0, 0.5)``, 0.2 without news
- volatility risk: 0.3 for symbols flagged high-volatility, else 0.1

The total maps to a :class:`RiskLevel` bucket, inversely to the max position
size and directly to stop-loss widening.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence, Set

from .config import Settings, get_settings
from .feedback.credibility import SourceCredibility
from .logging_utils import get_logger
from .models import NewsItem, RiskAssessment, RiskLevel, RiskThreshold, SentimentAnalysis, clamp
from .sentiment import item_hits

log = get_logger("risk")

HIGH_VOLATILITY = 0.05
LOW_LIQUIDITY = 0.3


def conflict_risk(news: Sequence[NewsItem], bullish: Sequence[str], bearish: Sequence[str]) -> float:
    pos = neg = 0
    for item in news:
        bull = item_hits(item, bullish)
        bear = item_hits(item, bearish)
        if bull > bear:
            pos += 1
        elif bear > bull:
            neg += 1
    return 1.0 - abs(pos - neg) / float(max(1, len(news)))


def source_reliability_risk(news: Sequence[NewsItem], credibility: SourceCredibility) -> float:
    avg = credibility.average(item.source for item in news)
    if avg is None:
        return 0.2
    return clamp(1.2 - avg, 0.0, 0.5)


def max_position_size(risk: float) -> float:
    return clamp(1.0 - risk, 0.1, 0.8)


def stop_loss_adjustment(risk: float) -> float:
    return clamp(risk * 0.5, 0.0, 0.5)


class RiskManager:
    """Per-symbol risk thresholds plus the risk assessment itself."""

    def __init__(self, credibility: SourceCredibility, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.credibility = credibility
        self._thresholds: Dict[str, RiskThreshold] = {}
        self._high_volatility: Set[str] = set()
        self._lock = threading.Lock()

    def is_high_volatility(self, symbol: str) -> bool:
        return symbol.upper() in self._high_volatility

    def threshold_for(self, symbol: str) -> Optional[RiskThreshold]:
        return self._thresholds.get(symbol.upper())

    def confidence_threshold(self, symbol: str) -> float:
        """Effective confidence bar: the stricter of global and per-symbol."""
        threshold = self.threshold_for(symbol)
        base = self.settings.signal_confidence_threshold
        return max(base, threshold.confidence_threshold) if threshold else base

    def adjust_risk_thresholds(
        self, symbol: str, volatility: float, liquidity: float
    ) -> RiskThreshold:
        key = symbol.upper()
        with self._lock:
            threshold = self._thresholds.setdefault(
                key,
                RiskThreshold(confidence_threshold=self.settings.signal_confidence_threshold),
            )
            if volatility > HIGH_VOLATILITY:
                threshold.max_position_size *= 0.7
                threshold.confidence_threshold = min(0.9, threshold.confidence_threshold + 0.1)
                self._high_volatility.add(key)
            else:
                self._high_volatility.discard(key)
            if liquidity < LOW_LIQUIDITY:
                threshold.max_position_size *= 0.5
        log.info(
            "risk_thresholds_adjusted symbol=%s max_position=%.3f confidence=%.2f",
            key,
            threshold.max_position_size,
            threshold.confidence_threshold,
        )
        return threshold

    def assess(
        self, symbol: str, news: List[NewsItem], sentiment: SentimentAnalysis
    ) -> RiskAssessment:
        s = self.settings
        total = min(
            1.0,
            (1.0 - sentiment.confidence)
            + conflict_risk(news, s.bullish_keywords, s.bearish_keywords)
            + source_reliability_risk(news, self.credibility)
            + (0.3 if self.is_high_volatility(symbol) else 0.1),
        )
        size = max_position_size(total)
        threshold = self.threshold_for(symbol)
        if threshold is not None:
            size = min(size, threshold.max_position_size)
        return RiskAssessment(
            risk_score=total,
            level=RiskLevel.from_score(total),
            max_position_size=size,
            stop_loss_adjustment=stop_loss_adjustment(total),
        )
