from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .time_utils import minutes_between, now_utc


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


@dataclass(frozen=True)
class NewsItem:
    """One parsed headline.

    Items are immutable once a parser produces them; cached lists hand the
    same instances to every reader.
    """

    title: str
    description: str = ""
    link: str = ""
    published_at: Optional[datetime] = None
    source: str = ""

    @property
    def text(self) -> str:
        """Title and description, trimmed and lower-cased for matching."""
        return f"{self.title} {self.description}".strip().lower()

    def age_minutes(self, now: datetime) -> Optional[float]:
        if self.published_at is None:
            return None
        return minutes_between(self.published_at, now)


@dataclass
class FeedHealth:
    url: str
    ok: bool = False
    http_code: Optional[int] = None
    content_type: str = ""
    sample_bytes: int = 0
    looks_like_xml: bool = False
    latency_ms: int = 0
    last_checked: datetime = field(default_factory=now_utc)
    error: Optional[str] = None
    consecutive_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_checked"] = self.last_checked.isoformat()
        return data


@dataclass(frozen=True)
class CachedResult:
    items: Tuple[NewsItem, ...]
    captured_at: datetime

    def is_expired(self, ttl_minutes: float, now: datetime) -> bool:
        return minutes_between(self.captured_at, now) > ttl_minutes


@dataclass(frozen=True)
class MarketSentimentSnapshot:
    as_of: datetime
    score: int
    confidence: int
    bullish_hits: int = 0
    bearish_hits: int = 0
    total_items: int = 0
    successful_feeds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["as_of"] = self.as_of.isoformat()
        return data


@dataclass(frozen=True)
class NewsEvent:
    ts: datetime
    source: str
    symbol: str
    category: str
    title: str = ""
    description: str = ""


class Direction(str, Enum):
    """Signal direction"""
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def numeric(self) -> int:
        return {"BUY": 1, "SELL": -1, "HOLD": 0}[self.value]


class RiskLevel(str, Enum):
    """Discrete risk bucket for a total risk score in [0, 1]"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    EXTREME = "EXTREME"

    @classmethod
    def from_score(cls, risk: float) -> "RiskLevel":
        if risk < 0.25:
            return cls.LOW
        if risk < 0.5:
            return cls.MEDIUM
        if risk < 0.75:
            return cls.HIGH
        return cls.EXTREME


class Urgency(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SignalStage(str, Enum):
    """Per-symbol progress through one generation pass"""
    NO_NEWS = "NO_NEWS"
    SENTIMENT_SCORED = "SENTIMENT_SCORED"
    IMPACT_ASSESSED = "IMPACT_ASSESSED"
    SIGNAL_EMITTED = "SIGNAL_EMITTED"
    SUPPRESSED = "SUPPRESSED"


@dataclass(frozen=True)
class SentimentAnalysis:
    """Weighted symbol sentiment; ``score`` is in [-1, 1]."""

    symbol: str
    score: float
    confidence: float
    bullish_count: int
    bearish_count: int
    news_volume: int
    sources: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MarketImpactAssessment:
    symbol: str
    predicted_impact: float
    confidence: float
    time_horizon: timedelta
    volume_multiplier: float = 1.0
    credibility_multiplier: float = 1.0
    volatility_multiplier: float = 1.0
    sector_multiplier: float = 1.0


@dataclass(frozen=True)
class RiskAssessment:
    risk_score: float
    level: RiskLevel
    max_position_size: float
    stop_loss_adjustment: float


@dataclass
class MarketContext:
    symbol: str
    volatility_multiplier: float = 1.0
    sector_multiplier: float = 1.05


@dataclass
class RiskThreshold:
    max_position_size: float = 1.0
    confidence_threshold: float = 0.7


@dataclass(frozen=True)
class TradingSignal:
    id: str
    symbol: str
    direction: Direction
    strength: float
    confidence: float
    predicted_impact: float
    risk_level: RiskLevel
    max_position_size: float
    stop_loss_adjustment: float
    execution_window: timedelta
    urgency: Urgency
    timestamp: datetime
    sources: Tuple[str, ...] = ()
    news_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "direction": self.direction.value,
            "strength": self.strength,
            "confidence": self.confidence,
            "predicted_impact": self.predicted_impact,
            "risk_level": self.risk_level.value,
            "max_position_size": self.max_position_size,
            "stop_loss_adjustment": self.stop_loss_adjustment,
            "execution_window_seconds": int(self.execution_window.total_seconds()),
            "urgency": self.urgency.value,
            "timestamp": self.timestamp.isoformat(),
            "sources": list(self.sources),
            "news_count": self.news_count,
        }


@dataclass
class SignalPerformance:
    """Running outcome totals for one symbol."""

    symbol: str
    total: int = 0
    accurate: int = 0
    total_impact: float = 0.0
    total_time_to_impact_s: float = 0.0

    def add_outcome(
        self,
        accurate: bool,
        price_change: float,
        confidence: float,
        time_to_impact: timedelta,
    ) -> None:
        self.total += 1
        if accurate:
            self.accurate += 1
        self.total_impact += abs(price_change) * max(0.5, confidence)
        self.total_time_to_impact_s += time_to_impact.total_seconds()

    def metrics(self) -> "SignalPerformanceMetrics":
        if self.total == 0:
            return SignalPerformanceMetrics(symbol=self.symbol)
        accuracy = self.accurate / self.total
        avg_impact = self.total_impact / self.total
        profitability = clamp(accuracy * 0.7 + min(avg_impact, 0.05) * 6 * 0.3)
        return SignalPerformanceMetrics(
            symbol=self.symbol,
            total_signals=self.total,
            accuracy_rate=accuracy,
            average_price_impact=avg_impact,
            average_time_to_impact=timedelta(
                seconds=self.total_time_to_impact_s / self.total
            ),
            profitability_score=profitability,
        )


@dataclass(frozen=True)
class SignalPerformanceMetrics:
    symbol: str
    total_signals: int = 0
    accuracy_rate: float = 0.0
    average_price_impact: float = 0.0
    average_time_to_impact: timedelta = timedelta(0)
    profitability_score: float = 0.0


@dataclass(frozen=True)
class ImpactRecord:
    signal_id: str
    symbol: str
    price_change: float
    recorded_at: datetime


@dataclass
class SignalBatch:
    """Emitted signals plus the reason each other symbol was held back."""

    signals: List[TradingSignal] = field(default_factory=list)
    suppressed: Dict[str, str] = field(default_factory=dict)
    stages: Dict[str, SignalStage] = field(default_factory=dict)
