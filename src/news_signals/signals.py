"""Per-symbol trading signal generation.

Each requested symbol moves through::

    NO_NEWS -> SENTIMENT_SCORED -> IMPACT_ASSESSED -> SIGNAL_EMITTED | SUPPRESSED

Symbols are processed in parallel on a small fixed worker pool. A symbol
whose impact confidence or predicted impact is under threshold is
suppressed for the cycle; that is a normal outcome, not an error, and
never affects the other symbols of the batch.
"""

from __future__ import annotations

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from .config import Settings, get_settings
from .events import EventRingBuffer
from .feedback.performance import PerformanceTracker
from .logging_utils import get_logger
from .models import (
    Direction,
    MarketContext,
    MarketImpactAssessment,
    NewsItem,
    SentimentAnalysis,
    SignalBatch,
    SignalStage,
    TradingSignal,
    Urgency,
    clamp,
)
from .risk import RiskManager
from .sentiment import SentimentAggregator
from .time_utils import Clock, now_utc

log = get_logger("signals")

DIRECTION_THRESHOLD = 0.6
MAX_IMPACT = 0.5
DEFAULT_SECTOR_MULTIPLIER = 1.05


def volume_multiplier(news_count: int) -> float:
    return min(2.0, 1.0 + max(0, news_count - 1) * 0.1)


def impact_confidence(score: float, news_count: int) -> float:
    s = min(1.0, abs(score))
    v = min(1.0, news_count / 10.0)
    return clamp(s * 0.6 + v * 0.4)


def time_horizon(score: float, news_count: int) -> timedelta:
    if abs(score) > 0.7:
        return timedelta(minutes=30)
    if news_count >= 5:
        return timedelta(hours=2)
    return timedelta(hours=6)


def execution_window(confidence: float) -> timedelta:
    if confidence > 0.85:
        return timedelta(minutes=5)
    if confidence > 0.7:
        return timedelta(minutes=15)
    return timedelta(minutes=30)


def urgency(confidence: float, predicted_impact: float) -> Urgency:
    if confidence > 0.85 and predicted_impact > 0.05:
        return Urgency.HIGH
    if confidence > 0.7:
        return Urgency.MEDIUM
    return Urgency.LOW


def direction_and_strength(score: float, volatility_multiplier: float) -> Tuple[Direction, float]:
    if score > DIRECTION_THRESHOLD:
        return Direction.BUY, min(1.0, score * volatility_multiplier)
    if score < -DIRECTION_THRESHOLD:
        return Direction.SELL, min(1.0, abs(score) * volatility_multiplier)
    return Direction.HOLD, 0.0


class SignalGenerator:
    def __init__(
        self,
        events: EventRingBuffer,
        sentiment: SentimentAggregator,
        risk: RiskManager,
        tracker: PerformanceTracker,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or get_settings()
        self.events = events
        self.sentiment = sentiment
        self.risk = risk
        self.tracker = tracker
        self._clock = clock or now_utc
        self._contexts: Dict[str, MarketContext] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------ context

    def set_market_context(
        self,
        symbol: str,
        volatility_multiplier: float,
        sector_multiplier: float = DEFAULT_SECTOR_MULTIPLIER,
    ) -> MarketContext:
        ctx = MarketContext(
            symbol=symbol.upper(),
            volatility_multiplier=volatility_multiplier,
            sector_multiplier=sector_multiplier,
        )
        with self._lock:
            self._contexts[ctx.symbol] = ctx
        return ctx

    def market_context(self, symbol: str) -> Optional[MarketContext]:
        return self._contexts.get(symbol.upper())

    # ------------------------------------------------------------ stages

    def recent_news(self, symbol: str) -> List[NewsItem]:
        """Events for ``symbol`` inside the lookback window, as items."""
        return [
            NewsItem(
                title=e.title or e.category,
                description=e.description,
                published_at=e.ts,
                source=e.source,
            )
            for e in self.events.recent_for_symbol(
                symbol, self.settings.signal_lookback_minutes
            )
        ]

    def assess_impact(
        self, symbol: str, news: Sequence[NewsItem], sentiment: SentimentAnalysis
    ) -> MarketImpactAssessment:
        ctx = self.market_context(symbol)
        vol_mult = ctx.volatility_multiplier if ctx else 1.0
        sector_mult = ctx.sector_multiplier if ctx else DEFAULT_SECTOR_MULTIPLIER
        avg_cred = self.risk.credibility.average(item.source for item in news)
        cred_mult = clamp(avg_cred, 0.7, 1.3) if avg_cred is not None else 1.0
        volume_mult = volume_multiplier(len(news))

        predicted = abs(sentiment.score) * 0.1 * volume_mult * cred_mult * vol_mult * sector_mult
        return MarketImpactAssessment(
            symbol=symbol,
            predicted_impact=min(MAX_IMPACT, predicted),
            confidence=impact_confidence(sentiment.score, len(news)),
            time_horizon=time_horizon(sentiment.score, len(news)),
            volume_multiplier=volume_mult,
            credibility_multiplier=cred_mult,
            volatility_multiplier=vol_mult,
            sector_multiplier=sector_mult,
        )

    def build_signal(
        self,
        symbol: str,
        sentiment: SentimentAnalysis,
        impact: MarketImpactAssessment,
        news: List[NewsItem],
    ) -> TradingSignal:
        direction, strength = direction_and_strength(
            sentiment.score, impact.volatility_multiplier
        )
        risk = self.risk.assess(symbol, news, sentiment)
        return TradingSignal(
            id=str(uuid.uuid4()),
            symbol=symbol,
            direction=direction,
            strength=strength,
            confidence=impact.confidence,
            predicted_impact=impact.predicted_impact,
            risk_level=risk.level,
            max_position_size=risk.max_position_size,
            stop_loss_adjustment=risk.stop_loss_adjustment,
            execution_window=execution_window(impact.confidence),
            urgency=urgency(impact.confidence, impact.predicted_impact),
            timestamp=self._clock(),
            sources=tuple(item.source for item in news),
            news_count=len(news),
        )

    def process_symbol(self, symbol: str) -> Tuple[SignalStage, Optional[TradingSignal], str]:
        """Run one symbol through every stage.

        Returns the final stage, the signal when one was emitted, and a short
        reason when it was not.
        """
        news = self.recent_news(symbol)
        if not news:
            return SignalStage.NO_NEWS, None, "no recent news"

        sentiment = self.sentiment.analyze(symbol, news)
        log.debug(
            "signal_stage symbol=%s stage=%s score=%.3f conf=%.3f",
            symbol, SignalStage.SENTIMENT_SCORED.value, sentiment.score, sentiment.confidence,
        )
        impact = self.assess_impact(symbol, news, sentiment)
        log.debug(
            "signal_stage symbol=%s stage=%s impact=%.4f conf=%.3f",
            symbol, SignalStage.IMPACT_ASSESSED.value, impact.predicted_impact, impact.confidence,
        )

        conf_bar = self.risk.confidence_threshold(symbol)
        if impact.confidence < conf_bar:
            return (
                SignalStage.SUPPRESSED,
                None,
                f"confidence {impact.confidence:.2f} below {conf_bar:.2f}",
            )
        if impact.predicted_impact < self.settings.price_impact_threshold:
            return (
                SignalStage.SUPPRESSED,
                None,
                f"impact {impact.predicted_impact:.4f} below "
                f"{self.settings.price_impact_threshold:.4f}",
            )

        signal = self.build_signal(symbol, sentiment, impact, news)
        self.tracker.register(signal)
        return SignalStage.SIGNAL_EMITTED, signal, ""

    def generate(self, symbols: Sequence[str]) -> SignalBatch:
        batch = SignalBatch()
        unique = list(dict.fromkeys(s.strip().upper() for s in symbols if s and s.strip()))
        if not unique:
            return batch

        max_workers = max(1, self.settings.signal_workers)
        start = time.time()
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="signals") as executor:
            futures = {executor.submit(self.process_symbol, sym): sym for sym in unique}
            for future in as_completed(futures):
                sym = futures[future]
                try:
                    stage, signal, reason = future.result()
                except Exception as e:
                    log.warning("signal_symbol_failed symbol=%s err=%s", sym, e)
                    stage, signal, reason = SignalStage.SUPPRESSED, None, f"error: {e}"
                batch.stages[sym] = stage
                if signal is not None:
                    batch.signals.append(signal)
                else:
                    batch.suppressed[sym] = reason

        log.info(
            "signal_generation_complete symbols=%d emitted=%d suppressed=%d elapsed=%.2fs",
            len(unique),
            len(batch.signals),
            len(batch.suppressed),
            time.time() - start,
        )
        return batch
