"""News ingestion and signal orchestration.

:class:`NewsService` is the only place that decides what is fatal. Feed
errors, parse errors, de-duplication backend errors and broadcast errors are
logged and absorbed; only a failure to persist the sentiment snapshot turns
an ingest cycle into a failed :class:`~news_signals.result.Result`.

Usage:
    service = NewsService()
    service.preflight_validate_feeds()
    result = service.ingest_and_update_sentiment()
    if result.ok:
        print(result.value.score, result.value.confidence)
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .config import Settings, get_settings
from .dedup import Deduplicator
from .errors import PersistenceFailure
from .fetcher import FeedFetcher
from .halt import EmergencyHalt
from .interfaces import (
    TOPIC_NEWS_UPDATE,
    TOPIC_SENTIMENT_UPDATE,
    TOPIC_TRADING_SIGNALS,
    DocStore,
    Embedder,
    InMemorySnapshotRepo,
    SnapshotRepo,
    Stream,
)
from .logging_utils import get_logger
from .models import (
    FeedHealth,
    MarketContext,
    MarketSentimentSnapshot,
    NewsEvent,
    NewsItem,
    RiskThreshold,
    SignalBatch,
    SignalPerformanceMetrics,
)
from .result import Result
from .risk import RiskManager
from .sentiment import MarketTally, SentimentAggregator
from .signals import SignalGenerator
from .state import IngestState
from .time_utils import Clock, now_utc

log = get_logger("service")

CATEGORY_KEYWORDS = (
    ("earnings", ("earnings", "results", "quarterly", "profit")),
    ("mna", ("merger", "acquisition", "acquire", "takeover")),
    ("regulatory", ("regulator", "policy", "sebi", "rbi")),
)


def classify_category(text: str) -> str:
    lowered = (text or "").lower()
    for category, keywords in CATEGORY_KEYWORDS:
        if any(k in lowered for k in keywords):
            return category
    return "general"


def headline_key(item: NewsItem) -> str:
    link = (item.link or "").strip().lower()
    if link:
        return link
    return f"{item.source}::{item.title.strip().lower()}"


class NewsService:
    """Owns one :class:`IngestState` and every pipeline component.

    Parameters
    ----------
    repo : SnapshotRepo, optional
        Snapshot persistence; an in-memory repository when omitted.
    stream : Stream, optional
        Broadcast channel. Without one nothing is broadcast.
    embedder, doc_store : optional
        Enable embedding and storage de-duplication when present.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        repo: Optional[SnapshotRepo] = None,
        stream: Optional[Stream] = None,
        embedder: Optional[Embedder] = None,
        doc_store: Optional[DocStore] = None,
        state: Optional[IngestState] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock or now_utc
        self.state = state or IngestState.create(self.settings, clock=clock)
        self.repo = repo if repo is not None else InMemorySnapshotRepo()
        self.stream = stream

        self.fetcher = FeedFetcher(self.settings, cache=self.state.cache)
        self.dedup = Deduplicator(doc_store, embedder, self.settings, clock=clock)
        self.sentiment = SentimentAggregator(self.state.credibility, self.settings, clock=clock)
        self.risk = RiskManager(self.state.credibility, self.settings)
        self.signals = SignalGenerator(
            self.state.events,
            self.sentiment,
            self.risk,
            self.state.tracker,
            self.settings,
            clock=clock,
        )
        self.halt = EmergencyHalt(
            self.state.tracker,
            stream=stream,
            max_high_confidence_symbols=self.settings.max_high_confidence_symbols,
            broadcast=self.settings.broadcast_enabled,
            clock=clock,
        )

    # ------------------------------------------------------------------ helpers

    def _broadcast(self, topic: str, payload: Dict[str, Any]) -> None:
        if not self.settings.broadcast_enabled or self.stream is None:
            return
        try:
            self.stream.send(topic, payload)
        except Exception as exc:
            log.error("broadcast_failed topic=%s err=%s", topic, exc)

    def _record_item_events(self, item: NewsItem, content_hash: str) -> int:
        """Record a first-seen item in the event buffer, once per mentioned
        symbol (or once untagged when it mentions none)."""
        if not self.state.first_sighting(content_hash):
            return 0
        text = item.text
        category = classify_category(text)
        symbols = [s.upper() for s in self.settings.symbols if s and s.lower() in text]
        for symbol in symbols or [""]:
            self.state.events.record_event(
                item.source,
                symbol,
                category,
                published_at=item.published_at,
                title=item.title,
                description=item.description,
            )
        return len(symbols)

    # ------------------------------------------------------------------ feeds

    def preflight_validate_feeds(self) -> Result[List[FeedHealth]]:
        results = self.state.health.preflight(self.settings.feed_urls)
        healthy = sum(1 for h in results if h.ok)
        log.info("feed_preflight feeds=%d healthy=%d", len(results), healthy)
        return Result.success(results)

    def get_feed_health(self) -> Dict[str, FeedHealth]:
        return self.state.health.snapshot()

    def read_all_configured(self) -> Result[List[NewsItem]]:
        """Fetch every healthy feed and return de-duplicated headlines."""
        s = self.settings
        health = self.state.health
        by_key: Dict[str, NewsItem] = {}
        errors = 0
        skipped = 0
        sources = 0
        for url in s.feed_urls:
            if len(by_key) >= s.max_total_items:
                break
            if health.is_recently_unhealthy(url):
                skipped += 1
                continue
            try:
                items = self.fetcher.fetch_any_with_retry(url, s.max_items_per_feed)
            except Exception as exc:
                errors += 1
                health.mark_unhealthy(url, exc)
                log.warning("news_fetch_failed url=%s err=%s", url, exc)
                continue
            health.mark_healthy(url)
            if items:
                sources += 1
            for item in items:
                by_key.setdefault(headline_key(item), item)
                if len(by_key) >= s.max_total_items:
                    break

        out = list(by_key.values())
        self._broadcast(
            TOPIC_NEWS_UPDATE,
            {
                "count": len(out),
                "sources": sources,
                "errors": errors,
                "skipped_unhealthy": skipped,
                "timestamp": self._clock().isoformat(),
            },
        )
        log.info(
            "news_read items=%d sources=%d errors=%d skipped_unhealthy=%d",
            len(out),
            sources,
            errors,
            skipped,
        )
        if not out:
            return Result.fail("NO_NEWS_ITEMS", "no headlines from any configured feed")
        return Result.success(out)

    def ingest_and_update_sentiment(self) -> Result[MarketSentimentSnapshot]:
        """Run one ingest cycle and persist the market sentiment snapshot.

        Every fetched item counts toward the tally, duplicates included;
        de-duplication only decides what is stored.
        """
        s = self.settings
        health = self.state.health
        tally = MarketTally()
        skipped = 0
        stored = 0
        tagged = 0
        for url in s.feed_urls:
            if health.is_recently_unhealthy(url):
                skipped += 1
                log.debug("feed_skipped_unhealthy url=%s", url)
                continue
            try:
                items = self.fetcher.fetch_any_with_retry(url, s.max_items_per_feed)
            except Exception as exc:
                health.mark_unhealthy(url, exc)
                log.warning("feed_fetch_failed url=%s err=%s", url, exc)
                continue
            health.mark_healthy(url)
            tally.add_feed(items, s.bullish_keywords, s.bearish_keywords)
            for item in items:
                outcome = self.dedup.process(item)
                if outcome.stored:
                    stored += 1
                tagged += self._record_item_events(item, outcome.content_hash)

        snapshot = tally.snapshot(self._clock(), s.min_items_high_confidence)
        try:
            saved = self.repo.save(snapshot)
        except Exception as exc:
            err = PersistenceFailure(f"snapshot save failed: {exc}")
            log.error("news_ingest_failed err=%s", err)
            return Result.fail("NEWS_INGEST_FAILED", str(err))

        self._broadcast(TOPIC_SENTIMENT_UPDATE, saved.to_dict())
        log.info(
            "news_ingest_complete score=%d confidence=%d items=%d feeds=%d "
            "skipped_unhealthy=%d stored=%d tagged=%d",
            saved.score,
            saved.confidence,
            tally.total,
            tally.successful_feeds,
            skipped,
            stored,
            tagged,
        )
        return Result.success(saved)

    def get_latest_sentiment(self) -> Result[MarketSentimentSnapshot]:
        try:
            latest = self.repo.find_latest()
        except Exception as exc:
            log.error("sentiment_lookup_failed err=%s", exc)
            return Result.fail("SENTIMENT_LOOKUP_FAILED", str(exc))
        if latest is None:
            return Result.fail("NO_SENTIMENT_SNAPSHOT", "no snapshot persisted yet")
        return Result.success(latest)

    def clear_cache(self) -> int:
        return self.state.cache.clear()

    # ------------------------------------------------------------------ events

    def record_news_event(
        self,
        source: str,
        symbol: str,
        category: str,
        published_at: Optional[datetime] = None,
        title: str = "",
        description: str = "",
    ) -> NewsEvent:
        return self.state.events.record_event(
            source, symbol, category, published_at, title=title, description=description
        )

    def get_recent_burst_count(self, minutes: Optional[float] = None) -> int:
        return self.state.events.get_recent_burst_count(minutes)

    # ------------------------------------------------------------------ signals

    def generate_trading_signals(
        self, symbols: Optional[Sequence[str]] = None
    ) -> Result[SignalBatch]:
        if not self.settings.feature_trading_signals:
            return Result.fail("TRADING_SIGNALS_DISABLED", "trading signals are disabled")
        symbols = list(symbols) if symbols is not None else list(self.settings.symbols)
        if not symbols:
            return Result.fail("NO_SYMBOLS", "no symbols requested")
        reason = self.halt.should_halt()
        if reason:
            log.warning("signal_generation_halted reason=%s", reason)
            return Result.suppress("NEWS_TRADING_HALTED", reason)

        try:
            batch = self.signals.generate(symbols)
        except Exception as exc:
            log.error("signal_generation_failed err=%s", exc, exc_info=True)
            return Result.fail("SIGNAL_GENERATION_FAILED", str(exc))

        if batch.signals:
            self._broadcast(
                TOPIC_TRADING_SIGNALS,
                {
                    "signals": [sig.to_dict() for sig in batch.signals],
                    "count": len(batch.signals),
                    "timestamp": self._clock().isoformat(),
                },
            )
        return Result.success(batch)

    def set_market_context(
        self, symbol: str, volatility_multiplier: float, sector_multiplier: float = 1.05
    ) -> MarketContext:
        return self.signals.set_market_context(symbol, volatility_multiplier, sector_multiplier)

    def update_symbol_sentiment_weights(self, weights: Mapping[str, float]) -> int:
        return self.sentiment.update_symbol_weights(weights)

    def adjust_risk_thresholds(
        self, symbol: str, volatility: float, liquidity: float
    ) -> RiskThreshold:
        return self.risk.adjust_risk_thresholds(symbol, volatility, liquidity)

    # ------------------------------------------------------------------ feedback

    def record_signal_outcome(
        self, signal_id: str, actual_price_change: float, time_to_impact: timedelta
    ) -> Result[bool]:
        accurate = self.state.tracker.record_outcome(
            signal_id, actual_price_change, time_to_impact
        )
        if accurate is None:
            return Result.fail("SIGNAL_NOT_FOUND", f"no active signal {signal_id}")
        return Result.success(accurate)

    def get_signal_performance_metrics(self) -> Result[Dict[str, SignalPerformanceMetrics]]:
        return Result.success(self.state.tracker.metrics())

    def cleanup_expired_data(self) -> Dict[str, int]:
        return self.state.tracker.cleanup()

    # ------------------------------------------------------------------ halt

    def enable_emergency_halt(self, reason: str) -> None:
        self.halt.enable(reason)

    def disable_emergency_halt(self) -> None:
        self.halt.disable()

    @property
    def halted(self) -> bool:
        return self.halt.should_halt() is not None
