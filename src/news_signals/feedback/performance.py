"""Signal registry, outcome recording and performance metrics."""

from __future__ import annotations

import threading
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, List, Optional

from ..logging_utils import get_logger
from ..models import (
    ImpactRecord,
    SignalPerformance,
    SignalPerformanceMetrics,
    TradingSignal,
)
from ..time_utils import Clock, now_utc
from .credibility import SourceCredibility

log = get_logger("performance")

IMPACT_HISTORY_LIMIT = 5000
RETENTION = timedelta(hours=24)


def _sign(value: float) -> int:
    return (value > 0) - (value < 0)


class PerformanceTracker:
    """Keeps active signals and folds realized outcomes back into ratings.

    Active signals are indexed by symbol; outcomes are looked up by signal
    id. Per-symbol totals are created on the first outcome and never
    deleted. Aggregate metrics are derived on read.
    """

    def __init__(
        self,
        credibility: SourceCredibility,
        clock: Optional[Clock] = None,
        history_limit: int = IMPACT_HISTORY_LIMIT,
    ):
        self.credibility = credibility
        self._clock = clock or now_utc
        self._active: Dict[str, List[TradingSignal]] = {}
        self._performance: Dict[str, SignalPerformance] = {}
        self._impacts: Deque[ImpactRecord] = deque(maxlen=history_limit)
        self._lock = threading.Lock()

    # ------------------------------------------------------------ signals

    def register(self, signal: TradingSignal) -> None:
        with self._lock:
            self._active.setdefault(signal.symbol, []).append(signal)

    def find_signal(self, signal_id: str) -> Optional[TradingSignal]:
        with self._lock:
            for signals in self._active.values():
                for signal in signals:
                    if signal.id == signal_id:
                        return signal
        return None

    def active_signals(self) -> List[TradingSignal]:
        with self._lock:
            return [s for signals in self._active.values() for s in signals]

    def clear_active(self) -> int:
        with self._lock:
            n = sum(len(v) for v in self._active.values())
            self._active.clear()
        return n

    def high_confidence_symbols(self, min_confidence: float = 0.8) -> int:
        """Distinct symbols holding an active signal above ``min_confidence``."""
        return len(
            {s.symbol for s in self.active_signals() if s.confidence > min_confidence}
        )

    # ------------------------------------------------------------ outcomes

    def record_outcome(
        self,
        signal_id: str,
        actual_price_change: float,
        time_to_impact: timedelta,
    ) -> Optional[bool]:
        """Fold one realized move into the symbol totals and source ratings.

        Returns whether the signal was directionally accurate, or ``None``
        when no active signal has ``signal_id``.
        """
        signal = self.find_signal(signal_id)
        if signal is None:
            log.warning("signal_outcome_unknown id=%s", signal_id)
            return None

        accurate = _sign(actual_price_change) == signal.direction.numeric
        with self._lock:
            perf = self._performance.get(signal.symbol)
            if perf is None:
                perf = self._performance[signal.symbol] = SignalPerformance(signal.symbol)
            perf.add_outcome(accurate, actual_price_change, signal.confidence, time_to_impact)
            self._impacts.append(
                ImpactRecord(
                    signal_id=signal.id,
                    symbol=signal.symbol,
                    price_change=actual_price_change,
                    recorded_at=self._clock(),
                )
            )
        self.credibility.nudge(signal.sources, accurate)
        log.info(
            "signal_outcome symbol=%s direction=%s actual=%.4f accurate=%s confidence=%.2f",
            signal.symbol,
            signal.direction.value,
            actual_price_change,
            accurate,
            signal.confidence,
        )
        return accurate

    def metrics(self) -> Dict[str, SignalPerformanceMetrics]:
        with self._lock:
            return {sym: perf.metrics() for sym, perf in self._performance.items()}

    def impact_history(self) -> List[ImpactRecord]:
        with self._lock:
            return list(self._impacts)

    # ------------------------------------------------------------ maintenance

    def cleanup(self, retention: timedelta = RETENTION) -> Dict[str, int]:
        """Drop signals and impact records older than ``retention``."""
        cutoff = self._clock() - retention
        removed_signals = 0
        removed_impacts = 0
        with self._lock:
            for symbol in list(self._active):
                kept = [s for s in self._active[symbol] if s.timestamp >= cutoff]
                removed_signals += len(self._active[symbol]) - len(kept)
                if kept:
                    self._active[symbol] = kept
                else:
                    del self._active[symbol]
            while self._impacts and self._impacts[0].recorded_at < cutoff:
                self._impacts.popleft()
                removed_impacts += 1
        if removed_signals or removed_impacts:
            log.info(
                "expired_data_cleaned signals=%d impacts=%d",
                removed_signals,
                removed_impacts,
            )
        return {"signals": removed_signals, "impacts": removed_impacts}
