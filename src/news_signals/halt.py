"""Global circuit breaker for signal generation."""

from __future__ import annotations

import threading
from typing import Optional

from .feedback.performance import PerformanceTracker
from .interfaces import TOPIC_EMERGENCY_HALT, Stream
from .logging_utils import get_logger
from .time_utils import Clock, now_utc

log = get_logger("halt")

HIGH_CONFIDENCE = 0.8


class EmergencyHalt:
    """Manual halt flag plus an automatic concentration trip.

    Generation is halted while the flag is set, or while more than
    ``max_high_confidence_symbols`` distinct symbols hold active signals
    with confidence above 0.8.
    """

    def __init__(
        self,
        tracker: PerformanceTracker,
        stream: Optional[Stream] = None,
        max_high_confidence_symbols: int = 5,
        broadcast: bool = True,
        clock: Optional[Clock] = None,
    ):
        self.tracker = tracker
        self.stream = stream
        self.max_high_confidence_symbols = max_high_confidence_symbols
        self.broadcast = broadcast
        self._clock = clock or now_utc
        self._flag = threading.Event()
        self.reason: Optional[str] = None

    @property
    def engaged(self) -> bool:
        return self._flag.is_set()

    def enable(self, reason: str) -> None:
        self._flag.set()
        self.reason = reason
        cleared = self.tracker.clear_active()
        log.warning("emergency_halt_enabled reason=%s cleared_signals=%d", reason, cleared)
        self._send({"halted": True, "reason": reason})

    def disable(self) -> None:
        self._flag.clear()
        self.reason = None
        log.info("emergency_halt_disabled")
        self._send({"halted": False})

    def should_halt(self) -> Optional[str]:
        """Reason generation must stop, or ``None`` when it may proceed."""
        if self._flag.is_set():
            return f"emergency halt: {self.reason or 'manual'}"
        concentrated = self.tracker.high_confidence_symbols(HIGH_CONFIDENCE)
        if concentrated > self.max_high_confidence_symbols:
            return f"{concentrated} symbols with high-confidence active signals"
        return None

    def _send(self, payload: dict) -> None:
        if not self.broadcast or self.stream is None:
            return
        payload["timestamp"] = self._clock().isoformat()
        try:
            self.stream.send(TOPIC_EMERGENCY_HALT, payload)
        except Exception as exc:
            log.error("halt_broadcast_failed err=%s", exc)
