"""Bounded in-memory log of ingestion events.

Events are kept ordered by timestamp, so a feed that lists its newest
story first still lands in time order, and the oldest are evicted once the
buffer reaches capacity. Burst queries walk the buffer newest-first and stop
at the first entry outside the window, so their cost scales with the window
size rather than the buffer size.

Usage:
    buf = EventRingBuffer(capacity=2000)
    buf.record_event("moneycontrol", "RELIANCE", "earnings")
    burst = buf.get_recent_burst_count(10)
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Deque, List, Optional

from .logging_utils import get_logger
from .models import NewsEvent
from .time_utils import Clock, ensure_aware, now_utc

log = get_logger("events")


class EventRingBuffer:
    """Time-ordered ring buffer of :class:`NewsEvent` entries."""

    def __init__(
        self,
        capacity: int = 2000,
        default_window_minutes: float = 10,
        purge_horizon_minutes: float = 180,
        clock: Optional[Clock] = None,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.default_window_minutes = default_window_minutes
        self.purge_horizon = timedelta(minutes=purge_horizon_minutes)
        self._clock = clock or now_utc
        self._events: Deque[NewsEvent] = deque()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._events)

    def record_event(
        self,
        source: str,
        symbol: str,
        category: str,
        published_at: Optional[datetime] = None,
        title: str = "",
        description: str = "",
    ) -> NewsEvent:
        """Insert one event in timestamp order, evicting from the head past
        capacity.

        ``published_at`` becomes the event timestamp when given; otherwise the
        current time is used.
        """
        ts = ensure_aware(published_at) or self._clock()
        event = NewsEvent(
            ts=ts,
            source=source or "",
            symbol=(symbol or "").upper(),
            category=category or "",
            title=title or "",
            description=description or "",
        )
        with self._lock:
            # usually the newest, so search from the tail
            idx = len(self._events)
            while idx > 0 and self._events[idx - 1].ts > ts:
                idx -= 1
            self._events.insert(idx, event)
            while len(self._events) > self.capacity:
                self._events.popleft()
        return event

    def _purge(self, now: datetime, window: timedelta) -> None:
        horizon = max(window, self.purge_horizon)
        while self._events and now - self._events[0].ts > horizon:
            self._events.popleft()

    def get_recent_burst_count(self, minutes: Optional[float] = None) -> int:
        """Count events strictly younger than ``minutes``.

        Non-positive or missing ``minutes`` falls back to the default window.
        Entries older than the larger of the window and the purge horizon are
        dropped first.
        """
        win = minutes if minutes and minutes > 0 else max(1, self.default_window_minutes)
        window = timedelta(minutes=win)
        now = self._clock()
        count = 0
        with self._lock:
            self._purge(now, window)
            for event in reversed(self._events):
                if now - event.ts < window:
                    count += 1
                else:
                    break
        return count

    def recent_for_symbol(self, symbol: str, minutes: float) -> List[NewsEvent]:
        """Events newer than ``minutes`` whose symbol matches, or whose
        category mentions the symbol (case-insensitive)."""
        sym = (symbol or "").strip().lower()
        if not sym:
            return []
        cutoff = self._clock() - timedelta(minutes=minutes)
        with self._lock:
            snapshot = list(self._events)
        return [
            e
            for e in snapshot
            if e.ts > cutoff
            and (e.symbol.lower() == sym or sym in e.category.lower())
        ]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
