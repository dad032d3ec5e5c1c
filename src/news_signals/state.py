"""Shared mutable state of one news service instance."""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Optional

from .cache import ResultCache
from .config import Settings, get_settings
from .events import EventRingBuffer
from .feedback.credibility import SourceCredibility
from .feedback.performance import PerformanceTracker
from .health import FeedHealthTracker
from .time_utils import Clock


@dataclass
class IngestState:
    """Everything that outlives a single ingest or signal cycle.

    Each component guards its own data; the state object only ties them
    together so one service instance owns one set of maps.
    """

    settings: Settings
    cache: ResultCache
    health: FeedHealthTracker
    credibility: SourceCredibility
    events: EventRingBuffer
    tracker: PerformanceTracker
    _tagged: "OrderedDict[str, None]" = field(default_factory=OrderedDict)
    _tag_lock: threading.Lock = field(default_factory=threading.Lock)

    @classmethod
    def create(cls, settings: Optional[Settings] = None, clock: Optional[Clock] = None) -> "IngestState":
        settings = settings or get_settings()
        credibility = SourceCredibility(settings)
        return cls(
            settings=settings,
            cache=ResultCache(ttl_minutes=settings.cache_ttl_minutes, clock=clock),
            health=FeedHealthTracker(settings, clock=clock),
            credibility=credibility,
            events=EventRingBuffer(
                capacity=settings.event_buffer_capacity,
                default_window_minutes=settings.burst_window_minutes,
                purge_horizon_minutes=settings.burst_purge_horizon_minutes,
                clock=clock,
            ),
            tracker=PerformanceTracker(credibility, clock=clock),
        )

    def first_sighting(self, content_hash: str) -> bool:
        """True the first time ``content_hash`` is offered.

        Cached feeds return the same items every cycle; this keeps each
        story from being recorded as a new event more than once. Memory is
        bounded by the event buffer capacity.
        """
        with self._tag_lock:
            if content_hash in self._tagged:
                return False
            self._tagged[content_hash] = None
            while len(self._tagged) > self.settings.event_buffer_capacity:
                self._tagged.popitem(last=False)
            return True
