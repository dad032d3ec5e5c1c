"""TTL memoization of parsed feed items keyed by lower-cased source URL."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from .logging_utils import get_logger
from .models import CachedResult, NewsItem
from .time_utils import Clock, now_utc

log = get_logger("cache")


class ResultCache:
    """Per-URL item cache.

    Entries expire lazily: an expired entry is evicted on the lookup that
    finds it. :meth:`clear` wipes everything and is run on a schedule so
    feeds are refetched even while their TTL has not lapsed.
    """

    def __init__(self, ttl_minutes: float = 15, clock: Optional[Clock] = None):
        self.ttl_minutes = ttl_minutes
        self._clock = clock or now_utc
        self._entries: Dict[str, CachedResult] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(url: str) -> str:
        return (url or "").strip().lower()

    def get(self, url: str) -> Optional[List[NewsItem]]:
        key = self._key(url)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self.ttl_minutes, self._clock()):
                del self._entries[key]
                log.debug("cache_expired url=%s", key)
                return None
        return list(entry.items)

    def put(self, url: str, items: Sequence[NewsItem]) -> None:
        entry = CachedResult(items=tuple(items), captured_at=self._clock())
        with self._lock:
            self._entries[self._key(url)] = entry

    def clear(self) -> int:
        with self._lock:
            n = len(self._entries)
            self._entries.clear()
        log.info("cache_cleared entries=%d", n)
        return n

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self._key(url) in self._entries
