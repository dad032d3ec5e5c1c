"""Per-feed health tracking and cool-down gating.

A feed whose last recorded health is not ok is skipped until
``health_ttl_minutes`` have passed since that record. There is no backoff
beyond this fixed window: the next probe or fetch attempt after the window
either clears or refreshes the unhealthy record.
"""

from __future__ import annotations

import threading
import time
from datetime import timedelta
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

import requests

from .config import Settings, get_settings
from .logging_utils import get_logger
from .models import FeedHealth
from .parsers import looks_like_xml
from .time_utils import Clock, now_utc

log = get_logger("health")

ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-IN,en;q=0.9"
PROBE_BYTES = 4096


def media_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


class FeedHealthTracker:
    """Owns the ``url -> FeedHealth`` map.

    Thread Safety:
        Updates are guarded by a lock so ``last_checked`` never moves
        backwards for a feed, even when a probe and a fetch race.
    """

    def __init__(self, settings: Optional[Settings] = None, clock: Optional[Clock] = None):
        self.settings = settings or get_settings()
        self._clock = clock or now_utc
        self._health: Dict[str, FeedHealth] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ state

    def get(self, url: str) -> Optional[FeedHealth]:
        return self._health.get(url)

    def snapshot(self) -> Dict[str, FeedHealth]:
        with self._lock:
            return {u: replace(h) for u, h in self._health.items()}

    def record(self, health: FeedHealth) -> FeedHealth:
        """Store ``health``, keeping ``last_checked`` non-decreasing."""
        with self._lock:
            prev = self._health.get(health.url)
            if prev is not None:
                if prev.last_checked > health.last_checked:
                    health.last_checked = prev.last_checked
                if not health.ok:
                    health.consecutive_failures = prev.consecutive_failures + 1
            elif not health.ok:
                health.consecutive_failures = 1
            if health.ok:
                health.consecutive_failures = 0
            self._health[health.url] = health
        return health

    def mark_healthy(self, url: str) -> FeedHealth:
        prev = self._health.get(url)
        health = replace(prev) if prev is not None else FeedHealth(url=url)
        health.ok = True
        health.error = None
        health.last_checked = self._clock()
        return self.record(health)

    def mark_unhealthy(self, url: str, exc: Optional[BaseException] = None) -> FeedHealth:
        prev = self._health.get(url)
        health = replace(prev) if prev is not None else FeedHealth(url=url)
        health.ok = False
        health.error = (str(exc) or exc.__class__.__name__) if exc is not None else "UNKNOWN"
        status = getattr(exc, "status", None)
        if status is not None:
            health.http_code = status
        health.last_checked = self._clock()
        return self.record(health)

    def is_recently_unhealthy(self, url: str) -> bool:
        health = self._health.get(url)
        if health is None or health.ok:
            return False
        age = self._clock() - health.last_checked
        return age < timedelta(minutes=self.settings.health_ttl_minutes)

    # ------------------------------------------------------------------ probes

    def _content_type_allowed(self, content_type: str) -> bool:
        allowed = [media_type(t) for t in self.settings.allowed_content_types]
        if not allowed:
            return True
        return media_type(content_type) in allowed

    def _probe_request(self, url: str) -> FeedHealth:
        s = self.settings
        timeout_s = min(s.probe_timeout_ms, s.connect_timeout_ms, s.read_timeout_ms) / 1000.0
        headers = {
            "User-Agent": s.user_agent,
            "Accept": ACCEPT,
            "Accept-Language": ACCEPT_LANGUAGE,
            "Accept-Encoding": "gzip, deflate",
            "Range": f"bytes=0-{PROBE_BYTES - 1}",
        }
        t0 = time.monotonic()
        resp = requests.get(
            url, headers=headers, timeout=(timeout_s, timeout_s), stream=True
        )
        content_type = resp.headers.get("Content-Type", "") or ""
        health = FeedHealth(
            url=url,
            http_code=resp.status_code,
            content_type=content_type,
            last_checked=self._clock(),
        )
        try:
            if resp.status_code not in (200, 206):
                health.ok = False
                health.error = f"HTTP {resp.status_code}"
                return health
            sample = next(resp.iter_content(chunk_size=PROBE_BYTES), b"") or b""
            sample = sample[:PROBE_BYTES]
        finally:
            resp.close()
            health.latency_ms = int((time.monotonic() - t0) * 1000)

        text = sample.decode("utf-8", errors="replace")
        health.sample_bytes = len(sample)
        health.looks_like_xml = looks_like_xml(text)
        html_ok = self.settings.allow_html_scrape and "<html" in text.lower()
        health.ok = (health.looks_like_xml or html_ok) and self._content_type_allowed(
            content_type
        )
        if not health.ok:
            health.error = f"unusable content type={media_type(content_type) or 'none'}"
        return health

    def probe(self, url: str) -> FeedHealth:
        """Issue a range-limited GET and record the result. Never raises."""
        try:
            health = self._probe_request(url)
        except Exception as exc:  # requests errors and anything below them
            health = FeedHealth(
                url=url, ok=False, error=str(exc) or exc.__class__.__name__,
                last_checked=self._clock(),
            )
        self.record(health)
        log.info(
            "feed_probe url=%s ok=%s code=%s type=%s xml=%s bytes=%d latency_ms=%d err=%s",
            url,
            health.ok,
            health.http_code,
            media_type(health.content_type),
            health.looks_like_xml,
            health.sample_bytes,
            health.latency_ms,
            health.error,
        )
        return health

    def preflight(self, urls: Iterable[str]) -> List[FeedHealth]:
        return [self.probe(u) for u in urls]
