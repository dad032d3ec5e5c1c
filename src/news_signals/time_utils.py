"""
Clock helpers shared by every time-dependent component.

Components accept an optional ``clock`` callable returning an aware UTC
datetime. Production code uses :func:`now_utc`; tests pass a fixed clock so
TTL, decay and burst-window behaviour is deterministic.

Usage:
    from news_signals.time_utils import now_utc, sleep

    current_time = now_utc()
    sleep(30)
"""

import time as _real_time
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def sleep(seconds: float) -> None:
    _real_time.sleep(seconds)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def minutes_between(earlier: datetime, later: datetime) -> float:
    return (ensure_aware(later) - ensure_aware(earlier)).total_seconds() / 60.0
