# -*- coding: utf-8 -*-
"""Exchange session detection used to gate the ingest loop.

Defaults describe the NSE/BSE cash session: Monday to Friday, 09:15 to
15:30 Asia/Kolkata.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import Dict, Literal
from zoneinfo import ZoneInfo

from .time_utils import now_utc

MarketStatus = Literal["open", "closed"]

SESSION_OPEN = time(9, 15)
SESSION_CLOSE = time(15, 30)


def is_weekend(dt: datetime, tz: str = "Asia/Kolkata") -> bool:
    """
    Check if the given instant falls on a Saturday or Sunday locally.

    Parameters
    ----------
    dt : datetime
        The datetime to check (converted to ``tz``).
    tz : str
        IANA timezone of the exchange.
    """
    return dt.astimezone(ZoneInfo(tz)).weekday() >= 5


def get_market_status(dt: datetime | None = None, tz: str = "Asia/Kolkata") -> MarketStatus:
    """
    Determine whether the cash session is open.

    Parameters
    ----------
    dt : datetime, optional
        The datetime to check. If None, uses current UTC time.
    tz : str
        IANA timezone of the exchange.

    Returns
    -------
    MarketStatus
        ``"open"`` between 09:15 and 15:30 local on weekdays, else ``"closed"``.
    """
    if dt is None:
        dt = now_utc()
    local = dt.astimezone(ZoneInfo(tz))
    if local.weekday() >= 5:
        return "closed"
    if SESSION_OPEN <= local.time() <= SESSION_CLOSE:
        return "open"
    return "closed"


def is_market_open(dt: datetime | None = None, tz: str = "Asia/Kolkata") -> bool:
    return get_market_status(dt, tz) == "open"


def get_market_info(dt: datetime | None = None, tz: str = "Asia/Kolkata") -> Dict[str, object]:
    if dt is None:
        dt = now_utc()
    return {
        "status": get_market_status(dt, tz),
        "is_weekend": is_weekend(dt, tz),
        "local_time": dt.astimezone(ZoneInfo(tz)).isoformat(),
    }
