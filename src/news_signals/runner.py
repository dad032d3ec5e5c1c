# -*- coding: utf-8 -*-
"""News Signals runner."""

from __future__ import annotations

# stdlib
import argparse
import os
import signal
import sys
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from dotenv import load_dotenv

# Load .env early so config is available to subsequent imports.
# If DOTENV_FILE is set, load that; otherwise default to .env
_env_file = os.getenv("DOTENV_FILE")
if _env_file:
    load_dotenv(_env_file)
else:
    load_dotenv()

from news_signals.config import Settings, get_settings  # noqa: E402
from news_signals.interfaces import (  # noqa: E402
    InMemoryDocStore,
    InMemorySnapshotRepo,
    LoggingStream,
)
from news_signals.logging_utils import get_logger, setup_logging  # noqa: E402
from news_signals.market_hours import is_market_open  # noqa: E402
from news_signals.service import NewsService  # noqa: E402
from news_signals import time_utils  # noqa: E402

log = get_logger("runner")

STOP = False


def _sig_handler(signum, frame):
    """Graceful shutdown handler for SIGINT/SIGTERM signals."""
    global STOP
    sig_name = signal.Signals(signum).name
    print(
        f"\n[SHUTDOWN] Received {sig_name}, initiating graceful shutdown...",
        file=sys.stderr,
    )
    STOP = True
    log.warning("shutdown_signal_received signal=%s", sig_name)


@dataclass
class PeriodicJob:
    """Runs ``fn`` at most once per ``interval``; the first check is due."""

    name: str
    interval: timedelta
    fn: Callable[[], object]
    last_run: Optional[datetime] = None

    def due(self, now: datetime) -> bool:
        return self.last_run is None or now - self.last_run >= self.interval

    def run_if_due(self, now: datetime) -> bool:
        if not self.due(now):
            return False
        self.last_run = now
        try:
            self.fn()
        except Exception as e:
            log.error("job_failed name=%s err=%s", self.name, e, exc_info=True)
        return True


def build_service(settings: Optional[Settings] = None) -> NewsService:
    settings = settings or get_settings()
    return NewsService(
        settings=settings,
        repo=InMemorySnapshotRepo(),
        stream=LoggingStream(),
        doc_store=InMemoryDocStore(),
    )


def run_cycle(service: NewsService) -> bool:
    """One ingest cycle followed by signal generation when enabled."""
    result = service.ingest_and_update_sentiment()
    if not result.ok:
        log.error("ingest_cycle_failed code=%s err=%s", result.code, result.error)
        return False
    if service.settings.feature_trading_signals and service.settings.symbols:
        signals = service.generate_trading_signals()
        if signals.ok:
            log.info(
                "signals_cycle emitted=%d suppressed=%d",
                len(signals.value.signals),
                len(signals.value.suppressed),
            )
        else:
            log.info("signals_cycle status=%s code=%s", signals.status, signals.code)
    return True


def build_jobs(service: NewsService) -> List[PeriodicJob]:
    s = service.settings

    def ingest() -> None:
        if s.market_hours_only and not is_market_open(tz=s.market_timezone):
            log.debug("ingest_skipped reason=market_closed")
            return
        run_cycle(service)

    return [
        PeriodicJob("preflight", timedelta(minutes=s.health_check_minutes), service.preflight_validate_feeds),
        PeriodicJob("ingest", timedelta(seconds=s.refresh_seconds), ingest),
        PeriodicJob("cleanup", timedelta(minutes=s.cleanup_minutes), service.cleanup_expired_data),
        # first clear is one interval after startup
        PeriodicJob(
            "cache_clear",
            timedelta(hours=s.cache_clear_hours),
            service.clear_cache,
            last_run=time_utils.now_utc(),
        ),
    ]


def runner_main(
    once: bool = False,
    loop: bool = False,
    sleep_s: float | None = None,
    service: Optional[NewsService] = None,
) -> int:
    settings = service.settings if service is not None else get_settings()
    setup_logging(settings.log_level, settings=settings)
    service = service or build_service(settings)
    log.info(
        "boot_start feeds=%d symbols=%d signals=%s",
        len(settings.feed_urls),
        len(settings.symbols),
        settings.feature_trading_signals,
    )

    if once or not loop:
        service.preflight_validate_feeds()
        ok = run_cycle(service)
        service.cleanup_expired_data()
        log.info("boot_end ok=%s", ok)
        return 0 if ok else 1

    try:
        signal.signal(signal.SIGINT, _sig_handler)
        signal.signal(signal.SIGTERM, _sig_handler)
    except ValueError:
        pass  # not in the main thread

    jobs = build_jobs(service)
    tick = sleep_s if sleep_s is not None else 1.0
    while not STOP:
        now = time_utils.now_utc()
        for job in jobs:
            job.run_if_due(now)
        # sleep between ticks, but wake early if STOP flips
        end = time.time() + tick
        while time.time() < end:
            if STOP:
                break
            time_utils.sleep(min(0.2, tick))

    log.info("boot_end")
    return 0


def main(
    *,
    once: bool = False,
    loop: bool = False,
    sleep: float | None = None,
    argv: List[str] | None = None,
) -> int:
    """
    Entry point for the news runner.

    Supports programmatic invocation via keyword args (``once``, ``loop``,
    ``sleep``) or command-line invocation via ``argv``.
    """
    if once or loop or sleep is not None:
        return runner_main(once=once, loop=loop, sleep_s=sleep)
    ap = argparse.ArgumentParser(prog="news-signals")
    ap.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    ap.add_argument("--loop", action="store_true", help="Run continuously")
    ap.add_argument(
        "--sleep",
        type=float,
        default=None,
        help="Seconds between scheduler ticks when looping (default: 1)",
    )
    args = ap.parse_args(argv)
    return runner_main(once=args.once, loop=args.loop, sleep_s=args.sleep)


if __name__ == "__main__":
    sys.exit(main())
