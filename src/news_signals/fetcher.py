"""HTTP retrieval of feed bodies with a single alternate-identity retry.

One normal attempt, then one attempt with a different user agent and
referer (some publishers block unknown agents on the first hit). No
exponential backoff and no jitter; feeds that keep failing are left to the
health tracker's cool-down.
"""

from __future__ import annotations

import gzip
import zlib
from typing import Dict, List, Optional

import requests

from .cache import ResultCache
from .config import Settings, get_settings
from .errors import ParseFailure, SourceUnreachable
from .extractors import SiteExtractor, find_extractor
from .health import ACCEPT, ACCEPT_LANGUAGE
from .logging_utils import get_logger
from .models import NewsItem
from .parsers import looks_like_xml, parse_html_basic, parse_rss_or_atom

log = get_logger("fetcher")

_GZIP_MAGIC = b"\x1f\x8b"


def _maybe_gunzip(body: bytes) -> bytes:
    """Decompress bodies that are still gzip framed after transport decoding."""
    if not body.startswith(_GZIP_MAGIC):
        return body
    try:
        return gzip.decompress(body)
    except (OSError, EOFError, zlib.error):
        return body


def http_get(
    url: str,
    connect_timeout_ms: int,
    read_timeout_ms: int,
    user_agent: Optional[str] = None,
    referer: Optional[str] = None,
    handle_gzip: bool = True,
) -> str:
    """GET ``url`` and return the body as text.

    Raises
    ------
    SourceUnreachable
        On connection errors, timeouts and any status other than 200.
    """
    headers: Dict[str, str] = {
        "User-Agent": user_agent or get_settings().user_agent,
        "Accept": ACCEPT,
        "Accept-Language": ACCEPT_LANGUAGE,
        "Cache-Control": "max-age=0",
        "Accept-Encoding": "gzip, deflate" if handle_gzip else "identity",
    }
    if referer:
        headers["Referer"] = referer
    try:
        resp = requests.get(
            url,
            headers=headers,
            timeout=(connect_timeout_ms / 1000.0, read_timeout_ms / 1000.0),
        )
    except requests.RequestException as exc:
        raise SourceUnreachable(
            f"{exc.__class__.__name__}: {exc}", url=url
        ) from exc
    if resp.status_code != 200:
        raise SourceUnreachable(
            f"HTTP {resp.status_code}", status=resp.status_code, url=url
        )
    body = resp.content or b""
    if handle_gzip:
        body = _maybe_gunzip(body)
    return body.decode("utf-8", errors="replace")


class FeedFetcher:
    """Read-through fetch + parse of one feed URL.

    Parameters
    ----------
    settings : Settings, optional
        Timeouts, identities and item caps. Defaults to the global settings.
    cache : ResultCache, optional
        Shared item cache; a private one is created when omitted.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[ResultCache] = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache if cache is not None else ResultCache(ttl_minutes=self.settings.cache_ttl_minutes)

    def parse_body(
        self,
        url: str,
        body: str,
        max_items: int,
        extractor: Optional[SiteExtractor] = None,
    ) -> List[NewsItem]:
        if looks_like_xml(body):
            return parse_rss_or_atom(body, url, max_items)
        if not self.settings.allow_html_scrape:
            log.debug("html_scrape_disabled url=%s", url)
            return []
        if extractor is not None:
            return extractor.parse(url, body, max_items)
        return parse_html_basic(url, body, max_items)

    def _fetch_primary(self, url: str, max_items: int) -> List[NewsItem]:
        s = self.settings
        extractor = find_extractor(url)
        factor = extractor.timeout_factor if extractor else 1.0
        body = http_get(
            url,
            int(s.connect_timeout_ms * factor),
            int(s.read_timeout_ms * factor),
            user_agent=(extractor.user_agent if extractor else None) or s.user_agent,
            referer=extractor.referer if extractor else None,
        )
        return self.parse_body(url, body, max_items, extractor)

    def _fetch_alternate(self, url: str, max_items: int) -> List[NewsItem]:
        s = self.settings
        body = http_get(
            url,
            s.connect_timeout_ms,
            s.read_timeout_ms,
            user_agent=s.alt_user_agent,
            referer=s.alt_referer,
        )
        return self.parse_body(url, body, max_items, find_extractor(url))

    def fetch_any_with_retry(self, url: str, max_items: Optional[int] = None) -> List[NewsItem]:
        """Cached items for ``url`` or a fresh fetch.

        A primary failure triggers exactly one alternate-identity attempt.
        ``SourceUnreachable`` from that attempt propagates to the caller; a
        ``ParseFailure`` degrades the source to an empty list for this cycle
        (and is not cached).
        """
        max_items = self.settings.max_items_per_feed if max_items is None else max_items
        cached = self.cache.get(url)
        if cached is not None:
            log.debug("cache_hit url=%s items=%d", url, len(cached))
            return cached

        try:
            items = self._fetch_primary(url, max_items)
        except Exception as exc:
            log.warning(
                "fetch_primary_failed url=%s err=%s retry=alternate_identity",
                url,
                exc,
            )
            try:
                items = self._fetch_alternate(url, max_items)
            except ParseFailure as parse_exc:
                log.warning("fetch_parse_failed url=%s err=%s", url, parse_exc)
                return []

        self.cache.put(url, items)
        log.info("feed_fetched url=%s items=%d", url, len(items))
        return items
