"""Regex extractors for sites whose markup the generic scraper handles badly.

Each extractor works on an already fetched body and falls back to
:func:`news_signals.parsers.parse_html_basic` when its pattern matches
nothing (layout changes are common on these sites).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from .logging_utils import get_logger
from .models import NewsItem
from .parsers import clean_html_content, parse_html_basic, source_label

log = get_logger("extractors")

SEBI_BASE = "https://www.sebi.gov.in"
MONEYCONTROL_BASE = "https://www.moneycontrol.com"
YAHOO_BASE = "https://sg.finance.yahoo.com"

_SEBI_ROW_RE = re.compile(
    r"<div[^>]*class=['\"]news-list['\"][^>]*>\s*"
    r"<div[^>]*class=['\"]date['\"][^>]*>(.*?)</div>\s*"
    r"<div[^>]*class=['\"]title['\"][^>]*>(.*?)</div>\s*"
    r"<div[^>]*class=['\"]desc['\"][^>]*>(.*?)</div>",
    re.IGNORECASE | re.DOTALL,
)
_PDF_HREF_RE = re.compile(r"href=['\"]([^'\"]+\.pdf)['\"]", re.IGNORECASE)

_MONEYCONTROL_CARD_RE = re.compile(
    r"<a[^>]*href=['\"]([^'\"]+)['\"][^>]*>\s*"
    r"(?:<h3[^>]*>(.*?)</h3>"
    r"|<[^>]*class=['\"][^'\"]*headline[^'\"]*['\"][^>]*>([^<]+))",
    re.IGNORECASE | re.DOTALL,
)

_YAHOO_ITEM_RE = re.compile(
    r"<li[^>]*class=['\"][^'\"]*Ov\([^'\"]*\)[^'\"]*['\"][^>]*>"
    r".*?<a[^>]*href=['\"]([^'\"]+)['\"][^>]*>(.*?)</a>",
    re.IGNORECASE | re.DOTALL,
)


def _absolute(link: str, base: str) -> str:
    link = (link or "").strip()
    if link.startswith("http"):
        return link
    return base + (link if link.startswith("/") else "/" + link)


def extract_sebi(url: str, body: str, max_items: int) -> List[NewsItem]:
    label = source_label(url)
    items: List[NewsItem] = []
    for match in _SEBI_ROW_RE.finditer(body):
        if len(items) >= max_items:
            break
        date_text = clean_html_content(match.group(1))
        title = clean_html_content(match.group(2))
        if not title:
            continue
        pdf = _PDF_HREF_RE.search(match.group(2))
        link = _absolute(pdf.group(1), SEBI_BASE) if pdf else url
        items.append(
            NewsItem(
                title=title,
                description=f"SEBI Notification: {date_text}",
                link=link,
                source=label,
            )
        )
    return items


def extract_moneycontrol(url: str, body: str, max_items: int) -> List[NewsItem]:
    label = source_label(url)
    items: List[NewsItem] = []
    for match in _MONEYCONTROL_CARD_RE.finditer(body):
        if len(items) >= max_items:
            break
        title = clean_html_content(match.group(2) or match.group(3))
        if not title:
            continue
        items.append(
            NewsItem(
                title=title,
                link=_absolute(match.group(1), MONEYCONTROL_BASE),
                source=label,
            )
        )
    return items


def extract_yahoo(url: str, body: str, max_items: int) -> List[NewsItem]:
    label = source_label(url)
    items: List[NewsItem] = []
    for match in _YAHOO_ITEM_RE.finditer(body):
        if len(items) >= max_items:
            break
        title = clean_html_content(match.group(2))
        if not title:
            continue
        items.append(
            NewsItem(
                title=title,
                link=_absolute(match.group(1), YAHOO_BASE),
                source=label,
            )
        )
    return items


@dataclass(frozen=True)
class SiteExtractor:
    """How to fetch and parse one site.

    ``timeout_factor`` scales the configured connect/read timeouts;
    ``user_agent``/``referer`` override the primary identity when set.
    """

    name: str
    host_marker: str
    extract: Callable[[str, str, int], List[NewsItem]]
    timeout_factor: float = 1.0
    user_agent: Optional[str] = None
    referer: Optional[str] = None

    def parse(self, url: str, body: str, max_items: int) -> List[NewsItem]:
        items = self.extract(url, body, max_items)
        if not items:
            log.debug("extractor_fallback name=%s url=%s", self.name, url)
            items = parse_html_basic(url, body, max_items)
        return items


EXTRACTORS = (
    SiteExtractor(name="sebi", host_marker="sebi.gov.in", extract=extract_sebi),
    SiteExtractor(
        name="moneycontrol",
        host_marker="moneycontrol.com",
        extract=extract_moneycontrol,
        timeout_factor=2.0,
        referer="https://www.google.com/",
    ),
    SiteExtractor(
        name="yahoo",
        host_marker="yahoo.com",
        extract=extract_yahoo,
        referer="https://www.google.com/",
    ),
)


def find_extractor(url: str) -> Optional[SiteExtractor]:
    lowered = (url or "").lower()
    for extractor in EXTRACTORS:
        if extractor.host_marker in lowered:
            return extractor
    return None
