"""Convert raw feed bodies into :class:`NewsItem` lists.

Two generic parsers are provided:

* :func:`parse_rss_or_atom` for RSS 2.0 / Atom / RDF documents (via
  ``feedparser``), and
* :func:`parse_html_basic`, a heuristic scraper for plain HTML pages that
  pulls the Open-Graph headline, length-filtered headings and anchor texts.

Site-specific extractors live in :mod:`news_signals.extractors` and fall
back to :func:`parse_html_basic`.
"""

from __future__ import annotations

import email.utils
import html
import re
from datetime import datetime
from typing import List, Optional, Set
from urllib.parse import urljoin, urlparse

import feedparser  # type: ignore
from bs4 import BeautifulSoup
from dateutil import parser as dtparse

from .errors import ParseFailure
from .logging_utils import get_logger
from .models import NewsItem
from .time_utils import ensure_aware

log = get_logger("parsers")

_XML_PREFIXES = ("<?xml", "<rss", "<feed", "<rdf")
_WS_RE = re.compile(r"\s+")

MIN_TEXT_LEN = 20
MAX_TEXT_LEN = 150
MAX_ANCHORS = 8000


def looks_like_xml(text: Optional[str]) -> bool:
    """Prefix sniffing: ``True`` for documents starting like a feed."""
    if not text:
        return False
    head = text.lstrip("\ufeff \t\r\n")[:64].lower()
    return head.startswith(_XML_PREFIXES)


def normalize_text(text: Optional[str]) -> str:
    return _WS_RE.sub(" ", (text or "")).strip().lower()


def source_label(url: str) -> str:
    """Host of ``url`` without a leading ``www.``; used as the credibility key.

    >>> source_label("https://www.moneycontrol.com/rss/marketreports.xml")
    'moneycontrol.com'
    """
    if not url:
        return ""
    raw = url.strip().lower()
    if not raw.startswith(("http://", "https://")):
        raw = f"https://{raw}"
    host = urlparse(raw).hostname or ""
    return host[4:] if host.startswith("www.") else host


def clean_html_content(text: Optional[str]) -> str:
    """
    Decode entities, strip tags and collapse whitespace.

    Parameters
    ----------
    text : str
        Raw text that may contain HTML entities and tags.

    Returns
    -------
    str
        Plain single-line text; empty string for ``None``/empty input.

    Examples
    --------
    >>> clean_html_content("Nifty &amp; Sensex <b>rally</b>")
    'Nifty & Sensex rally'
    """
    if not text:
        return ""
    decoded = html.unescape(text)
    if "<" in decoded:
        decoded = BeautifulSoup(decoded, "html.parser").get_text(separator=" ")
    return _WS_RE.sub(" ", decoded).strip()


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """RFC-1123 first, then ISO-8601; anything unparseable becomes ``None``."""
    if not raw:
        return None
    raw = raw.strip()
    try:
        return ensure_aware(email.utils.parsedate_to_datetime(raw))
    except (TypeError, ValueError, IndexError):
        pass
    try:
        return ensure_aware(dtparse.isoparse(raw))
    except (TypeError, ValueError, OverflowError):
        return None


def _entry_description(entry) -> str:
    desc = entry.get("summary") or entry.get("description") or ""
    if not desc:
        content = entry.get("content") or []
        if content:
            desc = content[0].get("value", "") or ""
    return desc


def _entry_timestamp(entry) -> Optional[datetime]:
    for key in ("published", "pubDate", "updated", "dc_date"):
        ts = parse_timestamp(entry.get(key))
        if ts is not None:
            return ts
    return None


def parse_rss_or_atom(xml: str, source_url: str, max_items: int) -> List[NewsItem]:
    """Parse an RSS or Atom document.

    RSS ``<item>`` elements map title/description/link/pubDate; Atom
    ``<entry>`` elements map title/summary (or content)/link href/published
    (or updated). Entries without a title are skipped.

    Raises
    ------
    ParseFailure
        When the document is malformed and no entries could be recovered.
    """
    parsed = feedparser.parse(xml)
    entries = getattr(parsed, "entries", []) or []
    if not entries and getattr(parsed, "bozo", False):
        exc = getattr(parsed, "bozo_exception", None)
        raise ParseFailure(f"unparseable feed {source_url}: {exc}")

    label = source_label(source_url)
    items: List[NewsItem] = []
    for entry in entries:
        if len(items) >= max_items:
            break
        title = clean_html_content(entry.get("title"))
        if not title:
            continue
        link = (entry.get("link") or "").strip()
        items.append(
            NewsItem(
                title=title,
                description=clean_html_content(_entry_description(entry)),
                link=urljoin(source_url, link) if link else "",
                published_at=_entry_timestamp(entry),
                source=label,
            )
        )
    log.debug("rss_parsed url=%s entries=%d kept=%d", source_url, len(entries), len(items))
    return items


def _meta_content(soup: BeautifulSoup, **attrs) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return clean_html_content(tag.get("content") or "")


def _usable_href(href: Optional[str]) -> bool:
    if not href:
        return False
    h = href.strip().lower()
    return not (h.startswith("javascript:") or h == "#" or h.startswith("mailto:"))


def parse_html_basic(page_url: str, html_text: str, max_items: int) -> List[NewsItem]:
    """Heuristic headline scraper for HTML pages.

    Order of extraction:

    1. Open-Graph title (or ``<title>``) with og/meta description as item 0.
    2. ``h1``-``h3`` headings whose text is 20-150 chars, paired with the
       nearest anchor (inside, around, or following the heading).
    3. Anchor texts of 20-150 chars, skipping ``javascript:`` links.

    Texts are de-duplicated by their normalized form and relative hrefs are
    resolved against ``page_url``.
    """
    if max_items <= 0 or not html_text:
        return []
    soup = BeautifulSoup(html_text, "html.parser")
    label = source_label(page_url)
    items: List[NewsItem] = []
    seen: Set[str] = set()

    def add(title: str, link: str, description: str = "") -> None:
        key = normalize_text(title)
        if not key or key in seen:
            return
        seen.add(key)
        items.append(
            NewsItem(
                title=title,
                description=description,
                link=urljoin(page_url, link) if link else page_url,
                source=label,
            )
        )

    og_title = _meta_content(soup, property="og:title")
    if not og_title and soup.title is not None:
        og_title = clean_html_content(soup.title.get_text())
    if og_title:
        og_desc = _meta_content(soup, property="og:description") or _meta_content(
            soup, name="description"
        )
        add(og_title, page_url, og_desc)

    for heading in soup.find_all(["h1", "h2", "h3"]):
        if len(items) >= max_items:
            return items[:max_items]
        text = clean_html_content(heading.get_text(" "))
        if not (MIN_TEXT_LEN < len(text) < MAX_TEXT_LEN):
            continue
        anchor = (
            heading.find("a", href=True)
            or heading.find_parent("a", href=True)
            or heading.find_next("a", href=True)
        )
        href = anchor.get("href") if anchor is not None else ""
        add(text, href if _usable_href(href) else "")

    for anchor in soup.find_all("a", href=True, limit=MAX_ANCHORS):
        if len(items) >= max_items:
            break
        href = anchor.get("href")
        if not _usable_href(href):
            continue
        text = clean_html_content(anchor.get_text(" "))
        if not (MIN_TEXT_LEN <= len(text) <= MAX_TEXT_LEN):
            continue
        add(text, href)

    return items[:max_items]
