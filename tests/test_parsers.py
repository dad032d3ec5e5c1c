"""Tests for feed and HTML parsing helpers."""

from datetime import datetime, timezone

import pytest

from news_signals.errors import ParseFailure
from news_signals.parsers import (
    clean_html_content,
    looks_like_xml,
    parse_html_basic,
    parse_rss_or_atom,
    parse_timestamp,
    source_label,
)
from tests.conftest import RSS_SAMPLE

ATOM_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Wire</title>
  <entry>
    <title>RBI holds repo rate, stance upbeat</title>
    <summary>Policy unchanged for sixth meeting</summary>
    <link href="https://www.reuters.com/markets/rbi-policy"/>
    <updated>2024-03-04T05:45:00Z</updated>
  </entry>
</feed>
"""

HTML_SAMPLE = """
<html>
<head>
  <title>Fallback page title that is long enough</title>
  <meta property="og:title" content="Markets live: Nifty &amp; Sensex open higher">
  <meta property="og:description" content="Live coverage">
</head>
<body>
  <h2><a href="/news/banks-rally.html">Bank shares rally after strong quarterly results</a></h2>
  <h3>Short</h3>
  <a href="javascript:void(0)">This javascript link text is long enough to match</a>
  <a href="#">Another anchor that only points to the top of page</a>
  <a href="https://other.example/story">IT stocks slump as rupee strengthens sharply</a>
  <a href="/news/banks-rally.html">Bank shares rally after strong quarterly results</a>
</body>
</html>
"""


class TestLooksLikeXml:
    @pytest.mark.parametrize(
        "body",
        [
            '<?xml version="1.0"?><rss/>',
            "\ufeff  <rss version='2.0'>",
            "\n\t<feed xmlns='http://www.w3.org/2005/Atom'>",
            "<RDF:RDF>",
        ],
    )
    def test_feed_prefixes(self, body):
        assert looks_like_xml(body)

    @pytest.mark.parametrize("body", ["", None, "<html><body/>", "<!DOCTYPE html>", "plain"])
    def test_non_feeds(self, body):
        assert not looks_like_xml(body)


def test_source_label_strips_www():
    assert source_label("https://www.moneycontrol.com/rss/x.xml") == "moneycontrol.com"
    assert source_label("feeds.content.dowjones.io/public") == "feeds.content.dowjones.io"
    assert source_label("") == ""


def test_clean_html_content_decodes_and_strips():
    assert clean_html_content("Nifty &amp; Sensex <b>rally</b>") == "Nifty & Sensex rally"
    assert clean_html_content("  a\n\n b  ") == "a b"
    assert clean_html_content(None) == ""


class TestParseTimestamp:
    def test_rfc1123(self):
        ts = parse_timestamp("Mon, 04 Mar 2024 05:50:00 GMT")
        assert ts == datetime(2024, 3, 4, 5, 50, tzinfo=timezone.utc)

    def test_iso8601(self):
        ts = parse_timestamp("2024-03-04T05:45:00Z")
        assert ts == datetime(2024, 3, 4, 5, 45, tzinfo=timezone.utc)

    def test_naive_iso_is_utc(self):
        ts = parse_timestamp("2024-03-04T05:45:00")
        assert ts.tzinfo is not None

    @pytest.mark.parametrize("raw", ["", None, "yesterday-ish", "32/13/2024"])
    def test_unparseable_is_none(self, raw):
        assert parse_timestamp(raw) is None


class TestParseRss:
    def test_rss_items(self):
        items = parse_rss_or_atom(RSS_SAMPLE, "https://www.moneycontrol.com/rss/marketreports.xml", 30)

        # the title-less entry is skipped
        assert len(items) == 2
        first = items[0]
        assert first.title == "Sensex rally extends as banks surge"
        assert first.description == "Buying momentum & gains across lenders"
        assert first.link.endswith("sensex-rally.html")
        assert first.published_at == datetime(2024, 3, 4, 5, 50, tzinfo=timezone.utc)
        assert first.source == "moneycontrol.com"

    def test_max_items(self):
        items = parse_rss_or_atom(RSS_SAMPLE, "https://www.moneycontrol.com/rss", 1)
        assert len(items) == 1

    def test_atom_entry(self):
        items = parse_rss_or_atom(ATOM_SAMPLE, "https://www.reuters.com/atom", 10)
        assert len(items) == 1
        assert items[0].title == "RBI holds repo rate, stance upbeat"
        assert items[0].description == "Policy unchanged for sixth meeting"
        assert items[0].link == "https://www.reuters.com/markets/rbi-policy"
        assert items[0].published_at == datetime(2024, 3, 4, 5, 45, tzinfo=timezone.utc)

    def test_malformed_raises_parse_failure(self):
        with pytest.raises(ParseFailure):
            parse_rss_or_atom("<?xml version='1.0'?><<<>>>", "https://x.example", 10)


class TestParseHtmlBasic:
    def test_og_title_first(self):
        items = parse_html_basic("https://www.livemint.com/market", HTML_SAMPLE, 10)
        assert items[0].title == "Markets live: Nifty & Sensex open higher"
        assert items[0].description == "Live coverage"
        assert items[0].link == "https://www.livemint.com/market"
        assert items[0].source == "livemint.com"

    def test_headings_and_anchors(self):
        items = parse_html_basic("https://www.livemint.com/market", HTML_SAMPLE, 10)
        titles = [i.title for i in items]

        assert "Bank shares rally after strong quarterly results" in titles
        assert "IT stocks slump as rupee strengthens sharply" in titles
        # duplicate anchor text collapses into the heading entry
        assert titles.count("Bank shares rally after strong quarterly results") == 1
        assert not any("javascript" in t for t in titles)
        assert not any("top of page" in t for t in titles)
        assert "Short" not in titles

        heading = items[titles.index("Bank shares rally after strong quarterly results")]
        assert heading.link == "https://www.livemint.com/news/banks-rally.html"

    def test_max_items_and_empty(self):
        assert len(parse_html_basic("https://x.example", HTML_SAMPLE, 2)) == 2
        assert parse_html_basic("https://x.example", "", 5) == []
        assert parse_html_basic("https://x.example", HTML_SAMPLE, 0) == []

    def test_title_tag_when_no_og(self):
        page = "<html><head><title>Quarterly results beat estimates widely</title></head></html>"
        items = parse_html_basic("https://x.example/p", page, 5)
        assert items[0].title == "Quarterly results beat estimates widely"
