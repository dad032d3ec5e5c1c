"""Tests for feed health probing and the unhealthy cool-down."""

from datetime import timedelta
from unittest.mock import patch

import requests

from news_signals.errors import SourceUnreachable
from news_signals.health import FeedHealthTracker, media_type
from news_signals.models import FeedHealth
from tests.conftest import RSS_SAMPLE, T0, make_response

URL = "https://www.moneycontrol.com/rss/marketreports.xml"


def test_media_type():
    assert media_type("Application/RSS+XML; charset=UTF-8") == "application/rss+xml"
    assert media_type(None) == ""


class TestProbe:
    def test_healthy_rss(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response(RSS_SAMPLE, headers={"Content-Type": "application/rss+xml; charset=utf-8"})
        with patch("news_signals.health.requests.get", return_value=resp) as mock_get:
            health = tracker.probe(URL)

        assert health.ok
        assert health.http_code == 200
        assert health.looks_like_xml
        assert 0 < health.sample_bytes <= 4096
        assert health.latency_ms >= 0
        assert health.last_checked == T0
        kwargs = mock_get.call_args.kwargs
        assert kwargs["headers"]["Range"] == "bytes=0-4095"
        assert kwargs["timeout"] == (5.0, 5.0)
        assert kwargs["stream"] is True

    def test_partial_content_accepted(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response(RSS_SAMPLE, status=206, headers={"Content-Type": "text/xml"})
        with patch("news_signals.health.requests.get", return_value=resp):
            assert tracker.probe(URL).ok

    def test_http_error_marks_unhealthy(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response(b"denied", status=403, headers={"Content-Type": "text/html"})
        with patch("news_signals.health.requests.get", return_value=resp):
            health = tracker.probe(URL)

        assert not health.ok
        assert health.http_code == 403
        assert health.error == "HTTP 403"
        assert health.consecutive_failures == 1

    def test_network_error_never_raises(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        with patch(
            "news_signals.health.requests.get",
            side_effect=requests.ConnectionError("connection refused"),
        ):
            health = tracker.probe(URL)

        assert not health.ok
        assert "connection refused" in health.error
        assert tracker.is_recently_unhealthy(URL)

    def test_html_rejected_when_scraping_disabled(self, settings, clock):
        settings.allow_html_scrape = False
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response("<html><body>news</body></html>", headers={"Content-Type": "text/html"})
        with patch("news_signals.health.requests.get", return_value=resp):
            health = tracker.probe(URL)
        assert not health.ok
        assert not health.looks_like_xml

    def test_html_accepted_when_scraping_enabled(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response("<html><body>news</body></html>", headers={"Content-Type": "text/html"})
        with patch("news_signals.health.requests.get", return_value=resp):
            assert tracker.probe(URL).ok

    def test_disallowed_content_type(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        resp = make_response(RSS_SAMPLE, headers={"Content-Type": "application/json"})
        with patch("news_signals.health.requests.get", return_value=resp):
            health = tracker.probe(URL)
        assert not health.ok
        assert "application/json" in health.error

    def test_preflight_probes_every_url(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        with patch(
            "news_signals.health.requests.get",
            side_effect=lambda *a, **kw: make_response(RSS_SAMPLE, headers={"Content-Type": "text/xml"}),
        ):
            results = tracker.preflight(settings.feed_urls)
        assert [h.url for h in results] == settings.feed_urls
        assert all(h.ok for h in results)
        assert set(tracker.snapshot()) == set(settings.feed_urls)


class TestCooldown:
    def test_unhealthy_skipped_until_ttl(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        tracker.mark_unhealthy(URL, SourceUnreachable("HTTP 503", status=503, url=URL))

        assert tracker.is_recently_unhealthy(URL)
        assert tracker.get(URL).http_code == 503
        clock.advance(minutes=29)
        assert tracker.is_recently_unhealthy(URL)
        clock.advance(minutes=1)
        assert not tracker.is_recently_unhealthy(URL)

    def test_unknown_and_healthy_not_skipped(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        assert not tracker.is_recently_unhealthy(URL)
        tracker.mark_healthy(URL)
        assert not tracker.is_recently_unhealthy(URL)

    def test_failures_counted_and_reset(self, settings, clock):
        tracker = FeedHealthTracker(settings, clock=clock)
        tracker.mark_unhealthy(URL, RuntimeError("boom"))
        clock.advance(minutes=1)
        health = tracker.mark_unhealthy(URL)
        assert health.consecutive_failures == 2
        assert health.error == "UNKNOWN"

        health = tracker.mark_healthy(URL)
        assert health.ok
        assert health.error is None
        assert health.consecutive_failures == 0


def test_last_checked_never_moves_backwards(settings, clock):
    tracker = FeedHealthTracker(settings, clock=clock)
    tracker.mark_healthy(URL)
    stale = FeedHealth(url=URL, ok=False, error="late probe", last_checked=T0 - timedelta(minutes=5))

    stored = tracker.record(stale)

    assert stored.last_checked == T0
    assert tracker.get(URL).last_checked == T0


def test_snapshot_is_a_copy(settings, clock):
    tracker = FeedHealthTracker(settings, clock=clock)
    tracker.mark_healthy(URL)
    snap = tracker.snapshot()
    snap[URL].ok = False
    assert tracker.get(URL).ok
