import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import requests

src_path = Path(__file__).resolve().parents[1] / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from news_signals.config import Settings  # noqa: E402
from news_signals.models import Direction, RiskLevel, TradingSignal, Urgency  # noqa: E402

T0 = datetime(2024, 3, 4, 6, 0, tzinfo=timezone.utc)

RSS_SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Markets</title>
    <item>
      <title>Sensex rally extends as banks surge</title>
      <description>Buying momentum &amp; gains across lenders</description>
      <link>https://www.moneycontrol.com/news/markets/sensex-rally.html</link>
      <pubDate>Mon, 04 Mar 2024 05:50:00 GMT</pubDate>
    </item>
    <item>
      <title>Metal stocks plunge on weak China data</title>
      <description>Selloff deepens</description>
      <link>https://www.moneycontrol.com/news/markets/metals.html</link>
      <pubDate>Mon, 04 Mar 2024 05:30:00 GMT</pubDate>
    </item>
    <item>
      <title></title>
      <description>entry without a title</description>
    </item>
  </channel>
</rss>
"""


class FakeClock:
    """Mutable clock for TTL and window tests."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def make_response(body=b"", status: int = 200, headers=None, url: str = "") -> requests.Response:
    """Build a real ``requests.Response`` with an already consumed body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    resp = requests.Response()
    resp.status_code = status
    resp._content = body
    resp._content_consumed = True
    resp.headers.update(headers or {})
    resp.url = url
    resp.encoding = "utf-8"
    return resp


def make_signal(
    signal_id="sig-1",
    symbol="RELIANCE",
    direction=Direction.BUY,
    confidence=0.8,
    sources=("reuters.com",),
    timestamp=T0,
):
    return TradingSignal(
        id=signal_id,
        symbol=symbol,
        direction=direction,
        strength=0.7,
        confidence=confidence,
        predicted_impact=0.03,
        risk_level=RiskLevel.MEDIUM,
        max_position_size=0.5,
        stop_loss_adjustment=0.2,
        execution_window=timedelta(minutes=15),
        urgency=Urgency.MEDIUM,
        timestamp=timestamp,
        sources=sources,
        news_count=len(sources),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        feed_urls=[
            "https://feeds.content.dowjones.io/public/rss/mw_topstories",
            "https://www.moneycontrol.com/rss/marketreports.xml",
        ],
        symbols=["RELIANCE", "TCS", "INFY"],
        feature_trading_signals=True,
        data_dir=tmp_path,
    )
