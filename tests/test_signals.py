"""Tests for per-symbol signal generation."""

from datetime import timedelta

import pytest

from news_signals.events import EventRingBuffer
from news_signals.feedback.credibility import SourceCredibility
from news_signals.feedback.performance import PerformanceTracker
from news_signals.models import Direction, SignalStage, Urgency
from news_signals.risk import RiskManager
from news_signals.sentiment import SentimentAggregator
from news_signals.signals import (
    SignalGenerator,
    direction_and_strength,
    execution_window,
    impact_confidence,
    time_horizon,
    urgency,
    volume_multiplier,
)
from tests.conftest import T0


@pytest.fixture
def generator(settings, clock):
    settings.bullish_keywords = ["rally", "surge"]
    settings.bearish_keywords = ["plunge", "slump"]
    credibility = SourceCredibility(settings)
    return SignalGenerator(
        EventRingBuffer(clock=clock),
        SentimentAggregator(credibility, settings, clock=clock),
        RiskManager(credibility, settings),
        PerformanceTracker(credibility, clock=clock),
        settings,
        clock=clock,
    )


def add_news(generator, symbol, title, count=1, source="reuters.com", minutes_ago=5):
    for i in range(count):
        generator.events.record_event(
            source,
            symbol,
            "general",
            published_at=T0 - timedelta(minutes=minutes_ago),
            title=f"{title} #{i}",
        )


class TestHelpers:
    def test_volume_multiplier(self):
        assert volume_multiplier(0) == 1.0
        assert volume_multiplier(1) == 1.0
        assert volume_multiplier(5) == pytest.approx(1.4)
        assert volume_multiplier(50) == 2.0

    def test_impact_confidence(self):
        assert impact_confidence(1.0, 5) == pytest.approx(0.8)
        assert impact_confidence(-2.0, 20) == 1.0
        assert impact_confidence(0.0, 0) == 0.0

    def test_time_horizon(self):
        assert time_horizon(0.8, 1) == timedelta(minutes=30)
        assert time_horizon(0.5, 5) == timedelta(hours=2)
        assert time_horizon(0.5, 4) == timedelta(hours=6)

    def test_execution_window_and_urgency(self):
        assert execution_window(0.9) == timedelta(minutes=5)
        assert execution_window(0.8) == timedelta(minutes=15)
        assert execution_window(0.7) == timedelta(minutes=30)
        assert urgency(0.9, 0.06) == Urgency.HIGH
        assert urgency(0.9, 0.05) == Urgency.MEDIUM
        assert urgency(0.7, 0.2) == Urgency.LOW

    @pytest.mark.parametrize(
        "score,vol,direction,strength",
        [
            (0.9, 1.0, Direction.BUY, 0.9),
            (0.8, 1.5, Direction.BUY, 1.0),
            (-0.7, 1.0, Direction.SELL, 0.7),
            (0.6, 1.0, Direction.HOLD, 0.0),
            (-0.6, 1.0, Direction.HOLD, 0.0),
        ],
    )
    def test_direction_and_strength(self, score, vol, direction, strength):
        d, s = direction_and_strength(score, vol)
        assert d == direction
        assert s == pytest.approx(strength)


class TestProcessSymbol:
    def test_no_news(self, generator):
        stage, signal, reason = generator.process_symbol("INFY")
        assert stage == SignalStage.NO_NEWS
        assert signal is None
        assert reason == "no recent news"

    def test_stale_news_ignored(self, generator):
        add_news(generator, "INFY", "Infosys shares rally", count=5, minutes_ago=45)
        assert generator.process_symbol("INFY")[0] == SignalStage.NO_NEWS

    def test_buy_signal_emitted(self, generator):
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)

        stage, signal, reason = generator.process_symbol("RELIANCE")

        assert stage == SignalStage.SIGNAL_EMITTED
        assert reason == ""
        assert signal.direction == Direction.BUY
        assert signal.strength == pytest.approx(1.0)
        assert signal.confidence == pytest.approx(0.8)
        # |1.0| * 0.1 * volume 1.4 * credibility 1.1 * volatility 1.0 * sector 1.05
        assert signal.predicted_impact == pytest.approx(0.1 * 1.4 * 1.1 * 1.05)
        assert signal.execution_window == timedelta(minutes=15)
        assert signal.urgency == Urgency.MEDIUM
        assert signal.news_count == 5
        assert signal.sources == ("reuters.com",) * 5
        assert signal.timestamp == T0
        assert generator.tracker.find_signal(signal.id) is signal

    def test_sell_signal(self, generator):
        add_news(generator, "TCS", "TCS shares plunge", count=6)
        stage, signal, _ = generator.process_symbol("TCS")
        assert stage == SignalStage.SIGNAL_EMITTED
        assert signal.direction == Direction.SELL

    def test_low_confidence_suppressed(self, generator):
        add_news(generator, "TCS", "TCS shares rally", count=1)

        stage, signal, reason = generator.process_symbol("TCS")

        assert stage == SignalStage.SUPPRESSED
        assert signal is None
        assert reason == "confidence 0.64 below 0.70"
        assert generator.tracker.active_signals() == []

    def test_per_symbol_threshold_applies(self, generator):
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)
        generator.risk.adjust_risk_thresholds("RELIANCE", volatility=0.1, liquidity=1.0)
        generator.risk.adjust_risk_thresholds("RELIANCE", volatility=0.1, liquidity=1.0)

        stage, _, reason = generator.process_symbol("RELIANCE")

        assert stage == SignalStage.SUPPRESSED
        assert reason.startswith("confidence 0.80 below 0.90")

    def test_small_impact_suppressed(self, generator, settings):
        settings.price_impact_threshold = 0.5
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)
        stage, _, reason = generator.process_symbol("RELIANCE")
        assert stage == SignalStage.SUPPRESSED
        assert reason.startswith("impact ")

    def test_market_context_scales_impact(self, generator):
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)
        ctx = generator.set_market_context("reliance", volatility_multiplier=2.0, sector_multiplier=1.0)
        assert ctx.symbol == "RELIANCE"

        _, signal, _ = generator.process_symbol("RELIANCE")

        assert signal.predicted_impact == pytest.approx(0.1 * 1.4 * 1.1 * 2.0)

    def test_recent_news_falls_back_to_category(self, generator):
        generator.events.record_event("moneycontrol.com", "", "infy-results", published_at=T0)
        news = generator.recent_news("INFY")
        assert [n.title for n in news] == ["infy-results"]


class TestGenerate:
    def test_batch_isolates_suppressed_symbols(self, generator):
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)
        add_news(generator, "TCS", "TCS shares rally", count=1)

        batch = generator.generate(["reliance", "RELIANCE", " ", "tcs", "infy"])

        assert [s.symbol for s in batch.signals] == ["RELIANCE"]
        assert set(batch.suppressed) == {"TCS", "INFY"}
        assert batch.stages == {
            "RELIANCE": SignalStage.SIGNAL_EMITTED,
            "TCS": SignalStage.SUPPRESSED,
            "INFY": SignalStage.NO_NEWS,
        }

    def test_symbol_error_isolated(self, generator, monkeypatch):
        add_news(generator, "RELIANCE", "Reliance shares rally", count=5)
        original = generator.process_symbol

        def flaky(symbol):
            if symbol == "TCS":
                raise RuntimeError("price feed down")
            return original(symbol)

        monkeypatch.setattr(generator, "process_symbol", flaky)
        batch = generator.generate(["RELIANCE", "TCS"])

        assert len(batch.signals) == 1
        assert batch.suppressed["TCS"] == "error: price feed down"
        assert batch.stages["TCS"] == SignalStage.SUPPRESSED

    def test_empty_symbols(self, generator):
        batch = generator.generate(["", "  "])
        assert batch.signals == []
        assert batch.stages == {}
