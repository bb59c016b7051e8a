"""
PULSE SIGNAL — Unit Tests for Signal Outcome Tracking
"""
import pytest
from datetime import datetime, timezone, timedelta

from pulse_signal.config.settings import TrackerSettings
from pulse_signal.data.models import SignalAction, SignalStrength
from pulse_signal.engines.levels import TradeLevels
from pulse_signal.engines.signal_combiner import TradingSignal
from pulse_signal.engines.signal_tracker import SignalStatus, SignalTracker

OPENED = datetime(2024, 2, 13, 4, 0, tzinfo=timezone.utc)


def _signal(action=SignalAction.BUY, entry=100.0, stop=98.0, targets=(104.0, 106.0, 108.0), symbol="TEST"):
    direction = action.direction
    levels = TradeLevels(entry, stop, *targets, risk_reward=abs(targets[0] - entry) / abs(entry - stop))
    if direction == 0:
        levels = TradeLevels.zero()
    return TradingSignal(
        symbol=symbol,
        timeframe="5m",
        timestamp=OPENED,
        current_price=entry,
        action=action,
        strength=SignalStrength.STRONG,
        confidence=75.0,
        levels=levels,
    )


@pytest.fixture
def tracker():
    return SignalTracker(TrackerSettings())


class TestSignalTracker:
    def test_hold_not_tracked(self, tracker):
        assert tracker.track(_signal(SignalAction.HOLD)) is None
        assert tracker.active() == []

    def test_stop_checked_before_targets(self, tracker):
        tracked = tracker.track(_signal())
        # one candle spanning both the stop and every target
        tracker.update_range("TEST", 97.0, 110.0, OPENED + timedelta(minutes=5))
        assert tracked.status == SignalStatus.HIT_SL
        assert tracked.hit_level == "STOP_LOSS"
        assert tracked.pnl == pytest.approx(-2.0)
        assert tracked.outcome == "LOSS"

    def test_highest_target_wins(self, tracker):
        tracked = tracker.track(_signal())
        tracker.update_price("TEST", 106.5, OPENED + timedelta(minutes=5))
        assert tracked.status == SignalStatus.HIT_TARGET
        assert tracked.hit_level == "TARGET_2"
        assert tracked.exit_price == 106.0
        assert tracked.pnl == pytest.approx(6.0)

    def test_sell_mirrors(self, tracker):
        tracked = tracker.track(_signal(SignalAction.SELL, entry=100.0, stop=102.0, targets=(96.0, 94.0, 92.0)))
        tracker.update_price("TEST", 91.0, OPENED + timedelta(minutes=5))
        assert tracked.hit_level == "TARGET_3"
        assert tracked.pnl == pytest.approx(8.0)

    def test_no_hit_stays_active(self, tracker):
        tracked = tracker.track(_signal())
        changed = tracker.update_price("TEST", 101.0, OPENED + timedelta(hours=1))
        assert changed == []
        assert tracked.is_open

    def test_expires_after_window(self, tracker):
        tracked = tracker.track(_signal())
        tracker.update_price("TEST", 101.0, OPENED + timedelta(hours=4, minutes=1))
        assert tracked.status == SignalStatus.EXPIRED
        assert tracked.outcome == "EXPIRED"

    def test_other_symbols_untouched(self, tracker):
        tracked = tracker.track(_signal())
        tracker.update_price("OTHER", 50.0, OPENED + timedelta(minutes=5))
        assert tracked.is_open

    def test_update_candle_uses_range(self, tracker):
        tracked = tracker.track(_signal())
        tracker.update_candle("TEST", {"open": 100, "high": 104.5, "low": 99.5, "close": 101},
                              OPENED + timedelta(minutes=5))
        assert tracked.hit_level == "TARGET_1"

    def test_performance_stats(self, tracker):
        for price in (104.5, 97.0, 108.5):
            tracker.track(_signal())
            tracker.update_price("TEST", price, OPENED + timedelta(minutes=5))
        tracker.track(_signal())
        tracker.update_price("TEST", 101.0, OPENED + timedelta(hours=5))

        stats = tracker.performance_stats("TEST")
        assert stats["total_signals"] == 3
        assert stats["wins"] == 2
        assert stats["losses"] == 1
        assert stats["win_rate"] == pytest.approx(66.67)
        assert stats["total_pnl"] == pytest.approx(4.0 - 2.0 + 8.0)
        assert stats["target1_hits"] == 1
        assert stats["target3_hits"] == 1
        assert stats["expired"] == 1

    def test_to_dict(self, tracker):
        tracked = tracker.track(_signal())
        data = tracked.to_dict()
        assert data["status"] == "ACTIVE"
        assert data["targets"] == [104.0, 106.0, 108.0]
