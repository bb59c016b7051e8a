"""
PULSE SIGNAL — Unit Tests for Synthetic Options Confirmation
"""
import pytest
import pandas as pd
from datetime import timezone

from pulse_signal.data.models import SignalAction
from pulse_signal.engines import signal_combiner as combiner_module
from pulse_signal.engines.confirmation import (
    price_direction, synthetic_options_confirmation, synthetic_options_reading, synthetic_pcr,
)
from pulse_signal.engines.signal_combiner import SignalCombiner
from pulse_signal.engines.thresholds import get_policy


@pytest.fixture
def heavy_downtrend_df(downtrend_df):
    df = downtrend_df.copy()
    df["volume"] = df["volume"] * 50
    return df


def with_recent_volume(df, factor):
    df = df.copy()
    df.iloc[-5:, df.columns.get_loc("volume")] *= factor
    return df


class TestSyntheticReading:
    def test_short_history_is_unavailable(self, flat_df):
        assert synthetic_options_reading(flat_df) is None
        confirmation = synthetic_options_confirmation("FLAT", flat_df, [])
        assert confirmation.available is False

    def test_uptrend_confirms_buy(self, uptrend_df):
        reading = synthetic_options_reading(uptrend_df)
        assert reading.direction == "STRONG_BULLISH"
        assert reading.put_oi > reading.call_oi
        confirmation = synthetic_options_confirmation("UP", uptrend_df, [])
        assert confirmation.available
        assert confirmation.action == "BUY"
        assert confirmation.score > 0

    def test_downtrend_confirms_sell(self, downtrend_df):
        confirmation = synthetic_options_confirmation("DOWN", downtrend_df, [])
        assert confirmation.action == "SELL"
        assert confirmation.score < 0

    def test_score_is_clamped(self, heavy_downtrend_df):
        reading = synthetic_options_reading(heavy_downtrend_df)
        assert reading.score == -100.0
        assert reading.strength == "STRONG"
        assert "BEARISH" in reading.interpretation()

    def test_flat_window_is_balanced(self):
        dates = pd.date_range(start="2024-01-01", periods=30, freq="5min", tz=timezone.utc)
        df = pd.DataFrame({
            "open": 100.0, "high": 100.0, "low": 100.0, "close": 100.0, "volume": 1000.0,
        }, index=dates)
        reading = synthetic_options_reading(df)
        assert reading.direction == "NEUTRAL"
        assert reading.pcr == 1.0
        assert reading.action == "HOLD"
        assert reading.score == 0
        assert "Balanced" in reading.interpretation()

    def test_zero_volume_is_neutral(self, uptrend_df):
        df = uptrend_df.assign(volume=0.0)
        reading = synthetic_options_reading(df)
        assert reading.net_oi == 0
        assert reading.action == "HOLD"

    def test_pcr_follows_volume(self, uptrend_df):
        thin = synthetic_options_reading(with_recent_volume(uptrend_df, 0.3))
        heavy = synthetic_options_reading(with_recent_volume(uptrend_df, 3.0))
        assert thin.volume_state == "low"
        assert thin.pcr == 1.25
        assert heavy.volume_state == "high"
        assert heavy.pcr == 0.75

    def test_direction_and_pcr_tables(self):
        assert price_direction(0.006) == "STRONG_BULLISH"
        assert price_direction(0.003) == "BULLISH"
        assert price_direction(0.001) == "NEUTRAL"
        assert price_direction(-0.003) == "BEARISH"
        assert price_direction(-0.006) == "STRONG_BEARISH"
        assert synthetic_pcr("BEARISH", 1.5) == 1.35
        assert synthetic_pcr("STRONG_BEARISH", 0.5) == 0.80
        assert synthetic_pcr("NEUTRAL", 2.0) == 1.0


class TestAggressivePolicyWithSyntheticConfirmation:
    def test_confirming_reading_lowers_threshold(self, uptrend_df):
        policy = get_policy("aggressive")
        confirming = synthetic_options_confirmation("UP", uptrend_df, [])
        assert policy.select_action(4.0, 60.0) == SignalAction.HOLD
        assert policy.select_action(4.0, 60.0, confirming) == SignalAction.BUY

    def test_conflicting_reading_raises_threshold(self, heavy_downtrend_df):
        policy = get_policy("aggressive")
        conflicting = synthetic_options_confirmation("DOWN", heavy_downtrend_df, [])
        assert policy.select_action(6.0, 60.0) == SignalAction.BUY
        assert policy.select_action(6.0, 60.0, conflicting) == SignalAction.HOLD

    def test_strict_policy_unaffected(self, heavy_downtrend_df):
        policy = get_policy("strict")
        conflicting = synthetic_options_confirmation("DOWN", heavy_downtrend_df, [])
        assert policy.required_threshold(30.0, conflicting) == policy.base_threshold


class TestCombinerSwitch:
    def test_switch_installs_provider(self, settings, uptrend_df, monkeypatch):
        calls = []

        def spy(symbol, df, results):
            calls.append((symbol, len(df), len(results)))
            return synthetic_options_confirmation(symbol, df, results)

        monkeypatch.setattr(combiner_module, "synthetic_options_confirmation", spy)
        settings.signals.synthetic_confirmation = True
        settings.signals.threshold_preset = "aggressive"
        signal = SignalCombiner(settings).generate_signal(uptrend_df, "UP")

        assert calls and calls[0][0] == "UP"
        assert calls[0][1] == len(uptrend_df)
        assert signal.action in (SignalAction.BUY, SignalAction.STRONG_BUY)

    def test_injected_provider_takes_precedence(self, settings):
        def provider(symbol, df, results):
            return None

        settings.signals.synthetic_confirmation = True
        assert SignalCombiner(settings, confirmation_provider=provider).confirmation_provider is provider

    def test_switch_off_by_default(self, settings):
        assert SignalCombiner(settings).confirmation_provider is None
