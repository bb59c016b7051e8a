"""
PULSE SIGNAL — Unit Tests for Indicators
Evaluation contract, score bounds, flat-input neutrality and the trend
readings of a strict uptrend.
"""
import pytest
import pandas as pd
import numpy as np

from pulse_signal.data.models import IndicatorCategory, SignalStrength
from pulse_signal.indicators.base import SignalScore, cross, true_range
from pulse_signal.indicators.trend import (
    EMAIndicator, EMACrossoverIndicator, MovingAverageIndicator, SMAIndicator,
)
from pulse_signal.indicators.momentum import RSIIndicator
from pulse_signal.indicators.oscillators import MACDIndicator
from pulse_signal.indicators.directional import ADXIndicator
from pulse_signal.indicators.volume import OBVIndicator, VolumeIndexIndicator
from pulse_signal.indicators.structural import PivotPointsIndicator, classic_pivots
from pulse_signal.indicators.patterns import CandlestickPatternIndicator
from pulse_signal.indicators.registry import IndicatorRegistry
from pulse_signal.utils.errors import IndicatorComputationError, InsufficientDataError


class TestSignalScore:
    def test_empty_builder_is_neutral(self):
        signal = SignalScore().build()
        assert signal.score == 0
        assert signal.action == "HOLD"
        assert signal.strength == SignalStrength.WEAK
        assert signal.confidence == 40.0
        assert signal.components == []

    def test_score_is_clamped(self):
        signal = SignalScore().crossover(1, 80).position(90, cap=90).alignment(1, 40).build()
        assert signal.score == 100.0
        assert signal.strength == SignalStrength.VERY_STRONG

    def test_crossover_adds_confidence(self):
        plain = SignalScore().position(20).build()
        crossed = SignalScore().position(20).crossover(1, 20).build()
        assert crossed.confidence > plain.confidence
        assert "crossover" in crossed.components

    def test_non_finite_contributions_ignored(self):
        signal = SignalScore().position(float("nan")).slope(float("inf")).build()
        assert signal.score == 0
        assert signal.components == []

    def test_negative_score_is_sell(self):
        signal = SignalScore().position(-25).build()
        assert signal.action == "SELL"
        assert signal.score == -25


class TestHelpers:
    def test_cross_detects_upward_cross(self):
        fast = pd.Series([1.0, 2.0, 4.0])
        slow = pd.Series([3.0, 3.0, 3.0])
        assert cross(fast, slow) == 1

    def test_cross_against_constant(self):
        assert cross(pd.Series([52.0, 48.0]), 50.0) == -1
        assert cross(pd.Series([48.0, 49.0]), 50.0) == 0

    def test_true_range_non_negative(self, sample_ohlcv_df):
        tr = true_range(sample_ohlcv_df).dropna()
        assert (tr >= 0).all()

    def test_classic_pivots_order(self):
        levels = classic_pivots(110.0, 90.0, 100.0)
        assert levels["pivot"] == pytest.approx(100.0)
        assert levels["s3"] < levels["s2"] < levels["s1"] < levels["pivot"]
        assert levels["pivot"] < levels["r1"] < levels["r2"] < levels["r3"]


class TestEvaluationContract:
    def test_insufficient_history_raises(self, flat_df):
        with pytest.raises(InsufficientDataError):
            SMAIndicator(50).evaluate(flat_df)

    def test_computation_failure_is_wrapped(self, sample_ohlcv_df):
        broken = sample_ohlcv_df.drop(columns=["volume"])
        with pytest.raises(IndicatorComputationError) as exc:
            OBVIndicator().evaluate(broken)
        assert exc.value.indicator == "obv"

    def test_result_fields(self, sample_ohlcv_df):
        result = RSIIndicator(14).evaluate(sample_ohlcv_df)
        assert result.id == "rsi_14"
        assert result.category == IndicatorCategory.MOMENTUM
        assert result.available
        assert "rsi" in result.values
        data = result.to_dict()
        assert data["category"] == "momentum"
        assert -100 <= data["signal"]["score"] <= 100

    def test_invalid_volume_index_mode(self):
        with pytest.raises(ValueError):
            VolumeIndexIndicator(mode="sideways")

    def test_moving_average_base_is_abstract(self):
        with pytest.raises(TypeError):
            MovingAverageIndicator(20)
        assert EMAIndicator(20).column == "ema_20"
        assert SMAIndicator(20).column == "sma_20"


class TestRSIIndicator:
    def test_rsi_range(self, sample_ohlcv_df):
        ind = RSIIndicator(period=14)
        result = ind.calculate(sample_ohlcv_df)
        valid = result["rsi_14"].dropna()
        assert (valid >= 0).all() and (valid <= 100).all()

    def test_flat_series_reads_neutral(self, flat_df):
        result = RSIIndicator(period=13).evaluate(flat_df)
        assert result.values["rsi"] == 50.0
        assert result.score == 0

    def test_uptrend_is_overbought(self, uptrend_df):
        result = RSIIndicator(14).evaluate(uptrend_df)
        assert result.values["rsi"] > 70
        assert result.values["zone"] == "OVERBOUGHT"


class TestUptrendReadings:
    def test_ema_stack(self, uptrend_df):
        ema9 = EMAIndicator(9).evaluate(uptrend_df).values["value"]
        ema20 = EMAIndicator(20).evaluate(uptrend_df).values["value"]
        ema50 = EMAIndicator(50).evaluate(uptrend_df).values["value"]
        assert ema9 > ema20 > ema50

    def test_macd_histogram_positive(self, uptrend_df):
        result = MACDIndicator().evaluate(uptrend_df)
        assert result.values["histogram"] > 0
        assert result.score > 0

    def test_adx_trending(self, uptrend_df):
        result = ADXIndicator().evaluate(uptrend_df)
        assert result.values["adx"] > 30
        assert result.values["plus_di"] > result.values["minus_di"]

    def test_moving_average_scores_positive(self, uptrend_df):
        for indicator in (EMAIndicator(20), SMAIndicator(20)):
            assert indicator.evaluate(uptrend_df).score > 0

    def test_pivots_from_previous_candle(self, uptrend_df):
        result = PivotPointsIndicator().evaluate(uptrend_df)
        prev_bar = uptrend_df.iloc[-2]
        expected = classic_pivots(prev_bar["high"], prev_bar["low"], prev_bar["close"])
        assert result.values["pivot"] == pytest.approx(expected["pivot"])
        assert result.values["r1"] == pytest.approx(expected["r1"])
        assert result.score > 0

    def test_three_white_soldiers(self, uptrend_df):
        result = CandlestickPatternIndicator().evaluate(uptrend_df)
        assert result.score > 0


class TestFlatInput:
    def test_trend_and_momentum_scores_zero(self, flat_df):
        registry = IndicatorRegistry()
        results = registry.evaluate_all(flat_df)
        assert results
        for result in results:
            if result.category in (IndicatorCategory.TREND, IndicatorCategory.MOMENTUM):
                assert result.score == pytest.approx(0.0, abs=1e-9), result.id

    def test_crossover_silent_on_flat(self, flat_df):
        result = EMACrossoverIndicator(fast=3, slow=5).evaluate(flat_df)
        assert result.score == 0


class TestIndicatorRegistry:
    def test_registry_covers_every_category(self):
        registry = IndicatorRegistry()
        assert registry.count >= 60
        categories = {registry.get(name).category for name in registry.indicator_names}
        assert categories == set(IndicatorCategory)

    def test_all_scores_bounded(self, sample_ohlcv_df):
        results = IndicatorRegistry().evaluate_all(sample_ohlcv_df)
        assert len(results) >= 50
        for result in results:
            assert -100 <= result.score <= 100, result.id
            assert 0 <= result.confidence <= 100, result.id

    def test_short_history_omits_indicators(self, flat_df):
        registry = IndicatorRegistry()
        results = registry.evaluate_all(flat_df)
        ids = {r.id for r in results}
        assert "sma_200" not in ids
        assert len(results) < registry.count

    def test_empty_frame_yields_nothing(self, empty_df):
        assert IndicatorRegistry().evaluate_all(empty_df) == []

    def test_failing_indicator_is_isolated(self, sample_ohlcv_df):
        class Exploding(RSIIndicator):
            def calculate(self, data):
                raise RuntimeError("boom")

        registry = IndicatorRegistry()
        before = len(registry.evaluate_all(sample_ohlcv_df))
        registry.register(Exploding(period=5))
        results = registry.evaluate_all(sample_ohlcv_df)
        assert len(results) == before
        assert "rsi_5" not in {r.id for r in results}

    def test_unregister(self):
        registry = IndicatorRegistry()
        registry.unregister("obv")
        assert registry.get("obv") is None

    def test_by_category_has_all_keys(self, sample_ohlcv_df):
        grouped = IndicatorRegistry.by_category(IndicatorRegistry().evaluate_all(sample_ohlcv_df))
        assert set(grouped) == set(IndicatorCategory)
        assert grouped[IndicatorCategory.TREND]

    def test_evaluation_keeps_no_frame_state(self, sample_ohlcv_df):
        registry = IndicatorRegistry()
        registry.evaluate_all(sample_ohlcv_df)
        for name in registry.indicator_names:
            held = [v for v in vars(registry.get(name)).values() if isinstance(v, pd.DataFrame)]
            assert held == [], name

    def test_results_independent_of_evaluation_order(self, sample_ohlcv_df, uptrend_df):
        def readings(results):
            return [(r.id, r.score, r.confidence) for r in results]

        registry = IndicatorRegistry()
        first = readings(registry.evaluate_all(uptrend_df))
        registry.evaluate_all(sample_ohlcv_df)
        again = readings(registry.evaluate_all(uptrend_df))
        assert again == first
        assert readings(IndicatorRegistry().evaluate_all(uptrend_df)) == first
