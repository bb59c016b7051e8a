"""
PULSE SIGNAL — Unit Tests for Market Regime Detection
"""
import pytest
import pandas as pd

from pulse_signal.data.models import IndicatorCategory, Regime, VolatilityLevel
from pulse_signal.engines.regime import MarketRegimeDetector, baseline_weights, normalize_weights


@pytest.fixture
def detector():
    return MarketRegimeDetector()


class TestBaselineWeights:
    def test_sum_to_one(self):
        weights = baseline_weights()
        assert sum(weights.values()) == pytest.approx(1.0, abs=1e-6)
        assert set(weights) == set(IndicatorCategory)

    def test_default_values(self):
        weights = baseline_weights()
        assert weights[IndicatorCategory.TREND] == pytest.approx(0.28)
        assert weights[IndicatorCategory.PATTERN] == pytest.approx(0.07)

    def test_normalize_all_zero(self):
        weights = normalize_weights({c: 0.0 for c in IndicatorCategory})
        assert sum(weights.values()) == pytest.approx(1.0)


class TestClassification:
    @pytest.mark.parametrize("adx,chop,expected", [
        (35.0, 40.0, Regime.STRONG_TRENDING),
        (25.0, 55.0, Regime.WEAK_TRENDING),
        (15.0, 70.0, Regime.RANGING),
        (28.0, 40.0, Regime.WEAK_TRENDING),
        (22.0, 70.0, Regime.RANGING),
        (15.0, 55.0, Regime.WEAK_TRENDING),
    ])
    def test_classify(self, detector, adx, chop, expected):
        regime, confidence = detector.classify(adx, chop)
        assert regime == expected
        assert 0 <= confidence <= 100

    def test_tie_break_confidence_is_low(self, detector):
        assert detector.classify(15.0, 55.0)[1] == 40.0
        assert detector.classify(28.0, 40.0)[1] == 50.0

    @pytest.mark.parametrize("z,expected", [
        (2.0, VolatilityLevel.VERY_HIGH),
        (1.2, VolatilityLevel.HIGH),
        (0.7, VolatilityLevel.ELEVATED),
        (0.0, VolatilityLevel.NORMAL),
        (-1.2, VolatilityLevel.LOW),
        (-2.0, VolatilityLevel.VERY_LOW),
        (None, VolatilityLevel.NORMAL),
    ])
    def test_volatility_level(self, detector, z, expected):
        assert detector.volatility_level(z) == expected


class TestWeightAdjustments:
    def test_every_combination_sums_to_one(self, detector):
        for regime in Regime:
            for volatility in VolatilityLevel:
                weights = detector.weight_adjustments(regime, volatility)
                assert sum(weights.values()) == pytest.approx(1.0, abs=1e-6)

    def test_trending_boosts_trend(self, detector):
        base = baseline_weights()
        weights = detector.weight_adjustments(Regime.STRONG_TRENDING, VolatilityLevel.NORMAL)
        assert weights[IndicatorCategory.TREND] > base[IndicatorCategory.TREND]
        assert weights[IndicatorCategory.SUPPORT_RESISTANCE] < base[IndicatorCategory.SUPPORT_RESISTANCE]

    def test_ranging_boosts_support_resistance(self, detector):
        base = baseline_weights()
        weights = detector.weight_adjustments(Regime.RANGING, VolatilityLevel.NORMAL)
        assert weights[IndicatorCategory.SUPPORT_RESISTANCE] > base[IndicatorCategory.SUPPORT_RESISTANCE]
        assert weights[IndicatorCategory.TREND] < base[IndicatorCategory.TREND]

    def test_high_volatility_boosts_volatility(self, detector):
        normal = detector.weight_adjustments(Regime.WEAK_TRENDING, VolatilityLevel.NORMAL)
        high = detector.weight_adjustments(Regime.WEAK_TRENDING, VolatilityLevel.HIGH)
        assert high[IndicatorCategory.VOLATILITY] > normal[IndicatorCategory.VOLATILITY]
        assert high[IndicatorCategory.MOMENTUM] < normal[IndicatorCategory.MOMENTUM]


class TestDetect:
    def test_short_history_unknown(self, detector, flat_df):
        regime = detector.detect(flat_df)
        assert regime.regime == Regime.UNKNOWN
        assert regime.confidence == 0
        assert regime.weights == baseline_weights()

    def test_strict_uptrend_is_strong_trending(self, detector, uptrend_df):
        regime = detector.detect(uptrend_df)
        assert regime.regime == Regime.STRONG_TRENDING
        assert regime.adx > 30
        assert regime.choppiness < 50
        assert sum(regime.weights.values()) == pytest.approx(1.0, abs=1e-6)
        assert "strong directional movement" in regime.interpretation

    def test_random_walk_weights_normalised(self, detector, sample_ohlcv_df):
        regime = detector.detect(sample_ohlcv_df)
        assert regime.regime != Regime.UNKNOWN
        assert sum(regime.weights.values()) == pytest.approx(1.0, abs=1e-6)
        assert 0 <= regime.confidence <= 100

    def test_choppiness_of_flat_range(self, detector, flat_df):
        assert detector.choppiness(flat_df) == 100.0

    def test_computation_failure_falls_back(self, detector, uptrend_df, monkeypatch):
        def broken(df):
            raise ZeroDivisionError("no range")

        monkeypatch.setattr(detector, "choppiness", broken)
        regime = detector.detect(uptrend_df)
        assert regime.regime == Regime.UNKNOWN
        assert regime.weights == baseline_weights()

    def test_to_dict(self, detector, uptrend_df):
        data = detector.detect(uptrend_df).to_dict()
        assert data["regime"] == "STRONG_TRENDING"
        assert set(data["weight_adjustments"]) == {c.value for c in IndicatorCategory}
