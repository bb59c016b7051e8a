"""
PULSE SIGNAL — Unit Tests for Power, Importance and Threshold Policy
"""
import pytest

from pulse_signal.data.models import IndicatorCategory, SignalAction, SignalStrength
from pulse_signal.engines.thresholds import (
    PRESETS, Confirmation, bullish_percentage, dominance, get_policy,
)
from pulse_signal.engines.weighting import (
    DEFAULT_IMPORTANCE, INDICATOR_IMPORTANCE, average_power, category_score, category_scores,
    importance_of, indicator_power, indicator_weight,
)
from pulse_signal.indicators.base import IndicatorResult, SignalDescriptor


def _result(score, confidence=50.0, strength=SignalStrength.WEAK, id="x",
            category=IndicatorCategory.TREND, available=True):
    return IndicatorResult(
        id=id,
        label=id,
        category=category,
        values={},
        signal=SignalDescriptor("HOLD", score, strength, confidence),
        available=available,
    )


class TestIndicatorPower:
    def test_base_power(self):
        assert indicator_power(_result(0, confidence=40)) == pytest.approx(0.5)

    @pytest.mark.parametrize("confidence,expected", [(80, 0.8), (60, 0.7), (50, 0.6), (49, 0.5)])
    def test_confidence_bonus(self, confidence, expected):
        assert indicator_power(_result(0, confidence=confidence)) == pytest.approx(expected)

    def test_strength_and_clarity_bonus(self):
        strong = _result(60, confidence=40, strength=SignalStrength.STRONG)
        assert indicator_power(strong) == pytest.approx(0.7)

    def test_capped_at_one(self):
        result = _result(90, confidence=95, strength=SignalStrength.VERY_STRONG)
        assert indicator_power(result) == 1.0

    def test_average_power_defaults(self):
        assert average_power([]) == 0.5
        assert average_power([_result(0, confidence=80)]) == pytest.approx(0.8)


class TestImportance:
    def test_listed_and_default(self):
        assert importance_of("ema_50") == INDICATOR_IMPORTANCE["ema_50"]
        assert importance_of("not_listed") == DEFAULT_IMPORTANCE

    def test_custom_table(self):
        assert importance_of("rsi_14", {"rsi_14": 2.0}) == 2.0

    def test_weight_is_power_times_importance(self):
        result = _result(0, confidence=80, id="macd")
        assert indicator_weight(result) == pytest.approx(0.8 * INDICATOR_IMPORTANCE["macd"])


class TestCategoryScores:
    def test_empty_category_is_zero(self):
        assert category_score([]) == 0.0

    def test_weighted_mean(self):
        table = {"a": 1.0, "b": 3.0}
        results = [_result(40, confidence=40, id="a"), _result(-40, confidence=40, id="b")]
        # equal power, importance 1 and 3
        assert category_score(results, table) == pytest.approx((40 - 120) / 4)

    def test_all_categories_present_and_unavailable_skipped(self):
        results = [
            _result(50, category=IndicatorCategory.VOLUME),
            _result(-80, category=IndicatorCategory.VOLUME, available=False),
        ]
        scores = category_scores(results)
        assert set(scores) == set(IndicatorCategory)
        assert scores[IndicatorCategory.VOLUME] == pytest.approx(50.0)
        assert scores[IndicatorCategory.TREND] == 0.0


class TestThresholdPolicy:
    def test_presets_are_distinct(self):
        assert set(PRESETS) == {"strict", "swing", "intraday", "aggressive"}
        strict = get_policy()
        assert (strict.confidence_floor, strict.dominance_floor,
                strict.strong_threshold, strict.base_threshold) == (65.0, 30.0, 50.0, 25.0)

    def test_unknown_preset(self):
        with pytest.raises(ValueError):
            get_policy("yolo")

    def test_percentages(self):
        assert bullish_percentage(0) == 50.0
        assert bullish_percentage(40) == 70.0
        assert dominance(-40) == pytest.approx(40.0)

    @pytest.mark.parametrize("total,confidence,expected", [
        (60, 70, SignalAction.STRONG_BUY),
        (35, 70, SignalAction.BUY),
        (-35, 70, SignalAction.SELL),
        (-55, 70, SignalAction.STRONG_SELL),
        (35, 60, SignalAction.HOLD),   # below confidence floor
        (20, 90, SignalAction.HOLD),   # below dominance floor
    ])
    def test_strict_gate(self, total, confidence, expected):
        assert get_policy("strict").select_action(total, confidence) == expected

    def test_intraday_is_looser(self):
        assert get_policy("intraday").select_action(16, 55) == SignalAction.BUY
        assert get_policy("strict").select_action(16, 55) == SignalAction.HOLD

    def test_confirmation_adjusts_aggressive_threshold(self):
        policy = get_policy("aggressive")
        assert policy.select_action(6, 50) == SignalAction.BUY
        conflicting = Confirmation(action="SELL", score=-40)
        assert policy.select_action(6, 50, conflicting) == SignalAction.HOLD
        confirming = Confirmation(action="BUY", score=40)
        assert policy.select_action(4, 50, confirming) == SignalAction.BUY
        assert policy.select_action(4, 50) == SignalAction.HOLD

    def test_unavailable_confirmation_ignored(self):
        policy = get_policy("aggressive")
        absent = Confirmation(action="SELL", score=-90, available=False)
        assert policy.select_action(6, 50, absent) == SignalAction.BUY

    def test_strict_ignores_confirmation(self):
        policy = get_policy("strict")
        conflicting = Confirmation(action="SELL", score=-90)
        assert policy.select_action(35, 70, conflicting) == SignalAction.BUY
