"""
PULSE SIGNAL — Unit Tests for Trade Level Calculation
"""
import pytest

from pulse_signal.config.settings import LevelSettings
from pulse_signal.data.models import SignalAction
from pulse_signal.engines.levels import LevelCalculator, TradeLevels, stop_floor


@pytest.fixture
def structure():
    return LevelCalculator(LevelSettings(), mode="structure")


@pytest.fixture
def fixed():
    return LevelCalculator(LevelSettings(), mode="fixed_percent")


class TestLevelCalculator:
    def test_hold_is_all_zero(self, structure, uptrend_df):
        levels = structure.compute_levels(uptrend_df, SignalAction.HOLD, 159.0)
        assert levels == TradeLevels.zero()
        assert levels.reasoning == []

    def test_non_numeric_price_is_zero(self, structure, uptrend_df):
        levels = structure.compute_levels(uptrend_df, SignalAction.BUY, float("nan"))
        assert levels.entry == 0 and levels.stop_loss == 0

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            LevelCalculator(LevelSettings(), mode="astrology")

    def test_fixed_percent_buy(self, fixed, uptrend_df):
        levels = fixed.compute_levels(uptrend_df, SignalAction.BUY, 100.0)
        assert levels.stop_loss == pytest.approx(99.0)
        assert (levels.target1, levels.target2, levels.target3) == pytest.approx((102.0, 103.0, 104.0))
        assert levels.risk_reward == pytest.approx(2.0)
        assert levels.method == "fixed_percent"

    def test_fixed_percent_sell_mirrors(self, fixed, uptrend_df):
        levels = fixed.compute_levels(uptrend_df, SignalAction.STRONG_SELL, 100.0)
        assert levels.stop_loss == pytest.approx(101.0)
        assert levels.target1 == pytest.approx(98.0)

    def test_structure_uses_swing_low(self, structure, uptrend_df):
        price = 159.0
        levels = structure.compute_levels(uptrend_df, SignalAction.BUY, price)
        swing_low = float(uptrend_df.tail(20)["low"].min())
        min_stop = price * 0.25 / 100.0
        assert levels.stop_loss == pytest.approx(swing_low - 0.1 * min_stop)
        risk = price - levels.stop_loss
        assert levels.target1 == pytest.approx(price + 2 * risk)
        assert levels.target2 == pytest.approx(price + 3 * risk)
        assert levels.target3 == pytest.approx(price + 4 * risk)
        assert levels.risk_reward == pytest.approx(2.0)

    def test_structure_prefers_pivot_support(self, structure, uptrend_df):
        price = 159.0
        # min stop 0.3975; pivot support 1.0 below price is within [min, 5 x min]
        pivots = {"s1": 158.0, "s2": 150.0, "s3": 140.0, "r1": 160.0, "r2": 161.0, "r3": 162.0}
        levels = structure.compute_levels(uptrend_df, SignalAction.BUY, price, pivots)
        assert levels.stop_loss == pytest.approx(158.0 - 0.1 * price * 0.0025)
        assert 158.0 in levels.supports
        assert 160.0 in levels.resistances

    def test_structure_falls_back_to_minimum_stop(self, structure, flat_df):
        # no swing high above a flat range
        price = 100.0
        levels = structure.compute_levels(flat_df, SignalAction.SELL, price)
        min_stop = price * 0.25 / 100.0
        assert levels.stop_loss == pytest.approx(price + min_stop)

    def test_per_symbol_minimum_stop(self, uptrend_df):
        calc = LevelCalculator(LevelSettings(min_stop_points={"NIFTY50": 5.0}), mode="structure")
        assert calc.strategy.min_stop(159.0, "NIFTY50") == 5.0
        assert calc.strategy.min_stop(159.0, "OTHER") == pytest.approx(159.0 * 0.0025)

    @pytest.mark.parametrize("action", [SignalAction.BUY, SignalAction.STRONG_BUY,
                                        SignalAction.SELL, SignalAction.STRONG_SELL])
    def test_stop_never_equals_entry(self, structure, fixed, flat_df, action):
        for calc in (structure, fixed):
            levels = calc.compute_levels(flat_df, action, 100.0)
            assert levels.stop_loss != levels.entry
            assert abs(levels.entry - levels.stop_loss) >= stop_floor(100.0)

    def test_to_dict(self, structure, uptrend_df):
        data = structure.compute_levels(uptrend_df, SignalAction.BUY, 159.0).to_dict()
        assert data["method"] == "structure"
        assert data["reasoning"]
