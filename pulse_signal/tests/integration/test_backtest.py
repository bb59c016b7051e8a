"""
PULSE SIGNAL — Integration Tests for the Walk-Forward Backtester
"""
import pytest
import numpy as np
import pandas as pd
from datetime import timezone

from pulse_signal.backtest.backtester import Backtester
from pulse_signal.data.aggregator import CandleAggregator
from pulse_signal.data.models import candles_to_frame
from pulse_signal.data.sources.synthetic import SyntheticTickSource


@pytest.fixture
def long_uptrend_df():
    n = 150
    dates = pd.date_range(start="2024-01-01", periods=n, freq="5min", tz=timezone.utc)
    close = 100.0 + np.arange(n, dtype=float)
    open_ = close - 1.0
    return pd.DataFrame({
        "open": open_,
        "high": close + 0.5,
        "low": open_ - 0.5,
        "close": close,
        "volume": 1000.0 + 10.0 * np.arange(n),
    }, index=dates)


@pytest.fixture
def synthetic_df():
    ticks = SyntheticTickSource(seed=7, minutes=750).load_ticks("NIFTY50")
    return candles_to_frame(CandleAggregator().aggregate(ticks, "5m"))


class TestBacktester:
    def test_short_history_is_empty(self, settings, flat_df):
        result = Backtester(settings).run(flat_df, "FLAT")
        assert result.total_trades == 0
        assert result.final_capital == settings.backtest.initial_capital
        assert result.equity_curve is None

    def test_uptrend_takes_long_trades(self, settings, long_uptrend_df):
        result = Backtester(settings).run(long_uptrend_df, "UP")
        assert result.signals_generated >= 1
        assert result.total_trades >= 1
        assert result.trades[0].side == "BUY"

    def test_accounting_is_consistent(self, settings, long_uptrend_df):
        result = Backtester(settings).run(long_uptrend_df, "UP")
        assert result.winning_trades + result.losing_trades == result.total_trades
        expected = settings.backtest.initial_capital + sum(t.pnl for t in result.trades)
        assert result.final_capital == pytest.approx(expected)
        assert len(result.equity_curve) == len(long_uptrend_df) - 50 + 1
        assert result.equity_curve.iloc[-1] == pytest.approx(result.final_capital)
        assert result.max_drawdown_pct >= 0

    def test_one_position_at_a_time(self, settings, synthetic_df):
        result = Backtester(settings).run(synthetic_df, "NIFTY50")
        for earlier, later in zip(result.trades, result.trades[1:]):
            assert later.entry_time >= earlier.exit_time
        for trade in result.trades:
            assert trade.exit_reason in ("TARGET_1", "TARGET_2", "TARGET_3", "STOP_LOSS",
                                         "expired", "end_of_data")

    def test_to_dict(self, settings, long_uptrend_df):
        data = Backtester(settings).run(long_uptrend_df, "UP").to_dict()
        assert data["symbol"] == "UP"
        assert data["initial_capital"] == settings.backtest.initial_capital
        assert data["trades"]["total"] == sum(data["trades"]["exit_reasons"].values())
        assert set(data["risk"]) == {"max_drawdown_pct", "sharpe_ratio", "sortino_ratio", "calmar_ratio"}
        assert "avg_trade_duration" in data["trades"]
        assert "signals_generated" in data

    def test_plot_equity_curve(self, settings, long_uptrend_df, tmp_path):
        result = Backtester(settings).run(long_uptrend_df, "UP")
        path = Backtester.plot_equity_curve(result, str(tmp_path / "equity.png"))
        assert (tmp_path / "equity.png").exists()
        assert path.endswith("equity.png")
