"""
PULSE SIGNAL — Walk-Forward Backtesting Engine
Generates signals from the full history up to each decision bar, resolves
them against the following candles (stop before targets) and reports equity,
drawdown and risk metrics.
"""
import numpy as np
import pandas as pd
from collections import Counter
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from pulse_signal.config.settings import AppSettings, get_settings
from pulse_signal.engines.signal_combiner import SignalCombiner
from pulse_signal.engines.signal_tracker import SignalStatus, SignalTracker, TrackedSignal
from pulse_signal.utils.errors import PulseSignalError
from pulse_signal.utils.logger import get_logger
from pulse_signal.utils.helpers import safe_divide

logger = get_logger("backtester")

# bars per year for annualisation, keyed by timeframe (375-minute sessions, 252 days)
PERIODS_PER_YEAR = {"1m": 94500, "5m": 18900, "15m": 6300, "30m": 3150, "1h": 1575, "1d": 252}


@dataclass
class Trade:
    """One resolved position."""
    entry_time: Any
    exit_time: Any
    side: str
    entry_price: float
    exit_price: float
    pnl: float
    pnl_pct: float
    confidence: float
    outcome: str
    exit_reason: str
    bars_held: int = 0
    equity_index: int = 0


@dataclass
class RiskMetrics:
    max_drawdown_pct: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    calmar_ratio: float = 0.0


@dataclass
class BacktestResult:
    """Metrics, trade log and curves of one backtest run."""
    symbol: str
    timeframe: str
    start_date: str
    end_date: str
    initial_capital: float
    final_capital: float
    total_return_pct: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    avg_win_pct: float
    avg_loss_pct: float
    profit_factor: float
    avg_trade_duration: float
    risk: RiskMetrics = field(default_factory=RiskMetrics)
    signals_generated: int = 0
    exit_reasons: Dict[str, int] = field(default_factory=dict)
    trades: List[Trade] = field(default_factory=list)
    equity_curve: Optional[pd.Series] = None
    drawdown_curve: Optional[pd.Series] = None

    @property
    def max_drawdown_pct(self) -> float:
        return self.risk.max_drawdown_pct

    @property
    def sharpe_ratio(self) -> float:
        return self.risk.sharpe_ratio

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "period": f"{self.start_date} to {self.end_date}",
            "initial_capital": self.initial_capital,
            "final_capital": round(self.final_capital, 2),
            "total_return_pct": round(self.total_return_pct, 2),
            "signals_generated": self.signals_generated,
            "trades": {
                "total": self.total_trades,
                "winning": self.winning_trades,
                "losing": self.losing_trades,
                "win_rate": round(self.win_rate, 2),
                "avg_win_pct": round(self.avg_win_pct, 2),
                "avg_loss_pct": round(self.avg_loss_pct, 2),
                "profit_factor": round(self.profit_factor, 2),
                "avg_trade_duration": round(self.avg_trade_duration, 2),
                "exit_reasons": dict(self.exit_reasons),
            },
            "risk": {
                "max_drawdown_pct": round(self.risk.max_drawdown_pct, 2),
                "sharpe_ratio": round(self.risk.sharpe_ratio, 2),
                "sortino_ratio": round(self.risk.sortino_ratio, 2),
                "calmar_ratio": round(self.risk.calmar_ratio, 2),
            },
        }


def _as_datetime(ts) -> Optional[datetime]:
    if isinstance(ts, pd.Timestamp):
        return ts.to_pydatetime()
    if isinstance(ts, datetime):
        return ts
    return None


def drawdown_curve(equity: pd.Series) -> pd.Series:
    """Percent below the running equity peak (0 or negative)."""
    peak = equity.expanding().max()
    return (equity - peak) / peak * 100


def risk_metrics(equity: pd.Series, total_return_pct: float, periods_per_year: float) -> RiskMetrics:
    """Drawdown and annualised Sharpe/Sortino/Calmar from a per-bar equity curve."""
    if len(equity) < 2:
        return RiskMetrics()
    max_dd = float(abs(drawdown_curve(equity).min()))

    returns = equity.pct_change().dropna()
    sharpe = sortino = 0.0
    if len(returns) > 1 and returns.std() > 0:
        scale = np.sqrt(periods_per_year)
        sharpe = safe_divide(returns.mean(), returns.std()) * scale
        downside = returns[returns < 0].std()
        if downside > 0:
            sortino = safe_divide(returns.mean(), downside) * scale

    calmar = safe_divide(total_return_pct, max_dd) if max_dd > 0 else 0.0
    return RiskMetrics(max_dd, float(sharpe), float(sortino), float(calmar))


class Backtester:
    """
    Walk-forward backtesting engine.
    One position at a time; a new signal is only taken while flat.
    """

    def __init__(self, settings: Optional[AppSettings] = None, combiner: Optional[SignalCombiner] = None):
        app = settings or get_settings()
        self.settings = app.backtest
        self.tracker_settings = app.tracker
        self.combiner = combiner or SignalCombiner(app)

    def run(
        self,
        df: pd.DataFrame,
        symbol: str,
        timeframe: str = "5m",
        min_history: int = 50,
    ) -> BacktestResult:
        """
        Run a full backtest on historical data.

        Args:
            df: OHLCV DataFrame with a datetime index
            symbol: Trading symbol
            timeframe: Timeframe label passed to the signal combiner
            min_history: Bars required before the first decision
        """
        if df.empty or len(df) < min_history:
            return self._empty_result(symbol, timeframe)

        capital = self.settings.initial_capital
        size_pct = self.settings.position_size_pct
        slippage = self.settings.slippage_pct
        every = max(1, self.settings.signal_every)

        tracker = SignalTracker(self.tracker_settings)
        open_trade: Optional[TrackedSignal] = None
        entry_price = 0.0
        entry_bar = 0
        signals_generated = 0

        trades: List[Trade] = []
        equity = [capital]

        def close_trade(tracked: TrackedSignal, exit_level: float, bar: int, when, reason: str) -> float:
            direction = tracked.direction
            exit_price = exit_level * (1 - slippage * direction)
            commission = capital * size_pct * self.settings.commission_pct * 2
            pnl = direction * (exit_price - entry_price) / entry_price * capital * size_pct - commission
            pnl_pct = pnl / (capital * size_pct) * 100
            trades.append(Trade(
                entry_time=tracked.opened_at,
                exit_time=when,
                side="BUY" if direction > 0 else "SELL",
                entry_price=entry_price,
                exit_price=exit_price,
                pnl=pnl,
                pnl_pct=pnl_pct,
                confidence=tracked.confidence,
                outcome=tracked.outcome or "OPEN",
                exit_reason=reason,
                bars_held=bar - entry_bar,
                equity_index=min(bar - min_history + 1, len(equity)),
            ))
            return pnl

        for i in range(min_history, len(df)):
            bar = df.iloc[i]
            timestamp = _as_datetime(df.index[i])

            if open_trade is not None:
                tracker.update_range(symbol, float(bar["low"]), float(bar["high"]), timestamp)
                if not open_trade.is_open:
                    if open_trade.status == SignalStatus.EXPIRED:
                        exit_level, reason = float(bar["close"]), "expired"
                    else:
                        exit_level, reason = open_trade.exit_price, open_trade.hit_level
                    capital += close_trade(open_trade, exit_level, i, timestamp, reason)
                    open_trade = None

            elif (i - min_history) % every == 0:
                try:
                    signal = self.combiner.generate_signal(df.iloc[: i + 1], symbol, timeframe)
                except PulseSignalError as e:
                    logger.warning("backtest_signal_failed", symbol=symbol, bar=i, error=str(e))
                    signal = None
                if signal is not None:
                    signals_generated += 1
                    tracked = tracker.track(signal)
                    if tracked is not None:
                        open_trade = tracked
                        entry_price = tracked.entry * (1 + slippage * tracked.direction)
                        entry_bar = i

            equity.append(capital)

        # an open position is closed at the final close
        if open_trade is not None:
            last = len(df) - 1
            capital += close_trade(open_trade, float(df["close"].iloc[-1]), last,
                                   _as_datetime(df.index[-1]), "end_of_data")
            equity[-1] = capital

        equity_series = pd.Series(equity, index=range(len(equity)))
        result = self._compute_metrics(symbol, timeframe, df, capital, trades, equity_series)
        result.signals_generated = signals_generated
        logger.info("backtest_complete", symbol=symbol, trades=result.total_trades,
                    signals=signals_generated, return_pct=round(result.total_return_pct, 2),
                    win_rate=round(result.win_rate, 2))
        return result

    def _compute_metrics(
        self, symbol: str, timeframe: str, df: pd.DataFrame, final_capital: float,
        trades: List[Trade], equity: pd.Series
    ) -> BacktestResult:
        initial = self.settings.initial_capital
        total_return = (final_capital - initial) / initial * 100

        winning = [t for t in trades if t.pnl > 0]
        losing = [t for t in trades if t.pnl <= 0]
        gross_profit = sum(t.pnl for t in winning)
        gross_loss = abs(sum(t.pnl for t in losing)) if losing else 1

        return BacktestResult(
            symbol=symbol,
            timeframe=timeframe,
            start_date=str(df.index[0]),
            end_date=str(df.index[-1]),
            initial_capital=initial,
            final_capital=final_capital,
            total_return_pct=total_return,
            total_trades=len(trades),
            winning_trades=len(winning),
            losing_trades=len(losing),
            win_rate=safe_divide(len(winning), len(trades)) * 100,
            avg_win_pct=float(np.mean([t.pnl_pct for t in winning])) if winning else 0.0,
            avg_loss_pct=float(np.mean([t.pnl_pct for t in losing])) if losing else 0.0,
            profit_factor=safe_divide(gross_profit, gross_loss, 0),
            avg_trade_duration=float(np.mean([t.bars_held for t in trades])) if trades else 0.0,
            risk=risk_metrics(equity, total_return, PERIODS_PER_YEAR.get(timeframe, 252)),
            exit_reasons=dict(Counter(t.exit_reason for t in trades)),
            trades=trades,
            equity_curve=equity,
            drawdown_curve=drawdown_curve(equity),
        )

    def _empty_result(self, symbol: str, timeframe: str) -> BacktestResult:
        capital = self.settings.initial_capital
        return BacktestResult(
            symbol=symbol, timeframe=timeframe, start_date="", end_date="",
            initial_capital=capital, final_capital=capital,
            total_return_pct=0, total_trades=0, winning_trades=0,
            losing_trades=0, win_rate=0, avg_win_pct=0, avg_loss_pct=0,
            profit_factor=0, avg_trade_duration=0,
        )

    @staticmethod
    def plot_equity_curve(result: BacktestResult, save_path: str = "backtest_equity.png") -> str:
        """Equity (with trade exits marked by outcome) over drawdown."""
        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(14, 8), gridspec_kw={"height_ratios": [3, 1]})
        fig.suptitle(f"PULSE SIGNAL Backtest: {result.symbol} {result.timeframe}",
                     fontsize=14, fontweight="bold")

        if result.equity_curve is not None and len(result.equity_curve) > 0:
            values = result.equity_curve.values
            ax1.plot(values, color="#2196F3", linewidth=1.5, label="Equity")
            ax1.axhline(y=result.initial_capital, color="gray", linestyle="--", alpha=0.5, label="Initial Capital")
            for outcome, color in (("WIN", "green"), ("LOSS", "red"), ("EXPIRED", "orange")):
                points = [t.equity_index for t in result.trades
                          if t.outcome == outcome and t.equity_index < len(values)]
                if points:
                    ax1.scatter(points, values[points], color=color, s=18, zorder=3, label=outcome.title())

        ax1.set_ylabel("Capital")
        ax1.legend(loc="upper left")
        ax1.grid(True, alpha=0.3)

        if result.drawdown_curve is not None and len(result.drawdown_curve) > 0:
            ax2.fill_between(range(len(result.drawdown_curve)),
                             0, result.drawdown_curve.values, color="red", alpha=0.3)

        ax2.set_ylabel("Drawdown (%)")
        ax2.set_xlabel("Bar")
        ax2.grid(True, alpha=0.3)

        fig.text(
            0.5, 0.01,
            f"Return: {result.total_return_pct:.1f}% | Trades: {result.total_trades} | "
            f"Win Rate: {result.win_rate:.0f}% | Sharpe: {result.risk.sharpe_ratio:.2f} | "
            f"Max DD: {result.risk.max_drawdown_pct:.1f}%",
            ha="center", fontsize=10, style="italic",
        )

        plt.tight_layout()
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        plt.close(fig)

        logger.info("equity_curve_saved", path=save_path)
        return save_path
