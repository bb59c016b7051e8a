"""
PULSE SIGNAL — Trend Indicators
EMA (9, 20, 50), SMA (20, 50, 200), DEMA, TEMA, HMA, EMA crossover,
EMA ribbon alignment, Parabolic SAR, Mass Index
"""
import math
from abc import abstractmethod
from typing import Any, Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, ema, last, pct_distance, prev, sign, wma,
)


class MovingAverageIndicator(BaseIndicator):
    """Common scoring for single moving averages: price vs average, slope, price cross."""

    category = IndicatorCategory.TREND
    kind = "ma"

    def __init__(self, period: int, min_history: int = None):
        self.period = period
        self.column = f"{self.kind}_{period}"
        super().__init__(
            name=self.column,
            params={"period": period},
            min_history=min_history or period,
            label=f"{self.kind.upper()} {period}",
        )

    @abstractmethod
    def average(self, close: pd.Series) -> pd.Series:
        """Moving average of the close series."""

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df[self.column] = self.average(df["close"])
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        ma = df[self.column]
        value = last(ma)
        distance = pct_distance(last(df["close"]), value)
        slope = pct_distance(value, prev(ma, 3))

        builder = SignalScore()
        builder.position(distance, scale=15.0, cap=50.0)
        builder.slope(slope, scale=20.0, cap=20.0)
        builder.crossover(cross(df["close"], ma), 30.0)
        return {"value": value, "distance_pct": distance, "slope_pct": slope}, builder


class EMAIndicator(MovingAverageIndicator):
    """Exponential Moving Average."""
    kind = "ema"

    def average(self, close: pd.Series) -> pd.Series:
        return ema(close, self.period)


class SMAIndicator(MovingAverageIndicator):
    """Simple Moving Average."""
    kind = "sma"

    def average(self, close: pd.Series) -> pd.Series:
        return close.rolling(window=self.period).mean()


class DEMAIndicator(MovingAverageIndicator):
    """Double EMA — 2·EMA − EMA(EMA), less lag than a plain EMA."""
    kind = "dema"

    def __init__(self, period: int = 20):
        super().__init__(period, min_history=2 * period)

    def average(self, close: pd.Series) -> pd.Series:
        e1 = ema(close, self.period)
        return 2.0 * e1 - ema(e1, self.period)


class TEMAIndicator(MovingAverageIndicator):
    """Triple EMA."""
    kind = "tema"

    def __init__(self, period: int = 20):
        super().__init__(period, min_history=3 * period)

    def average(self, close: pd.Series) -> pd.Series:
        e1 = ema(close, self.period)
        e2 = ema(e1, self.period)
        e3 = ema(e2, self.period)
        return 3.0 * e1 - 3.0 * e2 + e3


class HMAIndicator(MovingAverageIndicator):
    """Hull Moving Average."""
    kind = "hma"

    def __init__(self, period: int = 20):
        super().__init__(period, min_history=period + int(math.sqrt(period)))

    def average(self, close: pd.Series) -> pd.Series:
        half = wma(close, max(self.period // 2, 1))
        full = wma(close, self.period)
        return wma(2.0 * half - full, max(int(math.sqrt(self.period)), 1))


class EMACrossoverIndicator(BaseIndicator):
    """Fast/slow EMA pair: golden and death crosses plus spread."""

    category = IndicatorCategory.TREND

    def __init__(self, fast: int = 12, slow: int = 26):
        self.fast = fast
        self.slow = slow
        super().__init__(
            name="ema_crossover",
            params={"fast": fast, "slow": slow},
            min_history=slow,
            label="EMA Crossover",
        )

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["ema_cross_fast"] = ema(df["close"], self.fast)
        df["ema_cross_slow"] = ema(df["close"], self.slow)
        df["ema_cross_spread"] = df["ema_cross_fast"] - df["ema_cross_slow"]
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        crossed = cross(df["ema_cross_fast"], df["ema_cross_slow"])
        price = last(df["close"])
        spread_pct = pct_distance(last(df["ema_cross_fast"]), last(df["ema_cross_slow"]))
        widening = (last(df["ema_cross_spread"]) - prev(df["ema_cross_spread"], 3)) / price * 100.0

        builder = SignalScore()
        builder.crossover(crossed, 40.0)
        builder.position(spread_pct, scale=20.0, cap=40.0)
        builder.slope(widening, scale=20.0, cap=15.0)

        event = {1: "GOLDEN_CROSS", -1: "DEATH_CROSS"}.get(crossed)
        return {
            "fast": last(df["ema_cross_fast"]),
            "slow": last(df["ema_cross_slow"]),
            "spread_pct": spread_pct,
            "crossover": event,
        }, builder


class EMARibbonIndicator(BaseIndicator):
    """Three EMAs stacked in trend order (alignment)."""

    category = IndicatorCategory.TREND

    def __init__(self, periods: Sequence[int] = (9, 20, 50)):
        self.periods = sorted(periods)
        super().__init__(
            name="ema_ribbon",
            params={"periods": list(self.periods)},
            min_history=max(self.periods),
            label="EMA Ribbon",
        )

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        for period in self.periods:
            df[f"ribbon_{period}"] = ema(df["close"], period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        lines = [last(df[f"ribbon_{p}"]) for p in self.periods]
        close = last(df["close"])
        fast, slowest = lines[0], lines[-1]

        stacked_up = all(a > b for a, b in zip(lines, lines[1:]))
        stacked_down = all(a < b for a, b in zip(lines, lines[1:]))

        builder = SignalScore()
        if stacked_up:
            builder.alignment(1, 40.0 if close > fast else 20.0)
        elif stacked_down:
            builder.alignment(-1, 40.0 if close < fast else 20.0)

        spread = pct_distance(fast, slowest)
        earlier = pct_distance(prev(df[f"ribbon_{self.periods[0]}"], 3),
                               prev(df[f"ribbon_{self.periods[-1]}"], 3))
        builder.position(spread, scale=8.0, cap=30.0)
        builder.slope(spread - earlier, scale=10.0, cap=10.0)

        state = "BULLISH_STACK" if stacked_up else "BEARISH_STACK" if stacked_down else "MIXED"
        values = {f"ema_{p}": v for p, v in zip(self.periods, lines)}
        values.update({"state": state, "spread_pct": spread})
        return values, builder


class ParabolicSARIndicator(BaseIndicator):
    """Parabolic SAR — trailing stop-and-reverse trend follower."""

    category = IndicatorCategory.TREND

    def __init__(self, step: float = 0.02, max_step: float = 0.2):
        self.step = step
        self.max_step = max_step
        super().__init__(
            name="parabolic_sar",
            params={"step": step, "max_step": max_step},
            min_history=5,
            label="Parabolic SAR",
        )

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        high = df["high"].values
        low = df["low"].values
        close = df["close"].values
        n = len(df)

        sar = np.full(n, np.nan)
        trend = np.zeros(n)
        if n >= 2 and np.nanmax(high) > np.nanmin(low):
            bull = close[1] >= close[0]
            sar[0] = low[0] if bull else high[0]
            ep = high[0] if bull else low[0]
            af = self.step
            trend[0] = 1 if bull else -1
            for i in range(1, n):
                value = sar[i - 1] + af * (ep - sar[i - 1])
                if bull:
                    value = min(value, low[i - 1], low[i - 2] if i >= 2 else low[i - 1])
                    if low[i] < value:
                        bull, value, ep, af = False, ep, low[i], self.step
                    elif high[i] > ep:
                        ep, af = high[i], min(af + self.step, self.max_step)
                else:
                    value = max(value, high[i - 1], high[i - 2] if i >= 2 else high[i - 1])
                    if high[i] > value:
                        bull, value, ep, af = True, ep, high[i], self.step
                    elif low[i] < ep:
                        ep, af = low[i], min(af + self.step, self.max_step)
                sar[i] = value
                trend[i] = 1 if bull else -1

        df["psar"] = sar
        df["psar_trend"] = trend
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        trend = int(last(df["psar_trend"], 0.0))
        before = int(prev(df["psar_trend"], 1, 0.0))
        sar = last(df["psar"])

        builder = SignalScore()
        if trend != 0:
            builder.add(trend * 20.0, "trend")
            builder.position(pct_distance(last(df["close"]), sar), scale=10.0, cap=30.0)
            if before != 0 and before != trend:
                builder.crossover(trend, 40.0)
        return {"sar": sar, "trend": trend}, builder


class MassIndexIndicator(BaseIndicator):
    """Mass Index — range-expansion bulge that precedes reversals."""

    category = IndicatorCategory.TREND

    def __init__(self, period: int = 25, ema_period: int = 9):
        self.period = period
        self.ema_period = ema_period
        super().__init__(
            name="mass_index",
            params={"period": period, "ema_period": ema_period},
            min_history=period + 2 * ema_period,
            label="Mass Index",
        )

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        single = ema(df["high"] - df["low"], self.ema_period)
        double = ema(single, self.ema_period)
        ratio = single / double.replace(0, np.nan)
        df["mass_index"] = ratio.rolling(window=self.period).sum()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        mass = df["mass_index"]
        value = last(mass)
        recent_peak = float(mass.tail(10).max()) if mass.notna().any() else float("nan")
        builder = SignalScore()

        bulge = math.isfinite(recent_peak) and recent_peak > 27.0 and value < 26.5
        if bulge:
            trend = ema(df["close"], 9)
            builder.crossover(-sign(last(trend) - prev(trend, 5)), 40.0)
        return {"mass_index": value, "reversal_bulge": bool(bulge)}, builder
