"""
PULSE SIGNAL — Breakout Indicators
Donchian Channel (20), Supertrend (10, 3)
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, last, pct_distance, prev, true_range, wilder,
)


class DonchianChannelIndicator(BaseIndicator):
    """Donchian Channel — highest high and lowest low over a period."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="donchian", params={"period": period},
                         min_history=period, label="Donchian Channel")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        df["dc_upper"] = df["high"].rolling(window=self.period).max()
        df["dc_lower"] = df["low"].rolling(window=self.period).min()
        df["dc_middle"] = (df["dc_upper"] + df["dc_lower"]) / 2.0

        dc_range = df["dc_upper"] - df["dc_lower"]
        df["dc_width"] = dc_range / df["dc_middle"].replace(0, np.nan)
        df["dc_width"] = df["dc_width"].fillna(0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        upper, lower, middle = last(df["dc_upper"]), last(df["dc_lower"]), last(df["dc_middle"])
        prior_upper, prior_lower = prev(df["dc_upper"]), prev(df["dc_lower"])

        builder = SignalScore()
        half = (upper - lower) / 2.0
        if np.isfinite(half) and half > 0:
            builder.position((close - middle) / half, scale=30.0, cap=40.0)
            if np.isfinite(prior_upper) and close > prior_upper:
                builder.crossover(1, 25.0)
            elif np.isfinite(prior_lower) and close < prior_lower:
                builder.crossover(-1, 25.0)
        return {"upper": upper, "middle": middle, "lower": lower}, builder


class SupertrendIndicator(BaseIndicator):
    """Supertrend — ATR trailing band that flips with the trend."""

    category = IndicatorCategory.TREND

    def __init__(self, period: int = 10, multiplier: float = 3.0):
        self.period = period
        self.multiplier = multiplier
        super().__init__(name="supertrend", params={"period": period, "multiplier": multiplier},
                         min_history=period + 2, label="Supertrend")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        hl2 = ((df["high"] + df["low"]) / 2.0).values
        atr = wilder(true_range(df), self.period).values
        close = df["close"].values
        n = len(df)

        upper = np.full(n, np.nan)
        lower = np.full(n, np.nan)
        direction = np.zeros(n)
        for i in range(n):
            if np.isnan(atr[i]):
                continue
            basic_upper = hl2[i] + self.multiplier * atr[i]
            basic_lower = hl2[i] - self.multiplier * atr[i]
            if i == 0 or np.isnan(upper[i - 1]):
                upper[i], lower[i] = basic_upper, basic_lower
                direction[i] = np.sign(close[i] - hl2[i])
                continue
            upper[i] = basic_upper if (basic_upper < upper[i - 1] or close[i - 1] > upper[i - 1]) else upper[i - 1]
            lower[i] = basic_lower if (basic_lower > lower[i - 1] or close[i - 1] < lower[i - 1]) else lower[i - 1]
            if close[i] > upper[i - 1]:
                direction[i] = 1
            elif close[i] < lower[i - 1]:
                direction[i] = -1
            else:
                direction[i] = direction[i - 1]

        line = np.where(direction > 0, lower, np.where(direction < 0, upper, hl2))
        df["supertrend"] = line
        df["supertrend_dir"] = direction
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        direction = int(last(df["supertrend_dir"], 0.0))
        before = int(prev(df["supertrend_dir"], 1, 0.0))
        line = last(df["supertrend"])
        distance = pct_distance(last(df["close"]), line)

        builder = SignalScore()
        if direction != 0:
            builder.add(direction * 20.0, "trend")
            builder.position(abs(distance) * direction, scale=10.0, cap=40.0)
            if before != 0 and before != direction:
                builder.crossover(direction, 40.0)
        return {"supertrend": line, "direction": direction, "distance_pct": distance}, builder
