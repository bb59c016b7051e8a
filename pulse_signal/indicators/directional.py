"""
PULSE SIGNAL — Directional Indicators
ADX (14) with DMI, Aroon (25), Vortex (14)
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, last, prev, sign, true_range, wilder,
)


class ADXIndicator(BaseIndicator):
    """Average Directional Index with +DI/-DI — measures trend strength."""

    category = IndicatorCategory.TREND

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="adx", params={"period": period}, min_history=2 * period, label="ADX")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        tr = true_range(df)

        up_move = df["high"] - df["high"].shift(1)
        down_move = df["low"].shift(1) - df["low"]

        plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0)
        minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0)

        plus_dm = pd.Series(plus_dm, index=df.index)
        minus_dm = pd.Series(minus_dm, index=df.index)

        atr_smooth = wilder(tr, self.period)
        plus_dm_smooth = wilder(plus_dm, self.period)
        minus_dm_smooth = wilder(minus_dm, self.period)

        df["plus_di"] = 100.0 * plus_dm_smooth / atr_smooth.replace(0, np.nan)
        df["minus_di"] = 100.0 * minus_dm_smooth / atr_smooth.replace(0, np.nan)
        df["plus_di"] = df["plus_di"].fillna(0)
        df["minus_di"] = df["minus_di"].fillna(0)

        di_sum = df["plus_di"] + df["minus_di"]
        di_diff = (df["plus_di"] - df["minus_di"]).abs()
        dx = 100.0 * di_diff / di_sum.replace(0, np.nan)
        dx = dx.fillna(0)

        df["adx"] = wilder(dx, self.period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        adx = last(df["adx"], 0.0)
        plus_di = last(df["plus_di"], 0.0)
        minus_di = last(df["minus_di"], 0.0)
        direction = sign(plus_di - minus_di)

        builder = SignalScore()
        builder.crossover(cross(df["plus_di"], df["minus_di"]), 25.0)
        if adx < 20:
            builder.position(plus_di - minus_di, scale=0.5, cap=20.0)
        else:
            builder.position(plus_di - minus_di, scale=1.0, cap=50.0)
            builder.add(direction * min(30.0, adx - 20.0), "strength")
            if adx > prev(df["adx"], 1, adx):
                builder.slope(direction * 10.0, cap=10.0)

        return {"adx": adx, "plus_di": plus_di, "minus_di": minus_di,
                "trending": adx >= 25}, builder


class AroonIndicator(BaseIndicator):
    """Aroon Up/Down — bars since the highest high / lowest low."""

    category = IndicatorCategory.TREND

    def __init__(self, period: int = 25):
        self.period = period
        super().__init__(name="aroon", params={"period": period}, min_history=period + 1, label="Aroon")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        window = self.period + 1
        # argmax/argmin return the first extreme, so a flat window reads 0/0
        since_high = df["high"].rolling(window).apply(lambda x: self.period - np.argmax(x), raw=True)
        since_low = df["low"].rolling(window).apply(lambda x: self.period - np.argmin(x), raw=True)
        df["aroon_up"] = 100.0 * (self.period - since_high) / self.period
        df["aroon_down"] = 100.0 * (self.period - since_low) / self.period
        flat = df["high"].rolling(window).max() == df["low"].rolling(window).min()
        df.loc[flat, ["aroon_up", "aroon_down"]] = 0.0
        df["aroon_osc"] = df["aroon_up"] - df["aroon_down"]
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        builder = SignalScore()
        builder.position(last(df["aroon_osc"]), scale=0.5, cap=50.0)
        builder.crossover(cross(df["aroon_up"], df["aroon_down"]), 30.0)
        return {"up": last(df["aroon_up"]), "down": last(df["aroon_down"]),
                "oscillator": last(df["aroon_osc"])}, builder


class VortexIndicator(BaseIndicator):
    """Vortex Indicator — VI+ versus VI- trend direction."""

    category = IndicatorCategory.TREND

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="vortex", params={"period": period}, min_history=period + 1, label="Vortex")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        vm_plus = (df["high"] - df["low"].shift(1)).abs()
        vm_minus = (df["low"] - df["high"].shift(1)).abs()
        tr_sum = true_range(df).rolling(self.period).sum().replace(0, np.nan)
        df["vi_plus"] = vm_plus.rolling(self.period).sum() / tr_sum
        df["vi_minus"] = vm_minus.rolling(self.period).sum() / tr_sum
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        vi_plus, vi_minus = last(df["vi_plus"]), last(df["vi_minus"])
        builder = SignalScore()
        builder.position((vi_plus - vi_minus) * 100.0, scale=0.5, cap=50.0)
        builder.crossover(cross(df["vi_plus"], df["vi_minus"]), 30.0)
        return {"vi_plus": vi_plus, "vi_minus": vi_minus}, builder
