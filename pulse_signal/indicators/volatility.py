"""
PULSE SIGNAL — Volatility Indicators
ATR (14), NATR, Bollinger Bands (20, 2) with bandwidth and %B,
Keltner Channel (20, 1.5 ATR), Ulcer Index, Historical Volatility
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, ema, last, pct_distance, prev, score_oscillator, sign,
    true_range, wilder,
)


class ATRIndicator(BaseIndicator):
    """Average True Range — volatility measure. Scored modestly (|score| <= 30)."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="atr", params={"period": period}, min_history=period + 1, label="ATR")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["atr"] = wilder(true_range(df), self.period)
        df["atr_pct"] = df["atr"] / df["close"].replace(0, np.nan) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        atr = last(df["atr"])
        direction = sign(last(df["close"]) - prev(df["close"], self.period))
        baseline = last(df["atr"].rolling(self.period).mean())
        expanding = atr > baseline * 1.05 if np.isfinite(baseline) else False

        builder = SignalScore()
        builder.position(direction * (20.0 if expanding else 10.0), cap=30.0)
        return {"atr": atr, "atr_pct": last(df["atr_pct"]), "expanding": bool(expanding)}, builder


class NATRIndicator(BaseIndicator):
    """Normalized ATR (percent of price)."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="natr", params={"period": period}, min_history=period, label="NATR")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        atr = wilder(true_range(df), self.period)
        df["natr"] = atr / df["close"].replace(0, np.nan) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        natr = last(df["natr"])
        direction = sign(last(df["close"]) - prev(df["close"], self.period - 1))
        rising = natr > prev(df["natr"], 3, natr)
        builder = SignalScore()
        builder.position(direction * (15.0 if rising else 5.0), cap=15.0)
        return {"natr": natr}, builder


class BollingerBandsIndicator(BaseIndicator):
    """Bollinger Bands — band walk read as trend continuation, re-entry as reversal."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20, std_dev: float = 2.0):
        self.period = period
        self.std_dev = std_dev
        super().__init__(name="bollinger", params={"period": period, "std_dev": std_dev},
                         min_history=period, label="Bollinger Bands")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["bb_middle"] = df["close"].rolling(window=self.period).mean()
        rolling_std = df["close"].rolling(window=self.period).std(ddof=0)
        df["bb_upper"] = df["bb_middle"] + self.std_dev * rolling_std
        df["bb_lower"] = df["bb_middle"] - self.std_dev * rolling_std
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close, middle, upper = last(df["close"]), last(df["bb_middle"]), last(df["bb_upper"])
        half_width = upper - middle
        builder = SignalScore()
        if np.isfinite(half_width) and half_width > 0:
            builder.position((close - middle) / half_width, scale=25.0, cap=40.0)
        builder.slope(pct_distance(middle, prev(df["bb_middle"], 3)), scale=20.0, cap=15.0)
        # back inside the bands after closing outside
        if cross(df["close"], df["bb_upper"]) < 0:
            builder.crossover(-1, 30.0)
        elif cross(df["close"], df["bb_lower"]) > 0:
            builder.crossover(1, 30.0)
        return {"upper": upper, "middle": middle, "lower": last(df["bb_lower"])}, builder


class BBBandwidthIndicator(BaseIndicator):
    """Bollinger bandwidth — squeeze versus expansion, signed by price side of the mean."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20, std_dev: float = 2.0):
        self.period = period
        self.std_dev = std_dev
        super().__init__(name="bb_bandwidth", params={"period": period, "std_dev": std_dev},
                         min_history=period, label="BB Bandwidth")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        middle = df["close"].rolling(window=self.period).mean()
        std = df["close"].rolling(window=self.period).std(ddof=0)
        df["bbw_middle"] = middle
        df["bb_bandwidth"] = 2.0 * self.std_dev * std / middle.replace(0, np.nan) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        bw = df["bb_bandwidth"]
        value = last(bw)
        side = sign(last(df["close"]) - last(df["bbw_middle"]))
        expanding = value > prev(bw, 1, value)
        squeeze = bool(np.isfinite(value) and value <= float(bw.tail(self.period).min()))
        builder = SignalScore()
        builder.position(side * (25.0 if expanding else 10.0), cap=25.0)
        return {"bandwidth": value, "squeeze": squeeze, "expanding": bool(expanding)}, builder


class BBPercentBIndicator(BaseIndicator):
    """Bollinger %B — position of close inside the bands."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20, std_dev: float = 2.0):
        self.period = period
        self.std_dev = std_dev
        super().__init__(name="bb_percent_b", params={"period": period, "std_dev": std_dev},
                         min_history=period, label="BB %B")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        middle = df["close"].rolling(window=self.period).mean()
        std = df["close"].rolling(window=self.period).std(ddof=0)
        width = (2.0 * self.std_dev * std).replace(0, np.nan)
        df["bb_pct_b"] = (df["close"] - (middle - self.std_dev * std)) / width
        df["bb_pct_b"] = df["bb_pct_b"].fillna(0.5)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        pb = df["bb_pct_b"]
        builder = SignalScore()
        score_oscillator(builder, last(pb) * 100.0, prev(pb) * 100.0, mid=50.0, upper=100.0,
                         lower=0.0, scale=0.6, cap=40.0, turn_tolerance=5.0)
        return {"percent_b": last(pb)}, builder


class KeltnerChannelIndicator(BaseIndicator):
    """Keltner Channel — EMA envelope of ATR multiples."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20, atr_mult: float = 1.5):
        self.period = period
        self.atr_mult = atr_mult
        super().__init__(name="keltner", params={"period": period, "atr_mult": atr_mult},
                         min_history=period, label="Keltner Channel")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["kc_middle"] = ema(df["close"], self.period)
        atr = true_range(df).ewm(span=self.period, adjust=False).mean()
        df["kc_upper"] = df["kc_middle"] + self.atr_mult * atr
        df["kc_lower"] = df["kc_middle"] - self.atr_mult * atr
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        middle, upper, lower = last(df["kc_middle"]), last(df["kc_upper"]), last(df["kc_lower"])
        half_width = upper - middle
        builder = SignalScore()
        if np.isfinite(half_width) and half_width > 0:
            builder.position((close - middle) / half_width, scale=25.0, cap=40.0)
        if close > upper:
            builder.add(20.0, "breakout")
        elif close < lower:
            builder.add(-20.0, "breakout")
        builder.slope(sign(middle - prev(df["kc_middle"])) * 10.0, cap=10.0)
        return {"upper": upper, "middle": middle, "lower": lower}, builder


class UlcerIndexIndicator(BaseIndicator):
    """Ulcer Index — depth and duration of drawdowns from the rolling high."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="ulcer_index", params={"period": period},
                         min_history=period, label="Ulcer Index")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        peak = df["close"].rolling(self.period, min_periods=1).max()
        drawdown = (df["close"] - peak) / peak.replace(0, np.nan) * 100.0
        df["ulcer_index"] = np.sqrt((drawdown ** 2).rolling(self.period).mean())
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        ui = last(df["ulcer_index"])
        side = sign(last(df["close"]) - last(df["close"].rolling(self.period).mean()))
        calm = max(0.0, 20.0 - ui * 5.0) if np.isfinite(ui) else 0.0
        builder = SignalScore()
        builder.position(side * calm, cap=20.0)
        return {"ulcer_index": ui}, builder


class HistoricalVolatilityIndicator(BaseIndicator):
    """Close-to-close historical volatility (stdev of log returns, percent)."""

    category = IndicatorCategory.VOLATILITY

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="historical_volatility", params={"period": period},
                         min_history=period + 1, label="Historical Volatility")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        log_ret = np.log(df["close"] / df["close"].shift(1))
        df["hv"] = log_ret.rolling(self.period).std(ddof=0) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        hv = last(df["hv"])
        direction = sign(last(df["close"]) - prev(df["close"], self.period))
        rising = hv > prev(df["hv"], 5, hv) * 1.05
        builder = SignalScore()
        builder.position(direction * (15.0 if rising else 5.0), cap=15.0)
        return {"hv": hv, "rising": bool(rising)}, builder
