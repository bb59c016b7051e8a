"""
PULSE SIGNAL — Momentum Indicators
RSI (14, 21), Stochastic Oscillator, CCI, ROC, Momentum, CMO, TSI, RVI
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, ema, last, pct_distance, prev, score_oscillator, wilder,
)
from pulse_signal.indicators.divergence import detect_divergence


class RSIIndicator(BaseIndicator):
    """Relative Strength Index — momentum oscillator measuring speed of price changes."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 14):
        self.period = period
        self.column = f"rsi_{period}"
        super().__init__(name=self.column, params={"period": period},
                         min_history=period + 1, label=f"RSI {period}")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        delta = df["close"].diff()
        gain = delta.where(delta > 0, 0.0)
        loss = (-delta).where(delta < 0, 0.0)

        avg_gain = wilder(gain, self.period)
        avg_loss = wilder(loss, self.period)

        rs = avg_gain / avg_loss.replace(0, np.nan)
        rsi = 100.0 - (100.0 / (1.0 + rs))
        # no losses: 100 when there were gains, neutral when nothing moved
        no_loss = avg_loss == 0
        rsi = rsi.where(~no_loss, np.where(avg_gain > 0, 100.0, 50.0))
        df[self.column] = rsi.fillna(50.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        rsi = df[self.column]
        value = last(rsi)
        divergence = detect_divergence(df, rsi)

        builder = SignalScore()
        score_oscillator(builder, value, prev(rsi), mid=50.0, upper=70.0, lower=30.0,
                         scale=1.0, cap=50.0, midline_cross=cross(rsi, 50.0))
        if divergence == "BULLISH":
            builder.add(20.0, "divergence")
        elif divergence == "BEARISH":
            builder.add(-20.0, "divergence")

        zone = "OVERBOUGHT" if value > 70 else "OVERSOLD" if value < 30 else "NEUTRAL"
        return {"rsi": value, "zone": zone, "divergence": divergence}, builder


class StochasticOscillator(BaseIndicator):
    """Stochastic Oscillator — compares closing price to price range over a period."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, k_period: int = 14, d_period: int = 3):
        self.k_period = k_period
        self.d_period = d_period
        super().__init__(name="stochastic", params={"k_period": k_period, "d_period": d_period},
                         min_history=k_period + d_period, label="Stochastic")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        low_min = df["low"].rolling(window=self.k_period).min()
        high_max = df["high"].rolling(window=self.k_period).max()

        hl_range = high_max - low_min
        hl_range = hl_range.replace(0, np.nan)

        df["stoch_k"] = 100.0 * (df["close"] - low_min) / hl_range
        df["stoch_k"] = df["stoch_k"].fillna(50.0)
        df["stoch_d"] = df["stoch_k"].rolling(window=self.d_period).mean()
        df["stoch_d"] = df["stoch_d"].fillna(50.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        k, d = last(df["stoch_k"]), last(df["stoch_d"])
        builder = SignalScore()
        score_oscillator(builder, k, prev(df["stoch_k"]), mid=50.0, upper=80.0, lower=20.0,
                         scale=0.8, cap=40.0, turn_tolerance=2.0)
        builder.crossover(cross(df["stoch_k"], df["stoch_d"]), 20.0)
        return {"k": k, "d": d}, builder


class CCIIndicator(BaseIndicator):
    """Commodity Channel Index — measures deviation from statistical mean."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="cci", params={"period": period}, min_history=period, label="CCI")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        typical_price = (df["high"] + df["low"] + df["close"]) / 3.0
        sma_tp = typical_price.rolling(window=self.period).mean()
        mean_dev = typical_price.rolling(window=self.period).apply(
            lambda x: np.mean(np.abs(x - x.mean())), raw=True
        )
        mean_dev = mean_dev.replace(0, np.nan)
        df["cci"] = (typical_price - sma_tp) / (0.015 * mean_dev)
        df["cci"] = df["cci"].fillna(0.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        cci = df["cci"]
        builder = SignalScore()
        score_oscillator(builder, last(cci), prev(cci), mid=0.0, upper=100.0, lower=-100.0,
                         scale=0.25, cap=50.0, turn_tolerance=10.0, midline_cross=cross(cci, 0.0))
        return {"cci": last(cci)}, builder


class ROCIndicator(BaseIndicator):
    """Rate of Change (%) over a period."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 12):
        self.period = period
        super().__init__(name="roc", params={"period": period}, min_history=period + 1, label="ROC")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        base = df["close"].shift(self.period).replace(0, np.nan)
        df["roc"] = (df["close"] / base - 1.0) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        roc = df["roc"]
        value = last(roc)
        builder = SignalScore()
        builder.position(value, scale=10.0, cap=50.0)
        builder.slope(value - prev(roc), scale=5.0, cap=10.0)
        builder.crossover(cross(roc, 0.0), 20.0)
        return {"roc": value}, builder


class MomentumIndicator(BaseIndicator):
    """Price momentum: close versus close N bars ago, in percent."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 10):
        self.period = period
        super().__init__(name="momentum", params={"period": period},
                         min_history=period + 1, label="Momentum")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["momentum"] = df["close"] - df["close"].shift(self.period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        value = last(df["momentum"])
        pct = pct_distance(last(df["close"]), prev(df["close"], self.period))
        builder = SignalScore()
        builder.position(pct, scale=10.0, cap=50.0)
        builder.crossover(cross(df["momentum"], 0.0), 20.0)
        return {"momentum": value, "momentum_pct": pct}, builder


class CMOIndicator(BaseIndicator):
    """Chande Momentum Oscillator."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="cmo", params={"period": period}, min_history=period + 1, label="CMO")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        delta = df["close"].diff()
        up = delta.clip(lower=0).rolling(self.period).sum()
        down = (-delta).clip(lower=0).rolling(self.period).sum()
        df["cmo"] = (100.0 * (up - down) / (up + down).replace(0, np.nan)).fillna(0.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        cmo = df["cmo"]
        builder = SignalScore()
        score_oscillator(builder, last(cmo), prev(cmo), mid=0.0, upper=50.0, lower=-50.0,
                         scale=0.5, cap=50.0, turn_tolerance=5.0, midline_cross=cross(cmo, 0.0))
        return {"cmo": last(cmo)}, builder


class TSIIndicator(BaseIndicator):
    """True Strength Index — double-smoothed momentum."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, long: int = 25, short: int = 13, signal: int = 7):
        self.long = long
        self.short = short
        self.signal_period = signal
        super().__init__(name="tsi", params={"long": long, "short": short, "signal": signal},
                         min_history=long + short + signal, label="TSI")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        delta = df["close"].diff().fillna(0.0)
        num = ema(ema(delta, self.long), self.short)
        den = ema(ema(delta.abs(), self.long), self.short)
        df["tsi"] = 100.0 * num / den.replace(0, np.nan)
        df["tsi_signal"] = ema(df["tsi"], self.signal_period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        tsi = last(df["tsi"])
        builder = SignalScore()
        builder.position(tsi, scale=0.5, cap=50.0)
        builder.crossover(cross(df["tsi"], df["tsi_signal"]), 25.0)
        return {"tsi": tsi, "signal": last(df["tsi_signal"])}, builder


class RVIIndicator(BaseIndicator):
    """Relative Vigor Index — close-open strength relative to the range."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 10):
        self.period = period
        super().__init__(name="rvi", params={"period": period}, min_history=period + 3, label="RVI")

    @staticmethod
    def _swma(series: pd.Series) -> pd.Series:
        return (series + 2 * series.shift(1) + 2 * series.shift(2) + series.shift(3)) / 6.0

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        num = self._swma(df["close"] - df["open"]).rolling(self.period).sum()
        den = self._swma(df["high"] - df["low"]).rolling(self.period).sum()
        df["rvi"] = num / den.replace(0, np.nan)
        df["rvi_signal"] = self._swma(df["rvi"])
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        rvi = last(df["rvi"])
        builder = SignalScore()
        builder.position(rvi * 100.0, scale=0.5, cap=40.0)
        builder.crossover(cross(df["rvi"], df["rvi_signal"]), 25.0)
        return {"rvi": rvi, "signal": last(df["rvi_signal"])}, builder
