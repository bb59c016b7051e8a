"""
PULSE SIGNAL — Volume Indicators
OBV, MFI, Accumulation/Distribution, Chaikin Money Flow, Klinger, PVT,
NVI, PVI, Force Index, Ease of Movement, Relative Volume

Cumulative indices (OBV, A/D, PVT, NVI, PVI) depend on the full history.
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, ema, last, pct_distance, prev, score_oscillator, sign,
)
from pulse_signal.utils.helpers import safe_divide


def close_location_value(df: pd.DataFrame) -> pd.Series:
    """CLV in [-1, 1]; zero for zero-range candles."""
    hl_range = (df["high"] - df["low"]).replace(0, np.nan)
    clv = ((df["close"] - df["low"]) - (df["high"] - df["close"])) / hl_range
    return clv.fillna(0.0)


def _flow_direction(series: pd.Series, normaliser: pd.Series, lookback: int) -> float:
    """Net change of a cumulative flow over lookback bars relative to the gross flow (-1..1)."""
    change = last(series) - prev(series, lookback, float(series.iloc[0]))
    gross = float(normaliser.tail(lookback).abs().sum())
    return safe_divide(change, gross)


class OBVIndicator(BaseIndicator):
    """On-Balance Volume — cumulative volume flow indicator."""

    category = IndicatorCategory.VOLUME

    def __init__(self, lookback: int = 10):
        self.lookback = lookback
        super().__init__(name="obv", params={"lookback": lookback}, min_history=lookback, label="OBV")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        direction = np.where(df["close"] > df["close"].shift(1), 1,
                    np.where(df["close"] < df["close"].shift(1), -1, 0))
        df["obv_flow"] = direction * df["volume"]
        df["obv"] = df["obv_flow"].cumsum()
        df["obv_ema"] = ema(df["obv"], 20)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        flow = _flow_direction(df["obv"], df["volume"], self.lookback)
        builder = SignalScore()
        builder.position(flow * 100.0, scale=0.5, cap=50.0)
        builder.crossover(cross(df["obv"], df["obv_ema"]), 20.0)
        builder.alignment(sign(last(df["obv"]) - last(df["obv_ema"])), 10.0)
        return {"obv": last(df["obv"]), "obv_ema": last(df["obv_ema"]), "flow": flow}, builder


class MFIIndicator(BaseIndicator):
    """Money Flow Index — volume-weighted RSI."""

    category = IndicatorCategory.VOLUME

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="mfi", params={"period": period}, min_history=period + 1, label="MFI")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        typical = (df["high"] + df["low"] + df["close"]) / 3.0
        raw_flow = typical * df["volume"]
        change = typical.diff()
        positive = raw_flow.where(change > 0, 0.0).rolling(self.period).sum()
        negative = raw_flow.where(change < 0, 0.0).rolling(self.period).sum()
        mfi = 100.0 - 100.0 / (1.0 + positive / negative.replace(0, np.nan))
        mfi = mfi.where(negative != 0, np.where(positive > 0, 100.0, 50.0))
        df["mfi"] = mfi.fillna(50.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        mfi = df["mfi"]
        builder = SignalScore()
        score_oscillator(builder, last(mfi), prev(mfi), mid=50.0, upper=80.0, lower=20.0,
                         scale=0.8, cap=40.0, turn_tolerance=2.0)
        return {"mfi": last(mfi)}, builder


class AccumulationDistributionIndicator(BaseIndicator):
    """Accumulation/Distribution line."""

    category = IndicatorCategory.VOLUME

    def __init__(self, lookback: int = 10):
        self.lookback = lookback
        super().__init__(name="ad_line", params={"lookback": lookback},
                         min_history=2, label="A/D Line")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["ad_flow"] = close_location_value(df) * df["volume"]
        df["ad_line"] = df["ad_flow"].cumsum()
        df["ad_ema"] = ema(df["ad_line"], 10)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        flow = _flow_direction(df["ad_line"], df["volume"], self.lookback)
        builder = SignalScore()
        builder.position(flow * 100.0, scale=0.5, cap=50.0)
        builder.crossover(cross(df["ad_line"], df["ad_ema"]), 20.0)
        return {"ad_line": last(df["ad_line"]), "flow": flow}, builder


class ChaikinMoneyFlowIndicator(BaseIndicator):
    """Chaikin Money Flow — measures buying/selling pressure over a period."""

    category = IndicatorCategory.VOLUME

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="cmf", params={"period": period}, min_history=period, label="CMF")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        mf_volume = close_location_value(df) * df["volume"]
        volume_sum = df["volume"].rolling(window=self.period).sum().replace(0, np.nan)
        df["cmf"] = mf_volume.rolling(window=self.period).sum() / volume_sum
        df["cmf"] = df["cmf"].fillna(0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        cmf = df["cmf"]
        builder = SignalScore()
        builder.position(last(cmf) * 100.0, scale=0.6, cap=50.0)
        builder.crossover(cross(cmf, 0.0), 20.0)
        return {"cmf": last(cmf)}, builder


class KlingerOscillator(BaseIndicator):
    """Klinger Volume Oscillator."""

    category = IndicatorCategory.VOLUME

    def __init__(self, fast: int = 34, slow: int = 55, signal: int = 13):
        self.fast = fast
        self.slow = slow
        self.signal_period = signal
        super().__init__(name="klinger", params={"fast": fast, "slow": slow, "signal": signal},
                         min_history=slow + signal, label="Klinger")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        hlc = df["high"] + df["low"] + df["close"]
        trend = np.sign(hlc.diff()).fillna(0.0)
        force = df["volume"] * trend
        df["kvo"] = ema(force, self.fast) - ema(force, self.slow)
        df["kvo_signal"] = ema(df["kvo"], self.signal_period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        kvo, signal = last(df["kvo"]), last(df["kvo_signal"])
        builder = SignalScore()
        builder.crossover(cross(df["kvo"], df["kvo_signal"]), 30.0)
        builder.position(sign(kvo) * 20.0, cap=20.0)
        builder.slope(sign(kvo - signal) * 10.0, cap=10.0)
        return {"kvo": kvo, "signal": signal}, builder


class PVTIndicator(BaseIndicator):
    """Price Volume Trend."""

    category = IndicatorCategory.VOLUME

    def __init__(self, lookback: int = 10):
        self.lookback = lookback
        super().__init__(name="pvt", params={"lookback": lookback}, min_history=2, label="PVT")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        ret = (df["close"] / df["close"].shift(1).replace(0, np.nan) - 1.0).fillna(0.0)
        df["pvt_flow"] = ret * df["volume"]
        df["pvt"] = df["pvt_flow"].cumsum()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        flow = _flow_direction(df["pvt"], df["pvt_flow"], self.lookback)
        builder = SignalScore()
        builder.position(flow * 100.0, scale=0.5, cap=50.0)
        return {"pvt": last(df["pvt"]), "flow": flow}, builder


class VolumeIndexIndicator(BaseIndicator):
    """Negative / Positive Volume Index (which days count is set by `mode`)."""

    category = IndicatorCategory.VOLUME

    def __init__(self, mode: str = "negative", signal: int = 20):
        if mode not in ("negative", "positive"):
            raise ValueError(f"mode must be 'negative' or 'positive', got {mode!r}")
        self.mode = mode
        self.signal_period = signal
        name = "nvi" if mode == "negative" else "pvi"
        super().__init__(name=name, params={"signal": signal}, min_history=2, label=name.upper())

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        ret = (df["close"] / df["close"].shift(1).replace(0, np.nan) - 1.0).fillna(0.0)
        vol_change = df["volume"].diff()
        active = vol_change < 0 if self.mode == "negative" else vol_change > 0
        df[self.name] = 1000.0 * (1.0 + ret.where(active, 0.0)).cumprod()
        df[f"{self.name}_signal"] = ema(df[self.name], self.signal_period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        value, signal = last(df[self.name]), last(df[f"{self.name}_signal"])
        builder = SignalScore()
        builder.position(pct_distance(value, signal), scale=10.0, cap=40.0)
        builder.crossover(cross(df[self.name], df[f"{self.name}_signal"]), 20.0)
        return {"index": value, "signal": signal}, builder


class ForceIndexIndicator(BaseIndicator):
    """Elder Force Index — price change times volume, smoothed."""

    category = IndicatorCategory.VOLUME

    def __init__(self, period: int = 13):
        self.period = period
        super().__init__(name="force_index", params={"period": period},
                         min_history=period + 1, label="Force Index")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        raw = df["close"].diff().fillna(0.0) * df["volume"]
        df["force_index"] = ema(raw, self.period)
        df["force_gross"] = ema(raw.abs(), self.period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        ratio = safe_divide(last(df["force_index"], 0.0), last(df["force_gross"], 0.0))
        builder = SignalScore()
        builder.position(ratio * 100.0, scale=0.5, cap=50.0)
        builder.crossover(cross(df["force_index"], 0.0), 20.0)
        return {"force_index": last(df["force_index"]), "ratio": ratio}, builder


class EaseOfMovementIndicator(BaseIndicator):
    """Ease of Movement — price distance moved per unit of volume."""

    category = IndicatorCategory.VOLUME

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="ease_of_movement", params={"period": period},
                         min_history=period + 1, label="Ease of Movement")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        midpoint = (df["high"] + df["low"]) / 2.0
        box_ratio = df["volume"] / (df["high"] - df["low"]).replace(0, np.nan)
        emv = midpoint.diff() / box_ratio.replace(0, np.nan)
        df["emv"] = emv.rolling(self.period).mean()
        df["emv_scale"] = emv.abs().rolling(self.period).mean()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        value = last(df["emv"])
        ratio = safe_divide(value, last(df["emv_scale"], 0.0)) if np.isfinite(value) else 0.0
        builder = SignalScore()
        builder.position(ratio * 100.0, scale=0.4, cap=40.0)
        return {"emv": value, "ratio": ratio}, builder


class RelativeVolumeIndicator(BaseIndicator):
    """Relative Volume — current volume vs average volume, signed by candle direction."""

    category = IndicatorCategory.VOLUME

    def __init__(self, period: int = 20):
        self.period = period
        super().__init__(name="relative_volume", params={"period": period},
                         min_history=period, label="Relative Volume")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        avg_vol = df["volume"].rolling(window=self.period).mean()
        df["rvol"] = df["volume"] / avg_vol.replace(0, np.nan)
        df["rvol"] = df["rvol"].fillna(1.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        rvol = last(df["rvol"], 1.0)
        candle = sign(last(df["close"]) - last(df["open"]))
        weight = 30.0 if rvol > 1.5 else 10.0 if rvol > 1.0 else 0.0
        builder = SignalScore()
        builder.position(candle * weight, cap=30.0)
        return {"rvol": rvol, "high_volume": rvol > 1.5}, builder
