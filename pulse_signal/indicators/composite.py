"""
PULSE SIGNAL — Composite Indicators
Ichimoku Cloud, VWAP (anchored)
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import BaseIndicator, SignalScore, cross, last, pct_distance


class IchimokuIndicator(BaseIndicator):
    """Ichimoku Cloud — comprehensive trend, support/resistance, and momentum system."""

    category = IndicatorCategory.TREND

    def __init__(self, tenkan: int = 9, kijun: int = 26, senkou_b: int = 52):
        self.tenkan = tenkan
        self.kijun = kijun
        self.senkou_b = senkou_b
        super().__init__(name="ichimoku", params={
            "tenkan": tenkan, "kijun": kijun, "senkou_b": senkou_b
        }, min_history=senkou_b, label="Ichimoku Cloud")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        # Tenkan-sen (Conversion Line)
        tenkan_high = df["high"].rolling(window=self.tenkan).max()
        tenkan_low = df["low"].rolling(window=self.tenkan).min()
        df["ichi_tenkan"] = (tenkan_high + tenkan_low) / 2.0

        # Kijun-sen (Base Line)
        kijun_high = df["high"].rolling(window=self.kijun).max()
        kijun_low = df["low"].rolling(window=self.kijun).min()
        df["ichi_kijun"] = (kijun_high + kijun_low) / 2.0

        # Senkou spans as they stand today (the forward shift only matters for plotting)
        df["ichi_senkou_a"] = (df["ichi_tenkan"] + df["ichi_kijun"]) / 2.0
        senkou_b_high = df["high"].rolling(window=self.senkou_b).max()
        senkou_b_low = df["low"].rolling(window=self.senkou_b).min()
        df["ichi_senkou_b"] = (senkou_b_high + senkou_b_low) / 2.0

        df["ichi_cloud_top"] = df[["ichi_senkou_a", "ichi_senkou_b"]].max(axis=1)
        df["ichi_cloud_bottom"] = df[["ichi_senkou_a", "ichi_senkou_b"]].min(axis=1)

        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        tenkan, kijun = last(df["ichi_tenkan"]), last(df["ichi_kijun"])
        span_a, span_b = last(df["ichi_senkou_a"]), last(df["ichi_senkou_b"])
        top, bottom = last(df["ichi_cloud_top"]), last(df["ichi_cloud_bottom"])

        builder = SignalScore()
        if close > top:
            cloud = "ABOVE"
            builder.position(30.0 + min(10.0, pct_distance(close, top) * 5.0), cap=40.0)
        elif close < bottom:
            cloud = "BELOW"
            builder.position(-30.0 - min(10.0, abs(pct_distance(close, bottom)) * 5.0), cap=40.0)
        else:
            cloud = "INSIDE"

        builder.crossover(cross(df["ichi_tenkan"], df["ichi_kijun"]), 25.0)
        if tenkan > kijun:
            builder.alignment(1, 15.0)
        elif tenkan < kijun:
            builder.alignment(-1, 15.0)
        if span_a > span_b:
            builder.add(10.0, "cloud")
        elif span_a < span_b:
            builder.add(-10.0, "cloud")

        return {
            "tenkan": tenkan,
            "kijun": kijun,
            "senkou_a": span_a,
            "senkou_b": span_b,
            "cloud_position": cloud,
        }, builder


class VWAPIndicator(BaseIndicator):
    """Volume Weighted Average Price — anchored to the first candle of the history."""

    category = IndicatorCategory.VOLUME

    def __init__(self):
        super().__init__(name="vwap", min_history=2, label="VWAP")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        typical_price = (df["high"] + df["low"] + df["close"]) / 3.0
        tp_volume = typical_price * df["volume"]

        # Cumulative VWAP (anchored to start of data)
        cum_tp_vol = tp_volume.cumsum()
        cum_vol = df["volume"].cumsum()

        df["vwap"] = cum_tp_vol / cum_vol.replace(0, np.nan)
        df["vwap"] = df["vwap"].fillna(df["close"])

        # VWAP standard deviation bands
        vwap_var = ((typical_price - df["vwap"]) ** 2 * df["volume"]).cumsum() / cum_vol.replace(0, np.nan)
        vwap_std = np.sqrt(vwap_var.fillna(0))

        df["vwap_upper_1"] = df["vwap"] + vwap_std
        df["vwap_lower_1"] = df["vwap"] - vwap_std

        # Distance from VWAP as percentage
        df["vwap_distance_pct"] = ((df["close"] - df["vwap"]) / df["vwap"].replace(0, np.nan)) * 100.0
        df["vwap_distance_pct"] = df["vwap_distance_pct"].fillna(0)

        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        distance = last(df["vwap_distance_pct"], 0.0)
        builder = SignalScore()
        builder.position(distance, scale=10.0, cap=50.0)
        builder.crossover(cross(df["close"], df["vwap"]), 25.0)
        if last(df["close"]) > last(df["vwap_upper_1"]):
            builder.add(10.0, "band")
        elif last(df["close"]) < last(df["vwap_lower_1"]):
            builder.add(-10.0, "band")
        return {
            "vwap": last(df["vwap"]),
            "upper": last(df["vwap_upper_1"]),
            "lower": last(df["vwap_lower_1"]),
            "distance_pct": distance,
        }, builder
