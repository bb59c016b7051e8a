"""
PULSE SIGNAL — Pattern Indicators
QStick, candlestick patterns, Heikin-Ashi trend
"""
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import BaseIndicator, SignalScore, cross, ema, last, prev, sign


class QStickIndicator(BaseIndicator):
    """QStick — EMA of candle bodies (close - open), as a percent of price."""

    category = IndicatorCategory.PATTERN

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="qstick", params={"period": period}, min_history=period, label="QStick")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["qstick"] = ema(df["close"] - df["open"], self.period)
        df["qstick_pct"] = df["qstick"] / df["close"].replace(0, np.nan) * 100.0
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        qstick, pct = last(df["qstick"]), last(df["qstick_pct"])
        builder = SignalScore()
        direction = cross(df["qstick"], 0.0)
        if direction:
            builder.crossover(direction, 60.0)
        else:
            builder.position(pct, scale=40.0, cap=50.0)
            builder.slope(qstick - prev(df["qstick"], 1, qstick), scale=10.0, cap=10.0)
        return {"qstick": qstick, "qstick_pct": pct}, builder


class CandlestickPatternIndicator(BaseIndicator):
    """Classic reversal and continuation candlestick patterns on the latest bars."""

    category = IndicatorCategory.PATTERN

    def __init__(self, body_ratio: float = 0.5, wick_ratio: float = 2.0):
        self.body_ratio = body_ratio
        self.wick_ratio = wick_ratio
        super().__init__(name="candlestick_patterns", params={
            "body_ratio": body_ratio, "wick_ratio": wick_ratio
        }, min_history=3, label="Candlestick Patterns")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["cs_body"] = df["close"] - df["open"]
        df["cs_range"] = df["high"] - df["low"]
        df["cs_upper_wick"] = df["high"] - df[["open", "close"]].max(axis=1)
        df["cs_lower_wick"] = df[["open", "close"]].min(axis=1) - df["low"]
        return df

    def _detect(self, df: pd.DataFrame) -> List[Tuple[str, float]]:
        tail = df.tail(3)
        o, c = tail["open"].values, tail["close"].values
        body, rng = tail["cs_body"].values, tail["cs_range"].values
        upper, lower = tail["cs_upper_wick"].values, tail["cs_lower_wick"].values

        # zero-range candles carry no pattern information
        if rng[-1] <= 0:
            return []

        found: List[Tuple[str, float]] = []
        b2, b1, b0 = body[-3], body[-2], body[-1]

        if b1 < 0 < b0 and o[-1] <= c[-2] and c[-1] >= o[-2] and abs(b0) > abs(b1):
            found.append(("BULLISH_ENGULFING", 40.0))
        elif b1 > 0 > b0 and o[-1] >= c[-2] and c[-1] <= o[-2] and abs(b0) > abs(b1):
            found.append(("BEARISH_ENGULFING", -40.0))

        small_body = abs(b0) <= 0.35 * rng[-1]
        if small_body and lower[-1] >= self.wick_ratio * max(abs(b0), 1e-12) and upper[-1] <= abs(b0) + 1e-12 and b1 < 0:
            found.append(("HAMMER", 30.0))
        elif small_body and upper[-1] >= self.wick_ratio * max(abs(b0), 1e-12) and lower[-1] <= abs(b0) + 1e-12 and b1 > 0:
            found.append(("SHOOTING_STAR", -30.0))

        if rng[-2] > 0 and abs(b1) <= 0.1 * rng[-2]:
            if b2 < 0 < b0 and c[-1] > (o[-3] + c[-3]) / 2.0:
                found.append(("MORNING_STAR", 45.0))
            elif b2 > 0 > b0 and c[-1] < (o[-3] + c[-3]) / 2.0:
                found.append(("EVENING_STAR", -45.0))

        strong = [rng[i] > 0 and abs(body[i]) >= self.body_ratio * rng[i] for i in range(3)]
        if all(strong):
            if all(b > 0 for b in body) and c[-1] > c[-2] > c[-3] and o[-1] >= o[-2] and o[-2] >= o[-3]:
                found.append(("THREE_WHITE_SOLDIERS", 35.0))
            elif all(b < 0 for b in body) and c[-1] < c[-2] < c[-3] and o[-1] <= o[-2] and o[-2] <= o[-3]:
                found.append(("THREE_BLACK_CROWS", -35.0))
        return found

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        patterns = self._detect(df)
        builder = SignalScore()
        builder.position(sum(weight for _, weight in patterns), cap=60.0)
        return {"patterns": [name for name, _ in patterns]}, builder


class HeikinAshiIndicator(BaseIndicator):
    """Heikin-Ashi trend: run length of same-colour smoothed candles and colour flips."""

    category = IndicatorCategory.PATTERN

    def __init__(self, run_window: int = 5):
        self.run_window = run_window
        super().__init__(name="heikin_ashi", params={"run_window": run_window},
                         min_history=run_window, label="Heikin-Ashi")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        ha_close = ((df["open"] + df["high"] + df["low"] + df["close"]) / 4.0).values
        o, c = df["open"].values, df["close"].values
        ha_open = np.empty(len(df))
        for i in range(len(df)):
            ha_open[i] = (o[0] + c[0]) / 2.0 if i == 0 else (ha_open[i - 1] + ha_close[i - 1]) / 2.0
        df["ha_open"] = ha_open
        df["ha_close"] = ha_close
        df["ha_high"] = np.maximum(df["high"].values, np.maximum(ha_open, ha_close))
        df["ha_low"] = np.minimum(df["low"].values, np.minimum(ha_open, ha_close))
        df["ha_color"] = np.sign(ha_close - ha_open)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        colors = df["ha_color"].tail(self.run_window).values
        color = int(colors[-1])
        run = 0
        for value in colors[::-1]:
            if value != color or value == 0:
                break
            run += 1

        builder = SignalScore()
        if color != 0:
            builder.position(color * run * 8.0, cap=40.0)
            if int(colors[-2]) == -color:
                builder.crossover(color, 30.0)
            # no opposing wick on a strong HA candle
            ha_open, ha_close = last(df["ha_open"]), last(df["ha_close"])
            if color > 0 and last(df["ha_low"]) >= min(ha_open, ha_close):
                builder.alignment(1, 10.0)
            elif color < 0 and last(df["ha_high"]) <= max(ha_open, ha_close):
                builder.alignment(-1, 10.0)
        trend = {1: "BULLISH", -1: "BEARISH"}.get(sign(color), "NEUTRAL")
        return {"ha_open": last(df["ha_open"]), "ha_close": last(df["ha_close"]),
                "trend": trend, "run": run}, builder
