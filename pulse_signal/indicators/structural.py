"""
PULSE SIGNAL — Structural Indicators (support / resistance)
Classic pivot points, enhanced S/R zones, demand/supply zones, fair value gaps,
change of character, break of structure, Fibonacci retracement
"""
from typing import Any, Dict, List, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import BaseIndicator, SignalScore, cross, last, pct_distance
from pulse_signal.indicators.divergence import find_swings


def classic_pivots(high: float, low: float, close: float) -> Dict[str, float]:
    """Floor-trader pivots from one reference candle."""
    pivot = (high + low + close) / 3.0
    return {
        "pivot": pivot,
        "r1": 2.0 * pivot - low,
        "r2": pivot + (high - low),
        "r3": high + 2.0 * (pivot - low),
        "s1": 2.0 * pivot - high,
        "s2": pivot - (high - low),
        "s3": low - 2.0 * (high - pivot),
    }


def swing_structure(prices: List[float]) -> int:
    """Count of rising minus falling steps across consecutive swing prices."""
    steps = [np.sign(b - a) for a, b in zip(prices, prices[1:])]
    return int(sum(steps))


class PivotPointsIndicator(BaseIndicator):
    """Classic pivot points computed from the previous candle."""

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self):
        super().__init__(name="pivot_points", min_history=2, label="Pivot Points")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        levels = classic_pivots(df["high"].shift(1), df["low"].shift(1), df["close"].shift(1))
        for key, series in levels.items():
            df[f"pp_{key}"] = series
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        values = {key: last(df[f"pp_{key}"]) for key in ("pivot", "r1", "r2", "r3", "s1", "s2", "s3")}
        width = values["r1"] - values["s1"]

        builder = SignalScore()
        if np.isfinite(width) and width > 0:
            builder.position((close - values["pivot"]) / width * 100.0, scale=0.5, cap=30.0)
            if close > values["r1"]:
                builder.add(20.0, "breakout")
            elif close < values["s1"]:
                builder.add(-20.0, "breakout")
        return values, builder


class EnhancedSRZonesIndicator(BaseIndicator):
    """Support/resistance zones clustered from swing points, scored by proximity and touches."""

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self, lookback: int = 50, tolerance_pct: float = 0.3, proximity_pct: float = 0.5):
        self.lookback = lookback
        self.tolerance_pct = tolerance_pct
        self.proximity_pct = proximity_pct
        super().__init__(name="enhanced_sr", params={
            "lookback": lookback, "tolerance_pct": tolerance_pct, "proximity_pct": proximity_pct
        }, min_history=lookback, label="Enhanced S/R Zones")

    def _cluster(self, prices: List[float]) -> List[Dict[str, float]]:
        zones: List[List[float]] = []
        for price in sorted(prices):
            if zones and abs(price - zones[-1][-1]) / abs(zones[-1][-1]) * 100.0 <= self.tolerance_pct:
                zones[-1].append(price)
            else:
                zones.append([price])
        return [{"level": float(np.mean(z)), "touches": len(z)} for z in zones]

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        window = df.tail(self.lookback)
        close = last(df["close"])
        swing_lows, swing_highs = find_swings(window, 8)
        levels = [p for _, p in swing_lows + swing_highs if p != 0]
        zones = self._cluster(levels)

        supports = sorted((z for z in zones if z["level"] <= close), key=lambda z: -z["level"])[:3]
        resistances = sorted((z for z in zones if z["level"] > close), key=lambda z: z["level"])[:3]

        builder = SignalScore()
        net = 0.0
        for zone in supports:
            distance = pct_distance(close, zone["level"])
            if 0 <= distance <= self.proximity_pct:
                net += (1.0 - distance / self.proximity_pct) * 20.0 + min(zone["touches"], 3) * 10.0
        for zone in resistances:
            distance = -pct_distance(close, zone["level"])
            if 0 <= distance <= self.proximity_pct:
                net -= (1.0 - distance / self.proximity_pct) * 20.0 + min(zone["touches"], 3) * 10.0
        builder.position(net, cap=60.0)

        for zone in zones:
            direction = cross(df["close"], zone["level"])
            if direction:
                builder.crossover(direction, 25.0)
                break

        return {"support_zones": supports, "resistance_zones": resistances}, builder


class DemandSupplyZonesIndicator(BaseIndicator):
    """Demand/supply zones: the base candle before an impulsive move, while unbroken."""

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self, lookback: int = 50, impulse_mult: float = 1.8, near_pct: float = 0.5):
        self.lookback = lookback
        self.impulse_mult = impulse_mult
        self.near_pct = near_pct
        super().__init__(name="demand_supply", params={
            "lookback": lookback, "impulse_mult": impulse_mult, "near_pct": near_pct
        }, min_history=20, label="Demand/Supply Zones")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["ds_body"] = (df["close"] - df["open"]).abs()
        df["ds_avg_body"] = df["ds_body"].rolling(10).mean().shift(1)
        return df

    def _zones(self, df: pd.DataFrame) -> Tuple[List[Dict[str, float]], List[Dict[str, float]]]:
        window = df.tail(self.lookback)
        o, h, l, c = (window[col].values for col in ("open", "high", "low", "close"))
        body, avg_body = window["ds_body"].values, window["ds_avg_body"].values

        demand, supply = [], []
        for i in range(1, len(window)):
            if not np.isfinite(avg_body[i]) or body[i] <= 0 or body[i] <= self.impulse_mult * avg_body[i]:
                continue
            later_closes = c[i + 1:]
            if c[i] > o[i]:
                zone = {"low": float(l[i - 1]), "high": float(max(o[i - 1], c[i - 1]))}
                if not np.any(later_closes < zone["low"]):
                    demand.append(zone)
            else:
                zone = {"low": float(min(o[i - 1], c[i - 1])), "high": float(h[i - 1])}
                if not np.any(later_closes > zone["high"]):
                    supply.append(zone)
        return demand[-5:], supply[-5:]

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        demand, supply = self._zones(df)

        net = 0.0
        for zone in demand:
            if zone["low"] <= close <= zone["high"] * (1.0 + self.near_pct / 100.0):
                net += 35.0
        for zone in supply:
            if zone["low"] * (1.0 - self.near_pct / 100.0) <= close <= zone["high"]:
                net -= 35.0

        builder = SignalScore()
        builder.position(net, cap=70.0)
        return {"demand_zones": demand, "supply_zones": supply}, builder


class FairValueGapIndicator(BaseIndicator):
    """Fair value gaps: three-candle imbalances left unfilled by later price action."""

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self, min_gap_pct: float = 0.1, max_age: int = 50, reach_pct: float = 2.0):
        self.min_gap_pct = min_gap_pct
        self.max_age = max_age
        self.reach_pct = reach_pct
        super().__init__(name="fair_value_gap", params={
            "min_gap_pct": min_gap_pct, "max_age": max_age, "reach_pct": reach_pct
        }, min_history=5, label="Fair Value Gap")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["fvg_bull"] = df["low"] - df["high"].shift(2)
        df["fvg_bear"] = df["low"].shift(2) - df["high"]
        return df

    def _active_gaps(self, df: pd.DataFrame) -> Tuple[List[Dict[str, float]], List[Dict[str, float]]]:
        high, low, close = df["high"].values, df["low"].values, df["close"].values
        n = len(df)
        bullish, bearish = [], []
        for i in range(max(2, n - self.max_age), n):
            if low[i] > high[i - 2] and (low[i] - high[i - 2]) / high[i - 2] * 100.0 > self.min_gap_pct:
                bottom, top = float(high[i - 2]), float(low[i])
                if not np.any(close[i + 1:] < bottom):
                    bullish.append({"bottom": bottom, "top": top,
                                    "size_pct": (top - bottom) / bottom * 100.0})
            if high[i] < low[i - 2] and (low[i - 2] - high[i]) / high[i] * 100.0 > self.min_gap_pct:
                bottom, top = float(high[i]), float(low[i - 2])
                if not np.any(close[i + 1:] > top):
                    bearish.append({"bottom": bottom, "top": top,
                                    "size_pct": (top - bottom) / bottom * 100.0})
        return bullish, bearish

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        close = last(df["close"])
        bullish, bearish = self._active_gaps(df)

        net = 0.0
        # unfilled gaps close below price act as support, above price as resistance
        for gap in bullish:
            distance = pct_distance(close, gap["top"])
            if 0 < distance <= self.reach_pct:
                net += min(gap["size_pct"] * 10.0, 75.0)
        for gap in bearish:
            distance = -pct_distance(close, gap["bottom"])
            if 0 < distance <= self.reach_pct:
                net -= min(gap["size_pct"] * 10.0, 75.0)

        builder = SignalScore()
        builder.position(net, cap=75.0)
        return {"bullish_gaps": bullish[-5:], "bearish_gaps": bearish[-5:]}, builder


class ChangeOfCharacterIndicator(BaseIndicator):
    """
    Change of character: the first break against the prevailing swing structure.

    A downtrend (lower highs and lows) whose latest close clears the last swing
    high is a bullish CHoCH; the mirror is bearish.
    """

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self, lookback: int = 60, recent_bars: int = 3):
        self.lookback = lookback
        self.recent_bars = recent_bars
        super().__init__(name="change_of_character", params={
            "lookback": lookback, "recent_bars": recent_bars
        }, min_history=30, label="Change of Character")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        window = df.tail(self.lookback)
        swing_lows, swing_highs = find_swings(window, 8)
        highs = [p for _, p in swing_highs[-3:]]
        lows = [p for _, p in swing_lows[-3:]]

        structure = "RANGE"
        if len(highs) >= 2 and len(lows) >= 2:
            bias = swing_structure(highs) + swing_structure(lows)
            possible = (len(highs) - 1) + (len(lows) - 1)
            if bias >= 0.66 * possible:
                structure = "UPTREND"
            elif -bias >= 0.66 * possible:
                structure = "DOWNTREND"

        recent = window["close"].tail(self.recent_bars)
        choch = None
        builder = SignalScore()
        if structure == "DOWNTREND" and float(recent.max()) > highs[-1]:
            choch = "BULLISH"
            builder.crossover(1, 60.0)
        elif structure == "UPTREND" and float(recent.min()) < lows[-1]:
            choch = "BEARISH"
            builder.crossover(-1, 60.0)
        return {"structure": structure, "choch": choch}, builder


class BreakOfStructureIndicator(BaseIndicator):
    """Break of structure: trend continuation through the last swing point, volume-confirmed."""

    category = IndicatorCategory.SUPPORT_RESISTANCE

    def __init__(self, lookback: int = 60, recent_bars: int = 5, volume_mult: float = 1.2):
        self.lookback = lookback
        self.recent_bars = recent_bars
        self.volume_mult = volume_mult
        super().__init__(name="break_of_structure", params={
            "lookback": lookback, "recent_bars": recent_bars, "volume_mult": volume_mult
        }, min_history=30, label="Break of Structure")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["bos_avg_volume"] = df["volume"].rolling(20, min_periods=1).mean()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        window = df.tail(self.lookback)
        swing_lows, swing_highs = find_swings(window, 8)
        highs = [p for _, p in swing_highs[-3:]]
        lows = [p for _, p in swing_lows[-3:]]

        trend = "RANGE"
        if len(highs) >= 2 and len(lows) >= 2:
            bias = swing_structure(highs) + swing_structure(lows)
            if bias >= 3:
                trend = "UPTREND"
            elif bias <= -3:
                trend = "DOWNTREND"

        recent = window.tail(self.recent_bars)
        avg_volume = last(df["bos_avg_volume"], 0.0)
        bos = None
        builder = SignalScore()
        if trend == "UPTREND":
            breaks = recent[recent["close"] > highs[-1]]
            if len(breaks):
                bos = "BULLISH"
                builder.crossover(1, 50.0)
                if avg_volume > 0 and float(breaks["volume"].max()) > self.volume_mult * avg_volume:
                    builder.add(15.0, "volume")
            builder.alignment(1, 15.0)
        elif trend == "DOWNTREND":
            breaks = recent[recent["close"] < lows[-1]]
            if len(breaks):
                bos = "BEARISH"
                builder.crossover(-1, 50.0)
                if avg_volume > 0 and float(breaks["volume"].max()) > self.volume_mult * avg_volume:
                    builder.add(-15.0, "volume")
            builder.alignment(-1, 15.0)
        return {"trend": trend, "bos": bos}, builder


class FibonacciRetracementIndicator(BaseIndicator):
    """Fibonacci retracement of the trailing high/low swing."""

    category = IndicatorCategory.SUPPORT_RESISTANCE
    RATIOS = (0.236, 0.382, 0.5, 0.618, 0.786)

    def __init__(self, period: int = 50, tolerance_pct: float = 0.5):
        self.period = period
        self.tolerance_pct = tolerance_pct
        super().__init__(name="fibonacci", params={"period": period, "tolerance_pct": tolerance_pct},
                         min_history=30, label="Fibonacci Retracement")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        window = df.tail(self.period)
        high, low = float(window["high"].max()), float(window["low"].min())
        close = last(df["close"])
        diff = high - low

        builder = SignalScore()
        if not np.isfinite(diff) or diff <= 0:
            return {"high": high, "low": low, "levels": {}, "direction": None}, builder

        # retracements run down from the high after an up-swing, up from the low after a down-swing
        upswing = int(np.argmax(window["high"].values)) >= int(np.argmin(window["low"].values))
        direction = 1 if upswing else -1
        levels = {
            f"level_{round(r * 1000)}": (high - diff * r) if upswing else (low + diff * r)
            for r in self.RATIOS
        }

        for key, weight in (("level_618", 60.0), ("level_500", 45.0), ("level_382", 50.0)):
            if abs(pct_distance(close, levels[key])) < self.tolerance_pct:
                builder.position(direction * weight, cap=60.0)
                break
        return {"high": high, "low": low, "levels": levels,
                "direction": "UP" if upswing else "DOWN"}, builder
