"""
PULSE SIGNAL — Divergence Detection
Regular divergences between price swings and an oscillator.

Regular Bullish: price makes lower low, oscillator makes higher low -> reversal up
Regular Bearish: price makes higher high, oscillator makes lower high -> reversal down
"""
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd


def find_swings(
    df: pd.DataFrame, lookback: int = 20
) -> Tuple[List[Tuple[int, float]], List[Tuple[int, float]]]:
    """Swing lows and highs as (position, price) pairs."""
    n = max(2, min(5, lookback // 4))
    highs = df["high"].values
    lows = df["low"].values

    swing_lows = []
    swing_highs = []
    for i in range(n, len(df) - n):
        window_low = lows[i - n:i + n + 1]
        window_high = highs[i - n:i + n + 1]
        # strict extremes only, so flat stretches produce no swings
        if lows[i] == np.min(window_low) and np.sum(window_low == lows[i]) == 1:
            swing_lows.append((i, float(lows[i])))
        if highs[i] == np.max(window_high) and np.sum(window_high == highs[i]) == 1:
            swing_highs.append((i, float(highs[i])))
    return swing_lows, swing_highs


def detect_divergence(
    df: pd.DataFrame,
    oscillator: pd.Series,
    lookback: int = 30,
    min_swing_pct: float = 0.1,
) -> Optional[str]:
    """
    Return "BULLISH", "BEARISH" or None for the latest pair of swings inside
    the trailing lookback window.
    """
    window = df.tail(lookback)
    osc = oscillator.tail(lookback).values
    if len(window) < 10:
        return None

    swing_lows, swing_highs = find_swings(window, lookback)

    if len(swing_highs) >= 2:
        (i0, p0), (i1, p1) = swing_highs[-2], swing_highs[-1]
        if p1 > p0 and osc[i1] < osc[i0] and abs(p1 - p0) / p0 * 100 >= min_swing_pct:
            return "BEARISH"
    if len(swing_lows) >= 2:
        (i0, p0), (i1, p1) = swing_lows[-2], swing_lows[-1]
        if p1 < p0 and osc[i1] > osc[i0] and abs(p1 - p0) / p0 * 100 >= min_swing_pct:
            return "BULLISH"
    return None
