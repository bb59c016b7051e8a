"""
PULSE SIGNAL — Synthetic Options Confirmation
Options-chain sentiment estimated from candle price action and volume, for
use as the signal combiner's confirmation input when no live chain is
available. The reading is a proxy: put/call activity is inferred from the
direction of recent closes and whether volume is expanding or drying up.
"""
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from pulse_signal.engines.thresholds import Confirmation
from pulse_signal.indicators.base import IndicatorResult
from pulse_signal.utils.helpers import clamp
from pulse_signal.utils.logger import get_logger

logger = get_logger("confirmation")

LOOKBACK = 20
RECENT = 5
OI_SCALE = 100000.0
STRONG_OI = 300000.0


@dataclass(frozen=True)
class SyntheticOptionsReading:
    direction: str  # STRONG_BULLISH, BULLISH, NEUTRAL, BEARISH, STRONG_BEARISH
    change5_pct: float
    change10_pct: float
    volume_ratio: float
    pcr: float
    call_oi: float
    put_oi: float

    @property
    def net_oi(self) -> float:
        return self.put_oi - self.call_oi

    @property
    def action(self) -> str:
        if self.net_oi > 0:
            return "BUY"
        if self.net_oi < 0:
            return "SELL"
        return "HOLD"

    @property
    def score(self) -> float:
        return clamp(self.net_oi / OI_SCALE * 50.0, -100.0, 100.0)

    @property
    def strength(self) -> str:
        return "STRONG" if abs(self.net_oi) > STRONG_OI else "MODERATE"

    @property
    def volume_state(self) -> str:
        if self.volume_ratio > 1.2:
            return "high"
        if self.volume_ratio < 0.8:
            return "low"
        return "normal"

    def interpretation(self) -> str:
        lines = []
        if self.pcr > 1.2:
            lines.append(f"Synthetic PCR {self.pcr:.2f} indicates bullish sentiment")
        elif self.pcr < 0.8:
            lines.append(f"Synthetic PCR {self.pcr:.2f} indicates bearish sentiment")
        else:
            lines.append(f"Synthetic PCR {self.pcr:.2f} shows neutral options activity")

        if self.net_oi > OI_SCALE:
            lines.append(f"Put activity dominates by {self.net_oi:,.0f} - BULLISH")
        elif self.net_oi < -OI_SCALE:
            lines.append(f"Call activity dominates by {abs(self.net_oi):,.0f} - BEARISH")
        else:
            lines.append("Balanced options activity")

        lines.append(f"Price {self.direction.lower().replace('_', ' ')} with {self.volume_state} volume")
        return ". ".join(lines)


def price_direction(change5: float) -> str:
    if change5 > 0.005:
        return "STRONG_BULLISH"
    if change5 > 0.002:
        return "BULLISH"
    if change5 < -0.005:
        return "STRONG_BEARISH"
    if change5 < -0.002:
        return "BEARISH"
    return "NEUTRAL"


def synthetic_pcr(direction: str, volume_ratio: float) -> float:
    """
    Put/call ratio implied by price direction and volume.

    Rising on expanding volume reads as call buying (low PCR); rising on
    thin volume as put writing (high PCR). Falling mirrors both.
    """
    increasing = volume_ratio > 1.2
    decreasing = volume_ratio < 0.8
    if "BULLISH" in direction:
        if increasing:
            return 0.75
        if decreasing:
            return 1.25
    elif "BEARISH" in direction:
        if increasing:
            return 1.35
        if decreasing:
            return 0.80
    return 1.0


def synthetic_options_reading(df: pd.DataFrame) -> Optional[SyntheticOptionsReading]:
    """Estimate options sentiment from the last 20 candles; None on shorter history."""
    if df is None or len(df) < LOOKBACK:
        return None

    recent = df.tail(LOOKBACK)
    close = recent["close"].astype(float)
    volume = recent["volume"].astype(float).fillna(0.0)

    change5 = (close.iloc[-1] - close.iloc[-RECENT]) / close.iloc[-RECENT]
    change10 = (close.iloc[-1] - close.iloc[-10]) / close.iloc[-10]
    direction = price_direction(change5)

    avg_volume = volume.mean()
    recent_volume = volume.tail(RECENT)
    if avg_volume > 0:
        volume_ratio = recent_volume.mean() / avg_volume
        # summed, not averaged: OI estimates scale with the whole recent window
        multiplier = recent_volume.sum() / avg_volume
    else:
        volume_ratio = 1.0
        multiplier = 0.0

    base = avg_volume * multiplier
    if "BULLISH" in direction:
        call_oi, put_oi = round(base * 0.6), round(base * 1.2)
    elif "BEARISH" in direction:
        call_oi, put_oi = round(base * 1.2), round(base * 0.6)
    else:
        call_oi = put_oi = round(base * 0.5)

    return SyntheticOptionsReading(
        direction=direction,
        change5_pct=float(change5 * 100.0),
        change10_pct=float(change10 * 100.0),
        volume_ratio=float(volume_ratio),
        pcr=synthetic_pcr(direction, volume_ratio),
        call_oi=float(call_oi),
        put_oi=float(put_oi),
    )


def synthetic_options_confirmation(
    symbol: str,
    df: pd.DataFrame,
    results: List[IndicatorResult],
) -> Confirmation:
    """
    Confirmation provider for SignalCombiner.

    The action follows the sign of the net synthetic OI (put minus call) and
    the score scales it onto [-100, 100]. Histories shorter than 20 candles
    give an unavailable confirmation, which the threshold policy ignores.
    """
    reading = synthetic_options_reading(df)
    if reading is None:
        return Confirmation(action="HOLD", score=0.0, available=False)

    logger.debug(
        "synthetic_options",
        symbol=symbol,
        action=reading.action,
        score=round(reading.score, 2),
        pcr=reading.pcr,
        strength=reading.strength,
    )
    return Confirmation(action=reading.action, score=reading.score)
