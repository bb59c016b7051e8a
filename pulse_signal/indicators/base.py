"""
PULSE SIGNAL — Base Indicator Interface
All indicators implement calculate() (pandas columns) and score() (normalized
signal). evaluate() ties the two together behind the minimum-history gate.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import math

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory, SignalStrength
from pulse_signal.utils.errors import IndicatorComputationError, InsufficientDataError
from pulse_signal.utils.helpers import clamp, to_jsonable

# Contributions smaller than this never count as a fired component.
_EPSILON = 1e-9


@dataclass
class SignalDescriptor:
    """Normalized signal: sign of score is direction, magnitude is conviction."""
    action: str  # BUY, SELL, HOLD
    score: float  # -100 .. 100
    strength: SignalStrength
    confidence: float  # 0 .. 100
    components: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "score": round(self.score, 2),
            "strength": self.strength.value,
            "confidence": round(self.confidence, 2),
            "components": list(self.components),
        }


@dataclass
class IndicatorResult:
    """Outcome of evaluating one indicator over a candle history."""
    id: str
    label: str
    category: IndicatorCategory
    values: Dict[str, Any]
    signal: SignalDescriptor
    available: bool = True

    @property
    def score(self) -> float:
        return self.signal.score

    @property
    def confidence(self) -> float:
        return self.signal.confidence

    @property
    def strength(self) -> SignalStrength:
        return self.signal.strength

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "category": self.category.value,
            "values": to_jsonable(self.values),
            "signal": self.signal.to_dict(),
            "available": self.available,
        }


class SignalScore:
    """
    Accumulates an indicator's score from the four canonical components:

    crossover  -- line or zero-line cross on the latest bar (large swing)
    position   -- signed distance from a reference level (magnitude scaled)
    slope      -- momentum of the indicator itself (secondary bonus)
    alignment  -- multi-period agreement (alignment bonus)

    Strength and confidence tiers follow from how many components fired and
    how extreme the final magnitude is.
    """

    def __init__(self):
        self.score = 0.0
        self.fired: List[str] = []

    def _add(self, amount: float, component: str) -> "SignalScore":
        if amount is None or not math.isfinite(amount) or abs(amount) < _EPSILON:
            return self
        self.score += amount
        if component not in self.fired:
            self.fired.append(component)
        return self

    def crossover(self, direction: int, magnitude: float = 40.0) -> "SignalScore":
        return self._add(direction * magnitude, "crossover")

    def position(self, value: float, scale: float = 1.0, cap: float = 50.0) -> "SignalScore":
        if value is None or not math.isfinite(value):
            return self
        return self._add(clamp(value * scale, -cap, cap), "position")

    def slope(self, value: float, scale: float = 1.0, cap: float = 15.0) -> "SignalScore":
        if value is None or not math.isfinite(value):
            return self
        return self._add(clamp(value * scale, -cap, cap), "slope")

    def alignment(self, direction: int, bonus: float = 20.0) -> "SignalScore":
        return self._add(direction * bonus, "alignment")

    def add(self, amount: float, component: str) -> "SignalScore":
        """Extra named contribution (reversal, breakout, divergence, ...)."""
        return self._add(amount, component)

    def build(self) -> SignalDescriptor:
        score = round(clamp(self.score, -100.0, 100.0), 4)
        magnitude = abs(score)
        fired = len(self.fired)

        if magnitude >= 80 or (fired >= 3 and magnitude >= 60):
            strength = SignalStrength.VERY_STRONG
        elif magnitude >= 60 or (fired >= 3 and magnitude >= 40):
            strength = SignalStrength.STRONG
        elif magnitude >= 30 or fired >= 2:
            strength = SignalStrength.MODERATE
        else:
            strength = SignalStrength.WEAK

        confidence = 40.0 + 10.0 * fired + min(20.0, magnitude / 5.0)
        if "crossover" in self.fired:
            confidence += 10.0
        confidence = round(clamp(confidence), 4)

        if score >= 10:
            action = "BUY"
        elif score <= -10:
            action = "SELL"
        else:
            action = "HOLD"

        return SignalDescriptor(
            action=action,
            score=score,
            strength=strength,
            confidence=confidence,
            components=list(self.fired),
        )


class BaseIndicator(ABC):
    """Abstract base class for all technical indicators."""

    category: IndicatorCategory = IndicatorCategory.TREND

    def __init__(
        self,
        name: str,
        params: Optional[Dict[str, Any]] = None,
        min_history: int = 1,
        label: Optional[str] = None,
    ):
        self.name = name
        self.params = params or {}
        self.min_history = min_history
        self.label = label or name

    @abstractmethod
    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate indicator values and add columns to the DataFrame.
        Must return the DataFrame with new columns added.
        The input DataFrame has columns: open, high, low, close, volume
        """
        pass

    @abstractmethod
    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        """Read the latest bar of a calculated frame into raw values and a score."""
        pass

    def evaluate(self, data: pd.DataFrame) -> IndicatorResult:
        """
        Evaluate against the full candle history.

        Raises InsufficientDataError below min_history and
        IndicatorComputationError for any failure inside the computation.
        """
        if len(data) < self.min_history:
            raise InsufficientDataError(
                f"{self.name} needs {self.min_history} candles, got {len(data)}"
            )
        try:
            df = self.calculate(data)
            values, builder = self.score(df)
        except Exception as e:
            raise IndicatorComputationError(self.name, str(e)) from e

        return IndicatorResult(
            id=self.name,
            label=self.label,
            category=self.category,
            values=values,
            signal=builder.build(),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name}, params={self.params})"


# ─── Shared series helpers ──────────────────────────────────────

def true_range(df: pd.DataFrame) -> pd.Series:
    prev_close = df["close"].shift(1)
    high_low = df["high"] - df["low"]
    high_close = (df["high"] - prev_close).abs()
    low_close = (df["low"] - prev_close).abs()
    return pd.concat([high_low, high_close, low_close], axis=1).max(axis=1)


def wilder(series: pd.Series, period: int) -> pd.Series:
    """Wilder smoothing (EMA with alpha=1/period)."""
    return series.ewm(alpha=1.0 / period, min_periods=period, adjust=False).mean()


def ema(series: pd.Series, span: int) -> pd.Series:
    return series.ewm(span=span, adjust=False).mean()


def wma(series: pd.Series, period: int) -> pd.Series:
    weights = np.arange(1, period + 1, dtype=float)
    return series.rolling(window=period).apply(
        lambda x: np.dot(x, weights) / weights.sum(), raw=True
    )


def last(series: pd.Series, default: float = float("nan")) -> float:
    """Latest finite value of a series, else default."""
    if len(series) == 0:
        return default
    value = series.iloc[-1]
    try:
        value = float(value)
    except (TypeError, ValueError):
        return default
    return value if math.isfinite(value) else default


def prev(series: pd.Series, bars: int = 1, default: float = float("nan")) -> float:
    """Value `bars` bars before the latest one."""
    if len(series) <= bars:
        return default
    value = float(series.iloc[-1 - bars])
    return value if math.isfinite(value) else default


def cross(fast: pd.Series, slow) -> int:
    """+1 if fast crossed above slow on the latest bar, -1 if below, else 0."""
    if len(fast) < 2:
        return 0
    if isinstance(slow, pd.Series):
        now, before = last(fast) - last(slow), prev(fast) - prev(slow)
    else:
        now, before = last(fast) - slow, prev(fast) - slow
    if not (math.isfinite(now) and math.isfinite(before)):
        return 0
    if before <= 0 < now:
        return 1
    if before >= 0 > now:
        return -1
    return 0


def pct_distance(value: float, reference: float) -> float:
    """Signed percentage distance of value from reference (nan if undefined)."""
    if not (math.isfinite(value) and math.isfinite(reference)) or reference == 0:
        return float("nan")
    return (value - reference) / abs(reference) * 100.0


def sign(value: float, tolerance: float = _EPSILON) -> int:
    if value is None or not math.isfinite(value) or abs(value) <= tolerance:
        return 0
    return 1 if value > 0 else -1


def score_oscillator(
    builder: SignalScore,
    value: float,
    previous: float,
    mid: float,
    upper: float,
    lower: float,
    scale: float,
    cap: float = 50.0,
    reversal: float = 30.0,
    turn_tolerance: float = 0.5,
    midline_cross: int = 0,
) -> SignalScore:
    """
    Trend-following oscillator reading.

    Above the midline is bullish in proportion to distance; an extreme zone only
    counts against the prevailing side once the oscillator turns back out of it.
    """
    if not math.isfinite(value):
        return builder
    builder.position(value - mid, scale=scale, cap=cap)
    if math.isfinite(previous):
        builder.slope(value - previous, scale=scale * 0.5, cap=10.0)
        if value > upper and previous - value > turn_tolerance:
            builder.add(-reversal, "reversal")
        elif value < lower and value - previous > turn_tolerance:
            builder.add(reversal, "reversal")
    if midline_cross:
        builder.crossover(midline_cross, 20.0)
    return builder
