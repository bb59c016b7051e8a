"""
PULSE SIGNAL — Trade Level Calculator
Entry / stop-loss / three targets from price structure (pivots, swings) or
fixed percentage offsets, selected by configuration.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd

from pulse_signal.config.settings import LevelSettings, get_settings
from pulse_signal.data.models import SignalAction
from pulse_signal.utils.helpers import is_number
from pulse_signal.utils.logger import get_logger

logger = get_logger("level_calculator")


def stop_floor(price: float) -> float:
    """Smallest stop distance ever returned for a non-HOLD action."""
    return max(abs(price) * 1e-6, 1e-8)


@dataclass
class TradeLevels:
    """Computed entry, stop-loss and target levels."""
    entry: float
    stop_loss: float
    target1: float
    target2: float
    target3: float
    risk_reward: float
    method: str = "none"
    reasoning: List[str] = field(default_factory=list)
    supports: List[float] = field(default_factory=list)
    resistances: List[float] = field(default_factory=list)

    @classmethod
    def zero(cls) -> "TradeLevels":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @property
    def risk(self) -> float:
        return abs(self.entry - self.stop_loss)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry": round(self.entry, 6),
            "stop_loss": round(self.stop_loss, 6),
            "target1": round(self.target1, 6),
            "target2": round(self.target2, 6),
            "target3": round(self.target3, 6),
            "risk_reward": round(self.risk_reward, 2),
            "method": self.method,
            "reasoning": list(self.reasoning),
            "supports": [round(s, 6) for s in self.supports],
            "resistances": [round(r, 6) for r in self.resistances],
        }


def build_levels(
    price: float,
    direction: int,
    stop: float,
    targets: List[float],
    method: str,
    reasoning: List[str],
    supports: Optional[List[float]] = None,
    resistances: Optional[List[float]] = None,
) -> TradeLevels:
    """Assemble levels, enforcing a non-zero stop distance before computing R:R."""
    floor = stop_floor(price)
    if direction * (price - stop) < floor:
        stop = price - direction * floor
    risk = abs(price - stop)
    reward = abs(targets[0] - price)
    return TradeLevels(
        entry=price,
        stop_loss=stop,
        target1=targets[0],
        target2=targets[1],
        target3=targets[2],
        risk_reward=reward / risk,
        method=method,
        reasoning=reasoning,
        supports=supports or [],
        resistances=resistances or [],
    )


class LevelStrategy(ABC):
    """One way of turning (history, direction, price) into trade levels."""

    name: str = "base"

    def __init__(self, settings: LevelSettings):
        self.settings = settings

    @abstractmethod
    def compute(
        self,
        df: pd.DataFrame,
        direction: int,
        price: float,
        pivots: Optional[Dict[str, Any]] = None,
        symbol: Optional[str] = None,
    ) -> TradeLevels:
        pass


class FixedPercentStrategy(LevelStrategy):
    """Stop and targets as fixed percentage offsets of current price."""

    name = "fixed_percent"

    def compute(self, df, direction, price, pivots=None, symbol=None) -> TradeLevels:
        s = self.settings
        stop = price * (1.0 - direction * s.fixed_stop_pct / 100.0)
        targets = [price * (1.0 + direction * pct / 100.0) for pct in s.fixed_target_pcts[:3]]
        reasoning = [
            f"Stop {s.fixed_stop_pct:g}% from entry",
            "Targets at " + ", ".join(f"{pct:g}%" for pct in s.fixed_target_pcts[:3]),
        ]
        return build_levels(price, direction, stop, targets, self.name, reasoning)


class StructureStrategy(LevelStrategy):
    """
    Stop just beyond the nearest valid pivot support/resistance, else beyond
    the recent swing extreme, else at the minimum stop distance. Targets are
    risk multiples of the realised stop distance.
    """

    name = "structure"

    def min_stop(self, price: float, symbol: Optional[str]) -> float:
        points = self.settings.min_stop_points.get(symbol) if symbol else None
        distance = float(points) if points else abs(price) * self.settings.min_stop_pct / 100.0
        return max(distance, stop_floor(price))

    @staticmethod
    def _pivot_levels(pivots: Optional[Dict[str, Any]], keys) -> List[float]:
        if not pivots:
            return []
        return [float(pivots[k]) for k in keys if is_number(pivots.get(k))]

    def compute(self, df, direction, price, pivots=None, symbol=None) -> TradeLevels:
        s = self.settings
        min_stop = self.min_stop(price, symbol)
        max_stop = min_stop * s.pivot_max_stop_multiple
        buffer = min_stop * s.stop_buffer_ratio
        recent = df.tail(s.swing_lookback)
        swing_low = float(recent["low"].min()) if len(recent) else price
        swing_high = float(recent["high"].max()) if len(recent) else price

        pivot_supports = sorted((p for p in self._pivot_levels(pivots, ("s1", "s2", "s3")) if p < price),
                                reverse=True)
        pivot_resistances = sorted(p for p in self._pivot_levels(pivots, ("r1", "r2", "r3")) if p > price)
        supports = pivot_supports + ([swing_low] if swing_low < price else [])
        resistances = pivot_resistances + ([swing_high] if swing_high > price else [])

        reasoning: List[str] = []
        if direction > 0:
            candidates, swing = pivot_supports, swing_low
        else:
            candidates, swing = pivot_resistances, swing_high

        anchor = next((p for p in candidates if min_stop <= abs(price - p) <= max_stop), None)
        if anchor is not None:
            stop = anchor - direction * buffer
            reasoning.append(f"Stop beyond pivot {'support' if direction > 0 else 'resistance'} {anchor:.2f}")
        elif direction * (price - swing) >= min_stop:
            stop = swing - direction * buffer
            reasoning.append(f"Stop beyond {s.swing_lookback}-candle swing "
                             f"{'low' if direction > 0 else 'high'} {swing:.2f}")
        else:
            stop = price - direction * min_stop
            reasoning.append(f"No structure within range; minimum stop {min_stop:.2f}")

        risk = max(abs(price - stop), stop_floor(price))
        targets = [price + direction * m * risk for m in s.target_multiples[:3]]
        reasoning.append("Targets at " + ", ".join(f"{m:g}R" for m in s.target_multiples[:3]))
        return build_levels(price, direction, stop, targets, self.name, reasoning, supports, resistances)


STRATEGIES = {
    StructureStrategy.name: StructureStrategy,
    FixedPercentStrategy.name: FixedPercentStrategy,
}


class LevelCalculator:
    """Dispatches to the configured level strategy; HOLD yields all-zero levels."""

    def __init__(self, settings: Optional[LevelSettings] = None, mode: Optional[str] = None):
        self.settings = settings or get_settings().levels
        self.mode = mode or self.settings.mode
        if self.mode not in STRATEGIES:
            raise ValueError(f"Unknown level mode {self.mode!r}; choose from {sorted(STRATEGIES)}")
        self.strategy: LevelStrategy = STRATEGIES[self.mode](self.settings)

    def compute_levels(
        self,
        df: pd.DataFrame,
        action: SignalAction,
        current_price: float,
        pivots: Optional[Dict[str, Any]] = None,
        symbol: Optional[str] = None,
    ) -> TradeLevels:
        direction = action.direction
        if direction == 0 or not is_number(current_price):
            return TradeLevels.zero()
        levels = self.strategy.compute(df, direction, float(current_price), pivots, symbol)
        logger.debug("levels_computed", action=action.value, method=levels.method,
                     entry=levels.entry, stop_loss=levels.stop_loss, rr=round(levels.risk_reward, 2))
        return levels
