"""
PULSE SIGNAL — Action Threshold Policy
One configurable gate from (total score, confidence) to an action, with
named presets that are kept separate rather than merged.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from pulse_signal.data.models import SignalAction


@dataclass(frozen=True)
class Confirmation:
    """Optional confirmatory reading (e.g. options-chain sentiment)."""
    action: str  # BUY, SELL, HOLD
    score: float
    available: bool = True


@dataclass(frozen=True)
class ThresholdPolicy:
    """
    Non-HOLD actions need confidence >= confidence_floor and directional
    dominance >= dominance_floor. Within that gate |total| >= strong_threshold
    gives STRONG_*, |total| >= base_threshold gives BUY/SELL.
    """
    name: str
    confidence_floor: float
    dominance_floor: float
    strong_threshold: float
    base_threshold: float
    # base threshold overrides when a confirmation input is present
    conflict_base_threshold: Optional[float] = None
    confirm_base_threshold: Optional[float] = None
    conflict_score: float = 30.0

    def required_threshold(self, total_score: float, confirmation: Optional[Confirmation] = None) -> float:
        required = self.base_threshold
        if confirmation is None or not confirmation.available:
            return required

        direction = "BUY" if total_score > 0 else "SELL" if total_score < 0 else "NEUTRAL"
        conflicting = (
            (direction == "BUY" and confirmation.action == "SELL" and confirmation.score < -self.conflict_score)
            or (direction == "SELL" and confirmation.action == "BUY" and confirmation.score > self.conflict_score)
        )
        if conflicting and self.conflict_base_threshold is not None:
            required = self.conflict_base_threshold
        elif confirmation.action == direction and self.confirm_base_threshold is not None:
            required = self.confirm_base_threshold
        return required

    def select_action(
        self,
        total_score: float,
        confidence: float,
        confirmation: Optional[Confirmation] = None,
    ) -> SignalAction:
        if confidence < self.confidence_floor:
            return SignalAction.HOLD
        if dominance(total_score) < self.dominance_floor:
            return SignalAction.HOLD

        required = self.required_threshold(total_score, confirmation)
        if total_score >= required:
            return SignalAction.STRONG_BUY if total_score >= self.strong_threshold else SignalAction.BUY
        if total_score <= -required:
            return SignalAction.STRONG_SELL if total_score <= -self.strong_threshold else SignalAction.SELL
        return SignalAction.HOLD

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def bullish_percentage(total_score: float) -> float:
    """Map total score [-100, 100] onto a bullish share [0, 100]."""
    return (total_score + 100.0) / 2.0


def dominance(total_score: float) -> float:
    """|bullish% - bearish%|"""
    bullish = bullish_percentage(total_score)
    return abs(bullish - (100.0 - bullish))


PRESETS: Dict[str, ThresholdPolicy] = {
    "strict": ThresholdPolicy("strict", 65.0, 30.0, 50.0, 25.0),
    "swing": ThresholdPolicy("swing", 58.0, 12.0, 45.0, 19.0),
    "intraday": ThresholdPolicy("intraday", 54.0, 10.0, 45.0, 15.0),
    "aggressive": ThresholdPolicy(
        "aggressive", 45.0, 3.0, 45.0, 5.0,
        conflict_base_threshold=8.0, confirm_base_threshold=3.0,
    ),
}

DEFAULT_PRESET = "strict"


def get_policy(name: Optional[str] = None) -> ThresholdPolicy:
    """Look up a named preset; raises ValueError for unknown names."""
    key = (name or DEFAULT_PRESET).lower()
    if key not in PRESETS:
        raise ValueError(f"Unknown threshold preset {name!r}; choose from {sorted(PRESETS)}")
    return PRESETS[key]
