"""
PULSE SIGNAL — Signal Performance Tracker
Follows actionable signals against later prices or candles and records
whether the stop or a target was reached first.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pulse_signal.config.settings import TrackerSettings, get_settings
from pulse_signal.data.models import SignalAction
from pulse_signal.engines.signal_combiner import TradingSignal
from pulse_signal.utils.helpers import safe_divide, utc_now
from pulse_signal.utils.logger import get_logger

logger = get_logger("signal_tracker")


class SignalStatus(str, Enum):
    ACTIVE = "ACTIVE"
    HIT_TARGET = "HIT_TARGET"
    HIT_SL = "HIT_SL"
    EXPIRED = "EXPIRED"


STOP_LOSS = "STOP_LOSS"
TARGET_LEVELS = ("TARGET_3", "TARGET_2", "TARGET_1")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class TrackedSignal:
    """An open (or resolved) actionable signal with its outcome."""
    symbol: str
    timeframe: str
    action: SignalAction
    opened_at: datetime
    entry: float
    stop_loss: float
    target1: float
    target2: float
    target3: float
    confidence: float = 0.0
    status: SignalStatus = SignalStatus.ACTIVE
    hit_level: Optional[str] = None
    exit_price: Optional[float] = None
    exit_time: Optional[datetime] = None
    pnl: float = 0.0
    pnl_pct: float = 0.0

    @classmethod
    def from_signal(cls, signal: TradingSignal) -> "TrackedSignal":
        levels = signal.levels
        return cls(
            symbol=signal.symbol,
            timeframe=signal.timeframe,
            action=signal.action,
            opened_at=signal.timestamp or utc_now(),
            entry=levels.entry,
            stop_loss=levels.stop_loss,
            target1=levels.target1,
            target2=levels.target2,
            target3=levels.target3,
            confidence=signal.confidence,
        )

    @property
    def direction(self) -> int:
        return self.action.direction

    @property
    def is_open(self) -> bool:
        return self.status == SignalStatus.ACTIVE

    @property
    def outcome(self) -> Optional[str]:
        if self.status == SignalStatus.HIT_TARGET:
            return "WIN"
        if self.status == SignalStatus.HIT_SL:
            return "LOSS"
        if self.status == SignalStatus.EXPIRED:
            return "EXPIRED"
        return None

    def level_price(self, level: str) -> float:
        return {
            STOP_LOSS: self.stop_loss,
            "TARGET_1": self.target1,
            "TARGET_2": self.target2,
            "TARGET_3": self.target3,
        }[level]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "action": self.action.value,
            "opened_at": self.opened_at.isoformat(),
            "entry": self.entry,
            "stop_loss": self.stop_loss,
            "targets": [self.target1, self.target2, self.target3],
            "status": self.status.value,
            "outcome": self.outcome,
            "hit_level": self.hit_level,
            "exit_price": self.exit_price,
            "exit_time": self.exit_time.isoformat() if self.exit_time else None,
            "pnl": round(self.pnl, 6),
            "pnl_pct": round(self.pnl_pct, 4),
        }


def hit_level(tracked: TrackedSignal, low: float, high: float) -> Optional[str]:
    """
    Level reached within a [low, high] price range. The stop is checked
    before any target; among targets the furthest one reached wins.
    """
    if tracked.direction > 0:
        if low <= tracked.stop_loss:
            return STOP_LOSS
        for level in TARGET_LEVELS:
            if high >= tracked.level_price(level):
                return level
    elif tracked.direction < 0:
        if high >= tracked.stop_loss:
            return STOP_LOSS
        for level in TARGET_LEVELS:
            if low <= tracked.level_price(level):
                return level
    return None


class SignalTracker:
    """In-memory book of tracked signals with performance statistics."""

    def __init__(self, settings: Optional[TrackerSettings] = None):
        self.settings = settings or get_settings().tracker
        self.signals: List[TrackedSignal] = []

    @property
    def expiry(self) -> timedelta:
        return timedelta(hours=self.settings.expiry_hours)

    def track(self, signal: TradingSignal) -> Optional[TrackedSignal]:
        """Start following an actionable signal; HOLD or level-less signals are ignored."""
        if not signal.is_actionable or signal.levels.risk <= 0:
            return None
        tracked = TrackedSignal.from_signal(signal)
        self.signals.append(tracked)
        logger.debug("signal_tracked", symbol=tracked.symbol, action=tracked.action.value,
                     entry=tracked.entry, stop_loss=tracked.stop_loss)
        return tracked

    def active(self, symbol: Optional[str] = None) -> List[TrackedSignal]:
        return [s for s in self.signals if s.is_open and (symbol is None or s.symbol == symbol)]

    def closed(self, symbol: Optional[str] = None) -> List[TrackedSignal]:
        return [s for s in self.signals if not s.is_open and (symbol is None or s.symbol == symbol)]

    def update_price(self, symbol: str, price: float, timestamp: Optional[datetime] = None) -> List[TrackedSignal]:
        """Check every open signal for `symbol` against a single price."""
        return self.update_range(symbol, price, price, timestamp)

    def update_candle(self, symbol: str, candle: Dict[str, Any], timestamp: Optional[datetime] = None) -> List[TrackedSignal]:
        """Check open signals against a candle's full high/low range."""
        return self.update_range(symbol, float(candle["low"]), float(candle["high"]), timestamp)

    def update_range(
        self,
        symbol: str,
        low: float,
        high: float,
        timestamp: Optional[datetime] = None,
    ) -> List[TrackedSignal]:
        """Resolve open signals whose stop or target lies inside [low, high]; returns the ones that changed."""
        now = _as_utc(timestamp or utc_now())
        changed: List[TrackedSignal] = []
        for tracked in self.active(symbol):
            if now < _as_utc(tracked.opened_at):
                continue
            level = hit_level(tracked, low, high)
            if level is not None:
                self._close(tracked, level, now)
                changed.append(tracked)
            elif now - _as_utc(tracked.opened_at) > self.expiry:
                tracked.status = SignalStatus.EXPIRED
                tracked.exit_time = now
                logger.info("signal_expired", symbol=tracked.symbol, action=tracked.action.value,
                            hours=self.settings.expiry_hours)
                changed.append(tracked)
        return changed

    def _close(self, tracked: TrackedSignal, level: str, when: datetime) -> None:
        exit_price = tracked.level_price(level)
        tracked.status = SignalStatus.HIT_SL if level == STOP_LOSS else SignalStatus.HIT_TARGET
        tracked.hit_level = level
        tracked.exit_price = exit_price
        tracked.exit_time = when
        tracked.pnl = tracked.direction * (exit_price - tracked.entry)
        tracked.pnl_pct = safe_divide(tracked.pnl, tracked.entry) * 100.0
        logger.info("signal_resolved", symbol=tracked.symbol, action=tracked.action.value,
                    outcome=tracked.outcome, hit_level=level, entry=tracked.entry,
                    exit_price=exit_price, pnl=round(tracked.pnl, 4))

    def performance_stats(self, symbol: Optional[str] = None) -> Dict[str, Any]:
        """Win/loss statistics over resolved signals (expired ones excluded)."""
        resolved = [s for s in self.closed(symbol) if s.outcome in ("WIN", "LOSS")]
        wins = [s for s in resolved if s.outcome == "WIN"]
        losses = [s for s in resolved if s.outcome == "LOSS"]
        total_pnl = sum(s.pnl for s in resolved)
        total_pnl_pct = sum(s.pnl_pct for s in resolved)
        count = len(resolved)
        return {
            "total_signals": count,
            "wins": len(wins),
            "losses": len(losses),
            "win_rate": round(safe_divide(len(wins), count) * 100.0, 2),
            "total_pnl": round(total_pnl, 2),
            "avg_pnl": round(safe_divide(total_pnl, count), 2),
            "total_pnl_pct": round(total_pnl_pct, 2),
            "avg_pnl_pct": round(safe_divide(total_pnl_pct, count), 2),
            "target1_hits": sum(1 for s in wins if s.hit_level == "TARGET_1"),
            "target2_hits": sum(1 for s in wins if s.hit_level == "TARGET_2"),
            "target3_hits": sum(1 for s in wins if s.hit_level == "TARGET_3"),
            "expired": sum(1 for s in self.closed(symbol) if s.status == SignalStatus.EXPIRED),
        }
