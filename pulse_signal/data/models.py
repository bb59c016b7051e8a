"""
PULSE SIGNAL — Data Models for Market Data
Canonical data structures and enumerations used across the entire platform.
"""
from pydantic import BaseModel, ConfigDict, model_validator
from typing import Optional, List, Dict, Any, Sequence
from datetime import datetime
from enum import Enum
import pandas as pd

OHLCV_COLUMNS = ["open", "high", "low", "close", "volume"]


class IndicatorCategory(str, Enum):
    TREND = "trend"
    MOMENTUM = "momentum"
    VOLUME = "volume"
    VOLATILITY = "volatility"
    SUPPORT_RESISTANCE = "supportResistance"
    PATTERN = "pattern"


class SignalAction(str, Enum):
    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    HOLD = "HOLD"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"

    @property
    def direction(self) -> int:
        if self in (SignalAction.STRONG_BUY, SignalAction.BUY):
            return 1
        if self in (SignalAction.STRONG_SELL, SignalAction.SELL):
            return -1
        return 0


class SignalStrength(str, Enum):
    VERY_WEAK = "VERY_WEAK"
    WEAK = "WEAK"
    MODERATE = "MODERATE"
    STRONG = "STRONG"
    VERY_STRONG = "VERY_STRONG"


class Regime(str, Enum):
    STRONG_TRENDING = "STRONG_TRENDING"
    WEAK_TRENDING = "WEAK_TRENDING"
    RANGING = "RANGING"
    UNKNOWN = "UNKNOWN"


class VolatilityLevel(str, Enum):
    VERY_LOW = "VERY_LOW"
    LOW = "LOW"
    NORMAL = "NORMAL"
    ELEVATED = "ELEVATED"
    HIGH = "HIGH"
    VERY_HIGH = "VERY_HIGH"


class ReplayStatus(str, Enum):
    STOPPED = "STOPPED"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"


class TickMetadata(BaseModel):
    """Quote details reported by the source alongside the traded price."""
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class Tick(BaseModel):
    """Single price observation. Immutable once ingested."""
    symbol: str
    price: float
    volume: Optional[float] = None
    timestamp: datetime
    metadata: Optional[TickMetadata] = None

    model_config = ConfigDict(frozen=True)


class Candle(BaseModel):
    """Single OHLCV candle keyed by (symbol, timeframe, timestamp)."""
    symbol: str
    timeframe: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    tick_count: int = 0
    first_tick: Optional[datetime] = None
    last_tick: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_range(self) -> "Candle":
        if self.low > min(self.open, self.close) or self.high < max(self.open, self.close):
            raise ValueError(
                f"candle range violated: o={self.open} h={self.high} l={self.low} c={self.close}"
            )
        return self

    @property
    def key(self) -> tuple:
        return (self.symbol, self.timeframe, self.timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "timestamp": self.timestamp.isoformat(),
            "ohlc": {
                "open": self.open,
                "high": self.high,
                "low": self.low,
                "close": self.close,
            },
            "volume": self.volume,
            "tick_count": self.tick_count,
        }


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """Convert a list of candles to the OHLCV DataFrame every indicator reads."""
    if not candles:
        return pd.DataFrame(columns=OHLCV_COLUMNS, dtype=float)
    data = [
        {
            "open": c.open,
            "high": c.high,
            "low": c.low,
            "close": c.close,
            "volume": c.volume,
            "timestamp": c.timestamp,
        }
        for c in candles
    ]
    df = pd.DataFrame(data)
    df.set_index("timestamp", inplace=True)
    df.sort_index(inplace=True, kind="mergesort")
    return df.astype(float)


def frame_to_candles(df: pd.DataFrame, symbol: str, timeframe: str) -> List[Candle]:
    """Inverse of candles_to_frame for frames with a datetime index."""
    return [
        Candle(
            symbol=symbol,
            timeframe=timeframe,
            timestamp=ts.to_pydatetime() if hasattr(ts, "to_pydatetime") else ts,
            open=float(row["open"]),
            high=float(row["high"]),
            low=float(row["low"]),
            close=float(row["close"]),
            volume=float(row["volume"]),
            tick_count=1,
        )
        for ts, row in df[OHLCV_COLUMNS].iterrows()
    ]
