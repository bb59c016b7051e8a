"""
PULSE SIGNAL — Tick to Candle Aggregation
Groups raw ticks into timeframe-aligned OHLCV candles. A pure function of its
input: the same ticks always produce identical candles, so re-aggregation is an
idempotent upsert keyed by (symbol, timeframe, timestamp).
"""
import pandas as pd
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from pulse_signal.config.settings import AggregatorSettings, get_settings
from pulse_signal.data.models import Candle, Tick


class CandleAggregator:
    """Tick -> candle aggregation for the configured timeframes."""

    def __init__(self, settings: Optional[AggregatorSettings] = None):
        settings = settings or get_settings().aggregator
        self.timeframes: Dict[str, int] = dict(settings.timeframes)

    def minutes(self, timeframe: str) -> int:
        if timeframe not in self.timeframes:
            raise ValueError(
                f"Unsupported timeframe {timeframe!r}; expected one of {sorted(self.timeframes)}"
            )
        return self.timeframes[timeframe]

    def bucket_start(self, timestamp: datetime, timeframe: str) -> datetime:
        """Floor a timestamp to the start of its timeframe bucket."""
        minutes = self.minutes(timeframe)
        if minutes >= 1440:
            return timestamp.replace(hour=0, minute=0, second=0, microsecond=0)
        if minutes >= 60:
            hours = minutes // 60
            return timestamp.replace(
                hour=(timestamp.hour // hours) * hours, minute=0, second=0, microsecond=0
            )
        return timestamp.replace(
            minute=(timestamp.minute // minutes) * minutes, second=0, microsecond=0
        )

    def aggregate(self, ticks: Sequence[Tick], timeframe: str) -> List[Candle]:
        """
        Build candles from ticks.

        Ticks are ordered by timestamp (ties keep input order) before bucketing, so
        open/close are the chronologically first/last prices of each bucket.
        """
        self.minutes(timeframe)
        if not ticks:
            return []

        rows = [
            {
                "seq": i,
                "symbol": t.symbol,
                "bucket": self.bucket_start(t.timestamp, timeframe),
                "timestamp": t.timestamp,
                "price": float(t.price),
                "volume": float(t.volume or 0.0),
            }
            for i, t in enumerate(ticks)
        ]
        df = pd.DataFrame(rows).sort_values(["timestamp", "seq"], kind="mergesort")

        grouped = df.groupby(["symbol", "bucket"], sort=True).agg(
            open=("price", "first"),
            high=("price", "max"),
            low=("price", "min"),
            close=("price", "last"),
            volume=("volume", "sum"),
            tick_count=("price", "size"),
            first_tick=("timestamp", "first"),
            last_tick=("timestamp", "last"),
        )

        candles = []
        for (symbol, bucket), row in grouped.iterrows():
            candles.append(Candle(
                symbol=symbol,
                timeframe=timeframe,
                timestamp=_as_datetime(bucket),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row["volume"]),
                tick_count=int(row["tick_count"]),
                first_tick=_as_datetime(row["first_tick"]),
                last_tick=_as_datetime(row["last_tick"]),
            ))
        return candles

    def aggregate_many(
        self, ticks: Sequence[Tick], timeframes: Iterable[str]
    ) -> Dict[str, List[Candle]]:
        """Aggregate the same ticks into several timeframes."""
        return {tf: self.aggregate(ticks, tf) for tf in timeframes}


def _as_datetime(value) -> datetime:
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value
