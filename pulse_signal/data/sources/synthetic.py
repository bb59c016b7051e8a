"""
PULSE SIGNAL — Synthetic Intraday Tick Source
Generates a realistic one-minute session (09:15-15:30 IST, 375 ticks) with
phase-dependent drift and volatility, mean reversion, short-term momentum and
a U-shaped volume profile. Seeded, so every run of a symbol is reproducible.
"""
import numpy as np
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional
import zlib

from pulse_signal.data.models import Tick, TickMetadata
from pulse_signal.data.sources.base import BaseTickSource

# (name, start minute, end minute, volatility, drift) as fractions of price
SESSION_PHASES = [
    ("OPENING", 0, 30, 0.0015, -0.0002),
    ("MORNING", 30, 120, 0.0010, 0.0003),
    ("MID_DAY", 120, 240, 0.0008, -0.0001),
    ("AFTERNOON", 240, 330, 0.0010, 0.0002),
    ("CLOSING", 330, 375, 0.0012, -0.0001),
]

DEFAULT_BASE_PRICES: Dict[str, float] = {
    "NIFTY50": 21900.0,
    "BANKNIFTY": 46000.0,
    "DOWJONES": 38500.0,
}

SESSION_MINUTES = 375


class SyntheticTickSource(BaseTickSource):
    """Deterministic random-walk session generator."""

    name = "synthetic"

    def __init__(
        self,
        session_start: Optional[datetime] = None,
        base_prices: Optional[Dict[str, float]] = None,
        seed: int = 7,
        minutes: int = SESSION_MINUTES,
    ):
        # 09:15 IST
        self.session_start = session_start or datetime(2024, 2, 13, 3, 45, tzinfo=timezone.utc)
        self.base_prices = dict(DEFAULT_BASE_PRICES)
        self.base_prices.update(base_prices or {})
        self.seed = seed
        self.minutes = minutes

    def _phase(self, minute: int):
        for phase in SESSION_PHASES:
            if phase[1] <= minute < phase[2]:
                return phase
        return SESSION_PHASES[-1]

    def load_ticks(self, symbol: str) -> List[Tick]:
        rng = np.random.default_rng(self.seed + zlib.crc32(symbol.encode()))
        base = self.base_prices.get(symbol, 100.0)
        price = base
        closes: List[float] = []
        ticks: List[Tick] = []

        for minute in range(self.minutes):
            _, _, _, vol, drift = self._phase(minute)
            volatility = price * vol
            move = price * drift + rng.uniform(-1.0, 1.0) * volatility
            move += (base - price) * 0.02
            if minute > 5:
                move += (closes[-1] - closes[-5]) * 0.1

            open_ = price
            close = open_ + move
            spread = volatility * 0.5
            high = max(open_, close) + rng.uniform(0, spread)
            low = min(open_, close) - rng.uniform(0, spread)

            multiplier = 1.0
            if minute < 30 or minute > 330:
                multiplier = 1.5
            if 180 < minute < 240:
                multiplier = 0.7
            volume = float(int((50000 + rng.uniform(0, 100000)) * multiplier))

            ticks.append(Tick(
                symbol=symbol,
                price=round(close, 2),
                volume=volume,
                timestamp=self.session_start + timedelta(minutes=minute),
                metadata=TickMetadata(
                    open=round(open_, 2),
                    high=round(high, 2),
                    low=round(low, 2),
                    change=round(close - base, 2),
                    change_percent=round((close - base) / base * 100.0, 4),
                ),
            ))
            closes.append(close)
            price = close

        return ticks
