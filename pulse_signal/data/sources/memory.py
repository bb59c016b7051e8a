"""
PULSE SIGNAL — In-Memory Tick Source
"""
from typing import Dict, Iterable, List

from pulse_signal.data.models import Tick
from pulse_signal.data.sources.base import BaseTickSource
from pulse_signal.utils.errors import ExternalDataUnavailable


class InMemoryTickSource(BaseTickSource):
    """Serves pre-loaded ticks, e.g. a recorded session or test fixture."""

    name = "memory"

    def __init__(self, ticks: Iterable[Tick] = ()):
        self._ticks: Dict[str, List[Tick]] = {}
        for tick in ticks:
            self._ticks.setdefault(tick.symbol, []).append(tick)

    def add(self, symbol: str, ticks: Iterable[Tick]) -> None:
        self._ticks.setdefault(symbol, []).extend(ticks)

    @property
    def symbols(self) -> List[str]:
        return sorted(self._ticks)

    def load_ticks(self, symbol: str) -> List[Tick]:
        if symbol not in self._ticks:
            raise ExternalDataUnavailable(f"No ticks recorded for {symbol}")
        return sorted(self._ticks[symbol], key=lambda t: t.timestamp)
