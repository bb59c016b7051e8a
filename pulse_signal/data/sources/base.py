"""
PULSE SIGNAL — Base Tick Source Interface
All tick sources (live or historical) must implement this interface.
"""
from abc import ABC, abstractmethod
from typing import List

from pulse_signal.data.models import Tick


class BaseTickSource(ABC):
    """Abstract base class for all tick suppliers consumed by the replay harness."""

    name: str = "base"

    @abstractmethod
    def load_ticks(self, symbol: str) -> List[Tick]:
        """
        Return the ordered tick history for a symbol.
        Raise ExternalDataUnavailable when the source cannot serve it.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"
