"""
PULSE SIGNAL — Replay Tickers
A ticker owns the periodic driver behind the replay engine. The engine only
asks it to start or stop; pause/resume/seek stay pure state transitions.
"""
from abc import ABC, abstractmethod
from typing import Callable, Optional
import asyncio

from pulse_signal.utils.logger import get_logger

logger = get_logger("replay_ticker")

TickCallback = Callable[[], None]


class Ticker(ABC):
    """Periodic driver interface."""

    def __init__(self):
        self._callback: Optional[TickCallback] = None
        self._interval: float = 1.0

    @property
    @abstractmethod
    def running(self) -> bool:
        pass

    @property
    def interval(self) -> float:
        return self._interval

    @abstractmethod
    def start(self, callback: TickCallback, interval: float) -> None:
        """Begin calling `callback` every `interval` seconds. Restarts if already running."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop the driver. Safe to call when not running."""
        pass


class ManualTicker(Ticker):
    """Deterministic driver: nothing happens until `fire()` is called."""

    def __init__(self):
        super().__init__()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self, callback: TickCallback, interval: float) -> None:
        self._callback = callback
        self._interval = interval
        self._running = True

    def stop(self) -> None:
        self._running = False

    def fire(self, times: int = 1) -> int:
        """Invoke the callback up to `times` times; stops early if the driver is stopped."""
        fired = 0
        for _ in range(times):
            if not self._running or self._callback is None:
                break
            self._callback()
            fired += 1
        return fired


class AsyncioTicker(Ticker):
    """Drives the callback from a task on the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__()
        self._loop = loop
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, callback: TickCallback, interval: float) -> None:
        self.stop()
        self._callback = callback
        self._interval = interval
        loop = self._loop or asyncio.get_running_loop()
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self._callback()
            except Exception as e:
                logger.error("ticker_callback_error", error=str(e))
