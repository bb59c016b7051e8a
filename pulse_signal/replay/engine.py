"""
PULSE SIGNAL — Historical Replay Engine
Feeds recorded ticks through aggregation and signal generation one step at a
time to simulate a live feed. Reaching the end of the history loops back to
the first tick.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
import uuid

from pulse_signal.config.settings import AppSettings, get_settings
from pulse_signal.data.aggregator import CandleAggregator
from pulse_signal.data.models import Candle, ReplayStatus, SignalAction, Tick
from pulse_signal.data.sources.base import BaseTickSource
from pulse_signal.db.repository import PersistenceSink
from pulse_signal.engines.signal_combiner import SignalCombiner, TradingSignal, warming_up_signal
from pulse_signal.replay.ticker import ManualTicker, Ticker
from pulse_signal.utils.errors import ExternalDataUnavailable, ReplayError
from pulse_signal.utils.logger import get_logger

logger = get_logger("replay_engine")


@dataclass
class ReplayState:
    """Externally visible replay position."""
    status: ReplayStatus
    current_index: int
    total_ticks: int
    symbol: str
    speed: float
    timeframe: str = "5m"

    @property
    def progress(self) -> float:
        if self.total_ticks <= 0:
            return 0.0
        return round(self.current_index / self.total_ticks * 100.0, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "current_index": self.current_index,
            "total_ticks": self.total_ticks,
            "progress": self.progress,
            "symbol": self.symbol,
            "speed": self.speed,
            "timeframe": self.timeframe,
        }


@dataclass
class ReplaySnapshot:
    """Envelope broadcast to listeners after every driven step."""
    index: int
    total_ticks: int
    tick: Tick
    candles: List[Candle] = field(default_factory=list)
    signal: Optional[TradingSignal] = None

    @property
    def progress(self) -> float:
        return round(self.index / self.total_ticks * 100.0, 1) if self.total_ticks else 0.0

    def to_dict(self) -> Dict[str, Any]:
        meta = self.tick.metadata
        return {
            "progress": self.progress,
            "current_index": self.index,
            "total_ticks": self.total_ticks,
            "tick_snapshot": {
                "timestamp": self.tick.timestamp.isoformat(),
                "price": self.tick.price,
                "volume": self.tick.volume,
                "open": meta.open if meta and meta.open is not None else self.tick.price,
                "high": meta.high if meta and meta.high is not None else self.tick.price,
                "low": meta.low if meta and meta.low is not None else self.tick.price,
                "change": meta.change if meta and meta.change is not None else 0.0,
                "change_percent": meta.change_percent if meta and meta.change_percent is not None else 0.0,
            },
            "candles": [c.to_dict() for c in self.candles],
            "signal": self.signal.to_dict() if self.signal else None,
        }


SnapshotListener = Callable[[ReplaySnapshot], None]
StateListener = Callable[[ReplayState], None]


class ReplayEngine:
    """
    STOPPED -> start() -> PLAYING <-> pause()/resume() -> PAUSED; stop() from
    any state resets to index 0. seek() and change_symbol() are valid in any
    state. Each driven step runs the whole pipeline synchronously.
    """

    def __init__(
        self,
        source: BaseTickSource,
        symbol: str = "NIFTY50",
        settings: Optional[AppSettings] = None,
        combiner: Optional[SignalCombiner] = None,
        aggregator: Optional[CandleAggregator] = None,
        ticker: Optional[Ticker] = None,
        sink: Optional[PersistenceSink] = None,
    ):
        self.settings = settings or get_settings()
        self.source = source
        self.symbol = symbol
        self.combiner = combiner or SignalCombiner(self.settings)
        self.aggregator = aggregator or CandleAggregator(self.settings.aggregator)
        self.ticker = ticker or ManualTicker()
        self.sink = sink
        self.timeframe = self.settings.replay.timeframe
        self.speed = self.settings.replay.speed
        self.session_id = uuid.uuid4().hex

        self._ticks: List[Tick] = []
        self._index = 0
        self._status = ReplayStatus.STOPPED
        self._listeners: List[SnapshotListener] = []
        self._state_listeners: List[StateListener] = []

    # ─── Properties ──────────────────────────────────────────

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def total_ticks(self) -> int:
        return len(self._ticks)

    @property
    def state(self) -> ReplayStatus:
        return self._status

    @property
    def interval(self) -> float:
        return self.settings.replay.base_interval_seconds / self.speed

    def status(self) -> ReplayState:
        return ReplayState(
            status=self._status,
            current_index=self._index,
            total_ticks=len(self._ticks),
            symbol=self.symbol,
            speed=self.speed,
            timeframe=self.timeframe,
        )

    # ─── Loading ─────────────────────────────────────────────

    def load(self, symbol: Optional[str] = None) -> int:
        """Load the tick history for `symbol` (default: current symbol)."""
        symbol = symbol or self.symbol
        try:
            ticks = self.source.load_ticks(symbol)
        except ExternalDataUnavailable as e:
            raise ReplayError(f"Failed to load replay data for {symbol}: {e}") from e
        self.symbol = symbol
        self._ticks = list(ticks)
        self._index = 0
        logger.info("replay_loaded", symbol=symbol, ticks=len(self._ticks), source=self.source.name)
        return len(self._ticks)

    # ─── Transitions ─────────────────────────────────────────

    def start(self, start_from: Optional[int] = None, speed: Optional[float] = None) -> ReplayState:
        """
        Begin playback at `start_from`. Without one, a fresh engine (index 0)
        fast-forwards so the first signals already have warm-up history, and a
        paused or previously advanced engine continues from its current index.
        An explicit index, including 0, is used as given.
        """
        if self._status == ReplayStatus.PLAYING:
            logger.debug("replay_already_playing", index=self._index)
            return self.status()
        if speed is not None:
            if speed <= 0:
                raise ValueError(f"Replay speed must be positive, got {speed}")
            self.speed = speed
        if not self._ticks:
            self.load()
        if not self._ticks:
            raise ReplayError(f"No ticks available for {self.symbol}")

        if start_from is None and self._index == 0:
            start_from = min(self.settings.replay.fast_forward_index, len(self._ticks) - 1)
            logger.info("replay_fast_forward", index=start_from)
        elif start_from is None:
            start_from = self._index
        if not 0 <= start_from < len(self._ticks):
            raise ValueError(f"start_from {start_from} outside [0, {len(self._ticks)})")

        self._index = start_from
        self._play()
        logger.info("replay_started", symbol=self.symbol, index=self._index, speed=self.speed)
        return self.status()

    def pause(self) -> ReplayState:
        if self._status != ReplayStatus.PLAYING:
            return self.status()
        self.ticker.stop()
        self._set_status(ReplayStatus.PAUSED)
        logger.info("replay_paused", index=self._index)
        return self.status()

    def resume(self) -> ReplayState:
        if self._status != ReplayStatus.PAUSED:
            return self.status()
        self._play()
        logger.info("replay_resumed", index=self._index)
        return self.status()

    def stop(self) -> ReplayState:
        self.ticker.stop()
        self._index = 0
        if self._status != ReplayStatus.STOPPED:
            self._set_status(ReplayStatus.STOPPED)
            logger.info("replay_stopped", symbol=self.symbol)
        return self.status()

    def seek(self, index: int) -> ReplayState:
        """Reposition; a playing engine pauses, moves and resumes."""
        if not 0 <= index < len(self._ticks):
            logger.warning("replay_invalid_seek", index=index, total=len(self._ticks))
            return self.status()
        was_playing = self._status == ReplayStatus.PLAYING
        if was_playing:
            self.pause()
        self._index = index
        if was_playing:
            self.resume()
        logger.debug("replay_seek", index=index)
        return self.status()

    def change_symbol(self, symbol: str) -> ReplayState:
        """Stop, reload history for `symbol` and reset the index."""
        self.stop()
        self.load(symbol)
        return self.status()

    def _play(self) -> None:
        self.ticker.start(self.step, self.interval)
        self._set_status(ReplayStatus.PLAYING)

    def _set_status(self, status: ReplayStatus) -> None:
        self._status = status
        state = self.status()
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("state_listener_error", error=str(e))

    # ─── Listeners ───────────────────────────────────────────

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        self._listeners = [cb for cb in self._listeners if cb is not listener]

    def add_state_listener(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        self._state_listeners = [cb for cb in self._state_listeners if cb is not listener]

    # ─── Driven step ─────────────────────────────────────────

    def step(self) -> Optional[ReplaySnapshot]:
        """Process the tick at the current index, broadcast, then advance (wrapping at the end)."""
        if not self._ticks:
            return None
        if self._index >= len(self._ticks):
            self._index = 0

        index = self._index
        tick = self._ticks[index]
        history = self._ticks[: index + 1]
        candles = self.aggregator.aggregate(history, self.timeframe)
        signal = self._signal_for(candles)

        snapshot = ReplaySnapshot(
            index=index,
            total_ticks=len(self._ticks),
            tick=tick,
            candles=candles[-self.settings.replay.snapshot_candles:],
            signal=signal,
        )
        self._persist(candles, signal)
        self._broadcast(snapshot)

        self._index = (index + 1) % len(self._ticks)
        if self._index == 0:
            logger.info("replay_wrapped", symbol=self.symbol)
        return snapshot

    def _signal_for(self, candles: List[Candle]) -> Optional[TradingSignal]:
        warmup = self.settings.signals.warmup_candles
        if len(candles) < warmup:
            last = candles[-1] if candles else None
            return warming_up_signal(
                self.symbol,
                self.timeframe,
                last.timestamp if last else None,
                last.close if last else 0.0,
                len(candles),
                warmup,
            )
        try:
            return self.combiner.generate_signal(candles, self.symbol, self.timeframe)
        except Exception as e:
            logger.error("replay_signal_error", symbol=self.symbol, index=self._index, error=str(e))
            return None

    def _persist(self, candles: List[Candle], signal: Optional[TradingSignal]) -> None:
        if self.sink is None or not self.settings.replay.persist_signals:
            return
        try:
            self.sink.save_candles(candles)
            if signal is not None and signal.confidence > 0 and not (
                signal.action == SignalAction.HOLD and signal.confidence < 50
            ):
                self.sink.save_signal(signal, session_id=self.session_id)
        except Exception as e:
            logger.error("replay_persist_error", symbol=self.symbol, error=str(e))

    def _broadcast(self, snapshot: ReplaySnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error("replay_listener_error", index=snapshot.index, error=str(e))
