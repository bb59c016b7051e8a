"""
PULSE SIGNAL — Integration Tests for the Replay Engine
"""
import asyncio
import pytest

from pulse_signal.data.models import ReplayStatus, SignalAction
from pulse_signal.data.sources.memory import InMemoryTickSource
from pulse_signal.db.repository import InMemoryPersistenceSink
from pulse_signal.replay.engine import ReplayEngine
from pulse_signal.replay.ticker import AsyncioTicker, ManualTicker
from pulse_signal.utils.errors import ReplayError


@pytest.fixture
def source(ticks, tick_factory):
    memory = InMemoryTickSource(ticks)
    memory.add("ALT", tick_factory(n=120, symbol="ALT", seed=3))
    return memory


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def engine(source, settings, ticker):
    return ReplayEngine(source, symbol="TEST", settings=settings, ticker=ticker)


class TestReplayTransitions:
    def test_load(self, engine):
        assert engine.load() == 300
        assert engine.total_ticks == 300
        assert engine.state == ReplayStatus.STOPPED

    def test_load_unknown_symbol(self, engine):
        with pytest.raises(ReplayError):
            engine.load("MISSING")

    def test_fresh_start_fast_forwards(self, engine):
        state = engine.start()
        assert state.status == ReplayStatus.PLAYING
        assert state.current_index == 50

    def test_explicit_zero_start_is_honoured(self, engine, ticker):
        state = engine.start(start_from=0)
        assert state.current_index == 0
        ticker.fire(1)
        assert engine.current_index == 1

    def test_start_without_index_continues_from_pause(self, engine, ticker):
        engine.start(start_from=80)
        ticker.fire(5)
        engine.pause()
        state = engine.start()
        assert state.status == ReplayStatus.PLAYING
        assert state.current_index == 85

    def test_advance_from_start_index(self, engine, ticker):
        engine.start(start_from=50)
        assert ticker.fire(10) == 10
        assert engine.current_index == 60

    def test_wraps_to_zero(self, engine, ticker):
        engine.start(start_from=298)
        ticker.fire(3)
        assert engine.current_index == 1

    def test_start_is_idempotent(self, engine):
        engine.start(start_from=70)
        state = engine.start(start_from=10)
        assert state.current_index == 70

    def test_invalid_start(self, engine):
        with pytest.raises(ValueError):
            engine.start(start_from=300)
        with pytest.raises(ValueError):
            engine.start(speed=0)

    def test_pause_and_resume(self, engine, ticker):
        engine.start(start_from=50)
        engine.pause()
        assert engine.state == ReplayStatus.PAUSED
        assert ticker.fire(5) == 0
        assert engine.current_index == 50
        engine.resume()
        ticker.fire(2)
        assert engine.current_index == 52

    def test_stop_resets_index(self, engine, ticker):
        engine.start(start_from=120)
        ticker.fire(1)
        state = engine.stop()
        assert state.status == ReplayStatus.STOPPED
        assert state.current_index == 0
        assert not ticker.running

    def test_seek_while_playing(self, engine, ticker):
        seen = []
        engine.add_state_listener(lambda state: seen.append(state.status))
        engine.start(start_from=100)
        seen.clear()

        state = engine.seek(200)
        assert seen == [ReplayStatus.PAUSED, ReplayStatus.PLAYING]
        assert state.status == ReplayStatus.PLAYING
        ticker.fire(1)
        assert engine.current_index == 201

    def test_seek_while_paused_stays_paused(self, engine):
        engine.start(start_from=100)
        engine.pause()
        state = engine.seek(10)
        assert state.status == ReplayStatus.PAUSED
        assert state.current_index == 10

    def test_invalid_seek_ignored(self, engine):
        engine.start(start_from=100)
        for index in (-1, 300, 10_000):
            state = engine.seek(index)
            assert state.current_index == 100
            assert state.status == ReplayStatus.PLAYING

    def test_change_symbol(self, engine):
        engine.start(start_from=100)
        state = engine.change_symbol("ALT")
        assert state.symbol == "ALT"
        assert state.total_ticks == 120
        assert state.current_index == 0
        assert state.status == ReplayStatus.STOPPED

    def test_interval_scales_with_speed(self, engine, ticker):
        engine.start(start_from=50, speed=4.0)
        assert engine.interval == pytest.approx(0.25)
        assert ticker.interval == pytest.approx(0.25)


class TestReplaySnapshots:
    def test_snapshot_contents(self, engine, ticker):
        snapshots = []
        engine.add_listener(snapshots.append)
        engine.start(start_from=60)
        ticker.fire(1)

        snapshot = snapshots[0]
        assert snapshot.index == 60
        assert snapshot.total_ticks == 300
        assert snapshot.candles
        assert snapshot.signal is not None
        assert snapshot.signal.symbol == "TEST"
        assert snapshot.candles[-1].timestamp <= snapshot.tick.timestamp

        data = snapshot.to_dict()
        assert data["current_index"] == 60
        assert data["progress"] == 20.0
        assert data["tick_snapshot"]["price"] == snapshot.tick.price
        assert data["signal"]["symbol"] == "TEST"

    def test_early_index_warms_up(self, engine, ticker):
        snapshots = []
        engine.add_listener(snapshots.append)
        engine.start(start_from=2)
        ticker.fire(1)
        signal = snapshots[0].signal
        assert signal.action == SignalAction.HOLD
        assert signal.confidence == 0
        assert signal.levels.entry == 0

    def test_failing_listener_isolated(self, engine, ticker):
        received = []

        def broken(snapshot):
            raise RuntimeError("socket closed")

        engine.add_listener(broken)
        engine.add_listener(received.append)
        engine.start(start_from=60)
        ticker.fire(2)
        assert [s.index for s in received] == [60, 61]
        assert engine.current_index == 62

    def test_remove_listener(self, engine, ticker):
        received = []

        def listener(snapshot):
            received.append(snapshot)

        engine.add_listener(listener)
        engine.start(start_from=60)
        ticker.fire(1)
        engine.remove_listener(listener)
        ticker.fire(1)
        assert len(received) == 1

    def test_signal_failure_yields_none(self, engine, ticker, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("indicator blew up")

        monkeypatch.setattr(engine.combiner, "generate_signal", broken)
        snapshots = []
        engine.add_listener(snapshots.append)
        engine.start(start_from=100)
        ticker.fire(1)
        assert snapshots[0].signal is None
        assert engine.current_index == 101


class TestReplayPersistence:
    def test_candles_and_signals_persisted(self, source, settings, ticker):
        sink = InMemoryPersistenceSink()
        engine = ReplayEngine(source, symbol="TEST", settings=settings, ticker=ticker, sink=sink)
        engine.start(start_from=100)
        ticker.fire(20)

        assert sink.candles
        assert all(candle.symbol == "TEST" for candle in sink.candles.values())
        for row in sink.signals_for("TEST"):
            assert row["confidence"] > 0
            assert not (row["action"] == "HOLD" and row["confidence"] < 50)
            assert row["session_id"] == engine.session_id

    def test_warm_up_signals_not_persisted(self, source, settings, ticker):
        sink = InMemoryPersistenceSink()
        engine = ReplayEngine(source, symbol="TEST", settings=settings, ticker=ticker, sink=sink)
        engine.start(start_from=1)
        ticker.fire(3)
        assert sink.candles
        assert sink.signals == {}

    def test_sink_failure_does_not_stop_replay(self, source, settings, ticker):
        class BrokenSink(InMemoryPersistenceSink):
            def save_candles(self, candles):
                raise OSError("disk full")

        engine = ReplayEngine(source, symbol="TEST", settings=settings, ticker=ticker, sink=BrokenSink())
        engine.start(start_from=60)
        assert ticker.fire(2) == 2
        assert engine.current_index == 62


class TestAsyncioTicker:
    @pytest.mark.asyncio
    async def test_drives_engine_on_event_loop(self, source, settings):
        settings.replay.base_interval_seconds = 0.01
        engine = ReplayEngine(source, symbol="TEST", settings=settings, ticker=AsyncioTicker())
        engine.start(start_from=60)
        await asyncio.sleep(0.2)
        engine.pause()
        assert engine.current_index > 60
        index = engine.current_index
        await asyncio.sleep(0.05)
        assert engine.current_index == index
