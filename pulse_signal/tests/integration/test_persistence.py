"""
PULSE SIGNAL — Integration Tests for SQL Persistence
"""
import pytest
from datetime import timedelta
from sqlalchemy import select

from pulse_signal.config.settings import DatabaseSettings
from pulse_signal.data.aggregator import CandleAggregator
from pulse_signal.db.schema import CandleRecord, init_db_sync
from pulse_signal.db.repository import SqlPersistenceSink
from pulse_signal.engines.signal_combiner import SignalCombiner


@pytest.fixture
def sink(tmp_path):
    url = f"sqlite:///{tmp_path / 'signals.db'}"
    return SqlPersistenceSink(DatabaseSettings(db_url=url), init_db_sync(url))


@pytest.fixture
def candles(ticks):
    return CandleAggregator().aggregate(ticks, "5m")


class TestSqlPersistenceSink:
    def test_candle_upsert_keeps_one_row_per_key(self, sink, candles):
        assert sink.save_candles(candles) == len(candles)
        assert sink.save_candles(candles) == len(candles)
        assert sink.count_candles("TEST") == len(candles)
        assert sink.count_candles("OTHER") == 0

    def test_candle_upsert_updates_values(self, sink, candles):
        sink.save_candles(candles)
        revised = candles[-1].model_copy(update={"close": candles[-1].high, "tick_count": 99})
        sink.save_candles([revised])
        assert sink.count_candles() == len(candles)

        with sink.session_factory() as session:
            record = session.execute(
                select(CandleRecord).order_by(CandleRecord.timestamp.desc())
            ).scalars().first()
        assert record.close == revised.close
        assert record.tick_count == 99

    def test_signal_upsert(self, sink, uptrend_df, settings):
        combiner = SignalCombiner(settings)
        signal = combiner.generate_signal(uptrend_df, "UP", "5m")
        sink.save_signal(signal, session_id="first")
        sink.save_signal(signal, session_id="second")

        rows = sink.recent_signals("UP")
        assert len(rows) == 1
        row = rows[0]
        assert row.action == signal.action.value
        assert row.session_id == "second"
        assert row.levels["entry"] == pytest.approx(signal.levels.entry)
        assert row.market_regime["regime"] == "STRONG_TRENDING"

    def test_recent_signals_newest_first(self, sink, uptrend_df, settings):
        combiner = SignalCombiner(settings)
        for end in (40, 50, 60):
            sink.save_signal(combiner.generate_signal(uptrend_df.head(end), "UP", "5m"))
        rows = sink.recent_signals("UP", limit=2)
        assert len(rows) == 2
        assert rows[0].timestamp - rows[1].timestamp == timedelta(minutes=50)
