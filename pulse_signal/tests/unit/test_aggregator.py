"""
PULSE SIGNAL — Unit Tests for Candle Aggregation
"""
import pytest
from datetime import datetime, timezone, timedelta

from pulse_signal.data.aggregator import CandleAggregator
from pulse_signal.data.models import Candle, Tick, candles_to_frame, frame_to_candles


def _tick(minute: int, price: float, volume=100.0, second: int = 0, symbol: str = "TEST") -> Tick:
    ts = datetime(2024, 2, 13, 9, 0, tzinfo=timezone.utc) + timedelta(minutes=minute, seconds=second)
    return Tick(symbol=symbol, price=price, volume=volume, timestamp=ts)


@pytest.fixture
def aggregator():
    return CandleAggregator()


class TestCandleAggregator:
    def test_empty_input(self, aggregator):
        assert aggregator.aggregate([], "5m") == []

    def test_ohlcv_per_bucket(self, aggregator):
        ticks = [_tick(0, 100), _tick(1, 103), _tick(2, 99), _tick(4, 101), _tick(5, 102)]
        candles = aggregator.aggregate(ticks, "5m")
        assert len(candles) == 2
        first = candles[0]
        assert (first.open, first.high, first.low, first.close) == (100, 103, 99, 101)
        assert first.volume == 400
        assert first.tick_count == 4
        assert first.timestamp == datetime(2024, 2, 13, 9, 0, tzinfo=timezone.utc)
        assert candles[1].timestamp == datetime(2024, 2, 13, 9, 5, tzinfo=timezone.utc)

    def test_out_of_order_ticks_sorted(self, aggregator):
        ticks = [_tick(3, 105), _tick(0, 100), _tick(1, 101)]
        candle = aggregator.aggregate(ticks, "5m")[0]
        assert candle.open == 100
        assert candle.close == 105

    def test_equal_timestamps_keep_input_order(self, aggregator):
        ticks = [_tick(0, 100), _tick(1, 101), _tick(1, 99)]
        candle = aggregator.aggregate(ticks, "5m")[0]
        assert candle.close == 99

    def test_missing_volume_counts_as_zero(self, aggregator):
        ticks = [_tick(0, 100, volume=None), _tick(1, 101, volume=50)]
        assert aggregator.aggregate(ticks, "5m")[0].volume == 50

    def test_hourly_and_daily_alignment(self, aggregator):
        ticks = [_tick(0, 100), _tick(75, 101)]
        hourly = aggregator.aggregate(ticks, "1h")
        assert [c.timestamp.minute for c in hourly] == [0, 0]
        assert [c.timestamp.hour for c in hourly] == [9, 10]
        daily = aggregator.aggregate(ticks, "1d")
        assert len(daily) == 1
        assert daily[0].timestamp == datetime(2024, 2, 13, tzinfo=timezone.utc)

    def test_sub_minute_ticks(self, aggregator):
        ticks = [_tick(0, 100, second=10), _tick(0, 102, second=50)]
        candle = aggregator.aggregate(ticks, "1m")[0]
        assert candle.first_tick.second == 10
        assert candle.last_tick.second == 50

    def test_unknown_timeframe(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.aggregate([_tick(0, 100)], "7m")

    def test_idempotent(self, aggregator, ticks):
        first = aggregator.aggregate(ticks, "5m")
        second = aggregator.aggregate(ticks, "5m")
        assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    def test_candle_range_invariant(self, aggregator, ticks):
        for candle in aggregator.aggregate(ticks, "5m"):
            assert candle.low <= min(candle.open, candle.close)
            assert candle.high >= max(candle.open, candle.close)

    def test_aggregate_many(self, aggregator, ticks):
        result = aggregator.aggregate_many(ticks, ["1m", "5m", "15m"])
        assert len(result["1m"]) == 300
        assert len(result["5m"]) == 60
        assert len(result["15m"]) == 20


class TestCandleModel:
    def test_range_violation_rejected(self):
        with pytest.raises(ValueError):
            Candle(symbol="X", timeframe="5m", timestamp=datetime(2024, 1, 1),
                   open=100, high=99, low=98, close=100)

    def test_frame_round_trip(self, aggregator, ticks):
        candles = aggregator.aggregate(ticks, "5m")
        df = candles_to_frame(candles)
        assert list(df.columns) == ["open", "high", "low", "close", "volume"]
        back = frame_to_candles(df, "TEST", "5m")
        assert [c.close for c in back] == [c.close for c in candles]
        assert back[0].key == candles[0].key
