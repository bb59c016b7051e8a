"""
PULSE SIGNAL — Persistence Sinks
Optional stores for candles and signals keyed by (symbol, timeframe,
timestamp). Writes are upserts: saving the same key twice leaves one row.
"""
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select

from pulse_signal.config.settings import DatabaseSettings, get_settings
from pulse_signal.data.models import Candle
from pulse_signal.db.schema import CandleRecord, SignalRecord, init_db_sync
from pulse_signal.engines.signal_combiner import TradingSignal
from pulse_signal.utils.helpers import utc_now
from pulse_signal.utils.logger import get_logger

logger = get_logger("persistence")

Key = Tuple[str, str, datetime]


def _naive_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; store every timestamp as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def signal_row(signal: TradingSignal) -> Dict[str, Any]:
    data = signal.to_dict()
    return {
        "action": signal.action.value,
        "strength": signal.strength.value,
        "confidence": float(signal.confidence),
        "total_score": float(signal.total_score),
        "price": float(signal.current_price),
        "levels": data["levels"],
        "scoring": data["scoring"],
        "market_regime": data["market_regime"],
        "reasoning": data["reasoning"],
        "alerts": data["alerts"],
    }


class PersistenceSink(ABC):
    """Store for candles and signals with upsert semantics."""

    @abstractmethod
    def save_candles(self, candles: Sequence[Candle]) -> int:
        pass

    @abstractmethod
    def save_signal(self, signal: TradingSignal, session_id: Optional[str] = None) -> None:
        pass


class InMemoryPersistenceSink(PersistenceSink):
    """Dict-backed sink, mainly for tests and demos."""

    def __init__(self):
        self.candles: Dict[Key, Candle] = {}
        self.signals: Dict[Key, Dict[str, Any]] = {}

    def save_candles(self, candles: Sequence[Candle]) -> int:
        for candle in candles:
            self.candles[candle.key] = candle
        return len(candles)

    def save_signal(self, signal: TradingSignal, session_id: Optional[str] = None) -> None:
        key = (signal.symbol, signal.timeframe, signal.timestamp or utc_now())
        row = signal_row(signal)
        row["session_id"] = session_id
        self.signals[key] = row

    def signals_for(self, symbol: str) -> List[Dict[str, Any]]:
        return [row for (sym, _, _), row in sorted(self.signals.items(), key=lambda kv: kv[0][2]) if sym == symbol]


class SqlPersistenceSink(PersistenceSink):
    """SQLAlchemy-backed sink using select-then-update upserts."""

    def __init__(self, settings: Optional[DatabaseSettings] = None, session_factory=None):
        self.settings = settings or get_settings().database
        self.session_factory = session_factory or init_db_sync(self.settings.db_url, self.settings.echo_sql)

    def save_candles(self, candles: Sequence[Candle]) -> int:
        inserted = 0
        with self.session_factory() as session:
            for candle in candles:
                timestamp = _naive_utc(candle.timestamp)
                record = session.execute(
                    select(CandleRecord).where(
                        CandleRecord.symbol == candle.symbol,
                        CandleRecord.timeframe == candle.timeframe,
                        CandleRecord.timestamp == timestamp,
                    )
                ).scalar_one_or_none()
                if record is None:
                    record = CandleRecord(symbol=candle.symbol, timeframe=candle.timeframe, timestamp=timestamp)
                    session.add(record)
                    inserted += 1
                record.open = candle.open
                record.high = candle.high
                record.low = candle.low
                record.close = candle.close
                record.volume = candle.volume
                record.tick_count = candle.tick_count
                record.updated_at = utc_now()
            session.commit()
        logger.debug("candles_saved", count=len(candles), inserted=inserted)
        return len(candles)

    def save_signal(self, signal: TradingSignal, session_id: Optional[str] = None) -> None:
        timestamp = _naive_utc(signal.timestamp or utc_now())
        with self.session_factory() as session:
            record = session.execute(
                select(SignalRecord).where(
                    SignalRecord.symbol == signal.symbol,
                    SignalRecord.timeframe == signal.timeframe,
                    SignalRecord.timestamp == timestamp,
                )
            ).scalar_one_or_none()
            if record is None:
                record = SignalRecord(symbol=signal.symbol, timeframe=signal.timeframe, timestamp=timestamp)
                session.add(record)
            for column, value in signal_row(signal).items():
                setattr(record, column, value)
            record.session_id = session_id
            session.commit()
        logger.debug("signal_saved", symbol=signal.symbol, action=signal.action.value)

    def count_candles(self, symbol: Optional[str] = None) -> int:
        with self.session_factory() as session:
            query = select(CandleRecord)
            if symbol:
                query = query.where(CandleRecord.symbol == symbol)
            return len(session.execute(query).scalars().all())

    def recent_signals(self, symbol: str, limit: int = 50) -> List[SignalRecord]:
        with self.session_factory() as session:
            query = (
                select(SignalRecord)
                .where(SignalRecord.symbol == symbol)
                .order_by(SignalRecord.timestamp.desc())
                .limit(limit)
            )
            return list(session.execute(query).scalars().all())
