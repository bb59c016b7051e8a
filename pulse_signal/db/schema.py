"""
PULSE SIGNAL — Database Schema Design
SQLAlchemy models for candles and generated signals, each keyed by
(symbol, timeframe, timestamp) so re-writes are upserts.
"""
from datetime import datetime, timezone
from sqlalchemy import (
    Column, Integer, String, Float, DateTime, Text, JSON,
    Index, UniqueConstraint, create_engine
)
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class CandleRecord(Base):
    """Persisted OHLCV candle."""
    __tablename__ = "candles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), nullable=False, index=True)
    timeframe = Column(String(8), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    open = Column(Float, nullable=False)
    high = Column(Float, nullable=False)
    low = Column(Float, nullable=False)
    close = Column(Float, nullable=False)
    volume = Column(Float, default=0.0)
    tick_count = Column(Integer, default=0)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("symbol", "timeframe", "timestamp", name="uq_candles_key"),
        Index("idx_candles_symbol_tf_time", "symbol", "timeframe", "timestamp"),
    )


class SignalRecord(Base):
    """Persisted trading signal."""
    __tablename__ = "signals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    symbol = Column(String(20), nullable=False, index=True)
    timeframe = Column(String(8), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    action = Column(String(12), nullable=False)  # STRONG_BUY .. STRONG_SELL
    strength = Column(String(12), nullable=False)
    confidence = Column(Float, nullable=False)
    total_score = Column(Float, nullable=False)
    price = Column(Float, nullable=False)
    levels = Column(JSON)
    scoring = Column(JSON)
    market_regime = Column(JSON)
    reasoning = Column(JSON)
    alerts = Column(JSON)
    session_id = Column(String(64))  # replay session that produced it
    notes = Column(Text)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("symbol", "timeframe", "timestamp", name="uq_signals_key"),
        Index("idx_signals_symbol_time", "symbol", "timestamp"),
        Index("idx_signals_action", "action"),
    )


def init_db_sync(db_url: str = "sqlite:///pulse_signal.db", echo: bool = False):
    """Create all tables and return a session factory."""
    engine = create_engine(db_url, echo=echo)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
