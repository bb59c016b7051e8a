"""
PULSE SIGNAL — Test Configuration & Fixtures
Shared fixtures for all test modules.
"""
import pytest
import pandas as pd
import numpy as np
from datetime import datetime, timezone, timedelta

from pulse_signal.config.settings import AppSettings
from pulse_signal.data.models import Tick


@pytest.fixture
def settings():
    """Fresh default settings, independent of the process singleton."""
    return AppSettings()


@pytest.fixture
def sample_ohlcv_df():
    """Generate a realistic OHLCV DataFrame for testing."""
    np.random.seed(42)
    n = 200
    dates = pd.date_range(start="2024-01-01", periods=n, freq="5min", tz=timezone.utc)

    base_price = 100.0
    returns = np.random.normal(0.0001, 0.002, n)
    prices = base_price * np.exp(np.cumsum(returns))
    prices = prices + np.linspace(0, 5, n)

    high_noise = np.abs(np.random.normal(0, 0.5, n))
    low_noise = np.abs(np.random.normal(0, 0.5, n))

    df = pd.DataFrame({
        "open": prices + np.random.normal(0, 0.1, n),
        "high": prices + high_noise,
        "low": prices - low_noise,
        "close": prices,
        "volume": np.random.randint(1000, 50000, n).astype(float),
    }, index=dates)

    # Ensure high >= close >= low and high >= open >= low
    df["high"] = df[["open", "high", "close"]].max(axis=1) + 0.01
    df["low"] = df[["open", "low", "close"]].min(axis=1) - 0.01
    return df


@pytest.fixture
def flat_df():
    """14 candles with open = high = low = close = 100."""
    dates = pd.date_range(start="2024-01-01", periods=14, freq="5min", tz=timezone.utc)
    return pd.DataFrame({
        "open": 100.0,
        "high": 100.0,
        "low": 100.0,
        "close": 100.0,
        "volume": 1000.0,
    }, index=dates)


@pytest.fixture
def uptrend_df():
    """60 candles with close = 100 + i: a strict, steady uptrend."""
    n = 60
    dates = pd.date_range(start="2024-01-01", periods=n, freq="5min", tz=timezone.utc)
    close = 100.0 + np.arange(n, dtype=float)
    open_ = close - 1.0
    return pd.DataFrame({
        "open": open_,
        "high": close + 0.5,
        "low": open_ - 0.5,
        "close": close,
        "volume": 1000.0 + 10.0 * np.arange(n),
    }, index=dates)


@pytest.fixture
def downtrend_df(uptrend_df):
    """Mirror of the uptrend: close = 159 - i."""
    n = len(uptrend_df)
    close = 159.0 - np.arange(n, dtype=float)
    open_ = close + 1.0
    return pd.DataFrame({
        "open": open_,
        "high": open_ + 0.5,
        "low": close - 0.5,
        "close": close,
        "volume": uptrend_df["volume"].values,
    }, index=uptrend_df.index)


@pytest.fixture
def empty_df():
    """Empty DataFrame for edge case testing."""
    return pd.DataFrame(columns=["open", "high", "low", "close", "volume"], dtype=float)


def make_ticks(n: int = 300, symbol: str = "TEST", start: datetime = None, seed: int = 11):
    """One tick per minute around 100 with a seeded random walk."""
    rng = np.random.default_rng(seed)
    start = start or datetime(2024, 2, 13, 3, 45, tzinfo=timezone.utc)
    prices = 100.0 + np.cumsum(rng.normal(0.0, 0.2, n))
    return [
        Tick(
            symbol=symbol,
            price=round(float(p), 2),
            volume=float(rng.integers(100, 1000)),
            timestamp=start + timedelta(minutes=i),
        )
        for i, p in enumerate(prices)
    ]


@pytest.fixture
def ticks():
    """300 one-minute ticks for a single symbol."""
    return make_ticks()


@pytest.fixture
def tick_factory():
    """Build custom tick series inside a test."""
    return make_ticks
