"""
PULSE SIGNAL — Central Configuration
All settings are loaded from environment variables with sensible defaults.
Each group reads its own prefix (SIGNAL_, LEVEL_, REPLAY_, ...); list and
dict fields take JSON values, e.g. SYMBOLS='["NIFTY50"]'.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field
from typing import Dict, List, Optional


class AggregatorSettings(BaseSettings):
    """Candle aggregation timeframes (label -> minutes per bucket)."""
    timeframes: Dict[str, int] = {
        "1m": 1,
        "5m": 5,
        "15m": 15,
        "30m": 30,
        "1h": 60,
        "1d": 1440,
    }

    model_config = SettingsConfigDict(env_prefix="AGGREGATOR_", env_file=".env", extra="ignore")


class IndicatorSettings(BaseSettings):
    """Indicator computation parameters."""
    ema_periods: List[int] = [9, 20, 50]
    sma_periods: List[int] = [20, 50, 200]
    rsi_periods: List[int] = [14, 21]
    ema_cross_fast: int = 12
    ema_cross_slow: int = 26
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    adx_period: int = 14
    atr_period: int = 14
    bb_period: int = 20
    bb_std: float = 2.0
    keltner_period: int = 20
    keltner_atr_mult: float = 1.5
    donchian_period: int = 20
    supertrend_period: int = 10
    supertrend_mult: float = 3.0
    stoch_k_period: int = 14
    stoch_d_period: int = 3
    cci_period: int = 20
    williams_period: int = 14
    mfi_period: int = 14
    cmf_period: int = 20
    qstick_period: int = 14

    model_config = SettingsConfigDict(env_prefix="INDICATOR_", env_file=".env", extra="ignore")


class RegimeSettings(BaseSettings):
    """Market regime detection and baseline category weights."""
    min_candles: int = 50
    adx_period: int = 14
    chop_period: int = 14
    strong_adx: float = 30.0
    weak_adx: float = 20.0
    tiebreak_adx: float = 25.0
    trending_chop: float = 50.0
    ranging_chop: float = 61.8
    baseline_weights: Dict[str, float] = {
        "trend": 0.28,
        "momentum": 0.25,
        "volume": 0.15,
        "volatility": 0.10,
        "supportResistance": 0.15,
        "pattern": 0.07,
    }

    model_config = SettingsConfigDict(env_prefix="REGIME_", env_file=".env", extra="ignore")


class SignalSettings(BaseSettings):
    """Signal combiner warm-up, action policy and alert thresholds."""
    warmup_candles: int = 10
    threshold_preset: str = "strict"
    high_confidence_alert: float = 80.0
    rsi_extreme_low: float = 20.0
    rsi_extreme_high: float = 80.0
    conflict_threshold: float = 20.0
    # derive a confirmation input from price and volume when none is injected
    synthetic_confirmation: bool = False

    model_config = SettingsConfigDict(env_prefix="SIGNAL_", env_file=".env", extra="ignore")


class LevelSettings(BaseSettings):
    """Trade level (entry / stop / target) configuration."""
    mode: str = "structure"  # structure | fixed_percent
    min_stop_points: Dict[str, float] = {"NIFTY50": 20.0, "BANKNIFTY": 50.0, "DOWJONES": 50.0}
    min_stop_pct: float = 0.25
    pivot_max_stop_multiple: float = 5.0
    stop_buffer_ratio: float = 0.1
    swing_lookback: int = 20
    target_multiples: List[float] = [2.0, 3.0, 4.0]
    fixed_stop_pct: float = 1.0
    fixed_target_pcts: List[float] = [2.0, 3.0, 4.0]

    model_config = SettingsConfigDict(env_prefix="LEVEL_", env_file=".env", extra="ignore")


class ReplaySettings(BaseSettings):
    """Historical replay harness."""
    timeframe: str = "5m"
    speed: float = 1.0
    base_interval_seconds: float = Field(
        default=1.0, validation_alias=AliasChoices("base_interval_seconds", "REPLAY_INTERVAL")
    )
    fast_forward_index: int = 50
    snapshot_candles: int = 100
    persist_signals: bool = Field(
        default=True, validation_alias=AliasChoices("persist_signals", "REPLAY_PERSIST")
    )

    model_config = SettingsConfigDict(env_prefix="REPLAY_", env_file=".env", extra="ignore")


class TrackerSettings(BaseSettings):
    """Signal outcome tracking."""
    expiry_hours: float = 4.0

    model_config = SettingsConfigDict(env_prefix="TRACKER_", env_file=".env", extra="ignore")


class DatabaseSettings(BaseSettings):
    """Database configuration."""
    db_url: str = Field(
        default="sqlite:///pulse_signal.db", validation_alias=AliasChoices("db_url", "DATABASE_URL")
    )
    echo_sql: bool = False

    model_config = SettingsConfigDict(env_prefix="DB_", env_file=".env", extra="ignore")


class BacktestSettings(BaseSettings):
    """Backtesting configuration."""
    initial_capital: float = 100000.0
    commission_pct: float = 0.001
    slippage_pct: float = 0.0005
    position_size_pct: float = 0.02
    signal_every: int = 6

    model_config = SettingsConfigDict(env_prefix="BT_", env_file=".env", extra="ignore")


class AppSettings(BaseSettings):
    """Top-level application settings."""
    app_name: str = "PULSE SIGNAL"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"

    symbols: List[str] = ["NIFTY50", "BANKNIFTY", "DOWJONES"]

    aggregator: AggregatorSettings = Field(default_factory=AggregatorSettings)
    indicators: IndicatorSettings = Field(default_factory=IndicatorSettings)
    regime: RegimeSettings = Field(default_factory=RegimeSettings)
    signals: SignalSettings = Field(default_factory=SignalSettings)
    levels: LevelSettings = Field(default_factory=LevelSettings)
    replay: ReplaySettings = Field(default_factory=ReplaySettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Process default; components also accept explicit settings.
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
