"""
PULSE SIGNAL — Indicator Registry
Explicit registry of all evaluators; evaluates each against the full candle
history with per-indicator fault isolation.
"""
from collections import OrderedDict
from typing import Dict, List, Optional

import pandas as pd

from pulse_signal.config.settings import IndicatorSettings, get_settings
from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import BaseIndicator, IndicatorResult
from pulse_signal.indicators.breakout import DonchianChannelIndicator, SupertrendIndicator
from pulse_signal.indicators.composite import IchimokuIndicator, VWAPIndicator
from pulse_signal.indicators.directional import ADXIndicator, AroonIndicator, VortexIndicator
from pulse_signal.indicators.momentum import (
    CCIIndicator, CMOIndicator, MomentumIndicator, ROCIndicator, RSIIndicator, RVIIndicator,
    StochasticOscillator, TSIIndicator,
)
from pulse_signal.indicators.oscillators import (
    AwesomeOscillator, CoppockCurveIndicator, ElderRayIndicator, KSTIndicator, MACDIndicator,
    PPOIndicator, SchaffTrendCycle, TRIXIndicator, UltimateOscillator, WaveTrendIndicator,
    WilliamsRIndicator,
)
from pulse_signal.indicators.patterns import (
    CandlestickPatternIndicator, HeikinAshiIndicator, QStickIndicator,
)
from pulse_signal.indicators.structural import (
    BreakOfStructureIndicator, ChangeOfCharacterIndicator, DemandSupplyZonesIndicator,
    EnhancedSRZonesIndicator, FairValueGapIndicator, FibonacciRetracementIndicator,
    PivotPointsIndicator,
)
from pulse_signal.indicators.trend import (
    DEMAIndicator, EMACrossoverIndicator, EMAIndicator, EMARibbonIndicator, HMAIndicator,
    MassIndexIndicator, ParabolicSARIndicator, SMAIndicator, TEMAIndicator,
)
from pulse_signal.indicators.volatility import (
    ATRIndicator, BBBandwidthIndicator, BBPercentBIndicator, BollingerBandsIndicator,
    HistoricalVolatilityIndicator, KeltnerChannelIndicator, NATRIndicator, UlcerIndexIndicator,
)
from pulse_signal.indicators.volume import (
    AccumulationDistributionIndicator, ChaikinMoneyFlowIndicator, EaseOfMovementIndicator,
    ForceIndexIndicator, KlingerOscillator, MFIIndicator, OBVIndicator, PVTIndicator,
    RelativeVolumeIndicator, VolumeIndexIndicator,
)
from pulse_signal.utils.errors import IndicatorComputationError, InsufficientDataError
from pulse_signal.utils.logger import get_logger

logger = get_logger("indicator_registry")


class IndicatorRegistry:
    """
    Registry for all technical indicators.
    Each evaluator sees the entire candle history; failures are isolated per indicator.
    """

    def __init__(self, settings: Optional[IndicatorSettings] = None):
        self.settings = settings or get_settings().indicators
        self._indicators: Dict[str, BaseIndicator] = OrderedDict()
        self._register_all()

    def _register_all(self) -> None:
        """Register all standard indicators with configured parameters."""
        s = self.settings
        indicators = [
            # Trend
            *[EMAIndicator(p) for p in s.ema_periods],
            *[SMAIndicator(p) for p in s.sma_periods],
            EMACrossoverIndicator(fast=s.ema_cross_fast, slow=s.ema_cross_slow),
            EMARibbonIndicator(periods=s.ema_periods),
            MACDIndicator(fast=s.macd_fast, slow=s.macd_slow, signal=s.macd_signal),
            ADXIndicator(period=s.adx_period),
            SupertrendIndicator(period=s.supertrend_period, multiplier=s.supertrend_mult),
            ParabolicSARIndicator(),
            AroonIndicator(),
            DEMAIndicator(),
            TEMAIndicator(),
            HMAIndicator(),
            IchimokuIndicator(),
            VortexIndicator(),
            MassIndexIndicator(),
            # Momentum
            *[RSIIndicator(p) for p in s.rsi_periods],
            StochasticOscillator(k_period=s.stoch_k_period, d_period=s.stoch_d_period),
            CCIIndicator(period=s.cci_period),
            WilliamsRIndicator(period=s.williams_period),
            ROCIndicator(),
            UltimateOscillator(),
            PPOIndicator(),
            ElderRayIndicator(),
            KSTIndicator(),
            RVIIndicator(),
            CoppockCurveIndicator(),
            SchaffTrendCycle(),
            WaveTrendIndicator(),
            TRIXIndicator(),
            TSIIndicator(),
            MomentumIndicator(),
            CMOIndicator(),
            AwesomeOscillator(),
            # Volatility
            BollingerBandsIndicator(period=s.bb_period, std_dev=s.bb_std),
            BBBandwidthIndicator(period=s.bb_period, std_dev=s.bb_std),
            BBPercentBIndicator(period=s.bb_period, std_dev=s.bb_std),
            ATRIndicator(period=s.atr_period),
            NATRIndicator(period=s.atr_period),
            KeltnerChannelIndicator(period=s.keltner_period, atr_mult=s.keltner_atr_mult),
            DonchianChannelIndicator(period=s.donchian_period),
            UlcerIndexIndicator(),
            HistoricalVolatilityIndicator(),
            # Volume
            OBVIndicator(),
            MFIIndicator(period=s.mfi_period),
            VWAPIndicator(),
            AccumulationDistributionIndicator(),
            ChaikinMoneyFlowIndicator(period=s.cmf_period),
            KlingerOscillator(),
            PVTIndicator(),
            VolumeIndexIndicator(mode="negative"),
            VolumeIndexIndicator(mode="positive"),
            ForceIndexIndicator(),
            EaseOfMovementIndicator(),
            RelativeVolumeIndicator(),
            # Support / resistance
            PivotPointsIndicator(),
            EnhancedSRZonesIndicator(),
            DemandSupplyZonesIndicator(),
            FairValueGapIndicator(),
            ChangeOfCharacterIndicator(),
            BreakOfStructureIndicator(),
            FibonacciRetracementIndicator(),
            # Patterns
            QStickIndicator(period=s.qstick_period),
            CandlestickPatternIndicator(),
            HeikinAshiIndicator(),
        ]

        for ind in indicators:
            self._indicators[ind.name] = ind

        logger.info("indicators_registered", count=len(self._indicators))

    def register(self, indicator: BaseIndicator) -> None:
        """Register a custom indicator (replaces one with the same name)."""
        self._indicators[indicator.name] = indicator
        logger.info("indicator_added", name=indicator.name)

    def unregister(self, name: str) -> None:
        """Remove an indicator from the registry."""
        if name in self._indicators:
            del self._indicators[name]

    def get(self, name: str) -> Optional[BaseIndicator]:
        """Get a specific indicator by name."""
        return self._indicators.get(name)

    @property
    def indicator_names(self) -> List[str]:
        """List all registered indicator names."""
        return list(self._indicators.keys())

    @property
    def count(self) -> int:
        """Number of registered indicators."""
        return len(self._indicators)

    def evaluate_all(self, data: pd.DataFrame) -> List[IndicatorResult]:
        """
        Evaluate every registered indicator on the full OHLCV history.
        Indicators short of history or failing to compute are omitted.
        """
        if data.empty:
            logger.warning("evaluate_all_empty_data")
            return []

        results: List[IndicatorResult] = []
        skipped = 0
        for name, indicator in self._indicators.items():
            try:
                results.append(indicator.evaluate(data))
            except InsufficientDataError as e:
                skipped += 1
                logger.debug("indicator_skipped", indicator=name, reason=str(e))
            except IndicatorComputationError as e:
                skipped += 1
                logger.error("indicator_compute_error", indicator=name, error=str(e))

        logger.debug("indicators_evaluated", available=len(results), skipped=skipped)
        return results

    @staticmethod
    def by_category(results: List[IndicatorResult]) -> Dict[IndicatorCategory, List[IndicatorResult]]:
        """Group results by category; every category is present, possibly empty."""
        grouped: Dict[IndicatorCategory, List[IndicatorResult]] = {c: [] for c in IndicatorCategory}
        for result in results:
            grouped[result.category].append(result)
        return grouped
