"""
PULSE SIGNAL — Market Regime Detector
Classifies trend regime (ADX + Choppiness Index) and volatility bucket
(ATR% z-score) and derives adaptive category weights that sum to 1.0.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import math

import numpy as np
import pandas as pd

from pulse_signal.config.settings import RegimeSettings, get_settings
from pulse_signal.data.models import IndicatorCategory, Regime, VolatilityLevel
from pulse_signal.indicators.base import true_range, wilder
from pulse_signal.indicators.directional import ADXIndicator
from pulse_signal.utils.errors import RegimeDetectionError
from pulse_signal.utils.logger import get_logger

logger = get_logger("regime_detector")

C = IndicatorCategory

REGIME_MULTIPLIERS: Dict[Regime, Dict[IndicatorCategory, float]] = {
    Regime.STRONG_TRENDING: {
        C.TREND: 1.25, C.MOMENTUM: 1.12, C.VOLUME: 1.20,
        C.SUPPORT_RESISTANCE: 0.67, C.VOLATILITY: 0.60, C.PATTERN: 0.85,
    },
    Regime.WEAK_TRENDING: {
        C.TREND: 1.10, C.MOMENTUM: 1.05, C.SUPPORT_RESISTANCE: 1.10,
    },
    Regime.RANGING: {
        C.SUPPORT_RESISTANCE: 1.67, C.VOLATILITY: 1.50, C.MOMENTUM: 1.12,
        C.TREND: 0.71, C.VOLUME: 0.67, C.PATTERN: 1.14,
    },
}

VOLATILITY_MULTIPLIERS: Dict[VolatilityLevel, Dict[IndicatorCategory, float]] = {
    VolatilityLevel.VERY_HIGH: {C.VOLATILITY: 1.5, C.VOLUME: 1.2, C.MOMENTUM: 0.9},
    VolatilityLevel.HIGH: {C.VOLATILITY: 1.5, C.VOLUME: 1.2, C.MOMENTUM: 0.9},
    VolatilityLevel.LOW: {C.VOLATILITY: 0.8, C.TREND: 1.1},
    VolatilityLevel.VERY_LOW: {C.VOLATILITY: 0.8, C.TREND: 1.1},
}

VOLATILITY_CONFIDENCE = {
    VolatilityLevel.VERY_HIGH: 90.0,
    VolatilityLevel.VERY_LOW: 90.0,
    VolatilityLevel.HIGH: 80.0,
    VolatilityLevel.LOW: 80.0,
    VolatilityLevel.ELEVATED: 70.0,
    VolatilityLevel.NORMAL: 60.0,
}

REGIME_DESCRIPTIONS = {
    Regime.STRONG_TRENDING: "Market showing strong directional movement",
    Regime.WEAK_TRENDING: "Market showing weak directional bias",
    Regime.RANGING: "Market moving sideways without clear direction",
    Regime.UNKNOWN: "Unable to determine market regime",
}

VOLATILITY_DESCRIPTIONS = {
    VolatilityLevel.VERY_HIGH: "extremely high volatility",
    VolatilityLevel.HIGH: "high volatility",
    VolatilityLevel.ELEVATED: "elevated volatility",
    VolatilityLevel.NORMAL: "normal volatility",
    VolatilityLevel.LOW: "low volatility",
    VolatilityLevel.VERY_LOW: "extremely low volatility",
}


def baseline_weights(settings: Optional[RegimeSettings] = None) -> Dict[IndicatorCategory, float]:
    """Baseline category weights, normalised to sum to 1.0."""
    settings = settings or get_settings().regime
    raw = {category: float(settings.baseline_weights.get(category.value, 0.0)) for category in C}
    return normalize_weights(raw)


def normalize_weights(weights: Dict[IndicatorCategory, float]) -> Dict[IndicatorCategory, float]:
    total = sum(weights.values())
    if total <= 0:
        return {category: 1.0 / len(weights) for category in weights}
    return {category: value / total for category, value in weights.items()}


@dataclass
class MarketRegime:
    """Regime classification with the category weights it implies."""
    regime: Regime
    volatility: VolatilityLevel
    confidence: float
    weights: Dict[IndicatorCategory, float]
    adx: Optional[float] = None
    choppiness: Optional[float] = None
    atr_percent: Optional[float] = None
    atr_zscore: Optional[float] = None
    interpretation: str = ""
    metrics: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_known(self) -> bool:
        return self.regime != Regime.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        def _r(value, digits=2):
            return round(value, digits) if value is not None and math.isfinite(value) else None

        return {
            "regime": self.regime.value,
            "volatility": self.volatility.value,
            "confidence": round(self.confidence, 2),
            "weight_adjustments": {c.value: round(w, 6) for c, w in self.weights.items()},
            "adx": _r(self.adx),
            "choppiness": _r(self.choppiness),
            "atr_percent": _r(self.atr_percent, 4),
            "atr_zscore": _r(self.atr_zscore, 4),
            "interpretation": self.interpretation,
        }


class MarketRegimeDetector:
    """
    Trend regime from ADX(14) and Choppiness(14), volatility bucket from the
    z-score of current ATR% against its own history.
    """

    def __init__(self, settings: Optional[RegimeSettings] = None):
        self.settings = settings or get_settings().regime
        self._adx = ADXIndicator(period=self.settings.adx_period)

    def unknown(self, reason: str = "") -> MarketRegime:
        return MarketRegime(
            regime=Regime.UNKNOWN,
            volatility=VolatilityLevel.NORMAL,
            confidence=0.0,
            weights=baseline_weights(self.settings),
            interpretation=REGIME_DESCRIPTIONS[Regime.UNKNOWN],
            metrics={"reason": reason} if reason else {},
        )

    def detect(self, df: pd.DataFrame) -> MarketRegime:
        """Classify the latest bar; UNKNOWN below min_candles or on any computation failure."""
        if len(df) < self.settings.min_candles:
            return self.unknown(f"needs {self.settings.min_candles} candles, got {len(df)}")
        try:
            return self._detect(df)
        except RegimeDetectionError as e:
            logger.warning("regime_detection_fallback", error=str(e))
            return self.unknown(str(e))

    def _detect(self, df: pd.DataFrame) -> MarketRegime:
        try:
            adx = float(self._adx.calculate(df)["adx"].iloc[-1])
            chop = self.choppiness(df)
            atr_pct, zscore = self.atr_zscore(df)
        except (KeyError, ValueError, TypeError, ZeroDivisionError) as e:
            raise RegimeDetectionError(f"regime metrics failed: {e}") from e
        if not (math.isfinite(adx) and math.isfinite(chop)):
            raise RegimeDetectionError(f"non-finite regime metrics adx={adx} chop={chop}")

        regime, regime_conf = self.classify(adx, chop)
        volatility = self.volatility_level(zscore)
        confidence = (regime_conf + VOLATILITY_CONFIDENCE[volatility]) / 2.0
        weights = self.weight_adjustments(regime, volatility)

        logger.debug("regime_detected", regime=regime.value, volatility=volatility.value,
                     adx=round(adx, 2), chop=round(chop, 2))
        return MarketRegime(
            regime=regime,
            volatility=volatility,
            confidence=min(100.0, confidence),
            weights=weights,
            adx=adx,
            choppiness=chop,
            atr_percent=atr_pct,
            atr_zscore=zscore,
            interpretation=f"{REGIME_DESCRIPTIONS[regime]} with {VOLATILITY_DESCRIPTIONS[volatility]}",
        )

    def choppiness(self, df: pd.DataFrame) -> float:
        """100 * log10(sum TR / (HH - LL)) / log10(n) over the last n bars."""
        n = self.settings.chop_period
        tail = df.tail(n + 1)
        tr_sum = float(true_range(tail).tail(n).sum())
        span = float(tail["high"].tail(n).max() - tail["low"].tail(n).min())
        if span <= 0 or tr_sum <= 0:
            # no range at all is maximal chop
            return 100.0
        return 100.0 * math.log10(tr_sum / span) / math.log10(n)

    def atr_zscore(self, df: pd.DataFrame):
        """Current ATR% and its z-score against the full ATR% history (population std)."""
        atr = wilder(true_range(df), self.settings.adx_period)
        atr_pct = (atr / df["close"].replace(0, np.nan) * 100.0).dropna()
        if atr_pct.empty:
            return None, None
        current = float(atr_pct.iloc[-1])
        std = float(atr_pct.std(ddof=0))
        zscore = (current - float(atr_pct.mean())) / std if std > 0 else 0.0
        return current, zscore

    def classify(self, adx: float, chop: float):
        s = self.settings
        if adx > s.strong_adx and chop < s.trending_chop:
            return Regime.STRONG_TRENDING, min(100.0, 60.0 + (adx - s.strong_adx) + (s.trending_chop - chop))
        if s.weak_adx <= adx <= s.strong_adx and s.trending_chop <= chop <= s.ranging_chop:
            return Regime.WEAK_TRENDING, 60.0
        if adx < s.weak_adx and chop > s.ranging_chop:
            return Regime.RANGING, min(100.0, 60.0 + (s.weak_adx - adx) + (chop - s.ranging_chop))
        # mixed readings
        if adx > s.tiebreak_adx:
            return Regime.WEAK_TRENDING, 50.0
        if chop > s.ranging_chop:
            return Regime.RANGING, 50.0
        return Regime.WEAK_TRENDING, 40.0

    @staticmethod
    def volatility_level(zscore: Optional[float]) -> VolatilityLevel:
        if zscore is None:
            return VolatilityLevel.NORMAL
        if zscore > 1.5:
            return VolatilityLevel.VERY_HIGH
        if zscore > 1.0:
            return VolatilityLevel.HIGH
        if zscore > 0.5:
            return VolatilityLevel.ELEVATED
        if zscore < -1.5:
            return VolatilityLevel.VERY_LOW
        if zscore < -1.0:
            return VolatilityLevel.LOW
        return VolatilityLevel.NORMAL

    def weight_adjustments(self, regime: Regime, volatility: VolatilityLevel) -> Dict[IndicatorCategory, float]:
        weights = baseline_weights(self.settings)
        for category, factor in REGIME_MULTIPLIERS.get(regime, {}).items():
            weights[category] *= factor
        for category, factor in VOLATILITY_MULTIPLIERS.get(volatility, {}).items():
            weights[category] *= factor
        return normalize_weights(weights)
