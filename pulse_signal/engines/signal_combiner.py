"""
PULSE SIGNAL — Signal Combiner
Runs the indicator library over the full candle history, aggregates scores by
category under regime-adaptive weights, normalises confidence, gates the
action through the threshold policy and attaches trade levels.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
import math

import pandas as pd

from pulse_signal.config.settings import AppSettings, get_settings
from pulse_signal.data.models import (
    OHLCV_COLUMNS, Candle, IndicatorCategory, Regime, SignalAction, SignalStrength, candles_to_frame,
)
from pulse_signal.engines.confirmation import synthetic_options_confirmation
from pulse_signal.engines.levels import LevelCalculator, TradeLevels
from pulse_signal.engines.regime import MarketRegime, MarketRegimeDetector
from pulse_signal.engines.thresholds import (
    Confirmation, ThresholdPolicy, bullish_percentage, dominance, get_policy,
)
from pulse_signal.engines.weighting import INDICATOR_IMPORTANCE, average_power, category_scores
from pulse_signal.indicators.base import IndicatorResult
from pulse_signal.indicators.registry import IndicatorRegistry
from pulse_signal.utils.errors import InsufficientDataError
from pulse_signal.utils.helpers import clamp, is_number, to_jsonable
from pulse_signal.utils.logger import get_logger

logger = get_logger("signal_combiner")

ConfirmationProvider = Callable[[str, pd.DataFrame, List[IndicatorResult]], Optional[Confirmation]]


@dataclass
class TradingSignal:
    """The composed output of one orchestration cycle."""
    symbol: str
    timeframe: str
    timestamp: Optional[datetime]
    current_price: float
    action: SignalAction
    strength: SignalStrength
    confidence: float
    levels: TradeLevels
    category_scores: Dict[IndicatorCategory, float] = field(default_factory=dict)
    total_score: float = 0.0
    regime: Optional[MarketRegime] = None
    dynamic_weights: Dict[IndicatorCategory, float] = field(default_factory=dict)
    reasoning: List[str] = field(default_factory=list)
    alerts: List[str] = field(default_factory=list)
    confidence_level: str = "LOW"
    bullish_percentage: float = 50.0
    indicators: List[IndicatorResult] = field(default_factory=list)
    candles_analyzed: int = 0

    @property
    def is_actionable(self) -> bool:
        return self.action != SignalAction.HOLD

    @property
    def bearish_percentage(self) -> float:
        return 100.0 - self.bullish_percentage

    def to_dict(self, include_indicators: bool = False) -> Dict[str, Any]:
        result = {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
            "current_price": self.current_price,
            "signal": {
                "action": self.action.value,
                "strength": self.strength.value,
                "confidence": round(self.confidence, 2),
                "confidence_level": self.confidence_level,
                "bullish_percentage": round(self.bullish_percentage),
                "bearish_percentage": round(self.bearish_percentage),
                "percentage_difference": round(abs(2.0 * self.bullish_percentage - 100.0)),
            },
            "levels": self.levels.to_dict(),
            "scoring": {
                **{c.value: round(s, 4) for c, s in self.category_scores.items()},
                "total_score": round(self.total_score, 4),
            },
            "market_regime": self.regime.to_dict() if self.regime else None,
            "dynamic_weights": {c.value: round(w, 6) for c, w in self.dynamic_weights.items()},
            "reasoning": list(self.reasoning),
            "alerts": list(self.alerts),
            "metadata": {
                "indicators_used": len(self.indicators),
                "candles_analyzed": self.candles_analyzed,
            },
        }
        if include_indicators:
            result["indicators"] = [r.to_dict() for r in self.indicators]
        return to_jsonable(result)

    def __repr__(self) -> str:
        return (
            f"TradingSignal({self.symbol} {self.timeframe}: {self.action.value} | "
            f"score={self.total_score:.1f} confidence={self.confidence:.0f})"
        )


def signal_strength(confidence: float) -> SignalStrength:
    if confidence >= 80:
        return SignalStrength.VERY_STRONG
    if confidence >= 70:
        return SignalStrength.STRONG
    if confidence >= 60:
        return SignalStrength.MODERATE
    if confidence >= 50:
        return SignalStrength.WEAK
    return SignalStrength.VERY_WEAK


def confidence_level(confidence: float) -> str:
    if confidence >= 75:
        return "HIGH"
    if confidence >= 50:
        return "MEDIUM"
    return "LOW"


def agreement_bonus(scores: Dict[IndicatorCategory, float]) -> float:
    """0-20: tight clustering of non-zero category scores that lean one way."""
    active = [s for s in scores.values() if s != 0]
    if len(active) < 2:
        return 0.0
    mean = sum(active) / len(active)
    std = math.sqrt(sum((s - mean) ** 2 for s in active) / len(active))
    agreement = max(0.0, 1.0 - std / 100.0)
    bullish = sum(1 for s in active if s > 20)
    bearish = sum(1 for s in active if s < -20)
    directionality = abs(bullish - bearish) / len(active)
    return float(round(20.0 * agreement * directionality))


def regime_alignment_bonus(scores: Dict[IndicatorCategory, float], regime: MarketRegime) -> float:
    """0-10: trend dominance under strong trends, S/R dominance in ranges."""
    if regime.regime == Regime.STRONG_TRENDING:
        trend = abs(scores.get(IndicatorCategory.TREND, 0.0))
        return 10.0 if trend > 60 else 5.0 if trend > 40 else 0.0
    if regime.regime == Regime.RANGING:
        sr = abs(scores.get(IndicatorCategory.SUPPORT_RESISTANCE, 0.0))
        return 10.0 if sr > 50 else 5.0 if sr > 30 else 0.0
    return 0.0


def _score_label(score: float) -> str:
    if score > 40:
        return "strong up"
    if score > 15:
        return "bullish"
    if score > -15:
        return "neutral"
    if score > -40:
        return "bearish"
    return "strong down"


def _frame_timestamp(df: pd.DataFrame) -> Optional[datetime]:
    ts = df.index[-1]
    if isinstance(ts, pd.Timestamp):
        return ts.to_pydatetime()
    if isinstance(ts, datetime):
        return ts
    return None


def warming_up_signal(
    symbol: str,
    timeframe: str,
    timestamp: Optional[datetime],
    price: float,
    candles: int,
    required: int,
) -> TradingSignal:
    """HOLD placeholder emitted while the candle history is shorter than the warm-up."""
    return TradingSignal(
        symbol=symbol,
        timeframe=timeframe,
        timestamp=timestamp,
        current_price=price,
        action=SignalAction.HOLD,
        strength=SignalStrength.VERY_WEAK,
        confidence=0.0,
        levels=TradeLevels.zero(),
        reasoning=[f"Warming up: {candles}/{required} candles"],
        candles_analyzed=candles,
    )


class SignalCombiner:
    """
    Orchestrator: registry -> category scores -> regime weights -> confidence
    -> threshold policy -> levels -> TradingSignal.

    Holds no state between calls; every collaborator is injected or built
    from explicit settings.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        registry: Optional[IndicatorRegistry] = None,
        regime_detector: Optional[MarketRegimeDetector] = None,
        level_calculator: Optional[LevelCalculator] = None,
        policy: Optional[ThresholdPolicy] = None,
        importance: Optional[Dict[str, float]] = None,
        confirmation_provider: Optional[ConfirmationProvider] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or IndicatorRegistry(self.settings.indicators)
        self.regime_detector = regime_detector or MarketRegimeDetector(self.settings.regime)
        self.level_calculator = level_calculator or LevelCalculator(self.settings.levels)
        self.policy = policy or get_policy(self.settings.signals.threshold_preset)
        self.importance = importance if importance is not None else INDICATOR_IMPORTANCE
        if confirmation_provider is None and self.settings.signals.synthetic_confirmation:
            confirmation_provider = synthetic_options_confirmation
        self.confirmation_provider = confirmation_provider

    @staticmethod
    def to_frame(candles: Union[pd.DataFrame, Sequence[Candle]]) -> pd.DataFrame:
        if isinstance(candles, pd.DataFrame):
            return candles
        return candles_to_frame(list(candles))

    def generate_signal(
        self,
        candles: Union[pd.DataFrame, Sequence[Candle]],
        symbol: str = "UNKNOWN",
        timeframe: str = "5m",
    ) -> TradingSignal:
        """
        Compose a signal from the full candle history.

        Raises InsufficientDataError only for empty input or a non-numeric
        last close; shorter-than-warm-up histories yield a warming-up HOLD.
        """
        df = self.to_frame(candles)
        if df is None or df.empty:
            raise InsufficientDataError("No candle data provided")
        missing = [c for c in OHLCV_COLUMNS if c not in df.columns]
        if missing:
            raise InsufficientDataError(f"Candle data missing columns {missing}")
        last_close = df["close"].iloc[-1]
        if not is_number(last_close):
            raise InsufficientDataError("Invalid candle data - missing OHLC close price")

        current_price = float(last_close)
        timestamp = _frame_timestamp(df)
        warmup = self.settings.signals.warmup_candles
        if len(df) < warmup:
            logger.debug("warmup_signal", symbol=symbol, candles=len(df), required=warmup)
            return warming_up_signal(symbol, timeframe, timestamp, current_price, len(df), warmup)

        regime = self.regime_detector.detect(df)
        weights = dict(regime.weights)

        results = self.registry.evaluate_all(df)
        scores = category_scores(results, self.importance)
        total_score = clamp(sum(scores[c] * weights.get(c, 0.0) for c in IndicatorCategory), -100.0, 100.0)

        confidence = self.normalize_confidence(total_score, scores, regime, results)
        confirmation = self._confirmation(symbol, df, results)
        action = self.policy.select_action(total_score, confidence, confirmation)

        by_id = {r.id: r for r in results}
        pivots = by_id["pivot_points"].values if "pivot_points" in by_id else None
        levels = self.level_calculator.compute_levels(df, action, current_price, pivots, symbol)

        signal = TradingSignal(
            symbol=symbol,
            timeframe=timeframe,
            timestamp=timestamp,
            current_price=current_price,
            action=action,
            strength=signal_strength(confidence),
            confidence=confidence,
            levels=levels,
            category_scores=scores,
            total_score=total_score,
            regime=regime,
            dynamic_weights=weights,
            confidence_level=confidence_level(confidence),
            bullish_percentage=bullish_percentage(total_score),
            indicators=results,
            candles_analyzed=len(df),
        )
        signal.reasoning = self.build_reasoning(signal, by_id)
        signal.alerts = self.build_alerts(signal, by_id)

        logger.info(
            "signal_generated",
            symbol=symbol,
            timeframe=timeframe,
            action=action.value,
            total_score=round(total_score, 2),
            confidence=round(confidence, 2),
            regime=regime.regime.value,
            indicators=len(results),
        )
        return signal

    def normalize_confidence(
        self,
        total_score: float,
        scores: Dict[IndicatorCategory, float],
        regime: MarketRegime,
        results: List[IndicatorResult],
    ) -> float:
        confidence = bullish_percentage(total_score)
        confidence += agreement_bonus(scores)
        if regime.regime != Regime.UNKNOWN:
            confidence += regime_alignment_bonus(scores, regime)

        active = len(results)
        if active < 10:
            confidence *= 0.7
        elif active < 20:
            confidence *= 0.85

        confidence *= 0.8 + average_power(results) * 0.4
        return clamp(confidence, 0.0, 100.0)

    def _confirmation(self, symbol: str, df: pd.DataFrame, results: List[IndicatorResult]) -> Optional[Confirmation]:
        if self.confirmation_provider is None:
            return None
        try:
            return self.confirmation_provider(symbol, df, results)
        except Exception as e:
            logger.warning("confirmation_unavailable", symbol=symbol, error=str(e))
            return None

    def build_reasoning(self, signal: TradingSignal, by_id: Dict[str, IndicatorResult]) -> List[str]:
        reasoning: List[str] = []
        scores = signal.category_scores
        confidence = signal.confidence

        if signal.regime and signal.regime.is_known:
            reasoning.append(f"Market regime: {signal.regime.interpretation}")
        if signal.levels.reasoning:
            reasoning.append("Trade levels:")
            reasoning.extend(f"  {line}" for line in signal.levels.reasoning)

        action = signal.action
        if action == SignalAction.STRONG_BUY:
            reasoning.append(f"Strong buy signal detected with {confidence:.0f}% confidence")
        elif action == SignalAction.BUY:
            reasoning.append(f"Buy signal detected with {confidence:.0f}% confidence")
        elif action == SignalAction.STRONG_SELL:
            reasoning.append(f"Strong sell signal detected with {confidence:.0f}% confidence")
        elif action == SignalAction.SELL:
            reasoning.append(f"Sell signal detected with {confidence:.0f}% confidence")
        else:
            reasoning.append(f"No entry - {confidence:.0f}% confidence")
            if abs(scores.get(IndicatorCategory.TREND, 0.0)) < 15:
                reasoning.append("Weak trend - no clear directional bias")
            if abs(scores.get(IndicatorCategory.MOMENTUM, 0.0)) < 20:
                reasoning.append("Momentum neutral - bulls and bears balanced")
            if confidence < self.policy.confidence_floor:
                reasoning.append(
                    f"Confidence {confidence:.0f}% below the {self.policy.confidence_floor:.0f}% entry floor"
                )
            if dominance(signal.total_score) < self.policy.dominance_floor:
                reasoning.append(f"Directional dominance {dominance(signal.total_score):.0f}% "
                                 f"below {self.policy.dominance_floor:.0f}%")

        for category in (IndicatorCategory.TREND, IndicatorCategory.MOMENTUM,
                         IndicatorCategory.VOLUME, IndicatorCategory.VOLATILITY,
                         IndicatorCategory.SUPPORT_RESISTANCE, IndicatorCategory.PATTERN):
            score = scores.get(category, 0.0)
            reasoning.append(f"{category.value}: {score:.0f}/100 ({_score_label(score)})")

        rsi = by_id.get("rsi_14")
        if rsi is not None:
            value = rsi.values.get("rsi", 50.0)
            note = ("oversold" if value < 30 else "overbought" if value > 70
                    else "bullish" if value > 50 else "bearish" if value < 50 else "neutral")
            reasoning.append(f"RSI(14): {value:.1f} ({note})")
        adx = by_id.get("adx")
        if adx is not None:
            value = adx.values.get("adx", 0.0)
            note = ("very strong trend" if value > 40 else "strong trend" if value > 25
                    else "trending" if value > 20 else "ranging/weak trend")
            reasoning.append(f"ADX: {value:.1f} ({note})")
        macd = by_id.get("macd")
        if macd is not None and is_number(macd.values.get("histogram")):
            hist = macd.values["histogram"]
            reasoning.append(f"MACD histogram: {hist:.2f} ({'bullish' if hist > 0 else 'bearish'})")

        extremes = [r for r in signal.indicators if abs(r.score) >= 80]
        for result in sorted(extremes, key=lambda r: -abs(r.score))[:3]:
            reasoning.append(f"{result.label} at extreme score {result.score:.0f}")

        ema20 = by_id.get("ema_20")
        if ema20 is not None and is_number(ema20.values.get("distance_pct")):
            distance = ema20.values["distance_pct"]
            if distance > 0:
                reasoning.append(f"Price trading {distance:.1f}% above EMA-20 (bullish)")
            elif distance < 0:
                reasoning.append(f"Price trading {abs(distance):.1f}% below EMA-20 (bearish)")

        crossover = by_id.get("ema_crossover")
        if crossover is not None:
            event = crossover.values.get("crossover")
            if event == "GOLDEN_CROSS":
                reasoning.append("Golden cross detected - bullish reversal signal")
            elif event == "DEATH_CROSS":
                reasoning.append("Death cross detected - bearish reversal signal")

        for result in signal.indicators:
            divergence = result.values.get("divergence") if isinstance(result.values, dict) else None
            if divergence:
                reasoning.append(f"{result.label}: {divergence.lower()} divergence")
        return reasoning

    def build_alerts(self, signal: TradingSignal, by_id: Dict[str, IndicatorResult]) -> List[str]:
        cfg = self.settings.signals
        alerts: List[str] = []

        if signal.confidence >= cfg.high_confidence_alert:
            alerts.append("High confidence signal - strong conviction")

        rsi = by_id.get("rsi_14")
        if rsi is not None:
            value = rsi.values.get("rsi", 50.0)
            if value < cfg.rsi_extreme_low:
                alerts.append("Extremely oversold conditions - potential reversal")
            elif value > cfg.rsi_extreme_high:
                alerts.append("Extremely overbought conditions - potential reversal")
            if rsi.values.get("divergence"):
                alerts.append(f"{rsi.values['divergence']} divergence detected - potential trend reversal")

        trend = signal.category_scores.get(IndicatorCategory.TREND, 0.0)
        momentum = signal.category_scores.get(IndicatorCategory.MOMENTUM, 0.0)
        limit = cfg.conflict_threshold
        if (trend > limit and momentum < -limit) or (trend < -limit and momentum > limit):
            alerts.append("Conflicting signals between trend and momentum - exercise caution")
        return alerts
