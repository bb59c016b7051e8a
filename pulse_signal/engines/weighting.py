"""
PULSE SIGNAL — Indicator Importance & Power
Declarative importance table plus the pure power/weight functions used to
aggregate indicator scores into category scores.
"""
from typing import Dict, Iterable, Mapping, Optional

from pulse_signal.data.models import IndicatorCategory, SignalStrength
from pulse_signal.indicators.base import IndicatorResult

DEFAULT_IMPORTANCE = 0.85

# Static trust per indicator id; unlisted ids use DEFAULT_IMPORTANCE.
INDICATOR_IMPORTANCE: Dict[str, float] = {
    # Momentum
    "rsi_14": 1.0,
    "rsi_21": 0.9,
    "stochastic": 0.95,
    "cci": 0.85,
    "williams_r": 0.85,
    "roc": 0.80,
    "ultimate_oscillator": 0.90,
    "ppo": 0.85,
    "elder_ray": 0.90,
    "kst": 0.95,
    "rvi": 0.85,
    "coppock": 0.85,
    "schaff_trend": 0.90,
    "wavetrend": 0.90,
    "trix": 0.85,
    "tsi": 0.90,
    # Trend
    "macd": 1.0,
    "ema_9": 0.85,
    "ema_20": 1.0,
    "ema_50": 1.1,
    "sma_50": 1.0,
    "sma_200": 1.1,
    "adx": 1.0,
    "supertrend": 0.95,
    "parabolic_sar": 0.85,
    "aroon": 0.85,
    "dema_20": 0.90,
    "tema_20": 0.90,
    "hma_20": 0.95,
    "mass_index": 0.85,
    # Volume
    "obv": 1.0,
    "mfi": 0.95,
    "vwap": 1.0,
    "ad_line": 0.90,
    "cmf": 0.90,
    "klinger": 1.05,
    "pvt": 0.90,
    "nvi": 0.85,
    "pvi": 0.80,
    # Volatility
    "bollinger": 1.0,
    "atr": 0.95,
    "keltner": 0.90,
    "donchian": 0.85,
    "ulcer_index": 0.80,
    "natr": 0.85,
    "bb_bandwidth": 0.85,
    "bb_percent_b": 0.90,
    # Support / resistance
    "pivot_points": 1.0,
    "enhanced_sr": 1.05,
    "demand_supply": 1.0,
    "fair_value_gap": 0.95,
    "change_of_character": 0.90,
    "break_of_structure": 0.90,
    # Patterns
    "qstick": 0.85,
}


def indicator_power(result: IndicatorResult) -> float:
    """
    Dynamic trust in one reading: 0.5 base plus confidence, strength and
    clarity bonuses, capped at 1.0.
    """
    power = 0.5

    if result.confidence >= 80:
        power += 0.3
    elif result.confidence >= 60:
        power += 0.2
    elif result.confidence >= 50:
        power += 0.1

    if result.strength == SignalStrength.VERY_STRONG:
        power += 0.2
    elif result.strength == SignalStrength.STRONG:
        power += 0.1

    if abs(result.score) >= 60:
        power += 0.1

    return min(power, 1.0)


def importance_of(indicator_id: str, table: Optional[Mapping[str, float]] = None) -> float:
    table = INDICATOR_IMPORTANCE if table is None else table
    return table.get(indicator_id, DEFAULT_IMPORTANCE)


def indicator_weight(result: IndicatorResult, table: Optional[Mapping[str, float]] = None) -> float:
    """power x static importance"""
    return indicator_power(result) * importance_of(result.id, table)


def category_score(results: Iterable[IndicatorResult], table: Optional[Mapping[str, float]] = None) -> float:
    """Weighted mean score of one category (0 when empty)."""
    weighted = 0.0
    total_weight = 0.0
    for result in results:
        weight = indicator_weight(result, table)
        weighted += result.score * weight
        total_weight += weight
    return weighted / total_weight if total_weight > 0 else 0.0


def category_scores(
    results: Iterable[IndicatorResult],
    table: Optional[Mapping[str, float]] = None,
) -> Dict[IndicatorCategory, float]:
    """Weighted score per category; every category is present."""
    grouped: Dict[IndicatorCategory, list] = {c: [] for c in IndicatorCategory}
    for result in results:
        if result.available:
            grouped[result.category].append(result)
    return {category: category_score(items, table) for category, items in grouped.items()}


def average_power(results: Iterable[IndicatorResult]) -> float:
    powers = [indicator_power(r) for r in results if r.available]
    return sum(powers) / len(powers) if powers else 0.5
