"""
PULSE SIGNAL — Oscillator Indicators
Williams %R, MACD (12, 26, 9), PPO, Ultimate Oscillator, Awesome Oscillator,
Elder Ray, KST, Coppock Curve, Schaff Trend Cycle, WaveTrend, TRIX
"""
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from pulse_signal.data.models import IndicatorCategory
from pulse_signal.indicators.base import (
    BaseIndicator, SignalScore, cross, ema, last, pct_distance, prev, score_oscillator, sign, wma,
)


class WilliamsRIndicator(BaseIndicator):
    """Williams %R — close relative to the recent high/low range (-100..0)."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 14):
        self.period = period
        super().__init__(name="williams_r", params={"period": period},
                         min_history=period, label="Williams %R")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        highest_high = df["high"].rolling(window=self.period).max()
        lowest_low = df["low"].rolling(window=self.period).min()

        hl_range = highest_high - lowest_low
        df["williams_r"] = -100.0 * (highest_high - df["close"]) / hl_range.replace(0, np.nan)
        df["williams_r"] = df["williams_r"].fillna(-50.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        wr = df["williams_r"]
        builder = SignalScore()
        score_oscillator(builder, last(wr), prev(wr), mid=-50.0, upper=-20.0, lower=-80.0,
                         scale=0.8, cap=40.0, turn_tolerance=2.0, midline_cross=cross(wr, -50.0))
        return {"williams_r": last(wr)}, builder


class MACDIndicator(BaseIndicator):
    """MACD — Moving Average Convergence Divergence trend-following momentum indicator."""

    category = IndicatorCategory.TREND

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = fast
        self.slow = slow
        self.signal_period = signal
        super().__init__(name="macd", params={"fast": fast, "slow": slow, "signal": signal},
                         min_history=slow + signal, label="MACD")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()

        ema_fast = ema(df["close"], self.fast)
        ema_slow = ema(df["close"], self.slow)

        df["macd_line"] = ema_fast - ema_slow
        df["macd_signal"] = ema(df["macd_line"], self.signal_period)
        df["macd_histogram"] = df["macd_line"] - df["macd_signal"]
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        price = last(df["close"])
        line, signal, hist = last(df["macd_line"]), last(df["macd_signal"]), last(df["macd_histogram"])

        builder = SignalScore()
        builder.crossover(cross(df["macd_line"], df["macd_signal"]), 40.0)
        builder.add(cross(df["macd_line"], 0.0) * 20.0, "zero_cross")
        builder.position(pct_distance(price + line, price), scale=20.0, cap=30.0)
        builder.add(sign(hist) * 15.0, "histogram")
        builder.slope(pct_distance(price + hist - prev(df["macd_histogram"], 1, hist), price),
                      scale=200.0, cap=10.0)
        return {"macd": line, "signal": signal, "histogram": hist}, builder


class PPOIndicator(BaseIndicator):
    """Percentage Price Oscillator — MACD expressed in percent of the slow EMA."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, fast: int = 12, slow: int = 26, signal: int = 9):
        self.fast = fast
        self.slow = slow
        self.signal_period = signal
        super().__init__(name="ppo", params={"fast": fast, "slow": slow, "signal": signal},
                         min_history=slow, label="PPO")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        slow = ema(df["close"], self.slow)
        df["ppo"] = (ema(df["close"], self.fast) - slow) / slow.replace(0, np.nan) * 100.0
        df["ppo_signal"] = ema(df["ppo"], self.signal_period)
        df["ppo_histogram"] = df["ppo"] - df["ppo_signal"]
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        ppo = last(df["ppo"])
        builder = SignalScore()
        builder.position(ppo, scale=15.0, cap=40.0)
        builder.crossover(cross(df["ppo"], df["ppo_signal"]), 30.0)
        builder.add(sign(last(df["ppo_histogram"])) * 10.0, "histogram")
        return {"ppo": ppo, "signal": last(df["ppo_signal"]),
                "histogram": last(df["ppo_histogram"])}, builder


class UltimateOscillator(BaseIndicator):
    """Ultimate Oscillator — buying pressure across three horizons."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, short: int = 7, medium: int = 14, long: int = 28):
        self.windows = (short, medium, long)
        super().__init__(name="ultimate_oscillator",
                         params={"short": short, "medium": medium, "long": long},
                         min_history=long + 1, label="Ultimate Oscillator")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        prev_close = df["close"].shift(1)
        low = pd.concat([df["low"], prev_close], axis=1).min(axis=1)
        high = pd.concat([df["high"], prev_close], axis=1).max(axis=1)
        bp = df["close"] - low
        tr = high - low
        averages = [
            bp.rolling(w).sum() / tr.rolling(w).sum().replace(0, np.nan) for w in self.windows
        ]
        df["ultimate"] = 100.0 * (4 * averages[0] + 2 * averages[1] + averages[2]) / 7.0
        df["ultimate"] = df["ultimate"].fillna(50.0)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        uo = df["ultimate"]
        builder = SignalScore()
        score_oscillator(builder, last(uo), prev(uo), mid=50.0, upper=70.0, lower=30.0,
                         scale=0.8, cap=40.0, turn_tolerance=2.0)
        return {"ultimate": last(uo)}, builder


class AwesomeOscillator(BaseIndicator):
    """Awesome Oscillator — SMA(5) − SMA(34) of the median price."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, fast: int = 5, slow: int = 34):
        self.fast = fast
        self.slow = slow
        super().__init__(name="awesome_oscillator", params={"fast": fast, "slow": slow},
                         min_history=slow, label="Awesome Oscillator")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        median = (df["high"] + df["low"]) / 2.0
        df["ao"] = median.rolling(self.fast).mean() - median.rolling(self.slow).mean()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        ao = df["ao"]
        price = last(df["close"])
        value = last(ao)
        builder = SignalScore()
        builder.position(pct_distance(price + value, price), scale=20.0, cap=40.0)
        builder.crossover(cross(ao, 0.0), 30.0)
        builder.slope(sign(value - prev(ao)) * 10.0, cap=10.0)
        return {"ao": value}, builder


class ElderRayIndicator(BaseIndicator):
    """Elder Ray — bull and bear power around a 13-period EMA."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 13):
        self.period = period
        super().__init__(name="elder_ray", params={"period": period},
                         min_history=period + 7, label="Elder Ray")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        df["elder_ema"] = ema(df["close"], self.period)
        df["bull_power"] = df["high"] - df["elder_ema"]
        df["bear_power"] = df["low"] - df["elder_ema"]
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        price = last(df["close"])
        bull, bear = last(df["bull_power"]), last(df["bear_power"])
        builder = SignalScore()
        builder.position(pct_distance(price + bull + bear, price), scale=20.0, cap=50.0)
        builder.slope(sign(last(df["elder_ema"]) - prev(df["elder_ema"])) * 15.0, cap=15.0)
        return {"bull_power": bull, "bear_power": bear}, builder


class KSTIndicator(BaseIndicator):
    """Know Sure Thing — weighted sum of smoothed rates of change."""

    category = IndicatorCategory.MOMENTUM
    ROC_PERIODS = (10, 15, 20, 30)
    SMOOTHING = (10, 10, 10, 15)

    def __init__(self, signal: int = 9):
        self.signal_period = signal
        super().__init__(name="kst", params={"signal": signal},
                         min_history=self.ROC_PERIODS[-1] + self.SMOOTHING[-1] + 25, label="KST")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        close = df["close"]
        kst = 0.0
        for weight, (roc_period, smooth) in enumerate(zip(self.ROC_PERIODS, self.SMOOTHING), start=1):
            roc = (close / close.shift(roc_period).replace(0, np.nan) - 1.0) * 100.0
            kst = kst + weight * roc.rolling(smooth).mean()
        df["kst"] = kst
        df["kst_signal"] = df["kst"].rolling(self.signal_period).mean()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        kst = last(df["kst"])
        builder = SignalScore()
        builder.position(kst, scale=2.0, cap=40.0)
        builder.crossover(cross(df["kst"], df["kst_signal"]), 30.0)
        return {"kst": kst, "signal": last(df["kst_signal"])}, builder


class CoppockCurveIndicator(BaseIndicator):
    """Coppock Curve — WMA of the sum of two rates of change."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, long_roc: int = 14, short_roc: int = 11, wma_period: int = 10):
        self.long_roc = long_roc
        self.short_roc = short_roc
        self.wma_period = wma_period
        super().__init__(name="coppock",
                         params={"long_roc": long_roc, "short_roc": short_roc, "wma": wma_period},
                         min_history=long_roc + wma_period + 12, label="Coppock Curve")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        close = df["close"]
        roc_long = (close / close.shift(self.long_roc).replace(0, np.nan) - 1.0) * 100.0
        roc_short = (close / close.shift(self.short_roc).replace(0, np.nan) - 1.0) * 100.0
        df["coppock"] = wma(roc_long + roc_short, self.wma_period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        cc = df["coppock"]
        value = last(cc)
        builder = SignalScore()
        builder.position(value, scale=3.0, cap=40.0)
        builder.crossover(cross(cc, 0.0), 30.0)
        builder.slope(value - prev(cc), scale=5.0, cap=10.0)
        return {"coppock": value}, builder


class SchaffTrendCycle(BaseIndicator):
    """Schaff Trend Cycle — double stochastic of MACD (0..100)."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, fast: int = 23, slow: int = 50, cycle: int = 10):
        self.fast = fast
        self.slow = slow
        self.cycle = cycle
        super().__init__(name="schaff_trend", params={"fast": fast, "slow": slow, "cycle": cycle},
                         min_history=slow + 3 * cycle + 8, label="Schaff Trend")

    def _stoch(self, series: pd.Series) -> pd.Series:
        lo = series.rolling(self.cycle).min()
        hi = series.rolling(self.cycle).max()
        raw = 100.0 * (series - lo) / (hi - lo).replace(0, np.nan)
        return raw.ffill().fillna(50.0).ewm(alpha=0.5, adjust=False).mean()

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        macd = ema(df["close"], self.fast) - ema(df["close"], self.slow)
        df["stc"] = self._stoch(self._stoch(macd))
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        stc = df["stc"]
        builder = SignalScore()
        score_oscillator(builder, last(stc), prev(stc), mid=50.0, upper=75.0, lower=25.0,
                         scale=0.8, cap=40.0, turn_tolerance=5.0, midline_cross=cross(stc, 50.0))
        return {"stc": last(stc)}, builder


class WaveTrendIndicator(BaseIndicator):
    """WaveTrend oscillator (LazyBear) with its 4-bar signal line."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, channel: int = 10, average: int = 21):
        self.channel = channel
        self.average = average
        super().__init__(name="wavetrend", params={"channel": channel, "average": average},
                         min_history=channel + average + 14, label="WaveTrend")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        ap = (df["high"] + df["low"] + df["close"]) / 3.0
        esa = ema(ap, self.channel)
        d = ema((ap - esa).abs(), self.channel)
        ci = (ap - esa) / (0.015 * d.replace(0, np.nan))
        df["wt1"] = ema(ci.fillna(0.0), self.average)
        df["wt2"] = df["wt1"].rolling(4).mean()
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        wt1 = df["wt1"]
        builder = SignalScore()
        score_oscillator(builder, last(wt1), prev(wt1), mid=0.0, upper=60.0, lower=-60.0,
                         scale=0.6, cap=50.0, turn_tolerance=3.0)
        builder.crossover(cross(df["wt1"], df["wt2"]), 25.0)
        return {"wt1": last(wt1), "wt2": last(df["wt2"])}, builder


class TRIXIndicator(BaseIndicator):
    """TRIX — rate of change of a triple-smoothed EMA."""

    category = IndicatorCategory.MOMENTUM

    def __init__(self, period: int = 15, signal: int = 9):
        self.period = period
        self.signal_period = signal
        super().__init__(name="trix", params={"period": period, "signal": signal},
                         min_history=3 * period, label="TRIX")

    def calculate(self, data: pd.DataFrame) -> pd.DataFrame:
        df = data.copy()
        triple = ema(ema(ema(df["close"], self.period), self.period), self.period)
        df["trix"] = (triple / triple.shift(1).replace(0, np.nan) - 1.0) * 100.0
        df["trix_signal"] = ema(df["trix"].fillna(0.0), self.signal_period)
        return df

    def score(self, df: pd.DataFrame) -> Tuple[Dict[str, Any], SignalScore]:
        trix = last(df["trix"])
        builder = SignalScore()
        builder.position(trix, scale=50.0, cap=40.0)
        builder.crossover(cross(df["trix"], df["trix_signal"]), 25.0)
        return {"trix": trix, "signal": last(df["trix_signal"])}, builder
