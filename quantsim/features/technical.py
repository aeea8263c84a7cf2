"""
Per-bar indicator snapshots and additive technical scores.

`snapshot_at` reads one row of a precomputed indicator frame (see
`indicators.compute_indicator_frame`) and converts NaN warm-up samples into
``None`` so that decision code has to test availability explicitly.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import List, Literal, Optional

import pandas as pd

from quantsim.features.indicators import (
    compute_indicator_frame,
    support_resistance_at,
)
from quantsim.utils.frames import ohlcv_frame

log = logging.getLogger(__name__)

Direction = Literal["long", "short", "neutral"]

MIN_SNAPSHOT_BARS = 50
SR_LOOKBACK = 30


def _opt(value) -> Optional[float]:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(f) else f


def _gt(a: Optional[float], b: Optional[float]) -> bool:
    return a is not None and b is not None and a > b


def _lt(a: Optional[float], b: Optional[float]) -> bool:
    return a is not None and b is not None and a < b


@dataclass(frozen=True)
class MacdValues:
    macd: Optional[float] = None
    signal: Optional[float] = None
    histogram: Optional[float] = None


@dataclass(frozen=True)
class StochRsiValues:
    k: Optional[float] = None
    d: Optional[float] = None


@dataclass(frozen=True)
class BollingerValues:
    upper: Optional[float] = None
    middle: Optional[float] = None
    lower: Optional[float] = None
    width: Optional[float] = None

    def position(self, price: float) -> Optional[float]:
        """Where `price` sits inside the band: 0 at the lower band, 1 at the upper."""
        if self.upper is None or self.lower is None:
            return None
        rng = self.upper - self.lower
        if rng == 0:
            return None
        return (price - self.lower) / rng


@dataclass(frozen=True)
class IndicatorSnapshot:
    """Indicator values for a single bar; ``None`` marks "not yet available"."""

    close: float
    ema9: Optional[float] = None
    ema21: Optional[float] = None
    ema50: Optional[float] = None
    ema200: Optional[float] = None
    macd: MacdValues = field(default_factory=MacdValues)
    adx: Optional[float] = None
    rsi14: Optional[float] = None
    stoch_rsi: StochRsiValues = field(default_factory=StochRsiValues)
    williams_r: Optional[float] = None
    mfi: Optional[float] = None
    atr14: Optional[float] = None
    bollinger: BollingerValues = field(default_factory=BollingerValues)
    obv: Optional[float] = None
    vwap: Optional[float] = None
    support_levels: List[float] = field(default_factory=list)
    resistance_levels: List[float] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def snapshot_at(
    frame: pd.DataFrame, index: int, *, sr_lookback: int = SR_LOOKBACK
) -> IndicatorSnapshot:
    """Build the snapshot for bar `index` of an indicator frame."""
    row = frame.iloc[index]

    def col(name: str) -> Optional[float]:
        return _opt(row[name]) if name in row.index else None

    levels = support_resistance_at(frame, index, sr_lookback)
    return IndicatorSnapshot(
        close=float(row["close"]),
        ema9=col("ema9"),
        ema21=col("ema21"),
        ema50=col("ema50"),
        ema200=col("ema200"),
        macd=MacdValues(col("macd"), col("macd_signal"), col("macd_hist")),
        adx=col("adx"),
        rsi14=col("rsi14"),
        stoch_rsi=StochRsiValues(col("stoch_k"), col("stoch_d")),
        williams_r=col("williams_r"),
        mfi=col("mfi"),
        atr14=col("atr14"),
        bollinger=BollingerValues(
            col("bb_upper"), col("bb_middle"), col("bb_lower"), col("bb_width")
        ),
        obv=col("obv"),
        vwap=col("vwap"),
        support_levels=levels.support,
        resistance_levels=levels.resistance,
    )


def calculate_technical_indicators(df: pd.DataFrame) -> Optional[IndicatorSnapshot]:
    """Snapshot of the latest bar of `df`, or ``None`` with fewer than 50 bars."""
    if len(df) < MIN_SNAPSHOT_BARS:
        log.warning(
            "Insufficient data for technical analysis (len=%d, need %d)",
            len(df),
            MIN_SNAPSHOT_BARS,
        )
        return None
    frame = compute_indicator_frame(ohlcv_frame(df))
    return snapshot_at(frame, len(frame) - 1)


def technical_score(ind: IndicatorSnapshot, price: float) -> float:
    """
    Additive 0-100 technical score starting from a neutral 50.

    Unavailable inputs contribute nothing.
    """
    score = 50.0

    # Trend alignment
    if _gt(price, ind.ema9):
        score += 3
    if _gt(price, ind.ema21):
        score += 3
    if _gt(price, ind.ema50):
        score += 4
    if _gt(price, ind.ema200):
        score += 5
    if _gt(ind.ema9, ind.ema21):
        score += 3
    if _gt(ind.ema21, ind.ema50):
        score += 3

    if _gt(ind.macd.histogram, 0.0):
        score += 5
    if _gt(ind.macd.macd, ind.macd.signal):
        score += 3

    if ind.rsi14 is not None:
        if 30 < ind.rsi14 < 70:
            score += 5
        elif ind.rsi14 <= 30:
            score += 8
        else:
            score -= 5

    if _gt(ind.adx, 25.0):
        score += 5
    if _gt(ind.adx, 40.0):
        score += 3

    bb_pos = ind.bollinger.position(price)
    if bb_pos is not None:
        if bb_pos < 0.3:
            score += 5
        if bb_pos > 0.7:
            score -= 3

    if ind.mfi is not None:
        if 30 < ind.mfi < 70:
            score += 3
        if ind.mfi <= 30:
            score += 5

    if _lt(ind.williams_r, -80.0):
        score += 4
    if _gt(ind.williams_r, -20.0):
        score -= 3

    if _lt(ind.stoch_rsi.k, 20.0):
        score += 4
    if _gt(ind.stoch_rsi.k, 80.0):
        score -= 3

    return max(0.0, min(100.0, score))


def signal_direction(ind: IndicatorSnapshot, price: float) -> Direction:
    """Vote count of bullish vs bearish conditions; a margin of 2 decides."""
    bullish = 0
    bearish = 0

    for above in (
        _gt(price, ind.ema50),
        _gt(price, ind.ema200),
        _gt(ind.ema9, ind.ema21),
        _gt(ind.macd.histogram, 0.0),
    ):
        if above:
            bullish += 1
        else:
            bearish += 1

    if _lt(ind.rsi14, 40.0):
        bullish += 1
    if _gt(ind.rsi14, 60.0):
        bearish += 1

    if bullish >= bearish + 2:
        return "long"
    if bearish >= bullish + 2:
        return "short"
    return "neutral"


def quick_score(ind: IndicatorSnapshot, price: float) -> float:
    """Cheap screener score (trend, RSI extremes, MACD sign, ADX)."""
    score = 50.0
    if _gt(price, ind.ema50):
        score += 10
    if _gt(price, ind.ema200):
        score += 10
    if _gt(ind.ema9, ind.ema21):
        score += 5
    if _lt(ind.rsi14, 30.0):
        score += 10
    elif _gt(ind.rsi14, 70.0):
        score -= 10
    if _gt(ind.macd.histogram, 0.0):
        score += 5
    if _gt(ind.adx, 25.0):
        score += 5
    return max(0.0, min(100.0, score))


__all__ = [
    "MacdValues",
    "StochRsiValues",
    "BollingerValues",
    "IndicatorSnapshot",
    "snapshot_at",
    "calculate_technical_indicators",
    "technical_score",
    "signal_direction",
    "quick_score",
]
