"""Market regime classification from trend (EMA50/200), ADX and ATR%."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal, Optional

import pandas as pd
from loguru import logger

from quantsim.features.indicators import compute_indicator_frame
from quantsim.utils.frames import ohlcv_frame

RegimeLabel = Literal["strong-bull", "bull", "neutral", "bear", "strong-bear"]
TrendStrength = Literal["strong", "moderate", "weak", "none"]
VolatilityLevel = Literal["high", "normal", "low"]

MIN_REGIME_BARS = 200

_REGIME_DESCRIPTIONS = {
    "strong-bull": "Strong uptrend with significant momentum",
    "bull": "Bullish trend with positive momentum",
    "neutral": "Range-bound/sideways market",
    "bear": "Bearish trend with negative momentum",
    "strong-bear": "Strong downtrend with significant selling pressure",
}

_STRATEGY_ADVICE = {
    "momentum": "Follow the trend - look for pullback entries in trend direction",
    "mean-reversion": "Look for oversold bounces and overbought reversals",
    "avoid": "Consider staying in cash or reducing exposure",
}

_VOLATILITY_ADVICE = {
    "high": "Use wider stops and smaller position sizes",
    "normal": "Standard position sizing appropriate",
    "low": "Tighter stops possible, watch for breakouts",
}


@dataclass(slots=True, frozen=True)
class TrendState:
    direction: Literal["up", "down", "sideways"]
    strength: TrendStrength
    ema50_above_200: bool
    price_above_200: bool
    price_above_50: bool


@dataclass(slots=True, frozen=True)
class VolatilityState:
    level: VolatilityLevel
    atr_percent: float
    expanding: bool


@dataclass(slots=True, frozen=True)
class MomentumState:
    adx: float
    trending: bool


@dataclass(slots=True, frozen=True)
class RegimeRecommendation:
    strategy: Literal["momentum", "mean-reversion", "avoid"]
    position_size_adjustment: float
    bias: Literal["long", "short", "neutral"]


@dataclass(slots=True, frozen=True)
class MarketRegime:
    regime: RegimeLabel
    strength: float
    trend: TrendState
    volatility: VolatilityState
    momentum: MomentumState
    recommendation: RegimeRecommendation
    summary: str

    @property
    def is_bullish(self) -> bool:
        return self.regime in ("strong-bull", "bull")

    @property
    def is_bearish(self) -> bool:
        return self.regime in ("strong-bear", "bear")


def _value(frame: pd.DataFrame, column: str, index: int) -> Optional[float]:
    v = float(frame[column].iat[index])
    return None if math.isnan(v) else v


def _trend_strength(adx: float) -> TrendStrength:
    if adx >= 40:
        return "strong"
    if adx >= 25:
        return "moderate"
    if adx >= 15:
        return "weak"
    return "none"


def _volatility_level(atr_percent: float) -> VolatilityLevel:
    if atr_percent >= 3:
        return "high"
    if atr_percent >= 1.5:
        return "normal"
    return "low"


def _summary(
    regime: str, strength: str, volatility: str, strategy: str
) -> str:
    return (
        f"{_REGIME_DESCRIPTIONS[regime]}. Trend strength: {strength}. "
        f"{_STRATEGY_ADVICE[strategy]}. "
        f"Volatility: {volatility} - {_VOLATILITY_ADVICE[volatility]}"
    )


def classify_regime_at(frame: pd.DataFrame, index: int) -> Optional[MarketRegime]:
    """
    Evaluate the regime rule table at bar `index` of an indicator frame.

    Args:
        frame: Output of `compute_indicator_frame` (needs close, ema50, ema200,
            adx and atr14 columns).
        index: Positional bar index; only bars ``<= index`` are read.

    Returns:
        MarketRegime, or None when fewer than 200 bars are available or any
        input indicator is still warming up.
    """
    if index + 1 < MIN_REGIME_BARS:
        return None

    price = float(frame["close"].iat[index])
    ema50 = _value(frame, "ema50", index)
    ema200 = _value(frame, "ema200", index)
    adx = _value(frame, "adx", index)
    atr = _value(frame, "atr14", index)
    if None in (ema50, ema200, adx, atr) or price <= 0:
        return None

    atr_percent = atr / price * 100.0
    hist = frame["atr14"].iloc[max(0, index - 39) : max(0, index - 19)].dropna()
    avg_hist_atr = float(hist.mean()) if len(hist) else atr
    expanding = atr > avg_hist_atr * 1.2

    ema50_above_200 = ema50 > ema200
    price_above_200 = price > ema200
    price_above_50 = price > ema50

    prior = float(frame["close"].iat[index - 20]) if index >= 20 else 0.0
    if not prior:
        prior = float(frame["close"].iat[0])
    change20 = (price - prior) / prior * 100.0 if prior else 0.0

    if price_above_200 and price_above_50 and ema50_above_200:
        direction = "up"
    elif not price_above_200 and not price_above_50 and not ema50_above_200:
        direction = "down"
    else:
        direction = "sideways"

    trending = adx > 25
    strength_bucket = _trend_strength(adx)
    vol_level = _volatility_level(atr_percent)

    if direction == "up" and trending:
        if strength_bucket == "strong" and change20 > 5:
            regime, strength = "strong-bull", 85 + min(15.0, change20)
        else:
            regime, strength = "bull", 60 + min(20.0, adx)
    elif direction == "down" and trending:
        if strength_bucket == "strong" and change20 < -5:
            regime, strength = "strong-bear", 85 + min(15.0, abs(change20))
        else:
            regime, strength = "bear", 60 + min(20.0, adx)
    else:
        regime, strength = "neutral", 50 - abs(change20)
    strength = max(0.0, min(100.0, strength))

    if regime in ("strong-bull", "bull"):
        strategy = "momentum" if trending else "mean-reversion"
        size_adj = 0.75 if vol_level == "high" else 1.0
        bias = "long"
    elif regime in ("strong-bear", "bear"):
        strategy = "momentum" if trending else "avoid"
        size_adj = 0.5 if vol_level == "high" else 0.75
        bias = "short" if regime == "strong-bear" else "neutral"
    else:
        strategy = "momentum" if trending else "mean-reversion"
        size_adj = 0.5 if vol_level == "high" else 0.75
        bias = "neutral"

    return MarketRegime(
        regime=regime,
        strength=strength,
        trend=TrendState(
            direction=direction,
            strength=strength_bucket,
            ema50_above_200=ema50_above_200,
            price_above_200=price_above_200,
            price_above_50=price_above_50,
        ),
        volatility=VolatilityState(
            level=vol_level, atr_percent=atr_percent, expanding=expanding
        ),
        momentum=MomentumState(adx=adx, trending=trending),
        recommendation=RegimeRecommendation(
            strategy=strategy, position_size_adjustment=size_adj, bias=bias
        ),
        summary=_summary(regime, strength_bucket, vol_level, strategy),
    )


def detect_market_regime(df: pd.DataFrame) -> Optional[MarketRegime]:
    """Classify the latest bar of an OHLCV frame (>= 200 bars required)."""
    if len(df) < MIN_REGIME_BARS:
        logger.debug(
            "[regime] need at least {} bars, got {}", MIN_REGIME_BARS, len(df)
        )
        return None
    frame = compute_indicator_frame(ohlcv_frame(df))
    result = classify_regime_at(frame, len(frame) - 1)
    if result is not None:
        logger.debug(
            "[regime] {} strength={:.1f} adx={:.1f} atr%={:.2f}",
            result.regime,
            result.strength,
            result.momentum.adx,
            result.volatility.atr_percent,
        )
    return result


def regime_bias(regime: Optional[MarketRegime]) -> int:
    """1 = bullish, 0 = neutral or unavailable, -1 = bearish."""
    if regime is None:
        return 0
    if regime.is_bullish:
        return 1
    if regime.is_bearish:
        return -1
    return 0


def is_long_favorable(regime: Optional[MarketRegime]) -> bool:
    if regime is None:
        return True
    return not regime.is_bearish


def regime_position_multiplier(regime: Optional[MarketRegime]) -> float:
    if regime is None:
        return 1.0
    return regime.recommendation.position_size_adjustment


__all__ = [
    "MarketRegime",
    "TrendState",
    "VolatilityState",
    "MomentumState",
    "RegimeRecommendation",
    "MIN_REGIME_BARS",
    "classify_regime_at",
    "detect_market_regime",
    "regime_bias",
    "is_long_favorable",
    "regime_position_multiplier",
]
