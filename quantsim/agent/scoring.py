"""Composite 0-100 signal score from trend, momentum, volume, structure, context and relative strength."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import List, Literal, Optional

import pandas as pd
from loguru import logger

from quantsim.agent.regime import MIN_REGIME_BARS, MarketRegime, classify_regime_at
from quantsim.features.indicators import compute_indicator_frame
from quantsim.features.technical import IndicatorSnapshot, _gt, snapshot_at
from quantsim.utils.frames import ohlcv_frame, pick_col

Recommendation = Literal["strong-buy", "buy", "hold", "sell", "strong-sell"]
Confidence = Literal["high", "medium", "low"]

MIN_SCORE_BARS = 50
MAX_REASONS = 5
MAX_RISKS = 3

# (lower, upper) band per component
COMPONENT_BANDS = {
    "trend": (0.0, 25.0),
    "momentum": (0.0, 20.0),
    "volume": (0.0, 15.0),
    "structure": (0.0, 15.0),
    "context": (0.0, 15.0),
    "relative": (0.0, 10.0),
}

_AUTO = object()


@dataclass
class ScoreComponents:
    trend: float = 0.0
    momentum: float = 0.0
    volume: float = 0.0
    structure: float = 0.0
    context: float = 0.0
    relative: float = 0.0

    def clamp(self) -> None:
        for name, (lo, hi) in COMPONENT_BANDS.items():
            setattr(self, name, max(lo, min(hi, getattr(self, name))))

    @property
    def total(self) -> float:
        return (
            self.trend
            + self.momentum
            + self.volume
            + self.structure
            + self.context
            + self.relative
        )


@dataclass
class SignalScore:
    total: float
    components: ScoreComponents
    confidence: Confidence
    recommendation: Recommendation
    direction: Literal["long", "short", "neutral"]
    reasons: List[str] = field(default_factory=list)
    risks: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return asdict(self)


def _recommend(total: float) -> tuple[Recommendation, str]:
    if total >= 75:
        return "strong-buy", "long"
    if total >= 60:
        return "buy", "long"
    if total >= 40:
        return "hold", "neutral"
    if total >= 25:
        return "sell", "short"
    return "strong-sell", "short"


def _confidence(total: float, n_risks: int) -> Confidence:
    if total >= 70 and n_risks <= 2:
        return "high"
    if total >= 50:
        return "medium"
    return "low"


def _benchmark_return(
    benchmark: pd.DataFrame, as_of: Optional[pd.Timestamp]
) -> Optional[float]:
    closes = pick_col(benchmark, "close", "adj_close", "close_price")
    if as_of is not None and isinstance(closes.index, pd.DatetimeIndex):
        closes = closes.loc[:as_of]
    if len(closes) < 20:
        return None
    base = float(closes.iloc[-20])
    if base == 0:
        return None
    return (float(closes.iloc[-1]) - base) / base


def score_at(
    frame: pd.DataFrame,
    index: int,
    regime: Optional[MarketRegime] = None,
    benchmark: Optional[pd.DataFrame] = None,
    indicators: Optional[IndicatorSnapshot] = None,
) -> Optional[SignalScore]:
    """
    Score bar `index` of an indicator frame.

    Args:
        frame: Output of `compute_indicator_frame`.
        index: Positional bar index; only bars ``<= index`` are read.
        regime: Market regime for the context component (None = unavailable).
        benchmark: Optional OHLCV frame for relative strength. With a datetime
            index it is cut at the scored bar's timestamp.
        indicators: Precomputed snapshot for `index`; built when omitted.

    Returns:
        SignalScore, or None when fewer than 50 bars are available.
    """
    if index + 1 < MIN_SCORE_BARS:
        return None

    ind = indicators or snapshot_at(frame, index)
    closes = frame["close"].to_numpy(dtype=float)[: index + 1]
    volumes = frame["volume"].to_numpy(dtype=float)[: index + 1]
    price = float(closes[-1])

    c = ScoreComponents()
    reasons: List[str] = []
    risks: List[str] = []

    # ---- trend (0-25) ----
    for attr, pts, label in (
        ("ema9", 3, "EMA9"),
        ("ema21", 4, "EMA21"),
        ("ema50", 5, "EMA50"),
        ("ema200", 5, "EMA200"),
    ):
        level = getattr(ind, attr)
        if level is not None and price > level:
            c.trend += pts
            reasons.append(f"Price above {label}")

    if None not in (ind.ema9, ind.ema21, ind.ema50) and ind.ema9 > ind.ema21 > ind.ema50:
        c.trend += 5
        reasons.append("Bullish EMA alignment")

    if ind.ema50 is not None and ind.ema200 is not None and ind.ema50 > ind.ema200:
        c.trend += 3
        reasons.append("Golden cross (50 > 200 EMA)")
    else:
        risks.append("Below 200 EMA - bearish long-term")

    # ---- momentum (0-20) ----
    rsi = ind.rsi14
    if rsi is not None:
        if 30 <= rsi <= 50:
            c.momentum += 6
            reasons.append(f"RSI {rsi:.0f} - good entry zone")
        elif 50 < rsi <= 70:
            c.momentum += 4
        elif rsi < 30:
            c.momentum += 5
            reasons.append("RSI oversold - potential bounce")
        else:
            risks.append("RSI overbought - caution")

    hist = ind.macd.histogram
    if hist is not None and hist > 0:
        c.momentum += 5
        if _gt(ind.macd.macd, ind.macd.signal):
            reasons.append("MACD bullish crossover")
    if hist is not None and index > 0:
        prev_hist = float(frame["macd_hist"].iat[index - 1])
        if not math.isnan(prev_hist) and hist > prev_hist:
            c.momentum += 3

    if ind.adx is not None:
        if ind.adx > 25:
            c.momentum += 4
            reasons.append(f"Strong trend (ADX {ind.adx:.0f})")
        elif ind.adx > 20:
            c.momentum += 2

    prior5 = closes[-6] if len(closes) >= 6 and closes[-6] else closes[0]
    if prior5:
        roc5 = (price - prior5) / prior5 * 100.0
        if 0 < roc5 < 5:
            c.momentum += 2

    # ---- volume (0-15) ----
    avg_vol20 = float(volumes[-20:].sum()) / 20.0
    vol_ratio = float(volumes[-1]) / avg_vol20 if avg_vol20 > 0 else 0.0
    if vol_ratio >= 1.5:
        c.volume += 8
        reasons.append("High volume confirmation")
    elif vol_ratio >= 1.0:
        c.volume += 5
    else:
        c.volume += 2
        risks.append("Below average volume")

    if ind.obv is not None and ind.obv > 0:
        c.volume += 4

    last5 = closes[-5:]
    up_days = int((last5[1:] > last5[:-1]).sum())
    if up_days >= 3:
        c.volume += 3
        reasons.append("Buying pressure increasing")

    # ---- structure (0-15) ----
    near_support = any(s * 0.98 <= price <= s * 1.02 for s in ind.support_levels)
    near_resistance = any(
        r * 0.98 <= price <= r * 1.02 for r in ind.resistance_levels
    )
    if near_support:
        c.structure += 8
        reasons.append("Near support level")
    if near_resistance:
        c.structure -= 3
        risks.append("Near resistance - potential reversal")
    else:
        c.structure += 4

    bb_pos = ind.bollinger.position(price)
    if bb_pos is not None:
        if bb_pos < 0.3:
            c.structure += 5
            reasons.append("Near lower Bollinger Band")
        elif bb_pos > 0.8:
            risks.append("Near upper Bollinger Band")
        else:
            c.structure += 3

    # ---- context (0-15) ----
    if regime is not None:
        if regime.is_bullish:
            c.context += 10
            reasons.append(f"Bullish market regime: {regime.regime}")
        elif regime.regime == "neutral":
            c.context += 5
        else:
            c.context -= 5
            risks.append(f"Bearish market regime: {regime.regime}")
        if regime.volatility.level == "normal":
            c.context += 5
        elif regime.volatility.level == "high":
            risks.append("High volatility environment")
    else:
        c.context += 5

    # ---- relative strength (0-10) ----
    bench_ret = None
    if benchmark is not None and len(closes) >= 20:
        as_of = frame.index[index] if isinstance(frame.index, pd.DatetimeIndex) else None
        bench_ret = _benchmark_return(benchmark, as_of)
    if bench_ret is not None and closes[-20]:
        stock_ret = (price - closes[-20]) / closes[-20]
        if stock_ret > bench_ret * 1.1:
            c.relative = 10
            reasons.append("Outperforming benchmark")
        elif stock_ret > bench_ret:
            c.relative = 6
        else:
            c.relative = 3
            risks.append("Underperforming market")
    else:
        c.relative = 5

    c.clamp()
    total = max(0.0, min(100.0, c.total))
    recommendation, direction = _recommend(total)
    return SignalScore(
        total=total,
        components=c,
        confidence=_confidence(total, len(risks)),
        recommendation=recommendation,
        direction=direction,
        reasons=reasons[:MAX_REASONS],
        risks=risks[:MAX_RISKS],
    )


def calculate_signal_score(
    df: pd.DataFrame,
    indicators: Optional[IndicatorSnapshot] = None,
    regime=_AUTO,
    benchmark: Optional[pd.DataFrame] = None,
) -> Optional[SignalScore]:
    """
    Score the latest bar of an OHLCV frame.

    When `regime` is omitted it is detected from `df` (>= 200 bars); pass
    ``None`` explicitly to score without regime context.
    """
    if len(df) < MIN_SCORE_BARS:
        logger.debug("[score] need at least {} bars, got {}", MIN_SCORE_BARS, len(df))
        return None

    frame = compute_indicator_frame(ohlcv_frame(df))
    last = len(frame) - 1
    if regime is _AUTO:
        regime = classify_regime_at(frame, last) if len(frame) >= MIN_REGIME_BARS else None

    result = score_at(frame, last, regime=regime, benchmark=benchmark, indicators=indicators)
    if result is not None:
        logger.debug(
            "[score] total={:.1f} rec={} confidence={}",
            result.total,
            result.recommendation,
            result.confidence,
        )
    return result


__all__ = [
    "ScoreComponents",
    "SignalScore",
    "COMPONENT_BANDS",
    "score_at",
    "calculate_signal_score",
]
