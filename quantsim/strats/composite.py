"""Strategies driven by multi-indicator scores (composite signal score, multi-factor heuristic)."""

from __future__ import annotations

from typing import List

import numpy as np
import pandas as pd

from quantsim.agent.regime import MIN_REGIME_BARS, classify_regime_at
from quantsim.agent.scoring import score_at
from quantsim.features.indicators import compute_indicator_frame
from quantsim.strats.base import (
    Signal,
    Strategy,
    crossed_above,
    crossed_below,
    value_at,
)
from quantsim.strats.params import AiPredictionParams, SignalScoreParams

FULL_ANALYSIS_BARS = MIN_REGIME_BARS


def _threshold_signal(score: float, buy_th: float, sell_th: float, reason: str) -> Signal:
    if score >= buy_th:
        span = 100.0 - buy_th
        return Signal.buy((score - buy_th) / span if span > 0 else 1.0, reason)
    if score <= sell_th:
        return Signal.sell((sell_th - score) / sell_th if sell_th > 0 else 1.0, reason)
    return Signal.hold()


class SignalScoreStrategy(Strategy):
    """
    Trade the composite signal score (trend, momentum, volume, structure, context).

    With fewer than 200 bars of history the regime cannot be classified and the
    strategy falls back to a plain EMA 9/21 crossover at half strength.
    """

    id = "signal_score"
    name = "AI Signal Score"
    description = (
        "Uses comprehensive signal scoring (trend, momentum, volume, structure, "
        "context) for entries/exits"
    )
    params_cls = SignalScoreParams

    def prepare(self, df: pd.DataFrame, params: SignalScoreParams) -> pd.DataFrame:
        return compute_indicator_frame(df)

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: SignalScoreParams
    ) -> Signal:
        if index + 1 < FULL_ANALYSIS_BARS:
            fast = value_at(frame, "ema9", index)
            slow = value_at(frame, "ema21", index)
            prev_fast = value_at(frame, "ema9", index - 1)
            prev_slow = value_at(frame, "ema21", index - 1)
            if crossed_above(prev_fast, prev_slow, fast, slow):
                return Signal.buy(
                    0.5, "EMA crossover (insufficient data for signal score)"
                )
            if crossed_below(prev_fast, prev_slow, fast, slow):
                return Signal.sell(0.5, "EMA crossunder")
            return Signal.hold()

        regime = classify_regime_at(frame, index)
        score = score_at(frame, index, regime=regime)
        if score is None:
            return Signal.hold()

        buy_th = params.buy_score_threshold
        sell_th = params.sell_score_threshold
        reason = f"Signal score {score.total:.0f} ({score.recommendation})"

        if score.total >= buy_th and score.direction == "long":
            span = 100.0 - buy_th
            return Signal.buy((score.total - buy_th) / span if span > 0 else 1.0, reason)
        if score.total <= sell_th or score.direction == "short":
            return Signal.sell(
                (sell_th - score.total) / sell_th if sell_th > 0 else 1.0, reason
            )
        return Signal.hold()


class AiPredictionStrategy(Strategy):
    """
    Multi-factor heuristic score starting at a neutral 50.

    Factors: EMA trend alignment, RSI zone, MACD agreement, ADX amplification,
    5-vs-20 bar volume surge, market regime, and higher-high/higher-low counts
    over the last 10 bars. Requires 200 bars of history.
    """

    id = "ai_prediction"
    name = "AI Price Prediction"
    description = (
        "Uses ML-style multi-factor analysis (technical, trend, sentiment proxy, "
        "patterns) to predict 5-day price direction"
    )
    params_cls = AiPredictionParams

    def prepare(self, df: pd.DataFrame, params: AiPredictionParams) -> pd.DataFrame:
        return compute_indicator_frame(df)

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: AiPredictionParams
    ) -> Signal:
        if index + 1 < FULL_ANALYSIS_BARS:
            return Signal.hold()

        price = float(frame["close"].iat[index])
        e9 = value_at(frame, "ema9", index)
        e21 = value_at(frame, "ema21", index)
        e50 = value_at(frame, "ema50", index)
        if None in (e9, e21, e50):
            return Signal.hold()

        score = 50.0
        factors: List[str] = []

        # trend clarity
        if price > e9 > e21 > e50:
            trend = 25
            factors.append("Strong uptrend")
        elif price > e21 > e50:
            trend = 15
            factors.append("Moderate uptrend")
        elif price < e9 < e21 < e50:
            trend = -25
            factors.append("Strong downtrend")
        elif price < e21:
            trend = -10
            factors.append("Below trend")
        else:
            trend = 0
        score += trend

        # momentum
        cur_rsi = value_at(frame, "rsi14", index)
        if cur_rsi is not None:
            if cur_rsi < 30:
                score += 10
                factors.append("RSI oversold")
            elif cur_rsi > 70:
                score -= 10
                factors.append("RSI overbought")
            elif 50 < cur_rsi < 65:
                score += 5

        hist = value_at(frame, "macd_hist", index)
        line = value_at(frame, "macd", index)
        sig = value_at(frame, "macd_signal", index)
        if None not in (hist, line, sig):
            if hist > 0 and line > sig:
                score += 10
                factors.append("MACD bullish")
            elif hist < 0 and line < sig:
                score -= 10
                factors.append("MACD bearish")

        # trend strength amplifies the trend vote
        adx = value_at(frame, "adx", index)
        if adx is not None and adx > 25:
            if trend > 0:
                score += 5
                factors.append("Strong trend confirmation")
            elif trend < 0:
                score -= 5

        # volume surge
        vols = frame["volume"].to_numpy(dtype=float)[: index + 1]
        avg20 = float(vols[-20:].sum()) / 20.0
        recent5 = float(vols[-5:].sum()) / 5.0
        if recent5 > avg20 * 1.3:
            if trend > 0:
                score += 5
                factors.append("Volume supporting uptrend")
            elif trend < 0:
                score -= 5
                factors.append("Volume supporting downtrend")

        regime = classify_regime_at(frame, index)
        if regime is not None:
            if regime.is_bullish:
                score += 5
            elif regime.is_bearish:
                score -= 5

        # higher highs / higher lows over the last 10 bars
        lo = max(0, index - 9)
        highs = frame["high"].to_numpy(dtype=float)[lo : index + 1]
        lows = frame["low"].to_numpy(dtype=float)[lo : index + 1]
        higher_highs = int(np.count_nonzero(highs[1:] > highs[:-1]))
        higher_lows = int(np.count_nonzero(lows[1:] > lows[:-1]))
        if higher_highs >= 6 and higher_lows >= 6:
            score += 8
            factors.append("HH/HL pattern")
        elif higher_highs <= 3 and higher_lows <= 3:
            score -= 8
            factors.append("LH/LL pattern")

        score = max(0.0, min(100.0, score))
        reason = f"AI prediction {score:.0f}/100: {', '.join(factors[:2])}"
        return _threshold_signal(
            score, params.buy_score_threshold, params.sell_score_threshold, reason
        )


__all__ = ["SignalScoreStrategy", "AiPredictionStrategy"]
