from __future__ import annotations

import pandas as pd

from quantsim.features.indicators import ema, macd, rsi
from quantsim.strats.base import (
    Signal,
    Strategy,
    crossed_above,
    crossed_below,
    value_at,
    volume_ratio,
)
from quantsim.strats.params import EmaCrossoverParams, MacdMomentumParams


class EmaCrossoverStrategy(Strategy):
    """
    Long on a fast/slow EMA golden cross confirmed by RSI and volume.

    Adds columns: ema_fast, ema_slow, rsi14, vol_ratio.
    """

    id = "ema_crossover"
    name = "EMA Crossover"
    description = (
        "Buy when fast EMA crosses above slow EMA with RSI and volume confirmation"
    )
    params_cls = EmaCrossoverParams

    def prepare(self, df: pd.DataFrame, params: EmaCrossoverParams) -> pd.DataFrame:
        out = df.copy()
        out["ema_fast"] = ema(out["close"], int(params.ema_fast_period))
        out["ema_slow"] = ema(out["close"], int(params.ema_slow_period))
        out["rsi14"] = rsi(out["close"], 14)
        out["vol_ratio"] = volume_ratio(out["volume"], 20)
        return out

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: EmaCrossoverParams
    ) -> Signal:
        fast = value_at(frame, "ema_fast", index)
        slow = value_at(frame, "ema_slow", index)
        prev_fast = value_at(frame, "ema_fast", index - 1)
        prev_slow = value_at(frame, "ema_slow", index - 1)
        cur_rsi = value_at(frame, "rsi14", index)
        vr = value_at(frame, "vol_ratio", index)

        if (
            crossed_above(prev_fast, prev_slow, fast, slow)
            and cur_rsi is not None
            and cur_rsi < params.entry_rsi_threshold
            and vr is not None
            and vr >= params.volume_threshold
        ):
            return Signal.buy(min(1.0, vr / 2), "EMA bullish crossover")

        if crossed_below(prev_fast, prev_slow, fast, slow) or (
            cur_rsi is not None and cur_rsi > params.exit_rsi_threshold
        ):
            return Signal.sell(1.0, "EMA bearish crossover or RSI overbought")

        return Signal.hold()


class MacdMomentumStrategy(Strategy):
    """
    Long on a MACD/signal cross with a rising histogram and RSI below a ceiling.

    Adds columns: macd, macd_signal, macd_hist, rsi14.
    """

    id = "macd_momentum"
    name = "MACD Momentum"
    description = "Trade MACD crossovers with histogram confirmation and RSI filter"
    params_cls = MacdMomentumParams

    def prepare(self, df: pd.DataFrame, params: MacdMomentumParams) -> pd.DataFrame:
        out = df.copy()
        m = macd(
            out["close"],
            int(params.macd_fast),
            int(params.macd_slow),
            int(params.macd_signal),
        )
        out["macd"] = m["macd"]
        out["macd_signal"] = m["signal"]
        out["macd_hist"] = m["histogram"]
        out["rsi14"] = rsi(out["close"], 14)
        return out

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: MacdMomentumParams
    ) -> Signal:
        line = value_at(frame, "macd", index)
        sig = value_at(frame, "macd_signal", index)
        prev_line = value_at(frame, "macd", index - 1)
        prev_sig = value_at(frame, "macd_signal", index - 1)
        hist = value_at(frame, "macd_hist", index)
        prev_hist = value_at(frame, "macd_hist", index - 1)
        cur_rsi = value_at(frame, "rsi14", index)

        if (
            crossed_above(prev_line, prev_sig, line, sig)
            and hist is not None
            and prev_hist is not None
            and hist > prev_hist
            and cur_rsi is not None
            and cur_rsi < params.entry_rsi_threshold
        ):
            return Signal.buy(min(1.0, abs(hist) / 0.5), "MACD bullish crossover")

        if crossed_below(prev_line, prev_sig, line, sig) or (
            cur_rsi is not None and cur_rsi < params.exit_rsi_threshold
        ):
            return Signal.sell(1.0, "MACD bearish crossover")

        return Signal.hold()


__all__ = ["EmaCrossoverStrategy", "MacdMomentumStrategy"]
