from __future__ import annotations

import pandas as pd

from quantsim.features.indicators import ema, rsi
from quantsim.strats.base import Signal, Strategy, value_at
from quantsim.strats.params import RsiMeanReversionParams


class RsiMeanReversionStrategy(Strategy):
    """
    Buy oversold RSI while price holds within 2% of the long EMA; sell overbought.

    Strength scales with the distance past the threshold. Adds columns:
    ema_trend, rsi14.
    """

    id = "rsi_mean_reversion"
    name = "RSI Mean Reversion"
    description = (
        "Buy oversold conditions (RSI < 30), sell when RSI normalizes or becomes overbought"
    )
    params_cls = RsiMeanReversionParams

    def prepare(
        self, df: pd.DataFrame, params: RsiMeanReversionParams
    ) -> pd.DataFrame:
        out = df.copy()
        out["ema_trend"] = ema(out["close"], int(params.ema_slow_period))
        out["rsi14"] = rsi(out["close"], 14)
        return out

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: RsiMeanReversionParams
    ) -> Signal:
        cur_rsi = value_at(frame, "rsi14", index)
        trend = value_at(frame, "ema_trend", index)
        price = float(frame["close"].iat[index])
        if cur_rsi is None:
            return Signal.hold()

        oversold = params.rsi_oversold
        overbought = params.rsi_overbought
        if cur_rsi < oversold and trend is not None and price > trend * 0.98:
            strength = (oversold - cur_rsi) / oversold if oversold > 0 else 0.0
            return Signal.buy(strength, f"RSI oversold at {cur_rsi:.0f}")

        if cur_rsi > overbought:
            span = 100.0 - overbought
            strength = (cur_rsi - overbought) / span if span > 0 else 1.0
            return Signal.sell(strength, f"RSI overbought at {cur_rsi:.0f}")

        return Signal.hold()


__all__ = ["RsiMeanReversionStrategy"]
