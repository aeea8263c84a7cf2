from __future__ import annotations

import pandas as pd

from quantsim.features.indicators import bollinger_bands
from quantsim.strats.base import Signal, Strategy, value_at, volume_ratio
from quantsim.strats.params import BollingerBreakoutParams


class BollingerBreakoutStrategy(Strategy):
    """
    Long when close breaks above the upper Bollinger band on volume.

    Exits once close falls back under the middle (or lower) band. Adds columns:
    bb_upper, bb_middle, bb_lower, vol_ratio.
    """

    id = "bollinger_breakout"
    name = "Bollinger Breakout"
    description = (
        "Enter on breakouts above upper band with volume, exit at middle band or lower band"
    )
    params_cls = BollingerBreakoutParams

    def prepare(
        self, df: pd.DataFrame, params: BollingerBreakoutParams
    ) -> pd.DataFrame:
        out = df.copy()
        bb = bollinger_bands(
            out["close"], int(params.bollinger_period), float(params.bollinger_std_dev)
        )
        out["bb_upper"] = bb["upper"]
        out["bb_middle"] = bb["middle"]
        out["bb_lower"] = bb["lower"]
        out["vol_ratio"] = volume_ratio(out["volume"], 20)
        return out

    def evaluate(
        self, frame: pd.DataFrame, index: int, params: BollingerBreakoutParams
    ) -> Signal:
        price = float(frame["close"].iat[index])
        prev_price = float(frame["close"].iat[index - 1])
        upper = value_at(frame, "bb_upper", index)
        prev_upper = value_at(frame, "bb_upper", index - 1)
        middle = value_at(frame, "bb_middle", index)
        lower = value_at(frame, "bb_lower", index)
        vr = value_at(frame, "vol_ratio", index)

        if (
            upper is not None
            and prev_upper is not None
            and prev_price <= prev_upper
            and price > upper
            and vr is not None
            and vr >= params.volume_threshold
        ):
            return Signal.buy(vr / 2, "Bollinger breakout with volume")

        if (middle is not None and price < middle) or (
            lower is not None and price < lower
        ):
            return Signal.sell(1.0, "Price returned to middle/lower band")

        return Signal.hold()


__all__ = ["BollingerBreakoutStrategy"]
