from __future__ import annotations

import abc
import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional, Type

import pandas as pd

from quantsim.strats.params import StrategyParams, resolve_params

MIN_SIGNAL_BARS = 50


class SignalType(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True, slots=True)
class Signal:
    """Per-bar strategy decision; `strength` is clamped to [0, 1]."""

    type: SignalType
    strength: float = 0.0
    reason: str = ""

    def __post_init__(self) -> None:
        s = float(self.strength)
        s = 0.0 if math.isnan(s) else max(0.0, min(1.0, s))
        object.__setattr__(self, "strength", s)
        object.__setattr__(self, "type", SignalType(self.type))

    @classmethod
    def hold(cls, reason: str = "") -> "Signal":
        return cls(SignalType.HOLD, 0.0, reason)

    @classmethod
    def buy(cls, strength: float, reason: str = "") -> "Signal":
        return cls(SignalType.BUY, strength, reason)

    @classmethod
    def sell(cls, strength: float, reason: str = "") -> "Signal":
        return cls(SignalType.SELL, strength, reason)

    @property
    def is_buy(self) -> bool:
        return self.type is SignalType.BUY

    @property
    def is_sell(self) -> bool:
        return self.type is SignalType.SELL


def value_at(frame: pd.DataFrame, column: str, index: int) -> Optional[float]:
    """Column value at a positional index; NaN and out-of-range become None."""
    if index < 0 or column not in frame.columns:
        return None
    v = float(frame[column].iat[index])
    return None if math.isnan(v) else v


def crossed_above(
    prev_a: Optional[float],
    prev_b: Optional[float],
    cur_a: Optional[float],
    cur_b: Optional[float],
) -> bool:
    if None in (prev_a, prev_b, cur_a, cur_b):
        return False
    return prev_a <= prev_b and cur_a > cur_b


def crossed_below(
    prev_a: Optional[float],
    prev_b: Optional[float],
    cur_a: Optional[float],
    cur_b: Optional[float],
) -> bool:
    if None in (prev_a, prev_b, cur_a, cur_b):
        return False
    return prev_a >= prev_b and cur_a < cur_b


def volume_ratio(volume: pd.Series, window: int = 20) -> pd.Series:
    """Last volume over its trailing `window` mean; NaN when the mean is zero."""
    avg = volume.rolling(window, min_periods=window).mean()
    return volume / avg.where(avg > 0)


class Strategy(abc.ABC):
    """
    A signal generator over a prepared frame.

    `prepare` runs once per backtest and appends every causal feature the
    strategy reads; `compute_signal` then inspects a single bar. Bars before
    ``max(50, ema_slow_period)`` always hold.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    description: ClassVar[str]
    params_cls: ClassVar[Type[StrategyParams]] = StrategyParams

    def resolve_params(self, overrides: Any = None) -> StrategyParams:
        return resolve_params(self.params_cls, overrides)

    def warmup_bars(self, params: StrategyParams) -> int:
        return max(MIN_SIGNAL_BARS, int(params.ema_slow_period))

    @abc.abstractmethod
    def prepare(self, df: pd.DataFrame, params: StrategyParams) -> pd.DataFrame:
        """Return a copy of the OHLCV frame with the strategy's feature columns."""

    @abc.abstractmethod
    def evaluate(self, frame: pd.DataFrame, index: int, params: StrategyParams) -> Signal:
        """Decision for bar `index` once warm-up is satisfied."""

    def compute_signal(
        self, frame: pd.DataFrame, index: int, params: StrategyParams
    ) -> Signal:
        if index < self.warmup_bars(params):
            return Signal.hold()
        return self.evaluate(frame, index, params)

    def describe(self) -> dict:
        return {"type": self.id, "name": self.name, "description": self.description}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r})"


__all__ = [
    "SignalType",
    "Signal",
    "Strategy",
    "value_at",
    "crossed_above",
    "crossed_below",
    "volume_ratio",
    "MIN_SIGNAL_BARS",
]
