from __future__ import annotations

from typing import Any, Dict, Iterator, List, Sequence, Union

import pandas as pd
from loguru import logger

from quantsim.core.exceptions import StrategyError, StrategyNotFoundError
from quantsim.dal.schemas import Candle, CandleSeries, coerce_candles
from quantsim.strats.base import Signal, Strategy
from quantsim.strats.breakout import BollingerBreakoutStrategy
from quantsim.strats.composite import AiPredictionStrategy, SignalScoreStrategy
from quantsim.strats.mean_reversion import RsiMeanReversionStrategy
from quantsim.strats.momentum import EmaCrossoverStrategy, MacdMomentumStrategy


class StrategyRegistry:
    """Strategy instances keyed by their id (e.g. ``"ema_crossover"``)."""

    def __init__(self) -> None:
        self._strategies: Dict[str, Strategy] = {}

    def register(self, strategy: Strategy, *, replace: bool = False) -> Strategy:
        if not isinstance(strategy, Strategy):
            raise StrategyError(f"not a Strategy: {strategy!r}")
        key = strategy.id.strip().lower()
        if key in self._strategies and not replace:
            raise StrategyError(f"strategy '{key}' already registered")
        self._strategies[key] = strategy
        return strategy

    def get(self, strategy_id: Union[str, Strategy]) -> Strategy:
        if isinstance(strategy_id, Strategy):
            return strategy_id
        key = str(strategy_id).strip().lower()
        try:
            return self._strategies[key]
        except KeyError:
            raise StrategyNotFoundError(
                f"Invalid strategy: {strategy_id}. "
                f"Valid strategies: {', '.join(self.ids())}"
            ) from None

    def ids(self) -> List[str]:
        return list(self._strategies)

    def describe(self) -> List[Dict[str, str]]:
        return [s.describe() for s in self._strategies.values()]

    def __contains__(self, strategy_id: object) -> bool:
        return str(strategy_id).strip().lower() in self._strategies

    def __iter__(self) -> Iterator[Strategy]:
        return iter(self._strategies.values())

    def __len__(self) -> int:
        return len(self._strategies)


def build_default_registry() -> StrategyRegistry:
    registry = StrategyRegistry()
    for strategy in (
        AiPredictionStrategy(),
        EmaCrossoverStrategy(),
        RsiMeanReversionStrategy(),
        SignalScoreStrategy(),
        MacdMomentumStrategy(),
        BollingerBreakoutStrategy(),
    ):
        registry.register(strategy)
    return registry


STRATEGIES = build_default_registry()


def get_strategy(strategy_id: Union[str, Strategy]) -> Strategy:
    return STRATEGIES.get(strategy_id)


def compute_signal(
    candles: Union[pd.DataFrame, CandleSeries, Sequence[Candle]],
    index: int,
    strategy: Union[str, Strategy] = "ema_crossover",
    params: Any = None,
) -> Signal:
    """
    One-shot signal for bar `index` using only ``candles[0..index]``.

    Prepares the strategy's features on the truncated history, so the cost is
    O(index). Backtests should call `Strategy.prepare` once and then
    `Strategy.compute_signal` per bar instead.
    """
    strat = get_strategy(strategy)
    resolved = strat.resolve_params(params)
    frame = coerce_candles(candles)
    if index < 0 or index >= len(frame):
        logger.debug("[strategy] index {} out of range (len={})", index, len(frame))
        return Signal.hold()
    prepared = strat.prepare(frame.iloc[: index + 1], resolved)
    return strat.compute_signal(prepared, index, resolved)


__all__ = [
    "StrategyRegistry",
    "STRATEGIES",
    "build_default_registry",
    "get_strategy",
    "compute_signal",
]
