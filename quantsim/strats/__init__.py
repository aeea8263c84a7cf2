from __future__ import annotations

# Public API for strategies

from .base import Signal, SignalType, Strategy
from .breakout import BollingerBreakoutStrategy
from .composite import AiPredictionStrategy, SignalScoreStrategy
from .mean_reversion import RsiMeanReversionStrategy
from .momentum import EmaCrossoverStrategy, MacdMomentumStrategy
from .params import (
    AiPredictionParams,
    BollingerBreakoutParams,
    EmaCrossoverParams,
    MacdMomentumParams,
    RsiMeanReversionParams,
    SignalScoreParams,
    StrategyParams,
    resolve_params,
)
from .registry import STRATEGIES, StrategyRegistry, compute_signal, get_strategy

__all__ = [
    "Signal",
    "SignalType",
    "Strategy",
    "StrategyParams",
    "resolve_params",
    "EmaCrossoverStrategy",
    "EmaCrossoverParams",
    "RsiMeanReversionStrategy",
    "RsiMeanReversionParams",
    "SignalScoreStrategy",
    "SignalScoreParams",
    "MacdMomentumStrategy",
    "MacdMomentumParams",
    "BollingerBreakoutStrategy",
    "BollingerBreakoutParams",
    "AiPredictionStrategy",
    "AiPredictionParams",
    "StrategyRegistry",
    "STRATEGIES",
    "get_strategy",
    "compute_signal",
]
