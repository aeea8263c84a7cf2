from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional, Type, TypeVar

from loguru import logger

from quantsim.core.exceptions import ConfigError
from quantsim.utils.frames import camel_to_snake


@dataclass(frozen=True)
class StrategyParams:
    # Trend
    ema_fast_period: int = 9
    ema_slow_period: int = 21  # also sets the engine's first bar (slow + 5)

    # RSI gates
    entry_rsi_threshold: float = 60.0
    exit_rsi_threshold: float = 75.0

    # Volume confirmation (last volume / 20-bar mean)
    volume_threshold: float = 1.0

    # Exits
    atr_multiplier: float = 2.0
    min_holding_days: int = 2
    max_holding_days: int = 10


@dataclass(frozen=True)
class EmaCrossoverParams(StrategyParams):
    pass


@dataclass(frozen=True)
class RsiMeanReversionParams(StrategyParams):
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    ema_slow_period: int = 50  # trend filter
    atr_multiplier: float = 1.5
    min_holding_days: int = 1
    max_holding_days: int = 5


@dataclass(frozen=True)
class SignalScoreParams(StrategyParams):
    buy_score_threshold: float = 65.0
    sell_score_threshold: float = 40.0
    atr_multiplier: float = 2.0
    min_holding_days: int = 3
    max_holding_days: int = 10


@dataclass(frozen=True)
class MacdMomentumParams(StrategyParams):
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    entry_rsi_threshold: float = 70.0  # ceiling for entries
    exit_rsi_threshold: float = 30.0  # floor that forces an exit
    atr_multiplier: float = 2.0
    min_holding_days: int = 2
    max_holding_days: int = 8


@dataclass(frozen=True)
class BollingerBreakoutParams(StrategyParams):
    bollinger_period: int = 20
    bollinger_std_dev: float = 2.0
    volume_threshold: float = 1.5
    atr_multiplier: float = 2.5
    min_holding_days: int = 1
    max_holding_days: int = 7


@dataclass(frozen=True)
class AiPredictionParams(StrategyParams):
    buy_score_threshold: float = 60.0
    sell_score_threshold: float = 45.0
    atr_multiplier: float = 2.0
    min_holding_days: int = 3
    max_holding_days: int = 7


P = TypeVar("P", bound=StrategyParams)


def resolve_params(cls: Type[P], overrides: Optional[Any] = None) -> P:
    """
    Merge caller overrides onto the defaults of `cls`.

    `overrides` may be None, a params instance, or a mapping with snake_case or
    camelCase keys (`emaSlowPeriod`). Unknown keys are ignored and ``None``
    values keep the default. Values are coerced to the field's type.
    """
    base = cls()
    if overrides is None:
        return base
    if isinstance(overrides, StrategyParams):
        overrides = {f.name: getattr(overrides, f.name) for f in fields(overrides)}
    if not isinstance(overrides, Mapping):
        raise ConfigError(f"strategy params must be a mapping, got {type(overrides)!r}")

    known = {f.name: f for f in fields(cls)}
    updates: dict[str, Any] = {}
    for key, value in overrides.items():
        name = camel_to_snake(str(key))
        if name not in known:
            logger.debug("[strategy] ignoring unknown param {}={!r} for {}", key, value, cls.__name__)
            continue
        if value is None:
            continue
        updates[name] = _coerce(name, value, getattr(base, name))

    params = replace(base, **updates)
    _validate(params)
    return params


def _coerce(name: str, value: Any, default: Any) -> Any:
    try:
        if not isinstance(default, int):
            return float(value)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError("not a whole number")
            return int(value)
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value for {name}: {value!r}") from exc


def _validate(params: StrategyParams) -> None:
    """Range checks; periods must be positive and the holding window ordered."""
    for f in fields(params):
        value = getattr(params, f.name)
        if f.name.endswith("_period") or f.name.startswith("macd_"):
            if value < 1:
                raise ConfigError(f"{f.name} must be >= 1, got {value!r}")
    if params.atr_multiplier <= 0:
        raise ConfigError(f"atr_multiplier must be > 0, got {params.atr_multiplier!r}")
    if not 0 <= params.min_holding_days <= params.max_holding_days:
        raise ConfigError(
            "holding days must satisfy 0 <= min_holding_days <= max_holding_days, "
            f"got {params.min_holding_days}..{params.max_holding_days}"
        )
    std_dev = getattr(params, "bollinger_std_dev", None)
    if std_dev is not None and std_dev <= 0:
        raise ConfigError(f"bollinger_std_dev must be > 0, got {std_dev!r}")


__all__ = [
    "StrategyParams",
    "EmaCrossoverParams",
    "RsiMeanReversionParams",
    "SignalScoreParams",
    "MacdMomentumParams",
    "BollingerBreakoutParams",
    "AiPredictionParams",
    "resolve_params",
]
