from __future__ import annotations

import itertools
from pathlib import Path
from time import perf_counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml
from loguru import logger

from quantsim.backtest.engine import CandleInput
from quantsim.backtest.model import BacktestConfig, BacktestResult, coerce_config
from quantsim.backtest.runner import BacktestJob, run_many
from quantsim.core.exceptions import ConfigError
from quantsim.dal.schemas import coerce_candles
from quantsim.strats.base import Strategy
from quantsim.strats.registry import get_strategy

RANK_KEYS = ("sharpe", "total_return", "max_drawdown", "win_rate", "profit_factor")


def load_sweep_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML sweep definition.

    Expected keys: ``strategy`` (default ``ema_crossover``), ``params`` (mapping
    of parameter name to a list of values), optional ``config`` (backtest
    config overrides), ``rank_by`` and ``max_workers``. Data-related keys
    (``symbol``, ``data``) are left for the caller.
    """
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ConfigError("Sweep config must be a mapping")
    grid = data.get("params") or {}
    if not isinstance(grid, dict):
        raise ConfigError("Sweep 'params' must be a mapping of name -> values")
    data["params"] = grid
    data.setdefault("strategy", "ema_crossover")
    data.setdefault("config", {})
    data.setdefault("rank_by", "sharpe")
    return data


def expand_param_grid(grid: Mapping[str, Iterable[Any]]) -> List[Dict[str, Any]]:
    """Cartesian product of the grid values; scalars count as single values."""
    if not grid:
        return [{}]
    keys = list(grid.keys())
    axes = []
    for key in keys:
        values = grid[key]
        if not isinstance(values, (list, tuple, set, range)):
            values = [values]
        axes.append(list(values))
    combos = []
    for values in itertools.product(*axes):
        combos.append(dict(zip(keys, values, strict=True)))
    return combos


def _rank_value(result: BacktestResult, rank_by: str) -> float:
    value = float(result.summary()[rank_by])
    # drawdown ranks ascending
    return -value if rank_by == "max_drawdown" else value


def run_sweep(
    candles: CandleInput,
    config: BacktestConfig | Mapping[str, Any] | None = None,
    strategy: Union[str, Strategy] = "ema_crossover",
    grid: Optional[Mapping[str, Iterable[Any]]] = None,
    *,
    max_workers: Optional[int] = None,
    rank_by: str = "sharpe",
) -> List[BacktestResult]:
    """
    Backtest every parameter combination of `grid` on the same candles.

    The candle frame is normalized once and shared read-only by all jobs.
    Results are ranked best first by `rank_by` (one of ``RANK_KEYS``); ties
    keep grid order.
    """
    if rank_by not in RANK_KEYS:
        raise ConfigError(f"rank_by must be one of {', '.join(RANK_KEYS)}")
    cfg = coerce_config(config)
    strat = get_strategy(strategy)
    frame = coerce_candles(candles)
    combos = expand_param_grid(grid or {})
    logger.info(
        "[sweep] starting strategy={} symbol={} jobs={}",
        strat.id,
        frame.attrs.get("symbol") or "-",
        len(combos),
    )
    started = perf_counter()
    jobs = [
        BacktestJob(
            candles=frame,
            config=cfg,
            strategy=strat,
            params=params,
            name=f"{strat.name} #{idx}",
        )
        for idx, params in enumerate(combos, start=1)
    ]
    results = [r for r in run_many(jobs, max_workers) if r is not None]
    ranked = sorted(results, key=lambda r: _rank_value(r, rank_by), reverse=True)
    duration_ms = (perf_counter() - started) * 1000.0
    if ranked:
        logger.info(
            "[sweep] completed jobs={} best={} {}={} in {:.0f}ms",
            len(ranked),
            ranked[0].params,
            rank_by,
            ranked[0].summary()[rank_by],
            duration_ms,
        )
    return ranked


__all__ = ["RANK_KEYS", "load_sweep_config", "expand_param_grid", "run_sweep"]
