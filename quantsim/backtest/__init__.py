"""Bar-by-bar backtest engine, metrics, batch runs and parameter sweeps."""

from quantsim.backtest.engine import run_backtest
from quantsim.backtest.metrics import compute_metrics
from quantsim.backtest.model import (
    BacktestConfig,
    BacktestMetrics,
    BacktestResult,
    EquityPoint,
    Position,
    Trade,
)
from quantsim.backtest.runner import BacktestJob, run_many, run_symbol
from quantsim.backtest.sweeps import expand_param_grid, load_sweep_config, run_sweep

__all__ = [
    "BacktestConfig",
    "BacktestMetrics",
    "BacktestResult",
    "EquityPoint",
    "Position",
    "Trade",
    "compute_metrics",
    "run_backtest",
    "BacktestJob",
    "run_symbol",
    "run_many",
    "expand_param_grid",
    "load_sweep_config",
    "run_sweep",
]
