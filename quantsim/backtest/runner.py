from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from quantsim.backtest.engine import CandleInput, run_backtest
from quantsim.backtest.model import BacktestConfig, BacktestResult, coerce_config
from quantsim.dal.base import FetchRequest, MarketDataProvider
from quantsim.settings import get_backtest_settings
from quantsim.strats.base import Strategy


@dataclass
class BacktestJob:
    """One independent run: candles (shared read-only) plus its own config."""

    candles: CandleInput
    config: Optional[BacktestConfig | Mapping[str, Any]] = None
    strategy: Union[str, Strategy] = "ema_crossover"
    params: Optional[Mapping[str, Any]] = None
    name: Optional[str] = None
    symbol: Optional[str] = None
    tags: Dict[str, Any] = field(default_factory=dict)


def run_symbol(
    provider: MarketDataProvider,
    symbol: str,
    config: BacktestConfig | Mapping[str, Any] | None = None,
    strategy: Union[str, Strategy] = "ema_crossover",
    params: Any = None,
    *,
    timeframe: str = "1day",
) -> BacktestResult:
    """Fetch `symbol` from `provider` over the config's date range and run it."""
    cfg = coerce_config(config)
    request = FetchRequest(
        symbol=symbol,
        start=cfg.start_date,
        end=cfg.end_date,
        timeframe=timeframe,
    )
    series = provider.fetch_candles(request)
    logger.info(
        "[engine] fetched symbol={} provider={} bars={}",
        symbol,
        provider.name,
        len(series),
    )
    return run_backtest(series, cfg, strategy, params, symbol=symbol.upper())


def _run_job(job: BacktestJob) -> BacktestResult:
    return run_backtest(
        job.candles,
        job.config,
        job.strategy,
        job.params,
        name=job.name,
        symbol=job.symbol,
    )


def run_many(
    jobs: Sequence[BacktestJob],
    max_workers: Optional[int] = None,
    *,
    raise_on_error: bool = True,
) -> List[Optional[BacktestResult]]:
    """
    Execute independent backtests on a thread pool.

    Each run builds its own working state; candle frames are only read. Results
    come back in job order. A failing job re-raises its exception unless
    ``raise_on_error`` is False, in which case it is logged and its slot is
    ``None``.
    """
    if not jobs:
        return []
    workers = max_workers or get_backtest_settings().sweep_max_workers
    workers = max(1, min(int(workers), len(jobs)))
    results: List[Optional[BacktestResult]] = [None] * len(jobs)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_map = {
            executor.submit(_run_job, job): idx for idx, job in enumerate(jobs)
        }
        for future in as_completed(future_map):
            idx = future_map[future]
            try:
                results[idx] = future.result()
            except Exception as exc:
                if raise_on_error:
                    raise
                logger.exception("[engine] job={} failed: {}", idx, exc)
    logger.info(
        "[engine] run_many jobs={} workers={} succeeded={}",
        len(jobs),
        workers,
        sum(r is not None for r in results),
    )
    return results


def results_frame(results: Sequence[Optional[BacktestResult]]) -> pd.DataFrame:
    """Tabulate run summaries (one row per completed result)."""
    rows = [r.summary() for r in results if r is not None]
    return pd.DataFrame(rows)


__all__ = ["BacktestJob", "run_symbol", "run_many", "results_frame"]
