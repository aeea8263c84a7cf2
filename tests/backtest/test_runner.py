from __future__ import annotations

from datetime import date

import pandas as pd
import pytest

from quantsim.backtest import BacktestJob, run_backtest, run_many, run_symbol
from quantsim.backtest.runner import results_frame
from quantsim.core.exceptions import DataValidationError, InsufficientDataError
from quantsim.dal import CsvDirectoryProvider, InMemoryProvider


def test_run_symbol_from_memory_provider(toy_ohlcv):
    provider = InMemoryProvider({"test": toy_ohlcv})

    result = run_symbol(provider, "test", {"startDate": "2021-06-01"})

    assert result.symbol == "TEST"
    assert result.equity_curve[0].date.date() >= date(2021, 6, 1)
    assert result.config.start_date == date(2021, 6, 1)


def test_run_symbol_csv_matches_memory(toy_ohlcv, csv_dir):
    from_csv = run_symbol(CsvDirectoryProvider(csv_dir), "TEST", strategy="macd_momentum")
    from_mem = run_symbol(
        InMemoryProvider({"TEST": toy_ohlcv}), "TEST", strategy="macd_momentum"
    )

    assert len(from_csv.equity_curve) == len(from_mem.equity_curve)
    assert from_csv.metrics.total_trades == from_mem.metrics.total_trades
    assert from_csv.final_equity == pytest.approx(from_mem.final_equity)


def test_run_symbol_unknown_symbol(toy_ohlcv):
    with pytest.raises(DataValidationError):
        run_symbol(InMemoryProvider({"TEST": toy_ohlcv}), "MISSING")


def test_run_many_preserves_job_order(toy_ohlcv):
    strategies = ["ema_crossover", "rsi_mean_reversion", "macd_momentum", "bollinger_breakout"]
    jobs = [BacktestJob(candles=toy_ohlcv, strategy=s, name=s) for s in strategies]

    results = run_many(jobs, max_workers=3)

    assert [r.name for r in results] == strategies
    for strategy, result in zip(strategies, results):
        solo = run_backtest(toy_ohlcv, strategy=strategy)
        assert result.metrics == solo.metrics
        assert result.trade_log == solo.trade_log
    assert len({r.id for r in results}) == len(results)


def test_run_many_failures(toy_ohlcv):
    jobs = [
        BacktestJob(candles=toy_ohlcv),
        BacktestJob(candles=toy_ohlcv.iloc[:10]),
    ]

    with pytest.raises(InsufficientDataError):
        run_many(jobs, max_workers=2)

    results = run_many(jobs, max_workers=2, raise_on_error=False)
    assert results[0] is not None
    assert results[1] is None


def test_run_many_empty():
    assert run_many([]) == []


def test_results_frame_skips_failed_slots(toy_ohlcv):
    result = run_backtest(toy_ohlcv)

    frame = results_frame([result, None])

    assert isinstance(frame, pd.DataFrame)
    assert len(frame) == 1
    assert {"sharpe", "total_return", "trades"} <= set(frame.columns)
