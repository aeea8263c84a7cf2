# quantsim/backtest/metrics.py
from __future__ import annotations

import math
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd
from loguru import logger

from quantsim.backtest.model import BacktestMetrics, EquityPoint, Trade

TRADING_DAYS = 252


# -------- Internals --------
def _to_returns(equity: Sequence[float]) -> np.ndarray:
    s = np.asarray(equity, dtype=float)
    if s.size < 2:
        return np.empty(0, dtype=float)
    prev = s[:-1]
    with np.errstate(divide="ignore", invalid="ignore"):
        rets = np.where(prev != 0, (s[1:] - prev) / prev, 0.0)
    return rets


def sharpe_ratio(returns: np.ndarray, periods_per_year: int = TRADING_DAYS) -> float:
    """Annualized mean/stddev (population) of per-period returns; 0 when flat."""
    if returns.size == 0:
        return 0.0
    std = float(returns.std(ddof=0))
    if std <= 0:
        return 0.0
    return float(returns.mean()) / std * math.sqrt(periods_per_year)


def sortino_ratio(returns: np.ndarray, periods_per_year: int = TRADING_DAYS) -> float:
    """Mean return over the root-mean-square of negative returns; 0 without losses."""
    if returns.size == 0:
        return 0.0
    neg = returns[returns < 0]
    downside = math.sqrt(float(np.mean(neg**2))) if neg.size else 0.0
    if downside <= 0:
        return 0.0
    return float(returns.mean()) / downside * math.sqrt(periods_per_year)


def annualized_return(
    initial: float, final: float, periods: int, periods_per_year: int = TRADING_DAYS
) -> float:
    """CAGR in percent using ``periods / periods_per_year`` as the year fraction."""
    years = periods / periods_per_year
    if years <= 0 or initial <= 0:
        return 0.0
    ratio = final / initial
    if ratio <= 0:
        return -100.0
    return (ratio ** (1.0 / years) - 1.0) * 100.0


def profit_factor(pnls: Sequence[float]) -> float:
    """Gross profit over |gross loss|; inf with no losses but some profit, else 0."""
    arr = np.asarray(pnls, dtype=float)
    gross_profit = float(arr[arr > 0].sum())
    gross_loss = abs(float(arr[arr <= 0].sum()))
    if gross_loss > 0:
        return gross_profit / gross_loss
    return math.inf if gross_profit > 0 else 0.0


def monthly_returns(curve: Sequence[EquityPoint]) -> Dict[str, float]:
    """Percent change from the first to the last equity point of each calendar month."""
    if not curve:
        return {}
    s = pd.Series(
        [p.equity for p in curve],
        index=pd.DatetimeIndex([pd.Timestamp(p.date) for p in curve]),
        dtype=float,
    )
    keys = s.index.strftime("%Y-%m")
    grouped = s.groupby(keys, sort=False)
    first = grouped.first()
    last = grouped.last()
    out: Dict[str, float] = {}
    for month in first.index:
        start = float(first[month])
        out[str(month)] = (float(last[month]) - start) / start * 100.0 if start else 0.0
    return out


# -------- Public API --------
def compute_metrics(
    trades: List[Trade],
    initial_capital: float,
    final_equity: float,
    equity_curve: List[EquityPoint],
    *,
    periods_per_year: int = TRADING_DAYS,
) -> BacktestMetrics:
    """
    Aggregate run statistics.

    Returns are per equity point (one per simulated bar) and ratios assume a 0%
    risk-free rate. Wins are trades with ``pnl > 0``; everything else counts as
    a loss. avg_win/avg_loss average ``pnl_percent``.
    """
    total_return = (final_equity / initial_capital - 1.0) * 100.0 if initial_capital else 0.0
    cagr = annualized_return(initial_capital, final_equity, len(equity_curve), periods_per_year)

    rets = _to_returns([p.equity for p in equity_curve])
    sharpe = sharpe_ratio(rets, periods_per_year)
    sortino = sortino_ratio(rets, periods_per_year)
    max_dd = max((p.drawdown_percent for p in equity_curve), default=0.0)

    n = len(trades)
    pnls = np.array([t.pnl for t in trades], dtype=float)
    pnl_pct = np.array([t.pnl_percent for t in trades], dtype=float)
    wins = pnls > 0
    n_wins = int(wins.sum())
    n_losses = n - n_wins

    win_rate = n_wins / n * 100.0 if n else 0.0
    avg_win = float(pnl_pct[wins].mean()) if n_wins else 0.0
    avg_loss = float(pnl_pct[~wins].mean()) if n_losses else 0.0
    pf = profit_factor(pnls)
    avg_hold = float(np.mean([t.holding_days for t in trades])) if n else 0.0

    logger.debug(
        "[metrics] n={} tot={:.4f} cagr={:.4f} sharpe={:.3f} sortino={:.3f} maxDD={:.4f} trades={} win%={:.2f} pf={}",
        len(equity_curve),
        total_return,
        cagr,
        sharpe,
        sortino,
        max_dd,
        n,
        win_rate,
        pf,
    )

    return BacktestMetrics(
        total_return=total_return,
        annualized_return=cagr,
        sharpe_ratio=sharpe,
        sortino_ratio=sortino,
        max_drawdown=max_dd,
        win_rate=win_rate,
        avg_win=avg_win,
        avg_loss=avg_loss,
        profit_factor=pf,
        total_trades=n,
        avg_holding_days=avg_hold,
    )


__all__ = [
    "TRADING_DAYS",
    "sharpe_ratio",
    "sortino_ratio",
    "annualized_return",
    "profit_factor",
    "monthly_returns",
    "compute_metrics",
]
