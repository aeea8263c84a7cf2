from __future__ import annotations

import math
import time
import uuid
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from loguru import logger

from quantsim.agent.sizing import position_size
from quantsim.backtest.metrics import compute_metrics, monthly_returns
from quantsim.backtest.model import (
    BacktestConfig,
    BacktestResult,
    EquityPoint,
    Position,
    Trade,
    coerce_config,
)
from quantsim.core.exceptions import BacktestCancelledError, InsufficientDataError
from quantsim.dal.schemas import Candle, CandleSeries, coerce_candles
from quantsim.features.indicators import atr as atr_series
from quantsim.logging_utils import logging_context
from quantsim.strats.base import Signal, Strategy
from quantsim.strats.params import StrategyParams
from quantsim.strats.registry import get_strategy

_DEF_MIN_EPS = 1e-6
_SECONDS_PER_DAY = 86_400.0

CandleInput = Union[pd.DataFrame, CandleSeries, Sequence[Candle]]


def _filter_dates(frame: pd.DataFrame, cfg: BacktestConfig) -> pd.DataFrame:
    if cfg.start_date is None and cfg.end_date is None:
        return frame
    dates = np.asarray(pd.DatetimeIndex(frame.index).date)
    mask = np.ones(len(frame), dtype=bool)
    if cfg.start_date is not None:
        mask &= dates >= cfg.start_date
    if cfg.end_date is not None:
        mask &= dates <= cfg.end_date
    out = frame.loc[mask]
    out.attrs.update(frame.attrs)
    return out


def _holding_days(entry: pd.Timestamp, now: pd.Timestamp) -> int:
    return int(math.floor((now - entry).total_seconds() / _SECONDS_PER_DAY))


def _safe_signal(
    strategy: Strategy, frame: pd.DataFrame, index: int, params: StrategyParams
) -> Signal:
    try:
        return strategy.compute_signal(frame, index, params)
    except Exception as exc:
        logger.warning(
            "[engine] strategy {} failed at bar {}: {}; holding", strategy.id, index, exc
        )
        return Signal.hold(f"strategy error: {exc}")


def _exit_levels(
    cfg: BacktestConfig, params: StrategyParams, entry_price: float, atr_value: float
) -> Optional[tuple[float, float]]:
    """(stop, target) for a new long, or None when the stop distance collapses."""
    if cfg.exit_policy == "percent":
        stop = entry_price * (1.0 - cfg.stop_loss_pct)
        target = entry_price * (1.0 + cfg.take_profit_pct)
        distance = entry_price - stop
    else:
        if math.isnan(atr_value):
            return None
        distance = atr_value * float(params.atr_multiplier)
        stop = entry_price - distance
        target = entry_price + 2.0 * distance  # fixed 2:1 reward:risk
    if not distance > _DEF_MIN_EPS:
        return None
    return stop, target


def run_backtest(
    candles: CandleInput,
    config: BacktestConfig | Mapping[str, Any] | None = None,
    strategy: Union[str, Strategy] = "ema_crossover",
    params: Any = None,
    *,
    name: Optional[str] = None,
    symbol: Optional[str] = None,
    cancel_check: Optional[Callable[[], bool]] = None,
    timeout_s: Optional[float] = None,
) -> BacktestResult:
    """
    Simulate a single-position long-only strategy bar by bar.

    Args:
        candles: Ascending OHLCV history (DataFrame, CandleSeries or Candles).
        config: BacktestConfig or a mapping of overrides (camelCase accepted).
        strategy: Registered strategy id or a Strategy instance.
        params: Strategy parameter overrides (mapping or params dataclass).
        name: Result label; defaults to "<SYMBOL> - <strategy name>".
        symbol: Overrides the symbol carried by the candles.
        cancel_check: Polled once per bar; returning True cancels the run.
        timeout_s: Wall-clock budget; exceeding it cancels the run.

    Returns:
        BacktestResult with the trade log, one equity point per simulated bar
        (from ``ema_slow_period + 5`` on), monthly returns and metrics. A
        position still open on the last bar stays marked to market and is not
        part of the trade log.

    Raises:
        ConfigError: invalid config or strategy params.
        DataValidationError: timestamps not strictly ascending.
        InsufficientDataError: fewer than ``config.min_bars`` bars after
            date filtering.
        StrategyNotFoundError: unknown strategy id.
        BacktestCancelledError: cancelled or timed out.
    """
    cfg = coerce_config(config)
    strat = get_strategy(strategy)
    p = strat.resolve_params(params)

    frame = _filter_dates(coerce_candles(candles), cfg)
    sym = symbol or frame.attrs.get("symbol") or ""
    if len(frame) < cfg.min_bars:
        raise InsufficientDataError(
            f"Insufficient data for backtest period: {len(frame)} bars "
            f"(need {cfg.min_bars})"
        )

    run_id = str(uuid.uuid4())
    label = name or (f"{sym} - {strat.name}" if sym else strat.name)
    deadline = time.monotonic() + timeout_s if timeout_s is not None else None

    with logging_context(run_id=run_id):
        logger.info(
            "[engine] start symbol={} strategy={} bars={} policy={}",
            sym or "-",
            strat.id,
            len(frame),
            cfg.exit_policy,
        )

        prepared = strat.prepare(frame, p)
        atr_vals = atr_series(frame, 14).to_numpy(dtype=float)
        idx = pd.DatetimeIndex(frame.index)
        highs = frame["high"].to_numpy(dtype=float)
        lows = frame["low"].to_numpy(dtype=float)
        closes = frame["close"].to_numpy(dtype=float)

        slip = cfg.slippage_fraction
        commission = cfg.commission
        cash = float(cfg.initial_capital)
        peak = cash
        position: Optional[Position] = None
        trades: List[Trade] = []
        curve: List[EquityPoint] = []

        start = int(p.ema_slow_period) + 5
        for i in range(start, len(frame)):
            if cancel_check is not None and cancel_check():
                raise BacktestCancelledError(
                    f"backtest {run_id} cancelled at bar {i}", bars_processed=i - start
                )
            if deadline is not None and time.monotonic() > deadline:
                raise BacktestCancelledError(
                    f"backtest {run_id} exceeded {timeout_s}s at bar {i}",
                    bars_processed=i - start,
                )

            ts = idx[i]
            close = closes[i]
            signal: Optional[Signal] = None

            if position is not None:
                held = _holding_days(pd.Timestamp(position.entry_date), ts)
                reason = None
                raw_exit = 0.0
                # stop before target: a bar spanning both is booked as a loss
                if lows[i] <= position.stop_price:
                    reason, raw_exit = "stop", position.stop_price
                elif highs[i] >= position.target_price:
                    reason, raw_exit = "target", position.target_price
                elif held >= p.max_holding_days:
                    reason, raw_exit = "time", close
                else:
                    signal = _safe_signal(strat, prepared, i, p)
                    if signal.is_sell and held >= p.min_holding_days:
                        reason, raw_exit = "signal", close

                if reason is not None:
                    fill = raw_exit * (1.0 - slip)
                    qty = position.quantity
                    exit_commission = qty * fill * commission
                    gross = (fill - position.entry_price) * qty
                    net = gross - position.entry_commission - exit_commission
                    pnl_pct = (fill - position.entry_price) / position.entry_price * 100.0
                    cash += qty * fill - exit_commission
                    trades.append(
                        Trade(
                            symbol=position.symbol,
                            entry_date=position.entry_date,
                            exit_date=ts.to_pydatetime(),
                            entry_price=position.entry_price,
                            exit_price=fill,
                            quantity=qty,
                            pnl=net,
                            pnl_percent=pnl_pct,
                            holding_days=held,
                            exit_reason=reason,
                        )
                    )
                    logger.debug(
                        "[engine] exit {} {} qty={} @ {:.4f} pnl={:.2f} held={}d",
                        ts.date(),
                        reason,
                        qty,
                        fill,
                        net,
                        held,
                    )
                    position = None

            if position is None:
                if signal is None:
                    signal = _safe_signal(strat, prepared, i, p)
                if signal.is_buy:
                    entry_price = close * (1.0 + slip)
                    # flat, so equity == cash
                    qty = position_size(cash, cfg.position_size_pct, entry_price)
                    levels = _exit_levels(cfg, p, entry_price, atr_vals[i])
                    entry_commission = qty * entry_price * commission
                    cost = qty * entry_price + entry_commission
                    if qty <= 0:
                        logger.debug("[engine] skip entry {}: zero size", ts.date())
                    elif levels is None:
                        logger.debug(
                            "[engine] skip entry {}: stop distance unavailable or ~0",
                            ts.date(),
                        )
                    elif cost > cash:
                        logger.debug(
                            "[engine] skip entry {}: cost {:.2f} > cash {:.2f}",
                            ts.date(),
                            cost,
                            cash,
                        )
                    else:
                        stop, target = levels
                        cash -= cost
                        position = Position(
                            symbol=sym,
                            entry_price=entry_price,
                            entry_date=ts.to_pydatetime(),
                            quantity=qty,
                            stop_price=stop,
                            target_price=target,
                            entry_commission=entry_commission,
                        )
                        logger.debug(
                            "[engine] entry {} qty={} @ {:.4f} stop={:.4f} target={:.4f} ({})",
                            ts.date(),
                            qty,
                            entry_price,
                            stop,
                            target,
                            signal.reason or "buy",
                        )

            equity = cash + (position.market_value(close) if position else 0.0)
            peak = max(peak, equity)
            drawdown = (peak - equity) / peak * 100.0 if peak > 0 else 0.0
            curve.append(EquityPoint(ts.to_pydatetime(), equity, drawdown))

        final_equity = curve[-1].equity if curve else float(cfg.initial_capital)
        metrics = compute_metrics(trades, cfg.initial_capital, final_equity, curve)
        result = BacktestResult(
            id=run_id,
            name=label,
            symbol=sym,
            strategy=strat.describe(),
            params=_params_dict(p),
            config=cfg,
            metrics=metrics,
            equity_curve=curve,
            trade_log=trades,
            monthly_returns=monthly_returns(curve),
        )
        logger.info(
            "[engine] done symbol={} trades={} return={:.2f}% maxDD={:.2f}%",
            sym or "-",
            metrics.total_trades,
            metrics.total_return,
            metrics.max_drawdown,
        )
    return result


def _params_dict(params: StrategyParams) -> Dict[str, Any]:
    return asdict(params)


__all__ = ["run_backtest"]
