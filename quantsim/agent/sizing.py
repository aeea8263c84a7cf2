"""Position sizing: shares per trade from an equity fraction or a risk budget."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from loguru import logger


def position_size(equity: float, position_size_pct: float, entry_price: float) -> int:
    """
    Fixed-fraction sizing used by the backtest engine.

    Args:
        equity (float): Current account equity in dollars.
        position_size_pct (float): Fraction of equity committed to the position (0-1].
        entry_price (float): Expected fill price per share.

    Returns:
        int: ``floor(equity * position_size_pct / entry_price)``, or 0 for
        non-positive inputs.
    """
    if equity <= 0 or position_size_pct <= 0 or entry_price <= 0:
        logger.debug(
            "[sizing] inputs below threshold: equity={} pct={} price={}",
            equity,
            position_size_pct,
            entry_price,
        )
        return 0
    return max(int(math.floor(equity * position_size_pct / entry_price)), 0)


@dataclass(slots=True, frozen=True)
class PositionSizeResult:
    shares: int
    position_value: float
    position_pct: float
    stop_price: float
    risk_amount: float


def calculate_position_size(
    account_value: float,
    entry_price: float,
    atr: float,
    *,
    risk_per_trade: float = 0.02,
    max_position_pct: float = 0.20,
    atr_multiplier: float = 2.0,
) -> PositionSizeResult:
    """
    Risk-budget sizing with an ATR stop, capped by a maximum position weight.

    Args:
        account_value (float): Account equity in dollars.
        entry_price (float): Planned entry price.
        atr (float): Average True Range used for the stop distance.
        risk_per_trade (float): Fraction of equity at risk if the stop is hit.
        max_position_pct (float): Upper bound on position value / equity.
        atr_multiplier (float): Stop distance as a multiple of ATR.

    Returns:
        PositionSizeResult: the smaller of the risk-based and cap-based share
        counts, with the implied stop price and dollar risk.
    """
    stop_distance = atr * atr_multiplier
    stop_price = entry_price - stop_distance
    if account_value <= 0 or entry_price <= 0 or stop_distance <= 0:
        logger.warning(
            "[sizing] cannot size: account={} entry={} stop_distance={}",
            account_value,
            entry_price,
            stop_distance,
        )
        return PositionSizeResult(0, 0.0, 0.0, stop_price, 0.0)

    risk_amount = account_value * risk_per_trade
    shares_from_risk = math.floor(risk_amount / stop_distance)
    max_shares = math.floor(account_value * max_position_pct / entry_price)
    shares = max(min(shares_from_risk, max_shares), 0)
    position_value = shares * entry_price

    logger.debug(
        "[sizing] risk={:.2f} stop_dist={:.4f} shares={} (risk cap {}, weight cap {})",
        risk_amount,
        stop_distance,
        shares,
        shares_from_risk,
        max_shares,
    )
    return PositionSizeResult(
        shares=shares,
        position_value=position_value,
        position_pct=position_value / account_value,
        stop_price=stop_price,
        risk_amount=shares * stop_distance,
    )


def calculate_target_price(
    entry_price: float, stop_price: float, risk_reward_ratio: float = 2.0
) -> float:
    """Target that pays `risk_reward_ratio` times the entry-to-stop distance."""
    return entry_price + (entry_price - stop_price) * risk_reward_ratio


def validate_position_size(
    shares: int,
    entry_price: float,
    account_value: float,
    max_positions: int,
    current_positions: int,
    *,
    max_weight: float = 0.25,
) -> tuple[bool, Optional[str]]:
    """Return ``(valid, reason)`` for a proposed order."""
    if shares <= 0:
        return False, "Position size is zero or negative"
    if current_positions >= max_positions:
        return False, f"Maximum positions ({max_positions}) reached"
    if account_value <= 0 or shares * entry_price / account_value > max_weight:
        return False, f"Position exceeds {max_weight:.0%} of portfolio"
    return True, None


__all__ = [
    "position_size",
    "PositionSizeResult",
    "calculate_position_size",
    "calculate_target_price",
    "validate_position_size",
]
