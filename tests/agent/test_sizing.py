from __future__ import annotations

import pytest

from quantsim.agent.sizing import (
    calculate_position_size,
    calculate_target_price,
    position_size,
    validate_position_size,
)


def test_position_size_floors_shares():
    assert position_size(100_000.0, 0.1, 100.05) == 99
    assert position_size(100_000.0, 0.1, 100.0) == 100


@pytest.mark.parametrize(
    "equity,pct,price", [(0.0, 0.1, 10.0), (1_000.0, 0.0, 10.0), (1_000.0, 0.1, 0.0)]
)
def test_position_size_non_positive_inputs(equity, pct, price):
    assert position_size(equity, pct, price) == 0


def test_risk_based_size_takes_the_smaller_cap():
    # risk budget 2_000 / stop distance 4 -> 500 shares; weight cap 20% -> 200
    result = calculate_position_size(100_000.0, 100.0, 2.0)

    assert result.shares == 200
    assert result.stop_price == pytest.approx(96.0)
    assert result.position_value == pytest.approx(20_000.0)
    assert result.position_pct == pytest.approx(0.2)
    assert result.risk_amount == pytest.approx(800.0)


def test_risk_budget_binds_with_wide_stops():
    result = calculate_position_size(100_000.0, 100.0, 10.0)

    assert result.shares == 100
    assert result.risk_amount == pytest.approx(2_000.0)


def test_zero_atr_cannot_be_sized():
    result = calculate_position_size(100_000.0, 100.0, 0.0)

    assert result.shares == 0
    assert result.position_value == 0.0


def test_target_price_uses_reward_to_risk():
    assert calculate_target_price(100.0, 95.0) == pytest.approx(110.0)
    assert calculate_target_price(100.0, 95.0, 3.0) == pytest.approx(115.0)


def test_validate_position_size():
    assert validate_position_size(10, 100.0, 100_000.0, 1, 0) == (True, None)

    ok, reason = validate_position_size(0, 100.0, 100_000.0, 1, 0)
    assert not ok and "zero" in reason

    ok, reason = validate_position_size(10, 100.0, 100_000.0, 1, 1)
    assert not ok and "Maximum positions" in reason

    ok, reason = validate_position_size(300, 100.0, 100_000.0, 5, 0)
    assert not ok and "25%" in reason
