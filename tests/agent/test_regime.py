from __future__ import annotations

import pytest

from quantsim.agent.regime import (
    classify_regime_at,
    detect_market_regime,
    is_long_favorable,
    regime_bias,
    regime_position_multiplier,
)
from quantsim.features.indicators import compute_indicator_frame


@pytest.fixture
def uptrend(ohlcv_factory):
    return ohlcv_factory(300, seed=7, drift=0.004, vol=0.002)


@pytest.fixture
def downtrend(ohlcv_factory):
    return ohlcv_factory(300, seed=11, drift=-0.004, vol=0.002)


def test_regime_needs_200_bars(uptrend):
    assert detect_market_regime(uptrend.iloc[:199]) is None

    frame = compute_indicator_frame(uptrend)
    assert classify_regime_at(frame, 198) is None
    assert classify_regime_at(frame, 199) is not None


def test_steady_uptrend_is_bullish(uptrend):
    regime = detect_market_regime(uptrend)

    assert regime is not None
    assert regime.is_bullish
    assert regime.trend.direction == "up"
    assert regime.momentum.trending
    assert regime.recommendation.bias == "long"
    assert regime.recommendation.strategy == "momentum"
    assert 0.0 <= regime.strength <= 100.0
    assert regime_bias(regime) == 1
    assert is_long_favorable(regime)
    assert regime.summary.startswith(("Strong uptrend", "Bullish trend"))


def test_steady_downtrend_is_bearish(downtrend):
    regime = detect_market_regime(downtrend)

    assert regime is not None
    assert regime.is_bearish
    assert regime.trend.direction == "down"
    assert regime_bias(regime) == -1
    assert not is_long_favorable(regime)
    assert regime_position_multiplier(regime) in (0.5, 0.75)


def test_classify_regime_at_matches_detect_on_last_bar(uptrend):
    frame = compute_indicator_frame(uptrend)

    assert classify_regime_at(frame, len(frame) - 1) == detect_market_regime(uptrend)


def test_classify_regime_at_ignores_future_bars(uptrend):
    frame = compute_indicator_frame(uptrend)
    cut = compute_indicator_frame(uptrend.iloc[:250])

    assert classify_regime_at(frame, 249) == classify_regime_at(cut, 249)


def test_helpers_default_when_unavailable():
    assert regime_bias(None) == 0
    assert is_long_favorable(None) is True
    assert regime_position_multiplier(None) == 1.0
