from __future__ import annotations

import math

import pytest

from quantsim.features.indicators import compute_indicator_frame
from quantsim.features.technical import (
    BollingerValues,
    IndicatorSnapshot,
    MacdValues,
    calculate_technical_indicators,
    quick_score,
    signal_direction,
    snapshot_at,
    technical_score,
)


def test_snapshot_marks_warmup_values_as_none(toy_ohlcv):
    frame = compute_indicator_frame(toy_ohlcv)

    snap = snapshot_at(frame, 60)

    assert snap.ema9 is not None
    assert snap.ema50 is not None
    assert snap.ema200 is None
    assert snap.close == pytest.approx(float(toy_ohlcv["close"].iloc[60]))


def test_snapshot_values_match_the_frame(toy_ohlcv):
    frame = compute_indicator_frame(toy_ohlcv)

    snap = snapshot_at(frame, 300)

    assert snap.ema200 == pytest.approx(frame["ema200"].iloc[300])
    assert snap.macd.histogram == pytest.approx(frame["macd_hist"].iloc[300])
    assert snap.bollinger.width == pytest.approx(frame["bb_width"].iloc[300])
    assert snap.stoch_rsi.k == pytest.approx(frame["stoch_k"].iloc[300])
    for value in snap.as_dict().values():
        if isinstance(value, float):
            assert not math.isnan(value)


def test_calculate_technical_indicators_needs_50_bars(toy_ohlcv):
    assert calculate_technical_indicators(toy_ohlcv.iloc[:49]) is None

    snap = calculate_technical_indicators(toy_ohlcv.iloc[:120])

    assert isinstance(snap, IndicatorSnapshot)
    assert snap.close == pytest.approx(float(toy_ohlcv["close"].iloc[119]))


def test_bollinger_position():
    bands = BollingerValues(upper=110.0, middle=100.0, lower=90.0, width=0.2)

    assert bands.position(90.0) == pytest.approx(0.0)
    assert bands.position(100.0) == pytest.approx(0.5)
    assert BollingerValues(upper=100.0, lower=100.0).position(100.0) is None
    assert BollingerValues().position(100.0) is None


def test_scores_ignore_unavailable_inputs():
    empty = IndicatorSnapshot(close=100.0)

    assert technical_score(empty, 100.0) == pytest.approx(50.0)
    assert quick_score(empty, 100.0) == pytest.approx(50.0)
    # four missing trend checks count as bearish votes
    assert signal_direction(empty, 100.0) == "short"


def test_bullish_snapshot_scores_high():
    snap = IndicatorSnapshot(
        close=120.0,
        ema9=118.0,
        ema21=115.0,
        ema50=110.0,
        ema200=100.0,
        macd=MacdValues(macd=1.2, signal=0.8, histogram=0.4),
        adx=45.0,
        rsi14=55.0,
    )

    assert technical_score(snap, 120.0) > 80.0
    assert quick_score(snap, 120.0) == pytest.approx(85.0)
    assert signal_direction(snap, 120.0) == "long"
