from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from quantsim.features import indicators as ind


def _series(values) -> pd.Series:
    idx = pd.date_range("2024-01-01", periods=len(values), freq="D")
    return pd.Series(np.asarray(values, dtype=float), index=idx)


def test_every_indicator_is_aligned_to_its_input(toy_ohlcv):
    close = toy_ohlcv["close"]
    n = len(toy_ohlcv)
    for out in (
        ind.sma(close, 20),
        ind.ema(close, 21),
        ind.rsi(close, 14),
        ind.macd(close),
        ind.stoch_rsi(close),
        ind.williams_r(toy_ohlcv),
        ind.mfi(toy_ohlcv),
        ind.bollinger_bands(close),
        ind.atr(toy_ohlcv),
        ind.dmi(toy_ohlcv),
        ind.obv(toy_ohlcv),
        ind.vwap(toy_ohlcv),
    ):
        assert len(out) == n
        assert out.index.equals(toy_ohlcv.index)


def test_ema_is_seeded_with_the_sma_of_the_first_window():
    out = ind.ema(_series([1, 2, 3, 4, 5]), 3)

    assert out.iloc[:2].isna().all()
    assert out.iloc[2] == pytest.approx(2.0)
    assert out.iloc[3] == pytest.approx(3.0)
    assert out.iloc[4] == pytest.approx(4.0)


def test_ema_shorter_than_period_is_all_nan():
    assert ind.ema(_series([1, 2]), 5).isna().all()


def test_rsi_warmup_and_range(toy_ohlcv):
    out = ind.rsi(toy_ohlcv["close"], 14)

    assert out.iloc[:14].isna().all()
    assert out.iloc[14:].notna().all()
    assert ((out.dropna() >= 0) & (out.dropna() <= 100)).all()


def test_rsi_without_losses_is_100():
    out = ind.rsi(_series(np.arange(1, 31)), 14)

    assert out.iloc[14:].eq(100.0).all()


def test_rsi_without_gains_is_0():
    out = ind.rsi(_series(np.arange(30, 0, -1)), 14)

    assert out.iloc[14:].eq(0.0).all()


def test_rsi_too_short_returns_all_nan():
    out = ind.rsi(_series([1.0, 2.0, 3.0]), 14)

    assert len(out) == 3
    assert out.isna().all()


def test_macd_histogram_is_line_minus_signal(toy_ohlcv):
    m = ind.macd(toy_ohlcv["close"])

    assert list(m.columns) == ["macd", "signal", "histogram"]
    # slow EMA needs 26 bars, the signal another 9 samples of the line
    assert m["macd"].iloc[:25].isna().all()
    assert m["macd"].iloc[25:].notna().all()
    assert m["signal"].iloc[:33].isna().all()
    assert m["signal"].iloc[33:].notna().all()
    valid = m.dropna()
    np.testing.assert_allclose(
        valid["histogram"], valid["macd"] - valid["signal"], rtol=1e-12
    )


def test_bollinger_bands_collapse_on_constant_prices():
    bb = ind.bollinger_bands(_series([50.0] * 30), 20, 2.0)
    tail = bb.iloc[19:]

    assert bb.iloc[:19].isna().all().all()
    np.testing.assert_allclose(tail["upper"], 50.0)
    np.testing.assert_allclose(tail["lower"], 50.0)
    np.testing.assert_allclose(tail["width"], 0.0, atol=1e-12)


def test_bollinger_bands_bracket_the_middle(toy_ohlcv):
    bb = ind.bollinger_bands(toy_ohlcv["close"]).dropna()

    assert (bb["upper"] >= bb["middle"]).all()
    assert (bb["lower"] <= bb["middle"]).all()


def test_atr_is_wilder_smoothed_true_range(toy_ohlcv):
    out = ind.atr(toy_ohlcv, 14)
    tr = ind.true_range(toy_ohlcv)

    assert out.iloc[:13].isna().all()
    assert out.iloc[13] == pytest.approx(tr.iloc[:14].mean())
    expected = (out.iloc[13] * 13 + tr.iloc[14]) / 14
    assert out.iloc[14] == pytest.approx(expected)


def test_atr_is_zero_on_flat_bars(flat_ohlcv):
    out = ind.atr(flat_ohlcv, 14).dropna()

    assert (out == 0.0).all()


def test_williams_r_sentinel_on_zero_range(flat_ohlcv):
    out = ind.williams_r(flat_ohlcv, 14).dropna()

    assert (out == -50.0).all()


def test_mfi_without_negative_flow_is_100(flat_ohlcv):
    df = flat_ohlcv.copy()
    ramp = np.arange(len(df), dtype=float)
    df["high"] = 101.0 + ramp
    df["low"] = 99.0 + ramp
    df["close"] = 100.0 + ramp
    out = ind.mfi(df, 14)

    assert out.iloc[:14].isna().all()
    assert (out.iloc[14:] == 100.0).all()


def test_stoch_rsi_flat_window_maps_to_50():
    out = ind.stoch_rsi(_series(np.arange(1, 61)))

    valid = out.dropna()
    assert not valid.empty
    assert (valid["k"] == 50.0).all()
    assert (valid["d"] == 50.0).all()


def test_adx_bounded(toy_ohlcv):
    out = ind.adx(toy_ohlcv).dropna()

    assert not out.empty
    assert ((out >= 0) & (out <= 100)).all()


def test_obv_starts_at_first_volume_and_accumulates_by_direction():
    idx = pd.date_range("2024-01-01", periods=4, freq="D")
    df = pd.DataFrame(
        {
            "open": [10, 11, 10, 10],
            "high": [10, 11, 10, 10],
            "low": [10, 11, 10, 10],
            "close": [10.0, 11.0, 10.0, 10.0],
            "volume": [100.0, 50.0, 30.0, 20.0],
        },
        index=idx,
    )

    out = ind.obv(df)

    assert out.tolist() == [100.0, 150.0, 120.0, 120.0]


def test_vwap_is_cumulative_typical_price_average(toy_ohlcv):
    out = ind.vwap(toy_ohlcv)
    tp = (toy_ohlcv["high"] + toy_ohlcv["low"] + toy_ohlcv["close"]) / 3.0
    expected = (tp * toy_ohlcv["volume"]).cumsum() / toy_ohlcv["volume"].cumsum()

    np.testing.assert_allclose(out.to_numpy(), expected.to_numpy(), rtol=1e-10)


def test_support_resistance_empty_for_monotonic_series():
    close = np.linspace(100.0, 140.0, 40)
    idx = pd.date_range("2024-01-01", periods=40, freq="D")
    df = pd.DataFrame(
        {"open": close, "high": close + 0.5, "low": close - 0.5, "close": close},
        index=idx,
    )

    levels = ind.find_support_resistance(df, lookback=20)

    assert levels.support == []
    assert levels.resistance == []


def test_support_resistance_finds_pivots():
    highs = [10, 11, 12, 15, 12, 11, 10, 11, 12, 13, 12, 11, 10, 9, 8, 9, 10, 11, 12, 13]
    lows = [h - 2 for h in highs]
    idx = pd.date_range("2024-01-01", periods=len(highs), freq="D")
    df = pd.DataFrame(
        {"open": highs, "high": highs, "low": lows, "close": highs}, index=idx
    ).astype(float)

    levels = ind.find_support_resistance(df, lookback=20)

    assert levels.resistance == [15.0, 13.0]
    assert levels.support == [6.0, 8.0]


def test_support_resistance_needs_full_lookback():
    df = pd.DataFrame(
        {"open": [1.0] * 5, "high": [1.0] * 5, "low": [1.0] * 5, "close": [1.0] * 5}
    )

    assert ind.find_support_resistance(df, lookback=20).support == []


def test_compute_indicator_frame_adds_every_column(toy_ohlcv):
    frame = ind.compute_indicator_frame(toy_ohlcv)

    for col in ind.INDICATOR_COLUMNS:
        assert col in frame.columns
    assert "ema9" not in toy_ohlcv.columns
    assert frame["ema200"].iloc[:199].isna().all()
    assert frame["ema200"].iloc[199:].notna().all()


def test_indicators_are_causal(toy_ohlcv):
    full = ind.compute_indicator_frame(toy_ohlcv)
    cut = ind.compute_indicator_frame(toy_ohlcv.iloc[:250])

    pd.testing.assert_frame_equal(full.iloc[:250], cut)
