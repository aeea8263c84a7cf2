"""
Feature engineering: technical indicators.

Every function is a pure, causal transform: the value at bar ``i`` depends only
on bars ``<= i`` and the output is aligned to the input index. Warm-up samples
are NaN; consumers must treat NaN as "not yet available", never as zero.
Recursive indicators (EMA, RSI, ATR) run a single O(n) pass, windowed ones use
pandas rolling accumulators, so a whole indicator frame costs O(n) per column.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd

from quantsim.utils.frames import as_series, pick_col

log = logging.getLogger(__name__)


# ------------------------------------------------------------------------------
# Internals
# ------------------------------------------------------------------------------


def _values(series: pd.Series) -> np.ndarray:
    return as_series(series).to_numpy(dtype=float, copy=True)


def _ema_core(values: np.ndarray, period: int) -> np.ndarray:
    out = np.full(values.shape, np.nan)
    n = values.size
    if period < 1 or n < period:
        return out
    k = 2.0 / (period + 1.0)
    prev = float(values[:period].mean())
    out[period - 1] = prev
    for i in range(period, n):
        prev = (values[i] - prev) * k + prev
        out[i] = prev
    return out


def _ema_skipna(values: np.ndarray, period: int) -> np.ndarray:
    """EMA over the available samples only, written back at their positions."""
    mask = ~np.isnan(values)
    out = np.full(values.shape, np.nan)
    if not mask.any():
        return out
    out[mask] = _ema_core(values[mask], period)
    return out


def _wilder(values: np.ndarray, period: int, start: int) -> np.ndarray:
    """Wilder smoothing seeded by the mean of values[start:start+period]."""
    out = np.full(values.shape, np.nan)
    n = values.size
    seed_end = start + period
    if period < 1 or n < seed_end:
        return out
    prev = float(values[start:seed_end].mean())
    out[seed_end - 1] = prev
    for i in range(seed_end, n):
        prev = (prev * (period - 1) + values[i]) / period
        out[i] = prev
    return out


def _ohlc(df: pd.DataFrame) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    high = pick_col(df, "high", "ohlc_high").to_numpy(dtype=float)
    low = pick_col(df, "low", "ohlc_low").to_numpy(dtype=float)
    close = pick_col(df, "close", "adj_close", "close_price", "ohlc_close").to_numpy(
        dtype=float
    )
    return high, low, close


def _volume(df: pd.DataFrame) -> np.ndarray:
    return pick_col(df, "volume", "vol").to_numpy(dtype=float)


def true_range(df: pd.DataFrame) -> pd.Series:
    """max(high-low, |high-prevClose|, |low-prevClose|); the first bar uses high-low."""
    high, low, close = _ohlc(df)
    tr = high - low
    if tr.size > 1:
        prev_c = close[:-1]
        tr[1:] = np.maximum.reduce(
            [high[1:] - low[1:], np.abs(high[1:] - prev_c), np.abs(low[1:] - prev_c)]
        )
    return pd.Series(tr, index=df.index, name="tr")


# ------------------------------------------------------------------------------
# Moving averages
# ------------------------------------------------------------------------------


def sma(series: pd.Series, period: int = 20) -> pd.Series:
    """Simple moving average; NaN until a full window is available."""
    return as_series(series).astype(float).rolling(period, min_periods=period).mean()


def ema(series: pd.Series, period: int = 20) -> pd.Series:
    """Exponential moving average seeded by the SMA of the first `period` values."""
    s = as_series(series)
    return pd.Series(_ema_skipna(_values(s), period), index=s.index)


# ------------------------------------------------------------------------------
# Momentum
# ------------------------------------------------------------------------------


def rsi(series: pd.Series, period: int = 14) -> pd.Series:
    """
    Compute Relative Strength Index (RSI) with Wilder's smoothing.

    Parameters
    ----------
    series : pd.Series
        Price series (e.g., closing prices).
    period : int, default 14
        Lookback period for RSI.

    Returns
    -------
    pd.Series
        RSI values scaled 0-100. The first value is available at index
        ``period`` (one price change per smoothing step). An average loss of
        zero yields 100.
    """
    s = as_series(series)
    values = _values(s)
    if values.size <= period:
        log.warning(
            "RSI input too short (len=%s <= period=%s)", values.size, period
        )
        return pd.Series(np.nan, index=s.index)

    delta = np.diff(values, prepend=np.nan)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)
    avg_gain = _wilder(gains, period, start=1)
    avg_loss = _wilder(losses, period, start=1)

    with np.errstate(divide="ignore", invalid="ignore"):
        rs = avg_gain / avg_loss
        out = 100.0 - 100.0 / (1.0 + rs)
    out = np.where((avg_loss == 0) & ~np.isnan(avg_gain), 100.0, out)
    out = np.clip(out, 0.0, 100.0)

    log.debug("RSI computed for %d bars", values.size)
    return pd.Series(out, index=s.index)


def macd(
    series: pd.Series,
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> pd.DataFrame:
    """MACD line (fast EMA - slow EMA), its signal EMA and the histogram."""
    s = as_series(series)
    values = _values(s)
    line = _ema_skipna(values, fast_period) - _ema_skipna(values, slow_period)
    signal = _ema_skipna(line, signal_period)
    return pd.DataFrame(
        {"macd": line, "signal": signal, "histogram": line - signal},
        index=s.index,
    )


def stoch_rsi(
    series: pd.Series,
    rsi_period: int = 14,
    stoch_period: int = 14,
    k_period: int = 3,
    d_period: int = 3,
) -> pd.DataFrame:
    """
    Stochastic oscillator of the RSI series, smoothed into %K and %D by SMAs.

    A full window of available RSI values is required; a flat RSI window
    (max == min) maps to 50.
    """
    r = rsi(series, rsi_period)
    lo = r.rolling(stoch_period, min_periods=stoch_period).min()
    hi = r.rolling(stoch_period, min_periods=stoch_period).max()
    rng = hi - lo
    raw = ((r - lo) / rng.where(rng != 0)) * 100.0
    raw = raw.where(~((rng == 0) & r.notna()), 50.0)
    k = raw.rolling(k_period, min_periods=k_period).mean()
    d = k.rolling(d_period, min_periods=d_period).mean()
    return pd.DataFrame({"k": k, "d": d}, index=r.index)


def williams_r(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """Williams %R in [-100, 0]; a zero high-low range maps to -50."""
    high, low, close = _ohlc(df)
    hh = pd.Series(high, index=df.index).rolling(period, min_periods=period).max()
    ll = pd.Series(low, index=df.index).rolling(period, min_periods=period).min()
    rng = hh - ll
    out = (hh - close) / rng.where(rng != 0) * -100.0
    return out.where(~((rng == 0) & hh.notna()), -50.0)


def mfi(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """Money Flow Index; no negative flow in the window yields 100."""
    high, low, close = _ohlc(df)
    tp = (high + low + close) / 3.0
    flow = tp * _volume(df)
    prev_tp = np.roll(tp, 1)
    pos = np.where(tp > prev_tp, flow, 0.0)
    neg = np.where(tp < prev_tp, flow, 0.0)
    if tp.size:
        pos[0] = neg[0] = 0.0

    pos_sum = pd.Series(pos, index=df.index).rolling(period, min_periods=period).sum()
    neg_sum = pd.Series(neg, index=df.index).rolling(period, min_periods=period).sum()
    ratio = pos_sum / neg_sum.where(neg_sum != 0)
    out = 100.0 - 100.0 / (1.0 + ratio)
    out = out.where(~((neg_sum == 0) & pos_sum.notna()), 100.0)
    # the first bar has no prior typical price, so the window starts at bar 1
    out.iloc[: min(period, len(out))] = np.nan
    return out


# ------------------------------------------------------------------------------
# Volatility / trend strength
# ------------------------------------------------------------------------------


def bollinger_bands(
    series: pd.Series, period: int = 20, std_dev: float = 2.0
) -> pd.DataFrame:
    """Bollinger Bands around the SMA using the population stddev of the window."""
    s = as_series(series).astype(float)
    middle = s.rolling(period, min_periods=period).mean()
    std = s.rolling(period, min_periods=period).std(ddof=0)
    upper = middle + std_dev * std
    lower = middle - std_dev * std
    width = (upper - lower) / middle.where(middle != 0)
    return pd.DataFrame(
        {"upper": upper, "middle": middle, "lower": lower, "width": width},
        index=s.index,
    )


def atr(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """
    Average True Range using OHLC data.

    Seeded by the mean true range of the first `period` bars, then
    ``atr[i] = (atr[i-1] * (period-1) + tr[i]) / period``.
    """
    tr = true_range(df).to_numpy()
    return pd.Series(_wilder(tr, period, start=0), index=df.index, name="atr")


def dmi(df: pd.DataFrame, period: int = 14) -> pd.DataFrame:
    """
    Directional movement: +DI, -DI, DX and ADX.

    +DM/-DM and true range are smoothed with EMAs; ADX is the EMA of the
    available DX samples. A zero smoothed range leaves DI/DX unavailable.
    """
    high, low, _ = _ohlc(df)
    n = high.size
    plus_dm = np.zeros(n)
    minus_dm = np.zeros(n)
    if n > 1:
        up = high[1:] - high[:-1]
        down = low[:-1] - low[1:]
        plus_dm[1:] = np.where((up > down) & (up > 0), up, 0.0)
        minus_dm[1:] = np.where((down > up) & (down > 0), down, 0.0)
    tr = true_range(df).to_numpy()

    s_plus = _ema_core(plus_dm, period)
    s_minus = _ema_core(minus_dm, period)
    s_tr = _ema_core(tr, period)

    valid = ~np.isnan(s_tr) & (s_tr != 0)
    plus_di = np.full(n, np.nan)
    minus_di = np.full(n, np.nan)
    plus_di[valid] = s_plus[valid] / s_tr[valid] * 100.0
    minus_di[valid] = s_minus[valid] / s_tr[valid] * 100.0

    di_sum = plus_di + minus_di
    with np.errstate(divide="ignore", invalid="ignore"):
        dx = np.abs(plus_di - minus_di) / di_sum * 100.0
    dx = np.where(valid & (di_sum == 0), 0.0, dx)

    return pd.DataFrame(
        {
            "plus_di": plus_di,
            "minus_di": minus_di,
            "dx": dx,
            "adx": _ema_skipna(dx, period),
        },
        index=df.index,
    )


def adx(df: pd.DataFrame, period: int = 14) -> pd.Series:
    """Average Directional Index aligned to the input (see `dmi`)."""
    return dmi(df, period)["adx"].rename("adx")


# ------------------------------------------------------------------------------
# Volume
# ------------------------------------------------------------------------------


def obv(df: pd.DataFrame) -> pd.Series:
    """On-Balance Volume starting from the first bar's volume."""
    _, _, close = _ohlc(df)
    vol = _volume(df)
    if close.size == 0:
        return pd.Series(dtype=float, index=df.index)
    direction = np.sign(np.diff(close, prepend=close[0]))
    out = vol[0] + np.cumsum(direction * vol)
    return pd.Series(out, index=df.index, name="obv")


def vwap(df: pd.DataFrame) -> pd.Series:
    """Continuous (not session-reset) VWAP of the typical price."""
    high, low, close = _ohlc(df)
    tp = (high + low + close) / 3.0
    cum_vol = np.cumsum(_volume(df))
    cum_tpv = np.cumsum(tp * _volume(df))
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(cum_vol == 0, tp, cum_tpv / cum_vol)
    return pd.Series(out, index=df.index, name="vwap")


# ------------------------------------------------------------------------------
# Structure
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class SupportResistance:
    support: List[float] = field(default_factory=list)
    resistance: List[float] = field(default_factory=list)


def find_support_resistance(
    df: pd.DataFrame, lookback: int = 20, max_levels: int = 3
) -> SupportResistance:
    """
    5-bar pivot detection over the last `lookback` bars.

    A pivot high must exceed the two highs on each side (strictly); pivot lows
    mirror that. Returns up to `max_levels` support levels (lowest first) and
    resistance levels (highest first). Fewer than `lookback` bars -> empty.
    """
    if len(df) < lookback:
        return SupportResistance()

    recent = df.iloc[-lookback:]
    highs, lows, _ = _ohlc(recent)
    support: List[float] = []
    resistance: List[float] = []

    for i in range(2, len(recent) - 2):
        h = highs[i]
        if h > highs[i - 1] and h > highs[i - 2] and h > highs[i + 1] and h > highs[i + 2]:
            if h not in resistance:
                resistance.append(float(h))
        lo = lows[i]
        if lo < lows[i - 1] and lo < lows[i - 2] and lo < lows[i + 1] and lo < lows[i + 2]:
            if lo not in support:
                support.append(float(lo))

    support.sort()
    resistance.sort(reverse=True)
    return SupportResistance(support[:max_levels], resistance[:max_levels])


def support_resistance_at(
    frame: pd.DataFrame, index: int, lookback: int = 30
) -> SupportResistance:
    """Pivot levels using only bars up to and including `index`."""
    start = max(0, index - lookback + 1)
    return find_support_resistance(frame.iloc[start : index + 1], lookback)


# ------------------------------------------------------------------------------
# Aggregate
# ------------------------------------------------------------------------------

INDICATOR_COLUMNS = (
    "ema9",
    "ema21",
    "ema50",
    "ema200",
    "macd",
    "macd_signal",
    "macd_hist",
    "rsi14",
    "stoch_k",
    "stoch_d",
    "williams_r",
    "mfi",
    "atr14",
    "adx",
    "bb_upper",
    "bb_middle",
    "bb_lower",
    "bb_width",
    "obv",
    "vwap",
)


def compute_indicator_frame(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy of `df` with the default indicator set appended."""
    out = df.copy()
    close = pick_col(out, "close", "adj_close", "close_price", "ohlc_close")

    for period in (9, 21, 50, 200):
        out[f"ema{period}"] = ema(close, period)

    m = macd(close)
    out["macd"] = m["macd"]
    out["macd_signal"] = m["signal"]
    out["macd_hist"] = m["histogram"]

    out["rsi14"] = rsi(close, 14)
    st = stoch_rsi(close)
    out["stoch_k"] = st["k"]
    out["stoch_d"] = st["d"]
    out["williams_r"] = williams_r(out, 14)
    out["mfi"] = mfi(out, 14)

    out["atr14"] = atr(out, 14)
    out["adx"] = adx(out, 14)

    bb = bollinger_bands(close, 20, 2.0)
    out["bb_upper"] = bb["upper"]
    out["bb_middle"] = bb["middle"]
    out["bb_lower"] = bb["lower"]
    out["bb_width"] = bb["width"]

    out["obv"] = obv(out)
    out["vwap"] = vwap(out)

    log.debug("indicator frame computed: rows=%d cols=%d", len(out), out.shape[1])
    return out


__all__ = [
    "sma",
    "ema",
    "rsi",
    "macd",
    "stoch_rsi",
    "williams_r",
    "mfi",
    "bollinger_bands",
    "true_range",
    "atr",
    "dmi",
    "adx",
    "obv",
    "vwap",
    "SupportResistance",
    "find_support_resistance",
    "support_resistance_at",
    "INDICATOR_COLUMNS",
    "compute_indicator_frame",
]
