from __future__ import annotations

import re
from typing import Any

import pandas as pd


def _normalize_name(s: str) -> str:
    return re.sub(r"[\s\-]+", "_", s).lower()


def camel_to_snake(name: str) -> str:
    """`emaSlowPeriod` -> `ema_slow_period`; snake_case passes through."""
    s = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return _normalize_name(re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s))


# -------- Series/DataFrame safety --------
def as_series(obj: Any) -> pd.Series:
    """Coerce single-column DataFrames to Series; pass Series through."""
    if isinstance(obj, pd.DataFrame):
        return obj.iloc[:, 0]
    return obj


def first_column(df: pd.DataFrame, name: str) -> pd.Series:
    """
    Return a Series for the given column even if duplicates exist
    (DataFrame would be returned otherwise).
    """
    obj = df.loc[:, name]
    if isinstance(obj, pd.DataFrame):
        obj = obj.iloc[:, 0]
    return obj


def pick_col(df: pd.DataFrame, *candidates: str) -> pd.Series:
    """
    Return the first matching column (case-insensitive, with basic normalization).
    Tries exact, case-insensitive exact, then fuzzy (prefix/suffix/contains).
    """
    if df is None or df.empty:
        raise KeyError("Empty DataFrame")

    cols = list(df.columns)
    lower_map = {_normalize_name(str(c)): c for c in cols}

    for name in candidates:
        if name in df.columns:
            return first_column(df, name)

    for name in candidates:
        key = _normalize_name(name)
        if key in lower_map:
            return first_column(df, lower_map[key])

    for name in candidates:
        key = _normalize_name(name)
        for c in cols:
            cc = _normalize_name(str(c))
            if (
                cc == key
                or cc.startswith(key + "_")
                or cc.endswith("_" + key)
                or key in cc
            ):
                return first_column(df, c)

    raise KeyError(
        f"None of {candidates} found in DataFrame. "
        f"Available: {cols[:12]}{'...' if len(cols) > 12 else ''}"
    )


def ensure_flat_ohlcv(df: pd.DataFrame) -> pd.DataFrame:
    """
    - Sort index
    - Flatten MultiIndex columns (if present)
    - Lowercase col names
    - Drop duplicate columns (keep first)
    """
    out = df.copy().sort_index()
    cols = out.columns

    if isinstance(cols, pd.MultiIndex):
        flat: list[str] = []
        for tup in cols.to_list():
            if not isinstance(tup, (tuple, list)):
                tup = (tup,)
            parts = [str(x).strip() for x in tup if x is not None and str(x).strip()]
            flat.append("_".join(parts))
        out.columns = pd.Index([s.lower() for s in flat])
    else:
        out.columns = pd.Index([str(c).strip().lower() for c in cols])

    out = out.loc[:, ~out.columns.duplicated(keep="first")]
    return out


def ohlcv_frame(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a float OHLCV frame with canonical column names.

    Columns are resolved with `pick_col`, so vendor spellings such as
    `Close_Price` or `ohlc_high` are accepted. Missing volume becomes 0.
    """
    flat = ensure_flat_ohlcv(df)
    out = pd.DataFrame(index=flat.index)
    out["open"] = pick_col(flat, "open", "ohlc_open").astype(float)
    out["high"] = pick_col(flat, "high", "ohlc_high").astype(float)
    out["low"] = pick_col(flat, "low", "ohlc_low").astype(float)
    out["close"] = pick_col(
        flat, "close", "adj_close", "close_price", "ohlc_close"
    ).astype(float)
    try:
        out["volume"] = pick_col(flat, "volume", "vol").astype(float)
    except KeyError:
        out["volume"] = 0.0
    if "symbol" in flat.columns:
        out["symbol"] = flat["symbol"]
    return out


__all__ = [
    "camel_to_snake",
    "as_series",
    "first_column",
    "pick_col",
    "ensure_flat_ohlcv",
    "ohlcv_frame",
]
