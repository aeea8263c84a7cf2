from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from quantsim.logging_utils import setup_test_logging


@pytest.fixture(scope="session", autouse=True)
def configure_logging(tmp_path_factory):
    setup_test_logging(level="INFO", file=tmp_path_factory.mktemp("logs") / "pytest.log")
    yield


def make_ohlcv(
    n: int = 400,
    *,
    seed: int = 42,
    start: str = "2021-01-01",
    drift: np.ndarray | float = 0.0005,
    vol: float = 0.01,
) -> pd.DataFrame:
    """Deterministic random-walk candles on business days."""
    rng = np.random.default_rng(seed=seed)
    idx = pd.date_range(start, periods=n, freq="B")
    ret = np.broadcast_to(np.asarray(drift, dtype=float), (n,)) + rng.normal(0.0, vol, n)
    close = 100.0 * np.cumprod(1 + ret)
    high = close * (1 + np.abs(rng.normal(0.004, 0.003, n)))
    low = close * (1 - np.abs(rng.normal(0.004, 0.003, n)))
    open_ = pd.Series(close).shift(1).fillna(close[0]).to_numpy()
    high = np.maximum(high, np.maximum(open_, close))
    low = np.minimum(low, np.minimum(open_, close))
    volume = rng.integers(1_000_000, 5_000_000, n).astype(float)
    df = pd.DataFrame(
        {"open": open_, "high": high, "low": low, "close": close, "volume": volume},
        index=pd.DatetimeIndex(idx, name="timestamp"),
    )
    df.attrs["symbol"] = "TEST"
    return df


@pytest.fixture
def ohlcv_factory():
    return make_ohlcv


@pytest.fixture(scope="module")
def toy_ohlcv() -> pd.DataFrame:
    """
    Three regimes over 400 bars:
    - slow climb
    - strong momentum
    - fade
    """
    drift = np.r_[np.full(150, 0.0002), np.full(150, 0.0015), np.full(100, -0.0008)]
    return make_ohlcv(400, seed=42, drift=drift, vol=0.012)


@pytest.fixture
def flat_ohlcv() -> pd.DataFrame:
    """100 identical bars: close 100, no range, constant volume."""
    idx = pd.date_range("2024-01-01", periods=100, freq="D", name="timestamp")
    df = pd.DataFrame(
        {
            "open": 100.0,
            "high": 100.0,
            "low": 100.0,
            "close": 100.0,
            "volume": 1_000_000.0,
        },
        index=idx,
    )
    df.attrs["symbol"] = "FLAT"
    return df


@pytest.fixture
def csv_dir(tmp_path: Path, toy_ohlcv: pd.DataFrame) -> Path:
    out = toy_ohlcv.reset_index().rename(columns={"timestamp": "Date"})
    out.columns = [str(c).capitalize() for c in out.columns]
    out.to_csv(tmp_path / "TEST.csv", index=False)
    return tmp_path
