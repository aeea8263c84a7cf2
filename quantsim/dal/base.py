from __future__ import annotations

import abc
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Dict, Mapping, Optional

import pandas as pd
from loguru import logger

from quantsim.core.exceptions import DataValidationError
from quantsim.dal.schemas import CandleSeries, frame_to_candles
from quantsim.utils.frames import ohlcv_frame


@dataclass(slots=True)
class FetchRequest:
    symbol: str
    start: Optional[date | datetime] = None
    end: Optional[date | datetime] = None
    timeframe: str = "1day"
    output_size: str = "full"


def _slice_frame(df: pd.DataFrame, request: FetchRequest) -> pd.DataFrame:
    if df.empty:
        return df
    dates = pd.DatetimeIndex(df.index).date
    mask = pd.Series(True, index=df.index)
    if request.start is not None:
        start = pd.Timestamp(request.start).date()
        mask &= dates >= start
    if request.end is not None:
        end = pd.Timestamp(request.end).date()
        mask &= dates <= end
    out = df.loc[mask.to_numpy()]
    if request.output_size == "compact":
        out = out.tail(100)
    return out


class MarketDataProvider(abc.ABC):
    """Read-only source of normalized candles, injected into each run."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name

    @abc.abstractmethod
    def fetch_candles(self, request: FetchRequest) -> CandleSeries:
        """Fetch historical candles synchronously."""

    def fetch_frame(self, request: FetchRequest) -> pd.DataFrame:
        return self.fetch_candles(request).to_dataframe()


class InMemoryProvider(MarketDataProvider):
    """Serves pre-loaded OHLCV frames keyed by (symbol, timeframe)."""

    def __init__(self, frames: Mapping[str, pd.DataFrame], timeframe: str = "1day"):
        super().__init__("memory")
        self._frames: Dict[str, pd.DataFrame] = {
            sym.upper(): ohlcv_frame(df) for sym, df in frames.items()
        }
        self.timeframe = timeframe

    def fetch_candles(self, request: FetchRequest) -> CandleSeries:
        if request.timeframe != self.timeframe:
            raise DataValidationError(
                f"{self.name} provider only serves timeframe={self.timeframe}"
            )
        df = self._frames.get(request.symbol.upper())
        if df is None:
            raise DataValidationError(f"no candles for symbol={request.symbol}")
        sliced = _slice_frame(df, request)
        logger.debug(
            "[dal] memory symbol={} rows={} (of {})",
            request.symbol,
            len(sliced),
            len(df),
        )
        return frame_to_candles(sliced, request.symbol.upper())


class CsvDirectoryProvider(MarketDataProvider):
    """
    Loads `<root>/<SYMBOL>.csv` (or `<root>/<SYMBOL>_<timeframe>.csv`).

    The CSV needs a timestamp column (`timestamp`, `date` or `time`) and OHLCV
    columns in any common spelling.
    """

    def __init__(self, root: str | Path) -> None:
        super().__init__("csv")
        self.root = Path(root)

    def _path_for(self, request: FetchRequest) -> Path:
        symbol = request.symbol.upper()
        candidates = [
            self.root / f"{symbol}_{request.timeframe}.csv",
            self.root / f"{symbol}.csv",
        ]
        for path in candidates:
            if path.exists():
                return path
        raise DataValidationError(
            f"no CSV for symbol={symbol} under {self.root}"
        )

    def fetch_candles(self, request: FetchRequest) -> CandleSeries:
        path = self._path_for(request)
        df = read_candles_csv(path)
        sliced = _slice_frame(df, request)
        logger.debug("[dal] csv path={} rows={}", path, len(sliced))
        return frame_to_candles(sliced, request.symbol.upper())


def read_candles_csv(path: str | Path) -> pd.DataFrame:
    """Read a candle CSV into a timestamp-indexed OHLCV frame."""
    raw = pd.read_csv(path)
    ts_col = None
    for name in raw.columns:
        if str(name).strip().lower() in ("timestamp", "date", "time", "datetime"):
            ts_col = name
            break
    if ts_col is None:
        raise DataValidationError(f"{path}: missing timestamp/date column")
    raw[ts_col] = pd.to_datetime(raw[ts_col], utc=False)
    raw = raw.set_index(ts_col)
    raw.index.name = "timestamp"
    if not raw.index.is_monotonic_increasing:
        raise DataValidationError(f"{path}: timestamps are not ascending")
    return ohlcv_frame(raw)


__all__ = [
    "FetchRequest",
    "MarketDataProvider",
    "InMemoryProvider",
    "CsvDirectoryProvider",
    "read_candles_csv",
]
