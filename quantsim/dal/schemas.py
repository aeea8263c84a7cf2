from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Sequence, Union

import pandas as pd

from quantsim.core.exceptions import DataValidationError
from quantsim.utils.frames import ohlcv_frame


@dataclass(frozen=True, slots=True)
class Candle:
    """Normalized OHLCV bar."""

    symbol: str
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float

    def as_dict(self) -> dict:
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return {
            "symbol": self.symbol,
            "timestamp": ts.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(slots=True)
class CandleSeries:
    """Ordered collection of candles for a single symbol and timeframe."""

    symbol: str
    timeframe: str = "1day"
    data: List[Candle] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.data)

    def append(self, candle: Candle) -> None:
        if candle.symbol != self.symbol:
            raise DataValidationError(
                f"candle symbol mismatch: {candle.symbol} != {self.symbol}"
            )
        self.data.append(candle)

    def extend(self, candles: Iterable[Candle]) -> None:
        for candle in candles:
            self.append(candle)

    def to_dicts(self) -> List[dict]:
        return [c.as_dict() for c in self.data]

    def to_dataframe(self) -> pd.DataFrame:
        return candles_to_frame(self.data, symbol=self.symbol)


def candles_to_frame(
    candles: Sequence[Candle], *, symbol: str | None = None
) -> pd.DataFrame:
    """Build an OHLCV DataFrame indexed by timestamp, preserving input order."""
    if not candles:
        frame = pd.DataFrame(columns=["open", "high", "low", "close", "volume"])
        frame.index = pd.DatetimeIndex([], name="timestamp")
        frame.attrs["symbol"] = symbol or ""
        return frame
    raw = [
        {
            "timestamp": c.timestamp,
            "open": float(c.open),
            "high": float(c.high),
            "low": float(c.low),
            "close": float(c.close),
            "volume": float(c.volume),
        }
        for c in candles
    ]
    frame = pd.DataFrame(raw).set_index("timestamp")
    frame.index = pd.DatetimeIndex(frame.index, name="timestamp")
    frame.attrs["symbol"] = symbol or candles[0].symbol
    return frame


def frame_to_candles(df: pd.DataFrame, symbol: str) -> CandleSeries:
    """Inverse of `candles_to_frame` for frames with OHLCV columns."""
    series = CandleSeries(symbol=symbol)
    for ts, row in df.iterrows():
        series.append(
            Candle(
                symbol=symbol,
                timestamp=pd.Timestamp(ts).to_pydatetime(),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row.get("volume", 0.0)),
            )
        )
    return series


def coerce_candles(
    candles: Union[pd.DataFrame, CandleSeries, Sequence[Candle]],
) -> pd.DataFrame:
    """
    Normalize any accepted candle container into a float OHLCV frame.

    DataFrames may carry their timestamps in the index or in a `timestamp` /
    `date` column; a frame with neither raises DataValidationError. Timestamps
    must be strictly ascending; the symbol, when known, is kept in
    `frame.attrs["symbol"]`.
    """
    if isinstance(candles, CandleSeries):
        frame = candles.to_dataframe()
        symbol = candles.symbol
    elif isinstance(candles, pd.DataFrame):
        frame = candles
        symbol = candles.attrs.get("symbol", "")
        if not symbol and "symbol" in candles.columns and len(candles):
            symbol = str(candles["symbol"].iloc[0])
        if not isinstance(frame.index, pd.DatetimeIndex):
            for col in ("timestamp", "date", "datetime"):
                if col in frame.columns:
                    frame = frame.set_index(pd.DatetimeIndex(frame[col], name="timestamp"))
                    break
    else:
        frame = candles_to_frame(list(candles))
        symbol = frame.attrs.get("symbol", "")

    if frame.empty:
        return candles_to_frame([], symbol=symbol)

    index = frame.index
    if not isinstance(index, pd.DatetimeIndex):
        raise DataValidationError(
            "candles need a DatetimeIndex or a timestamp/date/datetime column"
        )
    if not (index.is_monotonic_increasing and index.is_unique):
        raise DataValidationError("candle timestamps must be strictly ascending")

    out = ohlcv_frame(frame)
    out.attrs["symbol"] = symbol
    return out


__all__ = [
    "Candle",
    "CandleSeries",
    "candles_to_frame",
    "frame_to_candles",
    "coerce_candles",
]
