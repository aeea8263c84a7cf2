from quantsim.dal.base import (
    CsvDirectoryProvider,
    FetchRequest,
    InMemoryProvider,
    MarketDataProvider,
    read_candles_csv,
)
from quantsim.dal.schemas import Candle, CandleSeries, candles_to_frame, frame_to_candles

__all__ = [
    "Candle",
    "CandleSeries",
    "candles_to_frame",
    "frame_to_candles",
    "FetchRequest",
    "MarketDataProvider",
    "InMemoryProvider",
    "CsvDirectoryProvider",
    "read_candles_csv",
]
