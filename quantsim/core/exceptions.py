class QuantSimError(Exception):
    """Base class for all quantsim exceptions."""


class ConfigError(QuantSimError):
    """Raised for missing/malformed backtest or strategy configuration."""


class DataValidationError(QuantSimError):
    """Raised when candle data fails sanity or schema validation."""


class InsufficientDataError(DataValidationError):
    """Raised when a run has fewer bars than it needs after date filtering."""


class StrategyError(QuantSimError):
    """Raised when strategy lookup or registration fails."""


class StrategyNotFoundError(StrategyError, KeyError):
    """Raised when a strategy id is not present in the registry."""


class BacktestCancelledError(QuantSimError):
    """Raised when a run is cancelled or exceeds its time budget."""

    def __init__(self, message: str, *, bars_processed: int = 0) -> None:
        super().__init__(message)
        self.bars_processed = bars_processed


__all__ = [
    "QuantSimError",
    "ConfigError",
    "DataValidationError",
    "InsufficientDataError",
    "StrategyError",
    "StrategyNotFoundError",
    "BacktestCancelledError",
]
