"""Centralized runtime settings powered by Pydantic.

Environment matrix:

| Section  | Environment Variable                  | Default   | Purpose                                   |
|----------|---------------------------------------|-----------|-------------------------------------------|
| Logging  | `QUANTSIM_LOG_LEVEL`                  | `INFO`    | Minimum level for loguru sinks            |
| Logging  | `QUANTSIM_ENV`                        | `local`   | Environment label bound to log records    |
| Backtest | `QUANTSIM_INITIAL_CAPITAL`            | `100000`  | Default starting cash for a run           |
| Backtest | `QUANTSIM_POSITION_SIZE_PCT`          | `0.1`     | Fraction of equity committed per entry    |
| Backtest | `QUANTSIM_COMMISSION`                 | `0.001`   | Per-side commission as a fraction         |
| Backtest | `QUANTSIM_SLIPPAGE_BPS`               | `5`       | Adverse fill slippage in basis points     |
| Backtest | `QUANTSIM_EXIT_POLICY`                | `atr`     | `atr` (ATR stop, 2:1 target) or `percent` |
| Backtest | `QUANTSIM_MIN_BARS`                   | `50`      | Minimum bars after filtering (floor 50)   |
| Sweep    | `QUANTSIM_SWEEP_MAX_WORKERS`          | `4`       | Thread pool size for parallel runs        |

Values are read from the process environment and, when present, a `.env` file in
the working directory. Settings objects are frozen and intended to be treated as
read-only; call `get_settings()` again after changing the environment.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from quantsim import __version__


class _SettingsBase(BaseSettings):
    """Common configuration for BaseSettings subclasses."""

    model_config = SettingsConfigDict(
        env_prefix="QUANTSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )


class LoggingSettings(_SettingsBase):
    """Loguru sink configuration."""

    level: str = Field(default="INFO", validation_alias="QUANTSIM_LOG_LEVEL")
    environment: str = Field(default="local", validation_alias="QUANTSIM_ENV")

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, value: str | None) -> str:
        if value in (None, ""):
            return "INFO"
        return str(value).strip().upper()


class BacktestSettings(_SettingsBase):
    """Defaults applied when a backtest config omits a field."""

    initial_capital: float = 100_000.0
    position_size_pct: float = 0.1
    commission: float = 0.001
    slippage_bps: float = 5.0
    exit_policy: str = "atr"
    min_bars: int = 50
    sweep_max_workers: int = 4

    @field_validator("sweep_max_workers", mode="before")
    @classmethod
    def _coerce_positive_int(cls, value: int | str | None) -> int:
        try:
            parsed = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 1
        return max(1, parsed)

    @field_validator("min_bars", mode="before")
    @classmethod
    def _floor_min_bars(cls, value: int | str | None) -> int:
        # runs never start on fewer than 50 bars
        try:
            parsed = int(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return 50
        return max(50, parsed)

    @computed_field
    @property
    def slippage_fraction(self) -> float:
        return self.slippage_bps / 10_000.0


class Settings(BaseModel):
    """Aggregate accessor for domain-specific settings."""

    version: str = __version__
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    backtest: BacktestSettings = Field(default_factory=BacktestSettings)

    model_config = {"frozen": True}


def get_settings() -> Settings:
    """Instantiate settings from the current environment."""
    return Settings()


def get_backtest_settings() -> BacktestSettings:
    return get_settings().backtest


def get_logging_settings() -> LoggingSettings:
    return get_settings().logging


__all__ = [
    "Settings",
    "LoggingSettings",
    "BacktestSettings",
    "get_settings",
    "get_backtest_settings",
    "get_logging_settings",
]
