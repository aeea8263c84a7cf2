from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from quantsim.core.exceptions import ConfigError
from quantsim.settings import get_backtest_settings
from quantsim.utils.frames import camel_to_snake

ExitReason = Literal["target", "stop", "signal", "time"]
ExitPolicy = Literal["atr", "percent"]


class BacktestConfig(BaseModel):
    """
    Run configuration. Accepts snake_case or camelCase keys (`initialCapital`).

    Attributes:
        start_date / end_date: Inclusive calendar-date filter (optional).
        initial_capital: Starting cash, 1,000 to 10,000,000.
        position_size_pct: Fraction of equity committed per entry, (0, 1].
        max_positions: Concurrent positions; the engine holds exactly one.
        commission: Per-side commission as a fraction of notional.
        slippage_bps: Adverse fill slippage in basis points.
        stop_loss_pct / take_profit_pct: Used by the ``percent`` exit policy.
        exit_policy: ``atr`` (ATR x multiplier stop, 2:1 target) or ``percent``.
        min_bars: Minimum bars after date filtering; never below 50.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    initial_capital: float = Field(100_000.0, ge=1_000, le=10_000_000)
    position_size_pct: float = Field(0.1, gt=0, le=1)
    max_positions: int = Field(1, ge=1, le=1)
    commission: float = Field(0.001, ge=0, le=0.01)
    slippage_bps: float = Field(5.0, ge=0, le=100)
    stop_loss_pct: float = Field(0.05, ge=0.01, le=0.5)
    take_profit_pct: float = Field(0.1, ge=0.01, le=1.0)
    exit_policy: ExitPolicy = "atr"
    min_bars: int = Field(50, ge=50)

    @model_validator(mode="after")
    def _check_dates(self) -> "BacktestConfig":
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self

    @property
    def slippage_fraction(self) -> float:
        return self.slippage_bps / 10_000.0

    @classmethod
    def parse(cls, data: Optional[Mapping[str, Any]] = None) -> "BacktestConfig":
        """Validate a mapping, raising ConfigError on bad input."""
        try:
            return cls.model_validate(dict(data or {}))
        except ValidationError as exc:
            raise ConfigError(f"invalid backtest config: {exc}") from exc

    @classmethod
    def from_settings(cls, **overrides: Any) -> "BacktestConfig":
        """Defaults from `QUANTSIM_*` settings, then explicit overrides."""
        s = get_backtest_settings()
        base: Dict[str, Any] = {
            "initial_capital": s.initial_capital,
            "position_size_pct": s.position_size_pct,
            "commission": s.commission,
            "slippage_bps": s.slippage_bps,
            "exit_policy": s.exit_policy,
            "min_bars": s.min_bars,
        }
        base.update(
            {camel_to_snake(k): v for k, v in overrides.items() if v is not None}
        )
        return cls.parse(base)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def coerce_config(config: BacktestConfig | Mapping[str, Any] | None) -> BacktestConfig:
    if isinstance(config, BacktestConfig):
        return config
    if config is None:
        return BacktestConfig.from_settings()
    return BacktestConfig.parse(config)


def _camel_dict(obj: Any) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in asdict(obj).items():
        if isinstance(value, datetime):
            value = value.date().isoformat()
        out[to_camel(key)] = value
    return out


@dataclass(slots=True, frozen=True)
class Position:
    symbol: str
    entry_price: float
    entry_date: datetime
    quantity: int
    stop_price: float
    target_price: float
    entry_commission: float = 0.0
    side: str = "long"

    def market_value(self, price: float) -> float:
        return self.quantity * price


@dataclass(slots=True, frozen=True)
class Trade:
    symbol: str
    entry_date: datetime
    exit_date: datetime
    entry_price: float
    exit_price: float
    quantity: int
    pnl: float
    pnl_percent: float
    holding_days: int
    exit_reason: ExitReason
    side: str = "long"

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass(slots=True, frozen=True)
class EquityPoint:
    date: datetime
    equity: float
    drawdown_percent: float

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass(slots=True, frozen=True)
class BacktestMetrics:
    total_return: float = 0.0
    annualized_return: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    profit_factor: float = 0.0
    total_trades: int = 0
    avg_holding_days: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return _camel_dict(self)


@dataclass
class BacktestResult:
    id: str
    name: str
    symbol: str
    strategy: Dict[str, str]
    params: Dict[str, Any]
    config: BacktestConfig
    metrics: BacktestMetrics
    equity_curve: List[EquityPoint] = field(default_factory=list)
    trade_log: List[Trade] = field(default_factory=list)
    monthly_returns: Dict[str, float] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def final_equity(self) -> float:
        if not self.equity_curve:
            return self.config.initial_capital
        return self.equity_curve[-1].equity

    def to_dict(self) -> Dict[str, Any]:
        """JSON-compatible dict; an infinite profit factor stays ``inf``."""
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "strategy": dict(self.strategy),
            "params": dict(self.params),
            "config": self.config.to_dict(),
            "metrics": self.metrics.to_dict(),
            "equityCurve": [p.to_dict() for p in self.equity_curve],
            "tradeLog": [t.to_dict() for t in self.trade_log],
            "monthlyReturns": dict(self.monthly_returns),
            "createdAt": self.created_at.isoformat(),
        }

    def summary(self) -> Dict[str, Any]:
        m = self.metrics
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "strategy": self.strategy.get("type"),
            "params": dict(self.params),
            "total_return": round(m.total_return, 4),
            "sharpe": round(m.sharpe_ratio, 4),
            "max_drawdown": round(m.max_drawdown, 4),
            "win_rate": round(m.win_rate, 4),
            "profit_factor": (
                m.profit_factor
                if math.isinf(m.profit_factor)
                else round(m.profit_factor, 4)
            ),
            "trades": m.total_trades,
        }


__all__ = [
    "BacktestConfig",
    "coerce_config",
    "Position",
    "Trade",
    "EquityPoint",
    "BacktestMetrics",
    "BacktestResult",
    "ExitReason",
    "ExitPolicy",
]
