from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml
from loguru import logger

from quantsim.backtest.engine import run_backtest
from quantsim.backtest.model import BacktestConfig
from quantsim.backtest.sweeps import RANK_KEYS, load_sweep_config, run_sweep
from quantsim.core.exceptions import ConfigError, QuantSimError
from quantsim.dal.base import read_candles_csv
from quantsim.logging_utils import setup_logging
from quantsim.strats.registry import STRATEGIES


def _parse_overrides(pairs: Optional[Sequence[str]]) -> Dict[str, Any]:
    """`key=value` pairs; values go through YAML so `12`, `1.5`, `true` parse."""
    out: Dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigError(f"expected key=value, got {pair!r}")
        out[key.strip()] = yaml.safe_load(raw)
    return out


def _load_candles(path: str, symbol: Optional[str]):
    frame = read_candles_csv(path)
    frame.attrs["symbol"] = (symbol or Path(path).stem.split("_")[0]).upper()
    return frame


def _config_from_args(args: argparse.Namespace, extra: Dict[str, Any]) -> BacktestConfig:
    overrides: Dict[str, Any] = dict(extra)
    for key in (
        "start_date",
        "end_date",
        "initial_capital",
        "position_size_pct",
        "commission",
        "slippage_bps",
        "exit_policy",
    ):
        value = getattr(args, key, None)
        if value is not None:
            overrides[key] = value
    return BacktestConfig.from_settings(**overrides)


def _dump(payload: Any, out: Optional[str]) -> None:
    text = json.dumps(payload, default=str, indent=2)
    if out:
        Path(out).write_text(text)
        logger.info("[cli] wrote {}", out)
    else:
        sys.stdout.write(text + "\n")


def _cmd_run(args: argparse.Namespace) -> int:
    candles = _load_candles(args.csv, args.symbol)
    cfg = _config_from_args(args, {})
    params = _parse_overrides(args.param)
    result = run_backtest(
        candles, cfg, args.strategy, params, timeout_s=args.timeout
    )
    payload = result.to_dict() if args.full else result.summary()
    _dump(payload, args.out)
    return 0


def _cmd_sweep(args: argparse.Namespace) -> int:
    sweep = load_sweep_config(args.config)
    csv_path = args.csv or sweep.get("data")
    if not csv_path:
        raise ConfigError("sweep needs --csv or a 'data' entry in the config")
    if not args.csv:
        csv_path = Path(args.config).parent / str(csv_path)
    candles = _load_candles(str(csv_path), args.symbol or sweep.get("symbol"))
    cfg = _config_from_args(args, sweep.get("config") or {})
    rank_by = args.rank_by or sweep["rank_by"]
    ranked = run_sweep(
        candles,
        cfg,
        sweep["strategy"],
        sweep["params"],
        max_workers=args.max_workers or sweep.get("max_workers"),
        rank_by=rank_by,
    )
    rows: List[Dict[str, Any]] = [r.summary() for r in ranked]
    if args.top:
        rows = rows[: args.top]
    _dump(rows, args.out)
    return 0


def _add_config_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--symbol", default=None, help="Symbol label (default: CSV stem)")
    p.add_argument("--start", dest="start_date", default=None, help="YYYY-MM-DD")
    p.add_argument("--end", dest="end_date", default=None, help="YYYY-MM-DD")
    p.add_argument("--capital", dest="initial_capital", type=float, default=None)
    p.add_argument(
        "--position-size", dest="position_size_pct", type=float, default=None
    )
    p.add_argument("--commission", type=float, default=None)
    p.add_argument("--slippage-bps", dest="slippage_bps", type=float, default=None)
    p.add_argument(
        "--exit-policy", dest="exit_policy", choices=("atr", "percent"), default=None
    )
    p.add_argument("--out", default=None, help="Write JSON here instead of stdout")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quantsim", description="Bar-by-bar strategy backtests"
    )
    parser.add_argument("--log-level", default=None, help="Override QUANTSIM_LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Backtest one strategy on a candle CSV")
    run_p.add_argument("csv", help="CSV with timestamp + OHLCV columns")
    run_p.add_argument(
        "--strategy", choices=STRATEGIES.ids(), default="ema_crossover"
    )
    run_p.add_argument(
        "--param",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Strategy parameter override (repeatable)",
    )
    run_p.add_argument("--timeout", type=float, default=None, help="Seconds")
    run_p.add_argument(
        "--full",
        action="store_true",
        help="Emit the full result (equity curve, trades) instead of the summary",
    )
    _add_config_args(run_p)
    run_p.set_defaults(func=_cmd_run)

    sweep_p = sub.add_parser("sweep", help="Run a YAML-defined parameter sweep")
    sweep_p.add_argument("--config", required=True, help="Path to YAML sweep definition")
    sweep_p.add_argument("--csv", default=None, help="Overrides the config's 'data'")
    sweep_p.add_argument("--rank-by", dest="rank_by", choices=RANK_KEYS, default=None)
    sweep_p.add_argument("--max-workers", dest="max_workers", type=int, default=None)
    sweep_p.add_argument("--top", type=int, default=None, help="Keep the best N rows")
    _add_config_args(sweep_p)
    sweep_p.set_defaults(func=_cmd_sweep)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level=args.log_level, stream=sys.stderr)
    try:
        return int(args.func(args))
    except QuantSimError as exc:
        logger.error("[cli] {}: {}", type(exc).__name__, exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
