"""
QuantSim Feature Engineering Package

This package includes:
- `indicators`: vectorized technical indicators (EMA, RSI, MACD, ATR, ADX, ...)
- `technical`: per-bar indicator snapshots and additive technical scores

Usage:
    from quantsim.features import indicators, technical

All modules under this package are pure transforms (no I/O, pandas/numpy only)
and causal: a value at bar ``i`` never looks at bars after ``i``.
"""

from . import indicators, technical

__all__ = ["indicators", "technical"]
