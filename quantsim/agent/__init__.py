"""
Market analysis and trade sizing primitives.

- `regime`: market regime classification (trend, volatility, recommendation)
- `scoring`: composite 0-100 signal score
- `sizing`: position sizing helpers (fixed-fraction, risk-based)

Modules are side-effect free (no I/O, no environment reads). This package does
not re-export submodule symbols; import from the concrete module, e.g.:
    from quantsim.agent.regime import detect_market_regime
"""

__all__: list[str] = []
