"""quantsim: indicator library, strategy signals and single-position backtesting."""

__version__ = "0.4.0"

__all__ = ["__version__"]
