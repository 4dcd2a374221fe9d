# cashstream/errors.py
"""
Error taxonomy shared by the series, debt and IRR modules.

Parameter and validation errors are raised to the caller. Numeric solvers
raise IndeterminateResult internally; collection-wide helpers (irr(), sweeps)
turn it into None/NaN so one bad point does not abort the batch.
"""

from __future__ import annotations


class CashflowError(Exception):
    """Base class for every error raised by cashstream."""


class ParameterCountError(CashflowError, ValueError):
    """Amortization called without enough of {rate, balance, payment, term}."""

    def __init__(self, known: list[str], message: str | None = None):
        self.known = list(known)
        super().__init__(
            message
            or f"need at least 3 of rate/initial_balance/payment/term, got {self.known}"
        )


class InvalidScheduleError(CashflowError, ValueError):
    """Payment does not exceed the first period's interest; the loan never amortizes."""


class IndeterminateResult(CashflowError, ArithmeticError):
    """A root could not be bracketed, or the cash flow is degenerate."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class GranularityMismatchError(CashflowError, TypeError):
    """Series or timepoints of incompatible granularity were combined."""


class ConfigError(CashflowError, ValueError):
    """A scenario file is malformed or has values outside the allowed range."""


__all__ = [
    "CashflowError",
    "ConfigError",
    "ParameterCountError",
    "InvalidScheduleError",
    "IndeterminateResult",
    "GranularityMismatchError",
]
