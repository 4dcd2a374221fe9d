# cashstream/finance/rates.py
"""
Rate conventions.

APR: nominal annual rate, periodic rate = apr / frequency.
Effective annual: periodic rate = (1 + eff) ** (1 / frequency) - 1.
"""

from __future__ import annotations


def periodic_rate(rate: float, frequency: float, apr: bool) -> float:
    """Per-period effective rate for an annual `rate` quoted as APR or effective."""
    f = float(frequency)
    if f <= 0:
        raise ValueError(f"frequency must be > 0, got {frequency}")
    r = float(rate)
    if apr:
        return r / f
    return (1.0 + r) ** (1.0 / f) - 1.0


def annualize(periodic: float, frequency: float) -> float:
    """Effective annual rate compounding `periodic` over `frequency` periods."""
    return (1.0 + float(periodic)) ** float(frequency) - 1.0


def apr_to_effective(apr: float, frequency: float) -> float:
    return annualize(float(apr) / float(frequency), frequency)


def effective_to_apr(effective: float, frequency: float) -> float:
    return periodic_rate(effective, frequency, apr=False) * float(frequency)


__all__ = ["periodic_rate", "annualize", "apr_to_effective", "effective_to_apr"]
