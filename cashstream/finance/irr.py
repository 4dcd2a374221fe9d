# cashstream/finance/irr.py
"""
IRR / NPV for calendar-indexed or plain periodic cash flows.

This is the only module that defines irr() and npv(); everything else
imports them from here (see finance/metrics.py).

Time units:
 - DATE series      : elapsed days, 365 periods per year
 - MONTH/QUARTER/YEAR series : elapsed years for IRR, native periods for NPV
 - plain sequences  : index = period number, caller-supplied frequency (default 1)
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.optimize import brentq

from cashstream.errors import IndeterminateResult
from cashstream.finance.rates import annualize, periodic_rate
from cashstream.series import Series
from cashstream.timepoint import Granularity, TimePoint

logger = logging.getLogger(__name__)

Cashflows = Union[Series, Sequence[float]]

# Bracket search budgets
_DOWN_STEP = 0.01
_DOWN_MAX_ITER = 100
_RATE_FLOOR = -0.999999
_UP_STEP = 0.01
_UP_GROWTH = 1.5
_UP_MAX_ITER = 100_000
_RATE_CEILING = 1e6
_BISECT_ITER = 40


# ---------- NPV ----------
def npv(
    rate: float,
    cashflows: Cashflows,
    frequency: Optional[int] = None,
    apr: bool = False,
    as_of: Any = None,
    drop_before_as_of: bool = True,
) -> float:
    """
    Present value as of `as_of` (default: first timepoint / index 0).

    `rate` is annual: APR when `apr`, else effective annual. It is turned
    into a per-period rate at the series' native frequency (DATE 365,
    MONTH 12, QUARTER 4, YEAR 1); plain sequences use `frequency`
    (default 1).

    With drop_before_as_of=True, entries strictly before `as_of` are
    excluded (inception NPV). With False they are kept, and their negative
    elapsed periods compound them up instead of discounting.
    """
    if isinstance(cashflows, Series):
        if cashflows.empty:
            return 0.0
        g = cashflows.granularity
        freq = g.periods_per_year
        if frequency is not None and int(frequency) != freq:
            raise ValueError(
                f"frequency {frequency} conflicts with the {g.value} series' native frequency {freq}"
            )
        ref = cashflows.first() if as_of is None else TimePoint.of(as_of, g)
        values = np.asarray(cashflows.values(), dtype=float)
        elapsed = np.asarray([tp.periods_since(ref) for tp in cashflows.timepoints()], dtype=float)
    else:
        values = np.asarray(list(cashflows), dtype=float)
        if not len(values):
            return 0.0
        freq = int(frequency) if frequency is not None else 1
        ref_idx = 0 if as_of is None else int(as_of)
        elapsed = np.arange(len(values), dtype=float) - ref_idx

    r = periodic_rate(rate, freq, apr)
    if drop_before_as_of:
        keep = elapsed >= 0
        values, elapsed = values[keep], elapsed[keep]
    if not len(values):
        return 0.0
    return float(np.sum(values / (1.0 + r) ** elapsed))


# ---------- IRR (internals) ----------
def _prepare(cashflows: Cashflows, frequency: Optional[int]) -> Tuple[np.ndarray, np.ndarray, int]:
    """(values, elapsed times in discounting periods, periods per year)."""
    if isinstance(cashflows, Series):
        values = np.asarray(cashflows.values(), dtype=float)
        if cashflows.empty:
            return values, values.copy(), 1
        points = cashflows.timepoints()
        t0 = points[0]
        if cashflows.granularity is Granularity.DATE:
            times = np.asarray([tp.periods_since(t0) for tp in points], dtype=float)
            return values, times, 365
        times = np.asarray([tp.years_since(t0) for tp in points], dtype=float)
        return values, times, 1
    values = np.asarray(list(cashflows), dtype=float)
    freq = int(frequency) if frequency is not None else 1
    return values, np.arange(len(values), dtype=float), freq


def _discounted_sum(rate: float, values: np.ndarray, times: np.ndarray) -> float:
    with np.errstate(over="ignore", divide="ignore", invalid="ignore"):
        return float(np.sum(values * (1.0 + rate) ** (-times)))


def _straddles(a: float, b: float) -> bool:
    if not (math.isfinite(a) and math.isfinite(b)):
        return False
    return (a <= 0.0 <= b) or (b <= 0.0 <= a)


def _search_down(f) -> Optional[Tuple[float, float]]:
    # fixed steps towards -100%
    hi = 0.0
    f_hi = f(hi)
    for _ in range(_DOWN_MAX_ITER):
        lo = max(hi - _DOWN_STEP, _RATE_FLOOR)
        f_lo = f(lo)
        if _straddles(f_lo, f_hi):
            return lo, hi
        if lo <= _RATE_FLOOR:
            break
        hi, f_hi = lo, f_lo
    return None


def _search_up(f) -> Optional[Tuple[float, float]]:
    # geometrically growing step
    lo = 0.0
    f_lo = f(lo)
    step = _UP_STEP
    for _ in range(_UP_MAX_ITER):
        hi = lo + step
        f_hi = f(hi)
        if _straddles(f_lo, f_hi):
            return lo, hi
        if not math.isfinite(f_hi) or hi >= _RATE_CEILING:
            break
        lo, f_lo = hi, f_hi
        step *= _UP_GROWTH
    return None


def _bracket(f, total: float) -> Tuple[float, float]:
    """
    A negative undiscounted total points to a negative rate, a positive one
    to a positive rate. Flows that start with an inflow (borrower side) invert
    that, so the other direction is searched before giving up.
    """
    searches = (_search_down, _search_up) if total < 0 else (_search_up, _search_down)
    for search in searches:
        found = search(f)
        if found is not None:
            return found
    raise IndeterminateResult(
        f"no sign change between {_RATE_FLOOR:g} and {_RATE_CEILING:g}"
    )


def _bisect(f, lo: float, hi: float, iterations: int = _BISECT_ITER) -> float:
    """Fixed-iteration bisection that keeps the half whose sign differs from f(lo)."""
    f_lo = f(lo)
    if f_lo == 0.0:
        return lo
    for _ in range(iterations):
        mid = (lo + hi) / 2.0
        f_mid = f(mid)
        if f_mid == 0.0:
            return mid
        if (f_mid > 0) == (f_lo > 0):
            lo, f_lo = mid, f_mid
        else:
            hi = mid
    return (lo + hi) / 2.0


# ---------- IRR (public) ----------
def solve_irr(
    cashflows: Cashflows,
    *,
    standardized: bool = False,
    frequency: Optional[int] = None,
) -> float:
    """
    Rate that zeroes the NPV. Raises IndeterminateResult when the flow is
    degenerate or no sign change can be bracketed.

    Series: effective annual rate. Plain sequences: per-period rate,
    annualized when `frequency` > 1.
    With `standardized`, a flow spanning less than one year is reported as a
    holding-period return: (1 + irr) ** duration - 1.
    """
    values, times, freq = _prepare(cashflows, frequency)

    if np.isnan(values).any():
        raise IndeterminateResult("cash flow contains missing values")
    if len(values) < 2:
        raise IndeterminateResult("need at least two cash flows")
    if (values <= 0).all() or (values >= 0).all():
        raise IndeterminateResult("cash flows do not change sign")
    total = float(values.sum())
    if total == 0.0:
        return 0.0

    def f(rate: float) -> float:
        return _discounted_sum(rate, values, times)

    lo, hi = _bracket(f, total)
    if values[0] < 0 and values[-1] > 0:
        root = float(brentq(f, lo, hi, xtol=1e-14, rtol=1e-12, maxiter=200))
        method = "brent"
    else:
        root = _bisect(f, lo, hi)
        method = "bisect"
    logger.debug("irr: bracket=[%.6f, %.6f] method=%s root=%.10f", lo, hi, method, root)

    rate = annualize(root, freq) if freq > 1 else root

    if standardized:
        duration = float(times[-1] - times[0]) / freq
        if 0.0 < duration < 1.0:
            rate = (1.0 + rate) ** duration - 1.0
    return rate


def irr(
    cashflows: Cashflows,
    *,
    standardized: bool = False,
    frequency: Optional[int] = None,
) -> Optional[float]:
    """
    Like solve_irr() but returns None for an indeterminate result, so sweeps
    over many flows keep going.
    """
    try:
        return solve_irr(cashflows, standardized=standardized, frequency=frequency)
    except IndeterminateResult as e:
        logger.debug("irr indeterminate: %s", e.reason)
        return None


__all__ = ["npv", "irr", "solve_irr", "Cashflows"]
