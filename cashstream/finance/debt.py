# cashstream/finance/debt.py
"""
Amortization solver.

Given three (or four) of {rate, initial_balance, payment, term} it solves the
missing one and builds the per-period balance / interest / principal series:
 - rate     : root of sum(cf[k] * d**k) with d = 1/(1+r)  (Brent)
 - payment  : annuity payment                              (numpy-financial)
 - balance  : present value of the payment stream          (numpy-financial)
 - term     : periods to amortize, rounded up              (numpy-financial)

Rates are annual inputs (APR or effective, see finance/rates.py). Everything
stored on the schedule is per period.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import numpy_financial as npf
from scipy.optimize import brentq

from cashstream.errors import IndeterminateResult, InvalidScheduleError, ParameterCountError
from cashstream.finance.cashflow import CashFlowCollection, one_off
from cashstream.finance.rates import annualize, periodic_rate
from cashstream.series import Series
from cashstream.timepoint import Granularity, TimePoint

logger = logging.getLogger(__name__)

_EPS = 1e-9  # residual balance cleanup, relative to the initial balance


@dataclass(frozen=True)
class LoanTerms:
    """Recognized amortization options; any one of rate/initial_balance/payment/term may be None."""

    rate: Optional[float] = None
    initial_balance: Optional[float] = None
    payment: Optional[float] = None
    term: Optional[int] = None
    apr: bool = True
    frequency: int = 12
    start: Any = None

    _ALIASES = {"apr_flag": "apr", "start_date": "start", "principal": "initial_balance"}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "LoanTerms":
        allowed = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        unknown: List[str] = []
        for key, value in (data or {}).items():
            name = cls._ALIASES.get(key, key)
            if name not in allowed:
                unknown.append(key)
                continue
            kwargs[name] = value
        if unknown:
            raise ValueError(f"unknown loan option(s): {sorted(unknown)}")
        return cls(**kwargs)

    def known(self) -> List[str]:
        return [
            name
            for name in ("rate", "initial_balance", "payment", "term")
            if getattr(self, name) is not None
        ]


@dataclass(frozen=True)
class AmortizationSchedule:
    rate: float              # effective per-period rate
    initial_balance: float
    payment: float
    periods: int
    frequency: int
    apr: bool
    start: TimePoint         # period 0; payments start one period later
    balance: Series
    interest: Series
    principal: Series

    @property
    def annual_rate(self) -> float:
        """The rate in the convention it was quoted in (APR or effective annual)."""
        if self.apr:
            return self.rate * self.frequency
        return annualize(self.rate, self.frequency)

    @property
    def effective_annual(self) -> float:
        return annualize(self.rate, self.frequency)

    @property
    def final_balance(self) -> float:
        vals = self.balance.values()
        return vals[-1] if vals else self.initial_balance

    def series(self) -> Dict[str, Series]:
        return {"balance": self.balance, "interest": self.interest, "principal": self.principal}

    def balance_at(self, at: Any) -> float:
        """Outstanding balance after the last payment at or before `at`."""
        tp = TimePoint.of(at, self.start.granularity)
        upto = self.balance.window(end=tp)
        if upto.empty:
            return self.initial_balance
        return upto.values()[-1]

    def cashflows(self, prefix: str = "loan") -> CashFlowCollection:
        """
        Borrower-side flows: the draw is an inflow at `start`, interest and
        principal repayments are outflows.
        """
        out = CashFlowCollection()
        out.add(f"{prefix}.draw", one_off(self.start, self.initial_balance))
        out.add(f"{prefix}.interest", -self.interest)
        out.add(f"{prefix}.principal", -self.principal)
        return out

    def payoff(self, at: Any, prefix: str = "loan") -> Series:
        """Outflow repaying the outstanding balance at `at`."""
        tp = TimePoint.of(at, self.start.granularity)
        return one_off(tp, -self.balance_at(tp)).rename(f"{prefix}.payoff")


# ---------- closed forms ----------
def _payment(r: float, bal0: float, n: int) -> float:
    if abs(r) < 1e-12:
        return bal0 / n
    return float(npf.pmt(r, n, -bal0))


def _present_value(r: float, pmt: float, n: int) -> float:
    if abs(r) < 1e-12:
        return pmt * n
    return float(npf.pv(r, n, -pmt))


def _term(r: float, bal0: float, pmt: float) -> int:
    if abs(r) < 1e-12:
        n = bal0 / pmt
    else:
        n = float(npf.nper(r, -pmt, bal0))
    # guard against 48.0000000001 -> 49
    return max(1, int(math.ceil(n - 1e-9)))


def _solve_rate(bal0: float, pmt: float, n: int) -> float:
    """Per-period rate r with sum(cf[k] * d**k) == 0, d = 1/(1+r)."""
    cf = np.concatenate(([-bal0], np.full(n, pmt, dtype=float)))
    k = np.arange(n + 1, dtype=float)

    def f(d: float) -> float:
        with np.errstate(over="ignore"):
            return float(np.dot(cf, d ** k))

    # non-negative undiscounted total: r >= 0, d in (0, 1]; else r < 0, d > 1
    lo, hi = (0.0, 1.01) if cf.sum() >= 0 else (1.0, 1000.0)
    while not math.isfinite(f(hi)) and hi - lo > 1e-12:
        hi = lo + (hi - lo) / 2.0
    try:
        d = brentq(f, lo, hi, xtol=1e-15, maxiter=500)
    except ValueError as e:
        raise IndeterminateResult(f"no rate in discount-factor range [{lo}, {hi}]") from e
    if d <= 0.0:
        raise IndeterminateResult("discount factor collapsed to 0")
    r = 1.0 / d - 1.0
    logger.debug("solved periodic rate %.10f (bal0=%s, pmt=%s, n=%s)", r, bal0, pmt, n)
    return r


def _balances(r: float, bal0: float, pmt: float, n: int) -> np.ndarray:
    """balance[0..n]; balance[0] is the initial balance."""
    i = np.arange(n + 1, dtype=float)
    if abs(r) < 1e-12:
        b = bal0 - pmt * i
    else:
        growth = (1.0 + r) ** i
        b = bal0 * growth - pmt * (growth - 1.0) / r
    b = np.maximum(b, 0.0)
    b[b < _EPS * max(abs(bal0), 1.0)] = 0.0
    b[0] = bal0
    return b


# ---------- public ----------
def amortize(
    rate: Optional[float] = None,
    initial_balance: Optional[float] = None,
    payment: Optional[float] = None,
    term: Optional[int] = None,
    *,
    apr: bool = True,
    frequency: int = 12,
    start: Any = None,
) -> AmortizationSchedule:
    """
    Solve the missing loan parameter and build the schedule.

    `rate` is annual (APR when `apr`, else effective annual); `term` counts
    periods at `frequency` per year. Payments start one period after `start`
    (epoch period of the matching granularity when omitted).

    Raises ParameterCountError with fewer than three knowns, InvalidScheduleError
    when the payment does not exceed the first period's interest, and
    IndeterminateResult when an unknown rate cannot be bracketed.
    """
    terms = LoanTerms(rate, initial_balance, payment, term, apr, frequency, start)
    known = terms.known()
    if len(known) < 3:
        raise ParameterCountError(known)

    freq = int(frequency)
    g = Granularity.from_frequency(freq)
    r = periodic_rate(rate, freq, apr) if rate is not None else None
    bal0 = float(initial_balance) if initial_balance is not None else None
    pmt = float(payment) if payment is not None else None
    n = int(term) if term is not None else None

    if n is not None and n <= 0:
        raise ValueError(f"term must be >= 1 period, got {term}")
    if bal0 is not None and bal0 <= 0:
        raise ValueError(f"initial_balance must be > 0, got {initial_balance}")

    if r is None:
        r = _solve_rate(bal0, pmt, n)
    elif pmt is None:
        pmt = _payment(r, bal0, n)
    elif bal0 is None:
        bal0 = _present_value(r, pmt, n)

    if not pmt > r * bal0:
        raise InvalidScheduleError(
            f"payment {pmt:.6f} does not exceed first-period interest {r * bal0:.6f};"
            " the balance would never amortize"
        )
    if n is None:
        n = _term(r, bal0, pmt)

    b = _balances(r, bal0, pmt, n)
    interest = b[:-1] * r
    principal = b[:-1] - b[1:]

    t0 = TimePoint.of(start, g) if start is not None else TimePoint.epoch(g)
    points = [t0.shift(i) for i in range(1, n + 1)]
    logger.debug("amortize: r=%.8f bal0=%.2f pmt=%.6f n=%d start=%s", r, bal0, pmt, n, t0)

    return AmortizationSchedule(
        rate=r,
        initial_balance=bal0,
        payment=pmt,
        periods=n,
        frequency=freq,
        apr=bool(apr),
        start=t0,
        balance=Series(points, b[1:], "balance", granularity=g),
        interest=Series(points, interest, "interest", granularity=g),
        principal=Series(points, principal, "principal", granularity=g),
    )


def amortize_terms(terms: LoanTerms) -> AmortizationSchedule:
    return amortize(
        terms.rate,
        terms.initial_balance,
        terms.payment,
        terms.term,
        apr=terms.apr,
        frequency=terms.frequency,
        start=terms.start,
    )


__all__ = ["LoanTerms", "AmortizationSchedule", "amortize", "amortize_terms"]
