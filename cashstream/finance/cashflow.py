# cashstream/finance/cashflow.py
"""
Cash-flow line items and the named collection that holds them.

 - one_off / recurring : build single Series items (recurring supports growth)
 - CashFlowCollection  : insertion-ordered label -> Series, one granularity
 - hold_period_sweep   : IRR/NPV as a function of the exit (hold) date
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from cashstream.errors import GranularityMismatchError
from cashstream.finance.aggregate import Orient, make_table, total as sum_values
from cashstream.finance.align import FillPolicy, merge_frame, sum_series
from cashstream.finance.irr import irr, npv
from cashstream.finance.rates import periodic_rate
from cashstream.series import Series
from cashstream.timepoint import Granularity, TimePoint

TOTAL = "Total"


# ---------- item builders ----------
def one_off(at: Any, amount: float, name: Optional[str] = None, *, granularity=None) -> Series:
    """A single flow at `at`."""
    return Series([at], [amount], name, granularity=granularity)


def recurring(
    start: Any,
    periods: int,
    amount: float,
    *,
    growth: float = 0.0,
    growth_apr: bool = False,
    every: int = 1,
    name: Optional[str] = None,
    granularity=None,
) -> Series:
    """
    `periods` flows from `start`, one every `every` native periods, growing at
    the annual rate `growth` (effective, or APR when `growth_apr`):
        amount * (1 + g_periodic) ** k
    where k counts native periods since `start`.
    """
    if periods < 0:
        raise ValueError(f"periods must be >= 0, got {periods}")
    if every < 1:
        raise ValueError(f"every must be >= 1, got {every}")
    t0 = TimePoint.of(start, granularity)
    g = periodic_rate(growth, t0.granularity.periods_per_year, growth_apr)
    offsets = np.arange(periods) * every
    values = float(amount) * (1.0 + g) ** offsets
    return Series([t0.shift(int(k)) for k in offsets], values, name, granularity=t0.granularity)


# ---------- collection ----------
class CashFlowCollection(Mapping):
    """
    Named, insertion-ordered cash-flow items sharing one granularity.

    Items are added with add(); derived views (window, with_total) are new
    collections. "Total" is reserved for the derived sum.
    """

    def __init__(self, items: Union[Mapping[str, Series], Iterable[Tuple[str, Series]], None] = None):
        self._items: Dict[str, Series] = {}
        self._granularity: Optional[Granularity] = None
        if items is None:
            return
        pairs = items.items() if isinstance(items, Mapping) else items
        for label, s in pairs:
            self.add(label, s)

    # Mapping protocol
    def __getitem__(self, label: str) -> Series:
        return self._items[label]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        g = self._granularity.value if self._granularity else "empty"
        return f"CashFlowCollection({list(self._items)}, granularity={g})"

    @property
    def granularity(self) -> Optional[Granularity]:
        return self._granularity

    def _put(self, label: str, series: Series) -> None:
        if series.granularity is not None:
            if self._granularity is None:
                self._granularity = series.granularity
            elif series.granularity is not self._granularity:
                raise GranularityMismatchError(
                    f"item {label!r} is {series.granularity.value}-indexed,"
                    f" collection is {self._granularity.value}-indexed"
                )
        self._items[label] = series.rename(label)

    def add(self, label: str, series: Series) -> "CashFlowCollection":
        if label == TOTAL:
            raise ValueError(f"{TOTAL!r} is derived; use with_total()")
        if label in self._items:
            raise ValueError(f"duplicate cash-flow item {label!r}")
        self._put(label, series)
        return self

    def extend(self, other: Mapping[str, Series]) -> "CashFlowCollection":
        for label, s in other.items():
            if label != TOTAL:
                self.add(label, s)
        return self

    def line_items(self) -> List[str]:
        return [k for k in self._items if k != TOTAL]

    def first(self) -> TimePoint:
        points = [s.first() for s in self._items.values() if not s.empty]
        if not points:
            raise IndexError("first() on an empty collection")
        return min(points)

    def last(self) -> TimePoint:
        points = [s.last() for s in self._items.values() if not s.empty]
        if not points:
            raise IndexError("last() on an empty collection")
        return max(points)

    # derived views
    def total(self, name: str = TOTAL) -> Series:
        return sum_series([self._items[k] for k in self.line_items()], name=name)

    def with_total(self) -> "CashFlowCollection":
        out = CashFlowCollection()
        for k in self.line_items():
            out._put(k, self._items[k])
        out._put(TOTAL, self.total())
        return out

    def window(self, start: Any = None, end: Any = None) -> "CashFlowCollection":
        """Every item clipped to [start, end] (inclusive)."""
        out = CashFlowCollection()
        for k, s in self._items.items():
            out._put(k, s.window(start, end))
        out._granularity = out._granularity or self._granularity
        return out

    def frame(self, fill_policy: Union[FillPolicy, str] = FillPolicy.ZERO) -> pd.DataFrame:
        return merge_frame(list(self._items.values()), fill_policy)

    def table(
        self,
        granularity: Union[Granularity, str],
        reducer=sum_values,
        orient: Union[Orient, str] = Orient.PERIODS,
        **kwargs: Any,
    ) -> pd.DataFrame:
        return make_table(self, granularity, reducer, orient, **kwargs)


# ---------- sensitivity ----------
ExitFlows = Callable[[TimePoint], Mapping[str, float]]


def hold_period_sweep(
    collection: CashFlowCollection,
    hold_dates: Iterable[Any],
    exit_flows: Optional[ExitFlows] = None,
    *,
    npv_rate: Optional[float] = None,
    apr: bool = False,
    standardized: bool = False,
    start: Any = None,
) -> pd.DataFrame:
    """
    IRR (and NPV when `npv_rate` is given) if the investment is exited at
    each hold date.

    For every hold date the collection is clipped to [start, hold], the
    flows returned by exit_flows(hold) (label -> amount, e.g. sale proceeds
    and loan payoff) are booked at the hold date, and the total is
    evaluated. Indeterminate points come back as NaN.
    """
    g = collection.granularity
    if g is None:
        raise ValueError("hold_period_sweep needs a non-empty collection")
    t_start = TimePoint.of(start, g) if start is not None else collection.first()

    index: List[pd.Period] = []
    irrs: List[float] = []
    npvs: List[float] = []
    failed = 0
    for raw in hold_dates:
        hold = TimePoint.of(raw, g)
        clipped = collection.window(t_start, hold)
        members = [clipped[k] for k in clipped.line_items()]
        if exit_flows is not None:
            for label, amount in exit_flows(hold).items():
                members.append(one_off(hold, amount, label))
        flow = sum_series(members)

        rate = irr(flow, standardized=standardized)
        if rate is None:
            failed += 1
        index.append(hold.period)
        irrs.append(np.nan if rate is None else rate)
        npvs.append(npv(npv_rate, flow, apr=apr) if npv_rate is not None else np.nan)

    if failed:
        warnings.warn(f"hold_period_sweep: {failed}/{len(index)} hold dates gave an indeterminate IRR")

    out = pd.DataFrame({"irr": irrs, "npv": npvs}, index=pd.PeriodIndex(index, freq=g.freq))
    out.index.name = "hold"
    return out


__all__ = [
    "TOTAL",
    "one_off",
    "recurring",
    "CashFlowCollection",
    "ExitFlows",
    "hold_period_sweep",
]
