# cashstream/finance/aggregate.py
"""
Calendar-bucket aggregation and table layout.

Buckets come from truncating each timepoint to a coarser (or equal)
granularity; each bucket is reduced with a reducer(values) -> float.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Union

import numpy as np
import pandas as pd

from cashstream.errors import GranularityMismatchError
from cashstream.finance.align import common_granularity
from cashstream.series import Series
from cashstream.timepoint import Granularity

Reducer = Callable[[np.ndarray], float]


def total(values: np.ndarray) -> float:
    """Sum, skipping missing values."""
    return float(np.nansum(values)) if len(values) else 0.0


def last_value(values: np.ndarray) -> float:
    """Last value in the bucket; 0.0 if it is missing. Used for balance-style series."""
    if not len(values):
        return 0.0
    v = float(values[-1])
    return 0.0 if np.isnan(v) else v


REDUCERS: Dict[str, Reducer] = {
    "sum": total,
    "total": total,
    "last": last_value,
    "last_value": last_value,
}


def resolve_reducer(reducer: Union[Reducer, str, None]) -> Reducer:
    if reducer is None:
        return total
    if callable(reducer):
        return reducer
    try:
        return REDUCERS[str(reducer).lower()]
    except KeyError:
        raise ValueError(f"unknown reducer {reducer!r}; expected one of {sorted(REDUCERS)}") from None


class Orient(str, Enum):
    PERIODS = "periods"  # rows = periods, columns = items
    ITEMS = "items"      # rows = items, columns = periods


def aggregate(
    series: Series,
    granularity: Union[Granularity, str],
    reducer: Union[Reducer, str, None] = total,
) -> Series:
    """One reduced value per non-empty bucket, in chronological order."""
    g = Granularity.parse(granularity)
    fn = resolve_reducer(reducer)
    if series.granularity is None:
        return Series(name=series.name, granularity=g)
    if not g.is_coarser_or_equal(series.granularity):
        raise GranularityMismatchError(
            f"cannot aggregate {series.granularity.value}-indexed series {series.name!r}"
            f" into finer {g.value} buckets"
        )

    data = series.to_pandas()
    keys = data.index.asfreq(g.freq)
    buckets = []
    reduced = []
    for key, chunk in data.groupby(keys, sort=True):
        buckets.append(key)
        reduced.append(float(fn(chunk.to_numpy(dtype=float))))
    return Series(buckets, reduced, series.name, granularity=g)


def make_table(
    collection: Mapping[str, Series],
    granularity: Union[Granularity, str],
    reducer: Union[Reducer, str, Mapping[str, Union[Reducer, str]], None] = total,
    orient: Union[Orient, str] = Orient.PERIODS,
    *,
    default_reducer: Union[Reducer, str, None] = total,
) -> pd.DataFrame:
    """
    Aggregate every series of `collection` independently and lay them out
    as one table. Buckets a series has no entry for are zero-filled. Members must
    share one granularity.

    `reducer` may be a mapping label -> reducer; labels it does not list use
    `default_reducer`.
    """
    g = Granularity.parse(granularity)
    layout = Orient(orient)
    common_granularity(collection.values())

    columns: Dict[str, pd.Series] = {}
    for label, s in collection.items():
        if isinstance(reducer, Mapping):
            fn: Optional[Union[Reducer, str]] = reducer.get(label, default_reducer)
        else:
            fn = reducer
        columns[label] = aggregate(s, g, fn).to_pandas()

    if columns:
        table = pd.DataFrame(columns).sort_index().fillna(0.0)
    else:
        table = pd.DataFrame(index=pd.PeriodIndex([], freq=g.freq))
    table.index.name = "period"
    if layout is Orient.ITEMS:
        table = table.T
        table.index.name = "item"
    return table


__all__ = [
    "Reducer",
    "total",
    "last_value",
    "REDUCERS",
    "resolve_reducer",
    "Orient",
    "aggregate",
    "make_table",
]
