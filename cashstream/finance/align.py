# cashstream/finance/align.py
"""
Align N series onto the sorted union of their timepoints.

Fill policy is explicit:
 - FillPolicy.OMIT : timepoints absent from an input stay missing (NaN)
 - FillPolicy.ZERO : timepoints absent from an input become 0.0

Only absent entries are filled; a NaN the caller put in a series stays NaN,
so an undefined flow keeps the sum undefined.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from cashstream.errors import GranularityMismatchError
from cashstream.series import Series
from cashstream.timepoint import Granularity


class FillPolicy(str, Enum):
    OMIT = "omit"
    ZERO = "zero"


def common_granularity(series_list: Iterable[Series]) -> Optional[Granularity]:
    """Granularity shared by all non-empty inputs; None when every input is empty."""
    g: Optional[Granularity] = None
    for s in series_list:
        if s.granularity is None:
            continue
        if g is None:
            g = s.granularity
        elif s.granularity is not g:
            raise GranularityMismatchError(
                f"cannot align {g.value}-indexed and {s.granularity.value}-indexed series"
                f" ({s.name!r})"
            )
    return g


def _union_index(series_list: Sequence[Series], g: Granularity) -> pd.PeriodIndex:
    union = pd.PeriodIndex([], freq=g.freq)
    for s in series_list:
        if not s.empty:
            union = union.union(s.to_pandas().index)
    return union.sort_values()


def merge_frame(
    series_list: Sequence[Series], fill_policy: FillPolicy | str = FillPolicy.ZERO
) -> pd.DataFrame:
    """
    Aligned inputs as DataFrame columns (one per input, in input order).
    Column labels are the series names, or their position when unnamed.
    """
    series_list = list(series_list)
    policy = FillPolicy(fill_policy)
    g = common_granularity(series_list)
    if g is None:
        return pd.DataFrame(index=pd.PeriodIndex([], freq="D"))

    union = _union_index(series_list, g)
    fill = 0.0 if policy is FillPolicy.ZERO else float("nan")
    columns = {}
    for i, s in enumerate(series_list):
        label = s.name if s.name is not None and s.name not in columns else i
        if s.empty:
            columns[label] = pd.Series(fill, index=union, dtype=float)
        else:
            columns[label] = s.to_pandas().reindex(union, fill_value=fill)
    return pd.DataFrame(columns, index=union)


def merge(
    series_list: Sequence[Series], fill_policy: FillPolicy | str = FillPolicy.ZERO
) -> List[Series]:
    """One Series per input, aligned onto the union timeline."""
    series_list = list(series_list)
    g = common_granularity(series_list)
    if g is None:
        return [s for s in series_list]
    frame = merge_frame(series_list, fill_policy)
    out: List[Series] = []
    for pos, s in enumerate(series_list):
        col = frame.iloc[:, pos].rename(s.name)
        out.append(Series._wrap(col, g))
    return out


def sum_series(series_list: Sequence[Series], name: Optional[str] = "Total") -> Series:
    """Zero-filled elementwise sum over the union timeline."""
    series_list = list(series_list)
    g = common_granularity(series_list)
    if g is None:
        return Series(name=name)
    frame = merge_frame(series_list, FillPolicy.ZERO)
    total = frame.sum(axis=1, skipna=False).rename(name)
    return Series._wrap(total.astype(float), g)


__all__ = ["FillPolicy", "common_granularity", "merge_frame", "merge", "sum_series"]
