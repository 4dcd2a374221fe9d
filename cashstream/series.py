# cashstream/series.py
"""
Sparse, ordered, immutable mapping TimePoint -> float.

Backed by a pandas Series over a PeriodIndex. Missing values are NaN and are
kept as such; merge/aggregate callers choose how to treat them.

Duplicate timepoints at construction: the last value wins.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import GranularityMismatchError
from .timepoint import Granularity, TimePoint


def _coerce_points(
    timepoints: Iterable[Any], granularity: Optional[Granularity]
) -> Tuple[List[TimePoint], Optional[Granularity]]:
    # an explicit granularity converts; otherwise every point must agree
    points: List[TimePoint] = []
    g = granularity
    for raw in timepoints:
        tp = TimePoint.of(raw, granularity)
        if g is None:
            g = tp.granularity
        elif tp.granularity is not g:
            raise GranularityMismatchError(
                f"{tp!r} is {tp.granularity.value}-indexed, series is {g.value}-indexed"
            )
        points.append(tp)
    return points, g


class Series:
    """Immutable calendar-indexed series of floats (NaN = missing)."""

    __slots__ = ("_data", "_granularity")

    def __init__(
        self,
        timepoints: Sequence[Any] = (),
        values: Sequence[Any] = (),
        name: Optional[str] = None,
        *,
        granularity: Optional[Union[Granularity, str]] = None,
    ):
        g = Granularity.parse(granularity) if granularity is not None else None
        points, g = _coerce_points(timepoints, g)
        vals = np.asarray(list(values), dtype=float)
        if len(points) != len(vals):
            raise ValueError(
                f"timepoints and values differ in length: {len(points)} != {len(vals)}"
            )
        if g is None:
            data = pd.Series(vals, index=pd.PeriodIndex([], freq="D"), dtype=float, name=name)
        else:
            index = pd.PeriodIndex([tp.period for tp in points], freq=g.freq)
            data = pd.Series(vals, index=index, dtype=float, name=name)
            data = data[~data.index.duplicated(keep="last")].sort_index()
        self._data = data
        self._granularity = g

    # ---------- alternate constructors ----------
    @classmethod
    def _wrap(cls, data: pd.Series, granularity: Optional[Granularity]) -> "Series":
        obj = cls.__new__(cls)
        obj._data = data
        obj._granularity = granularity
        return obj

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[Tuple[Any, Any]],
        name: Optional[str] = None,
        *,
        granularity: Optional[Union[Granularity, str]] = None,
    ) -> "Series":
        pairs = list(pairs)
        return cls([p[0] for p in pairs], [p[1] for p in pairs], name, granularity=granularity)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[Any, Any],
        name: Optional[str] = None,
        *,
        granularity: Optional[Union[Granularity, str]] = None,
    ) -> "Series":
        return cls(list(mapping.keys()), list(mapping.values()), name, granularity=granularity)

    @classmethod
    def from_pandas(
        cls,
        data: pd.Series,
        name: Optional[str] = None,
        *,
        granularity: Optional[Union[Granularity, str]] = None,
    ) -> "Series":
        """Accepts a PeriodIndex or DatetimeIndex (DatetimeIndex defaults to DATE)."""
        index = data.index
        if isinstance(index, pd.PeriodIndex) and granularity is None:
            granularity = Granularity.from_freqstr(index.freqstr)
            return cls(list(index), data.to_numpy(dtype=float), name or data.name, granularity=granularity)
        if isinstance(index, pd.DatetimeIndex):
            return cls(list(index), data.to_numpy(dtype=float), name or data.name,
                       granularity=granularity or Granularity.DATE)
        return cls(list(index), data.to_numpy(dtype=float), name or data.name, granularity=granularity)

    # ---------- accessors ----------
    @property
    def granularity(self) -> Optional[Granularity]:
        return self._granularity

    @property
    def name(self) -> Optional[str]:
        return self._data.name

    def rename(self, name: Optional[str]) -> "Series":
        return Series._wrap(self._data.rename(name), self._granularity)

    def timepoints(self) -> List[TimePoint]:
        g = self._granularity
        return [TimePoint(g, p) for p in self._data.index]

    def values(self) -> List[float]:
        return [float(v) for v in self._data.to_numpy()]

    def items(self) -> List[Tuple[TimePoint, float]]:
        return list(zip(self.timepoints(), self.values()))

    def __iter__(self) -> Iterator[Tuple[TimePoint, float]]:
        return iter(self.items())

    def __len__(self) -> int:
        return len(self._data)

    @property
    def empty(self) -> bool:
        return len(self._data) == 0

    def _key(self, tp: Any) -> pd.Period:
        if self._granularity is None:
            raise KeyError(tp)
        return TimePoint.of(tp, self._granularity).period

    def __contains__(self, tp: Any) -> bool:
        if self._granularity is None:
            return False
        return self._key(tp) in self._data.index

    def __getitem__(self, tp: Any) -> float:
        return float(self._data.loc[self._key(tp)])

    def get(self, tp: Any, default: Optional[float] = None) -> Optional[float]:
        if tp not in self:
            return default
        return self[tp]

    def first(self) -> TimePoint:
        if self.empty:
            raise IndexError("first() on an empty series")
        return TimePoint(self._granularity, self._data.index[0])

    def last(self) -> TimePoint:
        if self.empty:
            raise IndexError("last() on an empty series")
        return TimePoint(self._granularity, self._data.index[-1])

    def has_missing(self) -> bool:
        return bool(self._data.isna().any())

    # ---------- derived series ----------
    def slice(self, predicate: Callable[[TimePoint, float], bool]) -> "Series":
        """Keep the entries for which predicate(timepoint, value) is true."""
        mask = [bool(predicate(tp, v)) for tp, v in self.items()]
        return Series._wrap(self._data[np.asarray(mask, dtype=bool)], self._granularity)

    def window(self, start: Any = None, end: Any = None) -> "Series":
        """Entries within [start, end], both inclusive; None leaves that side open."""
        if self.empty:
            return self
        data = self._data
        if start is not None:
            data = data[data.index >= self._key(start)]
        if end is not None:
            data = data[data.index <= self._key(end)]
        return Series._wrap(data, self._granularity)

    def shift(self, by_periods: int) -> "Series":
        if self.empty:
            return self
        data = self._data.copy()
        data.index = data.index + int(by_periods)
        return Series._wrap(data, self._granularity)

    def scale(self, factor: float) -> "Series":
        return Series._wrap(self._data * float(factor), self._granularity)

    def __neg__(self) -> "Series":
        return self.scale(-1.0)

    def total(self) -> float:
        """Sum of the non-missing values."""
        return float(np.nansum(self._data.to_numpy())) if len(self._data) else 0.0

    def to_pandas(self) -> pd.Series:
        return self._data.copy()

    def __repr__(self) -> str:
        g = self._granularity.value if self._granularity else "empty"
        return f"Series(name={self.name!r}, granularity={g}, n={len(self)})"


__all__ = ["Series"]
