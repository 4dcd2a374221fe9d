# cashstream/timepoint.py
"""
Calendar-aware index type.

A TimePoint is a pandas Period tagged with an explicit Granularity. Every
operation branches on the tag, never on the runtime type of the value the
caller handed in.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from functools import total_ordering
from typing import Any, Optional, Union

import numpy as np
import pandas as pd

from .errors import GranularityMismatchError


class Granularity(str, Enum):
    DATE = "date"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"

    @property
    def freq(self) -> str:
        """pandas period frequency alias."""
        return _FREQ[self]

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]

    @property
    def rank(self) -> int:
        """Coarseness order: DATE < MONTH < QUARTER < YEAR."""
        return _RANK[self]

    def is_coarser_or_equal(self, other: "Granularity") -> bool:
        return self.rank >= other.rank

    @classmethod
    def parse(cls, value: Union["Granularity", str]) -> "Granularity":
        """Accept an enum member, its value, a pandas alias or a plural/adverb form."""
        if isinstance(value, Granularity):
            return value
        key = str(value).strip().lower()
        try:
            return _ALIASES[key]
        except KeyError:
            raise ValueError(f"unknown granularity: {value!r}") from None

    @classmethod
    def from_freqstr(cls, freqstr: str) -> "Granularity":
        head = freqstr.upper()[:1]
        if head == "D":
            return cls.DATE
        if head == "M":
            return cls.MONTH
        if head == "Q":
            return cls.QUARTER
        if head in ("Y", "A"):
            return cls.YEAR
        raise ValueError(f"unsupported period frequency: {freqstr!r}")

    @classmethod
    def from_frequency(cls, frequency: int) -> "Granularity":
        """Granularity whose native period matches `frequency` periods per year."""
        for g, n in _PERIODS_PER_YEAR.items():
            if n == int(frequency):
                return g
        raise ValueError(
            f"unsupported frequency {frequency}; expected one of 365, 12, 4, 1"
        )


_FREQ = {
    Granularity.DATE: "D",
    Granularity.MONTH: "M",
    Granularity.QUARTER: "Q",
    Granularity.YEAR: "Y",
}
_PERIODS_PER_YEAR = {
    Granularity.DATE: 365,
    Granularity.MONTH: 12,
    Granularity.QUARTER: 4,
    Granularity.YEAR: 1,
}
_RANK = {
    Granularity.DATE: 0,
    Granularity.MONTH: 1,
    Granularity.QUARTER: 2,
    Granularity.YEAR: 3,
}
_ALIASES = {
    "date": Granularity.DATE, "day": Granularity.DATE, "daily": Granularity.DATE, "d": Granularity.DATE,
    "month": Granularity.MONTH, "monthly": Granularity.MONTH, "m": Granularity.MONTH,
    "quarter": Granularity.QUARTER, "quarterly": Granularity.QUARTER, "q": Granularity.QUARTER,
    "year": Granularity.YEAR, "yearly": Granularity.YEAR, "annual": Granularity.YEAR, "y": Granularity.YEAR,
}

# "2024", "2024Q1" / "2024-Q1", "2024-01", "2024-01-31"
_PATTERNS = (
    (re.compile(r"^\d{4}$"), Granularity.YEAR),
    (re.compile(r"^\d{4}-?[Qq][1-4]$"), Granularity.QUARTER),
    (re.compile(r"^\d{4}-\d{1,2}$"), Granularity.MONTH),
    (re.compile(r"^\d{4}-\d{1,2}-\d{1,2}$"), Granularity.DATE),
)


def _infer_from_text(text: str) -> Granularity:
    for pattern, g in _PATTERNS:
        if pattern.match(text):
            return g
    raise ValueError(f"cannot infer granularity from {text!r}; pass one explicitly")


TimePointLike = Union["TimePoint", pd.Period, pd.Timestamp, date, datetime, np.datetime64, str]


@total_ordering
@dataclass(frozen=True)
class TimePoint:
    granularity: Granularity
    period: pd.Period

    # ---------- construction ----------
    @classmethod
    def of(cls, value: Any, granularity: Optional[Union[Granularity, str]] = None) -> "TimePoint":
        """
        Coerce `value` to a TimePoint.

        Strings, dates and timestamps are converted into the requested
        granularity (a date inside a month becomes that month). An existing
        TimePoint or Period of a different granularity is rejected; use
        truncate() for explicit bucketing.
        """
        g = Granularity.parse(granularity) if granularity is not None else None

        if isinstance(value, TimePoint):
            if g is not None and value.granularity is not g:
                raise GranularityMismatchError(
                    f"{value!r} is {value.granularity.value}-indexed, expected {g.value}"
                )
            return value

        if isinstance(value, pd.Period):
            native = Granularity.from_freqstr(value.freqstr)
            if g is not None and native is not g:
                raise GranularityMismatchError(
                    f"period {value} is {native.value}-indexed, expected {g.value}"
                )
            return cls(native, value)

        if isinstance(value, str):
            text = value.strip()
            g = g or _infer_from_text(text)
            return cls(g, pd.Period(text.replace("-Q", "Q").replace("-q", "Q"), freq=g.freq))

        if isinstance(value, (date, datetime, pd.Timestamp, np.datetime64)):
            g = g or Granularity.DATE
            return cls(g, pd.Period(pd.Timestamp(value), freq=g.freq))

        raise TypeError(f"cannot build a TimePoint from {type(value).__name__}")

    @classmethod
    def day(cls, year: int, month: int, day: int) -> "TimePoint":
        return cls(Granularity.DATE, pd.Period(f"{year:04d}-{month:02d}-{day:02d}", freq="D"))

    @classmethod
    def month(cls, year: int, month: int) -> "TimePoint":
        return cls(Granularity.MONTH, pd.Period(f"{year:04d}-{month:02d}", freq="M"))

    @classmethod
    def quarter(cls, year: int, quarter: int) -> "TimePoint":
        return cls(Granularity.QUARTER, pd.Period(f"{year:04d}Q{quarter}", freq="Q"))

    @classmethod
    def year(cls, year: int) -> "TimePoint":
        return cls(Granularity.YEAR, pd.Period(f"{year:04d}", freq="Y"))

    @classmethod
    def epoch(cls, granularity: Union[Granularity, str]) -> "TimePoint":
        """Period ordinal 0 (1970) at the given granularity."""
        g = Granularity.parse(granularity)
        return cls(g, pd.Period(ordinal=0, freq=g.freq))

    # ---------- arithmetic ----------
    def _check(self, other: "TimePoint") -> None:
        if not isinstance(other, TimePoint):
            raise TypeError(f"expected TimePoint, got {type(other).__name__}")
        if other.granularity is not self.granularity:
            raise GranularityMismatchError(
                f"cannot combine {self.granularity.value} and {other.granularity.value} timepoints"
            )

    def as_float(self) -> float:
        """Year plus fractional offset into the year."""
        p = self.period
        if self.granularity is Granularity.YEAR:
            return float(p.year)
        if self.granularity is Granularity.QUARTER:
            return p.year + (p.quarter - 1) / 4.0
        if self.granularity is Granularity.MONTH:
            return p.year + (p.month - 1) / 12.0
        return p.year + (p.dayofyear - 1) / (366.0 if p.is_leap_year else 365.0)

    def periods_since(self, other: "TimePoint") -> int:
        """Signed distance from `other` in native periods (days for DATE)."""
        self._check(other)
        return int(self.period.ordinal - other.period.ordinal)

    def years_since(self, other: "TimePoint") -> float:
        n = self.periods_since(other)
        return n / float(self.granularity.periods_per_year)

    def __sub__(self, other: "TimePoint") -> Union[int, float]:
        # whole days for exact dates, fractional years otherwise
        if self.granularity is Granularity.DATE:
            return self.periods_since(other)
        return self.years_since(other)

    def shift(self, n: int) -> "TimePoint":
        return TimePoint(self.granularity, self.period + int(n))

    def truncate(self, granularity: Union[Granularity, str]) -> "TimePoint":
        """Bucket containing this point at a coarser (or equal) granularity."""
        g = Granularity.parse(granularity)
        if g is self.granularity:
            return self
        if not g.is_coarser_or_equal(self.granularity):
            raise GranularityMismatchError(
                f"cannot truncate {self.granularity.value} to finer {g.value}"
            )
        return TimePoint(g, self.period.asfreq(g.freq))

    # ---------- ordering / display ----------
    def __lt__(self, other: "TimePoint") -> bool:
        self._check(other)
        return self.period.ordinal < other.period.ordinal

    def __str__(self) -> str:
        return str(self.period)

    def __repr__(self) -> str:
        return f"TimePoint('{self}', {self.granularity.value})"


__all__ = ["Granularity", "TimePoint", "TimePointLike"]
