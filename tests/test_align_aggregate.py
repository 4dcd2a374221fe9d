import math

import pytest

from cashstream.errors import GranularityMismatchError
from cashstream.finance.aggregate import aggregate, last_value, make_table
from cashstream.finance.align import FillPolicy, merge, merge_frame, sum_series
from cashstream.series import Series
from cashstream.timepoint import Granularity, TimePoint


def _monthly(values, start="2024-01", name=None):
    t0 = TimePoint.of(start)
    return Series([t0.shift(i) for i in range(len(values))], values, name)


def test_merge_is_union_with_explicit_fill():
    a = Series(["2024-01", "2024-03"], [1.0, 3.0], "a")
    b = Series(["2024-02", "2024-03"], [20.0, 30.0], "b")

    za, zb = merge([a, b])
    assert [str(tp) for tp in za.timepoints()] == ["2024-01", "2024-02", "2024-03"]
    assert za.values() == [1.0, 0.0, 3.0]
    assert zb.values() == [0.0, 20.0, 30.0]

    oa, _ = merge([a, b], FillPolicy.OMIT)
    assert math.isnan(oa["2024-02"])


def test_merge_keeps_caller_nan():
    a = Series(["2024-01", "2024-02"], [1.0, float("nan")], "a")
    b = Series(["2024-03"], [5.0], "b")
    frame = merge_frame([a, b], "zero")
    assert math.isnan(frame.loc[TimePoint.of("2024-02").period, "a"])
    assert frame.loc[TimePoint.of("2024-03").period, "a"] == 0.0


def test_merge_rejects_mixed_granularity():
    with pytest.raises(GranularityMismatchError):
        merge([Series(["2024-01"], [1.0]), Series(["2024"], [1.0])])


def test_sum_series_zero_fills():
    total = sum_series([_monthly([1, 2, 3]), _monthly([10], start="2024-05")])
    assert total.name == "Total"
    assert total.values() == [1.0, 2.0, 3.0, 10.0]


def test_aggregate_preserves_sum():
    s = _monthly([float(i) for i in range(1, 25)])
    yearly = aggregate(s, "year")
    assert yearly.granularity is Granularity.YEAR
    assert yearly.values() == [sum(range(1, 13)), sum(range(13, 25))]
    assert yearly.total() == pytest.approx(s.total())

    quarterly = aggregate(s, Granularity.QUARTER)
    assert len(quarterly) == 8
    assert quarterly.total() == pytest.approx(s.total())


def test_aggregate_from_dates_and_last_value():
    s = Series(["2024-01-15", "2024-01-31", "2024-02-10"], [100.0, 80.0, 60.0])
    monthly = aggregate(s, "month", last_value)
    assert monthly.values() == [80.0, 60.0]
    assert aggregate(s, "month", "sum").values() == [180.0, 60.0]


def test_aggregate_rejects_finer_target():
    with pytest.raises(GranularityMismatchError):
        aggregate(Series(["2024"], [1.0]), "month")


def test_make_table_zero_fills_and_orients():
    items = {
        "rent": _monthly([100.0] * 18),
        "capex": Series(["2025-03"], [-500.0]),
        "balance": _monthly([900.0, 800.0, 700.0], start="2024-11"),
    }
    table = make_table(items, "year", {"balance": last_value})
    assert list(table.columns) == ["rent", "capex", "balance"]
    assert table.index.name == "period"
    assert table["rent"].tolist() == [1200.0, 600.0]
    assert table["capex"].tolist() == [0.0, -500.0]
    assert table["balance"].tolist() == [800.0, 700.0]

    flipped = make_table(items, "year", orient="items")
    assert flipped.index.name == "item"
    assert list(flipped.index) == ["rent", "capex", "balance"]
    assert flipped.loc["balance"].tolist() == [1700.0, 700.0]


def test_last_value_missing_falls_back_to_zero():
    s = Series(["2024-01", "2024-02", "2025-01"], [100.0, float("nan"), 5.0])
    assert aggregate(s, "year", last_value).values() == [0.0, 5.0]
    assert aggregate(s, "year").values() == [100.0, 5.0]


def test_make_table_rejects_mixed_granularity():
    items = {"m": _monthly([1.0, 2.0]), "y": Series(["2024"], [3.0])}
    with pytest.raises(GranularityMismatchError):
        make_table(items, "year")
