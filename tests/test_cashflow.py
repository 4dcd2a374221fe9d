import math

import pytest

from cashstream.errors import GranularityMismatchError
from cashstream.finance.cashflow import TOTAL, CashFlowCollection, hold_period_sweep, one_off, recurring
from cashstream.series import Series
from cashstream.timepoint import TimePoint


def _investment():
    flows = CashFlowCollection()
    flows.add("purchase", one_off("2024", -1_000.0))
    flows.add("income", recurring("2025", 5, 50.0))
    return flows


def test_recurring_growth_and_spacing():
    apr = recurring("2024-01", 3, 100.0, growth=0.12, growth_apr=True)
    assert apr.values() == pytest.approx([100.0, 101.0, 102.01])

    eff = recurring("2024-01", 13, 100.0, growth=0.10)
    assert eff["2025-01"] == pytest.approx(110.0)

    spaced = recurring("2024-01", 4, 50.0, every=3, name="fee")
    assert [str(tp) for tp in spaced.timepoints()] == ["2024-01", "2024-04", "2024-07", "2024-10"]
    assert spaced.name == "fee"
    with pytest.raises(ValueError):
        recurring("2024-01", 4, 50.0, every=0)


def test_collection_total_and_labels():
    flows = _investment().with_total()
    assert list(flows) == ["purchase", "income", TOTAL]
    assert flows.line_items() == ["purchase", "income"]
    assert flows["income"].name == "income"
    assert flows[TOTAL].values() == [-1_000.0, 50.0, 50.0, 50.0, 50.0, 50.0]
    assert flows.first() == TimePoint.year(2024)
    assert flows.last() == TimePoint.year(2029)
    # the total is derived, never stored twice
    assert list(flows.with_total()) == ["purchase", "income", TOTAL]


def test_collection_rejects_bad_items():
    flows = _investment()
    with pytest.raises(ValueError):
        flows.add(TOTAL, one_off("2030", 1.0))
    with pytest.raises(ValueError):
        flows.add("income", one_off("2030", 1.0))
    with pytest.raises(GranularityMismatchError):
        flows.add("monthly", one_off("2030-01", 1.0))


def test_collection_window_and_table():
    flows = _investment()
    clipped = flows.window("2025", "2026")
    assert clipped["purchase"].empty
    assert clipped.total().values() == [50.0, 50.0]
    assert len(flows["income"]) == 5

    table = flows.with_total().table("year")
    assert list(table.columns) == ["purchase", "income", TOTAL]
    assert table[TOTAL].sum() == pytest.approx(-750.0)


def test_collection_table_default_reducer_sums():
    flows = CashFlowCollection()
    flows.add("a", one_off("2024-01", -100.0))
    flows.add("b", recurring("2024-02", 3, 40.0))
    table = flows.table("year")
    assert table["a"].tolist() == [-100.0]
    assert table["b"].tolist() == [120.0]
    assert flows.table("quarter", "last")["b"].tolist() == [40.0, 40.0]


def test_collection_frame_uses_labels():
    frame = _investment().frame("omit")
    assert list(frame.columns) == ["purchase", "income"]
    assert math.isnan(frame["purchase"].iloc[-1])


def test_hold_period_sweep():
    flows = _investment()
    with pytest.warns(UserWarning, match="1/3"):
        out = hold_period_sweep(
            flows,
            ["2023", "2025", "2027"],
            lambda hold: {"exit.sale": 1_000.0},
            npv_rate=0.05,
        )
    assert out.index.name == "hold"
    assert list(out.columns) == ["irr", "npv"]
    assert math.isnan(out["irr"].iloc[0])
    assert out["irr"].iloc[1] == pytest.approx(0.05)
    assert out["irr"].iloc[2] == pytest.approx(0.05)
    assert out["npv"].iloc[2] == pytest.approx(0.0, abs=1e-9)


def test_hold_period_sweep_without_exit_flows():
    flows = CashFlowCollection({"a": Series(["2024", "2025", "2026"], [-100.0, 60.0, 60.0])})
    out = hold_period_sweep(flows, ["2026"])
    assert out["irr"].iloc[0] > 0.1
    assert math.isnan(out["npv"].iloc[0])
