import math

import pytest

from cashstream.errors import IndeterminateResult
from cashstream.finance.irr import irr, npv, solve_irr
from cashstream.finance.rates import annualize, apr_to_effective, effective_to_apr, periodic_rate
from cashstream.series import Series


def test_finance_irr_basic():
    # Simple 3-period stream with single sign change
    r = irr([-100.0, 60.0, 60.0])
    assert math.isfinite(r)
    assert r == pytest.approx((60 + math.sqrt(27_600)) / 200 - 1, abs=1e-9)
    assert solve_irr([-100.0, 60.0, 60.0]) == r
    assert npv(r, [-100.0, 60.0, 60.0]) == pytest.approx(0.0, abs=1e-9)


@pytest.mark.parametrize(
    "points, rate",
    [
        (["2024", "2029"], 0.08),
        (["2024Q1", "2026Q3"], 0.15),
        (["2024-01", "2024-10"], 0.05),
        (["2024-01-01", "2025-06-30"], 0.12),
    ],
)
def test_single_outflow_single_inflow(points, rate):
    start = Series([points[0]], [0.0])
    end = Series([points[1]], [0.0])
    years = end.first().periods_since(start.first()) / start.granularity.periods_per_year
    flow = Series(points, [-1_000.0, 1_000.0 * (1 + rate) ** years])

    assert irr(flow) == pytest.approx(rate, abs=1e-9)
    assert npv(rate, flow) == pytest.approx(0.0, abs=1e-6)


def test_degenerate_flows():
    assert irr([100.0, 200.0]) is None
    assert irr([-100.0, -1.0]) is None
    assert irr([-100.0]) is None
    assert irr([-100.0, float("nan"), 120.0]) is None
    assert irr([-100.0, 100.0]) == 0.0
    with pytest.raises(IndeterminateResult) as ei:
        solve_irr([0.0, 0.0])
    assert "sign" in ei.value.reason


def test_negative_rate_found_by_downward_search():
    r = irr([-100.0, 50.0, 40.0])
    assert r < 0
    assert npv(r, [-100.0, 50.0, 40.0]) == pytest.approx(0.0, abs=1e-9)


def test_borrower_side_flow():
    # inflow first, so the negative total points the wrong way
    r = irr([100.0, -60.0, -60.0])
    assert r == pytest.approx(irr([-100.0, 60.0, 60.0]), abs=1e-9)


def test_multiple_sign_changes_still_root():
    flows = [-100.0, 230.0, -132.0]
    r = irr(flows)
    assert r is not None
    assert npv(r, flows) == pytest.approx(0.0, abs=1e-6)


def test_periodic_sequence_is_annualized():
    monthly = irr([-1_000.0] + [90.0] * 12, frequency=12)
    per_period = irr([-1_000.0] + [90.0] * 12)
    assert monthly == pytest.approx(annualize(per_period, 12))


def test_standardized_rescales_short_flows():
    flow = Series(["2024-01", "2024-07"], [-100.0, 105.0])
    annual = irr(flow)
    assert annual == pytest.approx(1.05 ** 2 - 1)
    assert irr(flow, standardized=True) == pytest.approx(0.05)


def test_npv_rate_conventions():
    flow = Series(["2024-01", "2025-01"], [0.0, 100.0])
    assert npv(0.12, flow, apr=True) == pytest.approx(100.0 / (1.01 ** 12))
    assert npv(0.12, flow) == pytest.approx(100.0 / 1.12)
    assert npv(0.10, [-100.0, 0.0, 121.0]) == pytest.approx(0.0)
    assert npv(0.10, []) == 0.0
    with pytest.raises(ValueError):
        npv(0.10, flow, frequency=4)


def test_npv_apr_matches_equivalent_effective_rate():
    flow = Series(["2024-01", "2024-07", "2025-03", "2026-12"], [-500.0, 120.0, 200.0, 300.0])
    for r in (0.03, 0.07, 0.15):
        assert npv(r, flow, apr=True) == pytest.approx(npv(apr_to_effective(r, 12), flow))
        assert npv(effective_to_apr(r, 12), flow, apr=True) == pytest.approx(npv(r, flow))


def test_npv_as_of_drops_or_compounds_earlier_flows():
    flow = Series(["2024", "2026"], [100.0, 100.0])
    assert npv(0.10, flow, as_of="2025") == pytest.approx(100.0 / 1.1)
    assert npv(0.10, flow, as_of="2025", drop_before_as_of=False) == pytest.approx(
        100.0 * 1.1 + 100.0 / 1.1
    )
    late = Series(["2024"], [100.0])
    assert npv(0.10, late, as_of="2026", drop_before_as_of=False) == pytest.approx(121.0)


def test_apr_round_trip():
    for f in (1, 4, 12, 365):
        assert effective_to_apr(apr_to_effective(0.07, f), f) == pytest.approx(0.07)
    assert periodic_rate(0.07, 12, apr=True) == pytest.approx(0.07 / 12)
    assert annualize(periodic_rate(0.07, 12, apr=False), 12) == pytest.approx(0.07)
    with pytest.raises(ValueError):
        periodic_rate(0.07, 0, apr=True)
