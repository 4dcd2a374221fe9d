import math
from pathlib import Path

import pytest

from cashstream.errors import ConfigError, GranularityMismatchError, ParameterCountError
from cashstream.finance.cashflow import TOTAL
from cashstream.scenario_runner import build_items, exit_flows, run_dir, run_file, run_scenario
from cashstream.timepoint import Granularity, TimePoint

RENTAL_CFG = """\
name: rental
granularity: month
items:
  purchase: { at: 2024-01, amount: -12000 }
  rent: { start: 2024-02, periods: 36, amount: 400 }
  repairs:
    flows: { 2025-06: -300, 2026-06: -300 }
loan:
  rate: 0.07
  initial_balance: 8000
  term: 48
  include_balance: true
metrics:
  npv_rate: 0.08
  table_granularity: year
  hold_dates: [2025-01, 2026-01, 2027-01]
exit:
  at: 2027-01
  value: 13000
  growth: 0.02
"""

YEARLY_CFG = """\
items:
  capex: { at: 2024, amount: -100 }
  sales:
    flows: { 2025: 60, 2026: 60 }
"""


def _write(p: Path, name: str, text: str) -> Path:
    f = p / name
    f.write_text(text, encoding="utf-8")
    return f


def test_run_file_full_scenario(tmp_path: Path):
    res = run_file(_write(tmp_path, "rental.yaml", RENTAL_CFG))
    assert res.name == "rental"
    assert res.schedule is not None and res.schedule.periods == 48

    flows = res.collection
    assert flows.granularity is Granularity.MONTH
    for label in ("purchase", "rent", "repairs", "loan.draw", "loan.interest", "loan.principal",
                  "exit.sale", "loan.payoff", TOTAL):
        assert label in flows
    # nothing survives past the exit
    assert flows[TOTAL].last() == TimePoint.month(2027, 1)
    assert flows["loan.payoff"]["2027-01"] == pytest.approx(-res.schedule.balance["2027-01"])
    assert flows["exit.sale"]["2027-01"] == pytest.approx(13000.0)

    assert res.irr is not None and res.irr > 0
    assert isinstance(res.npv, float)
    assert res.summary["granularity"] == "month"
    assert res.summary["first"] == "2024-01"
    # headline metrics are plain fields copied from the summary
    assert (res.irr, res.npv) == (res.summary["irr"], res.summary["npv"])


def test_run_file_table_and_sweep(tmp_path: Path):
    res = run_file(_write(tmp_path, "rental.yml", RENTAL_CFG))
    table = res.table
    assert [str(p) for p in table.index] == ["2024", "2025", "2026", "2027"]
    assert table[TOTAL].sum() == pytest.approx(res.collection[TOTAL].total())
    assert table["loan.balance"].iloc[-1] == pytest.approx(res.schedule.balance["2027-01"])
    assert table["loan.balance"].iloc[0] == pytest.approx(res.schedule.balance["2024-12"])

    sweep = res.sweep
    assert len(sweep) == 3
    assert sweep["irr"].notna().all()
    # holding to the configured exit date reproduces the headline IRR
    assert sweep["irr"].iloc[-1] == pytest.approx(res.irr)


def test_yaml_years_and_ints_become_timepoints(tmp_path: Path):
    res = run_file(_write(tmp_path, "yearly.yaml", YEARLY_CFG))
    assert res.collection.granularity is Granularity.YEAR
    assert res.irr == pytest.approx((60 + math.sqrt(27_600)) / 200 - 1, abs=1e-9)
    assert res.npv is None
    assert res.schedule is None


def test_window_clips_every_item():
    params = {
        "granularity": "month",
        "window": {"start": "2024-03", "end": "2024-06"},
        "items": {"fee": {"start": "2024-01", "periods": 12, "amount": -10}},
    }
    res = run_scenario(params)
    assert len(res.collection["fee"]) == 4
    assert res.collection[TOTAL].total() == pytest.approx(-40.0)
    assert res.irr is None


def test_strict_mode_from_env(tmp_path: Path, monkeypatch):
    cfg = _write(tmp_path, "yearly.yaml", YEARLY_CFG)
    monkeypatch.setenv("VALIDATION_MODE", "strict")
    with pytest.raises(ConfigError, match="missing required keys"):
        run_file(cfg)
    # explicit flag wins over the environment
    assert run_file(cfg, mode="relaxed").irr is not None


def test_strict_mode_rejects_unknown_item_keys():
    params = {"granularity": "year", "items": {"x": {"at": "2024", "amount": 1, "note": "?"}}}
    assert run_scenario(params).summary["net"] == 1.0
    with pytest.raises(ConfigError, match="unknown keys"):
        run_scenario(params, mode="strict")


def test_loan_errors_propagate():
    params = {"items": {"x": {"at": "2024-01", "amount": -1}}, "loan": {"rate": 0.05, "term": 12}}
    with pytest.raises(ParameterCountError):
        run_scenario(params)

    params["loan"] = {"rate": 0.05, "initial_balance": 100, "term": 4, "frequency": 4}
    with pytest.raises(GranularityMismatchError):
        run_scenario(params)

    params["loan"] = {"rate": 9.0, "initial_balance": 100, "term": 12}
    with pytest.raises(ConfigError, match="outside allowed range"):
        run_scenario(params)


def test_build_items_and_exit_flows_helpers():
    flows = build_items({"a": {"at": "2024-01-31", "amount": 5}}, Granularity.MONTH)
    assert flows["a"].first() == TimePoint.month(2024, 1)

    out = exit_flows(TimePoint.year(2026), at=TimePoint.year(2024), value=100.0, growth=0.1)
    assert out == pytest.approx({"exit.sale": 121.0})


def test_run_dir(tmp_path: Path):
    _write(tmp_path, "a.yaml", YEARLY_CFG)
    _write(tmp_path, "b.yaml", RENTAL_CFG)
    results = run_dir(tmp_path)
    assert sorted(results) == ["a.yaml", "b.yaml"]
    with pytest.raises(ConfigError):
        run_dir(tmp_path / "nothing-here")


def test_empty_items_rejected():
    with pytest.raises(ConfigError):
        run_scenario({"items": {}})
