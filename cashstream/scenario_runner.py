# cashstream/scenario_runner.py
from __future__ import annotations
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Dict, Any, Optional
import logging

import pandas as pd

from .config import _split_loan
from .errors import ConfigError
from .finance.aggregate import last_value, make_table
from .finance.cashflow import TOTAL, CashFlowCollection, hold_period_sweep, one_off, recurring
from .finance.debt import AmortizationSchedule, LoanTerms, amortize_terms
from .finance.metrics import summarize
from .series import Series
from .timepoint import Granularity, TimePoint
from .validate import load_params_from_file, mode_from_env_or_flag, validate_params_dict

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    name: str
    collection: CashFlowCollection
    table: pd.DataFrame
    summary: Dict[str, Any]
    schedule: Optional[AmortizationSchedule] = None
    sweep: Optional[pd.DataFrame] = None
    irr: Optional[float] = None
    npv: Optional[float] = None
    params: Dict[str, Any] = field(default_factory=dict)


def _point(value: Any) -> Any:
    # YAML reads `2024` as an int
    return str(value) if isinstance(value, int) and not isinstance(value, bool) else value


def build_item(label: str, spec: Dict[str, Any], granularity: Optional[Granularity] = None) -> Series:
    if "flows" in spec:
        flows = spec["flows"] or {}
        return Series.from_mapping(
            {_point(k): float(v) for k, v in flows.items()}, label, granularity=granularity
        )
    if "at" in spec:
        return one_off(_point(spec["at"]), float(spec["amount"]), label, granularity=granularity)
    if "start" in spec:
        return recurring(
            _point(spec["start"]),
            int(spec["periods"]),
            float(spec["amount"]),
            growth=float(spec.get("growth", 0.0)),
            growth_apr=bool(spec.get("growth_apr", False)),
            every=int(spec.get("every", 1)),
            name=label,
            granularity=granularity,
        )
    raise ConfigError(f"items.{label}: expected one of 'flows', 'at' or 'start'")


def build_items(items: Dict[str, Any], granularity: Optional[Granularity] = None) -> CashFlowCollection:
    """Item specs (label -> spec) to a collection; the first item fixes the granularity if none is given."""
    out = CashFlowCollection()
    g = granularity
    for label, spec in (items or {}).items():
        s = build_item(label, spec, g)
        g = g or s.granularity
        out.add(label, s)
    return out


def build_loan(
    loan: Dict[str, Any], collection: CashFlowCollection
) -> tuple[AmortizationSchedule, str, bool]:
    """
    Loan section -> schedule. Defaults: frequency follows the collection's
    granularity, start is the collection's first timepoint.
    """
    opts = dict(loan)
    prefix = str(opts.pop("prefix", "loan"))
    include_balance = bool(opts.pop("include_balance", False))
    g = collection.granularity
    if g is not None and "frequency" not in opts:
        opts["frequency"] = g.periods_per_year
    if "start" in opts or "start_date" in opts:
        key = "start" if "start" in opts else "start_date"
        opts[key] = _point(opts[key])
    elif g is not None and len(collection):
        opts["start"] = collection.first()
    terms = LoanTerms.from_mapping(opts)
    return amortize_terms(terms), prefix, include_balance


def exit_flows(
    hold: TimePoint,
    *,
    at: TimePoint,
    value: float,
    growth: float = 0.0,
    schedule: Optional[AmortizationSchedule] = None,
    prefix: str = "loan",
) -> Dict[str, float]:
    """Sale proceeds at `hold` (value grown from `at`) and the loan payoff, if any."""
    flows = {"exit.sale": value * (1.0 + growth) ** hold.years_since(at)}
    if schedule is not None:
        flows[f"{prefix}.payoff"] = -schedule.balance_at(hold)
    return flows


def run_scenario(params: Dict[str, Any], *, mode: Optional[str] = None) -> ScenarioResult:
    """
    Validate a scenario mapping and evaluate it:
    items (+ loan flows) -> window -> exit -> table, Total, IRR/NPV (+ hold sweep).
    """
    mode = mode_from_env_or_flag(mode)
    validate_params_dict(params, mode=mode)
    cfg, loan = _split_loan(dict(params))

    name = str(cfg.get("name", "scenario"))
    g = Granularity.parse(cfg["granularity"]) if cfg.get("granularity") else None
    collection = build_items(cfg.get("items") or {}, g)
    g = collection.granularity
    if g is None:
        raise ConfigError("scenario has no cash flows")

    schedule: Optional[AmortizationSchedule] = None
    prefix = "loan"
    include_balance = False
    if loan:
        schedule, prefix, include_balance = build_loan(loan, collection)
        collection.extend(schedule.cashflows(prefix))

    window = cfg.get("window") or {}
    if window:
        start = _point(window.get("start")) if window.get("start") is not None else None
        end = _point(window.get("end")) if window.get("end") is not None else None
        collection = collection.window(start, end)

    metrics = cfg.get("metrics") or {}
    npv_rate = metrics.get("npv_rate")
    npv_rate = float(npv_rate) if npv_rate is not None else None
    apr = bool(metrics.get("apr", False))
    standardized = bool(metrics.get("standardized", False))

    exit_cfg = cfg.get("exit") or {}
    flows_at = None
    if exit_cfg:
        exit_at = TimePoint.of(_point(exit_cfg.get("at")), g) if exit_cfg.get("at") is not None else collection.last()
        flows_at = partial(
            exit_flows,
            at=exit_at,
            value=float(exit_cfg.get("value", 0.0)),
            growth=float(exit_cfg.get("growth", 0.0)),
            schedule=schedule,
            prefix=prefix,
        )

    sweep = None
    hold_dates = metrics.get("hold_dates")
    if hold_dates:
        sweep = hold_period_sweep(
            collection,
            [_point(h) for h in hold_dates],
            flows_at,
            npv_rate=npv_rate,
            apr=apr,
            standardized=standardized,
        )

    if flows_at is not None:
        exit_at = flows_at.keywords["at"]
        collection = collection.window(end=exit_at)
        for label, amount in flows_at(exit_at).items():
            collection.add(label, one_off(exit_at, amount))

    collection = collection.with_total()
    flow = collection[TOTAL]

    table_g = metrics.get("table_granularity", "year")
    table_items: Dict[str, Series] = dict(collection.items())
    reducers: Dict[str, Any] = {}
    if schedule is not None and include_balance:
        label = f"{prefix}.balance"
        table_items[label] = schedule.balance.window(end=flow.last()).rename(label)
        reducers[label] = last_value
    table = make_table(table_items, table_g, reducers)

    summary = summarize(flow, npv_rate=npv_rate, apr=apr, standardized=standardized)
    summary["name"] = name
    summary["granularity"] = g.value
    logger.debug("run_scenario %s: irr=%s npv=%s", name, summary["irr"], summary["npv"])

    return ScenarioResult(
        name=name,
        collection=collection,
        table=table,
        summary=summary,
        schedule=schedule,
        sweep=sweep,
        irr=summary["irr"],
        npv=summary["npv"],
        params=dict(params),
    )


def run_file(path: str | Path, *, mode: Optional[str] = None) -> ScenarioResult:
    return run_scenario(load_params_from_file(Path(path)), mode=mode)


def run_dir(dir_path: str | Path, pattern: str = "*.y*ml", *, mode: Optional[str] = None) -> Dict[str, ScenarioResult]:
    d = Path(dir_path)
    results: Dict[str, ScenarioResult] = {}
    for f in sorted(d.glob(pattern)):
        if f.is_file():
            results[f.name] = run_file(f, mode=mode)
    if not results:
        raise ConfigError(f"{d}: no scenario files found")
    return results


__all__ = [
    "ScenarioResult",
    "build_item",
    "build_items",
    "build_loan",
    "exit_flows",
    "run_scenario",
    "run_file",
    "run_dir",
]
