"""
Finance metrics façade.

Design:
- IRR/NPV implementations live only in cashstream.finance.irr (singleton).
- This module must not *define* irr/npv (no 'def irr' / 'def npv' here).
- It re-exports them and adds the summary used by the scenario runner.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from .irr import irr as irr, npv as npv, solve_irr as solve_irr  # re-exports
from cashstream.series import Series


def summarize(
    flow: Series,
    *,
    npv_rate: Optional[float] = None,
    apr: bool = False,
    as_of: Any = None,
    standardized: bool = False,
) -> Dict[str, Any]:
    """Scalar metrics of a total cash-flow series; an indeterminate IRR stays None."""
    values = flow.values()
    outflows = -sum(v for v in values if v < 0)
    inflows = sum(v for v in values if v > 0)
    return {
        "irr": irr(flow, standardized=standardized),
        "npv": npv(npv_rate, flow, apr=apr, as_of=as_of) if npv_rate is not None else None,
        "npv_rate": npv_rate,
        "net": inflows - outflows,
        "inflows": inflows,
        "outflows": outflows,
        "multiple": (inflows / outflows) if outflows > 0 else None,
        "first": str(flow.first()) if not flow.empty else None,
        "last": str(flow.last()) if not flow.empty else None,
    }


__all__ = ["npv", "irr", "solve_irr", "summarize"]
