from __future__ import annotations
from typing import Dict, Any

# Scalar bounds: units, type, min/max ranges, and description.
LOAN_SCHEMA: Dict[str, Dict[str, Any]] = {
    "rate":            {"unit": "rate/yr",  "type": "float", "min": -0.99, "max": 5.0,   "desc": "Annual rate (APR or effective, per 'apr')"},
    "initial_balance": {"unit": "currency", "type": "float", "min": 0.0,   "max": 1e12,  "desc": "Amount borrowed"},
    "payment":         {"unit": "currency", "type": "float", "min": 0.0,   "max": 1e12,  "desc": "Level payment per period"},
    "term":            {"unit": "periods",  "type": "int",   "min": 1,     "max": 36500, "desc": "Number of payments"},
    "frequency":       {"unit": "1/yr",     "type": "int",   "min": 1,     "max": 365,   "desc": "Payments per year (1, 4, 12 or 365)"},
}

METRICS_SCHEMA: Dict[str, Dict[str, Any]] = {
    "npv_rate": {"unit": "rate/yr", "type": "float", "min": -0.99, "max": 10.0, "desc": "NPV discount rate"},
}

EXIT_SCHEMA: Dict[str, Dict[str, Any]] = {
    "value":  {"unit": "currency", "type": "float", "min": 0.0,   "max": 1e12, "desc": "Exit (sale) value at the first hold date"},
    "growth": {"unit": "rate/yr",  "type": "float", "min": -0.99, "max": 5.0,  "desc": "Annual appreciation of the exit value"},
}

# Top-level keys
REQUIRED_KEYS = {"items"}
STRICT_REQUIRED_KEYS = {"items", "granularity"}
ALLOWED_KEYS = {"name", "granularity", "window", "items", "loan", "metrics", "exit"}

ALLOWED_FREQUENCIES = (1, 4, 12, 365)

# Recognized keys per item kind
ITEM_KEYS = {
    "one_off":   {"at", "amount"},
    "recurring": {"start", "periods", "amount", "growth", "growth_apr", "every"},
    "explicit":  {"flows"},
}

# Composite constraints evaluated after scalar checks.
COMPOSITE_CONSTRAINTS = [
    {
        "name": "loan_frequency",
        "check": lambda loan: int(loan.get("frequency", 12)) in ALLOWED_FREQUENCIES,
        "message": "loan.frequency must be one of 1, 4, 12, 365",
    },
]
