# cashstream/validate.py
from __future__ import annotations
import os, json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import parse_scenario_text
from .errors import ConfigError
from .schema import (
    ALLOWED_KEYS,
    COMPOSITE_CONSTRAINTS,
    EXIT_SCHEMA,
    ITEM_KEYS,
    LOAN_SCHEMA,
    METRICS_SCHEMA,
    REQUIRED_KEYS,
    STRICT_REQUIRED_KEYS,
)


def mode_from_env_or_flag(flag: Optional[str]) -> str:
    if flag in ("strict", "relaxed"):
        return flag
    env = (os.environ.get("VALIDATION_MODE") or "").lower()
    return env if env in ("strict", "relaxed") else "relaxed"


def _within(x: float, lo: float, hi: float) -> bool:
    return (x >= lo) and (x <= hi)


def _check_bounds(d: Dict[str, Any], schema: Dict[str, Dict[str, Any]], where: str) -> None:
    for k, bounds in schema.items():
        v = d.get(k)
        if v is None:
            continue
        try:
            x = float(v)
        except (TypeError, ValueError):
            raise ConfigError(f"{where}.{k} must be a number, got {v!r}") from None
        lo = float(bounds.get("min", float("-inf")))
        hi = float(bounds.get("max", float("inf")))
        if not _within(x, lo, hi):
            raise ConfigError(f"{where}.{k} outside allowed range [{lo}, {hi}]: {x}")


def _item_kind(label: str, spec: Dict[str, Any]) -> str:
    if "flows" in spec:
        return "explicit"
    if "at" in spec:
        return "one_off"
    if "start" in spec:
        return "recurring"
    raise ConfigError(f"items.{label}: expected one of 'flows', 'at' or 'start'")


def validate_items(items: Dict[str, Any], *, mode: str = "relaxed") -> Dict[str, str]:
    """Check each item spec; returns label -> kind."""
    kinds: Dict[str, str] = {}
    for label, spec in (items or {}).items():
        if not isinstance(spec, dict):
            raise ConfigError(f"items.{label} must be a mapping, got {type(spec).__name__}")
        kind = _item_kind(label, spec)
        if kind in ("one_off", "recurring") and "amount" not in spec:
            raise ConfigError(f"items.{label}: 'amount' is required")
        if kind == "recurring" and "periods" not in spec:
            raise ConfigError(f"items.{label}: 'periods' is required")
        if mode == "strict":
            unknown = sorted(set(spec) - ITEM_KEYS[kind])
            if unknown:
                raise ConfigError(f"items.{label}: unknown keys (strict mode): {unknown}")
        kinds[label] = kind
    return kinds


def validate_loan_dict(loan: Dict[str, Any]) -> None:
    if not loan:
        return
    _check_bounds(loan, LOAN_SCHEMA, "loan")
    for c in COMPOSITE_CONSTRAINTS:
        if not c["check"](loan):
            raise ConfigError(c["message"])


def validate_params_dict(data: Dict[str, Any], *, mode: str = "relaxed") -> None:
    """
    Guardrails:
      - relaxed: require {items}
      - strict : require {items, granularity}; reject unknown top-level and item keys
    """
    required = STRICT_REQUIRED_KEYS if mode == "strict" else REQUIRED_KEYS
    missing = sorted(k for k in required if k not in data)
    if missing:
        raise ConfigError(f"missing required keys: {missing}")

    if mode == "strict":
        unknown = sorted(k for k in data.keys() if k not in ALLOWED_KEYS)
        if unknown:
            raise ConfigError(f"unknown top-level keys (strict mode): {unknown}")

    validate_items(data.get("items") or {}, mode=mode)
    validate_loan_dict(data.get("loan") or {})
    _check_bounds(data.get("metrics") or {}, METRICS_SCHEMA, "metrics")
    _check_bounds(data.get("exit") or {}, EXIT_SCHEMA, "exit")


def load_params_from_file(path: Path) -> Dict[str, Any]:
    p = Path(path)
    if p.is_dir():
        raise ConfigError(f"{p} is a directory (expected a file)")
    text = p.read_text(encoding="utf-8")
    if p.suffix.lower() in (".yaml", ".yml"):
        return parse_scenario_text(text)
    try:
        data = json.loads(text or "{}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"{p}: invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: scenario must be a mapping at top level")
    return data


def validation_errors(data: Dict[str, Any], *, mode: str = "relaxed") -> List[str]:
    """Collect instead of raise; empty list means valid."""
    try:
        validate_params_dict(data, mode=mode)
        return []
    except ConfigError as e:
        return [str(e)]
