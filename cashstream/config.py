from __future__ import annotations

from typing import Any, Dict, Tuple
import os
import io
import yaml

from .errors import ConfigError

# Sections that stay nested; everything else is a top-level scalar.
_SECTIONS = ("items", "loan", "metrics", "exit")


def _normalize_keys(d: Dict[Any, Any]) -> Dict[str, Any]:
    """
    YAML turns `2024:` into an int and `2024-01-31:` into a date; item flow
    maps are keyed by timepoints, so stringify keys that are not already str.
    """
    out: Dict[str, Any] = {}
    for k, v in d.items():
        out[k if isinstance(k, str) else str(k)] = _normalize_keys(v) if isinstance(v, dict) else v
    return out


def _split_loan(cfg: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    loan = cfg.pop("loan", {}) if isinstance(cfg, dict) else {}
    if loan is None:
        loan = {}
    if not isinstance(loan, dict):
        raise ConfigError(f"'loan' must be a mapping, got {type(loan).__name__}")
    return cfg, loan


def parse_scenario_text(text: str) -> Dict[str, Any]:
    try:
        cfg = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML: {e}") from e
    if not isinstance(cfg, dict):
        raise ConfigError(f"scenario must be a mapping at top level, got {type(cfg).__name__}")
    cfg = _normalize_keys(cfg)
    for section in _SECTIONS:
        value = cfg.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(f"'{section}' must be a mapping, got {type(value).__name__}")
    return cfg


def load_scenario_config(
    source: str | os.PathLike | io.StringIO,
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Load a scenario from a path or text stream.
    Returns (scenario_config, loan_section); the loan section is {} when absent.
    """
    text: str
    if hasattr(source, "read"):
        text = str(source.read())
    else:
        p = os.fspath(source)
        with open(p, "r", encoding="utf-8") as f:
            text = f.read()

    return _split_loan(parse_scenario_text(text))
