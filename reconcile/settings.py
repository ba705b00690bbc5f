# reconcile/settings.py
"""
Heuristic thresholds for the reconciliation pipeline.

Every threshold is a named constant with a frozen rules dataclass on top, so
tests can pin the defaults and config.toml can tune them without touching the
matching logic.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

# ---------- dates ----------
RAW_PARSE_CONFIDENCE = 0.5
CORRECTED_PARSE_CONFIDENCE = 0.7
PLAUSIBILITY_ADJUSTMENT = 0.2
TIMESTAMP_PENALTY = 0.1
MAX_DATE_CONFIDENCE = 0.9
MIN_VALID_DATE_CONFIDENCE = 0.3
MAX_PAST_YEARS = 1
MAX_FUTURE_MONTHS = 1
TIMESTAMP_WINDOW_DAYS = 30

# ---------- completeness ----------
SUBTOTAL_ABS_TOLERANCE = 0.05
SUBTOTAL_REL_TOLERANCE = 0.01

# ---------- duplicates ----------
AMOUNT_REL_TOLERANCE = 0.01
NEARBY_DATE_DAYS = 1
PLACE_TOKEN_OVERLAP = 0.3

# ---------- result quality ----------
LOW_CONFIDENCE_LINE_ITEM = 0.6


@dataclass(frozen=True)
class DateRules:
    raw_confidence: float = RAW_PARSE_CONFIDENCE
    corrected_confidence: float = CORRECTED_PARSE_CONFIDENCE
    plausibility_adjustment: float = PLAUSIBILITY_ADJUSTMENT
    timestamp_penalty: float = TIMESTAMP_PENALTY
    max_confidence: float = MAX_DATE_CONFIDENCE
    min_valid_confidence: float = MIN_VALID_DATE_CONFIDENCE
    max_past_years: int = MAX_PAST_YEARS
    max_future_months: int = MAX_FUTURE_MONTHS
    timestamp_window_days: int = TIMESTAMP_WINDOW_DAYS


@dataclass(frozen=True)
class CompletenessRules:
    subtotal_abs_tolerance: float = SUBTOTAL_ABS_TOLERANCE
    subtotal_rel_tolerance: float = SUBTOTAL_REL_TOLERANCE


@dataclass(frozen=True)
class DuplicateRules:
    amount_rel_tolerance: float = AMOUNT_REL_TOLERANCE
    nearby_date_days: int = NEARBY_DATE_DAYS
    place_token_overlap: float = PLACE_TOKEN_OVERLAP


@dataclass(frozen=True)
class Rules:
    dates: DateRules = DateRules()
    completeness: CompletenessRules = CompletenessRules()
    duplicates: DuplicateRules = DuplicateRules()


def _build(cls, table: Optional[Mapping[str, Any]]):
    if not table:
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(table) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} setting(s): {', '.join(sorted(unknown))}")
    return cls(**dict(table))


def load_rules(cfg: Optional[Dict[str, Any]] = None) -> Rules:
    """
    Build Rules from a loaded config dict ([dates], [completeness], [duplicates]
    tables). Missing tables fall back to the module defaults.
    """
    cfg = cfg or {}
    return Rules(
        dates=_build(DateRules, cfg.get("dates")),
        completeness=_build(CompletenessRules, cfg.get("completeness")),
        duplicates=_build(DuplicateRules, cfg.get("duplicates")),
    )
