# storage/loaders.py
"""
Read extraction records and expense history from JSON or YAML files.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, List

import yaml

from rr_core.models import Expense, ExtractionRecord

YAML_EXTS = {".yaml", ".yml"}


def read_data(path: Path) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        if path.suffix.lower() in YAML_EXTS:
            try:
                return yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid YAML in {path}: {e}") from e
        return json.load(f)


def load_record(path: Path) -> ExtractionRecord:
    data = read_data(path)
    if not isinstance(data, dict):
        raise ValueError(f"Expected one extraction record object in {path}")
    return ExtractionRecord.from_dict(data)


def load_expenses(path: Path) -> List[Expense]:
    """
    Expense history: a list of expense objects, or {"expenses": [...]}.
    """
    data = read_data(path)
    if isinstance(data, dict):
        data = data.get("expenses") or []
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of expenses in {path}")
    return [Expense.from_dict(d) for d in data]
