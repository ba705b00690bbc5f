"""
Storage boundary for the receipt reconciler.

The pipeline never persists anything itself: it loads inputs from files and
hands the final record to the persistence layer as flat rows.
"""

from .handoff import expense_fields, line_item_rows
from .loaders import load_expenses, load_record, read_data

__all__ = [
    "expense_fields",
    "line_item_rows",
    "load_expenses",
    "load_record",
    "read_data",
]
