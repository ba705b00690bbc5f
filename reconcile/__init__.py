"""
Receipt reconciliation: date repair, completeness, page merging and
duplicate detection. Every function here is pure and synchronous.
"""

from .completeness import calculate_line_items_subtotal, detect_partial, is_complete
from .dates import validate_date
from .duplicates import check_for_receipt_duplicates, detect_duplicates
from .merger import merge_pages

__all__ = [
    "calculate_line_items_subtotal",
    "check_for_receipt_duplicates",
    "detect_duplicates",
    "detect_partial",
    "is_complete",
    "merge_pages",
    "validate_date",
]
