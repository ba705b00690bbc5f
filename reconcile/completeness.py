# reconcile/completeness.py
"""
Page-local judgment: is this scan a whole receipt or only a section of one?

Long receipts are often scanned in pieces: the top shows the header and items
without a grand total, the bottom shows the total without the header. The
capture flow uses the result to decide whether to ask for the next section.
Nothing here looks at other pages; combining pages is the merger's job.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from rr_core.models import ExtractionRecord, LineItem
from rr_utils.normalizers import amount_value
from reconcile.settings import CompletenessRules

log = logging.getLogger(__name__)

REASON_NO_TOTAL = (
    "Line items were found but no final total - likely only part of the receipt."
)
REASON_NOTHING_READ = (
    "Nothing usable was read from this page - try rescanning or continuing to the next section."
)
WARNING_TOTAL_BELOW_ITEMS = (
    "The total ({total:.2f}) is less than the sum of the line items ({items:.2f}) - "
    "some amounts may have been misread."
)


@dataclass
class PartialDetection:
    is_partial: bool
    reason: Optional[str] = None
    warning: Optional[str] = None
    missing_header: bool = False
    missing_footer: bool = False


def calculate_line_items_subtotal(line_items: Iterable[LineItem]) -> float:
    """Sum of total_price across line items; unreadable prices count as 0."""
    total = 0.0
    for item in line_items or []:
        v = amount_value(item.total_price)
        if v is not None:
            total += v
    return round(total, 2)


def _has_usable_total(extraction: ExtractionRecord) -> bool:
    gt = extraction.grand_total()
    return gt is not None and gt > 0


def _has_merchant(extraction: ExtractionRecord) -> bool:
    store = extraction.store_details
    return bool((extraction.place or "").strip() or (store and (store.name or "").strip()))


def detect_partial(
    extraction: ExtractionRecord, rules: Optional[CompletenessRules] = None
) -> PartialDetection:
    rules = rules or CompletenessRules()
    has_items = bool(extraction.line_items)
    has_total = _has_usable_total(extraction)
    missing_header = not _has_merchant(extraction)

    # 1. items but no grand total: top or middle section
    if has_items and not has_total:
        log.debug("Partial page: %d line items, no total", len(extraction.line_items))
        return PartialDetection(
            is_partial=True,
            reason=REASON_NO_TOTAL,
            missing_header=missing_header,
            missing_footer=True,
        )

    # 2. items and a total: complete, but flag a total that undercuts the items
    if has_items and has_total:
        total = extraction.grand_total() or 0.0
        items = calculate_line_items_subtotal(extraction.line_items)
        tolerance = max(rules.subtotal_abs_tolerance, items * rules.subtotal_rel_tolerance)
        warning = None
        if items - total > tolerance:
            warning = WARNING_TOTAL_BELOW_ITEMS.format(total=total, items=items)
            log.debug("Total %.2f below line items %.2f", total, items)
        return PartialDetection(is_partial=False, warning=warning, missing_header=missing_header)

    # 3. neither total nor items
    if not has_total:
        return PartialDetection(
            is_partial=True,
            reason=REASON_NOTHING_READ,
            missing_header=missing_header,
            missing_footer=True,
        )

    # 4. total without items
    return PartialDetection(is_partial=False, missing_header=missing_header)


def is_complete(extraction: ExtractionRecord) -> bool:
    """True when the record carries a usable grand total (drives "Finalize")."""
    return _has_usable_total(extraction)


def partial_guidance(
    extraction: ExtractionRecord, rules: Optional[CompletenessRules] = None
) -> Optional[str]:
    """User-facing hint naming what to scan next, or None for a complete page."""
    detection = detect_partial(extraction, rules)
    if not detection.is_partial:
        return None

    missing = []
    if detection.missing_header:
        missing.append("store name")
    if detection.missing_footer:
        missing.append("final total")
    where = "bottom" if detection.missing_footer else "top"
    return (
        f"Missing: {' and '.join(missing)}. "
        f"Scan the {where} of the receipt to capture the complete information."
    )
