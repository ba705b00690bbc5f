# reconcile/merger.py
"""
Fold the pages of one physical receipt into a single ExtractionRecord.

The result has exactly the shape of a single-page capture, so downstream code
never needs to know whether a record was merged.
"""
from __future__ import annotations

import copy
import logging
from statistics import fmean
from typing import List, Optional, Sequence

from rr_core.models import ConfidenceSummary, ExtractionRecord, LineItem, ReceiptPage
from reconcile.completeness import calculate_line_items_subtotal
from reconcile.pick import pick_fields

log = logging.getLogger(__name__)

SCALAR_FIELDS = ("amount", "description", "place", "date")
TOTALS_FIELDS = (
    "subtotal",
    "tax",
    "discount",
    "total",
    "payment_method",
    "store_details",
    "receipt_number",
    "transaction_time",
    "currency",
)


def check_page_order(pages: Sequence[ReceiptPage]) -> None:
    """
    Pages must be non-empty and strictly ascending by page_number. They are
    never re-sorted here: a capture-order bug must not attach a total to the
    wrong section.
    """
    if not pages:
        raise ValueError("No pages to merge")
    for prev, cur in zip(pages, pages[1:]):
        if cur.page_number <= prev.page_number:
            raise ValueError(
                f"Pages out of capture order: page {cur.page_number} follows page {prev.page_number}"
            )


def _merge_summaries(records: Sequence[ExtractionRecord]) -> Optional[ConfidenceSummary]:
    summaries = [r.confidence_summary for r in records if r.confidence_summary]
    if not summaries:
        return None
    return ConfidenceSummary(
        overall=round(fmean(s.overall for s in summaries), 4),
        line_items=round(fmean(s.line_items for s in summaries), 4),
        total=round(fmean(s.total for s in summaries), 4),
        date=round(fmean(s.date for s in summaries), 4),
        merchant=round(fmean(s.merchant for s in summaries), 4),
    )


def merge_pages(pages: Sequence[ReceiptPage]) -> ExtractionRecord:
    """
    Merge pages (ordered by page_number) into one record:
      - line items concatenated in page order, never de-duplicated
      - amount/description/place/date and the totals family picked per field
        from the most confident page that has them
      - confidence = mean of the page confidences
      - error kept (first page's) only when every page failed
    """
    check_page_order(pages)
    records = [p.extraction for p in pages]

    line_items: List[LineItem] = []
    for rec in records:
        line_items.extend(copy.deepcopy(rec.line_items))

    # copies: correcting the merged record must not rewrite the captured pages
    picked = copy.deepcopy(pick_fields(SCALAR_FIELDS + TOTALS_FIELDS, records))

    error = error_type = None
    if all(r.error for r in records):
        error, error_type = records[0].error, records[0].error_type

    warnings: List[str] = []
    for rec in records:
        for w in rec.warnings:
            if w not in warnings:
                warnings.append(w)

    merged = ExtractionRecord(
        line_items=line_items,
        confidence=round(fmean(r.confidence for r in records), 4),
        confidence_summary=_merge_summaries(records),
        error=error,
        error_type=error_type,
        warnings=warnings,
        **picked,
    )

    log.info(
        "Merged %d receipt page(s): %d line item(s), total=%s, items sum=%.2f",
        len(pages),
        len(line_items),
        merged.amount,
        calculate_line_items_subtotal(line_items),
    )
    return merged
