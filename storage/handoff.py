# storage/handoff.py
"""
Hand-off from the reconciliation pipeline to the persistence layer.

The expense row is a flat set of scalars; line items travel separately,
keyed by the expense id the persistence layer assigns after insert.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from rr_core.models import ExtractionRecord
from rr_utils.normalizers import amount_value

DEFAULT_DESCRIPTION = "Purchase"


def expense_fields(
    record: ExtractionRecord,
    family_id: str,
    *,
    category: Optional[str] = None,
    receipt_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Flat scalar values for creating one expense from a (merged) record."""
    tax = record.tax.value if record.tax else None
    return {
        "family_id": family_id,
        "amount": record.grand_total(),
        "date": record.date.isoformat() if record.date else None,
        "description": record.description or DEFAULT_DESCRIPTION,
        "place": record.place or "",
        "category": category,
        "tax_amount": tax,
        "payment_method": record.payment_method.type if record.payment_method else None,
        "transaction_id": record.receipt_number.value if record.receipt_number else None,
        "currency": record.currency,
        "receipt_url": receipt_url,
        "ocr_confidence": record.confidence,
    }


def line_item_rows(record: ExtractionRecord, expense_id: str) -> List[Dict[str, Any]]:
    """Ordered line-item rows for the freshly inserted expense."""
    rows = []
    for i, item in enumerate(record.line_items):
        rows.append(
            {
                "expense_id": expense_id,
                "line_number": i + 1,
                "description": item.description,
                "quantity": item.quantity,
                "unit_price": amount_value(item.unit_price),
                "total_price": amount_value(item.total_price),
                "confidence": item.confidence,
            }
        )
    return rows
