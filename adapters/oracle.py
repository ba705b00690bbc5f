# adapters/oracle.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from adapters.base import BaseAdapter, Timestamp
from rr_core.models import (
    ConfidenceSummary,
    ExtractionRecord,
    LineItem,
    MoneyField,
    PaymentMethod,
    StoreDetails,
    TextField,
)
from reconcile.dates import validate_date
from reconcile.settings import DateRules

log = logging.getLogger(__name__)

ERROR_TYPES = {
    "UPLOAD_ERROR",
    "SERVER_ERROR",
    "OCR_CONFIDENCE_LOW",
    "IMAGE_FORMAT_ERROR",
    "FETCH_ERROR",
}
FAILED_CONFIDENCE = 0.1
DEFAULT_CONFIDENCE = 0.5


def _value(node: Any, key: str = "value") -> Optional[str]:
    """{value, confidence} objects and bare scalars both yield the value."""
    if node is None:
        return None
    if isinstance(node, dict):
        v = node.get(key)
        return None if v is None or v == "" else str(v)
    return str(node) if node != "" else None


def _confidence(node: Any) -> float:
    if isinstance(node, dict):
        return float(node.get("confidence") or 0.0)
    return 0.0


def _money(node: Any) -> Optional[MoneyField]:
    amount = _value(node, "amount")
    if amount is None:
        return None
    return MoneyField(
        amount=amount,
        confidence=_confidence(node),
        rate=_value(node, "rate"),
        description=_value(node, "description"),
    )


def _text(node: Any) -> Optional[TextField]:
    value = _value(node)
    return TextField(value=value, confidence=_confidence(node)) if value else None


def _line_items(raw: List[Dict[str, Any]]) -> List[LineItem]:
    items = []
    for i in raw or []:
        total = i.get("totalPrice", i.get("total_amount"))
        unit = i.get("unitPrice", i.get("unit_price"))
        items.append(
            LineItem(
                description=str(i.get("description") or "").strip(),
                quantity=i.get("quantity"),
                unit_price=None if unit is None else str(unit),
                total_price=None if total is None else str(total),
                confidence=float(i.get("confidence") or 0.0),
            )
        )
    return items


class OracleAdapter(BaseAdapter):
    """
    Maps the OCR oracle's response (value/confidence objects per field, plus a
    confidence_summary) onto an ExtractionRecord and validates the raw date.

    Oracle failures never raise: they come back as a record with `error` set
    so the form can still be filled in by hand.
    """

    def __init__(self, date_rules: Optional[DateRules] = None):
        self.date_rules = date_rules or DateRules()

    def build(
        self,
        payload: Dict[str, Any],
        *,
        capture_timestamp: Timestamp = None,
        today: Optional[date] = None,
    ) -> ExtractionRecord:
        if not payload:
            return self.from_error("SERVER_ERROR", "We couldn't process your receipt")

        store_node = payload.get("storeDetails") or {}
        supplier = _value(payload.get("supplier"))
        line_items = _line_items(payload.get("lineItems") or payload.get("line_items") or [])

        store = None
        if store_node:
            store = StoreDetails(
                name=_value(store_node, "name"),
                address=_value(store_node, "address"),
                phone=_value(store_node, "phone"),
                website=_value(store_node, "website"),
                confidence=_confidence(store_node),
            )

        pay_node = payload.get("paymentMethod")
        payment = None
        if isinstance(pay_node, dict) and pay_node.get("type"):
            payment = PaymentMethod(
                type=str(pay_node["type"]),
                last_digits=_value(pay_node, "lastDigits"),
                confidence=_confidence(pay_node),
            )

        summary_node = payload.get("confidence_summary")
        summary = None
        if summary_node:
            summary = ConfidenceSummary(
                overall=float(summary_node.get("overall") or 0.0),
                line_items=float(summary_node.get("line_items") or 0.0),
                total=float(summary_node.get("total") or 0.0),
                date=float(summary_node.get("date") or 0.0),
                merchant=float(summary_node.get("merchant") or 0.0),
            )

        total = _money(payload.get("total"))
        amount = _value(payload.get("amount")) or (total.amount if total else None)

        first_item = line_items[0].description if line_items else None
        # None without source text; the expense hand-off applies the default label
        description = (store.name if store else None) or supplier or first_item
        place = (store.address if store else None) or supplier

        # a reported 0.0 is a real (very low) confidence, not a missing one
        confidence = payload.get("confidence")
        if confidence is None and summary is not None:
            confidence = summary.overall
        if confidence is None:
            confidence = DEFAULT_CONFIDENCE

        warnings: List[str] = []
        validation = validate_date(
            _value(payload.get("date")),
            capture_timestamp,
            today=today,
            rules=self.date_rules,
        )
        # implausible dates are kept (flagged) so the user can confirm them
        if validation.notes:
            warnings.extend(validation.notes)

        error = payload.get("error")
        error_type = payload.get("type") if error else None
        if error:
            log.warning("Oracle returned error %s: %s", error_type or "SERVER_ERROR", error)

        return ExtractionRecord(
            amount=amount,
            date=validation.corrected_date,
            description=description,
            place=place,
            line_items=line_items,
            subtotal=_money(payload.get("subtotal")),
            tax=_money(payload.get("tax")),
            discount=_money(payload.get("discount")),
            total=total,
            payment_method=payment,
            store_details=store,
            receipt_number=_text(payload.get("receiptNumber")),
            transaction_time=_text(payload.get("transactionTime")),
            currency=payload.get("currency"),
            confidence=confidence,
            confidence_summary=summary,
            error=error,
            error_type=(error_type or "SERVER_ERROR") if error else None,
            warnings=warnings,
        )

    def from_error(self, error_type: str, message: str) -> ExtractionRecord:
        if error_type not in ERROR_TYPES:
            error_type = "SERVER_ERROR"
        return ExtractionRecord(
            confidence=FAILED_CONFIDENCE,
            error=message,
            error_type=error_type,
        )
