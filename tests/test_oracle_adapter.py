# tests/test_oracle_adapter.py
from datetime import date

import pytest

from adapters.oracle import FAILED_CONFIDENCE, OracleAdapter
from reconcile.dates import NO_DATE_NOTE

PAYLOAD = {
    "amount": {"value": "7.42", "confidence": 0.9},
    "date": {"value": "O3/O1/2O24", "confidence": 0.6},
    "supplier": {"value": "ABC Mart Ltd", "confidence": 0.7},
    "lineItems": [
        {"description": "Milk 1L", "quantity": 1, "totalPrice": "4.00", "confidence": 0.9},
        {"description": "Bread", "total_amount": "3.00", "confidence": 0.5},
    ],
    "tax": {"amount": "0.42", "rate": "6%", "confidence": 0.8},
    "storeDetails": {"name": "ABC Mart", "address": "12 Main St", "confidence": 0.8},
    "paymentMethod": {"type": "card", "lastDigits": "4242", "confidence": 0.7},
    "receiptNumber": {"value": "R-100234", "confidence": 0.75},
    "currency": "TTD",
    "confidence": 0.82,
    "confidence_summary": {"overall": 0.8, "line_items": 0.9, "total": 0.85, "date": 0.6, "merchant": 0.8},
}


@pytest.fixture
def adapter():
    return OracleAdapter()


def test_full_payload_is_mapped(adapter, today):
    rec = adapter.build(PAYLOAD, today=today)
    assert rec.amount == "7.42"
    assert rec.date == date(2024, 3, 1)
    assert rec.description == "ABC Mart"
    assert rec.place == "12 Main St"
    assert [i.total_price for i in rec.line_items] == ["4.00", "3.00"]
    assert rec.tax.amount == "0.42" and rec.tax.rate == "6%"
    assert rec.payment_method.last_digits == "4242"
    assert rec.receipt_number.value == "R-100234"
    assert rec.currency == "TTD"
    assert rec.confidence == 0.82
    assert rec.confidence_summary.total == 0.85
    assert rec.error is None
    assert 'Corrected "O3/O1/2O24" to "03/01/2024"' in rec.warnings


def test_fallbacks_for_sparse_payload(adapter, today):
    rec = adapter.build({"supplier": {"value": "Corner Shop"}, "total": {"amount": "3.00"}}, today=today)
    assert rec.amount == "3.00"
    assert rec.description == "Corner Shop"
    assert rec.place == "Corner Shop"
    assert rec.confidence == 0.5
    assert rec.date is None
    assert NO_DATE_NOTE in rec.warnings


def test_first_line_item_names_an_anonymous_receipt(adapter, today):
    rec = adapter.build({"lineItems": [{"description": "Coffee", "totalPrice": "2.50"}]}, today=today)
    assert rec.description == "Coffee"


def test_no_source_text_leaves_description_empty(adapter, today):
    rec = adapter.build({"total": {"amount": "7.42"}, "confidence": 0.9}, today=today)
    assert rec.description is None
    assert rec.place is None


def test_reported_zero_confidence_is_kept(adapter, today):
    rec = adapter.build({"amount": {"value": "5.00"}, "confidence": 0.0}, today=today)
    assert rec.confidence == 0.0

    from_summary = adapter.build({"amount": "5.00", "confidence_summary": {"overall": 0.0}}, today=today)
    assert from_summary.confidence == 0.0


def test_millisecond_capture_timestamp_does_not_break_the_build(adapter, today):
    rec = adapter.build({"amount": "5.00", "date": "2024-03-01"}, capture_timestamp=1709251200000, today=today)
    assert rec.date == date(2024, 3, 1)
    assert rec.warnings == []


def test_summary_supplies_missing_overall_confidence(adapter, today):
    rec = adapter.build({"amount": "1.00", "confidence_summary": {"overall": 0.66}}, today=today)
    assert rec.confidence == 0.66


def test_oracle_error_is_kept_with_partial_fields(adapter, today):
    rec = adapter.build(
        {"error": "Text too blurry", "type": "OCR_CONFIDENCE_LOW", "amount": "4.00"}, today=today
    )
    assert rec.error == "Text too blurry"
    assert rec.error_type == "OCR_CONFIDENCE_LOW"
    assert rec.amount == "4.00"

    untyped = adapter.build({"error": "boom"}, today=today)
    assert untyped.error_type == "SERVER_ERROR"


def test_empty_payload_becomes_error_record(adapter):
    rec = adapter.build({})
    assert rec.error_type == "SERVER_ERROR"
    assert rec.confidence == FAILED_CONFIDENCE


def test_unknown_error_type_is_normalized(adapter):
    assert adapter.from_error("WHATEVER", "x").error_type == "SERVER_ERROR"
    assert adapter.from_error("FETCH_ERROR", "x").error_type == "FETCH_ERROR"
