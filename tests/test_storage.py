# tests/test_storage.py
from datetime import date
from pathlib import Path

import pytest

from rr_core.models import ReceiptPage
from reconcile.duplicates import detect_duplicates
from reconcile.merger import merge_pages
from storage.handoff import expense_fields, line_item_rows
from storage.loaders import load_expenses, load_record, read_data

SAMPLES = Path(__file__).resolve().parents[1] / "data" / "samples"


def test_sample_history_loads_from_yaml():
    expenses = load_expenses(SAMPLES / "expenses.yaml")
    assert [e.id for e in expenses] == ["exp-1", "exp-2", "exp-3", "exp-4"]
    assert expenses[0].date == date(2024, 3, 1)
    assert expenses[2].receipt_number == "R-100234"

    groups = detect_duplicates(expenses)
    assert len(groups) == 1
    assert {m.id for m in groups[0].members} == {"exp-1", "exp-2"}


def test_sample_pages_merge_into_a_complete_record():
    top = load_record(SAMPLES / "pages" / "page1_top.json")
    bottom = load_record(SAMPLES / "pages" / "page2_bottom.json")
    merged = merge_pages([ReceiptPage(1, top), ReceiptPage(2, bottom)])
    assert merged.amount == "7.42"
    assert merged.receipt_number.value == "R-100234"


def test_expense_list_may_be_bare(write_json):
    p = write_json("h.json", [{"id": "a", "family_id": "f", "amount": 3}])
    assert load_expenses(p)[0].amount == 3.0


def test_bad_inputs(tmp_path, write_json):
    with pytest.raises(FileNotFoundError):
        read_data(tmp_path / "missing.json")
    with pytest.raises(ValueError):
        load_record(write_json("list.json", [1, 2]))
    with pytest.raises(ValueError):
        load_expenses(write_json("scalar.json", 5))


def test_expense_fields_flatten_the_record(top_page, bottom_page):
    bottom_page.payment_method = None
    merged = merge_pages([ReceiptPage(1, top_page), ReceiptPage(2, bottom_page)])
    fields = expense_fields(merged, "fam-1", category="Groceries")
    assert fields["family_id"] == "fam-1"
    assert fields["amount"] == 7.42
    assert fields["date"] == "2024-03-01"
    assert fields["tax_amount"] == 0.42
    assert fields["category"] == "Groceries"
    assert fields["payment_method"] is None
    assert fields["ocr_confidence"] == merged.confidence


def test_line_item_rows_keep_order(top_page):
    rows = line_item_rows(top_page, "exp-9")
    assert [r["line_number"] for r in rows] == [1, 2]
    assert rows[0]["total_price"] == 4.0
    assert {r["expense_id"] for r in rows} == {"exp-9"}


def test_expense_fields_label_a_nameless_receipt(bottom_page):
    assert bottom_page.description is None
    assert expense_fields(bottom_page, "fam-1")["description"] == "Purchase"
