# tests/conftest.py
import json
from datetime import date

import pytest

from rr_core.models import Expense, ExtractionRecord, LineItem, MoneyField

TODAY = date(2024, 3, 10)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def top_page():
    """Header + items, no grand total (first section of a long receipt)."""
    return ExtractionRecord(
        place="ABC Mart",
        description="ABC Mart",
        date=date(2024, 3, 1),
        confidence=0.8,
        line_items=[
            LineItem(description="milk", total_price="4.00", confidence=0.9),
            LineItem(description="bread", total_price="3.00", confidence=0.9),
        ],
    )


@pytest.fixture
def bottom_page():
    """Trailing total with no header."""
    return ExtractionRecord(
        amount="7.42",
        tax=MoneyField(amount="0.42", confidence=0.8),
        confidence=0.7,
    )


def make_expense(id, amount="25.00", day=date(2024, 3, 1), place="ABC Mart", **kw):
    return Expense(
        id=id,
        family_id=kw.pop("family_id", "fam-1"),
        amount=float(amount),
        date=day,
        place=place,
        description=kw.pop("description", ""),
        **kw,
    )


@pytest.fixture
def expense():
    return make_expense


@pytest.fixture
def write_json(tmp_path):
    def _write(name, payload):
        p = tmp_path / name
        p.write_text(json.dumps(payload), encoding="utf-8")
        return p

    return _write
