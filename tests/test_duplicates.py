# tests/test_duplicates.py
import logging
from datetime import date

import pytest

from rr_core.models import DuplicateConfidence, DuplicateReason, ExtractionRecord, StoreDetails, TextField
from reconcile.duplicates import (
    PENDING_EXPENSE_ID,
    Signal,
    amount_signal,
    check_for_receipt_duplicates,
    classify_pair,
    compare_expenses,
    detect_duplicates,
    text_signal,
)
from reconcile.settings import DuplicateRules

D1 = date(2024, 3, 1)
D2 = date(2024, 3, 2)
D3 = date(2024, 3, 3)
FAR = date(2024, 1, 10)

RULES = DuplicateRules()


def verdict(a, b):
    return classify_pair(compare_expenses(a, b))


# ---------- signals ----------


def test_amount_signal_levels():
    assert amount_signal(25.0, 25.0, RULES) == Signal.STRONG
    assert amount_signal(25.0, 25.2, RULES) == Signal.WEAK
    assert amount_signal(25.0, 26.0, RULES) == Signal.NONE
    assert amount_signal(0.0, 0.0, RULES) == Signal.NONE


def test_text_signal_levels():
    assert text_signal("ABC Mart", "abc  mart", RULES) == Signal.STRONG
    assert text_signal("ABC Mart", "ABC Mart Downtown", RULES) == Signal.STRONG
    assert text_signal("Massy Stores Glencoe", "Massy Glencoe", RULES) == Signal.WEAK
    assert text_signal("ABC Mart", "Hi-Lo Food", RULES) == Signal.NONE
    assert text_signal("", "ABC", RULES) == Signal.NONE


# ---------- pair rules ----------


def test_same_day_same_amount_same_place_is_high(expense):
    v = verdict(expense("a"), expense("b", place="abc mart"))
    assert v == (DuplicateConfidence.HIGH, DuplicateReason.SAME_DAY_SAME_AMOUNT)


def test_receipt_identity_short_circuits_dates(expense):
    a = expense("a", day=D1, receipt_number="R-1")
    b = expense("b", day=FAR, place="Elsewhere", receipt_number="r-1")
    assert verdict(a, b) == (DuplicateConfidence.HIGH, DuplicateReason.EXACT_RECEIPT_MATCH)


def test_store_address_is_receipt_identity(expense):
    a = expense("a", day=D1, store_address="12 Main St")
    b = expense("b", day=FAR, store_address="12 main st")
    assert verdict(a, b)[1] == DuplicateReason.EXACT_RECEIPT_MATCH


def test_identity_needs_the_exact_amount(expense):
    a = expense("a", amount="25.00", day=D1, receipt_number="R-1")
    b = expense("b", amount="30.00", day=FAR, receipt_number="R-1")
    assert verdict(a, b) is None


def test_same_amount_next_day_is_medium(expense):
    v = verdict(expense("a", day=D1, place="Alpha"), expense("b", day=D2, place="Omega"))
    assert v == (DuplicateConfidence.MEDIUM, DuplicateReason.SIMILAR_AMOUNT_NEARBY_DATE)


def test_same_vendor_similar_amount_is_medium(expense):
    v = verdict(expense("a", amount="25.00"), expense("b", amount="25.20"))
    assert v == (DuplicateConfidence.MEDIUM, DuplicateReason.SAME_VENDOR_SIMILAR_AMOUNT)


def test_amount_and_place_without_date_is_low(expense):
    v = verdict(expense("a", day=D1), expense("b", day=FAR))
    assert v == (DuplicateConfidence.LOW, DuplicateReason.POSSIBLE_MATCH)


def test_description_can_stand_in_for_place(expense):
    a = expense("a", day=D1, place="", description="Weekly groceries")
    b = expense("b", day=FAR, place="", description="weekly groceries")
    assert verdict(a, b)[0] == DuplicateConfidence.LOW


def test_amount_alone_is_not_a_match(expense):
    assert verdict(expense("a", day=D1, place="Alpha"), expense("b", day=FAR, place="Omega")) is None


def test_zero_amounts_never_match(expense):
    assert verdict(expense("a", amount="0"), expense("b", amount="0")) is None


# ---------- batch ----------


def test_groups_are_transitive(expense):
    a = expense("a", day=D1, place="Alpha")
    b = expense("b", day=D2, place="Beta")
    c = expense("c", day=D3, place="Gamma")
    assert verdict(a, c) is None

    groups = detect_duplicates([a, b, c])
    assert len(groups) == 1
    assert [m.id for m in groups[0].members] == ["a", "b", "c"]
    assert groups[0].confidence == DuplicateConfidence.MEDIUM


def test_no_singleton_groups(expense):
    items = [
        expense("a"),
        expense("b"),
        expense("lonely", amount="99.99", day=FAR, place="Nowhere"),
    ]
    groups = detect_duplicates(items)
    assert all(len(g.members) >= 2 for g in groups)
    assert "lonely" not in {m.id for g in groups for m in g.members}


def test_group_takes_its_strongest_pair(expense):
    a = expense("a", day=D1)
    b = expense("b", day=D1)
    c = expense("c", day=D2, place="Other")
    groups = detect_duplicates([a, b, c])
    assert len(groups) == 1
    assert groups[0].reason == DuplicateReason.SAME_DAY_SAME_AMOUNT


def test_groups_sorted_strongest_first_with_stable_ids(expense):
    low = [expense("l1", amount="10.00", day=D1, place="Kiosk"),
           expense("l2", amount="10.00", day=FAR, place="Kiosk")]
    high = [expense("h1", amount="50.00"), expense("h2", amount="50.00")]
    groups = detect_duplicates(low + high)
    assert [g.confidence for g in groups] == [DuplicateConfidence.HIGH, DuplicateConfidence.LOW]

    again = detect_duplicates(list(reversed(low + high)))
    assert {g.id for g in groups} == {g.id for g in again}
    assert all(g.id.startswith("duplicate-") for g in groups)


def test_empty_history():
    assert detect_duplicates([]) == []


# ---------- pre-submit ----------


def test_candidate_matching_history_is_flagged(expense):
    check = check_for_receipt_duplicates(
        None, "fam-1", "25.00", "", "ABC Mart", D1, [expense("existing")]
    )
    assert check.has_duplicates
    assert len(check.duplicate_groups) == 1
    g = check.duplicate_groups[0]
    assert g.confidence == DuplicateConfidence.HIGH
    assert g.reason == DuplicateReason.SAME_DAY_SAME_AMOUNT
    assert check.potential_expense.id == PENDING_EXPENSE_ID
    assert check.potential_expense in g.members


def test_other_households_are_ignored(expense):
    history = [expense("theirs", family_id="fam-2")]
    check = check_for_receipt_duplicates(None, "fam-1", "25.00", "", "ABC Mart", D1, history)
    assert not check.has_duplicates
    assert check.duplicate_groups == []


def test_groups_without_the_candidate_are_not_reported(expense):
    history = [expense("x"), expense("y")]
    check = check_for_receipt_duplicates(None, "fam-1", "80.00", "", "Hardware", FAR, history)
    assert not check.has_duplicates


def test_receipt_number_from_extraction_drives_identity(expense):
    rec = ExtractionRecord(
        amount="7.42",
        receipt_number=TextField("R-100234"),
        store_details=StoreDetails(name="ABC Mart"),
    )
    history = [expense("old", amount="7.42", day=FAR, place="Somewhere", receipt_number="R-100234")]
    check = check_for_receipt_duplicates(rec, "fam-1", "$7.42", "ABC Mart", "", "2024-03-01", history)
    assert check.has_duplicates
    assert check.duplicate_groups[0].reason == DuplicateReason.EXACT_RECEIPT_MATCH


def test_internal_failure_never_blocks_saving(caplog):
    with caplog.at_level(logging.ERROR):
        check = check_for_receipt_duplicates(None, "fam-1", "25.00", "", "ABC", D1, [object()])
    assert check.has_duplicates is False
    assert check.duplicate_groups == []
    assert "Duplicate check failed" in caplog.text


@pytest.mark.parametrize("amount", [None, "", "abc"])
def test_unreadable_candidate_amount_matches_nothing(expense, amount):
    check = check_for_receipt_duplicates(None, "fam-1", amount, "", "ABC Mart", D1, [expense("e")])
    assert not check.has_duplicates


def test_weak_amount_alone_is_not_a_match(expense):
    a = expense("a", amount="25.00", day=D1, place="Alpha")
    b = expense("b", amount="25.20", day=FAR, place="Omega")
    assert compare_expenses(a, b).amount == Signal.WEAK
    assert verdict(a, b) is None
    assert detect_duplicates([a, b]) == []
