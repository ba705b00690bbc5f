# tests/test_pick.py
from types import SimpleNamespace as NS

from reconcile.pick import has_value, pick_best, pick_fields


def test_has_value():
    assert not has_value(None)
    assert not has_value("  ")
    assert has_value("x")
    assert has_value(0)


def test_pick_best_prefers_confidence_and_skips_missing():
    sources = [NS(confidence=0.9, place=None), NS(confidence=0.5, place="ABC"), NS(confidence=0.7, place="")]
    assert pick_best("place", sources) == "ABC"


def test_pick_best_tie_keeps_earliest():
    sources = [NS(confidence=0.6, place="first"), NS(confidence=0.6, place="second")]
    assert pick_best("place", sources) == "first"


def test_pick_best_none_when_absent():
    assert pick_best("place", [NS(confidence=1.0)]) is None


def test_pick_fields_chooses_each_field_independently():
    a = NS(confidence=0.9, place="Alpha", amount=None)
    b = NS(confidence=0.4, place="Beta", amount="10.00")
    assert pick_fields(["place", "amount"], [a, b]) == {"place": "Alpha", "amount": "10.00"}


def test_custom_confidence_key():
    a = NS(score=1, place="low")
    b = NS(score=5, place="high")
    assert pick_best("place", [a, b], confidence=lambda s: s.score) == "high"
