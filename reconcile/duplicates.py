# reconcile/duplicates.py
"""
Flag probable duplicate expenses before they corrupt the ledger.

Matching is rule based, not scored, so every verdict can be explained:
independent amount / date / place signals plus receipt identity are combined
by a fixed decision table into a (confidence, reason) pair. Pairs are then
unioned transitively into groups of two or more expenses.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from enum import IntEnum
from typing import Dict, List, Optional, Sequence, Tuple, Union

from rr_core.models import (
    DuplicateConfidence,
    DuplicateGroup,
    DuplicateReason,
    Expense,
    ExtractionRecord,
)
from rr_utils.fingerprint import canonicalize_text, group_fingerprint
from rr_utils.normalizers import amount_value, to_cents, to_iso_date
from reconcile.settings import DuplicateRules

log = logging.getLogger(__name__)

PENDING_EXPENSE_ID = "pending"

STOP_WORDS = {
    "the", "and", "for", "with", "from", "ltd", "limited", "inc", "co",
    "company", "store", "shop", "receipt", "purchase",
}

# strongest first; used to break ties between pairs of equal confidence
REASON_ORDER = list(DuplicateReason)


class Signal(IntEnum):
    NONE = 0
    WEAK = 1
    STRONG = 2


@dataclass
class MatchSignals:
    amount: Signal = Signal.NONE
    date: Signal = Signal.NONE
    place: Signal = Signal.NONE
    receipt_identity: bool = False


Verdict = Tuple[DuplicateConfidence, DuplicateReason]


# ---------- signals ----------


def amount_signal(a: float, b: float, rules: DuplicateRules) -> Signal:
    # zero means "amount unknown" and never matches
    if not a or not b:
        return Signal.NONE
    if to_cents(a) == to_cents(b):
        return Signal.STRONG
    if abs(a - b) <= rules.amount_rel_tolerance * max(abs(a), abs(b)):
        return Signal.WEAK
    return Signal.NONE


def date_signal(a: Optional[date], b: Optional[date], rules: DuplicateRules) -> Signal:
    if a is None or b is None:
        return Signal.NONE
    days = abs((a - b).days)
    if days == 0:
        return Signal.STRONG
    if days <= rules.nearby_date_days:
        return Signal.WEAK
    return Signal.NONE


def _tokens(text: str) -> set:
    words = re.sub(r"[^\w\s]", " ", text).split()
    return {w for w in words if len(w) > 2 and w not in STOP_WORDS}


def text_signal(a: Optional[str], b: Optional[str], rules: DuplicateRules) -> Signal:
    """
    Case-insensitive equality or containment is strong; a shared significant
    word (token overlap above the threshold) is weak.
    """
    x, y = canonicalize_text(a or ""), canonicalize_text(b or "")
    if not x or not y:
        return Signal.NONE
    if x == y or x in y or y in x:
        return Signal.STRONG
    tx, ty = _tokens(x), _tokens(y)
    if tx and ty and len(tx & ty) / len(tx | ty) >= rules.place_token_overlap:
        return Signal.WEAK
    return Signal.NONE


def _same_text(a: Optional[str], b: Optional[str]) -> bool:
    x, y = canonicalize_text(a or ""), canonicalize_text(b or "")
    return bool(x) and x == y


def compare_expenses(a: Expense, b: Expense, rules: Optional[DuplicateRules] = None) -> MatchSignals:
    rules = rules or DuplicateRules()
    amount = amount_signal(a.amount, b.amount, rules)
    place = max(
        text_signal(a.place, b.place, rules),
        text_signal(a.description, b.description, rules),
    )
    identity = amount == Signal.STRONG and (
        _same_text(a.receipt_number, b.receipt_number)
        or _same_text(a.store_address, b.store_address)
    )
    return MatchSignals(
        amount=amount,
        date=date_signal(a.date, b.date, rules),
        place=place,
        receipt_identity=identity,
    )


def classify_pair(s: MatchSignals) -> Optional[Verdict]:
    """Decision table; None means "not a duplicate"."""
    if s.receipt_identity:
        return DuplicateConfidence.HIGH, DuplicateReason.EXACT_RECEIPT_MATCH
    if s.amount == Signal.STRONG and s.date == Signal.STRONG and s.place >= Signal.WEAK:
        return DuplicateConfidence.HIGH, DuplicateReason.SAME_DAY_SAME_AMOUNT
    if s.amount == Signal.STRONG and s.date == Signal.WEAK:
        return DuplicateConfidence.MEDIUM, DuplicateReason.SIMILAR_AMOUNT_NEARBY_DATE
    if s.amount == Signal.WEAK and s.date == Signal.STRONG and s.place == Signal.STRONG:
        return DuplicateConfidence.MEDIUM, DuplicateReason.SAME_VENDOR_SIMILAR_AMOUNT
    # a lone signal on one dimension is not enough: it would chain unrelated
    # expenses together through the transitive grouping
    if s.amount >= Signal.WEAK and (s.date >= Signal.WEAK or s.place >= Signal.WEAK):
        return DuplicateConfidence.LOW, DuplicateReason.POSSIBLE_MATCH
    return None


def _strength(v: Verdict) -> Tuple[int, int]:
    conf, reason = v
    return conf.rank, -REASON_ORDER.index(reason)


# ---------- batch ----------


def detect_duplicates(
    expenses: Sequence[Expense], rules: Optional[DuplicateRules] = None
) -> List[DuplicateGroup]:
    """
    All clusters of mutually similar expenses, strongest first.

    Pairwise O(n^2) comparison with union-find grouping: if A matches B and B
    matches C, all three share one group, which reports the strongest pairwise
    verdict found inside it. Side-effect free, so safe to re-run per query.
    """
    rules = rules or DuplicateRules()
    n = len(expenses)
    parent = list(range(n))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    matches: List[Tuple[int, Verdict]] = []
    for i in range(n):
        for j in range(i + 1, n):
            verdict = classify_pair(compare_expenses(expenses[i], expenses[j], rules))
            if verdict is None:
                continue
            log.debug("Pair %s/%s -> %s", expenses[i].id, expenses[j].id, verdict[1].value)
            ri, rj = find(i), find(j)
            if ri != rj:
                parent[max(ri, rj)] = min(ri, rj)
            matches.append((i, verdict))

    strongest: Dict[int, Verdict] = {}
    for i, verdict in matches:
        root = find(i)
        if root not in strongest or _strength(verdict) > _strength(strongest[root]):
            strongest[root] = verdict

    members: Dict[int, List[int]] = {}
    for i in range(n):
        members.setdefault(find(i), []).append(i)

    groups: List[Tuple[int, DuplicateGroup]] = []
    for root, idxs in members.items():
        if len(idxs) < 2 or root not in strongest:
            continue
        conf, reason = strongest[root]
        group_members = [expenses[i] for i in idxs]
        groups.append(
            (
                idxs[0],
                DuplicateGroup(
                    id=f"duplicate-{group_fingerprint(m.id for m in group_members)}",
                    confidence=conf,
                    reason=reason,
                    members=group_members,
                ),
            )
        )

    groups.sort(key=lambda g: (-g[1].confidence.rank, g[0]))
    return [g for _, g in groups]


# ---------- pre-submit ----------


@dataclass
class ReceiptDuplicateCheck:
    has_duplicates: bool
    duplicate_groups: List[DuplicateGroup] = field(default_factory=list)
    potential_expense: Optional[Expense] = None

    def to_dict(self) -> dict:
        return {
            "has_duplicates": self.has_duplicates,
            "duplicate_groups": [g.to_dict() for g in self.duplicate_groups],
            "potential_expense": self.potential_expense.to_dict() if self.potential_expense else None,
        }


def candidate_expense(
    candidate_extraction: Optional[ExtractionRecord],
    family_id: str,
    amount: Union[str, float, None],
    description: Optional[str],
    place: Optional[str],
    expense_date: Union[date, str, None],
) -> Expense:
    """The not-yet-saved expense, carrying the receipt's identity fields."""
    receipt_number = store_address = None
    if candidate_extraction is not None:
        if candidate_extraction.receipt_number:
            receipt_number = candidate_extraction.receipt_number.value
        if candidate_extraction.store_details:
            store_address = candidate_extraction.store_details.address
    value = amount_value(amount)
    return Expense(
        id=PENDING_EXPENSE_ID,
        family_id=family_id,
        amount=value if value is not None else 0.0,
        date=to_iso_date(expense_date),
        description=description or "",
        place=place or "",
        receipt_number=receipt_number,
        store_address=store_address,
    )


def check_for_receipt_duplicates(
    candidate_extraction: Optional[ExtractionRecord],
    family_id: str,
    amount: Union[str, float, None],
    description: Optional[str],
    place: Optional[str],
    expense_date: Union[date, str, None],
    history: Sequence[Expense],
    rules: Optional[DuplicateRules] = None,
) -> ReceiptDuplicateCheck:
    """
    Screen one unsaved expense against the household's history.

    Only groups containing the candidate are returned. This check must never
    block saving: any internal failure is logged and reported as "no
    duplicates".
    """
    try:
        potential = candidate_expense(
            candidate_extraction, family_id, amount, description, place, expense_date
        )
        household = [e for e in history if e.family_id == family_id]
        groups = detect_duplicates([*household, potential], rules)
        relevant = [g for g in groups if any(m is potential for m in g.members)]
        if relevant:
            log.info(
                "Candidate expense matches %d existing expense(s) (%s)",
                sum(len(g.members) - 1 for g in relevant),
                relevant[0].reason.value,
            )
        return ReceiptDuplicateCheck(
            has_duplicates=bool(relevant),
            duplicate_groups=relevant,
            potential_expense=potential,
        )
    except Exception:
        log.exception("Duplicate check failed for family %s; allowing save", family_id)
        return ReceiptDuplicateCheck(has_duplicates=False)
