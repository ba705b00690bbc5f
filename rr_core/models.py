from __future__ import annotations
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from rr_utils.normalizers import amount_value, to_iso_date


def _clamp01(x: Any) -> float:
    try:
        v = float(x)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(1.0, v))


@dataclass
class LineItem:
    description: str
    total_price: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[str] = None
    confidence: float = 0.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LineItem":
        return cls(
            description=str(d.get("description") or d.get("desc") or "").strip(),
            total_price=_text(d.get("total_price", d.get("totalPrice"))),
            quantity=d.get("quantity", d.get("qty")),
            unit_price=_text(d.get("unit_price", d.get("unitPrice"))),
            confidence=_clamp01(d.get("confidence", 0.0)),
        )


@dataclass
class MoneyField:
    """subtotal / tax / discount / total as printed on the receipt."""

    amount: str
    confidence: float = 0.0
    rate: Optional[str] = None
    description: Optional[str] = None

    @property
    def value(self) -> Optional[float]:
        return amount_value(self.amount)


@dataclass
class PaymentMethod:
    type: str
    last_digits: Optional[str] = None
    confidence: float = 0.0


@dataclass
class StoreDetails:
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    confidence: float = 0.0


@dataclass
class TextField:
    value: str
    confidence: float = 0.0


@dataclass
class ConfidenceSummary:
    overall: float = 0.0
    line_items: float = 0.0
    total: float = 0.0
    date: float = 0.0
    merchant: float = 0.0


@dataclass
class ExtractionRecord:
    """
    Structured, confidence-annotated OCR output for one scanned page (or the
    merge of several). When `error` is set the remaining fields are best-effort
    but are never dropped: the record must stay usable for manual correction.
    """

    amount: Optional[str] = None
    date: Optional[date] = None
    description: Optional[str] = None
    place: Optional[str] = None
    line_items: List[LineItem] = field(default_factory=list)
    subtotal: Optional[MoneyField] = None
    tax: Optional[MoneyField] = None
    discount: Optional[MoneyField] = None
    total: Optional[MoneyField] = None
    payment_method: Optional[PaymentMethod] = None
    store_details: Optional[StoreDetails] = None
    receipt_number: Optional[TextField] = None
    transaction_time: Optional[TextField] = None
    currency: Optional[str] = None
    confidence: float = 0.0
    confidence_summary: Optional[ConfidenceSummary] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence = _clamp01(self.confidence)

    def grand_total(self) -> Optional[float]:
        """The receipt's final total: `amount`, else `total.amount`."""
        for raw in (self.amount, self.total.amount if self.total else None):
            v = amount_value(raw)
            if v is not None:
                return v
        return None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["date"] = self.date.isoformat() if self.date else None
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExtractionRecord":
        summary = d.get("confidence_summary")
        return cls(
            amount=_text(d.get("amount")),
            date=to_iso_date(d.get("date")),
            description=d.get("description"),
            place=d.get("place"),
            line_items=[LineItem.from_dict(i) for i in d.get("line_items") or []],
            subtotal=_sub(MoneyField, d.get("subtotal")),
            tax=_sub(MoneyField, d.get("tax")),
            discount=_sub(MoneyField, d.get("discount")),
            total=_sub(MoneyField, d.get("total")),
            payment_method=_sub(PaymentMethod, d.get("payment_method")),
            store_details=_sub(StoreDetails, d.get("store_details")),
            receipt_number=_sub(TextField, d.get("receipt_number")),
            transaction_time=_sub(TextField, d.get("transaction_time")),
            currency=d.get("currency"),
            confidence=d.get("confidence", 0.0),
            confidence_summary=ConfidenceSummary(**summary) if summary else None,
            error=d.get("error"),
            error_type=d.get("error_type"),
            warnings=list(d.get("warnings") or []),
        )


def _text(v: Any) -> Optional[str]:
    if v is None:
        return None
    return str(v)


def _sub(cls, v: Any):
    # plain strings are accepted for the single-valued sub-fields ("tax": "0.42")
    if v is None or v == "":
        return None
    if isinstance(v, dict):
        return cls(**v)
    if cls is MoneyField:
        return MoneyField(amount=str(v))
    if cls is TextField:
        return TextField(value=str(v))
    if cls is PaymentMethod:
        return PaymentMethod(type=str(v))
    return StoreDetails(name=str(v))


@dataclass(frozen=True)
class ReceiptPage:
    """One captured page; `is_partial` is decided once at capture time."""

    page_number: int
    extraction: ExtractionRecord
    image_ref: Any = None
    is_partial: bool = False


@dataclass
class Expense:
    id: str
    family_id: str
    amount: float
    date: Optional[date]
    description: str = ""
    place: str = ""
    category: Optional[str] = None
    receipt_number: Optional[str] = None
    store_address: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Expense":
        amt = amount_value(d.get("amount"))
        return cls(
            id=str(d["id"]),
            family_id=str(d.get("family_id") or d.get("familyId") or ""),
            amount=amt if amt is not None else 0.0,
            date=to_iso_date(d.get("date")),
            description=d.get("description") or "",
            place=d.get("place") or "",
            category=d.get("category"),
            receipt_number=d.get("receipt_number") or d.get("transactionId"),
            store_address=d.get("store_address"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["date"] = self.date.isoformat() if self.date else None
        return out


class DuplicateConfidence(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 1, "medium": 2, "high": 3}[self.value]


class DuplicateReason(str, Enum):
    EXACT_RECEIPT_MATCH = "exact_receipt_match"
    SAME_DAY_SAME_AMOUNT = "same_day_same_amount"
    SIMILAR_AMOUNT_NEARBY_DATE = "similar_amount_nearby_date"
    SAME_VENDOR_SIMILAR_AMOUNT = "same_vendor_similar_amount"
    POSSIBLE_MATCH = "possible_match"


@dataclass
class DuplicateGroup:
    id: str
    confidence: DuplicateConfidence
    reason: DuplicateReason
    members: List[Expense] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "confidence": self.confidence.value,
            "reason": self.reason.value,
            "members": [m.to_dict() for m in self.members],
        }
