# rr_utils/normalizers.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union


# ---------------- Currency OCR fix ----------------

# A leading S/5 directly before an amount is usually a misread "$":
#   " S17.94" -> "$17.94", but "1,234.56" stays as-is
_CURRENCY_OCR_FIX = re.compile(r"(?<![A-Za-z0-9$€₹.,])([S5])(?=\s\d)|^S(?=\d)")


def _fix_currency_ocr(s: str) -> str:
    return _CURRENCY_OCR_FIX.sub("$", s or "")


# ---------------- Amounts ----------------

CURRENCY_MAP = {
    "$": "USD",
    "US$": "USD",
    "USD": "USD",
    "TT$": "TTD",
    "TTD": "TTD",
    "€": "EUR",
    "EUR": "EUR",
}

CUR_RX = re.compile(r"^\s*(?P<cur>US\$|TT\$|USD|TTD|EUR|[$€])\s*(?P<num>.*)$", re.IGNORECASE)

NUM_RX = re.compile(
    r"""
    ^\s*
    (?P<sign>[-(]?)\s*
    (?P<int>\d{1,3}(?:,\d{3})*|\d+)
    (?P<dec>\.\d+)?
    \s*\)?\s*$
    """,
    re.VERBOSE,
)


@dataclass
class Amount:
    raw: str
    value: Optional[float]
    currency: Optional[str]


def normalize_amount(raw: Union[str, float, int, None]) -> Optional[Amount]:
    """
    Parse decimal-as-text ("7.42", "$1,234.50", "(3.25)", "S17.94") into an Amount.
    Returns None for None input and an Amount with value=None when nothing parses.
    """
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        return Amount(raw=str(raw), value=float(raw), currency=None)

    s = _fix_currency_ocr(str(raw)).strip()
    if not s:
        return Amount(raw="", value=None, currency=None)

    cur = None
    num_part = s
    mcur = CUR_RX.match(s)
    if mcur:
        cur = CURRENCY_MAP.get(mcur.group("cur").upper())
        num_part = mcur.group("num").strip()

    m = NUM_RX.match(num_part)
    if not m:
        # comma-decimal receipts ("12,50")
        mc = re.fullmatch(r"\s*(-?\d+),(\d{2})\s*", num_part)
        if not mc:
            return Amount(raw=s, value=None, currency=cur)
        return Amount(raw=s, value=float(f"{mc.group(1)}.{mc.group(2)}"), currency=cur)

    sign = "-" if m.group("sign") in ("-", "(") else ""
    num_str = (m.group("int") or "").replace(",", "") + (m.group("dec") or "")
    return Amount(raw=s, value=float(sign + num_str), currency=cur)


def amount_value(raw: Union[str, float, int, None]) -> Optional[float]:
    amt = normalize_amount(raw)
    return amt.value if amt else None


def to_cents(value: Optional[float]) -> Optional[int]:
    """Integer cents, so exact-amount checks never compare floats."""
    if value is None:
        return None
    return int(round(value * 100))


# ---------------- Dates ----------------


def to_iso_date(raw: Union[str, date, datetime, None]) -> Optional[date]:
    """Coerce a stored date (ISO text, date or datetime) to a calendar date."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    try:
        return date.fromisoformat(s[:10])
    except ValueError:
        return None
