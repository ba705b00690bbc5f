# reconcile/dates.py
"""
Validate and repair a single OCR-extracted receipt date.

A receipt date is a calendar day, not an instant: nothing here shifts by a
UTC offset, and a missing or unreadable date is reported as such instead of
silently becoming "today".
"""
from __future__ import annotations

import calendar
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple, Union

from reconcile.settings import DateRules

log = logging.getLogger(__name__)

NO_DATE_NOTE = "No date detected - please select the date manually"
TIMESTAMP_UNREADABLE_NOTE = "Photo timestamp could not be read - skipped the capture-date check"

# epoch values above this are milliseconds (1e11 s is the year 5138)
MILLISECOND_EPOCH_THRESHOLD = 1e11

MONTHS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "APR": 4,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "OCT": 10,
    "NOV": 11,
    "DEC": 12,
}

YMD_RX = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})$")
ISO_TS_RX = re.compile(
    r"^(\d{4}-\d{2}-\d{2})[T ](\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?)(Z|[+-]\d{2}:?\d{2})?$"
)
# month/day/year, the order a native parser assumes
MDY_RX = re.compile(r"^(\d{1,2})([/-])(\d{1,2})\2(\d{4})$")
MON_D_Y_RX = re.compile(r"^([A-Za-z]{3,9})\.?\s+(\d{1,2})(?:st|nd|rd|th)?,?\s+(\d{4})$")
D_MON_Y_RX = re.compile(r"^(\d{1,2})(?:st|nd|rd|th)?\s+([A-Za-z]{3,9})\.?,?\s+(\d{4})$")

# ---------- OCR repair ----------

_CONFUSABLE = str.maketrans({"O": "0", "o": "0", "I": "1", "l": "1", "S": "5", "B": "8"})
_CONFUSABLE_TOKEN_RX = re.compile(r"[0-9OoIlSB]{1,4}")
_TOKEN_SPLIT_RX = re.compile(r"([^0-9A-Za-z]+)")
_SEPARATOR_RX = re.compile(r"^(\d{1,2})[\s_.]+(\d{1,2})[\s_.]+(\d{2,4})$")
_YMD_SEPARATOR_RX = re.compile(r"^(\d{4})[\s_.]+(\d{1,2})[\s_.]+(\d{1,2})$")
_SHORT_YEAR_RX = re.compile(r"^(\d{1,2})([/-])(\d{1,2})\2(\d{2})$")


@dataclass
class DateValidationResult:
    is_valid: bool
    confidence: float
    corrected_date: Optional[date] = None
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "corrected_date": self.corrected_date.isoformat() if self.corrected_date else None,
            "confidence": self.confidence,
            "notes": list(self.notes),
        }


def _month_from_name(name: str) -> Optional[int]:
    return MONTHS.get(name.strip().upper()[:3])


def _safe_date(y: int, m: int, d: int) -> Optional[date]:
    try:
        return date(y, m, d)
    except ValueError:
        return None


def parse_local_date(text: str) -> Optional[date]:
    """Parse receipt date text as a calendar day; None when it does not parse."""
    s = (text or "").strip()
    if not s:
        return None

    m = YMD_RX.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    m = ISO_TS_RX.match(s)
    if m:
        zone = m.group(3)
        if not zone:
            return date.fromisoformat(m.group(1))
        # keep the calendar day of the stated zone
        iso = f"{m.group(1)}T{m.group(2)}{'+00:00' if zone == 'Z' else zone}"
        try:
            return datetime.fromisoformat(iso).date()
        except ValueError:
            return None

    m = MDY_RX.match(s)
    if m:
        return _safe_date(int(m.group(4)), int(m.group(1)), int(m.group(3)))

    m = MON_D_Y_RX.match(s)
    if m:
        mon = _month_from_name(m.group(1))
        return _safe_date(int(m.group(3)), mon, int(m.group(2))) if mon else None

    m = D_MON_Y_RX.match(s)
    if m:
        mon = _month_from_name(m.group(2))
        return _safe_date(int(m.group(3)), mon, int(m.group(1))) if mon else None

    return None


def correct_ocr_mistakes(text: str) -> str:
    """
    Undo common OCR misreads in a date string:
      - O->0, I/l->1, S->5, B->8 inside short digit-like tokens only
        (month names such as "Sep" or "Oct" are left alone)
      - '.', '_' and whitespace separators -> '/'
      - two-digit years -> 20YY
    A string that is already a clean date comes back unchanged.
    """
    parts = _TOKEN_SPLIT_RX.split((text or "").strip())
    fixed = "".join(
        p.translate(_CONFUSABLE) if _CONFUSABLE_TOKEN_RX.fullmatch(p) else p for p in parts
    )
    fixed = _YMD_SEPARATOR_RX.sub(r"\1-\2-\3", fixed)
    fixed = _SEPARATOR_RX.sub(r"\1/\2/\3", fixed)
    fixed = _SHORT_YEAR_RX.sub(r"\1\2\3\g<2>20\4", fixed)
    return fixed


def swap_day_month(text: str) -> Tuple[Optional[date], Optional[str]]:
    """
    Re-read a numeric date whose month component exceeds 12 while its day
    does not (day/month-order receipts). Returns (date, note) or (None, None).
    """
    s = (text or "").strip()
    m = MDY_RX.match(s)
    if m:
        first, second, year = int(m.group(1)), int(m.group(3)), int(m.group(4))
        if first > 12 and second <= 12:
            d = _safe_date(year, second, first)
            if d:
                return d, f'Read "{s}" as day/month/year'
    m = YMD_RX.match(s)
    if m:
        year, first, second = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if first > 12 and second <= 12:
            d = _safe_date(year, second, first)
            if d:
                return d, f'Read "{s}" as year/day/month'
    return None, None


def _shift_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:  # Feb 29
        return d.replace(year=d.year + years, day=28)


def _shift_months(d: date, months: int) -> date:
    y, m = divmod(d.month - 1 + months, 12)
    y += d.year
    m += 1
    return date(y, m, min(d.day, calendar.monthrange(y, m)[1]))


def _as_day(ts: Union[date, datetime, float, int]) -> Optional[date]:
    """Calendar day of a capture timestamp; epoch values may be in seconds or milliseconds."""
    if isinstance(ts, datetime):
        return ts.date()
    if isinstance(ts, date):
        return ts
    try:
        seconds = float(ts)
        if abs(seconds) > MILLISECOND_EPOCH_THRESHOLD:
            seconds /= 1000.0
        return datetime.fromtimestamp(seconds).date()
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _unusable(note: str) -> DateValidationResult:
    return DateValidationResult(is_valid=False, confidence=0.0, corrected_date=None, notes=[note])


def validate_date(
    raw_text: Union[str, date, None],
    capture_timestamp: Union[date, datetime, float, int, None] = None,
    *,
    today: Optional[date] = None,
    rules: Optional[DateRules] = None,
) -> DateValidationResult:
    """
    Parse, repair and score one extracted date. Never raises.

    Confidence starts at 0.5 for a clean parse or 0.7 after an OCR repair,
    moves by the plausibility and capture-timestamp checks, and is clamped to
    [0, 0.9]; is_valid means confidence > 0.3. Implausible dates are still
    returned so the user can confirm or override them.
    """
    rules = rules or DateRules()
    today = today or date.today()
    notes: List[str] = []

    if isinstance(raw_text, datetime):
        raw_text = raw_text.date()
    if isinstance(raw_text, date):
        parsed: Optional[date] = raw_text
        confidence = rules.raw_confidence
    else:
        text = str(raw_text or "").strip()
        if not text:
            return _unusable(NO_DATE_NOTE)

        parsed = parse_local_date(text)
        confidence = rules.raw_confidence
        if parsed is None:
            fixed = correct_ocr_mistakes(text)
            parsed = parse_local_date(fixed)
            swap_note = None
            if parsed is None:
                parsed, swap_note = swap_day_month(fixed)
            if parsed is None:
                log.debug("Unparsable date %r (after repair %r)", text, fixed)
                return _unusable(f'Could not parse date "{text}" - please select the date manually')
            if fixed != text:
                notes.append(f'Corrected "{text}" to "{fixed}"')
            if swap_note:
                notes.append(swap_note)
            confidence = rules.corrected_confidence

    oldest = _shift_years(today, -rules.max_past_years)
    latest = _shift_months(today, rules.max_future_months)
    if parsed < oldest:
        notes.append("Date seems quite old - please verify")
        confidence -= rules.plausibility_adjustment
    elif parsed > latest:
        notes.append("Date is in the future - please verify")
        confidence -= rules.plausibility_adjustment
    else:
        confidence += rules.plausibility_adjustment

    if capture_timestamp is not None:
        taken = _as_day(capture_timestamp)
        if taken is None:
            log.debug("Unreadable capture timestamp %r", capture_timestamp)
            notes.append(TIMESTAMP_UNREADABLE_NOTE)
        elif abs((parsed - taken).days) > rules.timestamp_window_days:
            notes.append("Date differs significantly from when the photo was taken")
            confidence -= rules.timestamp_penalty

    confidence = round(max(0.0, min(rules.max_confidence, confidence)), 2)
    result = DateValidationResult(
        is_valid=confidence > rules.min_valid_confidence,
        confidence=confidence,
        corrected_date=parsed,
        notes=notes,
    )
    log.debug("Date %r -> %s (confidence %.2f)", raw_text, parsed, confidence)
    return result
