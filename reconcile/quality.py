# reconcile/quality.py
"""
Is an extraction good enough to pre-fill the expense form, and which parts
deserve a second look? Presentation (toasts, colors) belongs to the caller.
"""
from __future__ import annotations

from typing import List, Optional

from rr_core.models import ExtractionRecord, LineItem
from reconcile.settings import LOW_CONFIDENCE_LINE_ITEM

ERROR_MESSAGES = {
    "UPLOAD_ERROR": "The receipt could not be uploaded. You can still enter the details manually.",
    "FETCH_ERROR": "We're having trouble accessing this image. Could you try uploading it again?",
    "SERVER_ERROR": "We're experiencing technical difficulties. You can still enter the details manually.",
    "OCR_CONFIDENCE_LOW": "The text is a bit hard to read. Feel free to adjust any details that don't look right.",
    "IMAGE_FORMAT_ERROR": "This image format isn't supported. Please upload a JPEG or PNG file.",
}
DEFAULT_ERROR_MESSAGE = "Something went wrong while reading your receipt. You can still enter the details manually."


def is_usable(record: ExtractionRecord) -> bool:
    """
    Whether the extraction can be trusted to pre-fill the form.

    Per-field confidences win when present (total > 0.6 and date > 0.5, or
    line items > 0.7 with an amount and a date); otherwise fall back to the
    overall confidence.
    """
    if not record.confidence:
        return False
    has_basics = bool(record.amount and record.date)

    summary = record.confidence_summary
    if summary:
        if summary.total > 0.6 and summary.date > 0.5:
            return True
        if summary.line_items > 0.7 and has_basics:
            return True

    return record.confidence > 0.3 and has_basics


def low_confidence_line_items(
    record: ExtractionRecord, threshold: float = LOW_CONFIDENCE_LINE_ITEM
) -> List[LineItem]:
    return [item for item in record.line_items if item.confidence < threshold]


def error_message(error_type: Optional[str]) -> str:
    return ERROR_MESSAGES.get(error_type or "", DEFAULT_ERROR_MESSAGE)
