# pipeline/capture.py
"""
Multi-page capture session:
  image --oracle--> ExtractionRecord --classify--> ReceiptPage ... --finalize--> merged record

A session is single-user and in-memory. Pages are appended one at a time and
merged once at finalization; an abandoned session is simply discarded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from adapters.base import Timestamp
from adapters.oracle import OracleAdapter
from rr_core.models import ExtractionRecord, ReceiptPage
from reconcile.completeness import PartialDetection, detect_partial, is_complete
from reconcile.merger import merge_pages
from reconcile.quality import error_message, is_usable
from reconcile.settings import Rules

log = logging.getLogger("pipeline")

# image reference -> raw oracle payload
Oracle = Callable[[Any], Dict[str, Any]]


@dataclass
class PageResult:
    page: ReceiptPage
    detection: PartialDetection
    usable: bool = False
    message: Optional[str] = None


@dataclass
class FinalizedReceipt:
    record: ExtractionRecord
    is_complete: bool
    page_count: int


class CaptureSession:
    def __init__(self, rules: Optional[Rules] = None, adapter: Optional[OracleAdapter] = None):
        self.rules = rules or Rules()
        self.adapter = adapter or OracleAdapter(self.rules.dates)
        self._pages: List[ReceiptPage] = []

    @property
    def pages(self) -> Tuple[ReceiptPage, ...]:
        return tuple(self._pages)

    def add_page(self, extraction: ExtractionRecord, image_ref: Any = None) -> PageResult:
        """Classify one page once and append it in capture order."""
        detection = detect_partial(extraction, self.rules.completeness)
        page = ReceiptPage(
            page_number=len(self._pages) + 1,
            extraction=extraction,
            image_ref=image_ref,
            is_partial=detection.is_partial,
        )
        self._pages.append(page)
        log.info(
            "Page %d captured: %s%s",
            page.page_number,
            "partial" if page.is_partial else "complete",
            f" ({detection.reason})" if detection.reason else "",
        )
        return PageResult(
            page=page,
            detection=detection,
            usable=is_usable(extraction),
            message=error_message(extraction.error_type) if extraction.error else None,
        )

    def scan(
        self,
        oracle: Oracle,
        image_ref: Any,
        *,
        capture_timestamp: Timestamp = None,
        today: Optional[date] = None,
    ) -> PageResult:
        """
        Call the oracle for one image and add the result. A transport failure
        becomes an error record, exactly like an oracle-reported error.
        """
        try:
            payload = oracle(image_ref)
        except Exception as exc:  # guardrail: a failed scan must not end the session
            log.warning("OCR oracle failed for %r: %s", image_ref, exc)
            extraction = self.adapter.from_error("SERVER_ERROR", str(exc) or type(exc).__name__)
        else:
            extraction = self.adapter.build(payload, capture_timestamp=capture_timestamp, today=today)
        return self.add_page(extraction, image_ref)

    def finalize(self) -> FinalizedReceipt:
        merged = merge_pages(self._pages)
        return FinalizedReceipt(
            record=merged,
            is_complete=is_complete(merged),
            page_count=len(self._pages),
        )

    def discard(self) -> None:
        self._pages.clear()
