from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from rr_core.models import ExtractionRecord

Timestamp = Union[date, datetime, float, int, None]


class BaseAdapter(ABC):
    """Turn one raw OCR oracle response into a normalized ExtractionRecord."""

    @abstractmethod
    def build(
        self,
        payload: Dict[str, Any],
        *,
        capture_timestamp: Timestamp = None,
        today: Optional[date] = None,
    ) -> ExtractionRecord: ...

    @abstractmethod
    def from_error(self, error_type: str, message: str) -> ExtractionRecord: ...
