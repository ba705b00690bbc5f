# rr_utils/fingerprint.py
# Purpose: stable ids for computed (never persisted) duplicate groups.

from __future__ import annotations
import hashlib
import re
from typing import Iterable


def canonicalize_text(s: str) -> str:
    """
    Lowercase and collapse whitespace so equivalent labels compare equal.
    """
    if not isinstance(s, str):
        s = str(s or "")
    s = s.lower()
    s = re.sub(r"\s+", " ", s).strip()
    return s


def group_fingerprint(member_ids: Iterable[str]) -> str:
    """
    Short SHA-1 over the sorted member ids (first 12 hex chars), so re-running
    detection over the same expenses yields the same group id.
    """
    canon = "|".join(sorted(canonicalize_text(i) for i in member_ids))
    return hashlib.sha1(canon.encode("utf-8")).hexdigest()[:12]
