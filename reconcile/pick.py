# reconcile/pick.py
"""
"Best wins" field selection across several sources of the same receipt.

Each field is chosen independently: the value comes from whichever source
carries it with the highest overall confidence, so the winning amount may come
from a different page than the winning place.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def has_value(v: Any) -> bool:
    """A field is present unless it is None or blank text."""
    if v is None:
        return False
    if isinstance(v, str):
        return bool(v.strip())
    return True


def pick_best(
    field: str,
    sources: Iterable[T],
    *,
    confidence: Callable[[T], float] = lambda s: getattr(s, "confidence", 0.0),
) -> Optional[Any]:
    """
    Value of `field` from the most confident source that has it. Ties keep the
    earliest source; returns None when no source has the field.
    """
    best: Optional[Tuple[float, Any]] = None
    for src in sources:
        value = getattr(src, field, None)
        if not has_value(value):
            continue
        score = confidence(src)
        if best is None or score > best[0]:
            best = (score, value)
    return best[1] if best else None


def pick_fields(fields: Sequence[str], sources: Sequence[T], **kw) -> Dict[str, Any]:
    return {name: pick_best(name, sources, **kw) for name in fields}
