"""Coerce a classifier reply into a ``DecisionResponse``.

The classifier is told to answer with bare JSON but often wraps it in prose or
markdown fences. Parsing first tries the whole reply, then balanced ``{...}``
spans found inside it.
"""

from __future__ import annotations

import json
from typing import Any, Iterator, List, Optional

from .errors import ParseFailure
from .models import DecisionResponse


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_decision(obj: Any) -> Optional[DecisionResponse]:
    if not isinstance(obj, dict):
        return None
    indices = obj.get("redact_indices")
    if not isinstance(indices, list) or not all(_is_int(i) for i in indices):
        return None
    seen = set()
    ordered: List[int] = []
    for idx in indices:
        if idx not in seen:
            seen.add(idx)
            ordered.append(idx)
    return DecisionResponse(redact_indices=ordered)


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def iter_object_spans(text: str) -> Iterator[str]:
    """Yield balanced ``{...}`` substrings, left to right by opening brace.

    Braces inside JSON string literals are ignored. Nested objects are yielded
    after their enclosing object.
    """
    for start, ch in enumerate(text):
        if ch != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            c = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    yield text[start : pos + 1]
                    break


def parse_decision(raw: Optional[str]) -> DecisionResponse:
    """Parse ``raw`` into a decision or raise ``ParseFailure``.

    Indices are de-duplicated but not range-checked; range policy belongs to
    the caller.
    """
    text = (raw or "").strip()
    if not text:
        raise ParseFailure("empty classifier response")

    decision = _as_decision(_loads(text))
    if decision is not None:
        return decision

    for span in iter_object_spans(text):
        decision = _as_decision(_loads(span))
        if decision is not None:
            return decision

    first, last = text.find("{"), text.rfind("}")
    if first != -1 and last > first:
        decision = _as_decision(_loads(text[first : last + 1]))
        if decision is not None:
            return decision

    raise ParseFailure(
        "classifier response has no redact_indices array", detail=text[:200]
    )


__all__ = ["iter_object_spans", "parse_decision"]
