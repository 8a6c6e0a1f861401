"""Build the normalized decision request sent to the classifier.

Only token positions and texts leave this module; bounding boxes and OCR
confidences are never exposed to the classifier.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import ValidationError
from .models import DecisionRequest, Mode, RequestItem, Token

NO_ITEMS_MESSAGE = "No OCR items provided"

TokenLike = Union[Token, Mapping[str, Any], str]


def text_of(token: TokenLike) -> str:
    """Return the text of a ``Token``, a ``{"text": ...}`` mapping, or a string."""
    if isinstance(token, Token):
        return token.text
    if isinstance(token, Mapping):
        value = token.get("text")
        return "" if value is None else str(value)
    if token is None:
        return ""
    return str(token)


def coerce_mode(mode: Union[Mode, str, None]) -> Mode:
    if mode is None:
        return Mode.AUTODETECT
    if isinstance(mode, Mode):
        return mode
    try:
        return Mode(str(mode).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported mode: {mode!r}") from None


def normalize_targets(targets: Optional[Union[str, Iterable[Any]]]) -> List[str]:
    """Trim custom targets and drop blanks, keeping order and duplicates.

    A single string is treated as a comma-separated list.
    """
    if targets is None:
        return []
    if isinstance(targets, str):
        targets = targets.split(",")
    elif not isinstance(targets, (list, tuple)):
        raise ValidationError("customTargets must be a list of strings")
    out: List[str] = []
    for target in targets:
        if target is None:
            continue
        cleaned = str(target).strip()
        if cleaned:
            out.append(cleaned)
    return out


def build_request(
    tokens: Sequence[TokenLike],
    mode: Union[Mode, str, None] = Mode.AUTODETECT,
    custom_targets: Optional[Union[str, Iterable[Any]]] = None,
) -> DecisionRequest:
    """Project tokens into a ``DecisionRequest``.

    Parameters
    ----------
    tokens:
        OCR tokens in document order. Must be a non-empty list.
    mode:
        ``autodetect`` or ``custom``.
    custom_targets:
        Substring targets for ``custom`` mode.

    Raises
    ------
    ValidationError
        If ``tokens`` is empty or not a list, or ``mode`` is unknown.
    """
    if not isinstance(tokens, (list, tuple)) or len(tokens) == 0:
        raise ValidationError(NO_ITEMS_MESSAGE)
    resolved_mode = coerce_mode(mode)
    items = [RequestItem(index=i, text=text_of(tok)) for i, tok in enumerate(tokens)]
    return DecisionRequest(
        mode=resolved_mode,
        custom_targets=normalize_targets(custom_targets),
        items=items,
    )


__all__ = [
    "NO_ITEMS_MESSAGE",
    "TokenLike",
    "build_request",
    "coerce_mode",
    "normalize_targets",
    "text_of",
]
