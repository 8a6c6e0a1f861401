"""Deterministic regex-based fallback classifier.

Used whenever the external classifier is unreachable or its reply cannot be
parsed. Everything here is a pure function over strings and uses the
third-party ``regex`` package.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

import regex as re

from .models import DecisionResponse, Mode
from .request import TokenLike, coerce_mode, normalize_targets, text_of

FALLBACK_NOTE = "fallback heuristics used"

CREDIT_RE = re.compile(r"(?:\d[ -]?){13,19}")
COORD_RE = re.compile(r"-?\d+[,\s]+-?\d+[,\s]+-?\d+")
EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(
    r"(?:\+?\d{1,3}[-.\s]?)?(?:\(?\d{3}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}"
)

DETECTORS: List[Tuple[str, Any]] = [
    ("CREDIT_CARD", CREDIT_RE),
    ("COORDINATES", COORD_RE),
    ("EMAIL", EMAIL_RE),
    ("PHONE", PHONE_RE),
]


def detect_labels(text: str) -> List[str]:
    """Return the labels of every detector that matches somewhere in ``text``."""
    return [name for name, pat in DETECTORS if pat.search(text or "")]


def looks_sensitive(text: str) -> bool:
    return any(pat.search(text or "") for _, pat in DETECTORS)


def matches_target(text: str, targets: Iterable[str]) -> bool:
    """Case-insensitive substring match against any non-empty target."""
    lowered = (text or "").lower()
    return any(t and t.lower() in lowered for t in targets)


def fallback_classify(
    tokens: Sequence[TokenLike],
    mode: Union[Mode, str, None] = Mode.AUTODETECT,
    custom_targets: Optional[Union[str, Iterable[Any]]] = None,
) -> DecisionResponse:
    """Select token indices with built-in detectors and custom targets.

    Built-in detectors apply in every mode. In ``custom`` mode a token is also
    selected when its text contains any target, case-insensitively. Indices are
    unique and ascending.
    """
    resolved = coerce_mode(mode)
    targets = normalize_targets(custom_targets) if resolved is Mode.CUSTOM else []
    selected: List[int] = []
    for idx, tok in enumerate(tokens):
        text = text_of(tok)
        if looks_sensitive(text) or (targets and matches_target(text, targets)):
            selected.append(idx)
    return DecisionResponse(redact_indices=selected, note=FALLBACK_NOTE)


__all__ = [
    "FALLBACK_NOTE",
    "DETECTORS",
    "detect_labels",
    "looks_sensitive",
    "matches_target",
    "fallback_classify",
]
