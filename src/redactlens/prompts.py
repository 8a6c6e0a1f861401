"""Prompt templating for the redaction classifier.

Rendering is a pure function of the ``DecisionRequest``; the HTTP transport in
``redactlens.classifier`` only ever sees the finished text.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Optional

from .models import DecisionRequest

DECISION_PROMPT_FALLBACK = """\
You are a JSON-only assistant. INPUT is a JSON object with "mode" ("autodetect" or "custom"), \
"customTargets" (array of strings), and "items" (array of {"index": integer, "text": string}).

Your job: return a JSON object with a single key "redact_indices" which is an array of integers \
(the indices of items that should be redacted).
Rules:
- If "mode" is "autodetect", mark items that are sensitive personal information: payment card \
numbers, full names, street addresses, phone numbers, email addresses, government ID, passport, \
account or bank routing numbers, coordinate triples such as in-game or geographic coordinates \
(for example "123 64 -200"), or other PII. Use common sense: if an item is just a single common \
word (like "Hello") do not redact it.
- If "mode" is "custom", mark items whose text matches (case-insensitive) any entry in \
"customTargets" or contains one of those entries as a substring. A keyword target such as \
"credit_card" also matches numeric groups that look like card numbers.
- Respond with exactly one JSON object and nothing else.
- Example output: {"redact_indices":[0,2,5]}"""


@lru_cache(maxsize=16)
def _read_text_cached(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def load_prompt(explicit_path: Optional[str], fallback: str = DECISION_PROMPT_FALLBACK) -> str:
    """Resolve instruction text from an explicit file, else the built-in template."""

    if explicit_path:
        path_obj = Path(explicit_path)
        if path_obj.exists():
            return _read_text_cached(str(path_obj.resolve()))
    return fallback


def render_prompt(request: DecisionRequest, prompt_path: Optional[str] = None) -> str:
    """Embed the JSON-encoded request after the instruction text."""

    instructions = load_prompt(prompt_path)
    payload = json.dumps(request.to_prompt_payload(), ensure_ascii=False)
    return f"{instructions}\n\nHere is the INPUT:\n{payload}\n"


__all__ = ["DECISION_PROMPT_FALLBACK", "load_prompt", "render_prompt"]
