"""Pluggable redaction classifier with a Google Gemini implementation.

The default implementation targets Gemini's ``generateContent`` REST endpoint.
Reply envelopes have changed across API versions, so the generated text is
recovered by trying an ordered chain of envelope decoders before falling back
to treating the whole body as opaque text.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import orjson
import requests

from .errors import ClassifierUnavailable, ConfigurationError, UnexpectedAdapterError
from .logging import get_logger
from .models import DecisionRequest
from .prompts import render_prompt
from .settings import DEFAULT_GEMINI_URL, DEFAULT_MODEL

logger = get_logger(__name__)


class Classifier:
    """Turns a ``DecisionRequest`` into the classifier's raw reply text."""

    def check_configured(self) -> None:
        """Raise ``ConfigurationError`` when the classifier cannot be used at all."""
        return None

    def classify(self, request: DecisionRequest) -> str:  # noqa: D401
        """Return raw reply text. Implement in subclasses."""
        raise NotImplementedError


@dataclass
class ClassifierConfig:
    """Explicit classifier configuration; never read from globals."""

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_GEMINI_URL
    timeout: float = 20.0
    max_output_tokens: int = 512
    temperature: float = 0.0
    prompt_path: Optional[str] = None

    @property
    def endpoint(self) -> str:
        model = self.model.strip()
        if model.startswith("models/"):
            model = model[len("models/"):]
        return f"{self.base_url.rstrip('/')}/models/{model}:generateContent"


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return orjson.dumps(value).decode("utf-8")


def _first_candidate(payload: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if isinstance(candidates, list) and candidates and isinstance(candidates[0], dict):
        return candidates[0]
    return None


def _candidate_parts(payload: Any) -> Optional[str]:
    """``{"candidates": [{"content": {"parts": [{"text": ...}]}}]}``"""
    candidate = _first_candidate(payload)
    if candidate is None:
        return None
    content = candidate.get("content")
    if not isinstance(content, dict) or not isinstance(content.get("parts"), list):
        return None
    texts = [
        part["text"]
        for part in content["parts"]
        if isinstance(part, dict) and isinstance(part.get("text"), str)
    ]
    return "".join(texts) if texts else None


def _candidate_output(payload: Any) -> Optional[str]:
    """``{"candidates": [{"output": ...}]}`` from the legacy text endpoint."""
    candidate = _first_candidate(payload)
    if candidate is None or not candidate.get("output"):
        return None
    return _as_text(candidate["output"])


def _output_list(payload: Any) -> Optional[str]:
    """``{"output": [{"content": ...}, ...]}``"""
    if not isinstance(payload, dict):
        return None
    output = payload.get("output")
    if not isinstance(output, list) or not output:
        return None
    first = output[0]
    if not isinstance(first, dict) or not first.get("content"):
        return None
    return "\n".join(
        _as_text(o["content"]) if isinstance(o, dict) and o.get("content") else ""
        for o in output
    )


def _result_content(payload: Any) -> Optional[str]:
    """``{"result": {"content": ...}}``"""
    if not isinstance(payload, dict):
        return None
    result = payload.get("result")
    if not isinstance(result, dict) or not result.get("content"):
        return None
    return _as_text(result["content"])


ENVELOPE_DECODERS: List[Callable[[Any], Optional[str]]] = [
    _candidate_parts,
    _candidate_output,
    _output_list,
    _result_content,
]


def unwrap_response(payload: Any) -> str:
    """Extract generated text from a classifier reply body.

    Decoders in ``ENVELOPE_DECODERS`` are tried in order; when none matches the
    whole body is re-serialised and returned as text.
    """
    if isinstance(payload, str):
        return payload
    for decoder in ENVELOPE_DECODERS:
        text = decoder(payload)
        if text is not None:
            return text
    return _as_text(payload)


class GeminiClassifier(Classifier):
    """Single-attempt Gemini client. Resilience comes from the fallback heuristics."""

    def __init__(self, config: ClassifierConfig) -> None:
        self.config = config

    def check_configured(self) -> None:
        if not self.config.api_key:
            raise ConfigurationError("Server missing GOOGLE_API_KEY env var")

    def classify(self, request: DecisionRequest) -> str:
        self.check_configured()
        try:
            prompt = render_prompt(request, self.config.prompt_path)
        except (OSError, UnicodeDecodeError) as exc:
            raise UnexpectedAdapterError(f"cannot read prompt: {exc}") from exc
        return self.generate(prompt)

    def generate(self, prompt: str) -> str:
        """POST ``prompt`` to ``generateContent`` and return the reply text.

        Raises
        ------
        ClassifierUnavailable
            On connection errors, timeouts, or non-2xx responses.
        UnexpectedAdapterError
            On any other failure while calling the endpoint.
        """
        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key or "",
        }
        logger.debug(
            "classifier.request",
            extra={"extra": {"model": self.config.model, "prompt_chars": len(prompt)}},
        )
        try:
            r = requests.post(
                self.config.endpoint,
                json=body,
                headers=headers,
                timeout=self.config.timeout,
            )
            r.raise_for_status()
        except requests.RequestException as exc:
            raise ClassifierUnavailable(
                "classifier request failed", detail=str(exc)
            ) from exc
        except Exception as exc:
            raise UnexpectedAdapterError(str(exc)) from exc
        try:
            payload = r.json()
        except ValueError:
            return r.text
        return unwrap_response(payload)


__all__ = [
    "Classifier",
    "ClassifierConfig",
    "GeminiClassifier",
    "ENVELOPE_DECODERS",
    "unwrap_response",
]
