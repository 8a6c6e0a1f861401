"""Error taxonomy for the redaction decision pipeline.

Each error carries the HTTP status the API maps it to. ``ClassifierUnavailable``
and ``ParseFailure`` are recovered inside the pipeline by the fallback
heuristics and never reach end users.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class RedactLensError(Exception):
    """Base class for all RedactLens errors."""

    status_code: int = 500

    def __init__(self, message: str, *, detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


class ValidationError(RedactLensError):
    """Malformed or empty inbound request."""

    status_code = 400


class ConfigurationError(RedactLensError):
    """Required credentials or settings are missing."""

    status_code = 500


class ClassifierUnavailable(RedactLensError):
    """Network failure, timeout, or non-success status from the classifier."""

    status_code = 503


class ParseFailure(RedactLensError):
    """Classifier replied but the payload is not a redaction decision."""

    status_code = 502


class UnexpectedAdapterError(RedactLensError):
    """Any other failure during the external call; likely a bug."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__("Gemini call failed", detail=detail)


__all__ = [
    "RedactLensError",
    "ValidationError",
    "ConfigurationError",
    "ClassifierUnavailable",
    "ParseFailure",
    "UnexpectedAdapterError",
]
