"""Service configuration helpers for deployment environments.

This module centralises runtime configuration read from environment variables.
It is intentionally lightweight so it can be imported from the CLI, the Gradio
UI and FastAPI without side effects. The classifier never reads the
environment itself; it receives an explicit ``ClassifierConfig`` built here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from typing import TYPE_CHECKING, List, Optional
import os

if TYPE_CHECKING:
    from .classifier import ClassifierConfig


DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta"


def _parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "f", "no", "n", "off"}:
        return False
    return default


def _split_csv(value: str | None) -> List[str]:
    if not value:
        return []
    parts = [p.strip() for p in value.split(",") if p.strip()]
    return parts


@dataclass
class ServiceSettings:
    """Runtime settings for the API, CLI and UI."""

    api_host: str = "127.0.0.1"
    api_port: int = 8000
    api_token: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    google_api_key: Optional[str] = None
    gen_model: str = DEFAULT_MODEL
    gemini_url: str = DEFAULT_GEMINI_URL
    classifier_timeout: float = 20.0
    max_output_tokens: int = 512
    prompt_path: Optional[str] = None
    ocr_lang: str = "eng"
    readiness_check_ocr: bool = True
    allowance_warn_only_checks: bool = True

    @staticmethod
    def from_env() -> "ServiceSettings":
        cors_raw = os.environ.get("REDACTLENS_API_CORS_ORIGINS")
        settings = ServiceSettings(
            api_host=os.environ.get("REDACTLENS_API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("REDACTLENS_API_PORT", "8000")),
            api_token=os.environ.get("REDACTLENS_API_TOKEN") or None,
            cors_origins=_split_csv(cors_raw),
            google_api_key=os.environ.get("GOOGLE_API_KEY") or None,
            gen_model=os.environ.get("GEN_MODEL") or DEFAULT_MODEL,
            gemini_url=os.environ.get("REDACTLENS_GEMINI_URL") or DEFAULT_GEMINI_URL,
            classifier_timeout=float(
                os.environ.get("REDACTLENS_CLASSIFIER_TIMEOUT", "20")
            ),
            max_output_tokens=int(
                os.environ.get("REDACTLENS_MAX_OUTPUT_TOKENS", "512")
            ),
            prompt_path=os.environ.get("REDACTLENS_PROMPT_PATH") or None,
            ocr_lang=os.environ.get("REDACTLENS_OCR_LANG") or "eng",
            readiness_check_ocr=_parse_bool(
                os.environ.get("REDACTLENS_READY_CHECK_OCR"), default=True
            ),
            allowance_warn_only_checks=_parse_bool(
                os.environ.get("REDACTLENS_READY_WARN_ONLY"), default=True
            ),
        )
        return settings

    def classifier_config(self) -> "ClassifierConfig":
        """Build the explicit classifier configuration from these settings."""
        from .classifier import ClassifierConfig

        return ClassifierConfig(
            api_key=self.google_api_key,
            model=self.gen_model,
            base_url=self.gemini_url,
            timeout=self.classifier_timeout,
            max_output_tokens=self.max_output_tokens,
            prompt_path=self.prompt_path,
        )


@lru_cache(maxsize=1)
def get_settings() -> ServiceSettings:
    """Return cached service settings."""
    return ServiceSettings.from_env()


def reset_settings_cache() -> None:
    """Reset cached settings (useful in tests)."""
    get_settings.cache_clear()  # type: ignore[attr-defined]
