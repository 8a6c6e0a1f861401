"""Infrastructure readiness checks for API probes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .settings import ServiceSettings


@dataclass
class HealthCheckResult:
    name: str
    status: str  # "pass" | "fail" | "warn"
    detail: Optional[str] = None
    required: bool = True


def _check_tesseract(lang: str) -> HealthCheckResult:
    import pytesseract

    try:
        pytesseract.get_tesseract_version()
    except Exception as exc:  # pragma: no cover - depends on runtime
        return HealthCheckResult(name="tesseract", status="fail", detail=str(exc))

    try:
        available = set(pytesseract.get_languages(config=""))
    except Exception:
        available = set()
    if not available:
        return HealthCheckResult(
            name="tesseract",
            status="warn",
            detail="Could not enumerate language packs; ensure tessdata is mounted.",
        )
    missing = [code for code in lang.split("+") if code and code not in available]
    if missing:
        return HealthCheckResult(
            name="tesseract",
            status="warn",
            detail=f"Missing language pack(s): {', '.join(missing)}",
        )
    return HealthCheckResult(name="tesseract", status="pass")


def _check_classifier_credentials(settings: ServiceSettings) -> HealthCheckResult:
    if not settings.google_api_key:
        return HealthCheckResult(
            name="classifier",
            status="fail",
            detail="GOOGLE_API_KEY is not set",
        )
    return HealthCheckResult(name="classifier", status="pass")


def run_readiness_checks(settings: ServiceSettings) -> List[HealthCheckResult]:
    checks: List[HealthCheckResult] = [_check_classifier_credentials(settings)]
    if settings.readiness_check_ocr:
        checks.append(_check_tesseract(settings.ocr_lang))
    return checks
