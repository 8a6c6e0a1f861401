"""RedactLens

OCR-driven image redaction. Tesseract extracts word tokens, a Gemini classifier
picks the sensitive ones (with a deterministic regex fallback), and Pillow
paints over them. See ``redactlens.decision`` for the decision pipeline and
``redactlens.cli`` / ``redactlens.api`` / ``redactlens.ui`` for entrypoints.
"""

__all__ = [
    "models",
    "request",
    "prompts",
    "classifier",
    "parser",
    "heuristics",
    "decision",
    "ocr",
    "redact",
    "api",
    "cli",
    "ui",
    "errors",
    "logging",
    "settings",
    "health",
    "metrics",
]

__version__ = "0.1.0"
