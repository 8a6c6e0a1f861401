from PIL import Image

import redactlens.settings as settings
import redactlens.ui as ui
from redactlens.models import Token


def _fake_ocr(img, lang="eng", **kwargs):
    return [
        Token(text="Email:", conf=95, bbox=(0, 0, 30, 10)),
        Token(text="jane@example.com", conf=93, bbox=(35, 0, 90, 10)),
    ]


def test_requires_image():
    redacted, rows, summary = ui._run_pipeline(None, "autodetect", "", "fill", "#000000", 8, True)
    assert redacted is None
    assert rows == []
    assert summary["status"] == "error"


def test_offline_pipeline_marks_rows(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    settings.reset_settings_cache()
    monkeypatch.setattr(ui, "image_ocr_tokens", _fake_ocr)
    img = Image.new("RGB", (100, 12), (255, 255, 255))
    redacted, rows, summary = ui._run_pipeline(img, "autodetect", "", "fill", "#000000", 8, False)
    assert redacted.getpixel((60, 5)) == (0, 0, 0)
    assert [r[4] for r in rows] == [False, True]
    assert summary["source"] == "fallback"
    assert summary["note"] == "fallback heuristics used"


def test_no_tokens_reports_error(monkeypatch):
    monkeypatch.setattr(ui, "image_ocr_tokens", lambda img, lang="eng", **kw: [])
    img = Image.new("RGB", (10, 10))
    redacted, rows, summary = ui._run_pipeline(img, "autodetect", "", "fill", "#000000", 8, False)
    assert redacted is None
    assert summary == {"status": "error", "message": "No OCR items provided"}


def test_gemini_without_key_reports_configuration_error(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    settings.reset_settings_cache()
    monkeypatch.setattr(ui, "image_ocr_tokens", _fake_ocr)
    img = Image.new("RGB", (100, 12), (255, 255, 255))
    redacted, rows, summary = ui._run_pipeline(img, "autodetect", "", "fill", "#000000", 8, True)
    assert redacted is None
    assert summary == {"status": "error", "message": "Server missing GOOGLE_API_KEY env var"}
    assert [r[4] for r in rows] == [False, False]
