import pytesseract

from redactlens.health import _check_tesseract, run_readiness_checks
from redactlens.settings import ServiceSettings


def _installed(monkeypatch, langs):
    monkeypatch.setattr(pytesseract, "get_tesseract_version", lambda: "5.3.0")
    monkeypatch.setattr(pytesseract, "get_languages", lambda config="": list(langs))


def test_multi_language_setting_passes_when_all_packs_present(monkeypatch):
    _installed(monkeypatch, ["eng", "deu", "osd"])
    assert _check_tesseract("eng+deu").status == "pass"


def test_missing_pack_in_multi_language_setting_warns(monkeypatch):
    _installed(monkeypatch, ["eng", "osd"])
    result = _check_tesseract("eng+deu")
    assert result.status == "warn"
    assert "deu" in result.detail
    assert "eng" not in result.detail


def test_readiness_checks_classifier_credentials():
    checks = run_readiness_checks(ServiceSettings(google_api_key=None, readiness_check_ocr=False))
    assert [(c.name, c.status) for c in checks] == [("classifier", "fail")]
