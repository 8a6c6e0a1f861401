import importlib
import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import redactlens.settings as settings
from redactlens.classifier import Classifier
from redactlens.errors import ClassifierUnavailable, UnexpectedAdapterError
from redactlens.health import HealthCheckResult
from redactlens.models import Token


class FakeClassifier(Classifier):
    def __init__(self, reply='{"redact_indices": []}', exc=None):
        self.reply = reply
        self.exc = exc

    def classify(self, request):
        if self.exc is not None:
            raise self.exc
        return self.reply


def _make_client(monkeypatch, *, api_key="test-key", token=None):
    if api_key:
        monkeypatch.setenv("GOOGLE_API_KEY", api_key)
    else:
        monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    if token:
        monkeypatch.setenv("REDACTLENS_API_TOKEN", token)
    else:
        monkeypatch.delenv("REDACTLENS_API_TOKEN", raising=False)
    monkeypatch.setenv("REDACTLENS_READY_CHECK_OCR", "false")
    settings.reset_settings_cache()
    import redactlens.api as api  # noqa: F401

    api = importlib.reload(api)
    return TestClient(api.app), api


def _use(monkeypatch, api, classifier):
    monkeypatch.setattr(api, "_make_classifier", lambda: classifier)


ITEMS = [
    {"text": "Hello", "conf": 96, "bbox": [0, 0, 40, 12]},
    {"text": "4111 1111 1111 1111", "conf": 91, "bbox": [50, 0, 200, 12]},
]


def test_decision_from_classifier(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier('Sure: {"redact_indices": [1]}'))
    resp = client.post("/api/gemini", json={"items": ITEMS, "mode": "autodetect"})
    assert resp.status_code == 200
    assert resp.json() == {"redact_indices": [1]}


def test_decide_alias(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier('{"redact_indices": [0]}'))
    resp = client.post("/api/decide", json={"items": ITEMS})
    assert resp.json() == {"redact_indices": [0]}


@pytest.mark.parametrize("body", [{"items": []}, {"items": "nope"}, {}, []])
def test_empty_items_rejected(monkeypatch, body):
    client, _ = _make_client(monkeypatch)
    resp = client.post("/api/gemini", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "No OCR items provided"}


def test_empty_items_checked_before_credentials(monkeypatch):
    client, _ = _make_client(monkeypatch, api_key=None)
    resp = client.post("/api/gemini", json={"items": []})
    assert resp.status_code == 400


def test_missing_api_key(monkeypatch):
    client, _ = _make_client(monkeypatch, api_key=None)
    resp = client.post("/api/gemini", json={"items": ITEMS})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Server missing GOOGLE_API_KEY env var"}


def test_unavailable_classifier_falls_back(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier(exc=ClassifierUnavailable("down")))
    resp = client.post("/api/gemini", json={"items": ITEMS, "mode": "autodetect"})
    assert resp.status_code == 200
    assert resp.json() == {"redact_indices": [1], "note": "fallback heuristics used"}


def test_garbage_reply_falls_back(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier("no idea"))
    resp = client.post(
        "/api/gemini",
        json={"items": ITEMS, "mode": "custom", "customTargets": ["hello"]},
    )
    assert resp.json() == {"redact_indices": [0, 1], "note": "fallback heuristics used"}


def test_unexpected_error_is_500(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier(exc=UnexpectedAdapterError("boom")))
    resp = client.post("/api/gemini", json={"items": ITEMS})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Gemini call failed", "detail": "boom"}


def test_out_of_range_indices_never_returned(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier('{"redact_indices": [1, 9]}'))
    resp = client.post("/api/gemini", json={"items": ITEMS})
    assert resp.json() == {"redact_indices": [1]}


def test_invalid_item_rejected(monkeypatch):
    client, _ = _make_client(monkeypatch)
    bad = [{"text": "x", "conf": 90, "bbox": [10, 0, 5, 5]}]
    resp = client.post("/api/gemini", json={"items": bad})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid OCR item at index 0"


def test_non_list_custom_targets_rejected(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier())
    resp = client.post(
        "/api/gemini", json={"items": ITEMS, "mode": "custom", "customTargets": 5}
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "customTargets must be a list of strings"}


def test_unsupported_mode_rejected(monkeypatch):
    client, api = _make_client(monkeypatch)
    _use(monkeypatch, api, FakeClassifier())
    resp = client.post("/api/gemini", json={"items": ITEMS, "mode": "paranoid"})
    assert resp.status_code == 400


def test_get_not_allowed(monkeypatch):
    client, _ = _make_client(monkeypatch)
    assert client.get("/api/gemini").status_code == 405


def test_bearer_token_required(monkeypatch):
    client, api = _make_client(monkeypatch, token="super-secret")
    _use(monkeypatch, api, FakeClassifier('{"redact_indices": [1]}'))
    assert client.post("/api/gemini", json={"items": ITEMS}).status_code == 401
    resp_ok = client.post(
        "/api/gemini",
        headers={"Authorization": "Bearer super-secret"},
        json={"items": ITEMS},
    )
    assert resp_ok.status_code == 200


def _png(size=(220, 20)):
    buf = io.BytesIO()
    Image.new("RGB", size, (255, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


def _fake_ocr(img, lang="eng", **kwargs):
    return [Token.model_validate(item) for item in ITEMS]


def test_ocr_endpoint(monkeypatch):
    client, api = _make_client(monkeypatch)
    monkeypatch.setattr(api, "image_ocr_tokens", _fake_ocr)
    resp = client.post("/api/ocr", files={"file": ("a.png", _png(), "image/png")})
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [i["text"] for i in items] == ["Hello", "4111 1111 1111 1111"]
    assert items[0]["bbox"] == [0, 0, 40, 12]


def test_ocr_rejects_non_image(monkeypatch):
    client, _ = _make_client(monkeypatch)
    resp = client.post("/api/ocr", files={"file": ("a.txt", b"hello", "text/plain")})
    assert resp.status_code == 400


def test_redact_endpoint_returns_png(monkeypatch):
    client, api = _make_client(monkeypatch)
    monkeypatch.setattr(api, "image_ocr_tokens", _fake_ocr)
    _use(monkeypatch, api, FakeClassifier('{"redact_indices": [1]}'))
    resp = client.post(
        "/api/redact",
        files={"file": ("a.png", _png(), "image/png")},
        data={"mode": "autodetect", "fill": "fill", "color": "#ff0000"},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/png"
    assert resp.headers["x-redact-indices"] == "1"
    assert resp.headers["x-redact-source"] == "classifier"
    out = Image.open(io.BytesIO(resp.content))
    assert out.getpixel((100, 6)) == (255, 0, 0)
    assert out.getpixel((20, 6)) == (255, 255, 255)


def test_redact_endpoint_fallback_note(monkeypatch):
    client, api = _make_client(monkeypatch)
    monkeypatch.setattr(api, "image_ocr_tokens", _fake_ocr)
    _use(monkeypatch, api, FakeClassifier(exc=ClassifierUnavailable("down")))
    resp = client.post(
        "/api/redact",
        files={"file": ("a.png", _png(), "image/png")},
        data={"fill": "blur"},
    )
    assert resp.status_code == 200
    assert resp.headers["x-redact-source"] == "fallback"
    assert resp.headers["x-redact-note"] == "fallback heuristics used"


def test_health(monkeypatch):
    client, _ = _make_client(monkeypatch)
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/livez").status_code == 200


def test_readyz_reflects_health(monkeypatch):
    client, api = _make_client(monkeypatch)

    def fake_checks(_settings):
        return [HealthCheckResult(name="tesseract", status="fail", detail="missing", required=True)]

    monkeypatch.setattr(api, "run_readiness_checks", fake_checks)
    resp = client.get("/readyz")
    assert resp.status_code == 503
    payload = resp.json()
    assert payload["ready"] is False
    assert payload["checks"][0]["name"] == "tesseract"


def test_readyz_requires_api_key(monkeypatch):
    client, _ = _make_client(monkeypatch, api_key=None)
    resp = client.get("/readyz")
    assert resp.status_code == 503
    assert resp.json()["checks"][0]["name"] == "classifier"
