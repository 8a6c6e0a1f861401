import io

import pandas as pd
import pytest
from PIL import Image

import redactlens.ocr as ocr
from redactlens.errors import ValidationError
from redactlens.ocr import image_ocr_tokens, load_image, tokens_from_frame


def _frame(rows):
    return pd.DataFrame(rows, columns=["text", "conf", "left", "top", "width", "height"])


def test_tokens_from_frame_builds_boxes_and_skips_blanks():
    df = _frame(
        [
            ("", -1, 0, 0, 100, 50),
            ("Hello", 96.5, 10, 20, 30, 12),
            (float("nan"), -1, 0, 0, 1, 1),
            ("  ", 50, 0, 0, 1, 1),
            ("4111", -1, 50, 20, 40, 12),
        ]
    )
    tokens = tokens_from_frame(df)
    assert [t.text for t in tokens] == ["Hello", "4111"]
    assert tokens[0].bbox == (10.0, 20.0, 40.0, 32.0)
    assert tokens[0].conf == 96.5
    assert tokens[1].conf == 0.0


def test_tokens_from_empty_frame():
    assert tokens_from_frame(_frame([])) == []


def test_load_image_converts_to_rgb():
    buf = io.BytesIO()
    Image.new("L", (8, 4), 128).save(buf, format="PNG")
    img = load_image(buf.getvalue())
    assert img.mode == "RGB"
    assert img.size == (8, 4)


@pytest.mark.parametrize("data", [b"", b"definitely not an image"])
def test_load_image_rejects_bad_bytes(data):
    with pytest.raises(ValidationError):
        load_image(data)


def test_auto_psm_keeps_richest_result(monkeypatch):
    seen = []

    def fake_image_to_data(img, lang=None, config=None, output_type=None, pandas_config=None):
        seen.append(config)
        if "--psm 11" in config:
            return _frame([(w, 90, i * 10, 0, 8, 8) for i, w in enumerate("abcdef")])
        return _frame([("only", 90, 0, 0, 8, 8)])

    monkeypatch.setattr(ocr.pytesseract, "image_to_data", fake_image_to_data)
    tokens = image_ocr_tokens(Image.new("RGB", (80, 20)), preprocess=False)
    assert [t.text for t in tokens] == list("abcdef")
    assert [c.split("--psm ")[1].split()[0] for c in seen] == ["3", "6", "4", "11"]


def test_auto_psm_disabled(monkeypatch):
    calls = []

    def fake_image_to_data(img, **kwargs):
        calls.append(kwargs["config"])
        return _frame([("one", 90, 0, 0, 8, 8)])

    monkeypatch.setattr(ocr.pytesseract, "image_to_data", fake_image_to_data)
    tokens = image_ocr_tokens(Image.new("RGB", (10, 10)), preprocess=False, auto_psm=False)
    assert len(tokens) == 1
    assert len(calls) == 1
