"""Gradio UI for interactive image redaction.

Upload an image, pick ``autodetect`` or ``custom`` mode, choose a colored fill
or blur, and download the redacted PNG. The OCR token list is shown with its
indices so the decision can be checked against what Tesseract read.

Run from CLI after install:

- `redactlens ui`

Notes
-----
- With "Use Gemini" ticked, a missing ``GOOGLE_API_KEY`` is reported as an
  error. Untick it to let the local regex heuristics decide.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from PIL import Image

from .classifier import Classifier, GeminiClassifier
from .decision import DecisionPipeline
from .errors import RedactLensError
from .metrics import DECISIONS
from .ocr import image_ocr_tokens
from .redact import redact_image
from .settings import get_settings

TOKEN_COLUMNS = ["index", "text", "conf", "bbox", "redacted"]


def _classifier(use_gemini: bool) -> Optional[Classifier]:
    if not use_gemini:
        return None
    return GeminiClassifier(get_settings().classifier_config())


def _run_pipeline(
    image: Optional[Image.Image],
    mode: str,
    custom_targets: str,
    fill: str,
    color: str,
    blur_radius: float,
    use_gemini: bool,
) -> Tuple[Optional[Image.Image], List[List[Any]], Dict[str, Any]]:
    """Run OCR, decision and rendering for one uploaded image.

    Returns
    -------
    redacted:
        Redacted image, or ``None`` on failure.
    rows:
        Token table rows matching ``TOKEN_COLUMNS``.
    summary:
        A short status dict to render in the UI.
    """
    if image is None:
        return None, [], {"status": "error", "message": "Upload an image first."}
    if image.mode != "RGB":
        image = image.convert("RGB")

    tokens = image_ocr_tokens(image, lang=get_settings().ocr_lang)
    try:
        outcome = DecisionPipeline(_classifier(use_gemini)).run(
            tokens, mode, custom_targets
        )
        selected = outcome.response.redact_indices
        redacted = redact_image(
            image,
            tokens,
            selected,
            fill=fill,
            fill_rgb=color,
            blur_radius=blur_radius,
        )
    except RedactLensError as exc:
        rows = [[i, t.text, t.conf, list(t.bbox), False] for i, t in enumerate(tokens)]
        return None, rows, {"status": "error", "message": exc.message}

    DECISIONS.labels(source=outcome.source).inc()
    chosen = set(selected)
    rows = [
        [i, t.text, t.conf, list(t.bbox), i in chosen] for i, t in enumerate(tokens)
    ]
    summary: Dict[str, Any] = {
        "status": "ok",
        "tokens": len(tokens),
        "redacted": len(selected),
        "source": outcome.source,
    }
    if outcome.response.note:
        summary["note"] = outcome.response.note
    return redacted, rows, summary


def build_interface():
    """Construct and return the Gradio Blocks interface."""
    import gradio as gr  # local import to avoid hard dependency at import time

    with gr.Blocks(title="RedactLens") as demo:
        gr.Markdown(
            "# RedactLens\n"
            "Upload an image. Tesseract reads the words, Gemini (or the local "
            "heuristics) picks the sensitive ones, and they are filled or blurred."
        )
        with gr.Row():
            with gr.Column():
                image_in = gr.Image(type="pil", label="Original")
                mode = gr.Radio(
                    ["autodetect", "custom"], value="autodetect", label="Mode"
                )
                targets = gr.Textbox(
                    label="Custom targets (comma separated)",
                    placeholder="secret, credit_card, minecraft_coords",
                )
                fill = gr.Radio(
                    [("Colored fill", "fill"), ("Blur", "blur")],
                    value="fill",
                    label="Redaction style",
                )
                color = gr.ColorPicker(value="#000000", label="Fill color")
                blur_radius = gr.Slider(1, 30, value=8, step=1, label="Blur radius")
                use_gemini = gr.Checkbox(value=True, label="Use Gemini")
                run_btn = gr.Button("Redact", variant="primary")
            with gr.Column():
                image_out = gr.Image(type="pil", format="png", label="Redacted")
                summary = gr.JSON(label="Summary")
        tokens_table = gr.Dataframe(headers=TOKEN_COLUMNS, label="OCR tokens")

        run_btn.click(
            _run_pipeline,
            inputs=[image_in, mode, targets, fill, color, blur_radius, use_gemini],
            outputs=[image_out, tokens_table, summary],
        )
    return demo


def launch(**kwargs: Any) -> None:
    """Launch the Gradio app; ``kwargs`` are passed to ``Blocks.launch``."""
    build_interface().launch(**kwargs)
