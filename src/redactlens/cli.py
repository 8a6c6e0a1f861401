"""Command-line interface for RedactLens.

Provides:
- `ocr`: Extract word tokens from an image as JSON.
- `decide`: Run the decision pipeline over a JSON file of OCR items.
- `redact`: OCR, decide and render one or more images to PNG.
- `serve`: Launch the FastAPI service.
- `ui`: Launch the Gradio UI.
"""

from pathlib import Path
from typing import Any, List, Optional

import orjson
import typer
from pydantic import ValidationError as PydanticValidationError
from rich import print
from tqdm import tqdm

from .classifier import Classifier, GeminiClassifier
from .decision import DecisionPipeline
from .errors import RedactLensError, ValidationError
from .models import Token
from .ocr import image_ocr_tokens, load_image
from .redact import draw_preview, redact_image, to_png_bytes
from .settings import get_settings

app = typer.Typer(add_completion=False, help="RedactLens image redactor")


def _classifier(offline: bool) -> Optional[Classifier]:
    if offline:
        return None
    return GeminiClassifier(get_settings().classifier_config())


def _fail(exc: RedactLensError) -> None:
    print(f"[red]{exc.message}[/red]")
    if exc.detail:
        print(f"[red]{exc.detail}[/red]")
    raise typer.Exit(code=1)


def _load_items(path: Path) -> tuple[List[Token], dict]:
    try:
        data: Any = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise ValidationError("Items file is not valid JSON", detail=str(exc)) from exc
    meta = data if isinstance(data, dict) else {}
    raw_items = data.get("items", []) if isinstance(data, dict) else data
    try:
        return [Token.model_validate(it) for it in raw_items or []], meta
    except PydanticValidationError as exc:
        raise ValidationError("Invalid OCR item", detail=str(exc)) from exc


@app.command()
def ocr(
    input: Path = typer.Option(..., "--input", "-i", help="Input image path"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write tokens JSON here instead of stdout"
    ),
    lang: Optional[str] = typer.Option(None, help="Tesseract language"),
    psm: int = typer.Option(3, help="Tesseract PSM"),
    preprocess: bool = typer.Option(
        True, "--preprocess/--no-preprocess", help="Grayscale/binarize before OCR"
    ),
):
    """Extract OCR tokens from an image."""
    try:
        img = load_image(input.read_bytes())
    except RedactLensError as exc:
        _fail(exc)
    tokens = image_ocr_tokens(
        img, lang=lang or get_settings().ocr_lang, psm=psm, preprocess=preprocess
    )
    body = orjson.dumps(
        {"items": [t.model_dump() for t in tokens]}, option=orjson.OPT_INDENT_2
    )
    if output:
        output.write_bytes(body)
        print(f"[green]{len(tokens)} tokens:[/green] {output}")
    else:
        typer.echo(body.decode("utf-8"))


@app.command()
def decide(
    items: Path = typer.Option(..., "--items", help="JSON list of OCR items, or {items, mode, customTargets}"),
    mode: Optional[str] = typer.Option(None, help="autodetect | custom"),
    targets: Optional[str] = typer.Option(
        None, help="Comma-separated custom targets"
    ),
    offline: bool = typer.Option(
        False, "--offline", help="Skip Gemini and use the local heuristics only"
    ),
):
    """Print the redaction decision for a set of OCR items."""
    try:
        tokens, meta = _load_items(items)
        eff_mode = mode or meta.get("mode") or "autodetect"
        eff_targets = targets if targets is not None else meta.get("customTargets")
        outcome = DecisionPipeline(_classifier(offline)).run(
            tokens, eff_mode, eff_targets
        )
    except RedactLensError as exc:
        _fail(exc)
    typer.echo(orjson.dumps(outcome.response.to_payload()).decode("utf-8"))


@app.command()
def redact(
    inputs: List[Path] = typer.Argument(..., help="Input image paths"),
    output_dir: Path = typer.Option(
        Path("."), "--output-dir", "-o", help="Directory for redacted PNGs"
    ),
    mode: str = typer.Option("autodetect", help="autodetect | custom"),
    targets: str = typer.Option("", help="Comma-separated custom targets"),
    fill: str = typer.Option("fill", help="fill | blur"),
    color: str = typer.Option("#000000", help="Fill color (hex or CSS name)"),
    blur_radius: float = typer.Option(8.0, help="Gaussian blur radius (px)"),
    inflate: int = typer.Option(1, help="Inflate redaction boxes (px)"),
    lang: Optional[str] = typer.Option(None, help="Tesseract language"),
    offline: bool = typer.Option(
        False, "--offline", help="Skip Gemini and use the local heuristics only"
    ),
    preview: bool = typer.Option(
        False, "--preview/--no-preview", help="Also write an outline preview"
    ),
):
    """Redact sensitive text from images and write PNGs.

    Parameters
    ----------
    inputs:
        Image files to process.
    output_dir:
        Where ``<stem>.redacted.png`` and ``<stem>.meta.json`` are written.
    mode:
        ``autodetect`` or ``custom``.
    targets:
        Substring targets for ``custom`` mode.
    fill:
        ``fill`` for solid color boxes or ``blur``.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    pipeline = DecisionPipeline(_classifier(offline))
    ocr_lang = lang or get_settings().ocr_lang
    done = 0
    for path in tqdm(inputs, desc="OCR+Decide+Redact"):
        try:
            img = load_image(path.read_bytes())
            tokens = image_ocr_tokens(img, lang=ocr_lang)
            outcome = pipeline.run(tokens, mode, targets)
            indices = outcome.response.redact_indices
            redacted = redact_image(
                img,
                tokens,
                indices,
                fill=fill,
                fill_rgb=color,
                blur_radius=blur_radius,
                inflate_px=inflate,
            )
        except RedactLensError as exc:
            print(f"[red]{path}:[/red] {exc.message}")
            continue
        out_png = output_dir / f"{path.stem}.redacted.png"
        out_png.write_bytes(to_png_bytes(redacted))
        if preview:
            (output_dir / f"{path.stem}.preview.png").write_bytes(
                to_png_bytes(draw_preview(img, tokens, indices))
            )
        meta = {
            "input": str(path),
            "output": str(out_png),
            "source": outcome.source,
            "items": [t.model_dump() for t in tokens],
            **outcome.response.to_payload(),
        }
        (output_dir / f"{path.stem}.meta.json").write_bytes(
            orjson.dumps(meta, option=orjson.OPT_INDENT_2)
        )
        done += 1
        print(f"[green]Redacted:[/green] {out_png} ({len(indices)} regions, {outcome.source})")
    if done < len(inputs):
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind host"),
    port: Optional[int] = typer.Option(None, help="Bind port"),
    reload: bool = typer.Option(False, help="Auto-reload on code changes"),
):
    """Run the FastAPI service with uvicorn."""
    from .api import run

    run(host=host, port=port, reload=reload)


@app.command()
def ui(
    host: str = typer.Option(
        "127.0.0.1",
        help="Host to bind the UI server (use 0.0.0.0 only when intentional)",
    ),
    port: int = typer.Option(7860, help="Port for the UI server"),
    inbrowser: bool = typer.Option(False, help="Open browser on launch"),
):
    """Launch the Gradio-based UI."""
    from .ui import launch as launch_ui

    launch_ui(server_name=host, server_port=port, inbrowser=inbrowser)


if __name__ == "__main__":
    app()
