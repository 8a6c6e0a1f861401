"""Redaction routines.

Paints over the bounding boxes of selected tokens with either a solid color or
a Gaussian blur, and exports the result as PNG. Indices that do not address a
token are ignored rather than treated as errors.
"""

from __future__ import annotations

import io
from typing import Iterable, List, Sequence, Tuple, Union

from PIL import Image, ImageColor, ImageDraw, ImageFilter

from .errors import ValidationError
from .models import Token

Box = Tuple[int, int, int, int]
RGB = Tuple[int, int, int]

FILL_STYLES = ("fill", "blur")


def parse_color(color: Union[str, Sequence[int], None]) -> RGB:
    """Resolve ``#rrggbb``, ``#rgb``, a CSS color name, or an RGB triple."""
    if color is None or color == "":
        return (0, 0, 0)
    if isinstance(color, str):
        try:
            rgb = ImageColor.getrgb(color.strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid color: {color!r}") from exc
        return (int(rgb[0]), int(rgb[1]), int(rgb[2]))
    values = tuple(int(c) for c in color)
    if len(values) < 3 or not all(0 <= c <= 255 for c in values[:3]):
        raise ValidationError(f"Invalid color: {color!r}")
    return (values[0], values[1], values[2])


def _inflate(box: Sequence[float], px: int, W: int, H: int) -> Box:
    """Inflate an ``(x0, y0, x1, y1)`` rectangle while clamping to image bounds."""
    x0, y0, x1, y1 = box
    return (
        max(0, int(x0) - px),
        max(0, int(y0) - px),
        min(W, int(round(x1)) + px),
        min(H, int(round(y1)) + px),
    )


def select_tokens(tokens: Sequence[Token], indices: Iterable[object]) -> List[Token]:
    """Return tokens addressed by ``indices``, skipping anything out of range."""
    picked: List[Token] = []
    seen = set()
    for idx in indices:
        if not isinstance(idx, int) or isinstance(idx, bool):
            continue
        if 0 <= idx < len(tokens) and idx not in seen:
            seen.add(idx)
            picked.append(tokens[idx])
    return picked


def redact_image(
    img: Image.Image,
    tokens: Sequence[Token],
    indices: Iterable[object],
    *,
    fill: str = "fill",
    fill_rgb: Union[str, Sequence[int], None] = (0, 0, 0),
    blur_radius: float = 8.0,
    inflate_px: int = 1,
) -> Image.Image:
    """Return a redacted copy of ``img``.

    Parameters
    ----------
    img:
        Source image; left untouched.
    tokens:
        OCR tokens whose ``bbox`` is in ``img`` pixel coordinates.
    indices:
        Token positions to redact. Out-of-range values are ignored.
    fill:
        ``"fill"`` for a solid rectangle or ``"blur"`` for a Gaussian blur.
    fill_rgb:
        Fill color used when ``fill == "fill"``.
    blur_radius:
        Gaussian radius in pixels used when ``fill == "blur"``.
    inflate_px:
        Pixels to inflate each rectangle for safer coverage.
    """
    if fill not in FILL_STYLES:
        raise ValidationError(f"Unsupported fill style: {fill!r}")
    color = parse_color(fill_rgb)
    out = img.convert("RGB") if img.mode not in ("RGB", "RGBA") else img.copy()
    W, H = out.size
    draw = ImageDraw.Draw(out)
    for tok in select_tokens(tokens, indices):
        x0, y0, x1, y1 = _inflate(tok.bbox, inflate_px, W, H)
        if x1 <= x0 or y1 <= y0:
            continue
        if fill == "blur":
            region = out.crop((x0, y0, x1, y1))
            out.paste(region.filter(ImageFilter.GaussianBlur(blur_radius)), (x0, y0))
        else:
            # PIL rectangles include the far edge.
            draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=color)
    return out


def draw_preview(
    img: Image.Image,
    tokens: Sequence[Token],
    indices: Iterable[object],
    *,
    kept_color=(160, 160, 160),
    redacted_color=(255, 0, 0),
    width: int = 2,
) -> Image.Image:
    """Draw outline boxes for QA preview: red=redacted, grey=kept."""
    if img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGB")
    out = img.copy()
    draw = ImageDraw.Draw(out)
    chosen = {i for i in indices if isinstance(i, int) and not isinstance(i, bool)}
    for idx, tok in enumerate(tokens):
        color = redacted_color if idx in chosen else kept_color
        draw.rectangle(list(tok.bbox), outline=color, width=width)
    return out


def to_png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


__all__ = [
    "FILL_STYLES",
    "parse_color",
    "select_tokens",
    "redact_image",
    "draw_preview",
    "to_png_bytes",
]
