"""OCR utilities.

Functions in this module decode uploaded images and extract word-level tokens
(text, confidence and bounding box) using Tesseract.

Enhancements for difficult images:
- Optional preprocessing (grayscale, binarize) using OpenCV
- Optional deskew to correct small rotation angles (moves token boxes, so it
  is off by default)
- Optional auto-PSM retry to maximize token recovery on noisy images
"""

from __future__ import annotations

import io
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import pandas as pd
import pytesseract
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ValidationError
from .models import Token


def load_image(data: bytes) -> Image.Image:
    """Decode raw upload bytes into an RGB PIL image.

    EXIF orientation is applied so OCR boxes match what the user sees.

    Raises
    ------
    ValidationError
        If the bytes are empty or not a decodable image.
    """
    if not data:
        raise ValidationError("No image data provided")
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Unsupported or corrupt image") from exc
    img = ImageOps.exif_transpose(img)
    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def _preprocess_image(
    img: Image.Image,
    *,
    deskew: bool = False,
    binarize: bool = True,
) -> Image.Image:
    """Apply simple preprocessing to improve OCR robustness.

    - Convert to grayscale
    - Optional deskew using a Hough-based heuristic
    - Optional binarization with adaptive threshold
    """
    arr = np.array(img)
    if arr.ndim == 3:
        gray = cv2.cvtColor(arr, cv2.COLOR_RGB2GRAY)
    else:
        gray = arr
    work = gray
    if deskew:
        edges = cv2.Canny(work, 50, 150)
        lines = cv2.HoughLines(edges, 1, np.pi / 180, threshold=120)
        if lines is not None and len(lines) > 0:
            angles = []
            for rho_theta in lines[:200]:
                _, theta = rho_theta[0]
                angle = (theta * 180 / np.pi) - 90
                if angle > 45:
                    angle -= 90
                if angle < -45:
                    angle += 90
                angles.append(angle)
            if angles:
                med = float(np.median(angles))
                if 0.3 < abs(med) < 8.0:
                    h, w = work.shape[:2]
                    M = cv2.getRotationMatrix2D((w / 2, h / 2), med, 1.0)
                    work = cv2.warpAffine(
                        work,
                        M,
                        (w, h),
                        flags=cv2.INTER_LINEAR,
                        borderMode=cv2.BORDER_REPLICATE,
                    )
    if binarize:
        work = cv2.adaptiveThreshold(
            work, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 35, 15
        )
    return Image.fromarray(work)


def tokens_from_frame(tsv: pd.DataFrame) -> List[Token]:
    """Convert a pytesseract ``image_to_data`` DataFrame into tokens.

    Rows without text are dropped; reading order is preserved.
    """
    tokens: List[Token] = []
    if tsv is None or len(tsv) == 0:
        return tokens
    for row in tsv.itertuples(index=False):
        raw = getattr(row, "text", "")
        if raw is None or (isinstance(raw, float) and pd.isna(raw)):
            continue
        text = str(raw).strip()
        if not text:
            continue
        left, top = float(row.left), float(row.top)
        tokens.append(
            Token(
                text=text,
                conf=float(row.conf),
                bbox=(left, top, left + float(row.width), top + float(row.height)),
            )
        )
    return tokens


def image_ocr_tokens(
    img: Image.Image,
    lang: str = "eng",
    psm: int = 3,
    *,
    preprocess: bool = True,
    deskew: bool = False,
    binarize: bool = True,
    auto_psm: bool = True,
    tess_configs: Optional[Dict[str, Any]] = None,
) -> List[Token]:
    """Run Tesseract OCR on an image and return word tokens.

    Parameters
    ----------
    img:
        Input image to OCR.
    lang:
        Tesseract language code.
    psm:
        Page segmentation mode (0-13).
    preprocess:
        Grayscale/binarize the image before recognition.
    auto_psm:
        Retry alternate PSMs when fewer than five words were found.

    Returns
    -------
    list[Token]
        Tokens in reading order; empty for blank or unreadable images.
    """
    if preprocess:
        img = _preprocess_image(img, deskew=deskew, binarize=binarize)

    cfg = {"preserve_interword_spaces": 1}
    if tess_configs:
        cfg.update(tess_configs)
    extra = "".join(f" -c {k}={v}" for k, v in cfg.items())

    def run(psm_value: int) -> pd.DataFrame:
        # Keep words like "NA" or "4111" as literal strings.
        return pytesseract.image_to_data(
            img,
            lang=lang,
            config=f"--oem 1 --psm {psm_value}{extra}",
            output_type=pytesseract.Output.DATAFRAME,
            pandas_config={"keep_default_na": False, "dtype": {"text": str}},
        )

    tokens = tokens_from_frame(run(psm))
    if auto_psm and len(tokens) < 5:
        best = tokens
        for alt in (6, 4, 11):
            if alt == psm:
                continue
            try:
                alt_tokens = tokens_from_frame(run(alt))
            except pytesseract.TesseractError:
                continue
            if len(alt_tokens) > len(best):
                best = alt_tokens
        tokens = best
    return tokens


__all__ = ["load_image", "image_ocr_tokens", "tokens_from_frame"]
