"""Data shapes shared by the decision pipeline, the renderer and the API."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class Mode(str, Enum):
    """How the classifier decides which tokens are sensitive."""

    AUTODETECT = "autodetect"
    CUSTOM = "custom"


class Token(BaseModel):
    """One OCR-recognized word.

    ``bbox`` is ``(x0, y0, x1, y1)`` in pixel coordinates of the source image.
    Tokens are referenced by their position in the list supplied with a
    request, never by a persistent id.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = ""
    conf: float = Field(
        default=0.0, validation_alias=AliasChoices("conf", "confidence")
    )
    bbox: Tuple[float, float, float, float]

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("conf")
    @classmethod
    def _clamp_conf(cls, value: float) -> float:
        # Tesseract reports -1 for rows that are not words.
        return max(0.0, min(100.0, float(value)))

    @model_validator(mode="after")
    def _check_bbox(self) -> "Token":
        x0, y0, x1, y1 = self.bbox
        if x0 > x1 or y0 > y1:
            raise ValueError("bbox must satisfy x0 <= x1 and y0 <= y1")
        return self

    @property
    def width(self) -> float:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> float:
        return self.bbox[3] - self.bbox[1]


class RequestItem(BaseModel):
    """Projection of a token sent to the classifier: position and text only."""

    index: int
    text: str


class DecisionRequest(BaseModel):
    """Normalized payload for one classification round."""

    mode: Mode = Mode.AUTODETECT
    custom_targets: List[str] = Field(default_factory=list)
    items: List[RequestItem] = Field(default_factory=list)

    def to_prompt_payload(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "customTargets": list(self.custom_targets),
            "items": [item.model_dump() for item in self.items],
        }


class DecisionResponse(BaseModel):
    """Token indices selected for redaction plus an optional diagnostic note."""

    redact_indices: List[int] = Field(default_factory=list)
    note: Optional[str] = None

    def within(self, count: int) -> "DecisionResponse":
        """Return a copy keeping only indices in ``[0, count)``."""
        kept = [i for i in self.redact_indices if 0 <= i < count]
        return self.model_copy(update={"redact_indices": kept})

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


__all__ = ["Mode", "Token", "RequestItem", "DecisionRequest", "DecisionResponse"]
