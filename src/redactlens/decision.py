"""Decision pipeline: request building, classification, parsing and fallback.

States run ``BUILT -> REQUESTED -> {PARSED_OK, PARSE_FAILED} -> FINALIZED``.
Classifier unavailability and unparsable replies both end in the fallback
heuristics, so a run that passes its pre-conditions always yields a decision.
Empty input and missing credentials are raised before the first state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Union

from .classifier import Classifier
from .errors import ClassifierUnavailable, ParseFailure, RedactLensError
from .heuristics import fallback_classify
from .logging import get_logger
from .models import DecisionResponse, Mode
from .parser import parse_decision
from .request import TokenLike, build_request

logger = get_logger(__name__)


class PipelineState(str, Enum):
    BUILT = "built"
    REQUESTED = "requested"
    PARSED_OK = "parsed_ok"
    PARSE_FAILED = "parse_failed"
    FINALIZED = "finalized"


@dataclass
class DecisionOutcome:
    """Final decision plus provenance for logging, metrics and UI."""

    response: DecisionResponse
    source: str  # "classifier" | "fallback"
    states: List[PipelineState] = field(default_factory=list)
    dropped_indices: List[int] = field(default_factory=list)
    error: Optional[str] = None


def _describe(exc: RedactLensError) -> str:
    return f"{exc.message}: {exc.detail}" if exc.detail else exc.message


class DecisionPipeline:
    """Run one redaction decision.

    ``classifier=None`` skips the external call and goes straight to the
    fallback heuristics.
    """

    def __init__(self, classifier: Optional[Classifier] = None) -> None:
        self.classifier = classifier

    def run(
        self,
        tokens: Sequence[TokenLike],
        mode: Union[Mode, str, None] = Mode.AUTODETECT,
        custom_targets: Optional[Union[str, Iterable[Any]]] = None,
    ) -> DecisionOutcome:
        request = build_request(tokens, mode, custom_targets)
        if self.classifier is not None:
            self.classifier.check_configured()

        states = [PipelineState.BUILT]
        error: Optional[str] = None
        response: Optional[DecisionResponse] = None

        if self.classifier is None:
            error = "classifier disabled"
        else:
            states.append(PipelineState.REQUESTED)
            try:
                raw = self.classifier.classify(request)
                response = parse_decision(raw)
                states.append(PipelineState.PARSED_OK)
            except (ClassifierUnavailable, ParseFailure) as exc:
                error = _describe(exc)
                logger.warning(
                    "decision.classifier_failed",
                    extra={"extra": {"reason": type(exc).__name__, "detail": exc.detail}},
                )

        if response is None:
            states.append(PipelineState.PARSE_FAILED)
            response = fallback_classify(tokens, request.mode, request.custom_targets)
            source = "fallback"
        else:
            source = "classifier"

        count = len(request.items)
        dropped = [i for i in response.redact_indices if not 0 <= i < count]
        if dropped:
            response = response.within(count)
        states.append(PipelineState.FINALIZED)

        logger.info(
            "decision.finalized",
            extra={
                "extra": {
                    "source": source,
                    "mode": request.mode.value,
                    "items": count,
                    "selected": len(response.redact_indices),
                    "dropped": len(dropped),
                    "states": [s.value for s in states],
                }
            },
        )
        return DecisionOutcome(
            response=response,
            source=source,
            states=states,
            dropped_indices=dropped,
            error=error,
        )


def decide(
    tokens: Sequence[TokenLike],
    mode: Union[Mode, str, None] = Mode.AUTODETECT,
    custom_targets: Optional[Union[str, Iterable[Any]]] = None,
    classifier: Optional[Classifier] = None,
) -> DecisionResponse:
    """Shortcut returning only the ``DecisionResponse`` of one pipeline run."""
    return DecisionPipeline(classifier).run(tokens, mode, custom_targets).response


__all__ = ["PipelineState", "DecisionOutcome", "DecisionPipeline", "decide"]
