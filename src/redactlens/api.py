"""FastAPI service exposing the RedactLens decision pipeline.

Endpoints:

* ``POST /api/gemini`` (alias ``/api/decide``) takes OCR items plus a mode and
  returns the indices to redact.
* ``POST /api/ocr`` runs Tesseract on an uploaded image.
* ``POST /api/redact`` does OCR, decision and rendering in one shot and
  returns a PNG.
* ``/health``, ``/livez`` and ``/readyz`` are probes; ``/metrics`` serves
  Prometheus counters.

Errors are rendered as ``{"error": ..., "detail"?: ...}``.

Run locally::

    uvicorn redactlens.api:app --host 0.0.0.0 --port 8000

Or via console script::

    redactlens-api
"""

from __future__ import annotations

from typing import Any, List, Literal, Optional, Tuple

from fastapi import (
    APIRouter,
    Body,
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    Security,
    UploadFile,
    status,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from prometheus_client import make_asgi_app
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from . import __version__
from .classifier import Classifier, GeminiClassifier
from .decision import DecisionOutcome, DecisionPipeline
from .errors import RedactLensError, ValidationError
from .health import run_readiness_checks
from .logging import get_logger
from .metrics import DECISIONS, REQUESTS
from .models import DecisionResponse, Token
from .ocr import image_ocr_tokens, load_image
from .redact import redact_image, to_png_bytes
from .request import NO_ITEMS_MESSAGE
from .settings import ServiceSettings, get_settings

settings: ServiceSettings = get_settings()
logger = get_logger(__name__)

auth_scheme = HTTPBearer(auto_error=False)


class OcrResponse(BaseModel):
    items: List[Token]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"


class ReadinessCheckModel(BaseModel):
    name: str
    status: Literal["pass", "warn", "fail"]
    detail: Optional[str] = None
    required: bool


class ReadyResponse(BaseModel):
    ready: bool
    checks: List[ReadinessCheckModel]


app = FastAPI(
    title="RedactLens API",
    description="OCR-driven image redaction with a Gemini classifier and local fallback heuristics.",
    version=__version__,
    openapi_tags=[
        {"name": "health", "description": "Service health and readiness probes."},
        {"name": "redaction", "description": "OCR, redaction decisions and rendering."},
    ],
)

if settings.cors_origins:
    allow_origins = ["*"] if "*" in settings.cors_origins else settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.mount("/metrics", make_asgi_app())


@app.exception_handler(RedactLensError)
async def _handle_redactlens_error(request: Request, exc: RedactLensError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "api.error",
            extra={"extra": {"path": request.url.path, "error": exc.message, "detail": exc.detail}},
        )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    detail = errors[0].get("msg") if errors else None
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Malformed request", "detail": detail},
    )


health_router = APIRouter(tags=["health"])
api_router = APIRouter(prefix="/api", tags=["redaction"])


def require_auth(
    credentials: HTTPAuthorizationCredentials = Security(auth_scheme),
) -> None:
    """Optional bearer-token protection."""

    token = settings.api_token
    if token is None:
        return
    if credentials is None or credentials.credentials != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def _make_classifier() -> Classifier:
    return GeminiClassifier(settings.classifier_config())


def _parse_items(payload: Any) -> List[Token]:
    items = payload.get("items") if isinstance(payload, dict) else None
    if not isinstance(items, list) or not items:
        raise ValidationError(NO_ITEMS_MESSAGE)
    tokens: List[Token] = []
    for idx, raw in enumerate(items):
        try:
            tokens.append(Token.model_validate(raw))
        except PydanticValidationError as exc:
            errors = exc.errors()
            raise ValidationError(
                f"Invalid OCR item at index {idx}",
                detail=errors[0].get("msg") if errors else None,
            ) from exc
    return tokens


def _run_pipeline(tokens: List[Token], mode: Any, targets: Any) -> DecisionOutcome:
    outcome = DecisionPipeline(_make_classifier()).run(tokens, mode, targets)
    DECISIONS.labels(source=outcome.source).inc()
    return outcome


@health_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    REQUESTS.labels(route="health").inc()
    return HealthResponse()


@health_router.get("/livez", response_model=HealthResponse)
def livez() -> HealthResponse:
    return HealthResponse(status="ok")


@health_router.get("/readyz", response_model=ReadyResponse)
def readyz():
    checks = run_readiness_checks(settings)
    ready = True
    payload: List[ReadinessCheckModel] = []
    for check in checks:
        payload.append(
            ReadinessCheckModel(
                name=check.name,
                status=check.status,
                detail=check.detail,
                required=check.required,
            )
        )
        if check.required and check.status == "fail":
            ready = False
        if (
            check.required
            and check.status == "warn"
            and not settings.allowance_warn_only_checks
        ):
            ready = False
    response = ReadyResponse(ready=ready, checks=payload)
    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=response.model_dump())


@api_router.post(
    "/gemini", response_model=DecisionResponse, response_model_exclude_none=True
)
@api_router.post(
    "/decide", response_model=DecisionResponse, response_model_exclude_none=True
)
def decide_redactions(
    payload: Any = Body(None),
    auth: None = Depends(require_auth),
) -> DecisionResponse:
    """Return the indices of OCR items to redact."""

    REQUESTS.labels(route="decide").inc()
    tokens = _parse_items(payload)
    mode = payload.get("mode", "autodetect")
    targets = payload.get("customTargets", [])
    return _run_pipeline(tokens, mode, targets).response


def _read_upload(file: UploadFile) -> bytes:
    return file.file.read()


@api_router.post("/ocr", response_model=OcrResponse)
def ocr_upload(
    file: UploadFile = File(...),
    auth: None = Depends(require_auth),
) -> OcrResponse:
    REQUESTS.labels(route="ocr").inc()
    img = load_image(_read_upload(file))
    return OcrResponse(items=image_ocr_tokens(img, lang=settings.ocr_lang))


def _redaction_headers(outcome: DecisionOutcome) -> List[Tuple[str, str]]:
    headers = [
        ("X-Redact-Indices", ",".join(str(i) for i in outcome.response.redact_indices)),
        ("X-Redact-Source", outcome.source),
    ]
    if outcome.response.note:
        headers.append(("X-Redact-Note", outcome.response.note))
    return headers


@api_router.post("/redact")
def redact_upload(
    file: UploadFile = File(...),
    mode: str = Form("autodetect"),
    customTargets: str = Form(""),
    fill: Literal["fill", "blur"] = Form("fill"),
    color: str = Form("#000000"),
    blurRadius: float = Form(8.0),
    auth: None = Depends(require_auth),
) -> Response:
    """OCR, decide and render in one request; responds with a PNG."""

    REQUESTS.labels(route="redact").inc()
    img = load_image(_read_upload(file))
    tokens = image_ocr_tokens(img, lang=settings.ocr_lang)
    outcome = _run_pipeline(tokens, mode, customTargets)
    redacted = redact_image(
        img,
        tokens,
        outcome.response.redact_indices,
        fill=fill,
        fill_rgb=color,
        blur_radius=blurRadius,
    )
    return Response(
        content=to_png_bytes(redacted),
        media_type="image/png",
        headers=dict(_redaction_headers(outcome)),
    )


app.include_router(health_router)
app.include_router(api_router)


def run(
    host: Optional[str] = None,
    port: Optional[int] = None,
    reload: bool = False,
    workers: int = 1,
    log_level: str = "info",
) -> None:
    """Launch the API server via ``uvicorn``."""

    import uvicorn

    bind_host = host or settings.api_host
    bind_port = port or settings.api_port
    uvicorn.run(
        "redactlens.api:app",
        host=bind_host,
        port=bind_port,
        reload=reload,
        workers=workers,
        log_level=log_level,
    )
