# app.py
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import APP_VERSION, Settings
from errors import AnalysisError, InvalidImageError
from schemas import (
    AnalysisData,
    AnalysisMetadata,
    AnalysisOptions,
    AnalysisResult,
    Base64AnalyzeRequest,
    ErrorResponse,
    UploadedImage,
)
from services.image_processing import (
    ALLOWED_FORMATS,
    MAX_FILE_SIZE,
    decode_image_data,
    sanitize_filename,
    to_data_url,
    validate_image,
)
from services.rate_limit import (
    GENERAL_REQUESTS_PER_HOUR,
    analysis_limits,
    limiter,
    limits_for,
    rate_limit_exceeded_handler,
    rate_limiting_disabled,
    release_limits,
    use_limits,
)
from services.rating import enrich
from services.response_parser import parse_analysis
from services.vision_client import VisionClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _error_response(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=message, code=code, timestamp=_now_iso(), **extra)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


# --- Analysis pipeline ---------------------------------------------------
async def run_analysis(
    request: Request,
    image: Optional[UploadedImage],
    options: AnalysisOptions,
    input_type: str,
    image_data: Optional[str] = None,
) -> JSONResponse:
    """
    validate -> encode -> vision call (with retries) -> parse -> enrich.
    Every failure is returned as a JSON body carrying the analysis id and
    elapsed time.
    """
    started = time.monotonic()
    analysis_id = str(uuid.uuid4())
    logger.info("starting %s analysis %s", input_type, analysis_id)

    try:
        if image is None and image_data is not None:
            image = decode_image_data(image_data)
        validation = validate_image(image)
        logger.info("analysis %s: image ok (%s, %d bytes, %s)",
                    analysis_id, validation.format, validation.size, sanitize_filename(image.filename))

        data_url = to_data_url(image.data, image.mime_type)
        reply = await request.app.state.vision_client.analyze(data_url, options)
        enriched = enrich(parse_analysis(reply.text))

        elapsed = _elapsed_ms(started)
        metadata = AnalysisMetadata(
            model=reply.model,
            tokensUsed=reply.tokens_used,
            attempt=reply.attempt,
            processingTimeMs=elapsed,
            imageFormat=validation.format,
            imageSize=validation.size,
            inputType=input_type,
            timestamp=_now_iso(),
        )
        result = AnalysisResult(
            analysisId=analysis_id,
            data=AnalysisData(**enriched.model_dump(), metadata=metadata),
        )
        logger.info("analysis %s completed in %dms", analysis_id, elapsed)
        return JSONResponse(result.model_dump())

    except AnalysisError as e:
        logger.error("analysis %s failed: %s (%s)", analysis_id, e.message, e.code)
        details = [i.code for i in e.issues] if isinstance(e, InvalidImageError) else None
        return _error_response(
            e.status_code, e.message, e.code,
            analysisId=analysis_id, processingTime=_elapsed_ms(started), details=details,
        )
    except Exception:
        logger.exception("analysis %s failed unexpectedly", analysis_id)
        return _error_response(
            500, "Analysis failed", "ANALYSIS_ERROR",
            analysisId=analysis_id, processingTime=_elapsed_ms(started),
        )


# --- Analyze endpoints ---------------------------------------------------
@router.post("/api/analyze")
@limiter.limit(analysis_limits, exempt_when=rate_limiting_disabled)
async def analyze(
    request: Request,
    image: Optional[UploadFile] = File(None),
    focusAreas: Optional[str] = Form(None),
    analysisType: Optional[str] = Form(None),
    includeAdvice: Optional[str] = Form(None),
):
    """Analyze one uploaded photo (multipart field `image`)."""
    options = AnalysisOptions(
        focusAreas=focusAreas,
        analysisType=analysisType or "comprehensive",
        includeAdvice=(includeAdvice or "").lower() != "false",
    )
    uploaded = None
    if image is not None:
        # one byte past the limit is enough to report FILE_TOO_LARGE
        data = await image.read(MAX_FILE_SIZE + 1)
        uploaded = UploadedImage(
            data=data,
            size_bytes=image.size if image.size is not None else len(data),
            mime_type=image.content_type or "",
            filename=image.filename or "",
        )
    return await run_analysis(request, uploaded, options, "multipart")


@router.post("/api/analyze/base64")
@limiter.limit(analysis_limits, exempt_when=rate_limiting_disabled)
async def analyze_base64(request: Request, body: Base64AnalyzeRequest):
    """Analyze a photo sent as a data URL or raw base64 string."""
    return await run_analysis(request, None, body.options, "base64", image_data=body.imageData or "")


# --- Auxiliary endpoints -------------------------------------------------
@router.get("/api/test-ai")
async def test_ai(request: Request):
    client: VisionClient = request.app.state.vision_client
    logger.info("testing %s connection", client.provider)
    result = await client.test_connection()
    return {"success": result["connected"], "service": client.provider, **result}


@router.get("/api/analyze/formats")
async def formats():
    return {
        "success": True,
        "formats": {
            "allowed": ALLOWED_FORMATS,
            "maxFileSize": MAX_FILE_SIZE,
            "maxFileSizeMB": MAX_FILE_SIZE // 1024 // 1024,
            "recommendations": [
                "Use high-quality images for best results",
                "Ensure good lighting and clear facial features",
                "Avoid heavily filtered or edited photos",
                "Front-facing photos work best for analysis",
            ],
        },
    }


@router.get("/api/analyze/limits")
async def limits(request: Request):
    return {
        "success": True,
        "limits": {
            "analysis": request.app.state.rate_limits.analysis,
            "requestsPerHour": GENERAL_REQUESTS_PER_HOUR,
            "enabled": request.app.state.rate_limits.enabled,
            "maxFileSize": f"{MAX_FILE_SIZE // 1024 // 1024}MB",
            "allowedFormats": ALLOWED_FORMATS,
        },
        "timestamp": _now_iso(),
    }


@router.get("/health")
async def health(request: Request):
    return {
        "status": "healthy",
        "timestamp": _now_iso(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "environment": request.app.state.settings.environment,
    }


@router.get("/")
async def root():
    return {"message": "Photo rating API", "version": APP_VERSION, "status": "running"}


# --- Error handlers ------------------------------------------------------
async def _analysis_error_handler(request: Request, exc: AnalysisError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.code)


async def _http_error_handler(request: Request, exc: StarletteHTTPException):
    code = "ROUTE_NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
    return _error_response(exc.status_code, str(exc.detail), code)


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return _error_response(400, "Invalid request", "VALIDATION_ERROR", details=details)


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    message = "Internal server error"
    if request.app.state.settings.is_development:
        message = f"{message}: {type(exc).__name__}"
    return _error_response(500, message, "INTERNAL_ERROR")


# --- App factory ---------------------------------------------------------
def create_app(settings: Optional[Settings] = None, vision_client: Optional[VisionClient] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Photo rating API", version=APP_VERSION)
    app.state.settings = settings
    app.state.vision_client = vision_client or VisionClient(settings)
    app.state.started_at = time.monotonic()
    app.state.limiter = limiter
    app.state.rate_limits = limits_for(settings)

    @app.middleware("http")
    async def bind_rate_limits(request: Request, call_next):
        token = use_limits(request.app.state.rate_limits)
        try:
            return await call_next(request)
        finally:
            release_limits(token)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(AnalysisError, _analysis_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
    app.include_router(router)

    logger.info("%s provider, model %s, key %s, env %s",
                settings.provider, settings.model, settings.masked_key, settings.environment)
    return app


app = create_app()


# If run directly for local dev
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="0.0.0.0", port=app.state.settings.port, reload=app.state.settings.is_development)
