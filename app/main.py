import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.config import Settings, get_settings, setup_logging
from app.errors import (
    AnalysisError,
    ConfigurationError,
    InvalidCredentialError,
    SamplingCancelledError,
    SamplingError,
    VideoAnalyzerError,
)
from app.utils.recording import RecordingStore

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (InvalidCredentialError, 401),
    (AnalysisError, 502),
    (SamplingCancelledError, 409),
    (SamplingError, 422),
    (ConfigurationError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Video Vision Analyzer starting with model %s", settings.openai_model)
    yield
    app.state.recordings.clear()


async def handle_app_error(request: Request, exc: VideoAnalyzerError) -> JSONResponse:
    status_code = next((code for kind, code in _STATUS_BY_ERROR if isinstance(exc, kind)), 500)
    logger.warning("%s %s failed (%s): %s", request.method, request.url.path, exc.category, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": exc.category})


def get_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(title="Video Vision Analyzer", version="0.2.0", lifespan=lifespan)
    app.state.recordings = RecordingStore()
    app.add_exception_handler(VideoAnalyzerError, handle_app_error)

    @app.get("/health", include_in_schema=False)
    async def health(settings: Settings = Depends(get_settings)) -> JSONResponse:
        if not settings.openai_api_key:
            raise HTTPException(status_code=500, detail="OPENAI_API_KEY not configured")
        return JSONResponse({"status": "ok"})

    app.include_router(api_router, prefix="/api/v1")
    return app


app = get_app()
