# audioscribe/main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from audioscribe.api import api
from audioscribe.core.config import Settings, settings as default_settings
from audioscribe.core.errors import AudioScribeError, BadRequest
from audioscribe.db.connection import create_db_engine, create_session_factory, init_db
from audioscribe.services.pipeline import TranscriptionPipeline
from audioscribe.services.summarization import SummarizationService
from audioscribe.services.transcription import build_transcription_services

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    # Configure this BEFORE creating the FastAPI app instance so uvicorn shares the format
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)-8s - [%(name)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def describe_validation_errors(errors) -> str:
    """Flatten FastAPI's validation error list into one readable message."""
    parts = []
    for error in errors:
        # loc starts with where the value came from (body, query, path)
        loc = [str(part) for part in error.get("loc", ())[1:]]
        if error.get("type") == "json_invalid":
            parts.append("Invalid JSON body")
        elif loc:
            parts.append(f"Invalid {'.'.join(loc)}: {error.get('msg', 'invalid value')}")
        else:
            parts.append(error.get("msg", "Invalid request"))
    return "; ".join(parts) or "Invalid request"


def create_app(settings: Optional[Settings] = None, http_client: Optional[httpx.AsyncClient] = None) -> FastAPI:
    """
    Build the application. Every service is constructed here from ``settings``
    and handed to request handlers through ``app.state``.
    """
    settings = settings or default_settings

    engine = create_db_engine(settings.DATABASE_URL)
    providers = build_transcription_services(settings, http_client)
    summarizer = SummarizationService(settings, http_client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        yield
        for provider in providers.values():
            await provider.close_client()
        await summarizer.close_client()
        engine.dispose()

    app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.summarizer = summarizer
    app.state.pipeline = TranscriptionPipeline(
        providers,
        summarizer,
        uploads_dir=settings.UPLOADS_DIR,
        max_segment_chars=settings.SEGMENT_MAX_CHARS,
    )

    @app.exception_handler(AudioScribeError)
    async def handle_app_error(request: Request, exc: AudioScribeError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        """Malformed input is a bad request like any other, with a single message."""
        message = describe_validation_errors(exc.errors())
        logger.warning(f"Rejected {request.method} {request.url.path}: {message}")
        return JSONResponse(status_code=BadRequest.status_code, content={"detail": message})

    @app.middleware("http")
    async def handle_unexpected_errors(request: Request, call_next):
        """Turn database outages and unhandled errors into JSON responses."""
        try:
            return await call_next(request)
        except (InterfaceError, OperationalError) as e:
            logger.error(f"Database connection error: {str(e)}")
            return JSONResponse(
                status_code=503,
                content={"detail": "Database connection error. Please try again."},
            )
        except Exception as e:
            logger.error(f"Unhandled error: {str(e)}", exc_info=True)
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    allowed_origins = settings.cors_origins
    logger.info(f"CORS allowed origins: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    app.include_router(api.router, prefix="/api")
    logger.info(f"{settings.PROJECT_NAME} application configured, API router included at prefix /api")
    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("audioscribe.main:app", host="0.0.0.0", port=8000, reload=True)
