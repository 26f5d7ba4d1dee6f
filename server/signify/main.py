"""Signify FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from signify import __version__
from signify.api import public_router, router as api_router
from signify.config import Settings, configure_logging, get_settings
from signify.db import create_db_engine, create_session_factory, init_models
from signify.errors import AggregationInconsistency, SignifyError, ValidationError
from signify.services.auth_service import auth_service
from signify.services.document_service import document_service
from signify.services.kudos_service import kudos_service
from signify.services.replay_service import replay_service
from signify.services.verification_service import verification_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings

    # Tests install their own session factory before startup
    if getattr(app.state, "session_factory", None) is None:
        engine = create_db_engine(settings)
        await init_models(engine)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        logger.info("Database ready")

    yield

    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()


def _request_fields(exc: RequestValidationError) -> dict[str, list[str]]:
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        # Drop the leading "body"/"query"/"path" segment
        loc = [str(part) for part in error["loc"][1:]] or [str(error["loc"][0])]
        fields.setdefault(".".join(loc), []).append(error["msg"])
    return fields


def configure_services(settings: Settings) -> None:
    """Point the service singletons at one settings object."""
    for service in (
        auth_service,
        document_service,
        kudos_service,
        replay_service,
        verification_service,
    ):
        service.configure(settings)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create FastAPI application."""
    settings = settings or get_settings()
    configure_logging(settings)
    configure_services(settings)

    app = FastAPI(
        title="Signify",
        description="Keystroke-verified writing and publishing",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(public_router)

    @app.exception_handler(SignifyError)
    async def signify_error_handler(request: Request, exc: SignifyError):
        if isinstance(exc, AggregationInconsistency):
            logger.error("Aggregation failed on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        error = ValidationError("Validation failed", _request_fields(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "detail": "Internal server error"},
        )

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "signify.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
