"""
FastAPI Application Entry Point.

Creates the lms-speaks application: logging, one SpeechService (engine
plus admission gate), the OpenAI-compatible router and the service
routes.

Routers:
    - OpenAI-compatible API: /v1/audio/speech, /v1/audio/voices, /v1/models
    - Service: /health, /metrics

Usage:
    # Run through the CLI (reads server.host / server.port)
    lms-speaks --serve

    # Or with uvicorn directly
    uvicorn lms_speaks.main:create_app --factory --host 127.0.0.1 --port 8880
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from lms_speaks import __version__
from lms_speaks.api.dependencies import get_settings
from lms_speaks.api.openai_compat import router as openai_router
from lms_speaks.api.openai_compat import validation_error_handler
from lms_speaks.api.routes import router
from lms_speaks.core.config import Settings
from lms_speaks.core.logging import configure_logging, get_logger, info
from lms_speaks.services.speech_service import SpeechService

_LOG = get_logger("lms-speaks.main")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    service: SpeechService = app.state.speech_service
    info(_LOG, "startup", engine=service.engine.name, version=__version__)
    yield
    close = getattr(service.engine, "close", None)
    if callable(close):
        close()
    info(_LOG, "shutdown")


def create_app(settings: Optional[Settings] = None, service: Optional[SpeechService] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; loaded from disk/env when omitted.
        service: Prebuilt SpeechService (tests inject one with a fake engine).

    Returns:
        FastAPI: Configured application instance.
    """
    if settings is None:
        settings = service.settings if service is not None else get_settings()
    # No-op when the CLI has already configured logging from the same settings.
    configure_logging(config=settings.raw.get("logging") or {})

    if service is None:
        service = SpeechService(settings)

    app = FastAPI(title="lms-speaks", version=__version__, lifespan=_lifespan)
    app.state.speech_service = service

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(openai_router)    # /v1/audio/speech, /v1/audio/voices, /v1/models
    app.include_router(router)           # /health, /metrics

    return app
