"""
FastAPI Dependency Injection Providers.

Architecture:
    1. get_settings() - loads and caches application configuration
    2. create_app() builds one SpeechService and stores it on app.state
    3. get_speech_service() hands that service to route handlers

    The service (and with it the engine and the admission gate) lives
    exactly as long as the app, so tests can build isolated apps with
    their own fake engines.

Usage in Route Handlers:
    from fastapi import Depends
    from lms_speaks.api.dependencies import get_speech_service

    @router.get("/v1/audio/voices")
    def voices(service: SpeechService = Depends(get_speech_service)):
        return service.list_voices()

See Also:
    - core/config.py: Settings and load_settings()
    - main.py: create_app()
"""
from __future__ import annotations

from functools import lru_cache

from fastapi import Request

from lms_speaks.core.config import Settings, default_settings_path, load_settings
from lms_speaks.services.speech_service import SpeechService


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    The path is $LMS_SPEAKS_SETTINGS or config/settings.yaml; a missing
    file means defaults plus environment overrides.
    """
    return load_settings(default_settings_path())


def get_speech_service(request: Request) -> SpeechService:
    """The SpeechService created for this application by create_app()."""
    return request.app.state.speech_service
