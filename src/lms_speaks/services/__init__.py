"""
lms-speaks Services Layer.

Business logic between the API layer and the engine layer.

Components:
    - speech_service.py: SpeechService (synthesis orchestrator)
    - validators.py: Input validation functions

The SpeechService class handles:
    - Request validation
    - Concurrency admission
    - Error translation and reporting
    - Request logging and metrics
"""
from .speech_service import (
    AdmissionRefusedError,
    ErrorCode,
    InvalidInputError,
    SpeechError,
    SpeechResult,
    SpeechService,
    SynthesisError,
)

__all__ = [
    "SpeechService",
    "SpeechResult",
    "SpeechError",
    "SynthesisError",
    "AdmissionRefusedError",
    "InvalidInputError",
    "ErrorCode",
]
