"""
SpeechService - Synthesis Orchestrator.

This module provides the SpeechService class, which both the HTTP API
and the CLI go through. It wraps the active engine with:

    - Validation: text presence/length, voice sanity
    - Admission: an owned AdmissionGate bounding in-flight synthesis
    - Error translation: engine failures -> SpeechError with ErrorCode
    - Logging and metrics: per-request timing, status and audio size

Architecture:
    Request -> Validate -> Admit -> Engine.synthesize -> Release -> Result

Error Handling:
    - SpeechError: Base exception with standardized error codes
    - SynthesisError: Engine failure; message is the engine's diagnostic text
    - AdmissionRefusedError: Gate full; retryable, never a synthesis failure
    - InvalidInputError: Request failed validation

Example:
    >>> from lms_speaks.core.config import Settings
    >>> from lms_speaks.services import SpeechService
    >>> from lms_speaks.tts.engine import SynthesisRequest
    >>>
    >>> service = SpeechService(Settings(raw={"tts": {"engine": "system"}}))
    >>> result = service.synthesize(SynthesisRequest(text="Hello"), request_id="req-1")
    >>> result.format
    <AudioFormat.WAV: 'wav'>
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from lms_speaks import __version__
from lms_speaks.core.config import Settings
from lms_speaks.core.logging import debug, fail, get_logger, info, success, warn
from lms_speaks.core.metrics import SpeechMetrics
from lms_speaks.services.validators import ValidationError, validate_text, validate_voice
from lms_speaks.tts.concurrency import AdmissionGate, AdmissionRefused
from lms_speaks.tts.engine import (
    DEFAULT_MODELS,
    AudioFormat,
    BaseSpeechEngine,
    ModelRecord,
    SynthesisRequest,
    VoiceRecord,
    create_engine,
    default_voice_record,
)
from lms_speaks.tts.errors import (
    EngineError,
    ProcessFailedError,
    ProcessTimeoutError,
    RemoteFailureError,
    ToolNotFoundError,
)
from lms_speaks.tts.process import ProcessRunner
from lms_speaks.utils.timeit import timeit

_LOG = get_logger("lms-speaks.service")


# =============================================================================
# Error Codes and Exceptions
# =============================================================================

class ErrorCode:
    """
    Standardized error codes for API responses.

    Carried in SpeechError.code and returned in the ``code`` field of
    OpenAI-style error bodies.
    """
    INVALID_INPUT = "INVALID_INPUT"             # Bad request data
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"       # Engine failure (generic)
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"           # Speech binary (and fallback) missing
    PROCESS_FAILED = "PROCESS_FAILED"           # Non-zero exit, spawn failure or timeout
    REMOTE_FAILED = "REMOTE_FAILED"             # Remote speech API error
    ADMISSION_REFUSED = "ADMISSION_REFUSED"     # Concurrency ceiling reached
    INTERNAL_ERROR = "INTERNAL_ERROR"           # Unexpected error


class SpeechError(Exception):
    """
    Base exception for service errors.

    Attributes:
        message: Human-readable error message.
        code: Error code from ErrorCode.
        details: Optional dictionary with additional context.
    """
    retryable = False

    def __init__(self, message: str, code: str = ErrorCode.INTERNAL_ERROR, details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "ok": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class SynthesisError(SpeechError):
    """Raised when the engine fails to produce audio."""
    def __init__(self, message: str, details: Optional[Dict] = None, code: str = ErrorCode.SYNTHESIS_FAILED):
        super().__init__(message, code, details)


class AdmissionRefusedError(SpeechError):
    """Raised when the admission gate is full. Clients should retry."""
    retryable = True

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.ADMISSION_REFUSED, details)


class InvalidInputError(SpeechError):
    """Raised when a request fails validation."""
    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_INPUT, details)


def translate_engine_error(exc: EngineError) -> SynthesisError:
    """Map an engine failure to a SynthesisError, keeping its text verbatim."""
    details: Dict[str, Any] = {"kind": exc.kind}

    if isinstance(exc, ToolNotFoundError):
        details["program"] = exc.program
        return SynthesisError(exc.message, details, code=ErrorCode.TOOL_NOT_FOUND)

    if isinstance(exc, ProcessFailedError):
        details["program"] = exc.program
        details["returncode"] = exc.returncode
        if isinstance(exc, ProcessTimeoutError):
            details["timeout_s"] = exc.timeout_s
        return SynthesisError(exc.message, details, code=ErrorCode.PROCESS_FAILED)

    if isinstance(exc, RemoteFailureError):
        details["status"] = exc.status
        return SynthesisError(exc.message, details, code=ErrorCode.REMOTE_FAILED)

    return SynthesisError(exc.message, details)


# =============================================================================
# Result
# =============================================================================

@dataclass
class SpeechResult:
    """
    Result of one synthesis request.

    Attributes:
        audio: Audio bytes.
        format: Format actually produced.
        requested_format: Format the caller asked for. Differs from
            ``format`` when the engine cannot produce it (OS engines
            always return wav).
        engine: Engine name.
        request_id: Request ID for tracing.
        total_seconds: Time spent inside the engine.
    """
    audio: bytes
    format: AudioFormat
    requested_format: AudioFormat
    engine: str
    request_id: str
    total_seconds: float

    @property
    def format_substituted(self) -> bool:
        return self.format != self.requested_format


# =============================================================================
# Main Service Class
# =============================================================================

class SpeechService:
    """
    Speech synthesis with admission control, logging and metrics.

    The service owns its admission gate; there is no process-wide
    counter. The HTTP app creates one service at startup
    (see api/dependencies.py).

    Usage:
        service = SpeechService(settings)
        result = service.synthesize(SynthesisRequest(text="Hello"), request_id="req-123")
        voices = service.list_voices()
    """

    def __init__(
        self,
        settings: Settings,
        engine: Optional[BaseSpeechEngine] = None,
        gate: Optional[AdmissionGate] = None,
        metrics: Optional[SpeechMetrics] = None,
    ):
        """
        Args:
            settings: Application settings.
            engine: Engine override; built from settings when omitted.
            gate: Admission gate override; sized from concurrency.max_concurrent.
            metrics: Metrics sink; a fresh SpeechMetrics when omitted.
        """
        self._settings = settings
        self._config = settings.get_service_config()
        self._metrics = metrics if metrics is not None else SpeechMetrics(enabled=self._config.metrics.enabled)

        if engine is None:
            runner = ProcessRunner(timeout_s=self._config.tts.process_timeout_s, metrics=self._metrics)
            engine = create_engine(settings, runner=runner)
        self._engine = engine

        self._gate = gate if gate is not None else AdmissionGate(self._config.concurrency.max_concurrent)
        self._text_preview_chars = self._config.logging.text_preview_chars

        info(
            _LOG,
            "service_init",
            engine=self._engine.name,
            max_concurrent=self._gate.max_concurrent,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def engine(self) -> BaseSpeechEngine:
        return self._engine

    @property
    def gate(self) -> AdmissionGate:
        return self._gate

    @property
    def metrics(self) -> SpeechMetrics:
        return self._metrics

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def default_voice(self) -> str:
        return self._config.tts.default_voice

    @property
    def max_input_chars(self) -> int:
        return self._config.tts.max_input_chars

    # =========================================================================
    # Public API
    # =========================================================================

    def synthesize(self, request: SynthesisRequest, request_id: str) -> SpeechResult:
        """
        Synthesize one request.

        Args:
            request: Normalized request (speed already clamped).
            request_id: Unique ID for request tracing.

        Returns:
            SpeechResult with audio and the actual format.

        Raises:
            InvalidInputError: Validation failed.
            AdmissionRefusedError: Too many requests in flight.
            SynthesisError: The engine failed.
        """
        try:
            validate_text(request.text, self.max_input_chars)
            validate_voice(request.voice)
        except ValidationError as e:
            raise InvalidInputError(e.message, {"field": e.field, "reason": e.code}) from e

        preview = request.text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(
            _LOG,
            "speech_request",
            chars=len(request.text),
            voice=request.voice,
            format=request.format.value,
            speed=request.speed,
            text_preview=preview or None,
        )
        debug(_LOG, "speech_request_full", text=request.text)

        try:
            with self._gate.admit():
                self._metrics.set_in_flight(self._gate.in_flight)
                with timeit("synthesis") as t:
                    result = self._engine.synthesize(request)
        except AdmissionRefused as e:
            warn(_LOG, "admission_refused", max_concurrent=e.max_concurrent)
            self._metrics.record_refused()
            raise AdmissionRefusedError(str(e), {"max_concurrent": e.max_concurrent}) from e
        except EngineError as e:
            fail(_LOG, "synthesis_failed", kind=e.kind, error=e.message, seconds=round(t.elapsed, 3))
            self._metrics.record_request(self._engine.name, e.kind, t.elapsed)
            raise translate_engine_error(e) from e
        except Exception as e:
            fail(_LOG, "synthesis_failed", error=str(e), error_type=type(e).__name__)
            self._metrics.record_request(self._engine.name, "error", 0.0)
            raise SynthesisError(
                f"Unexpected error: {e}",
                {"error_type": type(e).__name__},
                code=ErrorCode.INTERNAL_ERROR,
            ) from e
        finally:
            self._metrics.set_in_flight(self._gate.in_flight)

        total_s = t.timing.seconds if t.timing else -1.0
        if result.format != request.format:
            warn(
                _LOG,
                "format_substituted",
                requested=request.format.value,
                actual=result.format.value,
                engine=self._engine.name,
            )

        success(_LOG, "done", bytes=len(result.audio), format=result.format.value, seconds=round(total_s, 3))
        self._metrics.record_request(self._engine.name, "success", total_s, audio_bytes=len(result.audio))

        return SpeechResult(
            audio=result.audio,
            format=result.format,
            requested_format=request.format,
            engine=self._engine.name,
            request_id=request_id,
            total_seconds=total_s,
        )

    def list_voices(self) -> List[VoiceRecord]:
        """Voices from the engine, never empty."""
        voices = self._engine.list_voices()
        return voices or [default_voice_record()]

    def list_models(self) -> List[ModelRecord]:
        """Engine models, or the stub models if the engine cannot list them."""
        try:
            models = self._engine.list_models()
        except (EngineError, OSError) as e:
            warn(_LOG, "model_listing_failed", error=str(e))
            return list(DEFAULT_MODELS)
        return models or list(DEFAULT_MODELS)

    def get_health_info(self) -> Dict[str, Any]:
        """
        Health and status for GET /health.

        Returns a dictionary with:
            - status and version
            - engine description (name, platform or remote base URL)
            - admission gate counters
        """
        stats = self._gate.stats()
        return {
            "status": "ok",
            "version": __version__,
            **self._engine.describe(),
            "default_voice": self.default_voice,
            "max_input_chars": self.max_input_chars,
            "concurrency": {
                "max_concurrent": stats.max_concurrent,
                "in_flight": stats.in_flight,
                "total_admitted": stats.total_admitted,
                "total_refused": stats.total_refused,
            },
        }
