"""
OpenAI-Compatible Speech Endpoints.

Endpoints:
    POST /v1/audio/speech  - synthesize; body matches OpenAI's speech API
    GET  /v1/audio/voices  - voices reported by the active engine
    GET  /v1/models        - model list in OpenAI's list format

OpenAI Compatibility:
    - model: accepted; OS engines ignore it (logged), LM Studio forwards
      its own configured model key
    - input: text to synthesize, non-blank, at most tts.max_input_chars
    - voice: engine voice id; empty means the configured default voice
    - response_format: mp3 | wav | opus | aac | flac | pcm. No transcoding:
      OS engines return wav whatever was requested. Content-Type follows
      the actual format, and X-Audio-Format / X-Requested-Format show both.
    - speed: clamped to 0.25-4.0

Error Responses:
    Errors use OpenAI's envelope:
    {
        "error": {
            "message": "espeak-ng exited with code 1: unknown voice",
            "type": "server_error",
            "param": null,
            "code": "process_failed"
        }
    }

    INVALID_INPUT      -> 400 invalid_request_error
    ADMISSION_REFUSED  -> 429 rate_limit_error (Retry-After: 1)
    engine failures    -> 500 server_error
    anything else      -> 500 "Internal server error"

Example Usage:
    from openai import OpenAI
    client = OpenAI(base_url="http://127.0.0.1:8880/v1", api_key="unused")
    response = client.audio.speech.create(model="tts-1", voice="default", input="Hello")
    response.stream_to_file("hello.wav")
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lms_speaks.api.dependencies import get_speech_service
from lms_speaks.api.schemas import ModelsResponse, OpenAISpeechRequest, VoicesResponse
from lms_speaks.core.logging import fail, get_logger, info, set_request_id, warn
from lms_speaks.services.speech_service import ErrorCode, SpeechError, SpeechService
from lms_speaks.tts.engine import SynthesisRequest

router = APIRouter()

_LOG = get_logger("lms-speaks.openai")

RETRY_AFTER_SECONDS = 1

_ERROR_TYPES = {
    ErrorCode.INVALID_INPUT: "invalid_request_error",
    ErrorCode.ADMISSION_REFUSED: "rate_limit_error",
}

_STATUS_CODES = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.ADMISSION_REFUSED: 429,
}


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def openai_error_response(
    message: str,
    error_type: str,
    code: Optional[str],
    status_code: int = 500,
    param: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Build an error response in OpenAI's nested format."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "message": message,
                "type": error_type,
                "param": param,
                "code": code,
            }
        },
        headers=headers,
    )


def speech_error_response(error: SpeechError, request_id: Optional[str] = None) -> JSONResponse:
    """Map a SpeechError to its status code and OpenAI error type."""
    headers: Dict[str, str] = {}
    if request_id:
        headers["X-Request-Id"] = request_id
    if error.retryable:
        headers["Retry-After"] = str(RETRY_AFTER_SECONDS)

    return openai_error_response(
        message=error.message,
        error_type=_ERROR_TYPES.get(error.code, "server_error"),
        code=error.code.lower(),
        status_code=_STATUS_CODES.get(error.code, 500),
        param=error.details.get("field") if error.code == ErrorCode.INVALID_INPUT else None,
        headers=headers,
    )


def _validation_param(exc: RequestValidationError) -> Optional[str]:
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        if loc:
            return ".".join(loc)
    return None


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    param = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    msg = str(first.get("msg", "Invalid value"))
    return f"{param}: {msg}" if param else msg


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report schema failures as 400 invalid_request_error instead of FastAPI's 422."""
    warn(_LOG, "request_invalid", path=request.url.path, errors=len(exc.errors()))
    return openai_error_response(
        message=_validation_message(exc),
        error_type="invalid_request_error",
        code=ErrorCode.INVALID_INPUT.lower(),
        status_code=400,
        param=_validation_param(exc),
    )


@router.post("/v1/audio/speech", response_class=Response)
def openai_speech(
    req: OpenAISpeechRequest,
    service: SpeechService = Depends(get_speech_service),
):
    """
    OpenAI-compatible text-to-speech endpoint.

    Returns:
        Response: Audio bytes with headers:
            - X-Request-Id: Unique request identifier
            - X-Engine: Engine used ("system", "lmstudio")
            - X-Audio-Format: Format actually returned
            - X-Requested-Format: Format the client asked for

    Example:
        curl -X POST http://127.0.0.1:8880/v1/audio/speech \\
            -H "Content-Type: application/json" \\
            -d '{"model": "tts-1", "input": "Hello!", "voice": "default"}' \\
            --output speech.wav
    """
    rid = new_request_id()
    set_request_id(rid)

    voice = req.voice.strip() if req.voice and req.voice.strip() else service.default_voice
    if req.model and service.engine.name != "lmstudio":
        info(_LOG, "model_ignored", model=req.model, engine=service.engine.name)

    try:
        synth_request = SynthesisRequest(
            text=req.input,
            voice=voice,
            format=req.response_format,
            speed=req.speed,
        )
        result = service.synthesize(synth_request, rid)

        headers = {
            "X-Request-Id": rid,
            "X-Engine": result.engine,
            "X-Audio-Format": result.format.value,
            "X-Requested-Format": result.requested_format.value,
        }
        return Response(content=result.audio, media_type=result.format.mime_type, headers=headers)

    except SpeechError as e:
        return speech_error_response(e, rid)

    except Exception as e:
        fail(_LOG, "request_failed", error=str(e), error_type=type(e).__name__)
        return openai_error_response(
            message="Internal server error",
            error_type="server_error",
            code=ErrorCode.INTERNAL_ERROR.lower(),
            status_code=500,
            headers={"X-Request-Id": rid},
        )


@router.get("/v1/audio/voices", response_model=VoicesResponse, response_model_exclude_none=True)
def list_voices(service: SpeechService = Depends(get_speech_service)) -> Dict[str, Any]:
    """Voices of the active engine; never empty."""
    return {"voices": [v.to_dict() for v in service.list_voices()]}


@router.get("/v1/models", response_model=ModelsResponse)
def list_models(service: SpeechService = Depends(get_speech_service)) -> Dict[str, Any]:
    return {"object": "list", "data": [m.to_dict() for m in service.list_models()]}
