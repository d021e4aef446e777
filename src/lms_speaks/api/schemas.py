"""
API Request/Response Schemas.

Pydantic models for the OpenAI-compatible endpoints:

    OpenAISpeechRequest  - body of POST /v1/audio/speech
    VoiceOut / VoicesResponse  - GET /v1/audio/voices
    ModelOut / ModelsResponse  - GET /v1/models
    OpenAIErrorBody      - {"error": {...}} envelope for every failure

Example Request:
    {
        "model": "tts-1",
        "input": "Hello from LM Studio.",
        "voice": "Samantha",
        "response_format": "wav",
        "speed": 1.25
    }
"""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from lms_speaks.tts.engine import AudioFormat, clamp_speed


class OpenAISpeechRequest(BaseModel):
    """
    OpenAI-compatible speech synthesis request.

    Attributes:
        model: Accepted for compatibility. The configured engine decides
            how (or whether) it is used.
        input: Text to speak. Non-blank; the length ceiling
            (tts.max_input_chars) is enforced by the service.
        voice: Engine voice id. Empty or missing means the configured
            default voice.
        response_format: Requested format. OS engines always return wav;
            the actual format is reported in X-Audio-Format.
        speed: Speaking-rate multiplier, clamped to [0.25, 4.0] rather
            than rejected.
    """
    model: Optional[str] = Field(default=None, description="Model id (engine-specific)")
    input: str = Field(..., min_length=1, description="The text to generate audio for")
    voice: Optional[str] = Field(default=None, description="Voice id, or 'default'")
    response_format: AudioFormat = Field(default=AudioFormat.WAV, description="Requested audio format")
    speed: float = Field(default=1.0, description="Speed multiplier, clamped to 0.25-4.0")

    @field_validator("input")
    @classmethod
    def _input_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("input must not be blank")
        return value

    @field_validator("speed", mode="before")
    @classmethod
    def _speed_default(cls, value):
        if value is None:
            return 1.0
        return value

    @field_validator("speed")
    @classmethod
    def _speed_in_range(cls, value: float) -> float:
        return clamp_speed(value)


class VoiceOut(BaseModel):
    id: str
    name: str
    language: Optional[str] = None
    gender: Optional[str] = None


class VoicesResponse(BaseModel):
    voices: List[VoiceOut]


class ModelOut(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelsResponse(BaseModel):
    object: str = "list"
    data: List[ModelOut]


class OpenAIError(BaseModel):
    message: str
    type: str
    param: Optional[str] = None
    code: Optional[str] = None


class OpenAIErrorBody(BaseModel):
    error: OpenAIError
