"""
Input Validation for the Speech Service.

The HTTP schemas reject malformed bodies before they reach the service;
these checks run again inside SpeechService so the CLI and any other
caller get the same guarantees.

Validation Rules:
    - Text: required, non-blank, at most tts.max_input_chars (default 4096)
    - Voice: optional, at most 200 characters, no control characters

Error codes:
    TEXT_REQUIRED, TEXT_TOO_LONG, VOICE_TOO_LONG, VOICE_INVALID_CHARS
"""
from __future__ import annotations

from typing import Optional

from lms_speaks.core.config import Defaults

MAX_VOICE_CHARS = 200


class ValidationError(Exception):
    """
    Input validation failed.

    Attributes:
        message: Human-readable description.
        code: Machine-readable code (e.g. "TEXT_TOO_LONG").
        field: Request field the error refers to.
    """

    def __init__(self, message: str, code: str = "VALIDATION_ERROR", field: Optional[str] = None):
        self.message = message
        self.code = code
        self.field = field
        super().__init__(message)


def validate_text(text: Optional[str], max_length: int = Defaults.TTS_MAX_INPUT_CHARS) -> str:
    """
    Check that text is present and within the length ceiling.

    The text is returned unchanged; surrounding whitespace is the
    speech tool's concern.

    Raises:
        ValidationError: TEXT_REQUIRED or TEXT_TOO_LONG.
    """
    if text is None or not text.strip():
        raise ValidationError("Input text is required", "TEXT_REQUIRED", field="input")

    if len(text) > max_length:
        raise ValidationError(
            f"Input text exceeds maximum length ({len(text)} > {max_length})",
            "TEXT_TOO_LONG",
            field="input",
        )
    return text


def validate_voice(voice: Optional[str]) -> Optional[str]:
    """
    Check a voice identifier.

    Voice ids are passed to speech tools as a single argv entry or an
    environment variable, so a newline or NUL could only ever be a
    mistake.

    Raises:
        ValidationError: VOICE_TOO_LONG or VOICE_INVALID_CHARS.
    """
    if voice is None:
        return None
    if len(voice) > MAX_VOICE_CHARS:
        raise ValidationError(
            f"Voice exceeds maximum length ({len(voice)} > {MAX_VOICE_CHARS})",
            "VOICE_TOO_LONG",
            field="voice",
        )
    if any(ord(ch) < 32 for ch in voice):
        raise ValidationError("Voice contains control characters", "VOICE_INVALID_CHARS", field="voice")
    return voice
