"""
Speech Engine Base Class, Data Model and Factory.

This module provides:
    - AudioFormat: The OpenAI response_format enumeration
    - SynthesisRequest / SynthesisResult: One synthesis call in and out
    - VoiceRecord / ModelRecord: Catalog entries
    - BaseSpeechEngine: Interface every engine implements
    - create_engine(): Factory selecting the engine from settings

Engine Selection:
    settings.tts.engine (or TTS_ENGINE) picks the engine:
        - system:   the host's speech command; macOS `say`, Windows
                    System.Speech through PowerShell, or espeak-ng/espeak
                    elsewhere. The platform is detected once, here.
        - lmstudio: forwards to a running LM Studio speech endpoint.

Implementing a New Engine:
    1. Create engines/<name>_engine.py
    2. Inherit from BaseSpeechEngine (or OSProcessEngine for a CLI tool)
    3. Implement synthesize() and list_voices()
    4. Register it in create_engine()
"""
from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from lms_speaks.core.config import Settings
from lms_speaks.core.logging import get_logger

MIN_SPEED = 0.25
MAX_SPEED = 4.0
DEFAULT_VOICE = "default"

# `created` timestamp reported for the stub model entries.
MODEL_CREATED_TS = 1699000000


class AudioFormat(str, Enum):
    """Audio container/codec names accepted as ``response_format``."""
    MP3 = "mp3"
    WAV = "wav"
    OPUS = "opus"
    AAC = "aac"
    FLAC = "flac"
    PCM = "pcm"

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self]


MIME_TYPES = {
    AudioFormat.MP3: "audio/mpeg",
    AudioFormat.WAV: "audio/wav",
    AudioFormat.OPUS: "audio/ogg; codecs=opus",
    AudioFormat.AAC: "audio/aac",
    AudioFormat.FLAC: "audio/flac",
    AudioFormat.PCM: "audio/pcm",
}


def clamp_speed(speed: Optional[float]) -> float:
    """Clamp a speed multiplier to [MIN_SPEED, MAX_SPEED]; None means 1.0."""
    if speed is None:
        return 1.0
    return max(MIN_SPEED, min(MAX_SPEED, float(speed)))


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity (2.5 -> 3, -0.5 -> 0)."""
    return int(math.floor(value + 0.5))


def normalize_voice(voice: Optional[str]) -> str:
    """Strip a voice name; empty or missing becomes DEFAULT_VOICE."""
    if voice is None:
        return DEFAULT_VOICE
    voice = voice.strip()
    return voice or DEFAULT_VOICE


def is_default_voice(voice: Optional[str]) -> bool:
    return normalize_voice(voice) == DEFAULT_VOICE


@dataclass(frozen=True)
class SynthesisRequest:
    """
    A normalized synthesis request.

    The front door has already checked that ``text`` is non-empty and
    within the length ceiling. Construction still normalizes the rest:
    speed is clamped to [0.25, 4.0] and a blank voice becomes "default".

    Attributes:
        text: Text to speak.
        voice: Engine-specific voice id, or "default".
        format: Requested format. Advisory: engines that cannot produce it
            return their native format instead.
        speed: Speaking-rate multiplier.
    """
    text: str
    voice: str = DEFAULT_VOICE
    format: AudioFormat = AudioFormat.WAV
    speed: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "voice", normalize_voice(self.voice))
        object.__setattr__(self, "speed", clamp_speed(self.speed))
        object.__setattr__(self, "format", AudioFormat(self.format))


@dataclass
class SynthesisResult:
    """
    Audio produced for one request.

    Attributes:
        audio: Raw audio bytes.
        format: Format actually produced (always WAV for OS engines).
    """
    audio: bytes
    format: AudioFormat


@dataclass(frozen=True)
class VoiceRecord:
    """A voice as reported by the engine; ``id`` is what requests pass back."""
    id: str
    name: str
    language: Optional[str] = None
    gender: Optional[str] = None

    def to_dict(self) -> Dict[str, str]:
        out = {"id": self.id, "name": self.name}
        if self.language:
            out["language"] = self.language
        if self.gender:
            out["gender"] = self.gender
        return out


@dataclass(frozen=True)
class ModelRecord:
    id: str
    owned_by: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object": "model",
            "created": MODEL_CREATED_TS,
            "owned_by": self.owned_by,
        }


DEFAULT_MODELS = (
    ModelRecord(id="tts-1", owned_by="lms-speaks"),
    ModelRecord(id="tts-1-hd", owned_by="lms-speaks"),
)


def default_voice_record(label: str = "Default") -> VoiceRecord:
    """The synthetic voice returned when no real catalog is available."""
    return VoiceRecord(id=DEFAULT_VOICE, name=label)


class BaseSpeechEngine:
    """
    Abstract base class for speech engines.

    Subclasses implement synthesize() and list_voices(). list_voices()
    must never raise and never return an empty list.

    Attributes:
        name: Engine identifier ("system", "lmstudio").
        native_formats: Formats the engine produces without transcoding.
        settings: Application settings.
        logger: Logger for this engine.
    """
    name: str = "base"
    native_formats: frozenset = frozenset({AudioFormat.WAV})

    def __init__(self, settings: Settings):
        self.settings = settings
        self.logger = get_logger(f"lms-speaks.engine.{self.name}")

    def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """
        Synthesize one request.

        Raises:
            EngineError: Any unrecovered failure, with diagnostic text.
        """
        raise NotImplementedError

    def list_voices(self) -> List[VoiceRecord]:
        raise NotImplementedError

    def list_models(self) -> List[ModelRecord]:
        return list(DEFAULT_MODELS)

    def describe(self) -> Dict[str, Any]:
        """Engine summary for /health."""
        return {"engine": self.name}


# =============================================================================
# Engine Factory
# =============================================================================

_ENGINE_ALIASES = {
    "system": "system",
    "os": "system",
    "native": "system",
    "lmstudio": "lmstudio",
    "lms": "lmstudio",
    "remote": "lmstudio",
}


def normalize_engine_type(engine_type: str) -> str:
    """Map aliases to canonical engine names; unknown names pass through."""
    key = (engine_type or "").strip().lower()
    return _ENGINE_ALIASES.get(key, key)


def create_engine(
    settings: Settings,
    *,
    platform: Optional[str] = None,
    runner: Any = None,
    http_client: Any = None,
    control: Any = None,
) -> BaseSpeechEngine:
    """
    Build the configured engine.

    Args:
        settings: Application settings.
        platform: sys.platform value to target (defaults to this host).
        runner: ProcessRunner override for the system engines.
        http_client: httpx.Client override for the LM Studio engine.
        control: Model-control client override for the LM Studio engine.

    Raises:
        ValueError: If the engine name is unknown.
    """
    engine_type = normalize_engine_type(settings.engine_type)

    if engine_type == "system":
        from lms_speaks.tts.engines.system_engine import create_system_engine
        return create_system_engine(settings, platform=platform or sys.platform, runner=runner)

    if engine_type == "lmstudio":
        from lms_speaks.tts.engines.lmstudio_engine import LmStudioEngine
        return LmStudioEngine(settings, http_client=http_client, control=control)

    raise ValueError(f"Unknown engine type: {engine_type}")
