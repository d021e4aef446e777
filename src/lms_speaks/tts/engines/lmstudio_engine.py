"""
LM Studio Remote Engine.

Forwards each synthesis request to a running LM Studio server that
serves an OpenAI-style speech endpoint:

    POST {api_base_url}/v1/audio/speech
    {"input": ..., "response_format": ..., "model"?: ..., "voice"?: ..., "speed"?: ...}

``model`` is sent only when lmstudio.model_key is configured, ``voice``
only for a non-default voice and ``speed`` only when it differs from 1.0.

Model Loading:
    When a model key is configured, the first synthesize() call asks the
    LM Studio control API to load that model. This runs at most once per
    engine; any failure is logged and synthesis goes ahead regardless
    (the model may already be loaded by other means).

Configuration:
    settings.yaml:
        tts:
          engine: lmstudio
        lmstudio:
          api_base_url: http://127.0.0.1:1234
          model_key: my-tts-model
          timeout_s: 120

    Environment: LMS_API_BASE_URL, TTS_MODEL_KEY
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import httpx

from lms_speaks.core.config import Settings
from lms_speaks.core.logging import info, verbose, warn
from lms_speaks.tts.engine import (
    AudioFormat,
    BaseSpeechEngine,
    ModelRecord,
    SynthesisRequest,
    SynthesisResult,
    VoiceRecord,
    default_voice_record,
    is_default_voice,
)
from lms_speaks.tts.errors import AudioMissingError, RemoteFailureError

SPEECH_PATH = "/v1/audio/speech"
MODELS_PATH = "/api/v0/models"
LOAD_PATH = "/api/v1/models/load"

_CONTENT_TYPE_FORMATS = {
    "audio/mpeg": AudioFormat.MP3,
    "audio/mp3": AudioFormat.MP3,
    "audio/wav": AudioFormat.WAV,
    "audio/x-wav": AudioFormat.WAV,
    "audio/wave": AudioFormat.WAV,
    "audio/ogg": AudioFormat.OPUS,
    "audio/opus": AudioFormat.OPUS,
    "audio/aac": AudioFormat.AAC,
    "audio/flac": AudioFormat.FLAC,
    "audio/pcm": AudioFormat.PCM,
}


def remote_error_message(response: httpx.Response) -> str:
    """
    Best-effort error text from a failed response.

    Uses ``error.message`` (or a string ``error``/``detail``) from a JSON
    body, else the HTTP reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return detail

    return response.reason_phrase or f"HTTP {response.status_code}"


def _format_from_content_type(content_type: str, requested: AudioFormat) -> AudioFormat:
    mime = content_type.split(";", 1)[0].strip().lower()
    return _CONTENT_TYPE_FORMATS.get(mime, requested)


class LmStudioControl:
    """
    Minimal client for LM Studio's model management endpoints.

    Args:
        client: httpx.Client whose base_url is the LM Studio server.
    """

    def __init__(self, client: httpx.Client):
        self.client = client

    def loaded_models(self) -> List[str]:
        response = self.client.get(MODELS_PATH)
        response.raise_for_status()
        body = response.json()
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, list):
            data = []
        return [m.get("id") for m in data if isinstance(m, dict) and m.get("state") == "loaded"]

    def load_model(self, model_key: str) -> None:
        response = self.client.post(LOAD_PATH, json={"model": model_key})
        response.raise_for_status()

    def ensure_loaded(self, model_key: str) -> bool:
        """Load ``model_key`` unless already loaded. Returns True if a load was requested."""
        if model_key in self.loaded_models():
            return False
        self.load_model(model_key)
        return True


class LmStudioEngine(BaseSpeechEngine):
    """
    Remote delegating engine.

    Args:
        settings: Application settings (lmstudio section).
        http_client: Preconfigured httpx.Client (tests pass one built on
            httpx.MockTransport). Created from settings when omitted.
        control: Model control client; defaults to one sharing http_client.
    """
    name = "lmstudio"
    native_formats = frozenset(AudioFormat)

    def __init__(
        self,
        settings: Settings,
        http_client: Optional[httpx.Client] = None,
        control: Optional[LmStudioControl] = None,
    ):
        super().__init__(settings)
        cfg = settings.get_service_config().lmstudio
        self.base_url = cfg.api_base_url
        self.model_key = cfg.model_key
        self._owns_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(base_url=self.base_url, timeout=cfg.timeout_s)
        self.client = http_client
        self.control = control if control is not None else LmStudioControl(self.client)

        self._load_lock = threading.Lock()
        self._load_attempted = False

    def build_payload(self, request: SynthesisRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "input": request.text,
            "response_format": request.format.value,
        }
        if self.model_key:
            payload["model"] = self.model_key
        if not is_default_voice(request.voice):
            payload["voice"] = request.voice
        if request.speed != 1.0:
            payload["speed"] = request.speed
        return payload

    def ensure_model_loaded(self) -> None:
        """Attempt the model load once per engine; never raises."""
        if not self.model_key or self.control is None:
            return
        with self._load_lock:
            if self._load_attempted:
                return
            self._load_attempted = True

        try:
            if self.control.ensure_loaded(self.model_key):
                info(self.logger, "lmstudio_model_loaded", model=self.model_key)
        except Exception as exc:
            # Synthesis still goes ahead; the speech endpoint reports its own errors.
            warn(self.logger, "lmstudio_model_load_failed", model=self.model_key, error=str(exc))

    def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        self.ensure_model_loaded()

        verbose(self.logger, "lmstudio_synthesize", chars=len(request.text), voice=request.voice)
        try:
            response = self.client.post(SPEECH_PATH, json=self.build_payload(request))
        except httpx.HTTPError as exc:
            raise RemoteFailureError(None, f"LM Studio request failed: {exc}") from exc

        if not response.is_success:
            raise RemoteFailureError(response.status_code, remote_error_message(response))

        if not response.content:
            raise AudioMissingError("LM Studio returned an empty audio body")

        fmt = _format_from_content_type(response.headers.get("content-type", ""), request.format)
        return SynthesisResult(audio=response.content, format=fmt)

    def list_voices(self) -> List[VoiceRecord]:
        return [default_voice_record()]

    def list_models(self) -> List[ModelRecord]:
        models = super().list_models()
        if self.model_key:
            models.append(ModelRecord(id=self.model_key, owned_by="lmstudio"))
        return models

    def describe(self) -> Dict[str, Any]:
        return {
            "engine": self.name,
            "api_base_url": self.base_url,
            "model_key": self.model_key,
            "model_load_attempted": self._load_attempted,
        }

    def close(self) -> None:
        if self._owns_client:
            self.client.close()
