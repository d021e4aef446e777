"""
Configuration Management for lms-speaks.

Configuration Hierarchy (highest priority first):
    1. Environment variables (TTS_PORT, TTS_ENGINE, LMS_API_BASE_URL, ...)
    2. YAML config file (config/settings.yaml, or $LMS_SPEAKS_SETTINGS)
    3. Defaults class values

Example settings.yaml:
    server:
      host: 127.0.0.1
      port: 8880

    tts:
      engine: system          # system | lmstudio
      default_voice: default
      max_input_chars: 4096
      process_timeout_s: 60

    concurrency:
      max_concurrent: 5

    lmstudio:
      api_base_url: http://127.0.0.1:1234
      model_key: null
      timeout_s: 120

    logging:
      level: 2
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

_BOOL_STRINGS = {
    "true": True, "yes": True, "on": True, "1": True,
    "false": False, "no": False, "off": False, "0": False,
}


class ConfigValidationError(Exception):
    """Raised when a configuration value is out of bounds or malformed."""
    pass


class Defaults:
    """Centralized default configuration values."""

    # ─────────────────────────────────────────────────────────────────────────
    # HTTP Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "127.0.0.1"           # Loopback only; 0.0.0.0 exposes the server
    SERVER_PORT = 8880

    # ─────────────────────────────────────────────────────────────────────────
    # Speech Engine
    # ─────────────────────────────────────────────────────────────────────────
    TTS_ENGINE = "system"               # system | lmstudio
    TTS_DEFAULT_VOICE = "default"
    TTS_MAX_INPUT_CHARS = 4096          # Same ceiling as the OpenAI API
    TTS_PROCESS_TIMEOUT_S = 60.0        # Wall clock per external process

    # ─────────────────────────────────────────────────────────────────────────
    # Concurrency Admission
    # ─────────────────────────────────────────────────────────────────────────
    CONCURRENCY_MAX_CONCURRENT = 5      # In-flight synthesis ceiling

    # ─────────────────────────────────────────────────────────────────────────
    # LM Studio (remote engine)
    # ─────────────────────────────────────────────────────────────────────────
    LMSTUDIO_API_BASE_URL = "http://127.0.0.1:1234"
    LMSTUDIO_TIMEOUT_S = 120.0

    # ─────────────────────────────────────────────────────────────────────────
    # Logging / Metrics
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 0      # 0 = never log text at INFO
    METRICS_ENABLED = True


# Environment variable -> (section, key).
ENV_OVERRIDES = {
    "TTS_HOST": ("server", "host"),
    "TTS_PORT": ("server", "port"),
    "TTS_ENGINE": ("tts", "engine"),
    "TTS_VOICE": ("tts", "default_voice"),
    "TTS_MAX_CONCURRENCY": ("concurrency", "max_concurrent"),
    "LMS_API_BASE_URL": ("lmstudio", "api_base_url"),
    "TTS_MODEL_KEY": ("lmstudio", "model_key"),
}


@dataclass
class ServerConfig:
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class EngineConfig:
    """Which speech engine to build and how to drive it."""
    engine: str = Defaults.TTS_ENGINE
    default_voice: str = Defaults.TTS_DEFAULT_VOICE
    max_input_chars: int = Defaults.TTS_MAX_INPUT_CHARS
    process_timeout_s: float = Defaults.TTS_PROCESS_TIMEOUT_S


@dataclass
class ConcurrencyConfig:
    """
    Admission control.

    Each system-engine synthesis spawns a process and writes scratch
    files; the ceiling keeps a burst of requests from exhausting process
    slots and file descriptors. Requests beyond it are refused (429),
    never queued.
    """
    max_concurrent: int = Defaults.CONCURRENCY_MAX_CONCURRENT


@dataclass
class LmStudioConfig:
    api_base_url: str = Defaults.LMSTUDIO_API_BASE_URL
    model_key: Optional[str] = None
    timeout_s: float = Defaults.LMSTUDIO_TIMEOUT_S


@dataclass
class LoggingConfig:
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS


@dataclass
class MetricsConfig:
    enabled: bool = Defaults.METRICS_ENABLED


@dataclass
class ServiceConfig:
    """
    Validated configuration built from Settings.

    Usage:
        settings = load_settings("config/settings.yaml")
        config = ServiceConfig.from_settings(settings)
        print(config.concurrency.max_concurrent)
    """
    server: ServerConfig = field(default_factory=ServerConfig)
    tts: EngineConfig = field(default_factory=EngineConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    lmstudio: LmStudioConfig = field(default_factory=LmStudioConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ServiceConfig":
        """
        Create a ServiceConfig from raw Settings, applying defaults.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=cls._as_int("server.port", server_raw.get("port", Defaults.SERVER_PORT)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        tts_raw = raw.get("tts", {}) or {}
        tts = EngineConfig(
            engine=str(tts_raw.get("engine", Defaults.TTS_ENGINE)).strip().lower(),
            default_voice=str(tts_raw.get("default_voice") or Defaults.TTS_DEFAULT_VOICE),
            max_input_chars=cls._as_int(
                "tts.max_input_chars", tts_raw.get("max_input_chars", Defaults.TTS_MAX_INPUT_CHARS)
            ),
            process_timeout_s=cls._as_float(
                "tts.process_timeout_s", tts_raw.get("process_timeout_s", Defaults.TTS_PROCESS_TIMEOUT_S)
            ),
        )
        cls._validate_positive("tts.max_input_chars", tts.max_input_chars)
        cls._validate_positive("tts.process_timeout_s", tts.process_timeout_s)

        concurrency_raw = raw.get("concurrency", {}) or {}
        concurrency = ConcurrencyConfig(
            max_concurrent=cls._as_int(
                "concurrency.max_concurrent",
                concurrency_raw.get("max_concurrent", Defaults.CONCURRENCY_MAX_CONCURRENT),
            ),
        )
        cls._validate_positive("concurrency.max_concurrent", concurrency.max_concurrent)

        lms_raw = raw.get("lmstudio", {}) or {}
        lmstudio = LmStudioConfig(
            api_base_url=str(lms_raw.get("api_base_url") or Defaults.LMSTUDIO_API_BASE_URL).rstrip("/"),
            model_key=lms_raw.get("model_key") or None,
            timeout_s=cls._as_float("lmstudio.timeout_s", lms_raw.get("timeout_s", Defaults.LMSTUDIO_TIMEOUT_S)),
        )
        cls._validate_positive("lmstudio.timeout_s", lmstudio.timeout_s)

        logging_raw = raw.get("logging", {}) or {}
        logging_cfg = LoggingConfig(
            text_preview_chars=cls._as_int(
                "logging.text_preview_chars",
                logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS),
            ),
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)

        metrics_raw = raw.get("metrics", {}) or {}
        metrics = MetricsConfig(
            enabled=cls._as_bool("metrics.enabled", metrics_raw.get("enabled", Defaults.METRICS_ENABLED)),
        )

        return cls(
            server=server,
            tts=tts,
            concurrency=concurrency,
            lmstudio=lmstudio,
            logging=logging_cfg,
            metrics=metrics,
        )

    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"{name} must be an integer, got {value!r}") from None

    @staticmethod
    def _as_float(name: str, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigValidationError(f"{name} must be a number, got {value!r}") from None

    @staticmethod
    def _as_bool(name: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS:
            return _BOOL_STRINGS[value.strip().lower()]
        raise ConfigValidationError(f"{name} must be true or false, got {value!r}")

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable raw settings loaded from YAML plus environment.

    Use get_service_config() for validated, typed access.
    """
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def engine_type(self) -> str:
        return str((self.raw.get("tts") or {}).get("engine", Defaults.TTS_ENGINE)).strip().lower()

    @property
    def default_voice(self) -> str:
        return str((self.raw.get("tts") or {}).get("default_voice") or Defaults.TTS_DEFAULT_VOICE)

    def get_service_config(self) -> ServiceConfig:
        return ServiceConfig.from_settings(self)


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ENV_OVERRIDES onto a raw settings dict (in place)."""
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            section_dict = raw.get(section)
            if not isinstance(section_dict, dict):
                section_dict = raw[section] = {}
            section_dict[key] = value
    return raw


def default_settings_path() -> str:
    return os.getenv("LMS_SPEAKS_SETTINGS", "config/settings.yaml")


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from YAML and apply environment overrides.

    A missing file is not an error: the service is usable with
    environment variables alone.

    Raises:
        ConfigValidationError: If the file is not a YAML mapping.
    """
    p = Path(path or default_settings_path())
    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            try:
                loaded = yaml.safe_load(f)
            except yaml.YAMLError as exc:
                raise ConfigValidationError(f"invalid YAML in {p}: {exc}") from exc
        if loaded is not None and not isinstance(loaded, dict):
            raise ConfigValidationError(f"{p} must contain a mapping at top level")
        raw = loaded or {}

    return Settings(raw=apply_env_overrides(raw))
