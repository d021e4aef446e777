"""
Speech Engine Implementations.

Available Engines:
    - MacOSSpeechEngine:   macOS `say`
    - WindowsSpeechEngine: System.Speech through PowerShell
    - EspeakEngine:        espeak-ng, falling back to espeak
    - LmStudioEngine:      remote LM Studio speech endpoint (httpx)

OSProcessEngine is the shared base of the three platform engines.

Lazy Loading:
    Classes are imported on first attribute access, so a host running
    only the system engine never imports the HTTP client stack.

Usage:
    from lms_speaks.tts.engines import EspeakEngine
    engine = EspeakEngine(settings)

    # Or use the factory (recommended)
    from lms_speaks.tts.engine import create_engine
    engine = create_engine(settings)
"""
from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

_LAZY = {
    "OSProcessEngine": "lms_speaks.tts.engines.system_engine",
    "MacOSSpeechEngine": "lms_speaks.tts.engines.macos_engine",
    "WindowsSpeechEngine": "lms_speaks.tts.engines.windows_engine",
    "EspeakEngine": "lms_speaks.tts.engines.espeak_engine",
    "LmStudioEngine": "lms_speaks.tts.engines.lmstudio_engine",
}

__all__ = list(_LAZY)


def __getattr__(name: str):
    module = _LAZY.get(name)
    if module is None:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    return getattr(importlib.import_module(module), name)


if TYPE_CHECKING:
    from lms_speaks.tts.engines.espeak_engine import EspeakEngine
    from lms_speaks.tts.engines.lmstudio_engine import LmStudioEngine
    from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine
    from lms_speaks.tts.engines.system_engine import OSProcessEngine
    from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine
