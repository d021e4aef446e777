"""
Operating-System Speech Engines.

OSProcessEngine is the shared template for the three platform dialects:

    synthesize(request):
        1. acquire scratch paths (input text, output wav)
        2. write the text file
        3. _invoke(): run the platform tool through the ProcessRunner
        4. read the wav
        5. release scratch (always, including on failure or timeout)

    list_voices():
        run the listing command (with fallback) -> parse -> on any
        failure return the synthetic default voice for this platform

The platform is picked once, in create_system_engine(), from sys.platform.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from lms_speaks.core.config import Settings
from lms_speaks.core.logging import debug, verbose, warn
from lms_speaks.tts.engine import (
    AudioFormat,
    BaseSpeechEngine,
    SynthesisRequest,
    SynthesisResult,
    VoiceRecord,
    default_voice_record,
)
from lms_speaks.tts.errors import AudioMissingError, EngineError
from lms_speaks.tts.process import ProcessResult, ProcessRunner
from lms_speaks.tts.scratch import scratch


class OSProcessEngine(BaseSpeechEngine):
    """
    Base class for engines that shell out to a platform speech tool.

    Subclasses set ``platform_label`` and implement _invoke(),
    _run_listing() and _parse_voices().

    Attributes:
        runner: ProcessRunner used for every invocation.
        tmpdir: Scratch directory override (default: system temp).
    """
    name = "system"
    platform: str = "unknown"
    platform_label: str = "Default"

    def __init__(self, settings: Settings, runner: Optional[ProcessRunner] = None, tmpdir: Any = None):
        super().__init__(settings)
        if runner is None:
            cfg = settings.get_service_config()
            runner = ProcessRunner(timeout_s=cfg.tts.process_timeout_s)
        self.runner = runner
        self.tmpdir = tmpdir

    def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        with scratch(self.tmpdir) as handle:
            text_path = handle.path(".txt")
            wav_path = handle.path(".wav")
            text_path.write_text(request.text, encoding="utf-8")

            verbose(
                self.logger,
                "os_synthesize",
                platform=self.platform,
                chars=len(request.text),
                voice=request.voice,
                speed=request.speed,
            )
            self._invoke(request, text_path, wav_path)
            audio = self._read_audio(wav_path)

        return SynthesisResult(audio=audio, format=AudioFormat.WAV)

    def _invoke(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> ProcessResult:
        raise NotImplementedError

    def _read_audio(self, wav_path: Path) -> bytes:
        try:
            audio = wav_path.read_bytes()
        except FileNotFoundError:
            raise AudioMissingError(f"{self.platform} speech tool produced no audio file") from None
        if not audio:
            raise AudioMissingError(f"{self.platform} speech tool produced an empty audio file")
        return audio

    def list_voices(self) -> List[VoiceRecord]:
        try:
            result = self._run_listing()
        except EngineError as exc:
            warn(self.logger, "voice_listing_failed", platform=self.platform, error=exc.message)
            return [default_voice_record(self.platform_label)]

        voices = self._parse_voices(result.stdout)
        debug(self.logger, "voices_listed", platform=self.platform, count=len(voices))
        return voices

    def _run_listing(self) -> ProcessResult:
        raise NotImplementedError

    def _parse_voices(self, output: str) -> List[VoiceRecord]:
        raise NotImplementedError

    def describe(self) -> Dict[str, Any]:
        return {
            "engine": self.name,
            "platform": self.platform,
            "native_formats": sorted(f.value for f in self.native_formats),
        }


def create_system_engine(settings: Settings, platform: str, runner: Optional[ProcessRunner] = None) -> OSProcessEngine:
    """
    Select the platform strategy for a sys.platform value.

    darwin -> MacOSSpeechEngine, win32 -> WindowsSpeechEngine,
    anything else -> EspeakEngine.
    """
    if platform == "darwin":
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine
        return MacOSSpeechEngine(settings, runner=runner)
    if platform == "win32":
        from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine
        return WindowsSpeechEngine(settings, runner=runner)

    from lms_speaks.tts.engines.espeak_engine import EspeakEngine
    return EspeakEngine(settings, runner=runner)
