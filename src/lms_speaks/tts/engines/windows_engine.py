"""
Windows System.Speech engine, driven through PowerShell.

The PowerShell script is a constant. Everything request-specific reaches
it through environment variables, so nothing the caller sends is ever
parsed as PowerShell:

    LMS_SPEAKS_INPUT   path of the UTF-8 text file
    LMS_SPEAKS_OUTPUT  path of the wav to write
    LMS_SPEAKS_RATE    SAPI rate, integer in [-10, 10]
    LMS_SPEAKS_VOICE   installed voice name (only set for a non-default voice)

Rate:
    clamp(round_half_up((speed - 1) * 5), -10, 10); 0 is the normal
    speaking rate (about 150 wpm).
"""
from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from lms_speaks.tts.engine import SynthesisRequest, VoiceRecord, is_default_voice, round_half_up
from lms_speaks.tts.engines.system_engine import OSProcessEngine
from lms_speaks.tts.process import ProcessResult
from lms_speaks.tts.voices import parse_sapi_voices

POWERSHELL_PROGRAM = "powershell"
POWERSHELL_FLAGS = ["-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass", "-Command"]

ENV_INPUT = "LMS_SPEAKS_INPUT"
ENV_OUTPUT = "LMS_SPEAKS_OUTPUT"
ENV_RATE = "LMS_SPEAKS_RATE"
ENV_VOICE = "LMS_SPEAKS_VOICE"

MIN_RATE = -10
MAX_RATE = 10

SPEAK_SCRIPT = (
    "$ErrorActionPreference = 'Stop'; "
    "Add-Type -AssemblyName System.Speech; "
    "$s = New-Object System.Speech.Synthesis.SpeechSynthesizer; "
    "try { "
    "if ($env:LMS_SPEAKS_VOICE) { $s.SelectVoice($env:LMS_SPEAKS_VOICE) }; "
    "$s.Rate = [int]$env:LMS_SPEAKS_RATE; "
    "$s.SetOutputToWaveFile($env:LMS_SPEAKS_OUTPUT); "
    "$s.Speak([System.IO.File]::ReadAllText($env:LMS_SPEAKS_INPUT, [System.Text.Encoding]::UTF8)) "
    "} finally { $s.Dispose() }"
)

LIST_SCRIPT = (
    "Add-Type -AssemblyName System.Speech; "
    "(New-Object System.Speech.Synthesis.SpeechSynthesizer).GetInstalledVoices() | "
    "ForEach-Object { $_.VoiceInfo.Name + '|' + $_.VoiceInfo.Culture + '|' + $_.VoiceInfo.Gender }"
)


def sapi_rate(speed: float) -> int:
    return max(MIN_RATE, min(MAX_RATE, round_half_up((speed - 1.0) * 5)))


class WindowsSpeechEngine(OSProcessEngine):
    platform = "windows"
    platform_label = "Default (Windows)"

    def build_env(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> Dict[str, str]:
        env = {
            ENV_INPUT: str(text_path),
            ENV_OUTPUT: str(wav_path),
            ENV_RATE: str(sapi_rate(request.speed)),
        }
        if not is_default_voice(request.voice):
            env[ENV_VOICE] = request.voice
        return env

    def _invoke(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> ProcessResult:
        return self.runner.run(
            POWERSHELL_PROGRAM,
            [*POWERSHELL_FLAGS, SPEAK_SCRIPT],
            env=self.build_env(request, text_path, wav_path),
        )

    def _run_listing(self) -> ProcessResult:
        return self.runner.run(POWERSHELL_PROGRAM, [*POWERSHELL_FLAGS, LIST_SCRIPT])

    def _parse_voices(self, output: str) -> List[VoiceRecord]:
        return parse_sapi_voices(output, self.platform_label)
