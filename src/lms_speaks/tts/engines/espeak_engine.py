"""
espeak-ng / espeak engine (Linux and every other non-macOS, non-Windows host).

Invocation:
    espeak-ng [-v VOICE] -s WPM -w OUT.wav -f IN.txt

WPM is round_half_up(175 * speed); 175 wpm is espeak's default. When
espeak-ng is not installed the same argv is retried with plain espeak.
"""
from __future__ import annotations

from pathlib import Path
from typing import List

from lms_speaks.tts.engine import SynthesisRequest, VoiceRecord, is_default_voice, round_half_up
from lms_speaks.tts.engines.system_engine import OSProcessEngine
from lms_speaks.tts.process import ProcessResult
from lms_speaks.tts.voices import parse_espeak_voices

ESPEAK_PROGRAM = "espeak-ng"
ESPEAK_FALLBACK = "espeak"
BASE_WPM = 175


def espeak_rate(speed: float) -> int:
    return round_half_up(BASE_WPM * speed)


class EspeakEngine(OSProcessEngine):
    platform = "linux"
    platform_label = "Default (Linux)"

    def build_args(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> List[str]:
        args: List[str] = []
        if not is_default_voice(request.voice):
            args += ["-v", request.voice]
        args += [
            "-s", str(espeak_rate(request.speed)),
            "-w", str(wav_path),
            "-f", str(text_path),
        ]
        return args

    def _invoke(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> ProcessResult:
        return self.runner.run(
            ESPEAK_PROGRAM,
            self.build_args(request, text_path, wav_path),
            fallback=ESPEAK_FALLBACK,
        )

    def _run_listing(self) -> ProcessResult:
        return self.runner.run(ESPEAK_PROGRAM, ["--voices"], fallback=ESPEAK_FALLBACK)

    def _parse_voices(self, output: str) -> List[VoiceRecord]:
        return parse_espeak_voices(output, self.platform_label)
