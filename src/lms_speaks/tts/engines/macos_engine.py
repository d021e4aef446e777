"""
macOS `say` engine.

Invocation:
    say [-v VOICE] -r WPM -o OUT.wav --data-format=LEI16@22050 -f IN.txt

WPM is round_half_up(200 * speed); 200 wpm is roughly say's own default.
"""
from __future__ import annotations

from pathlib import Path
from typing import List

from lms_speaks.tts.engine import SynthesisRequest, VoiceRecord, is_default_voice, round_half_up
from lms_speaks.tts.engines.system_engine import OSProcessEngine
from lms_speaks.tts.process import ProcessResult
from lms_speaks.tts.voices import parse_say_voices

SAY_PROGRAM = "say"
BASE_WPM = 200
# 16-bit little-endian PCM in a WAV container
DATA_FORMAT = "LEI16@22050"


def say_rate(speed: float) -> int:
    return round_half_up(BASE_WPM * speed)


class MacOSSpeechEngine(OSProcessEngine):
    platform = "macos"
    platform_label = "Default (macOS)"

    def build_args(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> List[str]:
        args: List[str] = []
        if not is_default_voice(request.voice):
            args += ["-v", request.voice]
        args += [
            "-r", str(say_rate(request.speed)),
            "-o", str(wav_path),
            f"--data-format={DATA_FORMAT}",
            "-f", str(text_path),
        ]
        return args

    def _invoke(self, request: SynthesisRequest, text_path: Path, wav_path: Path) -> ProcessResult:
        return self.runner.run(SAY_PROGRAM, self.build_args(request, text_path, wav_path))

    def _run_listing(self) -> ProcessResult:
        return self.runner.run(SAY_PROGRAM, ["-v", "?"])

    def _parse_voices(self, output: str) -> List[VoiceRecord]:
        return parse_say_voices(output, self.platform_label)
