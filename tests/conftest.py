"""Shared fakes: a ProcessRunner that never spawns anything, stub engines and settings helpers."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from lms_speaks.core.config import Settings
from lms_speaks.tts.engine import (
    AudioFormat,
    BaseSpeechEngine,
    SynthesisRequest,
    SynthesisResult,
    VoiceRecord,
)
from lms_speaks.tts.errors import ToolNotFoundError
from lms_speaks.tts.process import ProcessRunner

DEADBEEF = bytes.fromhex("DEADBEEF")


@dataclass
class Call:
    program: str
    args: List[str]
    env: Dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None


def _flag_value(args: List[str], flag: str) -> Optional[str]:
    if flag in args:
        i = args.index(flag)
        if i + 1 < len(args):
            return args[i + 1]
    return None


class FakeRunner(ProcessRunner):
    """
    ProcessRunner whose spawn step is simulated.

    - Programs in ``missing`` raise ToolNotFoundError.
    - A non-zero ``returncode`` is returned with ``stderr``.
    - Otherwise ``audio`` is written to the output path the engine chose
      (``-o``/``-w`` argument or LMS_SPEAKS_OUTPUT) and ``stdout`` returned.
    - ``handler`` replaces all of the above when given.
    """

    def __init__(
        self,
        audio: bytes = DEADBEEF,
        missing: tuple = (),
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        write_audio: bool = True,
        handler: Optional[Callable[[str, List[str], Dict[str, str]], tuple]] = None,
    ):
        super().__init__(timeout_s=5.0)
        self.audio = audio
        self.missing = set(missing)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.write_audio = write_audio
        self.handler = handler
        self.calls: List[Call] = []

    def _execute(self, program, args, env):
        env = dict(env or {})
        text_path = _flag_value(args, "-f") or env.get("LMS_SPEAKS_INPUT")
        text = None
        if text_path and Path(text_path).exists():
            text = Path(text_path).read_text(encoding="utf-8")
        self.calls.append(Call(program=program, args=list(args), env=env, text=text))

        if self.handler is not None:
            return self.handler(program, args, env)
        if program in self.missing:
            raise ToolNotFoundError(program)
        if self.returncode != 0:
            return self.returncode, "", self.stderr

        out = _flag_value(args, "-o") or _flag_value(args, "-w") or env.get("LMS_SPEAKS_OUTPUT")
        if self.write_audio and out:
            Path(out).write_bytes(self.audio)
        return 0, self.stdout, ""

    @property
    def programs(self) -> List[str]:
        return [c.program for c in self.calls]


class StubEngine(BaseSpeechEngine):
    """Returns fixed audio, or raises ``error`` when set."""
    name = "stub"

    def __init__(self, settings, audio=b"RIFFstub", fmt=AudioFormat.WAV, error: Optional[Exception] = None):
        super().__init__(settings)
        self.audio = audio
        self.fmt = fmt
        self.error = error
        self.requests: List[SynthesisRequest] = []
        self.voices: List[VoiceRecord] = [VoiceRecord(id="alpha", name="Alpha", language="en-US")]

    def synthesize(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return SynthesisResult(audio=self.audio, format=self.fmt)

    def list_voices(self):
        return list(self.voices)


class BlockingEngine(StubEngine):
    """Holds every synthesize() call until ``release`` is set."""

    def __init__(self, settings):
        super().__init__(settings)
        self.entered = threading.Event()
        self.release = threading.Event()

    def synthesize(self, request):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().synthesize(request)


@pytest.fixture
def settings() -> Settings:
    return Settings(raw={})


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()
