"""
Tests for the OS speech engines.

No speech tool is ever spawned: every engine gets a FakeRunner that
writes DEADBEEF to whatever output path the engine asked for.
"""
from __future__ import annotations

import pytest

from conftest import DEADBEEF, FakeRunner


def _engine(cls, settings, runner, tmp_path):
    return cls(settings, runner=runner, tmpdir=tmp_path)


class TestRates:

    @pytest.mark.parametrize("speed,expected", [(1.0, 200), (0.25, 50), (4.0, 800), (1.5, 300)])
    def test_say_rate(self, speed, expected):
        from lms_speaks.tts.engines.macos_engine import say_rate
        assert say_rate(speed) == expected

    @pytest.mark.parametrize("speed,expected", [(1.0, 175), (2.0, 350), (0.5, 88), (0.25, 44)])
    def test_espeak_rate(self, speed, expected):
        from lms_speaks.tts.engines.espeak_engine import espeak_rate
        assert espeak_rate(speed) == expected

    @pytest.mark.parametrize(
        "speed,expected",
        [(1.0, 0), (2.0, 5), (0.25, -4), (1.5, 3), (0.5, -2), (3.0, 10), (10.0, 10), (-5.0, -10)],
    )
    def test_sapi_rate(self, speed, expected):
        from lms_speaks.tts.engines.windows_engine import sapi_rate
        assert sapi_rate(speed) == expected


class TestMacOSEngine:

    def test_end_to_end(self, settings, tmp_path):
        from lms_speaks.tts.engine import AudioFormat, SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        runner = FakeRunner()
        engine = _engine(MacOSSpeechEngine, settings, runner, tmp_path)
        result = engine.synthesize(SynthesisRequest(text="Hello there", voice="Alex"))

        assert result.audio == DEADBEEF
        assert result.format == AudioFormat.WAV
        assert runner.programs == ["say"]
        assert runner.calls[0].text == "Hello there"
        assert list(tmp_path.iterdir()) == []

    def test_argv_shape(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        runner = FakeRunner()
        engine = _engine(MacOSSpeechEngine, settings, runner, tmp_path)
        engine.synthesize(SynthesisRequest(text="Hi", voice="Bad News", speed=1.5))

        args = runner.calls[0].args
        assert args[:4] == ["-v", "Bad News", "-r", "300"]
        assert "--data-format=LEI16@22050" in args
        assert args[args.index("-o") + 1].endswith(".wav")
        assert args[args.index("-f") + 1].endswith(".txt")

    def test_default_voice_omits_flag(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        runner = FakeRunner()
        _engine(MacOSSpeechEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text="Hi"))
        assert "-v" not in runner.calls[0].args

    def test_text_never_in_argv(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        hostile = "-o /etc/passwd; rm -rf / $(whoami)"
        runner = FakeRunner()
        _engine(MacOSSpeechEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text=hostile))

        assert hostile not in runner.calls[0].args
        assert runner.calls[0].text == hostile

    def test_list_voices(self, settings):
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        runner = FakeRunner(stdout="Alex                en_US    # Hello\n")
        voices = MacOSSpeechEngine(settings, runner=runner).list_voices()
        assert [v.id for v in voices] == ["Alex"]
        assert runner.calls[0].args == ["-v", "?"]

    def test_list_voices_tool_missing(self, settings):
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine

        voices = MacOSSpeechEngine(settings, runner=FakeRunner(missing=("say",))).list_voices()
        assert [v.to_dict() for v in voices] == [{"id": "default", "name": "Default (macOS)"}]


class TestEspeakEngine:

    def test_end_to_end(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine

        runner = FakeRunner()
        result = _engine(EspeakEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text="Hallo"))

        assert result.audio == DEADBEEF
        assert runner.programs == ["espeak-ng"]
        assert list(tmp_path.iterdir()) == []

    def test_argv_shape(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine

        runner = FakeRunner()
        engine = _engine(EspeakEngine, settings, runner, tmp_path)
        engine.synthesize(SynthesisRequest(text="Hi", voice="en-us", speed=2.0))

        args = runner.calls[0].args
        assert args[:4] == ["-v", "en-us", "-s", "350"]
        assert args[args.index("-w") + 1].endswith(".wav")
        assert args[args.index("-f") + 1].endswith(".txt")

    def test_falls_back_to_espeak(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine

        runner = FakeRunner(missing=("espeak-ng",))
        result = _engine(EspeakEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text="Hi"))

        assert result.audio == DEADBEEF
        assert runner.programs == ["espeak-ng", "espeak"]
        assert runner.calls[0].args == runner.calls[1].args

    def test_both_missing(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine
        from lms_speaks.tts.errors import ToolNotFoundError

        runner = FakeRunner(missing=("espeak-ng", "espeak"))
        with pytest.raises(ToolNotFoundError):
            _engine(EspeakEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text="Hi"))
        assert list(tmp_path.iterdir()) == []

    def test_list_voices_with_fallback(self, settings):
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine

        output = "Pty Language Age/Gender VoiceName File\n 5  af  --/M  Afrikaans  gmw/af\n"
        runner = FakeRunner(missing=("espeak-ng",), stdout=output)
        voices = EspeakEngine(settings, runner=runner).list_voices()

        assert [v.id for v in voices] == ["af"]
        assert runner.programs == ["espeak-ng", "espeak"]

    def test_list_voices_failure(self, settings):
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine

        voices = EspeakEngine(settings, runner=FakeRunner(returncode=1, stderr="boom")).list_voices()
        assert [v.to_dict() for v in voices] == [{"id": "default", "name": "Default (Linux)"}]


class TestWindowsEngine:

    def test_end_to_end(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine

        runner = FakeRunner()
        result = _engine(WindowsSpeechEngine, settings, runner, tmp_path).synthesize(
            SynthesisRequest(text="Grüße", voice="Microsoft Zira Desktop")
        )

        assert result.audio == DEADBEEF
        assert runner.programs == ["powershell"]
        assert runner.calls[0].text == "Grüße"
        assert list(tmp_path.iterdir()) == []

    def test_script_is_constant(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.windows_engine import (
            POWERSHELL_FLAGS,
            SPEAK_SCRIPT,
            WindowsSpeechEngine,
        )

        runner = FakeRunner()
        engine = _engine(WindowsSpeechEngine, settings, runner, tmp_path)
        engine.synthesize(SynthesisRequest(text="'; Remove-Item C:\\ -Recurse; '", voice="Evil'; voice"))

        assert runner.calls[0].args == [*POWERSHELL_FLAGS, SPEAK_SCRIPT]

    def test_env(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine

        runner = FakeRunner()
        engine = _engine(WindowsSpeechEngine, settings, runner, tmp_path)
        engine.synthesize(SynthesisRequest(text="Hi", voice="Microsoft David Desktop", speed=10.0))

        env = runner.calls[0].env
        # speed clamps to 4.0 -> (4 - 1) * 5 = 15 -> rate clamps to 10
        assert env["LMS_SPEAKS_RATE"] == "10"
        assert env["LMS_SPEAKS_VOICE"] == "Microsoft David Desktop"
        assert env["LMS_SPEAKS_OUTPUT"].endswith(".wav")
        assert env["LMS_SPEAKS_INPUT"].endswith(".txt")

    def test_default_voice_not_selected(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine

        runner = FakeRunner()
        _engine(WindowsSpeechEngine, settings, runner, tmp_path).synthesize(SynthesisRequest(text="Hi"))
        assert "LMS_SPEAKS_VOICE" not in runner.calls[0].env
        assert runner.calls[0].env["LMS_SPEAKS_RATE"] == "0"

    def test_list_voices(self, settings):
        from lms_speaks.tts.engines.windows_engine import LIST_SCRIPT, WindowsSpeechEngine

        runner = FakeRunner(stdout="Microsoft Zira Desktop|en-US|Female\n")
        voices = WindowsSpeechEngine(settings, runner=runner).list_voices()
        assert voices[0].gender == "female"
        assert runner.calls[0].args[-1] == LIST_SCRIPT

    def test_list_voices_failure(self, settings):
        from lms_speaks.tts.engines.windows_engine import WindowsSpeechEngine

        voices = WindowsSpeechEngine(settings, runner=FakeRunner(missing=("powershell",))).list_voices()
        assert voices[0].name == "Default (Windows)"


class TestFailureCleanup:
    """Scratch files never outlive the attempt."""

    def test_nonzero_exit(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine
        from lms_speaks.tts.errors import ProcessFailedError

        runner = FakeRunner(returncode=1, stderr="Voice `Nobody' not found.")
        engine = _engine(MacOSSpeechEngine, settings, runner, tmp_path)
        with pytest.raises(ProcessFailedError) as exc_info:
            engine.synthesize(SynthesisRequest(text="Hi", voice="Nobody"))

        assert "Voice `Nobody' not found." in exc_info.value.message
        assert list(tmp_path.iterdir()) == []

    def test_timeout(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine
        from lms_speaks.tts.errors import ProcessTimeoutError

        def handler(program, args, env):
            # Partial output is written before the kill
            out = args[args.index("-w") + 1]
            with open(out, "wb") as fh:
                fh.write(b"RIFF")
            raise ProcessTimeoutError(program, 5.0)

        engine = _engine(EspeakEngine, settings, FakeRunner(handler=handler), tmp_path)
        with pytest.raises(ProcessTimeoutError):
            engine.synthesize(SynthesisRequest(text="Hi"))
        assert list(tmp_path.iterdir()) == []

    def test_no_audio_written(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.macos_engine import MacOSSpeechEngine
        from lms_speaks.tts.errors import AudioMissingError

        engine = _engine(MacOSSpeechEngine, settings, FakeRunner(write_audio=False), tmp_path)
        with pytest.raises(AudioMissingError):
            engine.synthesize(SynthesisRequest(text="Hi"))
        assert list(tmp_path.iterdir()) == []

    def test_empty_audio(self, settings, tmp_path):
        from lms_speaks.tts.engine import SynthesisRequest
        from lms_speaks.tts.engines.espeak_engine import EspeakEngine
        from lms_speaks.tts.errors import AudioMissingError

        engine = _engine(EspeakEngine, settings, FakeRunner(audio=b""), tmp_path)
        with pytest.raises(AudioMissingError, match="empty"):
            engine.synthesize(SynthesisRequest(text="Hi"))


class TestEngineFactory:

    @pytest.mark.parametrize(
        "platform,cls_name,label",
        [
            ("darwin", "MacOSSpeechEngine", "Default (macOS)"),
            ("win32", "WindowsSpeechEngine", "Default (Windows)"),
            ("linux", "EspeakEngine", "Default (Linux)"),
            ("freebsd13", "EspeakEngine", "Default (Linux)"),
        ],
    )
    def test_platform_selection(self, settings, platform, cls_name, label):
        from lms_speaks.tts.engine import create_engine

        engine = create_engine(settings, platform=platform, runner=FakeRunner())
        assert type(engine).__name__ == cls_name
        assert engine.name == "system"
        assert engine.platform_label == label

    @pytest.mark.parametrize("alias", ["system", "OS", " native "])
    def test_system_aliases(self, alias):
        from lms_speaks.core.config import Settings
        from lms_speaks.tts.engine import create_engine

        engine = create_engine(Settings(raw={"tts": {"engine": alias}}), platform="linux", runner=FakeRunner())
        assert engine.name == "system"

    def test_lmstudio(self):
        import httpx

        from lms_speaks.core.config import Settings
        from lms_speaks.tts.engine import create_engine

        client = httpx.Client(base_url="http://lms.test", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        engine = create_engine(Settings(raw={"tts": {"engine": "lmstudio"}}), http_client=client)
        assert engine.name == "lmstudio"

    def test_unknown_engine(self):
        from lms_speaks.core.config import Settings
        from lms_speaks.tts.engine import create_engine

        with pytest.raises(ValueError, match="Unknown engine type: piper"):
            create_engine(Settings(raw={"tts": {"engine": "piper"}}))

    def test_runner_built_from_settings(self):
        from lms_speaks.core.config import Settings
        from lms_speaks.tts.engine import create_engine

        engine = create_engine(Settings(raw={"tts": {"process_timeout_s": 12}}), platform="linux")
        assert engine.runner.timeout_s == 12.0

    def test_describe(self, settings):
        from lms_speaks.tts.engine import create_engine

        info = create_engine(settings, platform="darwin", runner=FakeRunner()).describe()
        assert info == {"engine": "system", "platform": "macos", "native_formats": ["wav"]}
