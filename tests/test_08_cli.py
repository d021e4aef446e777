"""Tests for the lms-speaks command line."""
from __future__ import annotations

import json

import pytest

from conftest import StubEngine


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures logging onto the captured stdout; put it back afterwards."""
    yield
    from lms_speaks.core.logging import configure_logging

    configure_logging(level=2, force=True)


@pytest.fixture
def stub_engine(monkeypatch):
    """Make every SpeechService the CLI builds use a StubEngine."""
    engines = []

    def fake_create_engine(settings, **kwargs):
        engine = StubEngine(settings)
        engines.append(engine)
        return engine

    monkeypatch.setattr("lms_speaks.services.speech_service.create_engine", fake_create_engine)
    return engines


@pytest.fixture
def no_settings(tmp_path, monkeypatch):
    """Point the CLI at a settings file that does not exist."""
    monkeypatch.delenv("TTS_ENGINE", raising=False)
    return ["--settings", str(tmp_path / "absent.yaml")]


def _json_out(capsys):
    return json.loads(capsys.readouterr().out.strip().splitlines()[-1])


class TestSynthesis:

    def test_writes_audio(self, tmp_path, capsys, stub_engine, no_settings):
        from lms_speaks import cli

        out = tmp_path / "hello.wav"
        code = cli.main(["Hello there", "--out", str(out), "--voice", "alpha", "--json", *no_settings])

        assert code == 0
        assert out.read_bytes() == b"RIFFstub"
        payload = _json_out(capsys)
        assert payload == {
            "ok": True,
            "out": str(out),
            "bytes": 8,
            "format": "wav",
            "requested_format": "wav",
            "engine": "stub",
        }
        assert stub_engine[0].requests[0].voice == "alpha"

    def test_default_out_follows_actual_format(self, tmp_path, monkeypatch, capsys, stub_engine, no_settings):
        from lms_speaks import cli

        monkeypatch.chdir(tmp_path)
        code = cli.main(["--text", "Hi", "--format", "mp3", "--json", *no_settings])

        assert code == 0
        assert (tmp_path / "out.wav").read_bytes() == b"RIFFstub"
        payload = _json_out(capsys)
        assert payload["requested_format"] == "mp3"
        assert payload["format"] == "wav"

    def test_speed_clamped(self, tmp_path, stub_engine, no_settings):
        from lms_speaks import cli

        cli.main(["Hi", "--speed", "0.01", "--out", str(tmp_path / "a.wav"), *no_settings])
        assert stub_engine[0].requests[0].speed == 0.25

    def test_out_parent_created(self, tmp_path, stub_engine, no_settings):
        from lms_speaks import cli

        out = tmp_path / "nested" / "dir" / "a.wav"
        assert cli.main(["Hi", "--out", str(out), *no_settings]) == 0
        assert out.exists()

    def test_synthesis_failure(self, tmp_path, monkeypatch, capsys, no_settings):
        from lms_speaks import cli
        from lms_speaks.tts.errors import ToolNotFoundError

        def failing_engine(settings, **kwargs):
            return StubEngine(settings, error=ToolNotFoundError("espeak"))

        monkeypatch.setattr("lms_speaks.services.speech_service.create_engine", failing_engine)
        out = tmp_path / "a.wav"
        code = cli.main(["Hi", "--out", str(out), "--json", *no_settings])

        assert code == 1
        assert not out.exists()
        payload = _json_out(capsys)
        assert payload["ok"] is False
        assert payload["error"] == "TOOL_NOT_FOUND"
        assert payload["message"] == "espeak: command not found"

    def test_missing_text(self, stub_engine, no_settings):
        from lms_speaks import cli

        with pytest.raises(SystemExit):
            cli.main([*no_settings])


class TestListing:

    def test_voices(self, capsys, stub_engine, no_settings):
        from lms_speaks import cli

        assert cli.main(["--voices", "--json", *no_settings]) == 0
        assert _json_out(capsys) == {"ok": True, "voices": [{"id": "alpha", "name": "Alpha", "language": "en-US"}]}

    def test_models(self, capsys, stub_engine, no_settings):
        from lms_speaks import cli

        assert cli.main(["--models", "--json", *no_settings]) == 0
        payload = _json_out(capsys)
        assert [m["id"] for m in payload["models"]] == ["tts-1", "tts-1-hd"]


class TestConfiguration:

    def test_invalid_settings(self, tmp_path, capsys, no_settings):
        from lms_speaks import cli

        path = tmp_path / "bad.yaml"
        path.write_text("server:\n  port: 0\n", encoding="utf-8")
        assert cli.main(["Hi", "--settings", str(path)]) == 2
        assert "Configuration error" in capsys.readouterr().out

    def test_unknown_engine(self, capsys, no_settings):
        from lms_speaks import cli

        assert cli.main(["Hi", "--engine", "piper", *no_settings]) == 2
        assert "Unknown engine type: piper" in capsys.readouterr().out

    def test_engine_flag_selects_lmstudio(self, capsys, monkeypatch, no_settings):
        from lms_speaks import cli

        assert cli.main(["--models", "--engine", "lmstudio", "--json", *no_settings]) == 0
        assert _json_out(capsys)["ok"] is True

    def test_version(self, capsys):
        from lms_speaks import __version__, cli

        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestServe:

    def test_serve_uses_settings(self, tmp_path, monkeypatch, stub_engine):
        from lms_speaks import cli

        calls = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kw: calls.append((app, kw)))
        monkeypatch.delenv("TTS_HOST", raising=False)
        monkeypatch.delenv("TTS_PORT", raising=False)
        path = tmp_path / "settings.yaml"
        path.write_text("server:\n  host: 0.0.0.0\n  port: 9100\n", encoding="utf-8")

        assert cli.main(["--serve", "--settings", str(path)]) == 0
        app, kwargs = calls[0]
        assert kwargs == {"host": "0.0.0.0", "port": 9100, "log_config": None}
        assert app.state.speech_service.engine.name == "stub"

    def test_serve_flags_override(self, tmp_path, monkeypatch, stub_engine, no_settings):
        from lms_speaks import cli

        calls = []
        monkeypatch.setattr("uvicorn.run", lambda app, **kw: calls.append(kw))
        monkeypatch.delenv("TTS_HOST", raising=False)
        monkeypatch.delenv("TTS_PORT", raising=False)

        assert cli.main(["--serve", "--host", "127.0.0.2", "--port", "9200", *no_settings]) == 0
        assert calls[0]["host"] == "127.0.0.2"
        assert calls[0]["port"] == 9200
