"""
Command-Line Interface for lms-speaks.

Runs the HTTP server, or synthesizes a single text without it.

Usage Examples:
    # Start the OpenAI-compatible server
    lms-speaks --serve
    lms-speaks --serve --host 0.0.0.0 --port 9000

    # Single text synthesis
    lms-speaks --text "Hello there" --out hello.wav

    # Positional text, explicit voice and speed
    lms-speaks "Hello there" --voice Samantha --speed 1.25 --out hello.wav

    # List voices / models of the active engine
    lms-speaks --voices --json
    lms-speaks --models

    # Use LM Studio instead of the OS speech tool
    lms-speaks --engine lmstudio "Hello" --out hello.wav

Environment Variables:
    TTS_ENGINE:           system | lmstudio
    TTS_VOICE:            Default voice
    TTS_HOST / TTS_PORT:  Server bind address
    LMS_API_BASE_URL:     LM Studio base URL
    TTS_MODEL_KEY:        LM Studio model to load before first synthesis
    LMS_SPEAKS_SETTINGS:  Settings file (default config/settings.yaml)

Exit Codes:
    0 success, 1 synthesis failure, 2 usage or configuration error
"""
from __future__ import annotations

import argparse
import json
import os
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from lms_speaks import __version__
from lms_speaks.core.config import ConfigValidationError, default_settings_path, load_settings
from lms_speaks.core.logging import configure_logging, get_logger, info, set_request_id
from lms_speaks.tts.engine import AudioFormat


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lms-speaks",
        description="lms-speaks CLI (OpenAI-compatible text-to-speech)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Server mode
    parser.add_argument("--serve", action="store_true", help="Run the HTTP server")
    parser.add_argument("--host", help="Bind host (overrides server.host)")
    parser.add_argument("--port", type=int, help="Bind port (overrides server.port)")

    # Input / output
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--out", help="Output audio path (default: out.<format>)")

    # Synthesis options
    parser.add_argument("--voice", help="Voice id (see --voices)")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier, 0.25-4.0")
    parser.add_argument(
        "--format",
        choices=[f.value for f in AudioFormat],
        default=AudioFormat.WAV.value,
        help="Requested format (OS engines always produce wav)",
    )

    # Listing
    parser.add_argument("--voices", action="store_true", help="List voices and exit")
    parser.add_argument("--models", action="store_true", help="List models and exit")

    # Configuration
    parser.add_argument("--engine", help="Engine override (system, lmstudio)")
    parser.add_argument("--settings", help="Settings file path")
    parser.add_argument("--json", action="store_true", help="Print JSON output")

    return parser.parse_args(argv)


def _print(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _serve(settings, args: argparse.Namespace) -> int:
    import uvicorn

    from lms_speaks.main import create_app

    server = settings.get_service_config().server
    host = args.host or server.host
    port = args.port or server.port

    app = create_app(settings)
    # log_config=None keeps uvicorn on our handlers
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = _parse_args(argv)

    if args.engine:
        os.environ["TTS_ENGINE"] = args.engine

    try:
        settings = load_settings(args.settings or default_settings_path())
        settings.get_service_config()
    except ConfigValidationError as e:
        print(f"Configuration error: {e}")
        return 2

    configure_logging(config=settings.raw.get("logging") or {}, force=True)
    log = get_logger("lms-speaks.cli")

    if args.serve:
        return _serve(settings, args)

    from lms_speaks.services.speech_service import SpeechError, SpeechService
    from lms_speaks.tts.engine import SynthesisRequest

    try:
        service = SpeechService(settings)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 2

    if args.voices:
        _print({"ok": True, "voices": [v.to_dict() for v in service.list_voices()]}, args.json)
        return 0

    if args.models:
        _print({"ok": True, "models": [m.to_dict() for m in service.list_models()]}, args.json)
        return 0

    text = args.text or args.text_pos
    if not text:
        raise SystemExit("Provide --text or a positional text.")

    rid = uuid4().hex[:12]
    set_request_id(rid)

    request = SynthesisRequest(
        text=text,
        voice=args.voice or service.default_voice,
        format=AudioFormat(args.format),
        speed=args.speed,
    )

    try:
        result = service.synthesize(request, rid)
    except SpeechError as e:
        _print({"ok": False, **e.to_dict()}, args.json)
        return 1

    out_path = Path(args.out or f"out.{result.format.value}")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(result.audio)
    info(log, "cli_written", out=str(out_path), bytes=len(result.audio))

    _print(
        {
            "ok": True,
            "out": str(out_path),
            "bytes": len(result.audio),
            "format": result.format.value,
            "requested_format": result.requested_format.value,
            "engine": result.engine,
        },
        args.json,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
