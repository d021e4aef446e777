"""
Voice Catalog Parsers.

Turns each platform's "list voices" output into VoiceRecords. Parsing is
line-oriented: a line that does not look like a voice entry is dropped,
never fatal. An empty result is replaced by the synthetic default voice,
so callers always get at least one record.

Formats:
    macOS  `say -v ?`:
        Alex                en_US    # Most people recognize me by my voice.
        Bad News            en_US    # The light you see at the end ...

    Windows (PowerShell, one voice per line):
        Microsoft David Desktop|en-US|Male

    espeak / espeak-ng `--voices`:
        Pty Language       Age/Gender VoiceName          File          Other Languages
         5  af              --/M      Afrikaans          gmw/af
         5  en-us           --/F      English_(America)  gmw/en-US     (en 3)
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional

from lms_speaks.core.logging import debug, get_logger
from lms_speaks.tts.engine import VoiceRecord, default_voice_record

_LOG = get_logger("lms-speaks.voices")

_LOCALE_RE = re.compile(r"^[A-Za-z]{2,3}(?:[_-][A-Za-z0-9]+)*$")

_ESPEAK_GENDERS = {"M": "male", "F": "female"}


def _lines(output: str) -> Iterable[str]:
    for line in output.splitlines():
        line = line.rstrip()
        if line.strip():
            yield line


def _with_default(voices: List[VoiceRecord], label: str) -> List[VoiceRecord]:
    return voices if voices else [default_voice_record(label)]


def parse_say_voices(output: str, label: str = "Default") -> List[VoiceRecord]:
    """Parse macOS ``say -v ?`` output. Voice names may contain spaces."""
    voices: List[VoiceRecord] = []
    for line in _lines(output):
        entry = line.split("#", 1)[0].strip()
        parts = entry.rsplit(None, 1)
        if len(parts) != 2 or not _LOCALE_RE.match(parts[1]):
            debug(_LOG, "voice_line_skipped", platform="macos", line=line)
            continue
        name, locale = parts[0].strip(), parts[1]
        voices.append(VoiceRecord(id=name, name=name, language=locale.replace("_", "-")))
    return _with_default(voices, label)


def parse_sapi_voices(output: str, label: str = "Default") -> List[VoiceRecord]:
    """Parse ``Name|Culture|Gender`` lines printed by the PowerShell listing script."""
    voices: List[VoiceRecord] = []
    for line in _lines(output):
        fields = [f.strip() for f in line.split("|")]
        name = fields[0]
        if not name:
            continue
        language = fields[1] if len(fields) > 1 and fields[1] else None
        gender = fields[2].lower() if len(fields) > 2 and fields[2] else None
        voices.append(VoiceRecord(id=name, name=name, language=language, gender=gender))
    return _with_default(voices, label)


def _espeak_gender(age_gender: str) -> Optional[str]:
    return _ESPEAK_GENDERS.get(age_gender.rsplit("/", 1)[-1].upper())


def parse_espeak_voices(output: str, label: str = "Default") -> List[VoiceRecord]:
    """
    Parse ``espeak --voices`` output.

    The record id is the Language column, which is what ``-v`` accepts;
    the VoiceName column becomes the display name.
    """
    voices: List[VoiceRecord] = []
    for line in _lines(output):
        parts = line.split()
        if len(parts) < 4 or not parts[0].isdigit():
            continue
        language, age_gender, voice_name = parts[1], parts[2], parts[3]
        voices.append(
            VoiceRecord(
                id=language,
                name=voice_name,
                language=language,
                gender=_espeak_gender(age_gender),
            )
        )
    return _with_default(voices, label)
