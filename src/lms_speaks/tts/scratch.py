"""
Scratch File Guard.

Each synthesis attempt gets its own uniquely named scratch base under the
system temp directory. Paths derived from it (input text, output audio)
are registered on the handle and removed by release(), on every exit path.

Usage:
    with scratch() as handle:
        text_path = handle.path(".txt")
        wav_path = handle.path(".wav")
        ...
    # both files are gone here, whether the block returned or raised
"""
from __future__ import annotations

import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Union

from lms_speaks.core.logging import debug, get_logger

_LOG = get_logger("lms-speaks.scratch")

SCRATCH_PREFIX = "lms-speaks-"


class ScratchHandle:
    """
    Scratch paths owned by one synthesis attempt.

    Attributes:
        base: ``<tmpdir>/lms-speaks-<uuid hex>``; nothing is created on disk
            until the owner writes to a derived path.
    """

    def __init__(self, base: Path):
        self.base = base
        self._paths: List[Path] = []

    def path(self, suffix: str) -> Path:
        """Return ``base + suffix`` and register it for cleanup."""
        p = self.base.with_name(self.base.name + suffix)
        if p not in self._paths:
            self._paths.append(p)
        return p

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    def __repr__(self) -> str:
        return f"ScratchHandle({str(self.base)!r}, paths={len(self._paths)})"


def acquire(tmpdir: Optional[Union[str, Path]] = None) -> ScratchHandle:
    """Allocate a fresh scratch base under ``tmpdir`` (default: system temp)."""
    root = Path(tmpdir) if tmpdir is not None else Path(tempfile.gettempdir())
    return ScratchHandle(root / f"{SCRATCH_PREFIX}{uuid.uuid4().hex}")


def release(handle: ScratchHandle) -> None:
    """
    Delete every registered path. Never raises.

    A path that was never written, or is already gone, is not an error.
    """
    for p in handle.paths:
        try:
            p.unlink(missing_ok=True)
        except OSError as exc:
            debug(_LOG, "scratch_cleanup_failed", path=str(p), error=str(exc))


@contextmanager
def scratch(tmpdir: Optional[Union[str, Path]] = None) -> Iterator[ScratchHandle]:
    handle = acquire(tmpdir)
    try:
        yield handle
    finally:
        release(handle)
