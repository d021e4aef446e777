"""
Engine Failure Taxonomy.

These exceptions are raised by the engine layer (process runner, platform
strategies, remote strategy). The service layer translates them into
SpeechError codes for the HTTP front door; the diagnostic text is carried
through unchanged.

    EngineError
    ├── ToolNotFoundError      - binary absent on the host (fallback-able)
    ├── ProcessFailedError     - non-zero exit / spawn failure
    │   └── ProcessTimeoutError
    ├── AudioMissingError      - process succeeded but wrote no audio
    └── RemoteFailureError     - speech API answered with an error
"""
from __future__ import annotations

from typing import Optional


class EngineError(Exception):
    """Base class for synthesis failures raised below the service layer."""

    kind = "engine_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ToolNotFoundError(EngineError):
    """The named program does not exist on this host."""

    kind = "tool_not_found"

    def __init__(self, program: str):
        self.program = program
        super().__init__(f"{program}: command not found")


class ProcessFailedError(EngineError):
    """
    An external process failed.

    Attributes:
        program: Program that was run.
        returncode: Exit status, or None if it never produced one.
        stderr: Captured standard error (decoded, stripped).
    """

    kind = "process_failed"

    def __init__(self, program: str, returncode: Optional[int], stderr: str = ""):
        self.program = program
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            message = f"{program} failed to run"
        else:
            message = f"{program} exited with code {returncode}"
        if stderr:
            message = f"{message}: {stderr}"
        super().__init__(message)


class ProcessTimeoutError(ProcessFailedError):
    """The process did not finish within the runner timeout and was killed."""

    kind = "process_timeout"

    def __init__(self, program: str, timeout_s: float, stderr: str = ""):
        self.timeout_s = timeout_s
        super().__init__(program, None, stderr)
        self.message = f"{program} timed out after {timeout_s:g}s"
        self.args = (self.message,)


class AudioMissingError(EngineError):
    """The engine reported success but no audio was produced."""

    kind = "audio_missing"


class RemoteFailureError(EngineError):
    """
    The remote speech API returned an error or could not be reached.

    Attributes:
        status: HTTP status code, or None for transport errors.
    """

    kind = "remote_failed"

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        super().__init__(message)
