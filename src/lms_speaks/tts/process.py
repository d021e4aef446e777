"""
External Process Runner.

Runs one speech tool to completion and classifies the outcome. Arguments
are always a vector and the shell is never involved, so caller text can
only reach a process through argv entries, environment variables or
files the engine wrote.

Outcomes:
    - ProcessResult:        exit status 0
    - ToolNotFoundError:    the program does not exist on this host
    - ProcessFailedError:   non-zero exit, or the spawn itself failed
    - ProcessTimeoutError:  the wall-clock timeout elapsed; the child is killed

Fallback:
    run("espeak-ng", args, fallback="espeak") retries exactly once with
    the fallback program, and only when the preferred program is missing.
    A non-zero exit from the preferred program is surfaced immediately.

Testing:
    Subclass ProcessRunner and override _execute() to simulate tools
    without spawning anything.
"""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from lms_speaks.core.config import Defaults
from lms_speaks.core.logging import debug, get_logger, verbose, warn
from lms_speaks.tts.errors import ProcessFailedError, ProcessTimeoutError, ToolNotFoundError
from lms_speaks.utils.timeit import timeit

_LOG = get_logger("lms-speaks.process")


@dataclass
class ProcessResult:
    """A process that exited with status 0."""
    program: str
    returncode: int
    stdout: str = ""
    stderr: str = ""


def _decode(data: Any) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace").strip()
    return str(data).strip()


class ProcessRunner:
    """
    Runs external programs with a timeout.

    Args:
        timeout_s: Wall-clock limit per invocation.
        metrics: Optional SpeechMetrics for per-program outcome counters.
    """

    def __init__(self, timeout_s: float = Defaults.TTS_PROCESS_TIMEOUT_S, metrics: Any = None):
        self.timeout_s = timeout_s
        self.metrics = metrics

    def run(
        self,
        program: str,
        args: Sequence[str],
        *,
        env: Optional[Dict[str, str]] = None,
        fallback: Optional[str] = None,
    ) -> ProcessResult:
        """
        Run ``program`` with ``args``, retrying once with ``fallback`` if
        the program is not installed.

        Args:
            program: Preferred executable name.
            args: Argument vector (without the program).
            env: Variables merged over the current environment.
            fallback: Alternate executable with the same argument shape.

        Raises:
            ToolNotFoundError: Neither program exists.
            ProcessFailedError: Non-zero exit or spawn failure.
            ProcessTimeoutError: Timeout elapsed.
        """
        try:
            return self._run_once(program, args, env)
        except ToolNotFoundError:
            if not fallback:
                raise
            warn(_LOG, "tool_fallback", program=program, fallback=fallback)
            return self._run_once(fallback, args, env)

    def _run_once(self, program: str, args: Sequence[str], env: Optional[Dict[str, str]]) -> ProcessResult:
        verbose(_LOG, "process_start", program=program, argc=len(args))
        try:
            with timeit("process") as t:
                returncode, stdout, stderr = self._execute(program, list(args), env)
        except ToolNotFoundError:
            self._record(program, "not_found")
            raise
        except ProcessTimeoutError:
            self._record(program, "timeout")
            raise
        except ProcessFailedError:
            self._record(program, "failed")
            raise

        debug(_LOG, "process_exit", program=program, returncode=returncode, seconds=t.timing.seconds)
        if returncode != 0:
            self._record(program, "failed")
            raise ProcessFailedError(program, returncode, stderr)

        self._record(program, "ok")
        return ProcessResult(program=program, returncode=returncode, stdout=stdout, stderr=stderr)

    def _execute(self, program: str, args: list, env: Optional[Dict[str, str]]) -> tuple[int, str, str]:
        """
        Spawn the process and wait for it.

        Returns:
            (returncode, stdout, stderr) with output decoded as UTF-8.
        """
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        try:
            completed = subprocess.run(
                [program, *args],
                capture_output=True,
                shell=False,
                timeout=self.timeout_s,
                env=full_env,
                stdin=subprocess.DEVNULL,
            )
        except FileNotFoundError:
            raise ToolNotFoundError(program) from None
        except subprocess.TimeoutExpired as exc:
            raise ProcessTimeoutError(program, self.timeout_s, _decode(exc.stderr)) from None
        except OSError as exc:
            raise ProcessFailedError(program, None, str(exc)) from exc

        return completed.returncode, _decode(completed.stdout), _decode(completed.stderr)

    def _record(self, program: str, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_process(program, outcome)
