"""
Timing Utilities.

Wall-clock measurement for code blocks. Process runs and synthesis
requests are timed with this and the seconds are attached to log
records and the request-duration histogram.

Example Usage:
    with timeit("synthesis") as t:
        result = engine.synthesize(request)
    print(f"Took {t.timing.seconds:.3f}s")
"""
from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Optional


@dataclass
class Timing:
    """
    Timing measurement result.

    Attributes:
        name: What was timed ("process", "synthesis", ...).
        seconds: Duration in seconds.
    """
    name: str
    seconds: float


class timeit:
    """
    Context manager for timing a block.

    ``timing`` is set on exit, including when the block raises, so the
    duration of failed calls can still be recorded.
    """

    def __init__(self, name: str):
        self.name = name
        self._t0: Optional[float] = None
        self.timing: Optional[Timing] = None

    @property
    def elapsed(self) -> float:
        """Seconds since entry (or total, once exited)."""
        if self.timing is not None:
            return self.timing.seconds
        if self._t0 is None:
            return 0.0
        return perf_counter() - self._t0

    def __enter__(self) -> "timeit":
        self._t0 = perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._t0 is not None
        self.timing = Timing(name=self.name, seconds=perf_counter() - self._t0)
