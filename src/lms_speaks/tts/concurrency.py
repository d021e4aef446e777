"""
Concurrency Admission Gate.

Every system-engine synthesis spawns an external process and writes
scratch files. The gate caps how many synthesis calls run at once so a
burst of requests cannot exhaust process slots or file descriptors.

Admission Strategy:
    1. If in_flight < max_concurrent: admit immediately
    2. Otherwise: refuse immediately (HTTP 429, retryable)

    There is no queue. Refusal is a capacity signal, distinct from
    synthesis failure, and clients are expected to retry.

Usage:
    gate = AdmissionGate(max_concurrent=5)

    with gate.admit():
        result = engine.synthesize(request)

    stats = gate.stats()
    print(f"In flight: {stats.in_flight}/{stats.max_concurrent}")

Configuration:
    settings.yaml:
        concurrency:
          max_concurrent: 5

    Environment: TTS_MAX_CONCURRENCY=5
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from lms_speaks.core.logging import get_logger, warn

_LOG = get_logger("lms-speaks.concurrency")


class AdmissionRefused(Exception):
    """The gate is at its ceiling. Always retryable."""

    retryable = True

    def __init__(self, max_concurrent: int):
        self.max_concurrent = max_concurrent
        super().__init__(f"Server busy ({max_concurrent} synthesis requests in flight)")


@dataclass
class GateStats:
    """Snapshot of gate counters."""
    max_concurrent: int
    in_flight: int
    total_admitted: int
    total_refused: int


class AdmissionGate:
    """
    Bounded in-flight counter.

    The counter is only mutated under ``_lock`` and the lock is never
    held while synthesis runs. in_flight stays within [0, max_concurrent].
    """

    def __init__(self, max_concurrent: int = 5):
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self._lock = threading.Lock()
        self._in_flight = 0
        self._total_admitted = 0
        self._total_refused = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def try_admit(self) -> bool:
        """
        Take a slot if one is free.

        Returns:
            True if admitted (caller must release()), False if refused.
        """
        with self._lock:
            if self._in_flight < self.max_concurrent:
                self._in_flight += 1
                self._total_admitted += 1
                return True
            self._total_refused += 1
            return False

    def release(self) -> None:
        """Return a slot taken by a successful try_admit()."""
        with self._lock:
            if self._in_flight == 0:
                warn(_LOG, "gate_release_unbalanced")
                return
            self._in_flight -= 1

    @contextmanager
    def admit(self) -> Iterator[None]:
        """
        Scoped admission; the slot is released however the block exits.

        Raises:
            AdmissionRefused: If the gate is full.
        """
        if not self.try_admit():
            raise AdmissionRefused(self.max_concurrent)
        try:
            yield
        finally:
            self.release()

    def stats(self) -> GateStats:
        with self._lock:
            return GateStats(
                max_concurrent=self.max_concurrent,
                in_flight=self._in_flight,
                total_admitted=self._total_admitted,
                total_refused=self._total_refused,
            )
