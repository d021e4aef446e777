"""
Prometheus Metrics for lms-speaks.

Metrics Exposed:
    speech_requests_total             - Counter of synthesis requests by engine and status
    speech_request_duration_seconds   - Histogram of synthesis latency by engine
    speech_audio_bytes_total          - Counter of audio bytes returned
    speech_in_flight                  - Gauge of admitted, unfinished synthesis calls
    speech_admission_refused_total    - Counter of requests refused at the concurrency ceiling
    speech_process_invocations_total  - Counter of external processes spawned, by program and outcome

Each SpeechMetrics instance owns its own CollectorRegistry so several
apps (or tests) in one process do not collide on metric names.

Usage:
    metrics = SpeechMetrics()
    metrics.record_request("system", "success", 0.42, audio_bytes=88244)
    content, content_type = metrics.get_metrics_response()
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class SpeechMetrics:
    """
    Metrics collection for the speech service.

    When constructed with ``enabled=False`` every recording call is a
    no-op and /metrics returns a short placeholder.
    """

    def __init__(self, enabled: bool = True):
        self._enabled = enabled
        self._registry = CollectorRegistry()

        self._requests_total = Counter(
            "speech_requests_total",
            "Total synthesis requests",
            ["engine", "status"],
            registry=self._registry,
        )
        self._request_duration = Histogram(
            "speech_request_duration_seconds",
            "Synthesis duration in seconds",
            ["engine"],
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "speech_audio_bytes_total",
            "Total audio bytes returned",
            registry=self._registry,
        )
        self._in_flight = Gauge(
            "speech_in_flight",
            "Synthesis calls currently admitted",
            registry=self._registry,
        )
        self._admission_refused = Counter(
            "speech_admission_refused_total",
            "Requests refused at the concurrency ceiling",
            registry=self._registry,
        )
        self._process_invocations = Counter(
            "speech_process_invocations_total",
            "External speech processes spawned",
            ["program", "outcome"],
            registry=self._registry,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_request(self, engine: str, status: str, duration: float, audio_bytes: int = 0) -> None:
        """
        Record a finished synthesis request.

        Args:
            engine: Engine name ("system", "lmstudio", ...).
            status: "success" or an ErrorCode value.
            duration: Seconds spent inside the engine.
            audio_bytes: Size of the returned audio.
        """
        if not self._enabled:
            return
        self._requests_total.labels(engine=engine, status=status).inc()
        self._request_duration.labels(engine=engine).observe(duration)
        if audio_bytes > 0:
            self._audio_bytes_total.inc(audio_bytes)

    def record_refused(self) -> None:
        if not self._enabled:
            return
        self._admission_refused.inc()

    def record_process(self, program: str, outcome: str) -> None:
        """outcome is one of "ok", "not_found", "failed", "timeout"."""
        if not self._enabled:
            return
        self._process_invocations.labels(program=program, outcome=outcome).inc()

    def set_in_flight(self, count: int) -> None:
        if not self._enabled:
            return
        self._in_flight.set(count)

    def get_metrics_response(self) -> tuple[bytes, str]:
        """Prometheus exposition payload and its content type."""
        if not self._enabled:
            return b"# Metrics disabled\n", "text/plain; charset=utf-8"
        return generate_latest(self._registry), CONTENT_TYPE_LATEST
