"""
Service Routes.

Endpoints:
    GET /health   - Health check for probes and the CLI
    GET /metrics  - Prometheus metrics

See Also:
    - api/openai_compat.py: Speech, voice and model endpoints
    - services/speech_service.py: get_health_info()
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from lms_speaks.api.dependencies import get_speech_service
from lms_speaks.services.speech_service import SpeechService

router = APIRouter()


@router.get("/health")
def health(service: SpeechService = Depends(get_speech_service)):
    """
    Health check.

    Returns:
        {"status": "ok", "engine": ..., "concurrency": {...}, ...}
    """
    return service.get_health_info()


@router.get("/metrics")
def prometheus_metrics(service: SpeechService = Depends(get_speech_service)):
    """
    Prometheus metrics endpoint.

    Exposes speech_requests_total, speech_request_duration_seconds,
    speech_in_flight, speech_admission_refused_total and
    speech_process_invocations_total.
    """
    content, content_type = service.metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
