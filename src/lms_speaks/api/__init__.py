"""
FastAPI REST API Layer for lms-speaks.

    - openai_compat.py: /v1/audio/speech, /v1/audio/voices, /v1/models
    - routes.py: /health, /metrics
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency injection
"""
