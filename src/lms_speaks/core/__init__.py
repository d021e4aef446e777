"""
Core Infrastructure for lms-speaks.

    - config.py: Settings loading and validation
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus metrics
"""
