"""
Speech Engine Layer.

    - engine.py:      data model, BaseSpeechEngine, create_engine() factory
    - engines/:       platform engines (say, PowerShell, espeak) and LM Studio
    - process.py:     external process runner with binary fallback
    - scratch.py:     per-attempt scratch files, always cleaned up
    - voices.py:      voice listing parsers
    - concurrency.py: admission gate bounding in-flight synthesis
    - errors.py:      engine failure taxonomy
"""
