"""
lms-speaks: OpenAI-compatible text-to-speech over the host's speech engine.

Synthesis is delegated to the operating system's speech tool (macOS
`say`, Windows System.Speech, espeak-ng/espeak) or to a running LM
Studio server, and served as POST /v1/audio/speech.
"""

__version__ = "0.1.0"
