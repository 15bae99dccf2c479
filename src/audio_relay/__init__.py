"""HTTP service that converts audio with ffmpeg, optionally storing and transcribing it."""

__version__ = "0.1.0"
