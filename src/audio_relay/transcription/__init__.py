"""Speech-to-text providers and the service that picks between them."""

from .service import TranscriptionService
from .types import TranscriptionOptions, TranscriptionResult

__all__ = ["TranscriptionService", "TranscriptionOptions", "TranscriptionResult"]
