"""Transcription provider implementations."""

from .base import TranscriptionProvider
from .groq_whisper import GroqTranscriptionProvider
from .openai_whisper import OpenAITranscriptionProvider
from .whisper_api import WhisperApiProvider

PROVIDERS: dict[str, type[WhisperApiProvider]] = {
    provider.name: provider
    for provider in (OpenAITranscriptionProvider, GroqTranscriptionProvider)
}

__all__ = [
    "PROVIDERS",
    "TranscriptionProvider",
    "WhisperApiProvider",
    "OpenAITranscriptionProvider",
    "GroqTranscriptionProvider",
]
