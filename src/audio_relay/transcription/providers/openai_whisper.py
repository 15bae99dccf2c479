from __future__ import annotations

from .whisper_api import WhisperApiProvider


class OpenAITranscriptionProvider(WhisperApiProvider):
    name = "openai"
    label = "OpenAI"
    default_model = "whisper-1"
