from __future__ import annotations

from typing import Dict

from .whisper_api import WhisperApiProvider


class GroqTranscriptionProvider(WhisperApiProvider):
    name = "groq"
    label = "Groq"
    default_model = "whisper-large-v3-turbo"

    def extra_fields(self) -> Dict[str, str]:
        # temperature 0 keeps the turbo model deterministic
        return {"response_format": "json", "temperature": "0.0"}
