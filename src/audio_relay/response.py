from __future__ import annotations

import base64
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator

from .audio.types import ConversionResult
from .sinks import SinkOutcome


class ProcessAudioResponse(BaseModel):
    duration: int = Field(ge=0)
    format: str
    audio: Optional[str] = None
    url: Optional[str] = None
    transcription: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one_artifact(self) -> "ProcessAudioResponse":
        if (self.audio is None) == (self.url is None):
            raise ValueError("exactly one of audio or url must be set")
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TranscribeResponse(BaseModel):
    transcription: str


class ErrorResponse(BaseModel):
    error: str


def assemble_response(result: ConversionResult, outcome: SinkOutcome) -> ProcessAudioResponse:
    """Merge conversion output and sink results; the artifact is inlined when no URL exists."""

    if outcome.storage is not None:
        audio = None
        url: Optional[str] = outcome.storage.url
    else:
        audio = base64.b64encode(result.data.data).decode("ascii")
        url = None
    return ProcessAudioResponse(
        duration=result.duration_seconds,
        format=result.data.format,
        audio=audio,
        url=url,
        transcription=outcome.transcription,
    )
