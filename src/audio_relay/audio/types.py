from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DEFAULT_FORMAT = "ogg"

_CONTENT_TYPES = {
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "mp4": "audio/mp4",
}


def normalize_format(value: Optional[str]) -> str:
    """Map a requested format onto one of ``ogg``, ``mp3`` or ``mp4``."""

    fmt = (value or "").strip().lower()
    if fmt in {"mp3", "mp4"}:
        return fmt
    return DEFAULT_FORMAT


def content_type_for(fmt: str) -> str:
    return _CONTENT_TYPES.get(fmt, f"audio/{fmt}")


@dataclass(frozen=True, slots=True)
class AudioBlob:
    """Audio bytes plus the container they are encoded in."""

    data: bytes
    format: str = DEFAULT_FORMAT

    def __len__(self) -> int:
        return len(self.data)

    @property
    def content_type(self) -> str:
        return content_type_for(self.format)

    @property
    def filename(self) -> str:
        return f"audio.{self.format}"


@dataclass(frozen=True, slots=True)
class ConversionResult:
    """Transcoded artifact and the duration reported by the transcoder."""

    data: AudioBlob
    duration_seconds: int


@dataclass(frozen=True, slots=True)
class StorageReference:
    url: str
    expires_at: datetime
    object_name: str
