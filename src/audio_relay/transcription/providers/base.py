from __future__ import annotations

import abc

from ...audio.types import AudioBlob
from ..types import TranscriptionOptions, TranscriptionResult


class TranscriptionProvider(abc.ABC):
    """Interface for speech-to-text providers."""

    name: str

    @abc.abstractmethod
    async def submit(self, *, audio: AudioBlob, options: TranscriptionOptions) -> TranscriptionResult:
        """Produce a transcription for the provided audio."""
        raise NotImplementedError
