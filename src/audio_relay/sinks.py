from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .audio.types import ConversionResult, StorageReference
from .storage import ObjectStore
from .transcription import TranscriptionService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SinkOptions:
    transcribe: bool = False
    language: Optional[str] = None


@dataclass(slots=True)
class SinkOutcome:
    """What the optional sinks produced; ``storage`` None means respond inline."""

    storage: Optional[StorageReference] = None
    transcription: Optional[str] = None


class SinkCoordinator:
    """Runs persistence and transcription for one artifact, best effort.

    The two branches are independent and run concurrently. A failure in either
    one is logged and leaves its field empty; it never fails the request.
    """

    def __init__(
        self,
        *,
        store: Optional[ObjectStore],
        transcription: TranscriptionService,
        url_expiration: timedelta = timedelta(hours=24),
    ) -> None:
        self._store = store
        self._transcription = transcription
        self._url_expiration = url_expiration

    @property
    def persistence_enabled(self) -> bool:
        return self._store is not None

    def disable_persistence(self) -> None:
        self._store = None

    async def persist_and_transcribe(self, result: ConversionResult, options: SinkOptions) -> SinkOutcome:
        storage, transcription = await asyncio.gather(
            self._persist(result),
            self._transcribe(result, options),
        )
        return SinkOutcome(storage=storage, transcription=transcription)

    async def _persist(self, result: ConversionResult) -> Optional[StorageReference]:
        if self._store is None:
            return None
        try:
            return await self._store.store(result.data, expires=self._url_expiration)
        except Exception as exc:
            logger.warning("sinks.storage.failed", extra={"error": repr(exc), "format": result.data.format})
            return None

    async def _transcribe(self, result: ConversionResult, options: SinkOptions) -> Optional[str]:
        if not options.transcribe:
            return None
        try:
            transcript = await self._transcription.transcribe(result.data, language=options.language)
        except Exception as exc:
            logger.warning("sinks.transcription.failed", extra={"error": repr(exc)})
            return None
        return transcript.text
