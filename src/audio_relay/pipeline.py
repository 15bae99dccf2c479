from __future__ import annotations

import logging
import time
from typing import Optional

from .audio import AudioConverter, AudioIngestor, AudioSource
from .audio.types import DEFAULT_FORMAT
from .errors import TranscriptionError
from .response import ProcessAudioResponse, assemble_response
from .sinks import SinkCoordinator, SinkOptions
from .transcription import TranscriptionService

logger = logging.getLogger(__name__)


class AudioPipeline:
    """Resolver -> converter -> sinks -> assembler, once per request."""

    def __init__(
        self,
        *,
        ingestor: AudioIngestor,
        converter: AudioConverter,
        sinks: SinkCoordinator,
        transcription: TranscriptionService,
    ) -> None:
        self.ingestor = ingestor
        self.converter = converter
        self.sinks = sinks
        self.transcription = transcription

    async def process(
        self,
        source: AudioSource,
        *,
        target_format: Optional[str] = None,
        transcribe: bool = False,
        language: Optional[str] = None,
    ) -> ProcessAudioResponse:
        started = time.perf_counter()
        blob = await self.ingestor.resolve(source)
        result = await self.converter.convert(blob, target_format or DEFAULT_FORMAT)
        outcome = await self.sinks.persist_and_transcribe(
            result,
            SinkOptions(transcribe=transcribe, language=language),
        )
        response = assemble_response(result, outcome)
        logger.info(
            "pipeline.process.completed",
            extra={
                "format": result.data.format,
                "duration_seconds": result.duration_seconds,
                "stored": response.url is not None,
                "transcribed": response.transcription is not None,
                "latency_ms": round((time.perf_counter() - started) * 1000.0, 1),
            },
        )
        return response

    async def transcribe_only(self, source: AudioSource, *, language: Optional[str] = None) -> str:
        blob = await self.ingestor.resolve(source)
        result = await self.converter.convert(blob, DEFAULT_FORMAT)
        try:
            transcript = await self.transcription.transcribe(result.data, language=language)
        except TranscriptionError:
            logger.exception("pipeline.transcribe.failed")
            raise
        return transcript.text
