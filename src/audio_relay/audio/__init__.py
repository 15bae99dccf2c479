"""Audio ingestion and conversion."""

from .buffers import BufferPool, PooledBuffer
from .converter import AudioConverter, parse_duration_seconds, select_profile
from .ingest import AudioIngestor, AudioSource, IngestLimits
from .transcoder import FfmpegTranscoder, TranscodeOutcome, TranscodeProfile, Transcoder
from .types import AudioBlob, ConversionResult, StorageReference

__all__ = [
    "AudioBlob",
    "AudioConverter",
    "AudioIngestor",
    "AudioSource",
    "BufferPool",
    "ConversionResult",
    "FfmpegTranscoder",
    "IngestLimits",
    "PooledBuffer",
    "StorageReference",
    "TranscodeOutcome",
    "TranscodeProfile",
    "Transcoder",
    "parse_duration_seconds",
    "select_profile",
]
