from __future__ import annotations

import logging
import math
import re
from typing import Optional

from ..errors import ConversionFailed
from .transcoder import TranscodeProfile, Transcoder, TranscoderTimeout
from .types import AudioBlob, ConversionResult, normalize_format

logger = logging.getLogger(__name__)

_TIME_MARKER = re.compile(r"time=(\d+):(\d{1,2}):(\d{1,2}(?:\.\d+)?)")

MP3_PROFILE = TranscodeProfile(name="mp3", args=("-i", "pipe:0", "-f", "mp3", "pipe:1"))
MP4_PROFILE = TranscodeProfile(
    name="mp4",
    # mp4 muxing to a pipe needs fragmented output; ffmpeg cannot seek back to write moov
    args=("-i", "pipe:0", "-c:a", "aac", "-movflags", "frag_keyframe+empty_moov", "-f", "mp4", "pipe:1"),
)
SPEECH_PROFILE = TranscodeProfile(
    name="ogg",
    args=("-i", "pipe:0", "-ac", "1", "-ar", "16000", "-c:a", "libopus", "-f", "ogg", "pipe:1"),
)

_PROFILES = {
    "mp3": MP3_PROFILE,
    "mp4": MP4_PROFILE,
}


def select_profile(target_format: Optional[str]) -> TranscodeProfile:
    """mp3 and mp4 get their own profile; anything else is mono 16 kHz opus in ogg."""

    return _PROFILES.get((target_format or "").strip().lower(), SPEECH_PROFILE)


def parse_duration_seconds(diagnostics: str) -> Optional[int]:
    """Return whole seconds from the last ``time=HH:MM:SS.ff`` marker, or None."""

    last = None
    for last in _TIME_MARKER.finditer(diagnostics or ""):
        pass
    if last is None:
        return None
    hours, minutes, seconds = last.groups()
    return int(hours) * 3600 + int(minutes) * 60 + math.floor(float(seconds))


class AudioConverter:
    """Transcodes an AudioBlob and reads its duration from the diagnostic stream."""

    def __init__(self, *, transcoder: Transcoder) -> None:
        self._transcoder = transcoder

    async def convert(self, blob: AudioBlob, target_format: Optional[str] = None) -> ConversionResult:
        profile = select_profile(target_format)
        try:
            outcome = await self._transcoder.transcode(blob.data, profile)
        except TranscoderTimeout as exc:
            logger.warning("convert.timeout", extra={"profile": profile.name, "timeout": exc.timeout})
            raise ConversionFailed(f"error during conversion: {exc}", diagnostics=exc.diagnostics) from exc
        except OSError as exc:
            logger.exception("convert.spawn_failed", extra={"profile": profile.name})
            raise ConversionFailed(f"error during conversion: {exc}") from exc

        if outcome.exit_status != 0:
            logger.warning("convert.failed", extra={"profile": profile.name, "exit_status": outcome.exit_status})
            raise ConversionFailed(
                f"error during conversion: exit status {outcome.exit_status}",
                diagnostics=outcome.diagnostics,
            )

        duration = parse_duration_seconds(outcome.diagnostics)
        if duration is None:
            logger.warning("convert.duration_missing", extra={"profile": profile.name})
            raise ConversionFailed("duration not found", diagnostics=outcome.diagnostics)

        return ConversionResult(
            data=AudioBlob(data=outcome.output, format=normalize_format(target_format)),
            duration_seconds=duration,
        )
