from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ..errors import InputMalformed, InputMissing, InputTooLarge, InputUnreachable
from .types import AudioBlob

logger = logging.getLogger(__name__)

_LINE_BREAKS = str.maketrans("", "", "\r\n")


@dataclass(slots=True)
class IngestLimits:
    max_bytes: int


@dataclass(slots=True)
class AudioSource:
    """The three mutually prioritised input fields of a request."""

    file_reader: Optional[Callable[[], Awaitable[bytes]]] = None
    base64: Optional[str] = None
    url: Optional[str] = None


class AudioIngestor:
    """Resolves a request's input fields into an AudioBlob.

    Priority is fixed: uploaded file, then base64 text, then a remote url.
    Only the first present source is consulted.
    """

    def __init__(self, *, limits: IngestLimits, http_client: httpx.AsyncClient) -> None:
        self._limits = limits
        self._http = http_client

    async def resolve(self, source: AudioSource) -> AudioBlob:
        if source.file_reader is not None:
            return await self.from_upload(file_reader=source.file_reader)
        if source.base64:
            return await self.from_base64(source.base64)
        if source.url:
            return await self.from_url(source.url)
        raise InputMissing("no file, base64 or URL provided")

    async def from_bytes(self, *, data: bytes) -> AudioBlob:
        self._enforce_size(len(data))
        return AudioBlob(data=bytes(data))

    async def from_upload(self, *, file_reader: Callable[[], Awaitable[bytes]]) -> AudioBlob:
        data = await file_reader()
        return await self.from_bytes(data=data)

    async def from_base64(self, encoded: str) -> AudioBlob:
        # base64 inflates by 4/3, so reject before decoding anything absurd
        self._enforce_size(len(encoded) * 3 // 4)
        try:
            data = base64.b64decode(_strip_line_breaks(encoded), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InputMalformed(f"invalid base64 audio: {exc}") from exc
        return await self.from_bytes(data=data)

    async def from_url(self, url: str) -> AudioBlob:
        received = bytearray()
        try:
            async with self._http.stream("GET", url, follow_redirects=True) as response:
                if response.is_error:
                    raise InputUnreachable(f"failed to fetch audio from url: status {response.status_code}")
                async for chunk in response.aiter_bytes():
                    received.extend(chunk)
                    self._enforce_size(len(received))
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("ingest.url.fetch_failed", extra={"url": url, "error": repr(exc)})
            raise InputUnreachable(f"failed to fetch audio from url: {exc}") from exc
        return await self.from_bytes(data=bytes(received))

    def _enforce_size(self, size: int) -> None:
        if size > self._limits.max_bytes:
            raise InputTooLarge("audio payload exceeds configured size limit")


def _strip_line_breaks(encoded: str) -> str:
    # wrapped output from `base64` or encodebytes is still valid input
    return encoded.strip().translate(_LINE_BREAKS)
