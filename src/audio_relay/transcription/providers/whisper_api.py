from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ...audio.types import AudioBlob
from ...errors import ConfigurationError, TranscriptionError
from ..types import TranscriptionOptions, TranscriptionResult
from .base import TranscriptionProvider

logger = logging.getLogger(__name__)


class WhisperApiProvider(TranscriptionProvider):
    """Provider speaking the OpenAI-compatible ``/audio/transcriptions`` API.

    The audio goes up as a multipart file part named ``file`` together with
    the model id and, when known, the language. Subclasses only pick the
    display name, default model and any extra form fields.
    """

    name = "whisper-api"
    label = "Whisper API"
    default_model = "whisper-1"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        base_url: str,
        http_client: httpx.AsyncClient,
        model: Optional[str] = None,
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._http = http_client
        self._model = model or self.default_model
        self._timeout = timeout

    @property
    def model(self) -> str:
        return self._model

    def extra_fields(self) -> Dict[str, str]:
        return {}

    def form_fields(self, language: Optional[str]) -> Dict[str, str]:
        fields = {"model": self._model}
        if language:
            fields["language"] = language
        fields.update(self.extra_fields())
        return fields

    async def submit(self, *, audio: AudioBlob, options: TranscriptionOptions) -> TranscriptionResult:
        if not self._api_key:
            raise ConfigurationError(f"{self.label} API key not configured")

        url = f"{self._base_url}/audio/transcriptions"
        headers = {"Authorization": f"Bearer {self._api_key}"}
        files = {"file": (audio.filename, audio.data, audio.content_type)}
        data = self.form_fields(options.language)

        try:
            resp = await self._http.post(url, headers=headers, files=files, data=data, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise TranscriptionError(f"{self.label} request failed: {exc}") from exc

        if resp.status_code != httpx.codes.OK:
            body = resp.text
            raise TranscriptionError(
                f"{self.label} API error (status {resp.status_code}): {body}",
                status=resp.status_code,
                body=body,
            )

        try:
            payload: Any = resp.json()
        except ValueError as exc:
            raise TranscriptionError(f"{self.label} returned invalid JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise TranscriptionError(f"{self.label} response did not include text")

        logger.debug("transcription.completed", extra={"provider": self.name, "model": self._model})
        return TranscriptionResult(
            text=payload["text"],
            language=options.language or payload.get("language"),
            provider=self.name,
        )
