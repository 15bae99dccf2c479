from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..audio.types import AudioBlob
from ..errors import ConfigurationError
from ..settings import TranscriptionSettings
from .providers import PROVIDERS
from .providers.base import TranscriptionProvider
from .types import TranscriptionOptions, TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionService:
    """Coordinates transcription provider usage.

    A disabled feature or an unknown provider name is not fatal at startup;
    it surfaces as a ConfigurationError on the request that asks for text.
    """

    def __init__(
        self,
        *,
        provider: Optional[TranscriptionProvider] = None,
        enabled: bool = True,
        default_language: Optional[str] = None,
        provider_error: Optional[str] = None,
    ) -> None:
        self._provider = provider
        self._enabled = enabled
        self._default_language = default_language
        self._provider_error = provider_error

    @classmethod
    def from_settings(cls, cfg: TranscriptionSettings, *, http_client: httpx.AsyncClient) -> "TranscriptionService":
        provider: Optional[TranscriptionProvider] = None
        provider_error: Optional[str] = None
        provider_name = (cfg.provider or "").strip().lower()
        provider_cls = PROVIDERS.get(provider_name)
        if provider_cls is None:
            provider_error = "invalid transcription provider"
            if cfg.enabled:
                logger.warning("transcription.provider.unknown", extra={"provider": cfg.provider})
        else:
            credentials = getattr(cfg, provider_cls.name)
            provider = provider_cls(
                api_key=credentials.api_key,
                base_url=credentials.base_url,
                model=credentials.model,
                http_client=http_client,
                timeout=cfg.timeout,
            )
        return cls(
            provider=provider,
            enabled=cfg.enabled,
            default_language=cfg.default_language,
            provider_error=provider_error,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def provider(self) -> Optional[TranscriptionProvider]:
        return self._provider

    def resolve_language(self, language: Optional[str]) -> Optional[str]:
        if language and language.strip():
            return language.strip()
        return self._default_language

    async def transcribe(self, audio: AudioBlob, *, language: Optional[str] = None) -> TranscriptionResult:
        if not self._enabled:
            raise ConfigurationError("transcription is not enabled")
        if self._provider is None:
            raise ConfigurationError(self._provider_error or "invalid transcription provider")
        options = TranscriptionOptions(language=self.resolve_language(language))
        return await self._provider.submit(audio=audio, options=options)
