from __future__ import annotations

"""Runtime configuration helpers for audio-relay."""

import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_BOOL_TRUTHY = {"1", "true", "yes", "on"}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DEFAULT_URL_EXPIRATION = timedelta(hours=24)


def _env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = env.get(name)
    if value is None:
        return default
    return value.strip().lower() in _BOOL_TRUTHY


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _env_str(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def parse_duration(text: str) -> timedelta:
    """Parse Go-style duration strings such as ``24h``, ``90m`` or ``1h30m``."""

    raw = (text or "").strip()
    if not raw:
        raise ValueError("empty duration")
    position = 0
    total = timedelta()
    for match in _DURATION_PART.finditer(raw):
        if match.start() != position:
            break
        amount = float(match.group(1))
        unit = match.group(2)
        if unit == "h":
            total += timedelta(hours=amount)
        elif unit == "m":
            total += timedelta(minutes=amount)
        elif unit == "s":
            total += timedelta(seconds=amount)
        else:
            total += timedelta(milliseconds=amount)
        position = match.end()
    if position != len(raw):
        raise ValueError(f"invalid duration: {text!r}")
    return total


def _split_origins(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ("*",)
    origins = tuple(item.strip() for item in value.split(",") if item.strip())
    return origins or ("*",)


@dataclass(frozen=True)
class ServerSettings:
    port: int
    api_key: Optional[str]
    allowed_origins: tuple[str, ...]
    log_level: str
    log_file: Optional[str]


@dataclass(frozen=True)
class ProviderCredentials:
    api_key: Optional[str]
    base_url: str
    model: str


@dataclass(frozen=True)
class TranscriptionSettings:
    enabled: bool
    provider: Optional[str]
    default_language: Optional[str]
    timeout: float
    openai: ProviderCredentials
    groq: ProviderCredentials


@dataclass(frozen=True)
class StorageSettings:
    enabled: bool
    endpoint: Optional[str]
    access_key: Optional[str]
    secret_key: Optional[str]
    bucket: Optional[str]
    region: Optional[str]
    use_ssl: bool
    url_expiration: timedelta = _DEFAULT_URL_EXPIRATION


@dataclass(frozen=True)
class ConversionSettings:
    binary: str
    timeout: float
    max_input_bytes: int
    fetch_timeout: float
    buffers_per_size: int


@dataclass(frozen=True)
class Settings:
    server: ServerSettings
    transcription: TranscriptionSettings
    storage: StorageSettings
    conversion: ConversionSettings


def _load_url_expiration(env: Mapping[str, str]) -> timedelta:
    raw = env.get("S3_URL_EXPIRATION") or "24h"
    try:
        expiration = parse_duration(raw)
    except ValueError as exc:
        logger.warning("settings.s3_url_expiration.invalid", extra={"value": raw, "error": str(exc)})
        return _DEFAULT_URL_EXPIRATION
    if expiration <= timedelta():
        return _DEFAULT_URL_EXPIRATION
    return expiration


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from environment variables with sensible defaults."""

    env = os.environ if environ is None else environ

    server_settings = ServerSettings(
        port=_env_int(env, "PORT", 8080),
        api_key=_env_str(env, "API_KEY"),
        allowed_origins=_split_origins(env.get("CORS_ALLOW_ORIGINS")),
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        log_file=_env_str(env, "LOG_FILE"),
    )

    transcription_settings = TranscriptionSettings(
        enabled=_env_bool(env, "ENABLE_TRANSCRIPTION", False),
        provider=_env_str(env, "TRANSCRIPTION_PROVIDER"),
        default_language=_env_str(env, "TRANSCRIPTION_LANGUAGE"),
        timeout=_env_float(env, "TRANSCRIPTION_TIMEOUT_SECONDS", 60.0),
        openai=ProviderCredentials(
            api_key=_env_str(env, "OPENAI_API_KEY"),
            base_url=env.get("OPENAI_BASE_URL") or "https://api.openai.com/v1",
            model=env.get("OPENAI_TRANSCRIPTION_MODEL") or "whisper-1",
        ),
        groq=ProviderCredentials(
            api_key=_env_str(env, "GROQ_API_KEY"),
            base_url=env.get("GROQ_BASE_URL") or "https://api.groq.com/openai/v1",
            model=env.get("GROQ_TRANSCRIPTION_MODEL") or "whisper-large-v3-turbo",
        ),
    )

    storage_enabled = _env_bool(env, "ENABLE_S3_STORAGE", False)
    storage_settings = StorageSettings(
        enabled=storage_enabled,
        endpoint=_env_str(env, "S3_ENDPOINT"),
        access_key=_env_str(env, "S3_ACCESS_KEY"),
        secret_key=_env_str(env, "S3_SECRET_KEY"),
        bucket=_env_str(env, "S3_BUCKET_NAME"),
        region=_env_str(env, "S3_REGION"),
        use_ssl=_env_bool(env, "S3_USE_SSL", False),
        url_expiration=_load_url_expiration(env) if storage_enabled else _DEFAULT_URL_EXPIRATION,
    )

    conversion_settings = ConversionSettings(
        binary=env.get("FFMPEG_BINARY") or "ffmpeg",
        timeout=_env_float(env, "TRANSCODE_TIMEOUT_SECONDS", 300.0),
        max_input_bytes=_env_int(env, "MAX_INPUT_BYTES", 50 * 1024 * 1024),
        fetch_timeout=_env_float(env, "FETCH_TIMEOUT_SECONDS", 30.0),
        buffers_per_size=_env_int(env, "BUFFER_POOL_SIZE", 8),
    )

    return Settings(
        server=server_settings,
        transcription=transcription_settings,
        storage=storage_settings,
        conversion=conversion_settings,
    )


__all__ = [
    "Settings",
    "ServerSettings",
    "ProviderCredentials",
    "TranscriptionSettings",
    "StorageSettings",
    "ConversionSettings",
    "load_settings",
    "parse_duration",
]
