"""Error taxonomy shared by the pipeline and the HTTP layer."""

from __future__ import annotations

from typing import Optional


class AudioRelayError(RuntimeError):
    """Base error; ``status_code`` is the HTTP status the app responds with."""

    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InputError(AudioRelayError):
    status_code = 400


class InputMissing(InputError):
    """Raised when a request carries no file, base64 or url field."""


class InputMalformed(InputError):
    """Raised when the base64 field cannot be decoded."""


class InputUnreachable(InputError):
    """Raised when the remote url cannot be fetched."""


class InputTooLarge(AudioRelayError):
    status_code = 413


class Unauthorized(AudioRelayError):
    status_code = 401


class ConfigurationError(AudioRelayError):
    """A required credential, provider or feature flag is absent."""


class ConversionFailed(AudioRelayError):
    """The transcoder exited abnormally or produced no parseable duration."""

    def __init__(self, message: str, *, diagnostics: str = "") -> None:
        detail = f"{message}, details: {diagnostics}" if diagnostics else message
        super().__init__(detail)
        self.diagnostics = diagnostics


class SinkDegraded(AudioRelayError):
    """An optional sink failed; callers downgrade instead of failing the request."""


class StorageError(SinkDegraded):
    pass


class TranscriptionError(SinkDegraded):
    def __init__(self, message: str, *, status: Optional[int] = None, body: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


__all__ = [
    "AudioRelayError",
    "InputError",
    "InputMissing",
    "InputMalformed",
    "InputUnreachable",
    "InputTooLarge",
    "Unauthorized",
    "ConfigurationError",
    "ConversionFailed",
    "SinkDegraded",
    "StorageError",
    "TranscriptionError",
]
