"""
Shared fixtures and fakes for the audio-relay tests.
"""

import os
import sys
from datetime import timedelta
from typing import Optional

import pytest

# src layout: make the package importable without an editable install
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

from audio_relay.audio.transcoder import TranscodeOutcome, TranscodeProfile, Transcoder  # noqa: E402
from audio_relay.settings import load_settings  # noqa: E402
from audio_relay.storage import ObjectStore  # noqa: E402
from audio_relay.transcription.providers.base import TranscriptionProvider  # noqa: E402
from audio_relay.transcription.types import TranscriptionResult  # noqa: E402

DIAGNOSTICS = (
    "Input #0, wav, from 'pipe:0':\n"
    "size=       2kB time=00:00:01.02 bitrate=  16.1kbits/s speed= 102x\n"
    "size=       4kB time=00:00:03.48 bitrate=  16.1kbits/s speed= 110x\n"
)


class FakeTranscoder(Transcoder):
    """Records profiles and echoes input bytes back with canned diagnostics."""

    def __init__(self, *, diagnostics: str = DIAGNOSTICS, exit_status: int = 0, output: Optional[bytes] = None):
        self.diagnostics = diagnostics
        self.exit_status = exit_status
        self.output = output
        self.calls: list[tuple[bytes, TranscodeProfile]] = []

    async def transcode(self, data: bytes, profile: TranscodeProfile) -> TranscodeOutcome:
        self.calls.append((data, profile))
        output = self.output if self.output is not None else b"encoded:" + data
        return TranscodeOutcome(output=output, diagnostics=self.diagnostics, exit_status=self.exit_status)


class FakeObjectStore(ObjectStore):
    def __init__(self, *, fail_put: bool = False, fail_presign: bool = False):
        self.fail_put = fail_put
        self.fail_presign = fail_presign
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def put(self, name: str, data: bytes, content_type: str) -> None:
        if self.fail_put:
            raise ConnectionError("bucket unreachable")
        self.objects[name] = (data, content_type)

    async def presign(self, name: str, expires: timedelta) -> str:
        if self.fail_presign:
            raise RuntimeError("signing failed")
        return f"https://storage.test/audio/{name}?expires={int(expires.total_seconds())}"


class FakeProvider(TranscriptionProvider):
    name = "fake"

    def __init__(self, *, text: str = "hello world", error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.calls = []

    async def submit(self, *, audio, options) -> TranscriptionResult:
        self.calls.append((audio, options))
        if self.error is not None:
            raise self.error
        return TranscriptionResult(text=self.text, language=options.language, provider=self.name)


@pytest.fixture
def settings_env():
    """Baseline environment; tests copy and extend it."""
    return {
        "API_KEY": "secret-key",
        "CORS_ALLOW_ORIGINS": "https://app.example.com, https://admin.example.com",
        "ENABLE_TRANSCRIPTION": "true",
        "TRANSCRIPTION_PROVIDER": "openai",
        "OPENAI_API_KEY": "sk-test",
        "TRANSCRIPTION_LANGUAGE": "pt",
    }


@pytest.fixture
def settings(settings_env):
    return load_settings(settings_env)


@pytest.fixture
def fake_transcoder():
    return FakeTranscoder()


@pytest.fixture
def fake_store():
    return FakeObjectStore()


@pytest.fixture
def fake_provider():
    return FakeProvider()
