import base64

import httpx
import pytest
from fastapi.testclient import TestClient

from audio_relay.app import create_app
from audio_relay.audio import AudioConverter, AudioIngestor, IngestLimits
from audio_relay.errors import TranscriptionError
from audio_relay.pipeline import AudioPipeline
from audio_relay.settings import load_settings
from audio_relay.sinks import SinkCoordinator
from audio_relay.transcription.service import TranscriptionService
from conftest import FakeObjectStore, FakeProvider, FakeTranscoder

HEADERS = {"apikey": "secret-key"}
CLIP = b"RIFF....WAVEfmt clip"
CLIP_B64 = base64.b64encode(CLIP).decode("ascii")


def _remote(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/clip.wav":
        return httpx.Response(200, content=CLIP)
    return httpx.Response(404)


def _client(settings, *, store=None, provider=None, transcoder=None, transcription_enabled=True):
    transcoder = transcoder or FakeTranscoder()
    transcription = TranscriptionService(
        provider=provider or FakeProvider(),
        enabled=transcription_enabled,
        default_language=settings.transcription.default_language,
    )
    pipeline = AudioPipeline(
        ingestor=AudioIngestor(
            limits=IngestLimits(max_bytes=1024 * 1024),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(_remote)),
        ),
        converter=AudioConverter(transcoder=transcoder),
        sinks=SinkCoordinator(store=store, transcription=transcription),
        transcription=transcription,
    )
    return TestClient(create_app(settings, pipeline=pipeline))


@pytest.fixture
def client(settings):
    return _client(settings)


def test_process_audio_from_upload_returns_inline_audio(settings):
    transcoder = FakeTranscoder()
    client = _client(settings, transcoder=transcoder)

    resp = client.post(
        "/process-audio",
        headers=HEADERS,
        files={"file": ("clip.wav", CLIP, "audio/wav")},
        data={"format": "mp3"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body == {
        "duration": 3,
        "format": "mp3",
        "audio": base64.b64encode(b"encoded:" + CLIP).decode("ascii"),
    }
    assert transcoder.calls[0][0] == CLIP
    assert transcoder.calls[0][1].name == "mp3"


def test_process_audio_from_base64_defaults_to_ogg(settings):
    transcoder = FakeTranscoder()
    client = _client(settings, transcoder=transcoder)

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64})

    assert resp.status_code == 200
    assert resp.json()["format"] == "ogg"
    assert transcoder.calls[0][0] == CLIP
    assert "libopus" in transcoder.calls[0][1].args


def test_process_audio_from_url(settings):
    transcoder = FakeTranscoder()
    client = _client(settings, transcoder=transcoder)

    resp = client.post("/process-audio", headers=HEADERS, data={"url": "https://media.test/clip.wav", "format": "mp4"})

    assert resp.status_code == 200
    assert transcoder.calls[0][0] == CLIP
    assert resp.json()["format"] == "mp4"


def test_process_audio_uploads_to_store(settings):
    store = FakeObjectStore()
    client = _client(settings, store=store)

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64})

    body = resp.json()
    assert resp.status_code == 200
    assert body["url"].startswith("https://storage.test/audio/")
    assert "audio" not in body
    assert len(store.objects) == 1


def test_process_audio_falls_back_to_inline_when_upload_fails(settings):
    client = _client(settings, store=FakeObjectStore(fail_put=True))

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64})

    body = resp.json()
    assert resp.status_code == 200
    assert "url" not in body
    assert base64.b64decode(body["audio"]) == b"encoded:" + CLIP


def test_process_audio_with_transcription(settings):
    provider = FakeProvider(text="olá")
    client = _client(settings, provider=provider)

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64, "transcribe": "true"})

    assert resp.status_code == 200
    assert resp.json()["transcription"] == "olá"
    assert provider.calls[0][1].language == "pt"


def test_process_audio_skips_transcription_unless_requested(settings):
    provider = FakeProvider()
    client = _client(settings, provider=provider)

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64, "transcribe": "yes"})

    assert "transcription" not in resp.json()
    assert provider.calls == []


def test_process_audio_omits_transcription_on_provider_failure(settings):
    provider = FakeProvider(error=TranscriptionError("OpenAI API error (status 503): overloaded"))
    client = _client(settings, provider=provider)

    resp = client.post(
        "/process-audio",
        headers=HEADERS,
        data={"base64": CLIP_B64, "transcribe": "true", "language": "en"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert "transcription" not in body
    assert "audio" in body


def test_transcribe_endpoint_normalizes_to_speech_profile(settings):
    transcoder = FakeTranscoder()
    provider = FakeProvider(text="hello there")
    client = _client(settings, transcoder=transcoder, provider=provider)

    resp = client.post("/transcribe", headers=HEADERS, data={"base64": CLIP_B64, "format": "mp3", "language": "en"})

    assert resp.status_code == 200
    assert resp.json() == {"transcription": "hello there"}
    assert transcoder.calls[0][1].name == "ogg"
    audio, options = provider.calls[0]
    assert audio.format == "ogg"
    assert options.language == "en"


def test_transcribe_endpoint_fails_when_provider_fails(settings):
    provider = FakeProvider(error=TranscriptionError("OpenAI API error (status 503): overloaded"))
    client = _client(settings, provider=provider)

    resp = client.post("/transcribe", headers=HEADERS, data={"base64": CLIP_B64})

    assert resp.status_code == 500
    assert "overloaded" in resp.json()["error"]


def test_transcribe_endpoint_fails_when_disabled(settings):
    client = _client(settings, transcription_enabled=False)

    resp = client.post("/transcribe", headers=HEADERS, data={"base64": CLIP_B64})

    assert resp.status_code == 500
    assert resp.json() == {"error": "transcription is not enabled"}


@pytest.mark.parametrize(
    "data,status",
    [
        ({}, 400),
        ({"base64": "AAA"}, 400),
        ({"url": "https://media.test/missing.wav"}, 400),
        ({"url": "https://[::1/x"}, 400),
    ],
)
def test_input_errors_are_400_and_skip_conversion(settings, data, status):
    transcoder = FakeTranscoder()
    client = _client(settings, transcoder=transcoder)

    resp = client.post("/process-audio", headers=HEADERS, data=data)

    assert resp.status_code == status
    assert set(resp.json()) == {"error"}
    assert transcoder.calls == []


def test_conversion_failure_is_500(settings):
    client = _client(settings, transcoder=FakeTranscoder(diagnostics="Invalid data found", exit_status=1))

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64})

    assert resp.status_code == 500
    assert "Invalid data found" in resp.json()["error"]


def test_missing_api_key_header_is_401(client):
    resp = client.post("/process-audio", data={"base64": CLIP_B64})

    assert resp.status_code == 401
    assert resp.json() == {"error": "API_KEY not provided"}


def test_wrong_api_key_is_401(client):
    resp = client.post("/transcribe", headers={"apikey": "nope"}, data={"base64": CLIP_B64})

    assert resp.status_code == 401
    assert resp.json() == {"error": "Invalid API_KEY"}


def test_unconfigured_api_key_is_500(settings_env):
    settings = load_settings({key: value for key, value in settings_env.items() if key != "API_KEY"})
    client = _client(settings)

    resp = client.post("/process-audio", headers=HEADERS, data={"base64": CLIP_B64})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


def test_unlisted_origin_is_rejected(client):
    resp = client.post(
        "/process-audio",
        headers={**HEADERS, "Origin": "https://evil.example.com"},
        data={"base64": CLIP_B64},
    )

    assert resp.status_code == 403
    assert resp.json() == {"error": "Origin not allowed"}


def test_referer_is_checked_when_origin_absent(client):
    resp = client.post(
        "/process-audio",
        headers={**HEADERS, "Referer": "https://evil.example.com/upload"},
        data={"base64": CLIP_B64},
    )

    assert resp.status_code == 403


def test_listed_origin_gets_cors_headers(client):
    resp = client.post(
        "/process-audio",
        headers={**HEADERS, "Origin": "https://app.example.com"},
        data={"base64": CLIP_B64},
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://app.example.com"


def test_cors_preflight(client):
    resp = client.options(
        "/process-audio",
        headers={
            "Origin": "https://admin.example.com",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "apikey",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "https://admin.example.com"


def test_health_reports_sinks(settings):
    client = _client(settings, store=FakeObjectStore())

    resp = client.get("/health")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["storage_enabled"] is True
    assert body["transcription_provider"] == "fake"


def test_unknown_route_is_json_error(client):
    resp = client.get("/nope")

    assert resp.status_code == 404
    assert "error" in resp.json()


def test_cors_preflight_from_unlisted_origin_is_json_403(client):
    resp = client.options(
        "/process-audio",
        headers={
            "Origin": "https://evil.example.com",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert resp.status_code == 403
    assert resp.json() == {"error": "Origin not allowed"}
