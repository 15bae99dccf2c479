import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from fastapi import Depends, FastAPI, File, Form, Header, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .audio import AudioConverter, AudioIngestor, AudioSource, BufferPool, FfmpegTranscoder, IngestLimits
from .errors import AudioRelayError, ConfigurationError, StorageError
from .pipeline import AudioPipeline
from .policy import API_KEY_HEADER, check_api_key, origin_allowed, request_origin
from .response import ProcessAudioResponse, TranscribeResponse
from .settings import Settings, load_settings
from .sinks import SinkCoordinator
from .storage import MinioObjectStore, ObjectStore
from .transcription import TranscriptionService

logger = logging.getLogger(__name__)

SERVICE_NAME = "audio-relay"


async def build_pipeline(settings: Settings, *, http_client: httpx.AsyncClient) -> AudioPipeline:
    """Wire the long-lived collaborators shared by every request."""

    conversion = settings.conversion
    pool = BufferPool(max_per_size=conversion.buffers_per_size)
    transcoder = FfmpegTranscoder(binary=conversion.binary, timeout=conversion.timeout, pool=pool)
    ingestor = AudioIngestor(limits=IngestLimits(max_bytes=conversion.max_input_bytes), http_client=http_client)
    transcription = TranscriptionService.from_settings(settings.transcription, http_client=http_client)

    store: Optional[ObjectStore] = None
    if settings.storage.enabled:
        try:
            store = MinioObjectStore.from_settings(settings.storage)
            await store.ensure_bucket()
        except (ConfigurationError, StorageError):
            # uploads would fail anyway; answer inline until restarted with a working store
            logger.exception("app.storage.init_failed")
            store = None

    sinks = SinkCoordinator(
        store=store,
        transcription=transcription,
        url_expiration=settings.storage.url_expiration,
    )
    return AudioPipeline(
        ingestor=ingestor,
        converter=AudioConverter(transcoder=transcoder),
        sinks=sinks,
        transcription=transcription,
    )


def _source_from_form(file: Optional[UploadFile], base64_data: Optional[str], url: Optional[str]) -> AudioSource:
    return AudioSource(
        file_reader=file.read if file is not None else None,
        base64=base64_data or None,
        url=(url or "").strip() or None,
    )


def create_app(settings: Optional[Settings] = None, *, pipeline: Optional[AudioPipeline] = None) -> FastAPI:
    cfg = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if pipeline is not None:
            yield
            return
        timeout = httpx.Timeout(cfg.conversion.fetch_timeout, connect=5.0)
        async with httpx.AsyncClient(timeout=timeout) as http_client:
            app.state.pipeline = await build_pipeline(cfg, http_client=http_client)
            logger.info(
                "app.started",
                extra={
                    "storage": app.state.pipeline.sinks.persistence_enabled,
                    "transcription": cfg.transcription.enabled,
                },
            )
            yield

    app = FastAPI(title=SERVICE_NAME, lifespan=lifespan)
    app.state.settings = cfg
    if pipeline is not None:
        app.state.pipeline = pipeline

    @app.exception_handler(AudioRelayError)
    async def _relay_error(_request: Request, exc: AudioRelayError) -> JSONResponse:
        return JSONResponse({"error": exc.message}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse({"error": "invalid request"}, status_code=400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.server.allowed_origins),
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization", API_KEY_HEADER],
        allow_credentials=True,
    )

    # outermost layer: disallowed preflights never reach CORSMiddleware
    @app.middleware("http")
    async def _origin_policy(request: Request, call_next):
        origin = request_origin(request.headers.get("origin"), request.headers.get("referer"))
        if not origin_allowed(origin, cfg.server.allowed_origins):
            logger.warning("policy.origin.rejected", extra={"origin": origin})
            return JSONResponse({"error": "Origin not allowed"}, status_code=403)
        return await call_next(request)

    async def require_api_key(apikey: Optional[str] = Header(None, alias=API_KEY_HEADER)) -> None:
        check_api_key(cfg.server.api_key, apikey)

    def get_pipeline(request: Request) -> AudioPipeline:
        return request.app.state.pipeline

    @app.get("/health")
    async def health(request: Request) -> Dict[str, Any]:
        current: AudioPipeline = request.app.state.pipeline
        provider = current.transcription.provider
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "storage_enabled": current.sinks.persistence_enabled,
            "transcription_enabled": current.transcription.enabled,
            "transcription_provider": provider.name if provider is not None else None,
        }

    @app.post("/process-audio", dependencies=[Depends(require_api_key)])
    async def process_audio(
        file: Optional[UploadFile] = File(None),
        base64_data: Optional[str] = Form(None, alias="base64"),
        url: Optional[str] = Form(None),
        target_format: str = Form("ogg", alias="format"),
        transcribe: str = Form("false"),
        language: Optional[str] = Form(None),
        current: AudioPipeline = Depends(get_pipeline),
    ) -> JSONResponse:
        result: ProcessAudioResponse = await current.process(
            _source_from_form(file, base64_data, url),
            target_format=target_format,
            transcribe=transcribe.strip().lower() == "true",
            language=language,
        )
        return JSONResponse(result.to_payload())

    @app.post("/transcribe", dependencies=[Depends(require_api_key)])
    async def transcribe_only(
        file: Optional[UploadFile] = File(None),
        base64_data: Optional[str] = Form(None, alias="base64"),
        url: Optional[str] = Form(None),
        language: Optional[str] = Form(None),
        current: AudioPipeline = Depends(get_pipeline),
    ) -> JSONResponse:
        text = await current.transcribe_only(_source_from_form(file, base64_data, url), language=language)
        return JSONResponse(TranscribeResponse(transcription=text).model_dump())

    return app


app = create_app()
