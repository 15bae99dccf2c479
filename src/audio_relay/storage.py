from __future__ import annotations

"""Object-store sink: bucket bootstrap, uploads and presigned retrieval URLs."""

import abc
import asyncio
import io
import logging
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from minio import Minio
from minio.error import S3Error
from urllib3.exceptions import HTTPError as TransportError

from .audio.types import AudioBlob, StorageReference
from .errors import ConfigurationError, StorageError
from .settings import StorageSettings

logger = logging.getLogger(__name__)

# urllib3 failures (MaxRetryError and friends) surface when the endpoint is unreachable
_SDK_ERRORS = (S3Error, TransportError, OSError, ValueError)


def object_name_for(fmt: str) -> str:
    return f"{time.time_ns()}-{uuid.uuid4().hex[:8]}.{fmt}"


class ObjectStore(abc.ABC):
    """Bucket-based store able to mint time-limited GET URLs."""

    @abc.abstractmethod
    async def put(self, name: str, data: bytes, content_type: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def presign(self, name: str, expires: timedelta) -> str:
        raise NotImplementedError

    async def ensure_bucket(self) -> None:
        return None

    async def store(self, blob: AudioBlob, *, expires: timedelta) -> StorageReference:
        name = object_name_for(blob.format)
        await self.put(name, blob.data, blob.content_type)
        url = await self.presign(name, expires)
        return StorageReference(
            url=url,
            expires_at=datetime.now(timezone.utc) + expires,
            object_name=name,
        )


class MinioObjectStore(ObjectStore):
    """S3-compatible store backed by the MinIO SDK.

    The SDK is blocking, so every call runs in a worker thread.
    """

    def __init__(self, *, client: Minio, bucket: str, region: Optional[str] = None) -> None:
        self._client = client
        self._bucket = bucket
        self._region = region

    @classmethod
    def from_settings(cls, cfg: StorageSettings) -> "MinioObjectStore":
        if not cfg.endpoint or not cfg.bucket:
            raise ConfigurationError("S3 storage is enabled but S3_ENDPOINT or S3_BUCKET_NAME is missing")
        client = Minio(
            cfg.endpoint,
            access_key=cfg.access_key,
            secret_key=cfg.secret_key,
            secure=cfg.use_ssl,
            region=cfg.region,
        )
        return cls(client=client, bucket=cfg.bucket, region=cfg.region)

    @property
    def bucket(self) -> str:
        return self._bucket

    async def ensure_bucket(self) -> None:
        try:
            exists = await asyncio.to_thread(self._client.bucket_exists, bucket_name=self._bucket)
            if not exists:
                kwargs = {"location": self._region} if self._region else {}
                await asyncio.to_thread(self._client.make_bucket, bucket_name=self._bucket, **kwargs)
                logger.info("storage.bucket.created", extra={"bucket": self._bucket})
        except _SDK_ERRORS as exc:
            raise StorageError(f"error preparing bucket {self._bucket}: {exc}") from exc

    async def put(self, name: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                bucket_name=self._bucket,
                object_name=name,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except _SDK_ERRORS as exc:
            raise StorageError(f"error uploading to S3: {exc}") from exc

    async def presign(self, name: str, expires: timedelta) -> str:
        try:
            return await asyncio.to_thread(
                self._client.presigned_get_object,
                bucket_name=self._bucket,
                object_name=name,
                expires=expires,
            )
        except _SDK_ERRORS as exc:
            raise StorageError(f"error generating presigned URL: {exc}") from exc
