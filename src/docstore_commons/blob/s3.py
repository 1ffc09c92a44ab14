"""Prefix-scoped blob storage over an S3-compatible client."""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractContextManager
from io import BytesIO
from time import perf_counter
from typing import Any, Protocol, runtime_checkable

from docstore_commons.config.models import BlobSettings
from docstore_commons.errors import DocstoreCommonsError, MissingDependencyError
from docstore_commons.health import HealthStatus
from docstore_commons.observability.metrics import MetricsRecorder, track_operation

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchBucket", "NoSuchKey", "NotFound"}
_AUTH_CODES = {
    "AccessDenied",
    "ExpiredToken",
    "InvalidAccessKeyId",
    "InvalidToken",
    "SignatureDoesNotMatch",
    "Unauthorized",
}
_TRANSIENT_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


class BlobError(DocstoreCommonsError):
    """Base exception for blob operations."""

    def __init__(
        self,
        operation: str,
        bucket: str,
        key: str | None,
        message: str,
    ) -> None:
        self.operation = operation
        self.bucket = bucket
        self.key = key
        target = bucket if key is None else f"{bucket}/{key}"
        super().__init__(f"Blob {operation} failed for '{target}': {message}")


class BlobNotFoundError(BlobError):
    """Raised when the bucket does not exist."""


class BlobAuthError(BlobError):
    """Raised when credentials are invalid or access is denied."""


class BlobTransientError(BlobError):
    """Raised for retryable/transient blob operation failures."""


class BlobOperationError(BlobError):
    """Raised for non-transient blob operation failures."""


@runtime_checkable
class S3ObjectResponse(Protocol):
    """Response contract used by S3-compatible ``get_object`` calls."""

    def read(self, amt: int | None = None) -> bytes:
        """Read payload bytes from response."""
        ...

    def close(self) -> None:
        """Close the response stream."""
        ...

    def release_conn(self) -> None:
        """Release connection back to underlying pool."""
        ...


@runtime_checkable
class S3CompatibleClient(Protocol):
    """Subset of the S3 API expected by ``S3BlobStorage`` (satisfied by ``minio.Minio``)."""

    def put_object(
        self,
        bucket_name: str,
        object_name: str,
        data: BytesIO,
        length: int,
        *,
        content_type: str = ...,
    ) -> Any: ...

    def get_object(self, bucket_name: str, object_name: str) -> S3ObjectResponse: ...

    def stat_object(self, bucket_name: str, object_name: str) -> Any: ...

    def remove_object(self, bucket_name: str, object_name: str) -> Any: ...

    def bucket_exists(self, bucket_name: str) -> bool: ...


def normalize_prefix(prefix: str | None) -> str:
    """Trim ``prefix`` and make sure a non-empty prefix ends with ``/``."""
    normalized = (prefix or "").strip()
    if normalized and not normalized.endswith("/"):
        normalized += "/"
    return normalized


class S3BlobStorage:
    """Blob storage scoped to one bucket and key prefix.

    ``get`` returns ``None`` for a missing key and ``delete`` treats a missing
    key as a no-op; every other backend failure raises a ``BlobError`` subclass.
    """

    def __init__(
        self,
        *,
        client: S3CompatibleClient,
        bucket: str,
        prefix: str = "",
        metrics: MetricsRecorder | None = None,
        metrics_resource: str = "s3",
    ) -> None:
        normalized_bucket = bucket.strip()
        if not normalized_bucket:
            raise ValueError("bucket must be a non-empty string")
        self._client = client
        self._bucket = normalized_bucket
        self._prefix = normalize_prefix(prefix)
        self._metrics = metrics
        self._metrics_resource = metrics_resource

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def prefix(self) -> str:
        return self._prefix

    @classmethod
    def from_settings(
        cls,
        settings: BlobSettings,
        *,
        metrics: MetricsRecorder | None = None,
    ) -> S3BlobStorage:
        """Build storage and its client from explicit settings."""
        minio_module = _import_minio()
        if settings.access_key is not None and settings.secret_key is not None:
            client = minio_module.Minio(
                endpoint=settings.endpoint,
                access_key=settings.access_key.get_secret_value(),
                secret_key=settings.secret_key.get_secret_value(),
                secure=settings.secure,
                region=settings.region,
            )
        else:
            logger.debug("Using blob credentials from profile '%s'", settings.profile)
            credentials = _import_minio_credentials().AWSConfigProvider(profile=settings.profile)
            client = minio_module.Minio(
                endpoint=settings.endpoint,
                secure=settings.secure,
                region=settings.region,
                credentials=credentials,
            )
        return cls(client=client, bucket=settings.bucket, prefix=settings.prefix, metrics=metrics)

    def object_key(self, key: str) -> str:
        """Full object key for ``key`` under this storage's prefix."""
        normalized = key.strip()
        if not normalized:
            raise ValueError("key must be a non-empty string")
        return f"{self._prefix}{normalized}"

    async def put(
        self,
        data: bytes | bytearray | memoryview,
        key: str,
        content_type: str | None = None,
    ) -> None:
        """Upload ``data`` to ``key``."""
        object_key = self.object_key(key)
        payload = _coerce_bytes(data)
        extra: dict[str, Any] = {}
        if content_type is not None:
            extra["content_type"] = content_type

        with self._track("put"):
            try:
                await asyncio.to_thread(
                    self._client.put_object,
                    self._bucket,
                    object_key,
                    BytesIO(payload),
                    len(payload),
                    **extra,
                )
            except Exception as exc:
                raise self._failure("put", object_key, exc) from exc

    async def get(self, key: str) -> bytes | None:
        """Download object bytes, or ``None`` when the key does not exist."""
        object_key = self.object_key(key)

        with self._track("get"):
            try:
                response = await asyncio.to_thread(
                    self._client.get_object, self._bucket, object_key
                )
            except Exception as exc:
                if _is_missing_key_error(exc):
                    return None
                raise self._failure("get", object_key, exc) from exc

            try:
                return await asyncio.to_thread(response.read)
            except Exception as exc:
                raise self._failure("get", object_key, exc) from exc
            finally:
                _release_response(response, object_key)

    async def exists(self, key: str) -> bool:
        """Check whether object exists without downloading it."""
        object_key = self.object_key(key)

        with self._track("exists"):
            try:
                await asyncio.to_thread(self._client.stat_object, self._bucket, object_key)
            except Exception as exc:
                if _is_missing_key_error(exc):
                    return False
                raise self._failure("exists", object_key, exc) from exc
        return True

    async def delete(self, key: str) -> None:
        """Delete object, treating missing keys as no-op."""
        object_key = self.object_key(key)

        with self._track("delete"):
            try:
                await asyncio.to_thread(self._client.remove_object, self._bucket, object_key)
            except Exception as exc:
                if not _is_missing_key_error(exc):
                    raise self._failure("delete", object_key, exc) from exc

    async def health_check(self) -> HealthStatus:
        """Check bucket reachability."""
        started = perf_counter()
        try:
            with self._track("health_check"):
                exists = await asyncio.to_thread(self._client.bucket_exists, self._bucket)
        except Exception as exc:
            return HealthStatus.failed(started, exc, bucket=self._bucket)

        if not exists:
            return HealthStatus.failed(
                started, f"bucket '{self._bucket}' does not exist", bucket=self._bucket
            )
        return HealthStatus.passed(started, bucket=self._bucket)

    def _track(self, operation: str) -> AbstractContextManager[None]:
        return track_operation(
            self._metrics_resource, operation, collection=self._bucket, metrics=self._metrics
        )

    def _failure(self, operation: str, key: str, exc: Exception) -> BlobError:
        logger.error("Blob %s failed for %s/%s: %s", operation, self._bucket, key, exc)
        return _translate_blob_error(operation=operation, bucket=self._bucket, key=key, exc=exc)


def create_blob_storage(
    settings: BlobSettings,
    *,
    metrics: MetricsRecorder | None = None,
) -> S3BlobStorage:
    """Factory mirroring :meth:`S3BlobStorage.from_settings`."""
    return S3BlobStorage.from_settings(settings, metrics=metrics)


def _import_minio() -> Any:
    try:
        import minio
    except ImportError as exc:  # pragma: no cover - exercised when minio is absent
        raise MissingDependencyError(
            "Blob storage requires dependency 'minio'. Install with: pip install docstore-commons"
        ) from exc
    return minio


def _import_minio_credentials() -> Any:
    _import_minio()
    from minio import credentials

    return credentials


def _coerce_bytes(data: bytes | bytearray | memoryview) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, bytearray):
        return bytes(data)
    return data.tobytes()


def _release_response(response: Any, object_key: str) -> None:
    # A failing release never replaces the payload or the read error.
    for method in ("close", "release_conn"):
        release = getattr(response, method, None)
        if not callable(release):
            continue
        try:
            release()
        except Exception as exc:
            logger.warning("Blob response %s failed for %s: %s", method, object_key, exc)


def _translate_blob_error(
    *,
    operation: str,
    bucket: str,
    key: str | None,
    exc: Exception,
) -> BlobError:
    message = str(exc)

    if _is_not_found_error(exc):
        return BlobNotFoundError(operation, bucket, key, message)
    if _is_auth_error(exc):
        return BlobAuthError(operation, bucket, key, message)
    if _is_transient_error(exc):
        return BlobTransientError(operation, bucket, key, message)
    return BlobOperationError(operation, bucket, key, message)


def _is_missing_key_error(exc: Exception) -> bool:
    # A missing bucket is a configuration failure, not an absent object.
    code = _error_code(exc)
    if code == "NoSuchBucket":
        return False
    return code in {"NoSuchKey", "NotFound"} or _error_status(exc) == 404


def _is_not_found_error(exc: Exception) -> bool:
    code = _error_code(exc)
    status = _error_status(exc)
    return code in _NOT_FOUND_CODES or status == 404


def _is_auth_error(exc: Exception) -> bool:
    code = _error_code(exc)
    status = _error_status(exc)
    return code in _AUTH_CODES or status in {401, 403}


def _is_transient_error(exc: Exception) -> bool:
    status = _error_status(exc)
    if status in _TRANSIENT_STATUS_CODES:
        return True

    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True

    name = type(exc).__name__.lower()
    return "timeout" in name or "connection" in name


def _error_code(exc: Exception) -> str | None:
    code = getattr(exc, "code", None) or getattr(exc, "error_code", None)
    if code is None:
        return None
    return str(code)


def _error_status(exc: Exception) -> int | None:
    status = getattr(exc, "status", None) or getattr(exc, "status_code", None)
    if status is None:
        return None
    try:
        return int(status)
    except (TypeError, ValueError):
        return None
