from __future__ import annotations

import mimetypes
import os
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fleet_ledger.core.config import settings
from fleet_ledger.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)

T = TypeVar("T")

_TRANSIENT_S3_CODES = frozenset(
    {
        "RequestCanceled",
        "RequestTimeout",
        "Throttling",
        "ThrottlingException",
        "SlowDown",
        "InternalError",
        "ServiceUnavailable",
    }
)
_MISSING_S3_CODES = frozenset({"NoSuchKey", "404", "NotFound"})
_CONFLICT_S3_CODES = frozenset({"PreconditionFailed", "412", "ConditionalRequestConflict"})


class StorageError(RuntimeError):
    pass


class StorageConflictError(StorageError):
    """The key is already taken; stored receipt images are immutable."""


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int
    content_type: str
    body: bytes | None = None


def guess_content_type(key: str) -> str:
    return mimetypes.guess_type(key)[0] or "application/octet-stream"


class ObjectStorage:
    """Write-once blob store for receipt images. Nothing is overwritten or deleted."""

    backend = "abstract"

    def put(self, *, key: str, body: bytes) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> StoredObject:  # pragma: no cover
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    backend = "local"

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("xb") as fh:
                fh.write(body)
        except FileExistsError as e:
            log_event(logger, "storage.put.conflict", backend=self.backend, storage_key=key)
            raise StorageConflictError(f"Object already exists: {key}") from e
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body), content_type=guess_content_type(key))

    def get(self, *, key: str) -> StoredObject:
        path = self._path(key)
        if not path.is_file():
            raise StorageError(f"Object not found: {key}")
        body = path.read_bytes()
        return StoredObject(
            key=key, byte_size=len(body), content_type=guess_content_type(key), body=body
        )


class S3ObjectStorage(ObjectStorage):
    backend = "s3"
    max_attempts = 5

    def __init__(self) -> None:
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"
        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        self._client = session.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url or None,
            config=Config(
                s3={"addressing_style": "virtual"},
                retries={"max_attempts": 3, "mode": "adaptive"},
                connect_timeout=10,
                read_timeout=30,
            ),
        )
        self._bucket = settings.s3_bucket

    @staticmethod
    def _error_code(error: Exception) -> str | None:
        if isinstance(error, ClientError):
            return (error.response.get("Error") or {}).get("Code")
        return None

    @classmethod
    def _is_transient(cls, error: Exception) -> bool:
        if isinstance(error, ClientError):
            return cls._error_code(error) in _TRANSIENT_S3_CODES
        return isinstance(error, BotoCoreError)

    def _with_retries(self, op: str, key: str, call: Callable[[], T]) -> T:
        # Exponential backoff from 0.25s, capped at 3s
        for attempt in range(1, self.max_attempts + 1):
            try:
                return call()
            except (BotoCoreError, ClientError) as e:
                if attempt == self.max_attempts or not self._is_transient(e):
                    raise
                delay_s = min(3.0, 0.25 * 2 ** (attempt - 1))
                log_event(
                    logger,
                    f"storage.{op}.retry",
                    backend=self.backend,
                    storage_key=key,
                    attempt=attempt,
                    delay_s=delay_s,
                    error_type=type(e).__name__,
                )
                time.sleep(delay_s)
        raise StorageError(f"Retries exhausted for {key}")  # pragma: no cover

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        content_type = guess_content_type(key)
        try:
            self._with_retries(
                "put",
                key,
                lambda: self._client.put_object(
                    Bucket=self._bucket,
                    Key=key,
                    Body=body,
                    ContentType=content_type,
                    IfNoneMatch="*",
                ),
            )
        except (BotoCoreError, ClientError) as e:
            if self._error_code(e) in _CONFLICT_S3_CODES:
                log_event(logger, "storage.put.conflict", backend=self.backend, storage_key=key)
                raise StorageConflictError(f"Object already exists: {key}") from e
            log_exception(
                logger,
                "storage.put.failure",
                backend=self.backend,
                storage_key=key,
                byte_size=len(body),
            )
            raise StorageError(f"Failed to store object: {key}") from e
        log_event(
            logger,
            "storage.put.success",
            backend=self.backend,
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body), content_type=content_type)

    def get(self, *, key: str) -> StoredObject:
        try:
            resp = self._with_retries(
                "get", key, lambda: self._client.get_object(Bucket=self._bucket, Key=key)
            )
            body = resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            if self._error_code(e) not in _MISSING_S3_CODES:
                log_exception(logger, "storage.get.failure", backend=self.backend, storage_key=key)
            raise StorageError(f"Object not found: {key}") from e
        return StoredObject(
            key=key,
            byte_size=len(body),
            content_type=resp.get("ContentType") or guess_content_type(key),
            body=body,
        )


_storage: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is None:
        if settings.storage_backend == "s3":
            _storage = S3ObjectStorage()
        else:
            root = settings.local_storage_path
            _storage = LocalObjectStorage(root if root.is_absolute() else Path(os.getcwd()) / root)
    return _storage
