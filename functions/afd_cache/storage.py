"""
Key/value storage abstraction for cached products and refresh metadata.

Values are JSON documents. Two real backends are supported: an S3-compatible
object store (shared across workers and restarts) and a directory of JSON
files on the local filesystem. `StoreHandle` picks one of them once per
process and falls back to the local store for any single remote call that
fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol
from urllib.parse import quote, unquote
import json
import logging
import os
import tempfile

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from afd_cache.config import Settings

logger = logging.getLogger(__name__)

MISSING_OBJECT_CODES = {"NoSuchKey", "404", "NotFound"}
REMOTE_ERRORS = (BotoCoreError, ClientError, OSError)


class StoreError(RuntimeError):
    """Raised when neither the remote nor the local backend could serve a call."""


class StoreClient(Protocol):
    """Defines the operations the cache needs from a storage backend."""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def list_keys(self, prefix: str = "") -> set[str]:
        ...


def _decode(raw: bytes | str, key: str) -> Optional[Any]:
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        logger.debug("Ignoring malformed stored value for %s", key)
        return None


def _encode(value: Any) -> str:
    return json.dumps(value, default=str)


@dataclass
class InMemoryStoreClient:
    """Test double for storage interactions."""

    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self.stored_objects.get(key)
        if raw is None:
            return None
        return _decode(raw, key)

    def set(self, key: str, value: Any) -> None:
        # Keep the serialized form to mimic real backends
        self.stored_objects[key] = _encode(value)

    def list_keys(self, prefix: str = "") -> set[str]:
        return {key for key in self.stored_objects if key.startswith(prefix)}

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class LocalStoreClient:
    """
    One JSON file per key under `data_dir`.

    File names are the URL-quoted key, so `list_keys` can recover keys exactly.
    """

    data_dir: str

    def __post_init__(self):
        # Created on first write; the local store may never be used.
        self.data_dir = os.path.abspath(self.data_dir)

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, f"{quote(key, safe='')}.json")

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return _decode(f.read(), key)

    def set(self, key: str, value: Any) -> None:
        body = _encode(value)
        os.makedirs(self.data_dir, exist_ok=True)
        # Write then rename so readers never see a half-written file.
        fd, tmp_path = tempfile.mkstemp(dir=self.data_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def list_keys(self, prefix: str = "") -> set[str]:
        keys = set()
        if not os.path.isdir(self.data_dir):
            return keys
        for name in os.listdir(self.data_dir):
            if not name.endswith(".json"):
                continue
            key = unquote(name[: -len(".json")])
            if key.startswith(prefix):
                keys.add(key)
        return keys


@dataclass
class S3StoreClient:
    """
    S3-compatible object store client. Keys live under an optional prefix.
    """

    bucket: str
    region: Optional[str] = None
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    key_prefix: str = ""

    def __post_init__(self):
        config = Config(signature_version="s3v4")
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def _object_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def check(self) -> None:
        """Raise if the bucket cannot be reached with the configured credentials."""
        self._client.head_bucket(Bucket=self.bucket)

    def get(self, key: str) -> Optional[Any]:
        try:
            response = self._client.get_object(
                Bucket=self.bucket, Key=self._object_key(key)
            )
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code in MISSING_OBJECT_CODES:
                return None
            raise
        return _decode(response["Body"].read(), key)

    def set(self, key: str, value: Any) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=self._object_key(key),
            Body=_encode(value).encode("utf-8"),
            ContentType="application/json",
        )

    def list_keys(self, prefix: str = "") -> set[str]:
        keys = set()
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(
            Bucket=self.bucket, Prefix=self._object_key(prefix)
        ):
            for obj in page.get("Contents", []):
                keys.add(obj["Key"][len(self.key_prefix) :])
        return keys


@dataclass
class StoreHandle:
    """
    Process-wide store. `remote` is None when running on the local backend only.

    Every call against the remote backend is wrapped the same way: on failure
    the call is logged and retried once against the local backend. Only when
    the local backend fails as well does the caller see a `StoreError`.
    """

    local: StoreClient
    remote: Optional[StoreClient] = None

    @property
    def mode(self) -> str:
        return "remote" if self.remote is not None else "local"

    def _call(self, op: str, *args) -> tuple[Any, str]:
        if self.remote is not None:
            try:
                return getattr(self.remote, op)(*args), "remote"
            except REMOTE_ERRORS as exc:
                logger.warning(
                    "Remote store %s(%s) failed, using local store for this call: %s",
                    op,
                    args[0] if args else "",
                    exc,
                )
        try:
            return getattr(self.local, op)(*args), "local"
        except OSError as exc:
            raise StoreError(f"Store {op} failed on every backend: {exc}") from exc

    def get(self, key: str) -> Optional[Any]:
        value, _ = self._call("get", key)
        return value

    def set(self, key: str, value: Any) -> str:
        """Write `value` and return the mode ("remote" or "local") that took it."""
        _, written_to = self._call("set", key, value)
        return written_to

    def list_keys(self, prefix: str = "") -> set[str]:
        keys, _ = self._call("list_keys", prefix)
        return keys


def select_store(settings: Settings) -> StoreHandle:
    """
    Pick the backend for this process. Called once; see `get_store_handle`.
    """
    local = LocalStoreClient(settings.local_data_dir)
    if settings.use_local_store:
        logger.info("Local store mode enabled, using %s", local.data_dir)
        return StoreHandle(local=local)
    if not settings.s3_bucket:
        logger.info("No S3 bucket configured, using local store at %s", local.data_dir)
        return StoreHandle(local=local)

    try:
        remote = S3StoreClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region,
            endpoint=settings.s3_endpoint,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            key_prefix=settings.s3_key_prefix,
        )
        remote.check()
    except (BotoCoreError, ClientError) as exc:
        logger.warning(
            "S3 store unavailable, using local store for this process: %s", exc
        )
        return StoreHandle(local=local)

    logger.info("Using S3 store bucket=%s", settings.s3_bucket)
    return StoreHandle(local=local, remote=remote)
