"""
Blob storage abstraction: managed blob API, S3-compatible buckets, and a
local-disk fallback under ``public/uploads``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urlsplit

import boto3
import requests
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from dropit.config import Settings
from dropit.errors import StorageError

logger = logging.getLogger(__name__)

REMOTE_ERRORS = (
    requests.RequestException,
    BotoCoreError,
    ClientError,
    StorageError,
    KeyError,
    ValueError,
)


@dataclass
class StoredBlob:
    url: str
    pathname: str
    size: int
    uploaded_at: int  # epoch milliseconds


class StorageClient(Protocol):
    """Defines the operations the API needs from blob storage."""

    name: str

    def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        ...

    def list(
        self, prefix: Optional[str] = None, limit: Optional[int] = None
    ) -> list[StoredBlob]:
        ...

    def delete(self, url: str) -> None:
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


def _sort_and_limit(blobs: list[StoredBlob], limit: Optional[int]) -> list[StoredBlob]:
    blobs.sort(key=lambda b: b.uploaded_at, reverse=True)
    if limit:
        return blobs[:limit]
    return blobs


@dataclass
class LocalStorageClient:
    """
    Writes files below ``uploads_dir`` and synthesises blob metadata from
    the filesystem (size and mtime). URLs are ``base_url/<pathname>``.
    """

    uploads_dir: str
    base_url: str = "/uploads"
    name: str = "local"

    def __post_init__(self):
        self.root = Path(self.uploads_dir).resolve()

    def _resolve(self, pathname: str) -> tuple[str, Path]:
        cleaned = pathname.replace("\\", "/").lstrip("/")
        target = (self.root / cleaned).resolve()
        if target == self.root or self.root not in target.parents:
            raise StorageError("Path escapes uploads directory")
        return target.relative_to(self.root).as_posix(), target

    def _blob_for(self, relative: str, path: Path) -> StoredBlob:
        stats = path.stat()
        return StoredBlob(
            url=f"{self.base_url.rstrip('/')}/{relative}",
            pathname=relative,
            size=stats.st_size,
            uploaded_at=int(stats.st_mtime * 1000),
        )

    def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        relative, target = self._resolve(pathname)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return self._blob_for(relative, target)

    def list(
        self, prefix: Optional[str] = None, limit: Optional[int] = None
    ) -> list[StoredBlob]:
        if not self.root.is_dir():
            return []
        blobs = []
        for path in self.root.rglob("*"):
            if not path.is_file():
                continue
            relative = path.relative_to(self.root).as_posix()
            if prefix and not relative.startswith(prefix):
                continue
            blobs.append(self._blob_for(relative, path))
        return _sort_and_limit(blobs, limit)

    def _pathname_from_url(self, url: str) -> str:
        base = self.base_url.rstrip("/") + "/"
        if url.startswith(base):
            return url[len(base):]
        path = urlsplit(url).path
        base_path = urlsplit(base).path
        if path.startswith(base_path):
            return path[len(base_path):]
        raise StorageError("删除文件失败")

    def delete(self, url: str) -> None:
        _, target = self._resolve(self._pathname_from_url(url))
        try:
            target.unlink()
        except OSError as exc:
            logger.error("Error deleting local file %s: %s", target, exc)
            raise StorageError("删除文件失败") from exc


@dataclass
class HttpBlobStorageClient:
    """
    Client for a managed blob REST API (Vercel Blob style) authenticated by
    a read/write token.
    """

    token: str
    api_url: str = "https://blob.vercel-storage.com"
    name: str = "blob"
    timeout: float = 30.0

    def _headers(self, **extra: str) -> dict:
        headers = {"authorization": f"Bearer {self.token}", "x-api-version": "7"}
        headers.update(extra)
        return headers

    @staticmethod
    def _parse_uploaded_at(value) -> int:
        if value is None:
            return _now_ms()
        if isinstance(value, (int, float)):
            return int(value)
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        return int(parsed.timestamp() * 1000)

    def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        response = requests.put(
            f"{self.api_url.rstrip('/')}/{pathname.lstrip('/')}",
            data=data,
            headers=self._headers(
                **{"x-content-type": content_type, "x-add-random-suffix": "0"}
            ),
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        return StoredBlob(
            url=payload["url"],
            pathname=payload.get("pathname", pathname),
            size=len(data),
            uploaded_at=_now_ms(),
        )

    def list(
        self, prefix: Optional[str] = None, limit: Optional[int] = None
    ) -> list[StoredBlob]:
        params = {}
        if prefix:
            params["prefix"] = prefix
        if limit:
            params["limit"] = limit
        response = requests.get(
            self.api_url.rstrip("/"),
            params=params,
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()
        blobs = [
            StoredBlob(
                url=item["url"],
                pathname=item["pathname"],
                size=int(item.get("size", 0)),
                uploaded_at=self._parse_uploaded_at(item.get("uploadedAt")),
            )
            for item in response.json().get("blobs", [])
        ]
        return _sort_and_limit(blobs, limit)

    def delete(self, url: str) -> None:
        response = requests.post(
            f"{self.api_url.rstrip('/')}/delete",
            json={"urls": [url]},
            headers=self._headers(),
            timeout=self.timeout,
        )
        response.raise_for_status()


@dataclass
class S3StorageClient:
    """
    S3-compatible object storage client.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""
    name: str = "s3"

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )
        if not self.public_base_url:
            self.public_base_url = f"{(self.endpoint or '').rstrip('/')}/{self.bucket}"

    def _url_for(self, key: str) -> str:
        return f"{self.public_base_url.rstrip('/')}/{key}"

    def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        key = pathname.lstrip("/")
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return StoredBlob(
            url=self._url_for(key), pathname=key, size=len(data), uploaded_at=_now_ms()
        )

    def list(
        self, prefix: Optional[str] = None, limit: Optional[int] = None
    ) -> list[StoredBlob]:
        paginator = self._client.get_paginator("list_objects_v2")
        blobs = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix or ""):
            for obj in page.get("Contents", []):
                blobs.append(
                    StoredBlob(
                        url=self._url_for(obj["Key"]),
                        pathname=obj["Key"],
                        size=int(obj["Size"]),
                        uploaded_at=int(obj["LastModified"].timestamp() * 1000),
                    )
                )
        return _sort_and_limit(blobs, limit)

    def delete(self, url: str) -> None:
        base = self.public_base_url.rstrip("/") + "/"
        key = url[len(base):] if url.startswith(base) else urlsplit(url).path.lstrip("/")
        self._client.delete_object(Bucket=self.bucket, Key=key)


@dataclass
class FallbackStorageClient:
    """
    Delegates to the remote client when one is configured and falls back to
    local storage when it is absent or a call fails. One attempt, no retry.
    """

    primary: Optional[StorageClient]
    local: LocalStorageClient

    @property
    def name(self) -> str:
        return self.primary.name if self.primary is not None else self.local.name

    def put(self, pathname: str, data: bytes, content_type: str) -> StoredBlob:
        if self.primary is not None:
            try:
                return self.primary.put(pathname, data, content_type)
            except REMOTE_ERRORS as exc:
                logger.warning(
                    "%s upload failed, falling back to local storage: %s",
                    self.primary.name,
                    exc,
                )
        return self.local.put(pathname, data, content_type)

    def list(
        self, prefix: Optional[str] = None, limit: Optional[int] = None
    ) -> list[StoredBlob]:
        if self.primary is not None:
            try:
                return self.primary.list(prefix=prefix, limit=limit)
            except REMOTE_ERRORS as exc:
                logger.warning(
                    "%s list failed, falling back to local storage: %s",
                    self.primary.name,
                    exc,
                )
        return self.local.list(prefix=prefix, limit=limit)

    def delete(self, url: str) -> None:
        if self.primary is not None:
            try:
                self.primary.delete(url)
                return
            except REMOTE_ERRORS as exc:
                logger.warning(
                    "%s delete failed, falling back to local storage: %s",
                    self.primary.name,
                    exc,
                )
        self.local.delete(url)


def build_storage_client(settings: Settings) -> FallbackStorageClient:
    local = LocalStorageClient(
        uploads_dir=settings.uploads_dir, base_url=settings.uploads_base_url
    )
    primary: Optional[StorageClient] = None
    if settings.blob_read_write_token:
        primary = HttpBlobStorageClient(
            token=settings.blob_read_write_token, api_url=settings.blob_api_url
        )
    elif settings.s3_bucket:
        primary = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.s3_public_base_url or "",
        )
    else:
        logger.info("Blob credentials not configured, using local storage")
    return FallbackStorageClient(primary=primary, local=local)
