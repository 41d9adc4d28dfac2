"""Blob storage for meeting recordings and generated summary audio.

BlobStorage is the interface the save pipeline and summary audio generator
depend on: upload bytes under a name inside a bucket, then resolve a public
URL for that name. FilesystemBlobStorage keeps objects under a local
directory which the app serves as static files at AUDIO_PUBLIC_BASE_URL.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)


class BlobStorageError(Exception):
    """Raised when an object cannot be written to storage."""


class BlobStorage(Protocol):
    """Minimal object store used for audio files."""

    async def upload(
        self, name: str, data: bytes, content_type: str, upsert: bool = True
    ) -> None: ...

    def public_url(self, name: str) -> str: ...


class FilesystemBlobStorage:
    """Object store backed by a local directory.

    Objects live at ``{root_dir}/{bucket}/{name}`` and are published at
    ``{public_base_url}/{bucket}/{name}``.

    Args:
        root_dir: Directory served as the public base URL.
        bucket: Sub-directory acting as the bucket.
        public_base_url: URL prefix under which root_dir is served.
    """

    def __init__(self, root_dir: str | Path, bucket: str, public_base_url: str) -> None:
        self._root = Path(root_dir)
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")

    @property
    def root_dir(self) -> Path:
        return self._root

    def _path(self, name: str) -> Path:
        path = (self._root / self._bucket / name).resolve()
        bucket_dir = (self._root / self._bucket).resolve()
        if bucket_dir not in path.parents:
            raise BlobStorageError(f"Object name escapes bucket: {name!r}")
        return path

    async def upload(
        self, name: str, data: bytes, content_type: str, upsert: bool = True
    ) -> None:
        """Write an object, replacing an existing one when upsert is set.

        Raises:
            BlobStorageError: The object exists and upsert is False, or the
                write failed.
        """
        path = self._path(name)
        if path.exists() and not upsert:
            raise BlobStorageError(f"Object already exists: {self._bucket}/{name}")

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise BlobStorageError(f"Failed to write {self._bucket}/{name}: {exc}") from exc

        logger.info(
            "storage.object_uploaded",
            bucket=self._bucket,
            name=name,
            content_type=content_type,
            size=len(data),
        )

    def public_url(self, name: str) -> str:
        return f"{self._public_base_url}/{self._bucket}/{name}"
