"""Object storage for uploaded images.

Files live under ``{root}/{bucket}/{folder}/{name}`` and are served from
``{public_url}/{bucket}/{folder}/{name}``.
"""
from __future__ import annotations

import asyncio
import logging
import os
import secrets
import time
from functools import lru_cache
from pathlib import Path, PurePosixPath

from ..core.config import settings
from ..core.errors import StorageError
from ..core.security import Identity

logger = logging.getLogger(__name__)

DEFAULT_FOLDER = "property_images"


class LocalObjectStorage:
    """Bucket on the local filesystem with public URL issuance."""

    def __init__(self, root: str | Path, bucket: str, public_url: str) -> None:
        self.root = Path(root)
        self.bucket = bucket
        self.public_base = public_url.rstrip("/")

    @property
    def bucket_dir(self) -> Path:
        return self.root / self.bucket

    def public_url(self, path: str) -> str:
        return f"{self.public_base}/{self.bucket}/{path}"

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self.bucket_dir.joinpath(*relative.parts)

    async def upload(self, path: str, data: bytes, *, upsert: bool = True) -> str:
        target = self._resolve(path)
        loop = asyncio.get_running_loop()

        def _write() -> None:
            if target.exists() and not upsert:
                raise FileExistsError(path)
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = target.with_name(target.name + ".part")
            tmp_path.write_bytes(data)
            os.replace(tmp_path, target)

        try:
            await loop.run_in_executor(None, _write)
        except OSError as exc:
            raise StorageError(f"Upload of {path} failed: {exc}") from exc
        return self.public_url(path)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, target.unlink)
        except FileNotFoundError as exc:
            raise StorageError(f"Object {path} does not exist") from exc
        except OSError as exc:
            raise StorageError(f"Delete of {path} failed: {exc}") from exc


@lru_cache
def get_storage() -> LocalObjectStorage:
    return LocalObjectStorage(settings.storage_root, settings.storage_bucket, settings.storage_public_url)


def _unique_name(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix.lstrip(".").lower() or "bin"
    return f"{secrets.token_hex(6)}_{int(time.time() * 1000)}.{suffix}"


async def upload_image(
    storage: LocalObjectStorage,
    identity: Identity | None,
    data: bytes,
    filename: str,
    *,
    folder: str = DEFAULT_FOLDER,
) -> str | None:
    """Store an image under a unique name and return its public URL.

    Returns ``None`` without an authenticated identity, for empty input, or
    when the upload fails.
    """

    if identity is None:
        logger.warning("Rejected image upload without an authenticated session")
        return None
    if not data:
        return None

    path = f"{folder}/{_unique_name(filename)}"
    try:
        return await storage.upload(path, data)
    except StorageError as exc:
        logger.warning("Image upload failed: %s", exc)
        return None


def object_path_from_url(url: str) -> str:
    """Return ``folder/file`` from the last two segments of a public URL."""

    parts = [part for part in url.split("?", 1)[0].split("/") if part]
    if len(parts) < 2:
        raise StorageError(f"Cannot derive an object path from {url!r}")
    return f"{parts[-2]}/{parts[-1]}"


async def delete_image(storage: LocalObjectStorage, url: str) -> bool:
    try:
        await storage.delete(object_path_from_url(url))
    except StorageError as exc:
        logger.warning("Image delete failed for %s: %s", url, exc)
        return False
    return True
