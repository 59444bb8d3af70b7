"""Directory-backed object storage for application documents."""
from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from urllib.parse import quote

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be written or removed."""


class DocumentStorage:
    """A single bucket rooted at ``root / bucket``.

    Keys are POSIX-style relative paths; anything that would escape the bucket
    is refused.
    """

    def __init__(self, root: Path, bucket: str, public_base_url: str) -> None:
        self.bucket = bucket
        self.bucket_dir = Path(root) / bucket
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or key.startswith("/") or any(part in ("", ".", "..") for part in parts):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self.bucket_dir.joinpath(*parts)

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{self.bucket}/{quote(key)}"

    async def put(self, key: str, data: bytes, *, content_type: str | None = None) -> str:
        """Write a new object and return its public URL. Existing keys are never overwritten."""

        path = self._resolve(key)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "xb") as handle:
                await handle.write(data)
        except FileExistsError as exc:
            raise StorageError(f"Object already exists: {key}") from exc
        except OSError as exc:
            raise StorageError(str(exc)) from exc

        logger.info("Stored %s (%d bytes, %s)", key, len(data), content_type or "unknown type")
        return self.public_url(key)

    async def delete(self, key: str) -> None:
        """Remove an object. Deleting a missing key is not an error."""

        path = self._resolve(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.info("Object %s already absent", key)
            return
        except OSError as exc:
            raise StorageError(str(exc)) from exc
        logger.info("Removed %s", key)

    async def exists(self, key: str) -> bool:
        return await aiofiles.os.path.exists(self._resolve(key))
