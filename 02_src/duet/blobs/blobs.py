"""Object storage for drawings and avatars."""

import asyncio
from pathlib import Path, PurePosixPath
from typing import Protocol

from ..config import BLOB_BASE_URL, resolve_blob_dir
from ..logging_config import get_logger

logger = get_logger(__name__)


class IObjectStorage(Protocol):
    """Write binary payloads and resolve public references to them."""

    async def put(self, path: str, data: bytes, content_type: str = "image/png") -> None:
        """Store ``data`` under ``path``, replacing any previous payload."""
        ...

    async def url_for(self, path: str) -> str:
        """Publicly resolvable URL of a stored payload."""
        ...


class LocalObjectStorage:
    """Object storage on the local filesystem, served by the API under /blobs."""

    def __init__(self, root: str | Path | None = None, base_url: str = BLOB_BASE_URL):
        self._root = resolve_blob_dir(root)
        self._base_url = base_url.rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    async def put(self, path: str, data: bytes, content_type: str = "image/png") -> None:
        """Store ``data`` under ``path``, replacing any previous payload."""
        target = self._resolve(path)
        await asyncio.to_thread(_write_bytes, target, data)
        logger.debug("Stored %s bytes at %s (%s)", len(data), path, content_type)

    async def url_for(self, path: str) -> str:
        """Publicly resolvable URL of a stored payload."""
        target = self._resolve(path)
        if not target.exists():
            raise FileNotFoundError(path)
        return f"{self._base_url}/{PurePosixPath(path)}"

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Invalid object path: {path!r}")
        return self._root.joinpath(*relative.parts)


def _write_bytes(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
