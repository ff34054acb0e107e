"""Durable object storage for rendered contract documents.

``LocalObjectStore`` keeps objects below a base directory and exposes
them under a configurable public base URL (a static file server, a CDN
origin, or ``file://`` URLs when none is configured).
"""

from pathlib import Path, PurePosixPath
from typing import Optional, Protocol

from loguru import logger

from contractgen.error_handling import StorageError


class ObjectStore(Protocol):
    def put(self, path: str, data: bytes, content_type: str) -> str:
        ...

    def get_public_url(self, path: str) -> str:
        ...


class LocalObjectStore:
    """Filesystem-backed object store."""

    def __init__(self, base_dir: str = "documents", public_base_url: Optional[str] = None):
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None
        logger.info("Local object store ready", base_dir=str(self.base_dir))

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self.base_dir.joinpath(*relative.parts)

    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path``, overwriting, and return its public URL.

        Raises:
            StorageError: If the path is invalid or the write fails
        """
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_suffix(target.suffix + ".part")
            tmp.write_bytes(data)
            tmp.replace(target)
        except OSError as e:
            raise StorageError(f"Failed to store {path}: {e}") from e

        logger.debug("Stored object", path=path, size_bytes=len(data), content_type=content_type)
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        target = self._resolve(path)
        if self.public_base_url:
            return f"{self.public_base_url}/{PurePosixPath(path)}"
        return target.as_uri()
