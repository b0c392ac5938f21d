"""
Blob store adapter.

Objects are addressed by slash-separated keys (e.g. "profile-pictures/<uid>")
and served from a public base URL. This adapter keeps them on local disk.
"""

import asyncio
import logging
from pathlib import Path, PurePosixPath

from parcel_tracker.app.core.exceptions import ProviderError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Directory-backed object store."""

    def __init__(self, root: str, public_base_url: str):
        self._root = Path(root)
        self._base_url = public_base_url.rstrip("/")

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or any(part in ("..", "/") for part in parts):
            raise ProviderError("storage/invalid-argument", f"Invalid object key: {key!r}")
        return self._root.joinpath(*parts)

    def _url_for(self, key: str) -> str:
        return f"{self._base_url}/{key}"

    async def upload(self, key: str, data: bytes) -> str:
        """Store bytes under key (overwriting) and return the retrievable URL."""
        path = self._path_for(key)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.debug("Stored blob %s (%d bytes)", key, len(data))
        return self._url_for(key)

    async def get_url(self, key: str) -> str:
        path = self._path_for(key)
        if not await asyncio.to_thread(path.is_file):
            raise ProviderError("storage/object-not-found", key)
        return self._url_for(key)

    async def download(self, key: str) -> bytes:
        path = self._path_for(key)
        if not await asyncio.to_thread(path.is_file):
            raise ProviderError("storage/object-not-found", key)
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as exc:
            raise ProviderError("storage/object-not-found", key) from exc
