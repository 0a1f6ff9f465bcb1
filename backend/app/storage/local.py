"""
Local filesystem artifact store.

Artifacts live flat under one directory (settings.artifact_dir), named by
their key, e.g. uploads/audio_<id>.mp3. Blocking file I/O runs in the
default thread executor so the event loop never stalls on disk.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from app.core.exceptions import StoreError
from app.storage.base import ArtifactStore

logger = logging.getLogger(__name__)


class LocalArtifactStore(ArtifactStore):

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def _path(self, key: str) -> Path:
        # Keys are server-built; still refuse anything that escapes the root
        if "/" in key or "\\" in key or key in ("", ".", ".."):
            raise ValueError(f"Invalid artifact key: {key!r}")
        return self._root / key

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write, path, data)
        except OSError as exc:
            raise StoreError(f"Failed to write artifact {key}: {exc}") from exc
        logger.info("Artifact saved | key=%s size=%d type=%s", key, len(data), content_type)
        return key

    async def read(self, key: str) -> bytes:
        path = self._path(key)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise StoreError(f"Failed to read artifact {key}: {exc}") from exc

    async def exists(self, key: str) -> bool:
        path = self._path(key)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, path.is_file)

    async def delete(self, key: str) -> bool:
        path = self._path(key)
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, path.unlink)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StoreError(f"Failed to delete artifact {key}: {exc}") from exc
        logger.info("Artifact deleted | key=%s", key)
        return True

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
