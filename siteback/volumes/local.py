# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Local filesystem volume - a directory on disk, e.g. web/uploads.
"""

import asyncio
from pathlib import Path
from typing import AsyncIterator, List

import aiofiles
import structlog

from siteback.exceptions import VolumeIOError
from siteback.volumes import VolumeEntry

logger = structlog.get_logger()

_CHUNK_SIZE = 1024 * 1024


class LocalVolume:
    """A volume backed by a local directory."""

    def __init__(self, handle: str, root: Path | str):
        self.handle = handle
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"LocalVolume(handle={self.handle!r}, root={str(self.root)!r})"

    def _path(self, relative_path: str) -> Path:
        parts = [p for p in relative_path.replace("\\", "/").split("/") if p not in ("", ".")]
        if not parts or ".." in parts:
            raise VolumeIOError(
                f"Invalid volume path: {relative_path!r}",
                details={"handle": self.handle},
            )
        return self.root.joinpath(*parts)

    async def list_entries(self) -> List[VolumeEntry]:
        """List every directory and file below the volume root."""
        if not self.root.exists():
            return []
        try:
            paths = await asyncio.to_thread(lambda: sorted(self.root.rglob("*")))
        except OSError as e:
            raise VolumeIOError(
                f"Failed to list volume: {e}",
                details={"handle": self.handle, "root": str(self.root)},
            )
        return [
            VolumeEntry(
                relative_path=path.relative_to(self.root).as_posix(),
                is_directory=path.is_dir(),
            )
            for path in paths
        ]

    async def read_file(self, relative_path: str) -> AsyncIterator[bytes]:
        path = self._path(relative_path)
        try:
            async with aiofiles.open(path, "rb") as f:
                while True:
                    chunk = await f.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    yield chunk
        except OSError as e:
            raise VolumeIOError(
                f"Failed to read volume file: {e}",
                details={"handle": self.handle, "path": relative_path},
            )

    async def write_file(self, relative_path: str, chunks: AsyncIterator[bytes]) -> None:
        path = self._path(relative_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                async for chunk in chunks:
                    await f.write(chunk)
        except OSError as e:
            raise VolumeIOError(
                f"Failed to write volume file: {e}",
                details={"handle": self.handle, "path": relative_path},
            )
        logger.debug("volume_file_written", handle=self.handle, path=relative_path)
