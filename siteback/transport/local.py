# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Local transport - push artifacts to another directory.

Useful with a mounted network share or a second disk, and as a
dependency-free remote in tests.
"""

import asyncio
from pathlib import Path
from typing import List

import aiofiles
import structlog

from siteback.exceptions import TransferError
from siteback.transport import Transport

logger = structlog.get_logger()

_CHUNK_SIZE = 1024 * 1024


class LocalTransport(Transport):
    """Store artifacts as plain files in `directory`."""

    name = "local"

    def __init__(self, directory: Path | str | None):
        self.directory = Path(directory) if directory is not None else None

    def is_configured(self) -> bool:
        return self.directory is not None

    async def is_authenticated(self) -> bool:
        return self.directory is not None and self.directory.is_dir()

    def _remote_path(self, remote_key: str) -> Path:
        if self.directory is None:
            raise TransferError("Local transport has no directory configured")
        name = Path(remote_key).name
        if not name or name in (".", ".."):
            raise TransferError(f"Invalid remote key: {remote_key!r}")
        return self.directory / name

    async def list(self, filter_extension: str) -> List[str]:
        if self.directory is None:
            raise TransferError("Local transport has no directory configured")
        if not self.directory.exists():
            return []
        try:
            names = [p.name for p in self.directory.iterdir() if p.is_file()]
        except OSError as e:
            raise TransferError(
                f"Failed to list remote directory: {e}",
                details={"directory": str(self.directory)},
            )
        return self.filter_by_extension(sorted(names), filter_extension)

    async def push(self, local_path: Path) -> None:
        local_path = Path(local_path)
        target = self._remote_path(local_path.name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            await _copy_file(local_path, target)
        except OSError as e:
            raise TransferError(
                f"Failed to push file: {e}",
                details={"local_path": str(local_path), "remote_path": str(target)},
            )
        logger.debug("local_transport_pushed", remote_path=str(target))

    async def pull(self, remote_key: str, local_path: Path) -> None:
        source = self._remote_path(remote_key)
        local_path = Path(local_path)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            await _copy_file(source, local_path)
        except OSError as e:
            raise TransferError(
                f"Failed to pull file: {e}",
                details={"remote_key": remote_key, "local_path": str(local_path)},
            )
        logger.debug("local_transport_pulled", remote_key=remote_key)

    async def delete(self, remote_key: str) -> None:
        target = self._remote_path(remote_key)
        try:
            await asyncio.to_thread(target.unlink)
        except OSError as e:
            raise TransferError(
                f"Failed to delete file: {e}",
                details={"remote_key": remote_key},
            )
        logger.debug("local_transport_deleted", remote_key=remote_key)


async def _copy_file(source: Path, destination: Path) -> None:
    async with aiofiles.open(source, "rb") as src, aiofiles.open(destination, "wb") as dst:
        while True:
            chunk = await src.read(_CHUNK_SIZE)
            if not chunk:
                break
            await dst.write(chunk)
