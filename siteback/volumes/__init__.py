# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Volume Layer - Named file-storage containers and the collector that
mirrors them to (and restores them from) a local staging tree.
"""

from dataclasses import dataclass
from typing import AsyncIterator, List, Protocol


@dataclass(frozen=True)
class VolumeEntry:
    """One listing entry of a volume, relative to the volume root."""

    relative_path: str  # POSIX separators, no leading slash
    is_directory: bool = False


class Volume(Protocol):
    """Protocol for a named file-storage container."""

    handle: str

    async def list_entries(self) -> List[VolumeEntry]:
        """Recursively list every directory and file in the volume."""
        ...

    def read_file(self, relative_path: str) -> AsyncIterator[bytes]:
        """Stream a file's bytes in chunks."""
        ...

    async def write_file(self, relative_path: str, chunks: AsyncIterator[bytes]) -> None:
        """Create or replace a file from a stream of chunks."""
        ...


from siteback.volumes.collector import mirror_volumes_to, restore_volumes_from  # noqa: E402
from siteback.volumes.local import LocalVolume  # noqa: E402
from siteback.volumes.s3 import S3Volume  # noqa: E402

__all__ = [
    "Volume",
    "VolumeEntry",
    "LocalVolume",
    "S3Volume",
    "mirror_volumes_to",
    "restore_volumes_from",
]
