# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Volume Collector - Mirror volumes into a workspace and restore them back.

Layout of a mirrored workspace:

    <workspace>/<volume handle>/<relative path of each file>

Volumes are processed one after another; files within a volume are
copied by a bounded pool of tasks. A single failing copy cancels the rest
and aborts the whole call.
"""

import asyncio
import time
from pathlib import Path
from typing import Awaitable, Callable, List, Sequence, TypeVar

import aiofiles
import structlog

from siteback.exceptions import SiteBackError, VolumeIOError
from siteback.volumes import Volume, VolumeEntry

logger = structlog.get_logger()

_CHUNK_SIZE = 1024 * 1024

T = TypeVar("T")


async def mirror_volumes_to(
    volumes: Sequence[Volume],
    workspace: Path,
    max_concurrent: int = 4,
) -> Path | None:
    """
    Copy every file of every volume into workspace/<handle>/.

    Args:
        volumes: Configured volumes
        workspace: Empty staging directory
        max_concurrent: Maximum files copied at once

    Returns:
        The workspace path, or None when no volumes are configured
        (nothing is written in that case)

    Raises:
        VolumeIOError: If any file cannot be read or written
    """
    if not volumes:
        logger.debug("no_volumes_configured")
        return None

    workspace = Path(workspace)
    start = time.perf_counter()
    total_files = 0

    for volume in volumes:
        volume_dir = workspace / volume.handle
        volume_dir.mkdir(parents=True, exist_ok=True)

        entries = await _list_volume(volume)
        files: List[VolumeEntry] = []
        for entry in entries:
            if entry.is_directory:
                (volume_dir / _safe_relative(entry.relative_path, volume.handle)).mkdir(
                    parents=True, exist_ok=True
                )
            else:
                files.append(entry)

        await _run_bounded(
            lambda entry: _copy_to_workspace(volume, entry, volume_dir),
            files,
            max_concurrent,
        )
        total_files += len(files)

        logger.debug(
            "volume_mirrored",
            handle=volume.handle,
            entries=len(entries),
            files=len(files),
        )

    logger.debug(
        "volumes_mirrored",
        workspace=str(workspace),
        volumes=len(volumes),
        files=total_files,
        seconds=round(time.perf_counter() - start, 3),
    )
    return workspace


async def restore_volumes_from(
    volumes: Sequence[Volume],
    workspace: Path,
    max_concurrent: int = 4,
) -> int:
    """
    Upload every file under workspace/<handle>/ back to its volume.

    Top-level directories that match no configured handle are skipped.
    Files written before a failure stay written.

    Returns:
        Number of files written

    Raises:
        VolumeIOError: If any file cannot be read or written
    """
    workspace = Path(workspace)
    by_handle = {volume.handle: volume for volume in volumes}
    written = 0

    for directory in sorted(p for p in workspace.iterdir() if p.is_dir()):
        volume = by_handle.get(directory.name)
        if volume is None:
            logger.debug("unknown_volume_skipped", directory=directory.name)
            continue

        files = sorted(p for p in directory.rglob("*") if p.is_file())
        await _run_bounded(
            lambda path: _upload_from_workspace(volume, path, directory),
            files,
            max_concurrent,
        )
        written += len(files)
        logger.debug("volume_restored", handle=volume.handle, files=len(files))

    return written


async def _list_volume(volume: Volume) -> List[VolumeEntry]:
    try:
        return list(await volume.list_entries())
    except SiteBackError:
        raise
    except Exception as e:
        raise VolumeIOError(
            f"Failed to list volume: {e}",
            details={"handle": volume.handle},
        )


async def _copy_to_workspace(volume: Volume, entry: VolumeEntry, volume_dir: Path) -> None:
    target = volume_dir / _safe_relative(entry.relative_path, volume.handle)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(target, "wb") as f:
            async for chunk in volume.read_file(entry.relative_path):
                await f.write(chunk)
    except SiteBackError:
        raise
    except Exception as e:
        raise VolumeIOError(
            f"Failed to copy volume file: {e}",
            details={"handle": volume.handle, "path": entry.relative_path},
        )


async def _upload_from_workspace(volume: Volume, path: Path, volume_dir: Path) -> None:
    relative_path = path.relative_to(volume_dir).as_posix()
    try:
        await volume.write_file(relative_path, _read_chunks(path))
    except SiteBackError:
        raise
    except Exception as e:
        raise VolumeIOError(
            f"Failed to restore volume file: {e}",
            details={"handle": volume.handle, "path": relative_path},
        )


async def _read_chunks(path: Path):
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def _safe_relative(relative_path: str, handle: str) -> Path:
    """Reject listing entries that would escape the volume directory."""
    parts = [p for p in relative_path.replace("\\", "/").split("/") if p not in ("", ".")]
    if not parts or ".." in parts:
        raise VolumeIOError(
            f"Unsafe path in volume listing: {relative_path!r}",
            details={"handle": handle},
        )
    return Path(*parts)


async def _run_bounded(
    func: Callable[[T], Awaitable[None]],
    items: Sequence[T],
    limit: int,
) -> None:
    """
    Run func over items with at most `limit` calls in flight.

    The first failure cancels the remaining tasks and is re-raised as is.
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def guarded(item: T) -> None:
        async with semaphore:
            await func(item)

    tasks = [asyncio.ensure_future(guarded(item)) for item in items]
    if not tasks:
        return

    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
