# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Packaging - Zip a directory tree into one artifact and back.

Archives are deterministic: entries are written in sorted order with a
fixed timestamp, so packing the same tree twice yields identical bytes.
Directories (including empty ones) are stored as directory entries.

Zip work is blocking, so it runs in a small thread pool.
"""

import asyncio
import shutil
import zipfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath

import structlog

from siteback.exceptions import PackagingError

logger = structlog.get_logger()

# Thread pool for blocking zip operations
_executor = ThreadPoolExecutor(max_workers=2)

# Earliest timestamp the zip format can store
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)

_COPY_BUFFER = 1024 * 1024


async def pack(source_dir: Path, dest_archive_path: Path) -> Path:
    """
    Recursively archive source_dir into dest_archive_path.

    An existing archive at the destination is deleted first so stale
    entries never merge into the new artifact.

    Args:
        source_dir: Directory to archive
        dest_archive_path: Path of the zip file to create

    Returns:
        Path to the created archive

    Raises:
        PackagingError: On any I/O or zip failure. A half-written archive
            is left for the caller to remove.
    """
    source_dir = Path(source_dir)
    dest_archive_path = Path(dest_archive_path)

    logger.debug(
        "packing_directory",
        source_dir=str(source_dir),
        archive_path=str(dest_archive_path),
    )

    loop = asyncio.get_event_loop()
    try:
        entries = await loop.run_in_executor(
            _executor, _pack_sync, source_dir, dest_archive_path
        )
    except PackagingError:
        raise
    except Exception as e:
        raise PackagingError(
            f"Failed to create archive: {e}",
            details={"source_dir": str(source_dir), "archive_path": str(dest_archive_path)},
        )

    logger.debug("archive_created", archive_path=str(dest_archive_path), entries=entries)
    return dest_archive_path


def _pack_sync(source_dir: Path, dest_archive_path: Path) -> int:
    """Synchronous zip creation. Returns the number of entries written."""
    if not source_dir.is_dir():
        raise PackagingError(
            f"Source directory not found: {source_dir}",
            details={"source_dir": str(source_dir)},
        )

    if dest_archive_path.exists():
        logger.debug("old_archive_deleted", archive_path=str(dest_archive_path))
        dest_archive_path.unlink()
    dest_archive_path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with zipfile.ZipFile(dest_archive_path, "w", zipfile.ZIP_DEFLATED) as zf:
        for path in sorted(source_dir.rglob("*")):
            arcname = path.relative_to(source_dir).as_posix()

            if path.is_dir():
                info = zipfile.ZipInfo(arcname + "/", date_time=_FIXED_DATE_TIME)
                info.external_attr = (0o40755 << 16) | 0x10
                zf.writestr(info, b"")
            else:
                info = zipfile.ZipInfo(arcname, date_time=_FIXED_DATE_TIME)
                info.external_attr = 0o100644 << 16
                info.compress_type = zipfile.ZIP_DEFLATED
                info.file_size = path.stat().st_size
                # Media files can exceed the 2 GiB classic zip limit
                with open(path, "rb") as src, zf.open(info, "w", force_zip64=True) as dst:
                    shutil.copyfileobj(src, dst, _COPY_BUFFER)
            count += 1

    return count


async def unpack(archive_path: Path, dest_dir: Path) -> Path:
    """
    Extract archive_path into dest_dir, recreating the relative tree.

    Args:
        archive_path: Zip file to extract
        dest_dir: Target directory; must be empty or not exist yet

    Returns:
        Path to dest_dir

    Raises:
        PackagingError: If the archive is unreadable, contains unsafe
            paths, or dest_dir already has content
    """
    archive_path = Path(archive_path)
    dest_dir = Path(dest_dir)

    logger.debug("unpacking_archive", archive_path=str(archive_path), dest_dir=str(dest_dir))

    loop = asyncio.get_event_loop()
    try:
        entries = await loop.run_in_executor(_executor, _unpack_sync, archive_path, dest_dir)
    except PackagingError:
        raise
    except Exception as e:
        raise PackagingError(
            f"Failed to extract archive: {e}",
            details={"archive_path": str(archive_path), "dest_dir": str(dest_dir)},
        )

    logger.debug("archive_extracted", dest_dir=str(dest_dir), entries=entries)
    return dest_dir


def _unpack_sync(archive_path: Path, dest_dir: Path) -> int:
    """Synchronous zip extraction. Returns the number of entries extracted."""
    if dest_dir.exists() and any(dest_dir.iterdir()):
        raise PackagingError(
            f"Extraction target is not empty: {dest_dir}",
            details={"dest_dir": str(dest_dir)},
        )
    dest_dir.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()

        # Security: Check for path traversal
        for member in members:
            name = PurePosixPath(member.filename)
            if name.is_absolute() or ".." in name.parts or "\\" in member.filename:
                raise PackagingError(
                    f"Unsafe path in archive: {member.filename}",
                    details={"archive_path": str(archive_path)},
                )

        zf.extractall(dest_dir)

    return len(members)
