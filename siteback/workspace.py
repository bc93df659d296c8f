# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Workspaces - Temporary staging directories.

Every workspace is a uniquely named directory directly under the temp
root. The operation that creates one owns it and must remove it on every
exit path; staging_workspace() does that for you.
"""

import asyncio
import re
import shutil
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog

from siteback.exceptions import StagingError
from siteback.naming import TOKEN_LENGTH, random_token

logger = structlog.get_logger()

# Attempts to find an unused workspace name before giving up
_MAX_NAME_ATTEMPTS = 5

_WORKSPACE_NAME_RE = re.compile(r"^[a-z0-9]{%d}$" % TOKEN_LENGTH)


async def create_workspace(temp_root: Path) -> Path:
    """
    Create a fresh, uniquely named directory under temp_root.

    Args:
        temp_root: Shared scratch root (created if missing)

    Returns:
        Absolute path of the new workspace

    Raises:
        StagingError: If the directory cannot be created
    """
    temp_root = Path(temp_root)

    for _ in range(_MAX_NAME_ATTEMPTS):
        path = (temp_root / random_token()).absolute()
        try:
            temp_root.mkdir(parents=True, exist_ok=True)
            path.mkdir()
        except FileExistsError:
            continue
        except OSError as e:
            raise StagingError(
                f"Failed to create workspace: {e}",
                details={"temp_root": str(temp_root)},
            )
        logger.debug("workspace_created", path=str(path))
        return path

    raise StagingError(
        "Could not find an unused workspace name",
        details={"temp_root": str(temp_root), "attempts": _MAX_NAME_ATTEMPTS},
    )


def is_workspace_name(name: str) -> bool:
    """True if name has the shape of a workspace directory name."""
    return _WORKSPACE_NAME_RE.match(name) is not None


async def destroy_workspace(path: Path) -> None:
    """
    Recursively delete a workspace.

    A workspace that no longer exists is not an error.

    Raises:
        StagingError: If the directory exists but cannot be removed
    """
    path = Path(path)
    if not path.exists():
        logger.debug("workspace_already_gone", path=str(path))
        return

    try:
        await asyncio.to_thread(shutil.rmtree, path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise StagingError(
            f"Failed to remove workspace: {e}",
            details={"path": str(path)},
        )
    logger.debug("workspace_destroyed", path=str(path))


@asynccontextmanager
async def staging_workspace(temp_root: Path) -> AsyncIterator[Path]:
    """
    Create a workspace and remove it when the block exits.

        async with staging_workspace(config.temp_root) as workspace:
            ...

    If the block raises, a failure to remove the workspace is logged and
    the block's own exception is the one that propagates.
    """
    path = await create_workspace(temp_root)
    try:
        yield path
    except BaseException:
        try:
            await destroy_workspace(path)
        except StagingError as cleanup_error:
            logger.warning(
                "workspace_cleanup_failed",
                path=str(path),
                error=str(cleanup_error),
            )
        raise
    else:
        await destroy_workspace(path)


async def clear_workspaces(temp_root: Path) -> int:
    """
    Remove leftover workspace directories under temp_root.

    Only directories named like a workspace are touched; other files and
    directories sharing the temp root are left alone.

    Returns:
        Number of workspaces removed
    """
    temp_root = Path(temp_root)
    if not temp_root.exists():
        return 0

    removed = 0
    for entry in list(temp_root.iterdir()):
        if is_workspace_name(entry.name) and entry.is_dir() and not entry.is_symlink():
            await destroy_workspace(entry)
            removed += 1

    logger.debug("temp_root_cleared", temp_root=str(temp_root), removed=removed)
    return removed
