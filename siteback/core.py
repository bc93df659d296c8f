# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Core - Backup and restore orchestration.

This module sequences the collaborators (database, volumes, packaging,
workspaces, transport) into five operations:

    push_database   dump -> push -> keep or delete local copy
    push_volumes    mirror -> zip -> push -> keep or delete local copy
    pull_database   [emergency dump] -> pull -> restore -> [release queue]
    pull_volume     [emergency zip] -> pull -> unzip -> restore to volumes
    delete_*        remote delete

Cleanup contract: whatever was created locally (artifact file or staging
workspace) is removed before a failure propagates. Nothing that already
reached the remote is touched. Failures are re-raised unchanged.

A failed pull_volume leaves files that were already written back to the
volumes in place; there is no rollback of a partial restore.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, UTC
from enum import Enum
from pathlib import Path
from typing import Any, List, Protocol, Sequence, TypedDict

import structlog
from ulid import ULID

from siteback.config import BackupConfig
from siteback.database import Database, create_database
from siteback.errors import explain_missing_database
from siteback.exceptions import ConfigurationError
from siteback.naming import (
    RemoteFile,
    create_filename,
    create_remote_files,
    parse_filename,
    sort_newest_first,
)
from siteback.packaging import pack, unpack
from siteback.transport import Transport, create_transport
from siteback.volumes import Volume, mirror_volumes_to, restore_volumes_from
from siteback.workspace import clear_workspaces, staging_workspace

logger = structlog.get_logger()

EMERGENCY_BACKUP_NAME = "emergency-backup"


class ArtifactKind(str, Enum):
    """What an artifact contains; the value is its file extension."""

    DATABASE = ".sql"
    VOLUME_SET = ".zip"


@dataclass
class Artifact:
    """A backup file, local while staged and remote once pushed."""

    filename: str  # without extension
    kind: ArtifactKind
    local_path: Path | None = None
    remote_key: str | None = None

    @property
    def name(self) -> str:
        return self.filename + self.kind.value


class JobQueue(Protocol):
    """Protocol for the host application's job queue."""

    async def release_all(self) -> None:
        """Drop every pending job."""
        ...


class BackupState(TypedDict):
    """Runtime state for backup operations."""

    transport: Transport
    database: Database | None
    volumes: List[Volume]
    queue: JobQueue | None
    local_dir: Path
    temp_root: Path
    lock: asyncio.Lock  # one staging operation at a time
    last_push_at: datetime | None
    last_pull_at: datetime | None
    total_pushes: int
    total_pulls: int
    total_deletes: int
    last_error: str | None


async def initialize_backup_state(
    config: BackupConfig,
    *,
    transport: Transport | None = None,
    database: Database | None = None,
    volumes: Sequence[Volume] | None = None,
    queue: JobQueue | None = None,
) -> BackupState:
    """
    Initialize runtime state for backup operations.

    Creates the local artifact directory and the temp root, and builds the
    transport and database from config unless they are passed in.

    Args:
        config: Backup configuration
        transport: Remote backend (default: from config.provider)
        database: Database collaborator (default: from config.database_url)
        volumes: Volumes to back up (default: none)
        queue: Job queue released after database restores

    Returns:
        Initialized BackupState dictionary
    """
    if transport is None:
        transport = create_transport(config)
    if database is None and config.database_url:
        database = create_database(config.database_url)

    local_dir = config.local_dir
    temp_root = config.temp_root
    local_dir.mkdir(parents=True, exist_ok=True)
    temp_root.mkdir(parents=True, exist_ok=True)

    logger.info(
        "backup_state_initialized",
        transport=transport.name,
        local_dir=str(local_dir),
        temp_root=str(temp_root),
        volumes=[v.handle for v in volumes or []],
        database=database is not None,
    )

    return BackupState(
        transport=transport,
        database=database,
        volumes=list(volumes or []),
        queue=queue,
        local_dir=local_dir,
        temp_root=temp_root,
        lock=asyncio.Lock(),
        last_push_at=None,
        last_pull_at=None,
        total_pushes=0,
        total_pulls=0,
        total_deletes=0,
        last_error=None,
    )


async def shutdown_backup_state(state: BackupState) -> None:
    """Remove leftover staging workspaces."""
    removed = await clear_workspaces(state["temp_root"])
    logger.info("backup_state_shutdown_complete", workspaces_removed=removed)


# ============================================================================
# Push
# ============================================================================

async def push_database(config: BackupConfig, state: BackupState) -> str:
    """
    Dump the database and push the dump to the remote.

    Returns:
        The new artifact's filename (without extension)
    """
    database = _require_database(state)
    log = _operation_logger("push_database")

    async with state["lock"]:
        try:
            artifact = _new_artifact(config, ArtifactKind.DATABASE, state)
            log.info("database_push_started", filename=artifact.filename)

            try:
                await database.dump_to(artifact.local_path)
                log.debug("database_dumped", path=str(artifact.local_path))
                await _push_artifact(config, state, artifact, log)
            except BaseException:
                log.debug("cleaning_up_local_artifact", path=str(artifact.local_path))
                _discard(artifact.local_path)
                raise

            _record_push(state)
            log.info("database_pushed", filename=artifact.filename)
            return artifact.filename

        except Exception as e:
            _record_failure(state, log, "database_push_failed", e)
            raise


async def push_volumes(config: BackupConfig, state: BackupState) -> str:
    """
    Zip every volume and push the archive to the remote.

    With no volumes configured an empty archive is still created and
    pushed, so callers always get a filename back.

    Returns:
        The new artifact's filename (without extension)
    """
    log = _operation_logger("push_volumes")

    async with state["lock"]:
        try:
            start = time.perf_counter()
            artifact = _new_artifact(config, ArtifactKind.VOLUME_SET, state)
            log.info("volumes_push_started", filename=artifact.filename)

            try:
                await _zip_volumes(config, state, artifact.local_path, log)
                log.debug(
                    "volume_zip_created",
                    path=str(artifact.local_path),
                    seconds=round(time.perf_counter() - start, 3),
                )
                await _push_artifact(config, state, artifact, log)
            except BaseException:
                log.debug("cleaning_up_local_artifact", path=str(artifact.local_path))
                _discard(artifact.local_path)
                raise

            _record_push(state)
            log.info(
                "volumes_pushed",
                filename=artifact.filename,
                seconds=round(time.perf_counter() - start, 3),
            )
            return artifact.filename

        except Exception as e:
            _record_failure(state, log, "volumes_push_failed", e)
            raise


# ============================================================================
# Pull
# ============================================================================

async def pull_database(config: BackupConfig, state: BackupState, filename: str) -> None:
    """
    Pull a remote database dump and restore it.

    With keep_emergency_backup the current database is dumped to
    emergency-backup.sql first; if that fails nothing is pulled. The
    pulled dump is always deleted afterwards.
    """
    database = _require_database(state)
    log = _operation_logger("pull_database")
    remote_key = _remote_key(filename, ArtifactKind.DATABASE)

    async with state["lock"]:
        try:
            log.info("database_pull_started", remote_key=remote_key)

            if config.keep_emergency_backup:
                emergency_path = _emergency_path(state, ArtifactKind.DATABASE)
                await database.dump_to(emergency_path)
                log.info("emergency_backup_created", path=str(emergency_path))

            local_path = state["local_dir"] / remote_key
            try:
                await state["transport"].pull(remote_key, local_path)
                log.debug("database_pulled", path=str(local_path))

                await database.restore_from(local_path)
                log.debug("database_restored", path=str(local_path))

                # Jobs queued before the restore refer to rows that may be gone
                if config.use_queue and state["queue"] is not None:
                    await state["queue"].release_all()
                    log.debug("queue_released")
            finally:
                _discard(local_path)

            _record_pull(state)
            log.info("database_pull_completed", remote_key=remote_key)

        except Exception as e:
            _record_failure(state, log, "database_pull_failed", e)
            raise


async def pull_volume(config: BackupConfig, state: BackupState, filename: str) -> None:
    """
    Pull a remote volume archive and write its files back to the volumes.

    With keep_emergency_backup the current volumes are zipped to
    emergency-backup.zip first; if that fails nothing is pulled. The
    pulled archive is always deleted afterwards.
    """
    log = _operation_logger("pull_volume")
    remote_key = _remote_key(filename, ArtifactKind.VOLUME_SET)

    async with state["lock"]:
        try:
            log.info("volume_pull_started", remote_key=remote_key)

            if config.keep_emergency_backup:
                emergency_path = _emergency_path(state, ArtifactKind.VOLUME_SET)
                await _zip_volumes(config, state, emergency_path, log)
                log.info("emergency_backup_created", path=str(emergency_path))

            local_path = state["local_dir"] / remote_key
            try:
                await state["transport"].pull(remote_key, local_path)
                log.debug("volume_zip_pulled", path=str(local_path))

                async with staging_workspace(state["temp_root"]) as workspace:
                    await unpack(local_path, workspace)
                    written = await restore_volumes_from(
                        state["volumes"], workspace, config.max_concurrent_ops
                    )
                log.debug("volume_files_restored", files=written)

                await clear_workspaces(state["temp_root"])
            finally:
                _discard(local_path)

            _record_pull(state)
            log.info("volume_pull_completed", remote_key=remote_key)

        except Exception as e:
            _record_failure(state, log, "volume_pull_failed", e)
            raise


# ============================================================================
# Delete / list / prune
# ============================================================================

async def delete_database(config: BackupConfig, state: BackupState, filename: str) -> None:
    """Delete a remote database dump."""
    await _delete_remote(state, _remote_key(filename, ArtifactKind.DATABASE))


async def delete_volume(config: BackupConfig, state: BackupState, filename: str) -> None:
    """Delete a remote volume archive."""
    await _delete_remote(state, _remote_key(filename, ArtifactKind.VOLUME_SET))


async def list_databases(config: BackupConfig, state: BackupState) -> List[RemoteFile]:
    """Remote database dumps as label/filename pairs, newest first."""
    return create_remote_files(await state["transport"].list(ArtifactKind.DATABASE.value))


async def list_volumes(config: BackupConfig, state: BackupState) -> List[RemoteFile]:
    """Remote volume archives as label/filename pairs, newest first."""
    return create_remote_files(await state["transport"].list(ArtifactKind.VOLUME_SET.value))


async def prune_databases(
    config: BackupConfig,
    state: BackupState,
    limit: int | None = None,
) -> List[str]:
    """
    Delete all but the newest `limit` remote database dumps.

    Args:
        limit: Number of dumps to keep (default: config.prune_databases_limit,
            0 keeps everything)

    Returns:
        Names of the deleted dumps
    """
    keep = config.prune_databases_limit if limit is None else limit
    return await _prune(state, ArtifactKind.DATABASE, keep)


async def prune_volumes(
    config: BackupConfig,
    state: BackupState,
    limit: int | None = None,
) -> List[str]:
    """Delete all but the newest `limit` remote volume archives."""
    keep = config.prune_volumes_limit if limit is None else limit
    return await _prune(state, ArtifactKind.VOLUME_SET, keep)


async def get_status(config: BackupConfig, state: BackupState) -> dict:
    """Current counters and transport health."""
    transport = state["transport"]
    local_files = (
        sorted(p.name for p in state["local_dir"].iterdir() if p.is_file())
        if state["local_dir"].exists()
        else []
    )
    return {
        "transport": transport.name,
        "transport_configured": transport.is_configured(),
        "database_configured": state["database"] is not None,
        "volumes": [v.handle for v in state["volumes"]],
        "keep_local": config.keep_local,
        "keep_emergency_backup": config.keep_emergency_backup,
        "use_queue": config.use_queue,
        "last_push_at": state["last_push_at"].isoformat() if state["last_push_at"] else None,
        "last_pull_at": state["last_pull_at"].isoformat() if state["last_pull_at"] else None,
        "total_pushes": state["total_pushes"],
        "total_pulls": state["total_pulls"],
        "total_deletes": state["total_deletes"],
        "last_error": state["last_error"],
        "local_files": local_files,
    }


# ============================================================================
# Helpers
# ============================================================================

def _operation_logger(operation: str) -> Any:
    return logger.bind(operation=operation, operation_id=str(ULID()))


def _require_database(state: BackupState) -> Database:
    database = state["database"]
    if database is None:
        raise ConfigurationError(explain_missing_database())
    return database


def _new_artifact(config: BackupConfig, kind: ArtifactKind, state: BackupState) -> Artifact:
    filename = create_filename(config.system_name, config.environment, config.version)
    state["local_dir"].mkdir(parents=True, exist_ok=True)
    return Artifact(
        filename=filename,
        kind=kind,
        local_path=state["local_dir"] / (filename + kind.value),
    )


def _remote_key(filename: str, kind: ArtifactKind) -> str:
    """Accept names with or without the kind's extension."""
    name = Path(filename).name
    return name if name.endswith(kind.value) else name + kind.value


async def _zip_volumes(
    config: BackupConfig,
    state: BackupState,
    archive_path: Path,
    log: Any,
) -> Path:
    """Mirror every volume into a fresh workspace and zip it to archive_path."""
    async with staging_workspace(state["temp_root"]) as workspace:
        mirrored = await mirror_volumes_to(
            state["volumes"], workspace, config.max_concurrent_ops
        )
        if mirrored is None:
            log.debug("no_volumes_configured_creating_empty_archive")
        return await pack(workspace, archive_path)


async def _push_artifact(
    config: BackupConfig,
    state: BackupState,
    artifact: Artifact,
    log: Any,
) -> None:
    start = time.perf_counter()
    await state["transport"].push(artifact.local_path)
    artifact.remote_key = artifact.name
    log.debug(
        "artifact_pushed",
        remote_key=artifact.remote_key,
        seconds=round(time.perf_counter() - start, 3),
    )

    if not config.keep_local:
        log.debug("deleting_local_artifact", path=str(artifact.local_path))
        _discard(artifact.local_path)
        artifact.local_path = None


async def _delete_remote(state: BackupState, remote_key: str) -> None:
    log = _operation_logger("delete")
    try:
        await state["transport"].delete(remote_key)
    except Exception as e:
        _record_failure(state, log, "remote_delete_failed", e)
        raise
    state["total_deletes"] += 1
    log.info("remote_artifact_deleted", remote_key=remote_key)


async def _prune(state: BackupState, kind: ArtifactKind, keep: int) -> List[str]:
    if keep <= 0:
        return []

    # Only generated names take part; hand-uploaded files and emergency backups stay
    names = [
        name
        for name in sort_newest_first(await state["transport"].list(kind.value))
        if parse_filename(name) is not None
    ]
    stale = names[keep:]
    for name in stale:
        await _delete_remote(state, name)

    logger.info("remote_artifacts_pruned", kind=kind.name.lower(), kept=keep, deleted=len(stale))
    return stale


def _emergency_path(state: BackupState, kind: ArtifactKind) -> Path:
    return state["local_dir"] / (EMERGENCY_BACKUP_NAME + kind.value)


def _discard(path: Path | None) -> None:
    if path is None:
        return
    if path.exists():
        path.unlink(missing_ok=True)
    else:
        logger.debug("local_file_already_gone", path=str(path))


def _record_push(state: BackupState) -> None:
    state["last_push_at"] = datetime.now(UTC)
    state["total_pushes"] += 1


def _record_pull(state: BackupState) -> None:
    state["last_pull_at"] = datetime.now(UTC)
    state["total_pulls"] += 1


def _record_failure(state: BackupState, log: Any, event: str, error: Exception) -> None:
    state["last_error"] = str(error)
    log.error(event, error=str(error), error_type=type(error).__name__)
