# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback FastAPI Integration - Admin endpoints for FastAPI applications.

This module provides:
- Protected admin endpoints to list, push, restore and delete backups
- Lifespan management (startup/shutdown)
- An optional daily scheduled push
"""

import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, UTC
from typing import Any, Awaitable, List, Sequence

import structlog
from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from siteback.config import BackupConfig
from siteback.core import (
    BackupState,
    JobQueue,
    delete_database,
    delete_volume,
    get_status,
    initialize_backup_state,
    list_databases,
    list_volumes,
    prune_databases,
    prune_volumes,
    pull_database,
    pull_volume,
    push_database,
    push_volumes,
    shutdown_backup_state,
)
from siteback.database import Database
from siteback.exceptions import ConfigurationError, SiteBackError
from siteback.transport import Transport
from siteback.volumes import Volume

logger = structlog.get_logger()

# Security
security = HTTPBearer(auto_error=False)


class RemoteFileModel(BaseModel):
    label: str
    filename: str


class PushResponse(BaseModel):
    filename: str


class PruneResponse(BaseModel):
    databases: List[str]
    volumes: List[str]


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> bool:
    """
    Verify API key from Authorization header.

    The API key is read from the SITEBACK_ADMIN_API_KEY environment variable.
    Requests must include: Authorization: Bearer <api_key>

    Raises:
        HTTPException: If API key is missing or invalid
    """
    api_key = os.getenv("SITEBACK_ADMIN_API_KEY")

    if not api_key:
        raise HTTPException(
            status_code=500,
            detail="SITEBACK_ADMIN_API_KEY environment variable not set",
        )

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Authorization header required",
        )

    if credentials.credentials != api_key:
        raise HTTPException(
            status_code=403,
            detail="Invalid API key",
        )

    return True


async def _run(operation: Awaitable[Any]) -> Any:
    """Await a backup operation, mapping failures to HTTP errors."""
    try:
        return await operation
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SiteBackError as e:
        raise HTTPException(status_code=502, detail=str(e))


def register_backup_routes(
    app: FastAPI,
    config: BackupConfig,
    state: BackupState,
    prefix: str = "/admin/backup",
) -> None:
    """
    Register backup admin endpoints on a FastAPI app.

    All endpoints require Bearer token authentication.

    Args:
        app: FastAPI application
        config: Backup configuration
        state: Runtime state
        prefix: URL prefix for endpoints (default: /admin/backup)
    """

    @app.get(f"{prefix}/databases", dependencies=[Depends(verify_api_key)])
    async def get_databases() -> List[RemoteFileModel]:
        """List remote database dumps, newest first."""
        files = await _run(list_databases(config, state))
        return [RemoteFileModel(**asdict(f)) for f in files]

    @app.get(f"{prefix}/volumes", dependencies=[Depends(verify_api_key)])
    async def get_volumes() -> List[RemoteFileModel]:
        """List remote volume archives, newest first."""
        files = await _run(list_volumes(config, state))
        return [RemoteFileModel(**asdict(f)) for f in files]

    @app.post(f"{prefix}/databases", dependencies=[Depends(verify_api_key)])
    async def create_database_backup() -> PushResponse:
        """Dump the database and push it."""
        return PushResponse(filename=await _run(push_database(config, state)))

    @app.post(f"{prefix}/volumes", dependencies=[Depends(verify_api_key)])
    async def create_volume_backup() -> PushResponse:
        """Zip all volumes and push the archive."""
        return PushResponse(filename=await _run(push_volumes(config, state)))

    @app.post(
        f"{prefix}/databases/{{filename}}/restore",
        dependencies=[Depends(verify_api_key)],
    )
    async def restore_database(filename: str) -> dict:
        """Pull a database dump and restore it."""
        await _run(pull_database(config, state, filename))
        return {"restored": filename}

    @app.post(
        f"{prefix}/volumes/{{filename}}/restore",
        dependencies=[Depends(verify_api_key)],
    )
    async def restore_volume(filename: str) -> dict:
        """Pull a volume archive and write its files back."""
        await _run(pull_volume(config, state, filename))
        return {"restored": filename}

    @app.delete(f"{prefix}/databases/{{filename}}", dependencies=[Depends(verify_api_key)])
    async def remove_database(filename: str) -> dict:
        """Delete a remote database dump."""
        await _run(delete_database(config, state, filename))
        return {"deleted": filename}

    @app.delete(f"{prefix}/volumes/{{filename}}", dependencies=[Depends(verify_api_key)])
    async def remove_volume(filename: str) -> dict:
        """Delete a remote volume archive."""
        await _run(delete_volume(config, state, filename))
        return {"deleted": filename}

    @app.post(f"{prefix}/prune", dependencies=[Depends(verify_api_key)])
    async def prune(databases: int | None = None, volumes: int | None = None) -> PruneResponse:
        """
        Delete old remote artifacts.

        Args:
            databases: Dumps to keep (default: configured limit)
            volumes: Archives to keep (default: configured limit)
        """
        return PruneResponse(
            databases=await _run(prune_databases(config, state, databases)),
            volumes=await _run(prune_volumes(config, state, volumes)),
        )

    @app.get(f"{prefix}/status", dependencies=[Depends(verify_api_key)])
    async def status() -> dict:
        """Counters, flags and local artifacts."""
        return await get_status(config, state)

    @app.get(f"{prefix}/health", dependencies=[Depends(verify_api_key)])
    async def health_check() -> dict:
        """
        Health check endpoint.

        Verifies the transport is configured and its credentials work.
        """
        transport = state["transport"]
        configured = transport.is_configured()
        authenticated = await transport.is_authenticated() if configured else False

        status = "healthy"
        if not authenticated:
            status = "degraded"
        if not configured:
            status = "unhealthy"

        return {
            "status": status,
            "transport": transport.name,
            "transport_configured": configured,
            "transport_authenticated": authenticated,
            "temp_root_exists": state["temp_root"].exists(),
            "timestamp": datetime.now(UTC).isoformat(),
        }


def _setup_scheduled_task(config: BackupConfig, state: BackupState) -> Any:
    """Set up APScheduler for a daily push of database and volumes."""
    try:
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from apscheduler.triggers.cron import CronTrigger

        scheduler = AsyncIOScheduler()

        hour, minute = map(int, config.schedule_cron.split(":"))

        async def scheduled_backup():
            """Push both assets, then prune."""
            logger.info("scheduled_backup_starting")
            try:
                if state["database"] is not None:
                    await push_database(config, state)
                await push_volumes(config, state)
                await prune_databases(config, state)
                await prune_volumes(config, state)
                logger.info("scheduled_backup_completed")
            except Exception as e:
                logger.error("scheduled_backup_failed", error=str(e))

        scheduler.add_job(
            scheduled_backup,
            trigger=CronTrigger(hour=hour, minute=minute, timezone="UTC"),
            id="siteback_scheduled",
            replace_existing=True,
        )
        scheduler.start()

        logger.info(
            "scheduler_started",
            schedule=config.schedule_cron,
            next_run=scheduler.get_job("siteback_scheduled").next_run_time.isoformat(),
        )
        return scheduler

    except ImportError:
        logger.warning(
            "apscheduler_not_installed",
            message="Install apscheduler for scheduled backups",
        )
    except Exception as e:
        logger.error("scheduler_setup_failed", error=str(e))
    return None


@asynccontextmanager
async def backup_lifespan(
    app: FastAPI,
    config: BackupConfig,
    *,
    transport: Transport | None = None,
    database: Database | None = None,
    volumes: Sequence[Volume] | None = None,
    queue: JobQueue | None = None,
    prefix: str = "/admin/backup",
):
    """
    Lifespan context manager for FastAPI.

        app = FastAPI(lifespan=lambda app: backup_lifespan(app, config, volumes=[...]))

    Args:
        app: FastAPI application
        config: Backup configuration
        transport, database, volumes, queue: collaborators passed on to
            initialize_backup_state()
        prefix: URL prefix for admin endpoints
    """
    logger.info("siteback_lifespan_starting")

    state = await initialize_backup_state(
        config,
        transport=transport,
        database=database,
        volumes=volumes,
        queue=queue,
    )
    app.state.siteback_state = state
    app.state.siteback_config = config

    register_backup_routes(app, config, state, prefix)

    scheduler = _setup_scheduled_task(config, state) if config.schedule_cron else None

    logger.info("siteback_lifespan_started")

    try:
        yield
    finally:
        logger.info("siteback_lifespan_stopping")
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        await shutdown_backup_state(state)
        logger.info("siteback_lifespan_stopped")


def get_backup_state(app: FastAPI) -> BackupState:
    """
    Get backup state from a FastAPI app.

    Raises:
        RuntimeError: If siteback is not initialized
    """
    state = getattr(app.state, "siteback_state", None)
    if not state:
        raise RuntimeError("siteback not initialized. Use backup_lifespan first.")
    return state


def get_backup_config(app: FastAPI) -> BackupConfig:
    """
    Get backup config from a FastAPI app.

    Raises:
        RuntimeError: If siteback is not initialized
    """
    config = getattr(app.state, "siteback_config", None)
    if not config:
        raise RuntimeError("siteback not initialized. Use backup_lifespan first.")
    return config
