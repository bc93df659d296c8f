# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Example FastAPI Application with siteback Integration.

This example shows how to back up a site's database and uploaded media
from inside a FastAPI application, with protected admin endpoints and a
daily scheduled push.

Run with:
    uvicorn examples.basic_app:app --reload

Environment variables:
    SITEBACK_PROVIDER: local | aws | backblaze | digitalocean
    SITEBACK_REMOTE_PATH: Destination directory (local provider)
    S3_BUCKET / AWS_REGION: Bucket and region (object-storage providers)
    DATABASE_URL: Database to back up, e.g. sqlite:///./site.db
    SITEBACK_ADMIN_API_KEY: API key for admin endpoints
"""

import os
from pathlib import Path

from fastapi import FastAPI
from pydantic import BaseModel

from siteback.builder import (
    build_from_steps,
    keep_emergency_backups,
    prune_remote,
    run_daily_at,
    with_database,
    with_local_remote,
    with_storage_path,
    with_system_metadata,
)
from siteback.env import create_config_from_env, safe_defaults
from siteback.exceptions import ConfigurationError
from siteback.integrations.fastapi import backup_lifespan
from siteback.volumes import LocalVolume

UPLOADS_DIR = Path(os.getenv("UPLOADS_DIR", "./uploads"))


def create_backup_config():
    """
    Create siteback configuration from environment variables.

    Falls back to a development setup that backs up to ./backups when the
    environment does not describe a remote.
    """
    try:
        return safe_defaults(create_config_from_env())
    except ConfigurationError:
        return build_from_steps(
            lambda c: with_storage_path(c, "./storage"),
            lambda c: with_local_remote(c, "./backups"),
            lambda c: with_system_metadata(c, system_name="My App", environment="dev"),
            lambda c: with_database(c, "sqlite:///./site.db"),
            keep_emergency_backups,
            lambda c: run_daily_at(c, "02:30"),
            lambda c: prune_remote(c, databases=14, volumes=7),
        )


backup_config = create_backup_config()

# Every uploaded file lives in one of these volumes
volumes = [
    LocalVolume("uploads", UPLOADS_DIR),
    LocalVolume("avatars", UPLOADS_DIR / ".." / "avatars"),
]

app = FastAPI(
    title="My App with siteback",
    description="Example application demonstrating database and media backups",
    version="1.0.0",
    lifespan=lambda app: backup_lifespan(app, backup_config, volumes=volumes),
)


# ============================================================================
# Application Routes
# ============================================================================


class Page(BaseModel):
    """Example page model."""

    id: int
    title: str
    hero_image: str | None = None


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Welcome to My App with siteback",
        "docs": "/docs",
        "backup_admin": "/admin/backup/health",
    }


@app.get("/pages/{page_id}")
async def get_page(page_id: int) -> Page:
    """Get a page by ID."""
    # In a real app, this would query the database
    return Page(id=page_id, title=f"Page {page_id}", hero_image=f"uploads/page{page_id}.jpg")


# ============================================================================
# siteback Admin Endpoints (registered by backup_lifespan)
# ============================================================================
#
# GET    /admin/backup/databases                    - List database dumps
# POST   /admin/backup/databases                    - Dump and push the database
# POST   /admin/backup/databases/{filename}/restore - Restore a dump
# DELETE /admin/backup/databases/{filename}         - Delete a remote dump
# GET    /admin/backup/volumes                      - List volume archives
# POST   /admin/backup/volumes                      - Zip and push all volumes
# POST   /admin/backup/volumes/{filename}/restore   - Restore an archive
# DELETE /admin/backup/volumes/{filename}           - Delete a remote archive
# POST   /admin/backup/prune                        - Delete old remote artifacts
# GET    /admin/backup/status                       - Counters and flags
# GET    /admin/backup/health                       - Remote reachability
#
# All admin endpoints require: Authorization: Bearer <SITEBACK_ADMIN_API_KEY>
