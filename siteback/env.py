# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Environment-based configuration helpers and safety profiles.

These helpers are small, convenient wrappers around create_config() and
BackupConfig.with_updates(). They make it easy to:

- Build a configuration from environment variables
- Apply ready-made safety profiles
"""

from __future__ import annotations

import os
from pathlib import Path

from siteback.builder import create_config
from siteback.config import OBJECT_STORAGE_PROVIDERS, BackupConfig, RemoteProvider
from siteback.errors import (
    explain_invalid_bool_env,
    explain_invalid_int_env,
    explain_invalid_provider_env,
    explain_missing_bucket_env,
    explain_missing_remote_path_env,
)
from siteback.exceptions import ConfigurationError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str | None) -> bool:
    if value is None:
        return False
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigurationError(explain_invalid_bool_env(name, value))


def _parse_int(name: str, value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(explain_invalid_int_env(name, value)) from exc
    if number < 0:
        raise ConfigurationError(explain_invalid_int_env(name, value))
    return number


def _parse_provider(value: str | None) -> RemoteProvider:
    if not value:
        return RemoteProvider.LOCAL
    try:
        return RemoteProvider(value.lower())
    except ValueError as exc:
        raise ConfigurationError(explain_invalid_provider_env(value)) from exc


def create_config_from_env() -> BackupConfig:
    """
    Create a BackupConfig from environment variables.

    Environment variables:
        - SITEBACK_STORAGE_PATH: Local storage root (default: ./storage)
        - SITEBACK_HANDLE: Local artifact directory name (default: siteback)
        - SITEBACK_TEMP_PATH: Scratch root for staging workspaces
        - SITEBACK_SYSTEM_NAME / SITEBACK_ENV / SITEBACK_VERSION: filename metadata
        - SITEBACK_KEEP_LOCAL, SITEBACK_KEEP_EMERGENCY_BACKUP, SITEBACK_USE_QUEUE:
          boolean flags, unset means false
        - SITEBACK_PROVIDER: 'local' | 'aws' | 'backblaze' | 'digitalocean'
        - SITEBACK_REMOTE_PATH: Destination directory for the local provider
        - S3_BUCKET, AWS_REGION, S3_ENDPOINT_URL, SITEBACK_REMOTE_PREFIX:
          object-storage settings
        - AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY: explicit credentials
        - DATABASE_URL: Database to back up (optional)
        - SITEBACK_MAX_CONCURRENT_OPS: Parallel file copies (default: 4)
        - SITEBACK_PRUNE_DATABASES / SITEBACK_PRUNE_VOLUMES: remote artifacts to keep
        - SITEBACK_SCHEDULE_CRON: Daily schedule in HH:MM (UTC)
    """

    provider = _parse_provider(os.getenv("SITEBACK_PROVIDER"))

    bucket = os.getenv("S3_BUCKET")
    if provider in OBJECT_STORAGE_PROVIDERS and not bucket:
        raise ConfigurationError(explain_missing_bucket_env(provider.value))

    remote_path = os.getenv("SITEBACK_REMOTE_PATH")
    if provider == RemoteProvider.LOCAL and not remote_path:
        raise ConfigurationError(explain_missing_remote_path_env())

    temp_path_env = os.getenv("SITEBACK_TEMP_PATH")

    return create_config(
        storage_path=Path(os.getenv("SITEBACK_STORAGE_PATH", "./storage")),
        provider=provider,
        remote_path=Path(remote_path) if remote_path else None,
        bucket=bucket,
        region=os.getenv("AWS_REGION", "us-east-1"),
        remote_prefix=os.getenv("SITEBACK_REMOTE_PREFIX", ""),
        database_url=os.getenv("DATABASE_URL"),
        keep_local=_parse_bool("SITEBACK_KEEP_LOCAL", os.getenv("SITEBACK_KEEP_LOCAL")),
        keep_emergency_backup=_parse_bool(
            "SITEBACK_KEEP_EMERGENCY_BACKUP",
            os.getenv("SITEBACK_KEEP_EMERGENCY_BACKUP"),
        ),
        schedule_cron=os.getenv("SITEBACK_SCHEDULE_CRON"),
        handle=os.getenv("SITEBACK_HANDLE", "siteback"),
        temp_path=Path(temp_path_env) if temp_path_env else None,
        system_name=os.getenv("SITEBACK_SYSTEM_NAME", ""),
        environment=os.getenv("SITEBACK_ENV", ""),
        version=os.getenv("SITEBACK_VERSION", "1.0.0"),
        use_queue=_parse_bool("SITEBACK_USE_QUEUE", os.getenv("SITEBACK_USE_QUEUE")),
        endpoint_url=os.getenv("S3_ENDPOINT_URL"),
        access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        max_concurrent_ops=_parse_int(
            "SITEBACK_MAX_CONCURRENT_OPS", os.getenv("SITEBACK_MAX_CONCURRENT_OPS"), 4
        ),
        prune_databases_limit=_parse_int(
            "SITEBACK_PRUNE_DATABASES", os.getenv("SITEBACK_PRUNE_DATABASES"), 0
        ),
        prune_volumes_limit=_parse_int(
            "SITEBACK_PRUNE_VOLUMES", os.getenv("SITEBACK_PRUNE_VOLUMES"), 0
        ),
    )


# ============================================================================
# Profiles
# ============================================================================

def safe_defaults(config: BackupConfig) -> BackupConfig:
    """
    Apply conservative, safety-first defaults.

    - Keep a local copy of every pushed artifact
    - Dump current state before every restore
    """

    return config.with_updates(
        keep_local=True,
        keep_emergency_backup=True,
    )


def lean_storage(config: BackupConfig) -> BackupConfig:
    """
    Minimise local disk usage.

    - Delete artifacts once they are pushed
    - No emergency dump before restores
    - Keep at most 7 remote artifacts of each kind unless a limit is already set
    """

    return config.with_updates(
        keep_local=False,
        keep_emergency_backup=False,
        prune_databases_limit=config.prune_databases_limit or 7,
        prune_volumes_limit=config.prune_volumes_limit or 7,
    )
