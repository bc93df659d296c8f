# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Builder - Functional builder pattern for configuration.

This module provides pure functions for building BackupConfig objects.
Each function takes a config dict and returns a new dict with the
modification applied (immutable updates).
"""

from pathlib import Path
from typing import Any, Callable, Dict

from siteback.config import BackupConfig, RemoteProvider


# Type alias for builder functions
ConfigDict = Dict[str, Any]
BuilderFunc = Callable[[ConfigDict], ConfigDict]


def create_empty_config() -> ConfigDict:
    """
    Create an initial empty configuration dictionary.

    Returns:
        Dict with default values for all configuration fields
    """
    return {
        "storage_path": Path("./storage"),
        "handle": "siteback",
        "temp_path": None,
        "system_name": "",
        "environment": "",
        "version": "1.0.0",
        "keep_local": False,
        "keep_emergency_backup": False,
        "use_queue": False,
        "provider": RemoteProvider.LOCAL,
        "remote_path": None,
        "bucket": None,
        "region": "us-east-1",
        "remote_prefix": "",
        "endpoint_url": None,
        "access_key_id": None,
        "secret_access_key": None,
        "database_url": None,
        "max_concurrent_ops": 4,
        "prune_databases_limit": 0,
        "prune_volumes_limit": 0,
        "schedule_cron": None,
    }


def with_storage_path(config: ConfigDict, storage_path: Path | str) -> ConfigDict:
    """
    Set the local storage root.

    Local artifacts are written to storage_path/handle.
    """
    return {**config, "storage_path": Path(storage_path)}


def with_handle(config: ConfigDict, handle: str) -> ConfigDict:
    """Set the name of the local artifact directory."""
    return {**config, "handle": handle}


def with_temp_path(config: ConfigDict, temp_path: Path | str) -> ConfigDict:
    """Set the scratch root used for staging workspaces."""
    return {**config, "temp_path": Path(temp_path)}


def with_system_metadata(
    config: ConfigDict,
    system_name: str = "",
    environment: str = "",
    version: str = "1.0.0",
) -> ConfigDict:
    """
    Set the metadata encoded in every generated artifact filename.

    Args:
        config: Current configuration dictionary
        system_name: Site name (sanitized before use)
        environment: Deployment environment tag, e.g. 'production'
        version: Host application version (rendered as 'v<version>')

    Returns:
        New configuration dictionary with metadata set
    """
    return {
        **config,
        "system_name": system_name,
        "environment": environment,
        "version": version,
    }


def with_local_remote(config: ConfigDict, remote_path: Path | str) -> ConfigDict:
    """Push artifacts to another directory on this machine."""
    return {**config, "provider": RemoteProvider.LOCAL, "remote_path": Path(remote_path)}


def with_s3_remote(
    config: ConfigDict,
    bucket: str,
    region: str = "us-east-1",
    prefix: str = "",
    endpoint_url: str | None = None,
) -> ConfigDict:
    """
    Push artifacts to an AWS S3 bucket.

    Args:
        config: Current configuration dictionary
        bucket: Bucket name
        region: AWS region
        prefix: Key prefix for uploaded artifacts, e.g. 'backups/'
        endpoint_url: Override endpoint (S3-compatible services)
    """
    return {
        **config,
        "provider": RemoteProvider.AWS,
        "bucket": bucket,
        "region": region,
        "remote_prefix": prefix,
        "endpoint_url": endpoint_url,
    }


def with_backblaze_remote(
    config: ConfigDict,
    bucket: str,
    region: str,
    prefix: str = "",
) -> ConfigDict:
    """Push artifacts to a Backblaze B2 bucket (S3-compatible API)."""
    return {
        **config,
        "provider": RemoteProvider.BACKBLAZE,
        "bucket": bucket,
        "region": region,
        "remote_prefix": prefix,
    }


def with_digitalocean_remote(
    config: ConfigDict,
    bucket: str,
    region: str,
    prefix: str = "",
) -> ConfigDict:
    """Push artifacts to a DigitalOcean Space."""
    return {
        **config,
        "provider": RemoteProvider.DIGITALOCEAN,
        "bucket": bucket,
        "region": region,
        "remote_prefix": prefix,
    }


def with_credentials(
    config: ConfigDict,
    access_key_id: str,
    secret_access_key: str,
) -> ConfigDict:
    """
    Set explicit object-storage credentials.

    Without them the default AWS credential chain is used.
    """
    return {
        **config,
        "access_key_id": access_key_id,
        "secret_access_key": secret_access_key,
    }


def with_database(config: ConfigDict, database_url: str) -> ConfigDict:
    """Set the database to dump and restore."""
    return {**config, "database_url": database_url}


def keep_local_copies(config: ConfigDict) -> ConfigDict:
    """Keep pushed artifacts in the local directory."""
    return {**config, "keep_local": True}


def keep_emergency_backups(config: ConfigDict) -> ConfigDict:
    """
    Dump the current database/volumes locally before each restore.

    The dump is named 'emergency-backup' and is overwritten by the
    next restore.
    """
    return {**config, "keep_emergency_backup": True}


def use_queue(config: ConfigDict) -> ConfigDict:
    """Release all queued jobs after a database restore."""
    return {**config, "use_queue": True}


def run_daily_at(config: ConfigDict, time: str) -> ConfigDict:
    """
    Schedule a daily push of database and volumes.

    Args:
        config: Current configuration dictionary
        time: Time in HH:MM format (UTC), e.g., '02:30'

    Returns:
        New configuration dictionary with schedule set
    """
    return {**config, "schedule_cron": time}


def prune_remote(config: ConfigDict, databases: int = 0, volumes: int = 0) -> ConfigDict:
    """
    Keep only the newest N remote artifacts of each kind.

    Zero disables pruning for that kind.
    """
    return {
        **config,
        "prune_databases_limit": databases,
        "prune_volumes_limit": volumes,
    }


def with_max_concurrent_ops(config: ConfigDict, max_ops: int) -> ConfigDict:
    """Set the number of files copied in parallel while mirroring volumes."""
    return {**config, "max_concurrent_ops": max_ops}


def build_config(config_dict: ConfigDict) -> BackupConfig:
    """
    Build a validated BackupConfig from a configuration dictionary.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    return BackupConfig(**config_dict)


def pipe(*funcs: BuilderFunc) -> BuilderFunc:
    """
    Compose builder functions left to right.

        config = build_config(
            pipe(
                lambda c: with_storage_path(c, "/var/lib/site"),
                keep_local_copies,
            )(create_empty_config())
        )
    """

    def composed(config: ConfigDict) -> ConfigDict:
        for func in funcs:
            config = func(config)
        return config

    return composed


def build_from_steps(*steps: BuilderFunc) -> BackupConfig:
    """Start from the empty config, apply steps, and build."""
    return build_config(pipe(*steps)(create_empty_config()))


def create_config(
    *,
    storage_path: str | Path | None = None,
    provider: str | RemoteProvider = "local",
    remote_path: str | Path | None = None,
    bucket: str | None = None,
    region: str = "us-east-1",
    remote_prefix: str = "",
    database_url: str | None = None,
    keep_local: bool = False,
    keep_emergency_backup: bool = False,
    schedule_cron: str | None = None,
    **kwargs: Any,
) -> BackupConfig:
    """
    Create a backup configuration from simple parameters.

    This is the recommended user-facing API for creating configurations.

    Example:
        config = create_config(
            storage_path="/var/lib/site/storage",
            provider="aws",
            bucket="site-backups",
            remote_prefix="backups/",
            database_url="postgresql://user:pass@db:5432/site",
            keep_emergency_backup=True,
        )
    """
    config_dict = create_empty_config()

    if storage_path:
        config_dict = with_storage_path(config_dict, storage_path)

    provider_value = (
        RemoteProvider(provider.lower()) if isinstance(provider, str) else provider
    )
    if provider_value == RemoteProvider.LOCAL:
        config_dict["provider"] = RemoteProvider.LOCAL
        if remote_path:
            config_dict = with_local_remote(config_dict, remote_path)
    else:
        config_dict = {
            **config_dict,
            "provider": provider_value,
            "bucket": bucket,
            "region": region,
            "remote_prefix": remote_prefix,
        }

    if database_url:
        config_dict = with_database(config_dict, database_url)

    if keep_local:
        config_dict = keep_local_copies(config_dict)

    if keep_emergency_backup:
        config_dict = keep_emergency_backups(config_dict)

    if schedule_cron:
        config_dict = run_daily_at(config_dict, schedule_cron)

    for key, value in kwargs.items():
        if key in config_dict:
            config_dict[key] = value

    return build_config(config_dict)
