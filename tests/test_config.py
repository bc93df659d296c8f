# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for configuration: validation, builder, environment and profiles.
"""

from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from siteback.builder import (
    build_from_steps,
    create_config,
    keep_emergency_backups,
    prune_remote,
    run_daily_at,
    with_backblaze_remote,
    with_credentials,
    with_database,
    with_local_remote,
    with_storage_path,
    with_system_metadata,
)
from siteback.config import BackupConfig, RemoteProvider
from siteback.env import create_config_from_env, lean_storage, safe_defaults
from siteback.exceptions import ConfigurationError

_ENV_VARS = [
    "SITEBACK_PROVIDER",
    "S3_BUCKET",
    "SITEBACK_REMOTE_PATH",
    "SITEBACK_STORAGE_PATH",
    "SITEBACK_TEMP_PATH",
    "SITEBACK_HANDLE",
    "SITEBACK_SYSTEM_NAME",
    "SITEBACK_ENV",
    "SITEBACK_VERSION",
    "SITEBACK_KEEP_LOCAL",
    "SITEBACK_KEEP_EMERGENCY_BACKUP",
    "SITEBACK_USE_QUEUE",
    "AWS_REGION",
    "SITEBACK_REMOTE_PREFIX",
    "S3_ENDPOINT_URL",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "DATABASE_URL",
    "SITEBACK_MAX_CONCURRENT_OPS",
    "SITEBACK_PRUNE_DATABASES",
    "SITEBACK_PRUNE_VOLUMES",
    "SITEBACK_SCHEDULE_CRON",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


# ============================================================================
# Validation
# ============================================================================

def test_flags_default_to_false(temp_dir: Path):
    config = BackupConfig(remote_path=temp_dir)

    assert config.keep_local is False
    assert config.keep_emergency_backup is False
    assert config.use_queue is False


def test_derived_paths(temp_dir: Path):
    config = BackupConfig(storage_path=temp_dir, handle="backups", remote_path=temp_dir / "r")

    assert config.local_dir == temp_dir / "backups"
    assert config.temp_root == temp_dir / "runtime" / "temp"
    assert config.with_updates(temp_path=temp_dir / "scratch").temp_root == temp_dir / "scratch"


def test_config_is_immutable(temp_dir: Path):
    config = BackupConfig(remote_path=temp_dir)

    with pytest.raises(FrozenInstanceError):
        config.keep_local = True  # type: ignore[misc]


def test_local_provider_requires_remote_path():
    with pytest.raises(ConfigurationError, match="remote_path required"):
        BackupConfig()


def test_object_storage_requires_bucket():
    with pytest.raises(ConfigurationError, match="bucket required"):
        BackupConfig(provider=RemoteProvider.BACKBLAZE)


def test_validation_collects_all_errors(temp_dir: Path):
    with pytest.raises(ConfigurationError) as exc_info:
        BackupConfig(
            provider=RemoteProvider.AWS,
            bucket="Invalid_Bucket",
            handle="../escape",
            schedule_cron="25:00",
            max_concurrent_ops=0,
        )

    errors = exc_info.value.details["errors"]
    assert len(errors) == 4


def test_backblaze_allows_mixed_case_bucket():
    config = BackupConfig(provider=RemoteProvider.BACKBLAZE, bucket="Site-Backups")

    assert config.bucket == "Site-Backups"


# ============================================================================
# Builder
# ============================================================================

def test_create_config_local(temp_dir: Path):
    config = create_config(
        storage_path=temp_dir / "storage",
        remote_path=temp_dir / "remote",
        keep_emergency_backup=True,
        system_name="Site",
        unknown_option="ignored",
    )

    assert config.provider == RemoteProvider.LOCAL
    assert config.remote_path == temp_dir / "remote"
    assert config.keep_emergency_backup is True
    assert config.system_name == "Site"


def test_create_config_s3():
    config = create_config(
        provider="aws",
        bucket="site-backups",
        region="eu-central-1",
        remote_prefix="backups/",
        database_url="sqlite:///site.db",
        schedule_cron="03:30",
    )

    assert config.provider == RemoteProvider.AWS
    assert config.bucket == "site-backups"
    assert config.region == "eu-central-1"
    assert config.database_url == "sqlite:///site.db"
    assert config.schedule_cron == "03:30"


def test_build_from_steps(temp_dir: Path):
    config = build_from_steps(
        lambda c: with_storage_path(c, temp_dir),
        lambda c: with_backblaze_remote(c, "site-backups", region="us-west-004"),
        lambda c: with_credentials(c, "key-id", "secret"),
        lambda c: with_system_metadata(c, system_name="Site", environment="prod", version="2.0"),
        lambda c: with_database(c, "sqlite:///site.db"),
        keep_emergency_backups,
        lambda c: run_daily_at(c, "02:00"),
        lambda c: prune_remote(c, databases=14, volumes=3),
    )

    assert config.provider == RemoteProvider.BACKBLAZE
    assert config.access_key_id == "key-id"
    assert config.environment == "prod"
    assert config.keep_emergency_backup is True
    assert config.prune_databases_limit == 14
    assert config.prune_volumes_limit == 3


def test_builder_validation_still_applies(temp_dir: Path):
    with pytest.raises(ConfigurationError):
        build_from_steps(
            lambda c: with_local_remote(c, temp_dir),
            lambda c: run_daily_at(c, "noon"),
        )


# ============================================================================
# Environment
# ============================================================================

def test_config_from_env_local(clean_env, temp_dir: Path):
    clean_env.setenv("SITEBACK_REMOTE_PATH", str(temp_dir / "remote"))
    clean_env.setenv("SITEBACK_STORAGE_PATH", str(temp_dir / "storage"))
    clean_env.setenv("SITEBACK_KEEP_LOCAL", "yes")
    clean_env.setenv("SITEBACK_USE_QUEUE", "1")
    clean_env.setenv("SITEBACK_SYSTEM_NAME", "Site")
    clean_env.setenv("SITEBACK_PRUNE_VOLUMES", "5")

    config = create_config_from_env()

    assert config.provider == RemoteProvider.LOCAL
    assert config.remote_path == temp_dir / "remote"
    assert config.keep_local is True
    assert config.use_queue is True
    assert config.keep_emergency_backup is False
    assert config.system_name == "Site"
    assert config.prune_volumes_limit == 5


def test_config_from_env_s3(clean_env):
    clean_env.setenv("SITEBACK_PROVIDER", "DigitalOcean")
    clean_env.setenv("S3_BUCKET", "site-backups")
    clean_env.setenv("AWS_REGION", "nyc3")
    clean_env.setenv("AWS_ACCESS_KEY_ID", "key")
    clean_env.setenv("AWS_SECRET_ACCESS_KEY", "secret")

    config = create_config_from_env()

    assert config.provider == RemoteProvider.DIGITALOCEAN
    assert config.region == "nyc3"
    assert config.access_key_id == "key"


def test_config_from_env_missing_bucket(clean_env):
    clean_env.setenv("SITEBACK_PROVIDER", "aws")

    with pytest.raises(ConfigurationError, match="S3_BUCKET"):
        create_config_from_env()


def test_config_from_env_missing_remote_path(clean_env):
    with pytest.raises(ConfigurationError, match="SITEBACK_REMOTE_PATH"):
        create_config_from_env()


@pytest.mark.parametrize(
    "name, value",
    [
        ("SITEBACK_PROVIDER", "dropbox"),
        ("SITEBACK_KEEP_LOCAL", "maybe"),
        ("SITEBACK_MAX_CONCURRENT_OPS", "many"),
        ("SITEBACK_PRUNE_DATABASES", "-1"),
    ],
)
def test_config_from_env_invalid_values(clean_env, temp_dir: Path, name, value):
    clean_env.setenv("SITEBACK_REMOTE_PATH", str(temp_dir))
    clean_env.setenv(name, value)

    with pytest.raises(ConfigurationError, match=name):
        create_config_from_env()


# ============================================================================
# Profiles
# ============================================================================

def test_safe_defaults_profile(temp_dir: Path):
    config = safe_defaults(BackupConfig(remote_path=temp_dir))

    assert config.keep_local is True
    assert config.keep_emergency_backup is True


def test_lean_storage_profile(temp_dir: Path):
    config = lean_storage(
        BackupConfig(remote_path=temp_dir, keep_local=True, prune_volumes_limit=2)
    )

    assert config.keep_local is False
    assert config.keep_emergency_backup is False
    assert config.prune_databases_limit == 7
    assert config.prune_volumes_limit == 2
