# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Configuration - Immutable configuration data structures.

All configuration is frozen (immutable) after creation so that a backup
or restore in flight always sees the settings it started with.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List
import re


class RemoteProvider(str, Enum):
    """Remote storage backend type."""

    LOCAL = "local"  # Another directory, e.g. a mounted share
    AWS = "aws"
    BACKBLAZE = "backblaze"
    DIGITALOCEAN = "digitalocean"


# Providers that talk the S3 protocol and therefore need a bucket
OBJECT_STORAGE_PROVIDERS = {
    RemoteProvider.AWS,
    RemoteProvider.BACKBLAZE,
    RemoteProvider.DIGITALOCEAN,
}


def _validate_bucket_name(bucket: str) -> bool:
    """
    Validate S3 bucket name according to AWS rules.

    Rules:
    - 3-63 characters
    - Lowercase letters, numbers, hyphens
    - Must start and end with letter or number
    - No consecutive periods
    - Not formatted as IP address
    """
    if not bucket or len(bucket) < 3 or len(bucket) > 63:
        return False

    if not re.match(r"^[a-z0-9][a-z0-9.-]*[a-z0-9]$", bucket):
        return False

    if ".." in bucket:
        return False

    if re.match(r"^\d+\.\d+\.\d+\.\d+$", bucket):
        return False

    return True


def _validate_cron_time(time_str: str) -> bool:
    """Validate HH:MM time format."""
    if not time_str:
        return False
    try:
        parts = time_str.split(":")
        if len(parts) != 2:
            return False
        hour, minute = int(parts[0]), int(parts[1])
        return 0 <= hour <= 23 and 0 <= minute <= 59
    except (ValueError, AttributeError):
        return False


def _validate_handle(handle: str) -> bool:
    """The handle names a directory, so keep it to a single safe segment."""
    return bool(re.match(r"^[A-Za-z0-9][A-Za-z0-9._-]*$", handle or ""))


@dataclass(frozen=True)
class BackupConfig:
    """
    Immutable configuration for backup and restore operations.

    The three behaviour flags (keep_local, keep_emergency_backup, use_queue)
    default to False, so a deployment that never mentions them gets the
    conservative "delete local copies, no safety dump, no queue" behaviour.
    """

    # Root directory for local artifacts; artifacts go to storage_path/handle
    storage_path: Path = field(default_factory=lambda: Path("./storage"))

    # Name of the local artifact directory
    handle: str = "siteback"

    # Scratch root for staging workspaces (default: storage_path/runtime/temp)
    temp_path: Path | None = None

    # Metadata baked into generated filenames
    system_name: str = ""
    environment: str = ""
    version: str = "1.0.0"

    # Keep pushed artifacts in the local directory
    keep_local: bool = False

    # Dump the current state locally before every restore
    keep_emergency_backup: bool = False

    # Flush the job queue after a database restore
    use_queue: bool = False

    # Remote backend
    provider: RemoteProvider = RemoteProvider.LOCAL
    remote_path: Path | None = None
    bucket: str | None = None
    region: str = "us-east-1"
    remote_prefix: str = ""
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None

    # Database connection URL (sqlite:///..., postgresql://..., mysql://...)
    database_url: str | None = None

    # Maximum concurrent file copies while mirroring or restoring volumes
    max_concurrent_ops: int = 4

    # Number of remote artifacts to keep when pruning (0 = keep everything)
    prune_databases_limit: int = 0
    prune_volumes_limit: int = 0

    # Schedule time in HH:MM format (UTC)
    schedule_cron: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration after creation."""
        errors: List[str] = []

        if not _validate_handle(self.handle):
            errors.append(f"Invalid handle: {self.handle!r}")

        if self.provider in OBJECT_STORAGE_PROVIDERS and not self.bucket:
            errors.append(f"bucket required for provider {self.provider.value}")

        if (
            self.provider in (RemoteProvider.AWS, RemoteProvider.DIGITALOCEAN)
            and self.bucket
            and not _validate_bucket_name(self.bucket)
        ):
            errors.append(f"Invalid bucket name: {self.bucket}")

        if self.provider == RemoteProvider.LOCAL and self.remote_path is None:
            errors.append("remote_path required for provider local")

        if self.schedule_cron and not _validate_cron_time(self.schedule_cron):
            errors.append(f"Invalid schedule_cron format: {self.schedule_cron}, expected HH:MM")

        if self.max_concurrent_ops < 1:
            errors.append(f"max_concurrent_ops must be >= 1, got {self.max_concurrent_ops}")

        if self.prune_databases_limit < 0:
            errors.append(
                f"prune_databases_limit must be >= 0, got {self.prune_databases_limit}"
            )

        if self.prune_volumes_limit < 0:
            errors.append(f"prune_volumes_limit must be >= 0, got {self.prune_volumes_limit}")

        if errors:
            from siteback.exceptions import ConfigurationError

            raise ConfigurationError(
                "Configuration validation failed",
                details={"errors": errors},
            )

    @property
    def local_dir(self) -> Path:
        """Directory holding local artifacts (created on demand)."""
        return Path(self.storage_path) / self.handle

    @property
    def temp_root(self) -> Path:
        """Scratch root under which staging workspaces are created."""
        if self.temp_path is not None:
            return Path(self.temp_path)
        return Path(self.storage_path) / "runtime" / "temp"

    def with_updates(self, **kwargs) -> "BackupConfig":
        """
        Create a new config with updated values.

        Since the config is frozen, this creates a new instance.
        """
        from dataclasses import asdict

        current = asdict(self)
        current.update(kwargs)
        return BackupConfig(**current)
