# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback - Database and media-volume backups for content-managed sites.

Dumps the database and zips the media volumes into uniquely named
artifacts, pushes them to a remote backend (a directory, S3, Backblaze B2,
DigitalOcean Spaces) and restores them again, keeping an emergency copy
of the current state first when asked to.
"""

__version__ = "0.1.0"

# Configuration creation (user-facing API)
from siteback.builder import create_config

# Core functions
from siteback.core import (
    initialize_backup_state,
    push_database,
    push_volumes,
    pull_database,
    pull_volume,
    delete_database,
    delete_volume,
    list_databases,
    list_volumes,
    prune_databases,
    prune_volumes,
    get_status,
    shutdown_backup_state,
)

# Environment-based configuration and profiles (additional helpers)
from siteback.env import (
    create_config_from_env,
    safe_defaults,
    lean_storage,
)

__all__ = [
    # Version
    "__version__",
    # Configuration creation (primary user-facing APIs)
    "create_config",
    "create_config_from_env",
    "safe_defaults",
    "lean_storage",
    # Core orchestration functions
    "initialize_backup_state",
    "push_database",
    "push_volumes",
    "pull_database",
    "pull_volume",
    "delete_database",
    "delete_volume",
    "list_databases",
    "list_volumes",
    "prune_databases",
    "prune_volumes",
    "get_status",
    "shutdown_backup_state",
]
