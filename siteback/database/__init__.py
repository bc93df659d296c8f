# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database Layer - Dump the site database to a file and restore it back.
"""

from pathlib import Path
from typing import Protocol

from siteback.errors import explain_unsupported_database_url
from siteback.exceptions import ConfigurationError


class Database(Protocol):
    """Protocol for a database that can be dumped to and restored from a file."""

    async def dump_to(self, path: Path) -> None:
        """Write a complete dump of the database to path."""
        ...

    async def restore_from(self, path: Path) -> None:
        """Replace the database contents with the dump at path."""
        ...


def create_database(database_url: str) -> Database:
    """
    Build a database collaborator from a connection URL.

    Supported:
        sqlite:///relative/path.db, sqlite:////absolute/path.db
        postgres://..., postgresql://...
        mysql://..., mariadb://...

    Raises:
        ConfigurationError: If the URL scheme is not supported
    """
    lower = database_url.lower()

    if lower.startswith("sqlite:///"):
        from siteback.database.sqlite import SqliteDatabase

        return SqliteDatabase(Path(database_url[len("sqlite:///"):]))

    if lower.startswith(("postgres://", "postgresql://")):
        from siteback.database.command import postgres_database

        return postgres_database(database_url)

    if lower.startswith(("mysql://", "mariadb://")):
        from siteback.database.command import mysql_database

        return mysql_database(database_url)

    raise ConfigurationError(explain_unsupported_database_url(database_url))


__all__ = [
    "Database",
    "create_database",
]
