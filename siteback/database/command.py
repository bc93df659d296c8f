# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Database dumps through the vendor command-line tools.

PostgreSQL uses pg_dump/psql, MySQL and MariaDB use mysqldump/mysql. The
dump command writes SQL to stdout, which is streamed to the dump file;
the restore command reads the dump file on stdin.
"""

import asyncio
import os
from pathlib import Path
from typing import Dict, List
from urllib.parse import unquote, urlparse

import structlog

from siteback.exceptions import DumpRestoreError

logger = structlog.get_logger()


class CommandDatabase:
    """Dump/restore a database by running external commands."""

    def __init__(
        self,
        dump_command: List[str],
        restore_command: List[str],
        env: Dict[str, str] | None = None,
    ):
        self.dump_command = dump_command
        self.restore_command = restore_command
        self.env = env or {}

    def __repr__(self) -> str:
        return f"CommandDatabase(dump={self.dump_command[0]!r}, restore={self.restore_command[0]!r})"

    async def dump_to(self, path: Path) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            out = open(path, "wb")
        except OSError as e:
            raise DumpRestoreError(
                f"Cannot create dump file: {e}",
                details={"dump_path": str(path)},
            )
        with out:
            await self._run(self.dump_command, stdin=asyncio.subprocess.DEVNULL, stdout=out)
        logger.debug("database_dumped", command=self.dump_command[0], dump_path=str(path))

    async def restore_from(self, path: Path) -> None:
        path = Path(path)
        try:
            dump = open(path, "rb")
        except OSError as e:
            raise DumpRestoreError(
                f"Cannot open dump file: {e}",
                details={"dump_path": str(path)},
            )
        with dump:
            await self._run(self.restore_command, stdin=dump, stdout=asyncio.subprocess.DEVNULL)
        logger.debug("database_restored", command=self.restore_command[0], dump_path=str(path))

    async def _run(self, command: List[str], stdin, stdout) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=stdin,
                stdout=stdout,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
            )
        except OSError as e:
            raise DumpRestoreError(
                f"Failed to run {command[0]}: {e}",
                details={"command": command[0]},
            )

        try:
            _, stderr = await process.communicate()
        except BaseException:
            # Never leave the tool running after a cancelled wait
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            raise

        if process.returncode != 0:
            raise DumpRestoreError(
                f"{command[0]} exited with status {process.returncode}",
                details={
                    "command": command[0],
                    "stderr": stderr.decode("utf-8", "replace").strip()[-2000:],
                },
            )


def postgres_database(url: str) -> CommandDatabase:
    """
    pg_dump/psql for a postgres:// URL.

    The dump is created with --clean --if-exists so restoring it replaces
    existing objects. The password is passed through PGPASSWORD rather
    than the command line.
    """
    parsed = urlparse(url)
    env = {"PGPASSWORD": unquote(parsed.password)} if parsed.password else {}

    host = parsed.netloc.rsplit("@", 1)[-1]
    netloc = f"{parsed.username}@{host}" if parsed.username else host
    url = parsed._replace(scheme="postgresql", netloc=netloc).geturl()

    return CommandDatabase(
        dump_command=["pg_dump", "--clean", "--if-exists", "--no-owner", f"--dbname={url}"],
        restore_command=["psql", "--quiet", "-v", "ON_ERROR_STOP=1", f"--dbname={url}"],
        env=env,
    )


def mysql_database(url: str) -> CommandDatabase:
    """
    mysqldump/mysql for a mysql:// URL.

    The password is passed through MYSQL_PWD rather than the command line.
    """
    parsed = urlparse(url)
    database = parsed.path.lstrip("/")
    if not database:
        raise DumpRestoreError(
            "MySQL URL has no database name",
            details={"host": parsed.hostname},
        )

    connection = [
        f"--host={parsed.hostname or 'localhost'}",
        f"--port={parsed.port or 3306}",
        f"--user={unquote(parsed.username or 'root')}",
    ]
    env = {"MYSQL_PWD": unquote(parsed.password)} if parsed.password else {}

    return CommandDatabase(
        dump_command=[
            "mysqldump",
            *connection,
            "--add-drop-table",
            "--single-transaction",
            "--routines",
            database,
        ],
        restore_command=["mysql", *connection, database],
        env=env,
    )
