# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
SQLite database dumps.

The dump is SQLite's own SQL text format (the `.dump` shell command).
Restoring drops every user table, view, index and trigger first, so the
result matches the dump rather than a merge of old and new rows.
"""

from pathlib import Path

import aiofiles
import aiosqlite
import structlog

from siteback.exceptions import DumpRestoreError

logger = structlog.get_logger()


class SqliteDatabase:
    """Dump and restore a SQLite database file."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)

    def __repr__(self) -> str:
        return f"SqliteDatabase({str(self.db_path)!r})"

    async def dump_to(self, path: Path) -> None:
        path = Path(path)
        if not self.db_path.exists():
            raise DumpRestoreError(
                f"Database file not found: {self.db_path}",
                details={"db_path": str(self.db_path)},
            )

        statements = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(self.db_path) as db:
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    async for line in db.iterdump():
                        await f.write(f"{line}\n")
                        statements += 1
        except Exception as e:
            raise DumpRestoreError(
                f"SQLite dump failed: {e}",
                details={"db_path": str(self.db_path), "dump_path": str(path)},
            )

        logger.debug("sqlite_dumped", dump_path=str(path), statements=statements)

    async def restore_from(self, path: Path) -> None:
        path = Path(path)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                script = await f.read()

            async with aiosqlite.connect(self.db_path) as db:
                async with db.execute(
                    """
                    SELECT type, name FROM sqlite_master
                    WHERE name NOT LIKE 'sqlite_%'
                    AND type IN ('table', 'view')
                    """
                ) as cursor:
                    objects = await cursor.fetchall()

                await db.execute("PRAGMA foreign_keys = OFF")
                for object_type, name in objects:
                    quoted = '"' + name.replace('"', '""') + '"'
                    await db.execute(f"DROP {object_type.upper()} IF EXISTS {quoted}")
                await db.commit()

                await db.executescript(script)
                await db.commit()
        except Exception as e:
            raise DumpRestoreError(
                f"SQLite restore failed: {e}",
                details={"db_path": str(self.db_path), "dump_path": str(path)},
            )

        logger.debug("sqlite_restored", dump_path=str(path), dropped=len(objects))
