"""Apply the numbered ``NNN_name.sql`` scripts that define the project schema."""

from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from ...utils.logging import get_logger
from ..db import DatabaseError, SQLiteDatabase

LOGGER = get_logger(__name__)

_MIGRATION_NAME = re.compile(r"^(?P<version>\d{3})_[\w-]+\.sql$")
_BOOKKEEPING_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    filename TEXT NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);
"""


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    path: Path

    @property
    def filename(self) -> str:
        return self.path.name


def discover_migrations(directory: str | Path | None = None) -> list[Migration]:
    """List migrations in ``directory`` (default: this package) ordered by version.

    Files that do not follow the ``NNN_name.sql`` pattern are ignored; two files
    sharing a version number are an error.
    """
    base_path = Path(directory) if directory is not None else Path(__file__).parent
    by_version: dict[int, Migration] = {}
    for path in base_path.iterdir():
        match = _MIGRATION_NAME.match(path.name)
        if not match or not path.is_file():
            continue
        migration = Migration(version=int(match.group("version")), path=path)
        clash = by_version.get(migration.version)
        if clash is not None:
            raise DatabaseError(
                f"Migrations {clash.filename} and {migration.filename} share version "
                f"{migration.version}."
            )
        by_version[migration.version] = migration
    return [by_version[version] for version in sorted(by_version)]


def applied_versions(database: SQLiteDatabase) -> set[int]:
    with database.connect() as connection:
        connection.executescript(_BOOKKEEPING_DDL)
        rows = connection.execute("SELECT version FROM schema_migrations;").fetchall()
    return {row["version"] for row in rows}


def run_migrations(
    database: SQLiteDatabase, *, migrations_dir: str | Path | None = None
) -> list[str]:
    """Apply outstanding migrations in version order and return their filenames.

    Each script runs on its own connection, so a failing script leaves the
    earlier ones recorded and is retried on the next call.
    """
    done = applied_versions(database)
    applied: list[str] = []
    for migration in discover_migrations(migrations_dir):
        if migration.version in done:
            continue
        with database.connect() as connection:
            _apply(connection, migration)
        applied.append(migration.filename)
        LOGGER.info("Applied migration %s to %s", migration.filename, database.db_path)
    return applied


def _apply(connection: sqlite3.Connection, migration: Migration) -> None:
    connection.executescript(migration.path.read_text(encoding="utf-8"))
    connection.execute(
        "INSERT INTO schema_migrations (version, filename) VALUES (?, ?);",
        (migration.version, migration.filename),
    )
