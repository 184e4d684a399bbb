"""SQLite database helpers for the Dubbing Studio storage layer."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

__all__ = [
    "DatabaseError",
    "DatabaseIntegrityError",
    "SQLiteDatabase",
]


class DatabaseError(RuntimeError):
    """Raised when database operations fail."""


class DatabaseIntegrityError(DatabaseError):
    """Raised when the SQLite integrity checks fail."""


class SQLiteDatabase:
    """Connection-per-operation helper around a single SQLite file.

    Every ``connect`` block is one transaction: it commits when the block exits
    cleanly and rolls back otherwise. ``transaction`` additionally takes the write
    lock up front so read-then-write sequences cannot interleave with another
    writer.
    """

    def __init__(self, db_path: str | Path, *, busy_timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        if not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connect(self, *, read_only: bool = False) -> Iterator[sqlite3.Connection]:
        """Yield a connection with row access by name and foreign keys enforced."""
        connection = sqlite3.connect(
            self._build_uri(read_only=read_only),
            uri=True,
            timeout=self.busy_timeout,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")

        try:
            yield connection
            if not read_only:
                connection.commit()
        except sqlite3.Error as exc:
            if not read_only:
                connection.rollback()
            raise DatabaseError(str(exc)) from exc
        except BaseException:
            if not read_only:
                connection.rollback()
            raise
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection holding the write lock until commit or rollback."""
        with self.connect() as connection:
            connection.execute("BEGIN IMMEDIATE;")
            yield connection

    def initialize(self) -> list[str]:
        """Create the database file and apply every outstanding migration."""
        return self.run_migrations()

    def execute(self, sql: str, parameters: Sequence[Any] | None = None) -> int:
        """Execute a modifying SQL statement and return the affected row count."""
        with self.connect() as connection:
            cursor = connection.execute(sql, parameters or [])
            return cursor.rowcount

    def fetch_one(self, sql: str, parameters: Sequence[Any] | None = None) -> sqlite3.Row | None:
        """Execute a SELECT and return a single row."""
        with self.connect(read_only=True) as connection:
            row = connection.execute(sql, parameters or []).fetchone()
            return cast(sqlite3.Row | None, row)

    def fetch_all(self, sql: str, parameters: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        """Execute a SELECT and return all rows."""
        with self.connect(read_only=True) as connection:
            rows = connection.execute(sql, parameters or []).fetchall()
            return cast(list[sqlite3.Row], rows)

    def run_migrations(self, migrations_dir: str | Path | None = None) -> list[str]:
        """Apply outstanding migrations and return the filenames that were applied."""
        from .migrations import run_migrations

        return run_migrations(self, migrations_dir=migrations_dir)

    def check_integrity(self) -> None:
        """Run SQLite integrity and foreign key checks."""
        with self.connect(read_only=True) as connection:
            integrity = connection.execute("PRAGMA integrity_check;").fetchone()
            if not integrity or integrity[0] != "ok":
                raise DatabaseIntegrityError(f"Integrity check failed: {integrity!r}")

            fk_issues = list(connection.execute("PRAGMA foreign_key_check;"))
            if fk_issues:
                formatted = ", ".join(str(tuple(issue)) for issue in fk_issues)
                raise DatabaseIntegrityError(f"Foreign key violations detected: {formatted}")

    def _build_uri(self, *, read_only: bool) -> str:
        mode = "ro" if read_only else "rwc"
        return f"file:{self.db_path}?mode={mode}"
