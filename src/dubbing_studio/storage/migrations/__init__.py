"""Schema migrations for the project database."""

from __future__ import annotations

from .migrate import Migration, applied_versions, discover_migrations, run_migrations

__all__ = ["Migration", "applied_versions", "discover_migrations", "run_migrations"]
