"""Persistence for projects, speakers, transcript segments, and deliverables."""

from __future__ import annotations

from .db import DatabaseError, SQLiteDatabase
from .deliverables import LocalDeliverableStore
from .paths import PathsConfig, build_paths
from .repository import ProjectStore

__all__ = [
    "DatabaseError",
    "LocalDeliverableStore",
    "PathsConfig",
    "ProjectStore",
    "SQLiteDatabase",
    "build_paths",
]
