"""Persistence layer for stepwright executions."""

from __future__ import annotations

from typing import Optional

from ..config import StepwrightConfig, load_config
from .checkpoints import CheckpointRecorder
from .inmemory import InMemoryExecutionRepository
from .models import Checkpoint
from .postgres import PostgresExecutionRepository
from .repository import ExecutionRepository
from .sqlite import SQLiteExecutionRepository

_repository_instance: ExecutionRepository | None = None


def open_repository(database_url: Optional[str]) -> ExecutionRepository:
    """Open the backend named by the scheme of ``database_url``.

    ``sqlite://PATH`` opens a SQLite file, ``postgres://`` and
    ``postgresql://`` URLs a PostgreSQL database, and an empty URL an
    in-memory store.
    """
    if not database_url:
        return InMemoryExecutionRepository()
    scheme, _, location = database_url.partition("://")
    if scheme == "sqlite" and location:
        return SQLiteExecutionRepository(location)
    if scheme in ("postgres", "postgresql"):
        return PostgresExecutionRepository(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_repository(
    database_url: Optional[str] = None, config: Optional[StepwrightConfig] = None
) -> ExecutionRepository:
    """Return the process-wide execution repository.

    An explicit ``database_url`` always opens a new repository. Otherwise the
    cached one is returned, or one is opened from ``config.database_url``;
    ``load_config`` has already applied the ``STEPWRIGHT_DATABASE_URL`` and
    ``DATABASE_URL`` overrides to it.
    """
    global _repository_instance
    if database_url is None:
        if _repository_instance is not None:
            return _repository_instance
        database_url = (config or load_config()).database_url

    _repository_instance = open_repository(database_url)
    return _repository_instance


__all__ = [
    "Checkpoint",
    "CheckpointRecorder",
    "ExecutionRepository",
    "InMemoryExecutionRepository",
    "SQLiteExecutionRepository",
    "PostgresExecutionRepository",
    "get_repository",
    "open_repository",
]
