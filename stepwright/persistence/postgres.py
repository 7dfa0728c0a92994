"""PostgreSQL implementation of the execution repository."""

from __future__ import annotations

import json
from typing import Optional

import asyncpg

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import WorkflowExecution, utcnow
from .models import Checkpoint, CheckpointKind
from .repository import ExecutionRepository


class PostgresExecutionRepository(ExecutionRepository):
    """Persist executions and checkpoints using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                started_at TIMESTAMPTZ NOT NULL,
                data JSONB NOT NULL
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                id SERIAL PRIMARY KEY,
                execution_id TEXT NOT NULL,
                step_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def save_execution(self, execution: WorkflowExecution) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                """
                INSERT INTO executions (id, workflow_id, user_id, status, started_at, data)
                VALUES ($1, $2, $3, $4, $5, $6)
                ON CONFLICT (id) DO UPDATE SET status = EXCLUDED.status, data = EXCLUDED.data
                """,
                execution.id,
                execution.workflow_id,
                execution.user_id,
                execution.status.value,
                execution.started_at,
                execution.to_json(),
            )
        finally:
            await conn.close()

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data FROM executions WHERE id = $1", execution_id
            )
        finally:
            await conn.close()
        if not row:
            return None
        return WorkflowExecution.from_json(row["data"])

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[WorkflowExecution]:
        conn = await self._connect()
        try:
            if user_id is None:
                rows = await conn.fetch(
                    "SELECT data FROM executions ORDER BY started_at DESC LIMIT $1", limit
                )
            else:
                rows = await conn.fetch(
                    "SELECT data FROM executions WHERE user_id = $1 ORDER BY started_at DESC LIMIT $2",
                    user_id,
                    limit,
                )
        finally:
            await conn.close()
        return [WorkflowExecution.from_json(r["data"]) for r in rows]

    async def save_checkpoint(
        self, execution_id: str, step_id: str, kind: CheckpointKind, data: dict
    ) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO checkpoints (execution_id, step_id, kind, data, created_at) VALUES ($1, $2, $3, $4, $5)",
                execution_id,
                step_id,
                kind,
                json.dumps(data, default=str),
                utcnow(),
            )
        finally:
            await conn.close()

    async def latest_checkpoint(self, execution_id: str) -> Checkpoint | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT id, execution_id, step_id, kind, data, created_at FROM checkpoints WHERE execution_id = $1 ORDER BY id DESC LIMIT 1",
                execution_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return Checkpoint(
            id=row["id"],
            execution_id=row["execution_id"],
            step_id=row["step_id"],
            kind=row["kind"],
            data=json.loads(row["data"]),
            created_at=row["created_at"],
        )
