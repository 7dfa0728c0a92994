"""SQLite implementation of the execution repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import WorkflowExecution, utcnow
from .models import Checkpoint, CheckpointKind
from .repository import ExecutionRepository


class SQLiteExecutionRepository(ExecutionRepository):
    """Persist executions and checkpoints using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS executions (
                id TEXT PRIMARY KEY,
                workflow_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                started_at TEXT NOT NULL,
                data TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS checkpoints (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL,
                step_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    # ------------------------------------------------------------------
    # Repository API
    async def save_execution(self, execution: WorkflowExecution) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO executions (id, workflow_id, user_id, status, started_at, data)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET status = excluded.status, data = excluded.data
            """,
            execution.id,
            execution.workflow_id,
            execution.user_id,
            execution.status.value,
            execution.started_at.isoformat(),
            execution.to_json(),
        )

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT data FROM executions WHERE id = ?", execution_id
        )
        if not row:
            return None
        return WorkflowExecution.from_json(row["data"])

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[WorkflowExecution]:
        if user_id is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT data FROM executions ORDER BY started_at DESC LIMIT ?",
                limit,
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT data FROM executions WHERE user_id = ? ORDER BY started_at DESC LIMIT ?",
                user_id,
                limit,
            )
        return [WorkflowExecution.from_json(r["data"]) for r in rows]

    async def save_checkpoint(
        self, execution_id: str, step_id: str, kind: CheckpointKind, data: dict
    ) -> None:
        await asyncio.to_thread(
            self._execute,
            "INSERT INTO checkpoints (execution_id, step_id, kind, data, created_at) VALUES (?, ?, ?, ?, ?)",
            execution_id,
            step_id,
            kind,
            json.dumps(data, default=str),
            utcnow().isoformat(),
        )

    async def latest_checkpoint(self, execution_id: str) -> Checkpoint | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT id, execution_id, step_id, kind, data, created_at FROM checkpoints WHERE execution_id = ? ORDER BY id DESC LIMIT 1",
            execution_id,
        )
        if not row:
            return None
        return Checkpoint(
            id=row["id"],
            execution_id=row["execution_id"],
            step_id=row["step_id"],
            kind=row["kind"],
            data=json.loads(row["data"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
