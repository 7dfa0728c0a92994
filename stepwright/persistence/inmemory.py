"""In-memory implementation of the execution repository."""

from __future__ import annotations

from typing import Dict, List, Optional

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import WorkflowExecution
from .models import Checkpoint, CheckpointKind
from .repository import ExecutionRepository


class InMemoryExecutionRepository(ExecutionRepository):
    """Store executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, WorkflowExecution] = {}
        self._checkpoints: Dict[str, List[Checkpoint]] = {}
        self._checkpoint_id = 0

    # ------------------------------------------------------------------
    async def save_execution(self, execution: WorkflowExecution) -> None:
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        stored = self._executions.get(execution_id)
        return stored.model_copy(deep=True) if stored else None

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[WorkflowExecution]:
        executions = [
            e for e in self._executions.values() if user_id is None or e.user_id == user_id
        ]
        executions.sort(key=lambda e: e.started_at, reverse=True)
        return [e.model_copy(deep=True) for e in executions[:limit]]

    async def save_checkpoint(
        self, execution_id: str, step_id: str, kind: CheckpointKind, data: dict
    ) -> None:
        self._checkpoint_id += 1
        self._checkpoints.setdefault(execution_id, []).append(
            Checkpoint(
                id=self._checkpoint_id,
                execution_id=execution_id,
                step_id=step_id,
                kind=kind,
                data=data,
            )
        )

    async def latest_checkpoint(self, execution_id: str) -> Checkpoint | None:
        checkpoints = self._checkpoints.get(execution_id)
        return checkpoints[-1] if checkpoints else None
