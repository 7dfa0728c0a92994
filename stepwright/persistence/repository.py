"""Repository abstraction for execution persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..constants import DEFAULT_EXECUTION_LIST_LIMIT
from ..contracts import WorkflowExecution
from .models import Checkpoint, CheckpointKind


class ExecutionRepository(Protocol):
    """Protocol for execution persistence backends."""

    async def save_execution(self, execution: WorkflowExecution) -> None:
        """Insert or replace the stored record of ``execution``."""

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Retrieve an execution by id."""

    async def list_executions(
        self, user_id: Optional[str] = None, limit: int = DEFAULT_EXECUTION_LIST_LIMIT
    ) -> list[WorkflowExecution]:
        """Return stored executions, newest first."""

    async def save_checkpoint(
        self, execution_id: str, step_id: str, kind: CheckpointKind, data: dict
    ) -> None:
        """Record a checkpoint for ``execution_id``."""

    async def latest_checkpoint(self, execution_id: str) -> Checkpoint | None:
        """Return the most recent checkpoint of ``execution_id``."""
