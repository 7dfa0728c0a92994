"""Listener that records execution checkpoints in a repository."""

from __future__ import annotations

import logging
from typing import Any, Dict

from ..contracts import StepResult, StepStatus, WorkflowExecution
from ..listeners import BaseExecutionListener
from .repository import ExecutionRepository

logger = logging.getLogger(__name__)


def _snapshot(execution: WorkflowExecution) -> Dict[str, Any]:
    return {
        "status": execution.status.value,
        "step_results": [r.model_dump(mode="json") for r in execution.step_results],
    }


class CheckpointRecorder(BaseExecutionListener):
    """Writes a checkpoint when each step starts and when it finishes.

    Finished steps produce ``step_complete`` checkpoints, failed ones
    ``error_recovery`` checkpoints carrying the error detail.
    """

    def __init__(self, repository: ExecutionRepository) -> None:
        self._repository = repository

    async def step_started(self, execution: WorkflowExecution, result: StepResult) -> None:
        await self._repository.save_checkpoint(
            execution.id, result.step_id, "step_start", _snapshot(execution)
        )

    async def step_finished(self, execution: WorkflowExecution, result: StepResult) -> None:
        data = _snapshot(execution)
        if result.status is StepStatus.FAILED:
            data["error"] = result.error.model_dump() if result.error else None
            kind = "error_recovery"
        else:
            kind = "step_complete"
        await self._repository.save_checkpoint(execution.id, result.step_id, kind, data)
        logger.debug(f"Saved {kind} checkpoint for step {result.step_id}")
