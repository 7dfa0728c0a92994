"""Execution lifecycle hooks."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .contracts import StepResult, WorkflowExecution

logger = logging.getLogger(__name__)


class ExecutionListener(Protocol):
    """Observer notified as an execution progresses."""

    async def execution_started(self, execution: WorkflowExecution) -> None: ...

    async def step_started(self, execution: WorkflowExecution, result: StepResult) -> None: ...

    async def step_finished(self, execution: WorkflowExecution, result: StepResult) -> None: ...

    async def execution_finished(self, execution: WorkflowExecution) -> None: ...


class BaseExecutionListener:
    """Listener with no-op hooks; subclass and override what you need."""

    async def execution_started(self, execution: WorkflowExecution) -> None:
        pass

    async def step_started(self, execution: WorkflowExecution, result: StepResult) -> None:
        pass

    async def step_finished(self, execution: WorkflowExecution, result: StepResult) -> None:
        pass

    async def execution_finished(self, execution: WorkflowExecution) -> None:
        pass


class ListenerGroup:
    """Fans hook calls out to several listeners.

    A failing listener is logged and never interrupts the execution.
    """

    def __init__(self, listeners: Iterable[ExecutionListener] = ()) -> None:
        self._listeners = list(listeners)

    async def _notify(self, hook: str, *args) -> None:
        for listener in self._listeners:
            try:
                await getattr(listener, hook)(*args)
            except Exception as e:
                logger.warning(
                    f"Listener {type(listener).__name__}.{hook} failed: {e}"
                )

    async def execution_started(self, execution: WorkflowExecution) -> None:
        await self._notify("execution_started", execution)

    async def step_started(self, execution: WorkflowExecution, result: StepResult) -> None:
        await self._notify("step_started", execution, result)

    async def step_finished(self, execution: WorkflowExecution, result: StepResult) -> None:
        await self._notify("step_finished", execution, result)

    async def execution_finished(self, execution: WorkflowExecution) -> None:
        await self._notify("execution_finished", execution)
