"""Error taxonomy for stepwright workflows."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .contracts import WorkflowExecution


class StepwrightError(Exception):
    """Base class for all stepwright errors."""


class UnknownWorkflow(StepwrightError, LookupError):
    """Raised when a workflow id is not present in the catalog."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Unknown workflow '{workflow_id}'")


class CatalogError(StepwrightError):
    """Raised when a workflow definition cannot be loaded."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        super().__init__(f"Invalid workflow definition in {source}: {reason}")


class TemplateResolutionError(StepwrightError):
    """Raised when a step input template references an unknown name."""

    def __init__(self, reference: str, reason: Optional[str] = None) -> None:
        self.reference = reference
        message = f"Cannot resolve template reference '{reference}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class StepHandlerError(StepwrightError):
    """Raised by a step handler when the external call fails."""


class ToolCallError(StepHandlerError):
    """Raised when a tool invocation fails or returns an error result."""

    def __init__(self, tool: str, reason: str) -> None:
        self.tool = tool
        super().__init__(f"Tool '{tool}' failed: {reason}")


class FatalWorkflowError(StepwrightError):
    """Unexpected internal error that aborted a whole execution.

    The finalized execution record (status ``failed``) is attached as
    ``execution`` so callers can still persist or render it.
    """

    def __init__(self, message: str, execution: "WorkflowExecution") -> None:
        self.execution = execution
        super().__init__(message)
