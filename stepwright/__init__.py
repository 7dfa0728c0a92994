"""Stepwright: declarative multi-step workflows over LLM and tool calls."""

from .catalog import WorkflowCatalog
from .contracts import (
    ExecutionStatus,
    StepKind,
    StepResult,
    StepSpec,
    StepStatus,
    WorkflowDefinition,
    WorkflowExecution,
)
from .errors import FatalWorkflowError, UnknownWorkflow
from .execute import WorkflowExecutor
from .handlers import HandlerRegistry, build_handlers
from .persistence import get_repository
from .transcript import format_transcript, render_transcript

__version__ = "0.1.0"
__all__ = [
    "ExecutionStatus",
    "FatalWorkflowError",
    "HandlerRegistry",
    "StepKind",
    "StepResult",
    "StepSpec",
    "StepStatus",
    "UnknownWorkflow",
    "WorkflowCatalog",
    "WorkflowDefinition",
    "WorkflowExecution",
    "WorkflowExecutor",
    "build_handlers",
    "format_transcript",
    "get_repository",
    "render_transcript",
]
