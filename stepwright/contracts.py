"""Core data contracts for stepwright workflows."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _duration_ms(started: Optional[datetime], ended: Optional[datetime]) -> Optional[int]:
    if started is None or ended is None:
        return None
    return int((ended - started).total_seconds() * 1000)


class StepKind(str, Enum):
    """Closed set of step kinds the executor can dispatch."""

    LLM_CALL = "llm-call"
    TOOL_CALL = "tool-call"


class StepStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)


class ExecutionStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class StepConfig(BaseModel):
    """Optional per-step configuration."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    model: Optional[str] = Field(default=None, description="LLM model name")
    system_prompt: Optional[str] = None
    tool: Optional[str] = Field(default=None, description="Tool name for tool-call steps")
    timeout: Optional[float] = Field(default=None, gt=0, description="Seconds")


class StepSpec(BaseModel):
    """Defines one step in a workflow."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: StepKind
    name: Optional[str] = None
    description: str = ""
    input: Any = None
    required: bool = True
    config: StepConfig = Field(default_factory=StepConfig)

    @model_validator(mode="after")
    def _check_tool(self) -> "StepSpec":
        if self.kind is StepKind.TOOL_CALL and not self.config.tool:
            raise ValueError(f"tool-call step '{self.id}' must set config.tool")
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id


class WorkflowDefinition(BaseModel):
    """Named, ordered sequence of steps."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    name: Optional[str] = None
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    steps: List[StepSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "WorkflowDefinition":
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"duplicate step id '{step.id}'")
            seen.add(step.id)
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.id


class StepError(BaseModel):
    """Why a step failed."""

    kind: str
    message: str
    exception_type: Optional[str] = None

    @classmethod
    def from_exception(cls, kind: str, exc: BaseException) -> "StepError":
        name = type(exc).__name__
        return cls(kind=kind, message=str(exc) or name, exception_type=name)


class StepResult(BaseModel):
    """Execution record of a single step."""

    step_id: str
    name: str
    kind: StepKind
    required: bool = True
    status: StepStatus = StepStatus.PENDING
    input: Any = None
    output: Any = None
    error: Optional[StepError] = None
    cached: bool = False
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @classmethod
    def pending(cls, step: StepSpec) -> "StepResult":
        return cls(
            step_id=step.id,
            name=step.display_name,
            kind=step.kind,
            required=step.required,
        )

    @computed_field  # type: ignore[misc]
    @property
    def duration_ms(self) -> Optional[int]:
        return _duration_ms(self.started_at, self.ended_at)

    def mark_running(self) -> None:
        self.status = StepStatus.RUNNING
        self.started_at = utcnow()

    def mark_completed(self, output: Any, cached: bool = False) -> None:
        self.status = StepStatus.COMPLETED
        self.output = output
        self.cached = cached
        self.ended_at = utcnow()

    def mark_failed(self, error: StepError) -> None:
        now = utcnow()
        self.status = StepStatus.FAILED
        self.error = error
        if self.started_at is None:
            self.started_at = now
        self.ended_at = now

    def mark_skipped(self) -> None:
        self.status = StepStatus.SKIPPED


class WorkflowExecution(BaseModel):
    """Aggregate result of one workflow run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    user_id: str
    conversation_id: str
    user_query: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    step_results: List[StepResult] = Field(default_factory=list)
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None
    error: Optional[str] = None

    @computed_field  # type: ignore[misc]
    @property
    def duration_ms(self) -> Optional[int]:
        return _duration_ms(self.started_at, self.ended_at)

    def result_for(self, step_id: str) -> Optional[StepResult]:
        """Return the result recorded for ``step_id`` if any."""
        return next((r for r in self.step_results if r.step_id == step_id), None)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "WorkflowExecution":
        return cls.model_validate_json(data)


class ExecutionContext(BaseModel):
    """Mutable state owned by exactly one execution.

    ``cache`` maps step ids to their outputs so later templates can read
    them; ``call_cache`` maps tool call signatures to outputs so identical
    tool calls are not repeated within the run. Both are discarded with
    the context.
    """

    user_query: str
    user_id: str
    conversation_id: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    cache: Dict[str, Any] = Field(default_factory=dict)
    call_cache: Dict[str, Any] = Field(default_factory=dict)
    results: List[StepResult] = Field(default_factory=list)


class StepRequest(BaseModel):
    """Everything a step handler receives for one invocation."""

    step: StepSpec
    input: Any = None
    execution_id: str
    user_id: str
    conversation_id: str
