"""Data models for persisted execution state."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from ..contracts import utcnow

CheckpointKind = Literal["step_start", "step_complete", "error_recovery", "manual"]


class Checkpoint(BaseModel):
    """Snapshot of an execution taken around a step."""

    id: Optional[int] = None
    execution_id: str
    step_id: str
    kind: CheckpointKind
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
