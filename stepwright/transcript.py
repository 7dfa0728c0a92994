"""Display-oriented projection of workflow executions."""

from __future__ import annotations

import textwrap
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .constants import DEFAULT_TRANSCRIPT_OUTPUT_CHARS
from .contracts import StepResult, StepStatus, WorkflowExecution
from .templates import to_text


class TranscriptEntry(BaseModel):
    """One step of a transcript."""

    index: int
    step_id: str
    name: str
    kind: str
    status: str
    required: bool = True
    output: Optional[str] = None
    error: Optional[str] = None
    cached: bool = False
    duration_ms: Optional[int] = None


class TranscriptMetrics(BaseModel):
    total_steps: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    cached: int = 0
    success_rate: int = 0
    total_duration_ms: int = 0
    average_duration_ms: int = 0


class Transcript(BaseModel):
    """Step-by-step view of a ``WorkflowExecution``."""

    execution_id: str
    workflow_id: str
    status: str
    user_query: str
    summary: str
    error: Optional[str] = None
    entries: List[TranscriptEntry] = Field(default_factory=list)
    metrics: TranscriptMetrics = Field(default_factory=TranscriptMetrics)


def _clip(text: str, limit: int) -> str:
    if limit <= 0 or len(text) <= limit:
        return text
    return text[:limit].rstrip() + " ..."


def _output_text(value: Any, limit: int) -> Optional[str]:
    if value is None:
        return None
    return _clip(to_text(value), limit)


def _entry(index: int, result: StepResult, limit: int) -> TranscriptEntry:
    return TranscriptEntry(
        index=index,
        step_id=result.step_id,
        name=result.name,
        kind=result.kind.value,
        status=result.status.value,
        required=result.required,
        output=_output_text(result.output, limit),
        error=result.error.message if result.error else None,
        cached=result.cached,
        duration_ms=result.duration_ms,
    )


def _metrics(results: List[StepResult]) -> TranscriptMetrics:
    total = len(results)
    completed = sum(1 for r in results if r.status is StepStatus.COMPLETED)
    durations = [r.duration_ms for r in results if r.duration_ms is not None]
    total_duration = sum(durations)
    return TranscriptMetrics(
        total_steps=total,
        completed=completed,
        failed=sum(1 for r in results if r.status is StepStatus.FAILED),
        skipped=sum(1 for r in results if r.status is StepStatus.SKIPPED),
        cached=sum(1 for r in results if r.cached),
        success_rate=round(completed / total * 100) if total else 0,
        total_duration_ms=total_duration,
        average_duration_ms=round(total_duration / len(durations)) if durations else 0,
    )


def summarize(metrics: TranscriptMetrics) -> str:
    noun = "step" if metrics.total_steps == 1 else "steps"
    return (
        f"Executed {metrics.total_steps} {noun}: {metrics.completed} completed, "
        f"{metrics.failed} failed, {metrics.skipped} skipped."
    )


def format_transcript(
    execution: WorkflowExecution,
    max_output_chars: int = DEFAULT_TRANSCRIPT_OUTPUT_CHARS,
) -> Transcript:
    """Project ``execution`` into a transcript.

    Pure function: one entry per step result, in the same order, and the
    execution is left untouched.
    """
    metrics = _metrics(execution.step_results)
    return Transcript(
        execution_id=execution.id,
        workflow_id=execution.workflow_id,
        status=execution.status.value,
        user_query=execution.user_query,
        summary=summarize(metrics),
        error=execution.error,
        entries=[
            _entry(index, result, max_output_chars)
            for index, result in enumerate(execution.step_results, start=1)
        ],
        metrics=metrics,
    )


def render_transcript(transcript: Transcript) -> str:
    """Render ``transcript`` as Markdown-style text."""
    lines = [
        f"# Workflow {transcript.workflow_id}: {transcript.status.upper()}",
        f"Query: {transcript.user_query}",
        transcript.summary,
    ]
    if transcript.error:
        lines.append(f"Error: {transcript.error}")
    lines.append("")

    for entry in transcript.entries:
        details = [entry.step_id, entry.kind]
        if not entry.required:
            details.append("optional")
        if entry.cached:
            details.append("cached")
        header = f"{entry.index}. [{entry.status}] {entry.name} ({', '.join(details)})"
        if entry.duration_ms is not None:
            header += f" {entry.duration_ms}ms"
        lines.append(header)
        if entry.error:
            lines.append(textwrap.indent(f"error: {entry.error}", "   "))
        elif entry.output:
            lines.append(textwrap.indent(entry.output, "   "))

    metrics = transcript.metrics
    lines.extend(
        [
            "",
            "**Performance:**",
            f"- Success Rate: {metrics.success_rate}%",
            f"- Cached Steps: {metrics.cached}",
            f"- Total Duration: {metrics.total_duration_ms}ms",
            f"- Average Step Duration: {metrics.average_duration_ms}ms",
        ]
    )
    return "\n".join(lines)
