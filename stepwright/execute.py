"""Workflow execution engine for stepwright."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .catalog import WorkflowCatalog
from .constants import QUERY_REF, QUERY_REF_ALIASES
from .contracts import (
    ExecutionContext,
    ExecutionStatus,
    StepError,
    StepKind,
    StepRequest,
    StepResult,
    StepSpec,
    StepStatus,
    WorkflowDefinition,
    WorkflowExecution,
    utcnow,
)
from .errors import FatalWorkflowError, TemplateResolutionError
from .handlers import HandlerRegistry
from .listeners import ExecutionListener, ListenerGroup
from .templates import render

logger = logging.getLogger(__name__)


def final_status(results: List[StepResult]) -> ExecutionStatus:
    """Derive the overall status from terminal step results.

    A failed required step fails the run, as does a run in which no step
    completed or failed. A run where every step completed is ``completed``;
    anything else (only optional steps failed) is ``partial``.
    """
    if any(r.status is StepStatus.FAILED and r.required for r in results):
        return ExecutionStatus.FAILED
    if not any(r.status in (StepStatus.COMPLETED, StepStatus.FAILED) for r in results):
        return ExecutionStatus.FAILED
    if all(r.status is StepStatus.COMPLETED for r in results):
        return ExecutionStatus.COMPLETED
    return ExecutionStatus.PARTIAL


class WorkflowExecutor:
    """Runs workflow steps strictly in order with shared, per-execution state."""

    def __init__(
        self,
        catalog: WorkflowCatalog,
        handlers: HandlerRegistry,
        listeners: Iterable[ExecutionListener] = (),
    ) -> None:
        self._catalog = catalog
        self._handlers = handlers
        self._listeners = ListenerGroup(listeners)

    async def execute(
        self,
        workflow_id: str,
        user_query: str,
        user_id: str,
        conversation_id: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowExecution:
        """Execute the catalog workflow ``workflow_id`` for ``user_query``.

        Step failures are recorded in the returned execution rather than
        raised.

        Raises:
            UnknownWorkflow: If ``workflow_id`` is not in the catalog.
            ValueError: If ``user_query`` is empty.
            FatalWorkflowError: If an unexpected internal error aborted the run.
        """
        definition = self._catalog.get(workflow_id)
        return await self.execute_definition(
            definition, user_query, user_id, conversation_id, parameters
        )

    async def execute_definition(
        self,
        definition: WorkflowDefinition,
        user_query: str,
        user_id: str,
        conversation_id: Optional[str] = None,
        parameters: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowExecution:
        """Execute ``definition`` directly, bypassing the catalog."""
        if not isinstance(user_query, str) or not user_query.strip():
            raise ValueError("user_query must be a non-empty string")

        context = ExecutionContext(
            user_query=user_query,
            user_id=user_id,
            conversation_id=conversation_id or str(uuid.uuid4()),
            parameters=dict(parameters or {}),
        )
        execution = WorkflowExecution(
            workflow_id=definition.id,
            user_id=context.user_id,
            conversation_id=context.conversation_id,
            user_query=user_query,
            parameters=context.parameters,
            step_results=[StepResult.pending(step) for step in definition.steps],
        )
        context.results = execution.step_results

        logger.info(
            f"Starting workflow {definition.id} with {len(definition.steps)} steps "
            f"for execution_id={execution.id}"
        )
        await self._listeners.execution_started(execution)

        try:
            for index, step in enumerate(definition.steps):
                result = execution.step_results[index]
                succeeded = await self._run_step(step, result, context, execution)
                if succeeded:
                    continue
                if step.required:
                    logger.error(
                        f"Required step {step.id} failed, skipping remaining steps "
                        f"for execution_id={execution.id}"
                    )
                    for remaining in execution.step_results[index + 1 :]:
                        remaining.mark_skipped()
                    break
                logger.warning(
                    f"Optional step {step.id} failed, continuing "
                    f"for execution_id={execution.id}"
                )
        except Exception as e:
            logger.exception(f"Workflow {definition.id} aborted for execution_id={execution.id}")
            self._abort(execution, e)
            await self._listeners.execution_finished(execution)
            raise FatalWorkflowError(
                f"Workflow '{definition.id}' aborted: {e}", execution
            ) from e

        execution.status = final_status(execution.step_results)
        execution.ended_at = utcnow()
        logger.info(
            f"Workflow {definition.id} finished with status {execution.status.value} "
            f"in {execution.duration_ms}ms for execution_id={execution.id}"
        )
        await self._listeners.execution_finished(execution)
        return execution

    async def _run_step(
        self,
        step: StepSpec,
        result: StepResult,
        context: ExecutionContext,
        execution: WorkflowExecution,
    ) -> bool:
        """Run one step, recording its outcome in ``result``.

        Returns ``True`` when the step completed.
        """
        try:
            rendered = render(step.input, self._namespace(context))
        except TemplateResolutionError as e:
            result.mark_failed(StepError.from_exception("TemplateResolutionError", e))
            logger.warning(f"Step {step.id} input could not be rendered: {e}")
            await self._listeners.step_finished(execution, result)
            return False

        result.input = rendered
        result.mark_running()
        logger.info(f"Executing step {step.id} ({step.kind.value}) for execution_id={execution.id}")
        await self._listeners.step_started(execution, result)

        if step.kind not in self._handlers:
            raise RuntimeError(f"No handler registered for step kind '{step.kind.value}'")
        handler = self._handlers.resolve(step.kind)

        signature = self._call_signature(step, rendered)
        if signature is not None and signature in context.call_cache:
            logger.info(f"Reusing earlier result of tool {step.config.tool} for step {step.id}")
            result.mark_completed(context.call_cache[signature], cached=True)
        else:
            request = StepRequest(
                step=step,
                input=rendered,
                execution_id=execution.id,
                user_id=context.user_id,
                conversation_id=context.conversation_id,
            )
            try:
                output = await handler(request)
            except Exception as e:
                result.mark_failed(StepError.from_exception("StepHandlerError", e))
                logger.warning(f"Step {step.id} failed: {result.error.message}")
                await self._listeners.step_finished(execution, result)
                return False
            result.mark_completed(output)
            if signature is not None:
                context.call_cache[signature] = output

        context.cache[step.id] = result.output
        logger.info(f"Step {step.id} completed in {result.duration_ms}ms")
        await self._listeners.step_finished(execution, result)
        return True

    @staticmethod
    def _namespace(context: ExecutionContext) -> Dict[str, Any]:
        namespace: Dict[str, Any] = {QUERY_REF: context.user_query}
        for alias in QUERY_REF_ALIASES:
            namespace[alias] = context.user_query
        namespace.update(context.parameters)
        namespace.update(context.cache)
        return namespace

    @staticmethod
    def _call_signature(step: StepSpec, rendered: Any) -> Optional[str]:
        if step.kind is not StepKind.TOOL_CALL:
            return None
        try:
            arguments = json.dumps(rendered, sort_keys=True)
        except (TypeError, ValueError):
            return None
        return f"{step.config.tool}:{arguments}"

    @staticmethod
    def _abort(execution: WorkflowExecution, error: Exception) -> None:
        for result in execution.step_results:
            if result.status is StepStatus.RUNNING:
                result.mark_failed(StepError.from_exception("FatalWorkflowError", error))
            elif result.status is StepStatus.PENDING:
                result.mark_skipped()
        execution.status = ExecutionStatus.FAILED
        execution.error = str(error) or type(error).__name__
        execution.ended_at = utcnow()
