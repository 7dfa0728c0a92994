"""Command line interface for running stepwright workflows."""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml

from stepwright import WorkflowExecutor, build_handlers, get_repository
from stepwright.catalog import WorkflowCatalog
from stepwright.config import StepwrightConfig, load_config
from stepwright.constants import DEFAULT_EXECUTION_LIST_LIMIT
from stepwright.contracts import ExecutionStatus, StepResult, WorkflowExecution
from stepwright.errors import CatalogError, FatalWorkflowError, UnknownWorkflow
from stepwright.listeners import BaseExecutionListener, ExecutionListener
from stepwright.persistence import CheckpointRecorder, ExecutionRepository
from stepwright.templates import referenced_names
from stepwright.transcript import format_transcript, render_transcript

app = typer.Typer(help="CLI for stepwright workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for inspecting the workflow catalog")
execution_app = typer.Typer(help="Commands for inspecting stored executions")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")

_STATUS_COLORS = {
    "completed": typer.colors.GREEN,
    "partial": typer.colors.YELLOW,
    "failed": typer.colors.RED,
    "skipped": typer.colors.BRIGHT_BLACK,
}


class ProgressPrinter(BaseExecutionListener):
    """Echo step progress while a workflow runs."""

    async def step_started(self, execution: WorkflowExecution, result: StepResult) -> None:
        typer.echo(f"-> {result.name} ...")

    async def step_finished(self, execution: WorkflowExecution, result: StepResult) -> None:
        status = result.status.value
        suffix = f" ({result.error.message})" if result.error else ""
        typer.secho(f"   {result.name}: {status}{suffix}", fg=_STATUS_COLORS.get(status))


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """stepwright CLI entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_config(str(config) if config else None)


def _load_catalog(config: StepwrightConfig) -> WorkflowCatalog:
    try:
        return WorkflowCatalog.from_paths(config.catalog.paths)
    except CatalogError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _repository(config: StepwrightConfig) -> ExecutionRepository:
    try:
        return get_repository(config=config)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


def _parse_params(values: List[str]) -> Dict[str, Any]:
    parameters: Dict[str, Any] = {}
    for item in values:
        key, sep, raw = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--param")
        parameters[key.strip()] = yaml.safe_load(raw) if raw else ""
    return parameters


@app.command("run")
def run_workflow(
    ctx: typer.Context,
    workflow_id: str,
    query: str,
    param: List[str] = typer.Option(
        [], "--param", "-p", help="Workflow parameter as key=value (repeatable)"
    ),
    user: str = typer.Option("cli", "--user", help="User id recorded on the execution"),
    conversation: Optional[str] = typer.Option(None, "--conversation", help="Conversation id"),
    as_json: bool = typer.Option(False, "--json", help="Print the execution as JSON"),
    save: bool = typer.Option(True, "--save/--no-save", help="Store the execution"),
) -> None:
    """
    Execute a workflow from the catalog for a user query.

    Prints step progress followed by the transcript, stores the execution in
    the configured repository and exits with code 1 when the run failed.

    Example:
        stepwright run competitor-analysis "who outranks us?" -p domain=example.com
    """
    config: StepwrightConfig = ctx.obj
    parameters = _parse_params(param)
    catalog = _load_catalog(config)
    repository = _repository(config) if save else None

    listeners: List[ExecutionListener] = []
    if not as_json:
        listeners.append(ProgressPrinter())
    if repository is not None:
        listeners.append(CheckpointRecorder(repository))
    executor = WorkflowExecutor(catalog, build_handlers(config), listeners)

    async def _run() -> WorkflowExecution:
        try:
            execution = await executor.execute(
                workflow_id,
                query,
                user_id=user,
                conversation_id=conversation or str(uuid.uuid4()),
                parameters=parameters,
            )
        except FatalWorkflowError as exc:
            typer.secho(f"Workflow aborted: {exc}", fg=typer.colors.RED)
            execution = exc.execution
        if repository is not None:
            await repository.save_execution(execution)
        return execution

    try:
        execution = asyncio.run(_run())
    except UnknownWorkflow as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=2)
    except ValueError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(execution.model_dump_json(indent=2))
    else:
        typer.echo("")
        typer.echo(render_transcript(format_transcript(execution)))
        typer.echo(f"Execution ID: {execution.id}")

    if execution.status is ExecutionStatus.FAILED:
        raise typer.Exit(code=1)


@workflow_app.command("list")
def workflow_list(ctx: typer.Context) -> None:
    """
    List all workflows in the catalog.

    Example:
        stepwright workflow list
        # Output: competitor-analysis    3 steps    Competitor Analysis
    """
    catalog = _load_catalog(ctx.obj)
    if not len(catalog):
        typer.echo("No workflows found")
        return
    for definition in catalog:
        typer.echo(
            f"{definition.id}\t{len(definition.steps)} steps\t{definition.display_name}"
        )


@workflow_app.command("show")
def workflow_show(ctx: typer.Context, workflow_id: str) -> None:
    """
    Show the steps of a workflow and the names each step input references.

    Example:
        stepwright workflow show competitor-analysis
    """
    catalog = _load_catalog(ctx.obj)
    try:
        definition = catalog.get(workflow_id)
    except UnknownWorkflow:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)

    typer.echo(f"Workflow {definition.id}: {definition.display_name}")
    if definition.description:
        typer.echo(definition.description.strip())
    for index, step in enumerate(definition.steps, start=1):
        flag = "required" if step.required else "optional"
        target = f" -> {step.config.tool}" if step.config.tool else ""
        typer.echo(f"{index}. {step.id} [{step.kind.value}{target}, {flag}]")
        refs = referenced_names(step.input)
        if refs:
            typer.echo(f"   uses: {', '.join(refs)}")


@execution_app.command("list")
def execution_list(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", help="Only this user's executions"),
    limit: int = typer.Option(DEFAULT_EXECUTION_LIST_LIMIT, "--limit", min=1),
) -> None:
    """
    List stored executions, newest first.

    Example:
        stepwright execution list --user alice
    """
    repo = _repository(ctx.obj)
    executions = asyncio.run(repo.list_executions(user_id=user, limit=limit))
    if not executions:
        typer.echo("No executions found")
        return
    for execution in executions:
        typer.echo(
            f"{execution.id}\t{execution.workflow_id}\t{execution.status.value}"
            f"\t{execution.started_at.isoformat()}"
        )


@execution_app.command("show")
def execution_show(ctx: typer.Context, execution_id: str) -> None:
    """
    Show the transcript of a stored execution.

    Example:
        stepwright execution show 3f0c...
    """
    repo = _repository(ctx.obj)
    execution = asyncio.run(repo.get_execution(execution_id))
    if execution is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(render_transcript(format_transcript(execution)))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
