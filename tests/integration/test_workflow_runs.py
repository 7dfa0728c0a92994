"""End-to-end runs of the sample workflows.

LLM steps use a pydantic-ai ``FunctionModel`` and remote tools go to an in-memory
MCP server, so no network access or API key is needed.
"""

from pathlib import Path

import pytest
from mcp import types
from mcp.server.lowlevel import Server
from mcp.shared.memory import create_connected_server_and_client_session
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from stepwright import ExecutionStatus, StepStatus, WorkflowCatalog, WorkflowExecutor
from stepwright.contracts import StepKind
from stepwright.handlers import HandlerRegistry
from stepwright.handlers.llm import LLMStepHandler
from stepwright.handlers.tools import LocalToolHandler, McpToolHandler, ToolRouter
from stepwright.persistence import CheckpointRecorder, SQLiteExecutionRepository
from stepwright.transcript import format_transcript, render_transcript

WORKFLOWS = Path(__file__).parent.parent / "fixtures" / "workflows"


def seo_analyst(messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
    prompt = next(
        part.content for part in messages[0].parts if part.part_kind == "user-prompt"
    )
    if prompt.startswith("Summarize"):
        reply = "rival.com outranks example.com on 2 of 3 keywords"
    elif prompt.startswith("Format"):
        reply = "- rival.com leads on 2 keywords"
    else:
        reply = f"Brief: {prompt}"
    return ModelResponse(parts=[TextPart(reply)])


def mcp_server(calls):
    server = Server("seo-tools")

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(name=name, description=name, inputSchema={"type": "object"})
            for name in ("search_competitors", "keyword_volume")
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict):
        calls.append((name, arguments))
        if name == "search_competitors":
            return {"domain": arguments["domain"], "competitors": ["rival.com", "other.com"]}
        raise RuntimeError("volume API offline")

    return server


def build_executor(calls, repository=None):
    server = mcp_server(calls)
    remote = McpToolHandler(
        "http://tools.test/mcp",
        session_factory=lambda: create_connected_server_and_client_session(server),
    )
    local = LocalToolHandler(
        {"related_keywords": lambda topic: {"keywords": [topic, f"{topic} for beginners"]}}
    )
    handlers = HandlerRegistry(
        {
            StepKind.LLM_CALL: LLMStepHandler(default_model=FunctionModel(seo_analyst)),
            StepKind.TOOL_CALL: ToolRouter(local, fallback=remote),
        }
    )
    listeners = [CheckpointRecorder(repository)] if repository is not None else []
    return WorkflowExecutor(WorkflowCatalog.from_paths([WORKFLOWS]), handlers, listeners)


@pytest.mark.asyncio
async def test_competitor_analysis_end_to_end(tmp_path):
    calls = []
    repository = SQLiteExecutionRepository(tmp_path / "runs.db")
    executor = build_executor(calls, repository)

    execution = await executor.execute(
        "competitor-analysis",
        "who outranks us for trail shoes?",
        user_id="alice",
        parameters={"domain": "example.com"},
    )
    await repository.save_execution(execution)

    assert execution.status is ExecutionStatus.COMPLETED
    fetch, summarize, fmt = execution.step_results
    assert fetch.output == {"domain": "example.com", "competitors": ["rival.com", "other.com"]}
    assert summarize.input.startswith("Summarize the competitors for 'who outranks us for trail shoes?'")
    assert '"rival.com"' in summarize.input
    assert fmt.output == "- rival.com leads on 2 keywords"

    assert calls == [
        (
            "search_competitors",
            {"domain": "example.com", "query": "who outranks us for trail shoes?"},
        )
    ]

    stored = await repository.get_execution(execution.id)
    assert stored == execution
    checkpoint = await repository.latest_checkpoint(execution.id)
    assert checkpoint.step_id == "format"
    assert checkpoint.kind == "step_complete"

    text = render_transcript(format_transcript(stored))
    assert text.startswith("# Workflow competitor-analysis: COMPLETED")
    assert "- Success Rate: 100%" in text


@pytest.mark.asyncio
async def test_content_brief_optional_tool_failure_is_partial():
    calls = []
    executor = build_executor(calls)

    execution = await executor.execute("content-brief", "trail shoes", user_id="bob")

    assert execution.status is ExecutionStatus.PARTIAL
    keywords, enrich, brief = execution.step_results
    assert keywords.status is StepStatus.COMPLETED
    assert keywords.output == {"keywords": ["trail shoes", "trail shoes for beginners"]}
    assert enrich.status is StepStatus.FAILED
    assert enrich.input == {"keywords": ["trail shoes", "trail shoes for beginners"]}
    assert "volume API offline" in enrich.error.message
    assert brief.status is StepStatus.COMPLETED
    assert brief.output == (
        'Brief: Write a content brief about trail shoes using '
        '["trail shoes", "trail shoes for beginners"]'
    )

    transcript = format_transcript(execution)
    assert transcript.summary == "Executed 3 steps: 2 completed, 1 failed, 0 skipped."
    assert [name for name, _ in calls] == ["keyword_volume"]


@pytest.mark.asyncio
async def test_missing_parameter_fails_required_step():
    executor = build_executor([])

    execution = await executor.execute("competitor-analysis", "who outranks us?", user_id="alice")

    assert execution.status is ExecutionStatus.FAILED
    fetch = execution.result_for("fetch")
    assert fetch.error.kind == "TemplateResolutionError"
    assert "domain" in fetch.error.message
    assert [r.status for r in execution.step_results[1:]] == [StepStatus.SKIPPED] * 2
