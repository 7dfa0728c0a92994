"""Tool-call step handlers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from contextlib import asynccontextmanager, nullcontext
from datetime import timedelta
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Dict, List, Optional

import httpx
from mcp import ClientSession, McpError, types
from mcp.client.streamable_http import streamablehttp_client

from ..constants import DEFAULT_TOOL_MAX_RETRIES, DEFAULT_TOOL_TIMEOUT
from ..contracts import StepRequest
from ..errors import ToolCallError
from ..utils import retry

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[ClientSession]]


def _tool_arguments(request: StepRequest) -> Dict[str, Any]:
    tool = request.step.config.tool or ""
    if request.input is None:
        return {}
    if not isinstance(request.input, Mapping):
        raise ToolCallError(
            tool, f"arguments must be a mapping, got {type(request.input).__name__}"
        )
    return dict(request.input)


class LocalToolHandler:
    """Dispatches tool calls to registered Python callables.

    Callables receive the rendered arguments as keyword arguments and may be
    plain functions or coroutines.
    """

    def __init__(self, tools: Optional[Mapping[str, Callable[..., Any]]] = None) -> None:
        self._tools: Dict[str, Callable[..., Any]] = dict(tools or {})

    def register(self, name: str, func: Callable[..., Any]) -> None:
        self._tools[name] = func

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def __call__(self, request: StepRequest) -> Any:
        tool = request.step.config.tool or ""
        func = self._tools.get(tool)
        if func is None:
            raise ToolCallError(tool, "tool is not registered")
        arguments = _tool_arguments(request)
        timeout = request.step.config.timeout

        async with asyncio.timeout(timeout) if timeout else nullcontext():
            result = func(**arguments)
            if inspect.isawaitable(result):
                result = await result
        return result


def _leaf_errors(exc: BaseException) -> List[BaseException]:
    """Flatten the exception groups raised by the SDK's task groups."""
    if isinstance(exc, BaseExceptionGroup):
        leaves: List[BaseException] = []
        for inner in exc.exceptions:
            leaves.extend(_leaf_errors(inner))
        return leaves
    return [exc]


def _describe(exc: BaseException) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}"
    if isinstance(exc, McpError):
        return f"{exc.error.message} (code {exc.error.code})"
    return f"{type(exc).__name__}: {exc}"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    # The streamable HTTP client reports a lost connection as a request timeout.
    return isinstance(exc, McpError) and exc.error.code == httpx.codes.REQUEST_TIMEOUT


def _project_result(tool: str, result: types.CallToolResult) -> Any:
    texts = [block.text for block in result.content if isinstance(block, types.TextContent)]
    if result.isError:
        raise ToolCallError(tool, "\n".join(texts) or "tool reported an error")
    if result.structuredContent is not None:
        return result.structuredContent
    if texts and len(texts) == len(result.content):
        return "\n".join(texts)
    return [block.model_dump(mode="json", exclude_none=True) for block in result.content]


class McpToolHandler:
    """Invokes tools on a remote MCP server over streamable HTTP.

    Each call opens its own ``ClientSession``, so a session dropped by the
    server is re-initialized on the next call. Transport errors, 5xx
    responses and lost connections are retried with exponential backoff;
    any other failure raises ``ToolCallError``.

    ``session_factory`` replaces the HTTP session with any async context
    manager yielding an initialized ``ClientSession`` (an in-memory server in
    tests). ``httpx_client_factory`` is passed through to the SDK client.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TOOL_TIMEOUT,
        max_retries: int = DEFAULT_TOOL_MAX_RETRIES,
        headers: Optional[Dict[str, str]] = None,
        session_factory: Optional[SessionFactory] = None,
        httpx_client_factory: Optional[Callable[..., httpx.AsyncClient]] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.max_retries = max_retries
        self._headers = dict(headers or {})
        self._session_factory = session_factory or self._open_session
        self._httpx_client_factory = httpx_client_factory

    @asynccontextmanager
    async def _open_session(self) -> AsyncIterator[ClientSession]:
        timeout = timedelta(seconds=self.timeout)
        client_options: Dict[str, Any] = {}
        if self._httpx_client_factory is not None:
            client_options["httpx_client_factory"] = self._httpx_client_factory
        async with streamablehttp_client(
            self.endpoint, headers=self._headers, timeout=timeout, **client_options
        ) as (read_stream, write_stream, _):
            async with ClientSession(
                read_stream,
                write_stream,
                read_timeout_seconds=timeout,
            ) as session:
                await session.initialize()
                logger.debug(f"MCP session initialized at {self.endpoint}")
                yield session

    async def call_tool(
        self, tool: str, arguments: Dict[str, Any], timeout: Optional[float] = None
    ) -> Any:
        read_timeout = timedelta(seconds=timeout or self.timeout)
        last_error = "no attempt made"
        for attempt in range(1, self.max_retries + 2):
            try:
                async with self._session_factory() as session:
                    result = await session.call_tool(
                        tool, arguments, read_timeout_seconds=read_timeout
                    )
            except Exception as exc:
                leaves = _leaf_errors(exc)
                transient = next((leaf for leaf in leaves if _is_transient(leaf)), None)
                if transient is None:
                    raise ToolCallError(tool, _describe(leaves[0])) from exc
                last_error = _describe(transient)
            else:
                return _project_result(tool, result)

            if attempt <= self.max_retries:
                logger.warning(
                    f"Tool {tool} request failed ({last_error}), retrying (attempt {attempt})"
                )
                await retry.schedule_retry(attempt)
        raise ToolCallError(tool, f"gave up after {self.max_retries + 1} attempts: {last_error}")

    async def __call__(self, request: StepRequest) -> Any:
        tool = request.step.config.tool or ""
        return await self.call_tool(
            tool, _tool_arguments(request), timeout=request.step.config.timeout
        )


class ToolRouter:
    """Routes locally registered tools to ``local``, the rest to ``fallback``."""

    def __init__(self, local: LocalToolHandler, fallback: Optional[Any] = None) -> None:
        self.local = local
        self.fallback = fallback

    async def __call__(self, request: StepRequest) -> Any:
        tool = request.step.config.tool or ""
        if tool in self.local:
            return await self.local(request)
        if self.fallback is not None:
            return await self.fallback(request)
        raise ToolCallError(tool, "tool is not registered and no remote endpoint is configured")
