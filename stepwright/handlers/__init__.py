"""Step handlers and the registry the executor dispatches through."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping, Optional, Protocol

from ..config import StepwrightConfig
from ..contracts import StepKind, StepRequest
from .llm import LLMStepHandler
from .tools import LocalToolHandler, McpToolHandler, ToolRouter

logger = logging.getLogger(__name__)


class StepHandler(Protocol):
    """Performs the external call behind one step kind."""

    async def __call__(self, request: StepRequest) -> Any:
        """Return the step output or raise to fail the step."""


class HandlerRegistry:
    """Lookup of the handler responsible for each ``StepKind``."""

    def __init__(self, handlers: Optional[Mapping[StepKind, StepHandler]] = None) -> None:
        self._handlers: Dict[StepKind, StepHandler] = {}
        for kind, handler in (handlers or {}).items():
            self.register(kind, handler)

    def register(self, kind: StepKind | str, handler: StepHandler) -> None:
        kind = StepKind(kind)
        if kind in self._handlers:
            logger.debug(f"Replacing handler for step kind {kind.value}")
        self._handlers[kind] = handler

    def resolve(self, kind: StepKind) -> StepHandler:
        """Return the handler for ``kind``.

        Raises:
            KeyError: If no handler was registered for ``kind``.
        """
        return self._handlers[StepKind(kind)]

    def kinds(self) -> list[StepKind]:
        return [kind for kind in StepKind if kind in self._handlers]

    def __contains__(self, kind: object) -> bool:
        return kind in self._handlers


def build_handlers(
    config: StepwrightConfig,
    tools: Optional[Mapping[str, Callable[..., Any]]] = None,
) -> HandlerRegistry:
    """Create the handler registry described by ``config``.

    ``tools`` registers local Python callables; tools not found locally are
    sent to the MCP endpoint when one is configured.
    """
    llm = LLMStepHandler(
        default_model=config.llm.default_model,
        system_prompt=config.llm.system_prompt,
    )
    remote = None
    if config.tools.endpoint:
        remote = McpToolHandler(
            config.tools.endpoint,
            timeout=config.tools.timeout,
            max_retries=config.tools.max_retries,
            headers=config.tools.headers,
        )
    router = ToolRouter(LocalToolHandler(tools), fallback=remote)
    return HandlerRegistry({StepKind.LLM_CALL: llm, StepKind.TOOL_CALL: router})


__all__ = [
    "StepHandler",
    "HandlerRegistry",
    "LLMStepHandler",
    "LocalToolHandler",
    "McpToolHandler",
    "ToolRouter",
    "build_handlers",
]
