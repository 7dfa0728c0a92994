"""LLM-call step handler backed by pydantic-ai agents."""

from __future__ import annotations

import asyncio
import logging
from contextlib import nullcontext
from typing import Any, Optional

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.models import Model

from ..constants import DEFAULT_LLM_MODEL
from ..contracts import StepRequest, StepSpec
from ..errors import StepHandlerError
from ..templates import to_text

logger = logging.getLogger(__name__)


class LLMStepHandler:
    """Runs the rendered step input as a prompt against an LLM.

    A fresh agent is built per call from the step's ``config.model`` (or the
    handler default) and ``config.system_prompt``. Provider errors propagate
    unchanged so the executor records them as the step's failure.
    """

    def __init__(
        self,
        default_model: str | Model = DEFAULT_LLM_MODEL,
        system_prompt: Optional[str] = None,
    ) -> None:
        self._default_model = default_model
        self._system_prompt = system_prompt

    def build_agent(self, step: StepSpec) -> Agent:
        model = step.config.model or self._default_model
        system_prompt = step.config.system_prompt or self._system_prompt
        return Agent(model, system_prompt=system_prompt or (), name=step.id)

    async def __call__(self, request: StepRequest) -> Any:
        prompt = to_text(request.input) if request.input is not None else ""
        if not prompt.strip():
            raise StepHandlerError(f"LLM step '{request.step.id}' has an empty prompt")

        agent = self.build_agent(request.step)
        timeout = request.step.config.timeout
        logger.debug(
            f"Running LLM step {request.step.id} for execution_id={request.execution_id}"
        )
        async with asyncio.timeout(timeout) if timeout else nullcontext():
            result = await agent.run(prompt)

        output = result.output
        if isinstance(output, BaseModel):
            return output.model_dump(mode="json")
        return output
