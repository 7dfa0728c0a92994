"""LLM step handler tests using pydantic-ai test models."""

import asyncio

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel
from pydantic_ai.models.test import TestModel

from stepwright.contracts import StepRequest, StepSpec
from stepwright.errors import StepHandlerError
from stepwright.handlers.llm import LLMStepHandler


def _request(input, **step_kwargs):
    return StepRequest(
        step=StepSpec(id="summarize", kind="llm-call", **step_kwargs),
        input=input,
        execution_id="exec-1",
        user_id="alice",
        conversation_id="conv-1",
    )


class PromptCapture:
    """FunctionModel callback that records prompts and echoes a reply."""

    def __init__(self, reply="done"):
        self.reply = reply
        self.system_prompts = []
        self.user_prompts = []

    def __call__(self, messages: list[ModelMessage], info: AgentInfo) -> ModelResponse:
        for part in messages[0].parts:
            if part.part_kind == "system-prompt":
                self.system_prompts.append(part.content)
            elif part.part_kind == "user-prompt":
                self.user_prompts.append(part.content)
        return ModelResponse(parts=[TextPart(self.reply)])


@pytest.mark.asyncio
async def test_returns_model_text():
    handler = LLMStepHandler(default_model=TestModel(custom_output_text="two competitors"))
    output = await handler(_request("Summarize the pages"))
    assert output == "two competitors"


@pytest.mark.asyncio
async def test_prompt_and_system_prompt_are_sent():
    capture = PromptCapture(reply="- a.com")
    handler = LLMStepHandler(default_model=FunctionModel(capture), system_prompt="Be brief.")

    output = await handler(_request("Format {{ done }}"))

    assert output == "- a.com"
    assert capture.user_prompts == ["Format {{ done }}"]
    assert capture.system_prompts == ["Be brief."]


@pytest.mark.asyncio
async def test_step_config_overrides_defaults():
    capture = PromptCapture()
    handler = LLMStepHandler(default_model=FunctionModel(capture), system_prompt="Default.")

    await handler(_request("hi", config={"system_prompt": "You are an SEO analyst."}))
    assert capture.system_prompts == ["You are an SEO analyst."]

    agent = handler.build_agent(StepSpec(id="x", kind="llm-call", config={"model": "test"}))
    assert isinstance(agent.model, TestModel)
    assert agent.name == "x"


@pytest.mark.asyncio
async def test_structured_input_is_sent_as_json():
    capture = PromptCapture()
    handler = LLMStepHandler(default_model=FunctionModel(capture))

    await handler(_request({"pages": ["a.com", "b.com"]}))
    assert capture.user_prompts == ['{"pages": ["a.com", "b.com"]}']
    assert capture.system_prompts == []


@pytest.mark.asyncio
@pytest.mark.parametrize("prompt", [None, "", "   ", "\n\t"])
async def test_empty_prompt_is_rejected(prompt):
    handler = LLMStepHandler(default_model=TestModel())
    with pytest.raises(StepHandlerError, match="empty prompt"):
        await handler(_request(prompt))


@pytest.mark.asyncio
async def test_step_timeout_is_enforced():
    async def slow(messages, info):
        await asyncio.sleep(1)
        return ModelResponse(parts=[TextPart("too late")])

    handler = LLMStepHandler(default_model=FunctionModel(slow))
    with pytest.raises(TimeoutError):
        await handler(_request("hi", config={"timeout": 0.05}))


@pytest.mark.asyncio
async def test_provider_errors_propagate():
    def broken(messages, info):
        raise RuntimeError("provider unavailable")

    handler = LLMStepHandler(default_model=FunctionModel(broken))
    with pytest.raises(RuntimeError, match="provider unavailable"):
        await handler(_request("hi"))
