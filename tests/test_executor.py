"""Tests for the task executor adapter and the LiteLLM executor."""

from unittest.mock import AsyncMock, patch

import pytest
from langchain_core.messages import AIMessage

from schedbot.agent.executor import LiteLLMTaskExecutor, TaskExecutorAdapter, TaskRequest
from schedbot.agent.prompts import build_output_instructions, build_task_prompt
from schedbot.agent.tools import build_tool_registry, resolve_tools
from schedbot.core.config import Config
from schedbot.core.cron.processor import build_processor
from schedbot.core.cron.types import AgentDefinition, LocalAgentConfig, Schedule
from tests.conftest import FakeExecutor

_PATCH_ACHAT = "schedbot.core.providers.litellm.achat"


def _agent(**kw) -> LocalAgentConfig:
    return LocalAgentConfig(id="local-1", ai_agent_id="ai-1", workspace_id="ws-1", **kw)


def _schedule(definition: AgentDefinition | None = None) -> Schedule:
    return Schedule(
        id="s1", agent_id="ai-1", name="Daily", cron_expression="0 9 * * *",
        task_prompt="Report", ai_agent=definition,
    )


def _ai(content="", tool_calls=None, prompt=10, completion=5) -> AIMessage:
    return AIMessage(
        content=content,
        tool_calls=tool_calls or [],
        response_metadata={"usage": {"prompt_tokens": prompt, "completion_tokens": completion}},
    )


# ── TaskExecutorAdapter ─────────────────────────────────────


@pytest.mark.asyncio
async def test_adapter_defaults():
    fake = FakeExecutor()
    await TaskExecutorAdapter(fake).run(_agent(), _schedule(), "Report")

    request = fake.requests[0]
    assert request.provider == "anthropic"
    assert request.model is None
    assert request.system_prompt == "You are a helpful AI assistant."
    assert request.workspace_id == "ws-1"


@pytest.mark.asyncio
async def test_adapter_system_prompt_precedence():
    definition = AgentDefinition(id="ai-1", system_prompt="Definition prompt")

    fake = FakeExecutor()
    await TaskExecutorAdapter(fake).run(_agent(), _schedule(definition), "Report")
    assert fake.requests[0].system_prompt == "Definition prompt"

    fake = FakeExecutor()
    await TaskExecutorAdapter(fake).run(
        _agent(system_prompt="Local prompt"), _schedule(definition), "Report"
    )
    assert fake.requests[0].system_prompt == "Local prompt"


@pytest.mark.asyncio
async def test_adapter_passes_through():
    fake = FakeExecutor()
    await TaskExecutorAdapter(fake).run(
        _agent(tools=["current_time"]),
        _schedule(),
        "Report",
        provider="openai",
        model="gpt-4o",
        style_presets={"tone": "concise"},
        custom_instructions="Use emoji",
    )
    request = fake.requests[0]
    assert (request.provider, request.model) == ("openai", "gpt-4o")
    assert request.tools == ["current_time"]
    assert request.style_presets == {"tone": "concise"}
    assert request.custom_instructions == "Use emoji"


@pytest.mark.asyncio
async def test_adapter_no_retry():
    fake = FakeExecutor(error=RuntimeError("provider down"))
    with pytest.raises(RuntimeError, match="provider down"):
        await TaskExecutorAdapter(fake).run(_agent(), _schedule(), "Report")
    assert len(fake.requests) == 1


@pytest.mark.asyncio
async def test_adapter_configured_default_provider():
    fake = FakeExecutor()
    await TaskExecutorAdapter(fake, default_provider="xai").run(_agent(), _schedule(), "Report")
    assert fake.requests[0].provider == "xai"


@pytest.mark.asyncio
async def test_build_processor_uses_config_default_provider(store):
    processor = build_processor(Config(executor={"default_provider": "xai"}), store)
    fake = FakeExecutor()
    processor.adapter.executor = fake

    await processor.adapter.run(_agent(), _schedule(), "Report")
    assert fake.requests[0].provider == "xai"


# ── LiteLLMTaskExecutor ─────────────────────────────────────


def _request(**kw) -> TaskRequest:
    base = dict(provider="openai", model="gpt-4o", system_prompt="Be brief.", task_prompt="Report")
    base.update(kw)
    return TaskRequest(**base)


@pytest.mark.asyncio
async def test_litellm_executor_plain_answer():
    achat = AsyncMock(return_value=_ai("Here it is."))
    with patch(_PATCH_ACHAT, achat):
        result = await LiteLLMTaskExecutor(Config()).execute(_request())

    assert result.text == "Here it is."
    assert result.tool_calls == []
    assert (result.usage.prompt_tokens, result.usage.completion_tokens) == (10, 5)
    kwargs = achat.call_args.kwargs
    assert kwargs["model"] == "openai/gpt-4o"
    assert kwargs["tools"] is None
    assert kwargs["messages"][0]["role"] == "system"
    assert kwargs["messages"][0]["content"].startswith("Be brief.")


@pytest.mark.asyncio
async def test_litellm_executor_tool_loop(store):
    achat = AsyncMock(
        side_effect=[
            _ai(tool_calls=[{"id": "c1", "name": "current_time", "args": {"timezone": "UTC"}}]),
            _ai("It is morning.", prompt=20, completion=7),
        ]
    )
    executor = LiteLLMTaskExecutor(Config(), registry=build_tool_registry(store))
    with patch(_PATCH_ACHAT, achat):
        result = await executor.execute(_request(tools=["current_time"], workspace_id="ws-1"))

    assert result.text == "It is morning."
    assert len(result.tool_calls) == 1
    assert result.tool_calls[0].tool_name == "current_time"
    assert result.tool_calls[0].args == {"timezone": "UTC"}
    assert "UTC" in result.tool_calls[0].result
    assert (result.usage.prompt_tokens, result.usage.completion_tokens) == (30, 12)

    first = achat.call_args_list[0].kwargs
    assert first["tools"][0]["function"]["name"] == "current_time"
    second_messages = achat.call_args_list[1].kwargs["messages"]
    assert second_messages[-1]["role"] == "tool"


@pytest.mark.asyncio
async def test_litellm_executor_step_limit(store):
    """The last step is offered no tools, so the loop ends."""
    looping = _ai(tool_calls=[{"id": "c", "name": "current_time", "args": {}}])
    achat = AsyncMock(side_effect=[looping, _ai("Final.")])
    executor = LiteLLMTaskExecutor(
        Config(executor={"max_steps": 2}), registry=build_tool_registry(store)
    )
    with patch(_PATCH_ACHAT, achat):
        result = await executor.execute(_request(tools=["current_time"]))

    assert achat.await_count == 2
    assert achat.call_args_list[1].kwargs["tools"] is None
    assert result.text == "Final."


@pytest.mark.asyncio
async def test_litellm_executor_error_propagates():
    achat = AsyncMock(side_effect=RuntimeError("401 invalid api key"))
    with patch(_PATCH_ACHAT, achat), pytest.raises(RuntimeError):
        await LiteLLMTaskExecutor(Config()).execute(_request())


# ── Prompts / tools ─────────────────────────────────────────


def test_output_instructions_default():
    text = build_output_instructions(None)
    assert text.startswith("## Response Style")
    assert "restating the task" in text


def test_output_instructions_presets():
    text = build_output_instructions({"tone": "concise", "format": "bullet_points"}, "Sign as Bot")
    assert "extremely concise" in text
    assert "bullet points" in text
    assert text.endswith("Sign as Bot")


def test_task_prompt_context():
    with_ws = build_task_prompt("Report", "ws-1", ["current_time"])
    assert "Workspace ID: ws-1" in with_ws
    assert "Available Tools: current_time" in with_ws
    assert with_ws.endswith("Report")
    assert "No Workspace Context" in build_task_prompt("Report", None, [])


def test_resolve_tools_skips_unknown(store):
    registry = build_tool_registry(store)
    tools = resolve_tools(registry, ["current_time", "nope"])
    assert [t.name for t in tools] == ["current_time"]
    assert resolve_tools(registry, None) == []
