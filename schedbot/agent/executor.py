"""Task execution - run one scheduled prompt through an LLM agent loop."""

from __future__ import annotations

import json
import time
from typing import Any, Protocol

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.graph import END, START, StateGraph
from loguru import logger
from pydantic import BaseModel, Field

from schedbot.agent.prompts import DEFAULT_SYSTEM_PROMPT, build_system_prompt, build_task_prompt
from schedbot.agent.state import ExecutorState
from schedbot.agent.tools import ToolRegistry, build_tool_definitions, resolve_tools
from schedbot.core.config.schema import Config
from schedbot.core.cron.types import LocalAgentConfig, Schedule, TaskResult, TaskUsage, ToolCall
from schedbot.core.providers import litellm as llm_provider
from schedbot.core.providers.litellm import setup_provider

DEFAULT_PROVIDER = "anthropic"


class TaskRequest(BaseModel):
    provider: str
    model: str | None = None
    system_prompt: str
    task_prompt: str
    tools: list[str] = Field(default_factory=list)
    workspace_id: str | None = None
    style_presets: dict[str, Any] | None = None
    custom_instructions: str | None = None


class TaskExecutor(Protocol):
    async def execute(self, request: TaskRequest) -> TaskResult: ...


class TaskExecutorAdapter:
    """Maps a schedule plus its agents onto a ``TaskRequest``.

    No retries: whatever the executor raises reaches the caller.
    """

    def __init__(self, executor: TaskExecutor, default_provider: str = DEFAULT_PROVIDER):
        self.executor = executor
        self.default_provider = default_provider or DEFAULT_PROVIDER

    async def run(
        self,
        agent_config: LocalAgentConfig,
        schedule: Schedule,
        task_prompt: str,
        provider: str | None = None,
        model: str | None = None,
        style_presets: dict[str, Any] | None = None,
        custom_instructions: str | None = None,
    ) -> TaskResult:
        definition = schedule.ai_agent
        system_prompt = (
            agent_config.system_prompt
            or (definition.system_prompt if definition else None)
            or DEFAULT_SYSTEM_PROMPT
        )
        request = TaskRequest(
            provider=provider or self.default_provider,
            model=model or None,
            system_prompt=system_prompt,
            task_prompt=task_prompt,
            tools=list(agent_config.tools),
            workspace_id=agent_config.workspace_id,
            style_presets=style_presets,
            custom_instructions=custom_instructions,
        )
        logger.debug(
            f"Running schedule {schedule.id} via {request.provider}/{request.model or 'default'} "
            f"with {len(request.tools)} tool(s)"
        )

        start = time.monotonic()
        result = await self.executor.execute(request)
        if not result.duration_ms:
            result = result.model_copy(
                update={"duration_ms": int((time.monotonic() - start) * 1000)}
            )
        return result


class LiteLLMTaskExecutor:
    """Executes tasks on LiteLLM with a bounded reason -> tools loop.

    Parameters
    ----------
    config : Config
        Application config (provider keys, default models, loop bounds).
    registry : ToolRegistry, optional
        Tools agents may reference by name. Unknown names are skipped.
    """

    def __init__(self, config: Config, registry: ToolRegistry | None = None):
        self.config = config
        self.registry = registry or {}
        setup_provider(config)

    async def execute(self, request: TaskRequest) -> TaskResult:
        model = self.config.resolve_model(request.provider, request.model)
        tools = resolve_tools(self.registry, request.tools)
        graph = self._compile(model, self.config.get_api_base(request.provider), tools)

        start = time.monotonic()
        state = await graph.ainvoke(
            {
                "messages": [
                    HumanMessage(
                        content=build_task_prompt(
                            request.task_prompt,
                            request.workspace_id,
                            [t.name for t in tools],
                        )
                    )
                ],
                "system_prompt": build_system_prompt(
                    request.system_prompt,
                    request.style_presets,
                    request.custom_instructions,
                ),
                "iteration": 0,
                "prompt_tokens": 0,
                "completion_tokens": 0,
            },
            config={"recursion_limit": self.config.executor.max_steps * 2 + 5},
        )
        duration_ms = int((time.monotonic() - start) * 1000)

        text = _final_text(state)
        calls = _collect_tool_calls(state)
        logger.debug(
            f"Task done on {model}: {len(text)} chars, {len(calls)} tool call(s), "
            f"{state.get('iteration', 0)} step(s)"
        )
        return TaskResult(
            text=text,
            tool_calls=calls,
            usage=TaskUsage(
                prompt_tokens=state.get("prompt_tokens", 0),
                completion_tokens=state.get("completion_tokens", 0),
            ),
            duration_ms=duration_ms,
        )

    def _compile(self, model: str, api_base: str | None, tools: list):
        """Build graph: reason -> execute_tools -> reason ... -> END."""
        tool_defs = build_tool_definitions(tools) if tools else None
        tool_map = {t.name: t for t in tools}
        settings = self.config.executor
        max_steps = settings.max_steps

        async def reason(state: ExecutorState) -> dict[str, Any]:
            messages = [{"role": "system", "content": state["system_prompt"]}]
            for msg in state["messages"]:
                messages.append(_to_dict(msg))

            # Last step: no more tools, answer with what we have
            use_tools = tool_defs
            if state["iteration"] >= max_steps - 1:
                use_tools = None
                if tool_defs:
                    messages.append({
                        "role": "user",
                        "content": "Summarize your findings now. Do not make any more tool calls.",
                    })

            ai_message = await llm_provider.achat(
                messages=messages,
                model=model,
                tools=use_tools,
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
                api_base=api_base,
            )
            usage = ai_message.response_metadata.get("usage", {})
            return {
                "messages": [ai_message],
                "iteration": state["iteration"] + 1,
                "prompt_tokens": state["prompt_tokens"] + usage.get("prompt_tokens", 0),
                "completion_tokens": state["completion_tokens"]
                + usage.get("completion_tokens", 0),
            }

        async def execute_tools(state: ExecutorState) -> dict[str, Any]:
            last_msg = state["messages"][-1]
            results = []
            for call in last_msg.tool_calls:
                tool = tool_map.get(call["name"])
                if tool is None:
                    result = f"Tool '{call['name']}' not found"
                else:
                    try:
                        result = await tool.ainvoke(call["args"])
                    except Exception as e:
                        logger.warning(f"Tool {call['name']} failed: {e}")
                        result = f"Tool error: {e}"
                results.append(ToolMessage(content=str(result), tool_call_id=call["id"]))
            return {"messages": results}

        def should_continue(state: ExecutorState) -> str:
            last_msg = state["messages"][-1]
            if state["iteration"] >= max_steps:
                return END
            if isinstance(last_msg, AIMessage) and last_msg.tool_calls:
                return "execute_tools"
            return END

        graph = StateGraph(ExecutorState)
        graph.add_node("reason", reason)
        graph.add_node("execute_tools", execute_tools)
        graph.add_edge(START, "reason")
        graph.add_conditional_edges("reason", should_continue)
        graph.add_edge("execute_tools", "reason")
        return graph.compile()


def _to_dict(msg: Any) -> dict[str, Any]:
    """Convert LangChain message to dict for litellm."""
    if isinstance(msg, HumanMessage):
        return {"role": "user", "content": msg.content}
    if isinstance(msg, AIMessage):
        d: dict[str, Any] = {"role": "assistant", "content": msg.content}
        if msg.tool_calls:
            d["tool_calls"] = [
                {
                    "id": tc["id"],
                    "type": "function",
                    "function": {"name": tc["name"], "arguments": json.dumps(tc["args"])},
                }
                for tc in msg.tool_calls
            ]
        return d
    if isinstance(msg, ToolMessage):
        return {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
    if isinstance(msg, SystemMessage):
        return {"role": "system", "content": msg.content}
    return {"role": "user", "content": str(msg.content)}


def _final_text(state: dict) -> str:
    for msg in reversed(state["messages"]):
        if isinstance(msg, AIMessage) and msg.content and not msg.tool_calls:
            return msg.content
    return ""


def _collect_tool_calls(state: dict) -> list[ToolCall]:
    """Pair each requested tool call with the ToolMessage that answered it."""
    outputs = {
        msg.tool_call_id: msg.content
        for msg in state["messages"]
        if isinstance(msg, ToolMessage)
    }
    calls = []
    for msg in state["messages"]:
        if isinstance(msg, AIMessage) and msg.tool_calls:
            for tc in msg.tool_calls:
                calls.append(
                    ToolCall(
                        tool_name=tc["name"],
                        args=tc["args"],
                        result=outputs.get(tc["id"]),
                    )
                )
    return calls
