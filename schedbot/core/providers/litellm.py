"""LiteLLM provider - thin wrapper that returns LangChain AIMessage."""

from __future__ import annotations

import json
import os
from typing import Any

import litellm
from langchain_core.messages import AIMessage
from loguru import logger

from schedbot.core.config.schema import Config

# Suppress litellm noise
litellm.suppress_debug_info = True

_ENV_KEYS = {
    "anthropic": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "xai": "XAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
}


def setup_provider(config: Config) -> None:
    """Export configured API keys for LiteLLM. Existing env vars win."""
    for provider, env_name in _ENV_KEYS.items():
        p = config.get_provider(provider)
        if p and p.api_key:
            os.environ.setdefault(env_name, p.api_key)


async def achat(
    messages: list[dict[str, Any]],
    model: str,
    tools: list[dict[str, Any]] | None = None,
    temperature: float = 0.7,
    max_tokens: int = 4096,
    api_base: str | None = None,
) -> AIMessage:
    """Call LiteLLM and return a LangChain AIMessage. Provider errors propagate."""
    kwargs: dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if tools:
        kwargs["tools"] = tools
        kwargs["tool_choice"] = "auto"
    if api_base:
        kwargs["api_base"] = api_base

    try:
        response = await litellm.acompletion(**kwargs)
    except Exception as e:
        logger.error(f"LLM error ({model}): {e}")
        raise
    return _to_ai_message(response)


def _to_ai_message(response: Any) -> AIMessage:
    """Convert litellm response → LangChain AIMessage."""
    choice = response.choices[0]
    msg = choice.message

    tool_calls = []
    if getattr(msg, "tool_calls", None):
        for tc in msg.tool_calls:
            args = tc.function.arguments
            if isinstance(args, str):
                try:
                    args = json.loads(args) if args else {}
                except json.JSONDecodeError:
                    args = {"raw": args}
            tool_calls.append({"id": tc.id, "name": tc.function.name, "args": args})

    usage = getattr(response, "usage", None)
    return AIMessage(
        content=msg.content or "",
        tool_calls=tool_calls,
        response_metadata={
            "finish_reason": choice.finish_reason or "stop",
            "usage": {
                "prompt_tokens": getattr(usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(usage, "completion_tokens", 0) or 0,
            },
        },
    )
