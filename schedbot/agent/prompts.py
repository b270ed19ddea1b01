"""Prompt assembly for scheduled task runs."""

from __future__ import annotations

from typing import Any

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

_TONE_LINES = {
    "friendly": [
        "- Use a warm, friendly tone - like messaging a colleague",
        "- It's okay to be casual and personable",
    ],
    "professional": [
        "- Use a professional, polished tone",
        "- Keep language clear and business-appropriate",
    ],
    "concise": [
        "- Be extremely concise - get to the point immediately",
        "- Minimize extra words and explanations",
    ],
}

_FORMAT_LINES = {
    "conversational": [
        "- Write in natural paragraphs, like a message",
        "- Avoid rigid structure or templates",
    ],
    "bullet_points": [
        "- Use bullet points for easy scanning",
        "- Keep each point brief",
    ],
    "structured": [
        "- Use clear sections with headers",
        "- Organize information logically",
    ],
}

_DEFAULT_STYLE = """## Response Style
- Write naturally, as if messaging a colleague
- Don't start by restating the task you were asked to do
- Be conversational, not robotic or templated
- Focus on what matters most, then details if needed
- Skip unnecessary preamble like "Here is the report" or "I have completed the task\""""


def build_output_instructions(
    style_presets: dict[str, Any] | None,
    custom_instructions: str | None = None,
) -> str:
    """Response-style section appended to the system prompt.

    ``style_presets`` may carry ``tone`` (friendly / professional / concise)
    and ``format`` (conversational / bullet_points / structured). Unknown
    values are ignored.
    """
    presets = style_presets or {}
    tone = presets.get("tone")
    fmt = presets.get("format")
    if not tone and not fmt and not custom_instructions:
        return _DEFAULT_STYLE

    parts = ["## Response Style"]
    parts.extend(_TONE_LINES.get(tone, []))
    parts.extend(_FORMAT_LINES.get(fmt, []))
    parts.append("- Don't start by restating the task you were asked to do")
    parts.append('- Skip unnecessary preamble like "Here is the report"')

    if custom_instructions:
        parts.extend(["", "Additional instructions:", custom_instructions])
    return "\n".join(parts)


def build_system_prompt(
    base_prompt: str | None,
    style_presets: dict[str, Any] | None = None,
    custom_instructions: str | None = None,
) -> str:
    base = base_prompt or DEFAULT_SYSTEM_PROMPT
    return f"{base}\n\n{build_output_instructions(style_presets, custom_instructions)}"


def build_task_prompt(
    task_prompt: str,
    workspace_id: str | None,
    tool_names: list[str],
) -> str:
    """Prefix the task with the execution context section."""
    if not workspace_id:
        return (
            "## IMPORTANT: No Workspace Context\n\n"
            "This scheduled execution has no workspace context, which means NO data "
            "tools are available. If the task requires workspace data, say so "
            "clearly instead of inventing it.\n\n---\n\n"
            f"{task_prompt}"
        )

    tool_list = ", ".join(tool_names) if tool_names else "None available"
    if tool_names:
        guidance = (
            "IMPORTANT: You MUST use the tools listed above to query real data from "
            "the workspace. Do NOT fabricate information. If a tool returns no data, "
            "report that clearly."
        )
    else:
        guidance = (
            "WARNING: No data tools are available for this execution. If this task "
            "requires data, clearly state that you cannot complete it without tool access."
        )
    return (
        "## Execution Context\n"
        f"- Workspace ID: {workspace_id}\n"
        "- Execution Type: Scheduled Task\n"
        f"- Available Tools: {tool_list}\n\n"
        f"{guidance}\n\n---\n\n"
        f"{task_prompt}"
    )
