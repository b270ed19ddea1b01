"""Tool registry for scheduled agents."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from langchain_core.tools import BaseTool, tool
from loguru import logger

if TYPE_CHECKING:
    from schedbot.memory.store import ScheduleStore

ToolRegistry = dict[str, BaseTool]


def make_schedule_tools(store: ScheduleStore) -> list[BaseTool]:
    """Read-only tools backed by the schedule store."""

    @tool
    def current_time(timezone: str = "UTC") -> str:
        """Return the current date and time.

        Parameters
        ----------
        timezone : str
            IANA timezone name, e.g. 'Europe/Istanbul' (default UTC).
        """
        try:
            tz = ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return f"Unknown timezone: {timezone}"
        return datetime.now(tz).strftime("%Y-%m-%d %H:%M:%S %Z")

    @tool
    def recent_runs(schedule_id: str, limit: int = 5) -> str:
        """List the most recent runs of a scheduled task with their outcome.

        Parameters
        ----------
        schedule_id : str
            Schedule whose history to show.
        limit : int
            Max number of runs (default 5).
        """
        executions = store.list_executions(schedule_id=schedule_id, limit=limit)
        if not executions:
            return "No previous runs."
        lines = []
        for ex in executions:
            when = ex.scheduled_for.isoformat() if ex.scheduled_for else "?"
            line = f"- {when}: {ex.status.value}"
            if ex.error_message:
                line += f" ({ex.error_message[:100]})"
            lines.append(line)
        return "\n".join(lines)

    return [current_time, recent_runs]


def build_tool_registry(store: ScheduleStore | None = None) -> ToolRegistry:
    registry: ToolRegistry = {}
    if store is not None:
        for t in make_schedule_tools(store):
            registry[t.name] = t
    return registry


def resolve_tools(registry: ToolRegistry, tool_names: list[str] | None) -> list[BaseTool]:
    """Resolve an agent's tool names; unknown names are skipped with a warning."""
    resolved = []
    for name in tool_names or []:
        if name in registry:
            resolved.append(registry[name])
        else:
            logger.warning(f"Tool '{name}' not found in registry, skipping")
    return resolved


def build_tool_definitions(tools: list[BaseTool]) -> list[dict[str, Any]]:
    """Convert LangChain tools to OpenAI function format."""
    defs = []
    for t in tools:
        schema = t.args_schema.model_json_schema() if t.args_schema else {}
        defs.append(
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description or "",
                    "parameters": schema,
                },
            }
        )
    return defs
