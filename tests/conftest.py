"""Shared fixtures: tmp SQLite store seeded with one workspace agent."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from schedbot.core.cron.types import TaskResult, TaskUsage, ToolCall
from schedbot.memory.store import ScheduleStore

NOW = datetime(2025, 1, 15, 9, 0, 30, tzinfo=timezone.utc)
WORKSPACE = "ws-1"
AI_AGENT = "ai-1"


@pytest.fixture
def store(tmp_path):
    return ScheduleStore(str(tmp_path / "test.db"))


@pytest.fixture
def seeded(store):
    """Agent definition + active local agent + workspace owner.

    Also holds schedule ``s1`` (never due) for execution-level tests.
    """
    store.upsert_ai_agent(
        AI_AGENT, "Reporter", system_prompt="You write reports.", provider="openai", model="gpt-4o"
    )
    store.add_local_agent(AI_AGENT, WORKSPACE, tools=["current_time"], agent_id="local-1")
    store.add_workspace_member(WORKSPACE, "owner-1", role="owner")
    store.add_schedule(
        AI_AGENT, "Idle", "0 0 1 1 *", "noop", workspace_id=WORKSPACE, schedule_id="s1"
    )
    return store


class FakeExecutor:
    """TaskExecutor double: returns a fixed result or raises."""

    def __init__(self, text: str = "All good.", error: Exception | None = None):
        self.text = text
        self.error = error
        self.requests = []

    async def execute(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return TaskResult(
            text=self.text,
            tool_calls=[ToolCall(tool_name="current_time", args={}, result="09:00")],
            usage=TaskUsage(prompt_tokens=120, completion_tokens=30),
            duration_ms=1500,
        )


class RecordingMessenger:
    def __init__(self, fail_for: set[str] | None = None):
        self.sent = []
        self.fail_for = fail_for or set()

    async def send(self, message):
        from schedbot.core.channels.messaging import SendResult

        if message.recipient_profile_id in self.fail_for:
            raise RuntimeError("delivery down")
        self.sent.append(message)
        return SendResult(success=True, message_id=f"m{len(self.sent)}")
