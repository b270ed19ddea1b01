"""Schedule / execution types - mirror the SQLite tables."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ExecutionStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class AgentDefinition(BaseModel):
    """Global agent definition (ai_agents row)."""

    id: str
    name: str = ""
    system_prompt: str | None = None
    provider: str | None = None
    model: str | None = None


class Schedule(BaseModel):
    """Recurring agent task - agent_schedules row with its agent definition."""

    id: str
    agent_id: str
    workspace_id: str | None = None
    name: str
    cron_expression: str
    timezone: str | None = None
    task_prompt: str
    requires_approval: bool = False
    is_enabled: bool = True
    next_run_at: datetime | None = None
    last_run_at: datetime | None = None
    created_by: str | None = None
    ai_agent: AgentDefinition | None = None


class LocalAgentConfig(BaseModel):
    """Workspace-scoped agent runtime config (agents row)."""

    id: str
    ai_agent_id: str
    workspace_id: str
    tools: list[str] = Field(default_factory=list)
    system_prompt: str | None = None
    reports_to: list[str] | None = None
    style_presets: dict[str, Any] | None = None
    custom_instructions: str | None = None
    is_active: bool = True


class ToolCall(BaseModel):
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class TaskUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


class TaskResult(BaseModel):
    """What the task executor hands back on success."""

    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: TaskUsage = Field(default_factory=TaskUsage)
    duration_ms: int = 0


class Execution(BaseModel):
    """One run attempt - agent_schedule_executions row."""

    id: str
    schedule_id: str
    agent_id: str
    scheduled_for: datetime | None = None
    status: ExecutionStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: dict[str, Any] | None = None
    tool_calls: list[ToolCall] | None = None
    tokens_input: int | None = None
    tokens_output: int | None = None
    duration_ms: int | None = None
    error_message: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    schedule: Schedule | None = None  # set by approved-execution queries


class DLQEntry(BaseModel):
    """Dead-letter record for a failed execution."""

    id: str
    execution_id: str
    schedule_id: str | None = None
    agent_id: str | None = None
    error_message: str
    error_type: str = "unknown"
    requires_manual_review: bool = False
    status: str = "pending"
    resolution_action: str | None = None
    reviewed_by: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    resolved_at: datetime | None = None


class ProcessResult(BaseModel):
    """Return shape of both processor entry points."""

    processed: int = 0
    errors: int = 0


class TickSummary(BaseModel):
    """One full processor pass: stale recovery, due schedules, approved runs."""

    recovered: int = 0
    schedules: ProcessResult = Field(default_factory=ProcessResult)
    approved: ProcessResult = Field(default_factory=ProcessResult)
