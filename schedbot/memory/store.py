"""SQLite store for schedbot.

Tables:
    ai_agents, agents, workspace_members,
    agent_schedules, agent_schedule_executions,
    agent_conversations, agent_messages,
    agent_schedule_executions_dlq
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from collections.abc import Iterable
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from schedbot.core.cron.clock import parse_iso, to_iso, utcnow
from schedbot.core.cron.types import (
    AgentDefinition,
    DLQEntry,
    Execution,
    ExecutionStatus,
    LocalAgentConfig,
    Schedule,
    TaskResult,
)

# Columns transition_execution() may write besides status
_EXECUTION_FIELDS = frozenset({
    "started_at",
    "completed_at",
    "result",
    "tool_calls",
    "tokens_input",
    "tokens_output",
    "duration_ms",
    "error_message",
    "approved_by",
    "approved_at",
})
_JSON_FIELDS = frozenset({"result", "tool_calls"})

_SCHEDULE_SELECT = """
    SELECT s.*,
           a.id AS ai_id, a.name AS ai_name, a.system_prompt AS ai_system_prompt,
           a.provider AS ai_provider, a.model AS ai_model
    FROM agent_schedules s
    LEFT JOIN ai_agents a ON a.id = s.agent_id
"""


def _new_id() -> str:
    return str(uuid.uuid4())


def _dumps(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def _loads(value: str | None) -> Any:
    return json.loads(value) if value else None


def _ts(value: datetime | str | None) -> str | None:
    if not value:
        return None
    if isinstance(value, str):
        value = parse_iso(value)
    return to_iso(value)


class ScheduleStore:
    """SQLite persistence - single source of truth for schedules and runs."""

    def __init__(self, db_path: str = "data/schedbot.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        logger.info(f"ScheduleStore initialized: {db_path}")

    @contextmanager
    def _get_conn(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self):
        with self._get_conn() as conn:
            conn.executescript(_SCHEMA)
            self._migrate(conn)
            conn.commit()

    def _migrate(self, conn) -> None:
        """Add columns missing in databases created by earlier versions."""
        sched_cols = {
            row[1] for row in conn.execute("PRAGMA table_info(agent_schedules)").fetchall()
        }
        for col, ddl in [("workspace_id", "TEXT"), ("last_run_at", "TEXT")]:
            if col not in sched_cols:
                conn.execute(f"ALTER TABLE agent_schedules ADD COLUMN {col} {ddl}")

        exec_cols = {
            row[1]
            for row in conn.execute(
                "PRAGMA table_info(agent_schedule_executions)"
            ).fetchall()
        }
        for col, ddl in [("approved_at", "TEXT"), ("result", "TEXT")]:
            if col not in exec_cols:
                conn.execute(
                    f"ALTER TABLE agent_schedule_executions ADD COLUMN {col} {ddl}"
                )

    # ════════════════════════════════════════════════════════════
    # AGENTS (global definitions + workspace-local config)
    # ════════════════════════════════════════════════════════════

    def upsert_ai_agent(
        self,
        agent_id: str,
        name: str,
        system_prompt: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        is_enabled: bool = True,
    ) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO ai_agents (id, name, system_prompt, provider, model, is_enabled)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       name = excluded.name,
                       system_prompt = excluded.system_prompt,
                       provider = excluded.provider,
                       model = excluded.model,
                       is_enabled = excluded.is_enabled""",
                (agent_id, name, system_prompt, provider, model, int(is_enabled)),
            )
            conn.commit()

    def get_ai_agent(self, agent_id: str) -> AgentDefinition | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT id, name, system_prompt, provider, model FROM ai_agents WHERE id = ?",
                (agent_id,),
            ).fetchone()
        return AgentDefinition(**dict(row)) if row else None

    def add_local_agent(
        self,
        ai_agent_id: str,
        workspace_id: str,
        tools: list[str] | None = None,
        system_prompt: str | None = None,
        reports_to: list[str] | None = None,
        style_presets: dict[str, Any] | None = None,
        custom_instructions: str | None = None,
        is_active: bool = True,
        agent_id: str | None = None,
    ) -> str:
        """Register an agent in a workspace. Returns the local agent id."""
        agent_id = agent_id or _new_id()
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO agents
                   (id, ai_agent_id, workspace_id, tools, system_prompt,
                    reports_to, style_presets, custom_instructions, is_active)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    agent_id, ai_agent_id, workspace_id, _dumps(tools or []),
                    system_prompt, _dumps(reports_to), _dumps(style_presets),
                    custom_instructions, int(is_active),
                ),
            )
            conn.commit()
        return agent_id

    def set_local_agent_active(self, agent_id: str, is_active: bool) -> None:
        with self._get_conn() as conn:
            conn.execute(
                "UPDATE agents SET is_active = ? WHERE id = ?",
                (int(is_active), agent_id),
            )
            conn.commit()

    def get_local_agent(
        self,
        ai_agent_id: str,
        workspace_id: str | None = None,
        active_only: bool = True,
    ) -> LocalAgentConfig | None:
        """Workspace agent bound to a global agent definition, if any."""
        query = "SELECT * FROM agents WHERE ai_agent_id = ?"
        params: list[Any] = [ai_agent_id]
        if workspace_id:
            query += " AND workspace_id = ?"
            params.append(workspace_id)
        if active_only:
            query += " AND is_active = 1"
        with self._get_conn() as conn:
            row = conn.execute(query + " ORDER BY created_at LIMIT 1", params).fetchone()
        if not row:
            return None
        data = dict(row)
        data["tools"] = _loads(data["tools"]) or []
        data["reports_to"] = _loads(data["reports_to"])
        data["style_presets"] = _loads(data["style_presets"])
        return LocalAgentConfig(**data)

    # ════════════════════════════════════════════════════════════
    # WORKSPACE DIRECTORY (recipient fallbacks)
    # ════════════════════════════════════════════════════════════

    def add_workspace_member(
        self, workspace_id: str, profile_id: str, role: str = "member"
    ) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO workspace_members (workspace_id, profile_id, role)
                   VALUES (?, ?, ?)""",
                (workspace_id, profile_id, role),
            )
            conn.commit()

    def get_workspace_admin_ids(self, workspace_id: str) -> list[str]:
        """Owners and admins of a workspace."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT profile_id FROM workspace_members
                   WHERE workspace_id = ? AND role IN ('owner', 'admin')
                   ORDER BY joined_at, profile_id""",
                (workspace_id,),
            ).fetchall()
        return [r["profile_id"] for r in rows if r["profile_id"]]

    def get_workspace_owner_id(self, workspace_id: str) -> str | None:
        with self._get_conn() as conn:
            row = conn.execute(
                """SELECT profile_id FROM workspace_members
                   WHERE workspace_id = ? AND role = 'owner'
                   ORDER BY joined_at LIMIT 1""",
                (workspace_id,),
            ).fetchone()
        return row["profile_id"] if row else None

    # ════════════════════════════════════════════════════════════
    # SCHEDULES
    # ════════════════════════════════════════════════════════════

    def add_schedule(
        self,
        agent_id: str,
        name: str,
        cron_expression: str,
        task_prompt: str,
        timezone: str | None = "UTC",
        requires_approval: bool = False,
        is_enabled: bool = True,
        next_run_at: datetime | str | None = None,
        created_by: str | None = None,
        workspace_id: str | None = None,
        schedule_id: str | None = None,
    ) -> str:
        schedule_id = schedule_id or _new_id()
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO agent_schedules
                   (id, agent_id, workspace_id, name, cron_expression, timezone,
                    task_prompt, requires_approval, is_enabled, next_run_at, created_by)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    schedule_id, agent_id, workspace_id, name, cron_expression,
                    timezone, task_prompt, int(requires_approval), int(is_enabled),
                    _ts(next_run_at), created_by,
                ),
            )
            conn.commit()
        logger.info(f"Schedule added: {schedule_id} ({cron_expression})")
        return schedule_id

    def get_schedule(self, schedule_id: str) -> Schedule | None:
        with self._get_conn() as conn:
            row = conn.execute(
                _SCHEDULE_SELECT + " WHERE s.id = ?", (schedule_id,)
            ).fetchone()
        return _row_to_schedule(row) if row else None

    def list_schedules(self, enabled_only: bool = False) -> list[Schedule]:
        query = _SCHEDULE_SELECT
        if enabled_only:
            query += " WHERE s.is_enabled = 1"
        with self._get_conn() as conn:
            rows = conn.execute(query + " ORDER BY s.created_at").fetchall()
        return [_row_to_schedule(r) for r in rows]

    def find_due_schedules(self, now: datetime, limit: int = 50) -> list[Schedule]:
        """Enabled schedules whose next_run_at has passed, with agent definition."""
        with self._get_conn() as conn:
            rows = conn.execute(
                _SCHEDULE_SELECT
                + """ WHERE s.is_enabled = 1
                      AND s.next_run_at IS NOT NULL
                      AND s.next_run_at <= ?
                      ORDER BY s.next_run_at
                      LIMIT ?""",
                (to_iso(now), limit),
            ).fetchall()
        return [_row_to_schedule(r) for r in rows]

    def advance_schedule(
        self,
        schedule_id: str,
        next_run_at: datetime | None,
        last_run_at: datetime | None = None,
    ) -> None:
        with self._get_conn() as conn:
            conn.execute(
                """UPDATE agent_schedules
                   SET next_run_at = ?, last_run_at = COALESCE(?, last_run_at)
                   WHERE id = ?""",
                (_ts(next_run_at), _ts(last_run_at), schedule_id),
            )
            conn.commit()

    def set_schedule_enabled(self, schedule_id: str, enabled: bool) -> bool:
        with self._get_conn() as conn:
            cur = conn.execute(
                "UPDATE agent_schedules SET is_enabled = ? WHERE id = ?",
                (int(enabled), schedule_id),
            )
            conn.commit()
        return cur.rowcount > 0

    # ════════════════════════════════════════════════════════════
    # EXECUTIONS (status machine)
    # ════════════════════════════════════════════════════════════

    def create_execution(
        self,
        schedule_id: str,
        agent_id: str,
        scheduled_for: datetime | None,
        status: ExecutionStatus,
        started_at: datetime | None = None,
    ) -> Execution:
        """Insert one execution row. ``started_at`` is only kept for running rows."""
        execution_id = _new_id()
        status = ExecutionStatus(status)
        if status is not ExecutionStatus.RUNNING:
            started_at = None
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO agent_schedule_executions
                   (id, schedule_id, agent_id, scheduled_for, status, started_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    execution_id, schedule_id, agent_id, _ts(scheduled_for),
                    status.value, _ts(started_at),
                ),
            )
            conn.commit()
        return self.get_execution(execution_id)

    def get_execution(self, execution_id: str) -> Execution | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM agent_schedule_executions WHERE id = ?",
                (execution_id,),
            ).fetchone()
        return _row_to_execution(row) if row else None

    def list_executions(
        self,
        status: ExecutionStatus | str | None = None,
        schedule_id: str | None = None,
        limit: int = 50,
    ) -> list[Execution]:
        clauses: list[str] = []
        params: list[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(ExecutionStatus(status).value)
        if schedule_id:
            clauses.append("schedule_id = ?")
            params.append(schedule_id)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM agent_schedule_executions{where} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [_row_to_execution(r) for r in rows]

    def transition_execution(
        self,
        execution_id: str,
        from_statuses: Iterable[ExecutionStatus | str],
        to_status: ExecutionStatus | str,
        **fields: Any,
    ) -> bool:
        """Compare-and-swap status change.

        The row is updated only while its status is one of ``from_statuses``.
        Returns True when this caller performed the transition.
        """
        unknown = set(fields) - _EXECUTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown execution fields: {sorted(unknown)}")
        expected = [ExecutionStatus(s).value for s in from_statuses]
        if not expected:
            raise ValueError("from_statuses must not be empty")

        assignments = ["status = ?"]
        params: list[Any] = [ExecutionStatus(to_status).value]
        for name, value in fields.items():
            assignments.append(f"{name} = ?")
            if name in _JSON_FIELDS:
                params.append(_dumps(value))
            elif isinstance(value, datetime):
                params.append(to_iso(value))
            else:
                params.append(value)

        placeholders = ",".join("?" for _ in expected)
        with self._get_conn() as conn:
            cur = conn.execute(
                f"UPDATE agent_schedule_executions SET {', '.join(assignments)} "
                f"WHERE id = ? AND status IN ({placeholders})",
                (*params, execution_id, *expected),
            )
            conn.commit()
        return cur.rowcount > 0

    def complete_execution(
        self,
        execution_id: str,
        result: TaskResult,
        completed_at: datetime | None = None,
    ) -> bool:
        """running → completed with output, tool calls, and usage."""
        return self.transition_execution(
            execution_id,
            [ExecutionStatus.RUNNING],
            ExecutionStatus.COMPLETED,
            completed_at=completed_at or utcnow(),
            result={"text": result.text},
            tool_calls=[tc.model_dump(mode="json") for tc in result.tool_calls],
            tokens_input=result.usage.prompt_tokens,
            tokens_output=result.usage.completion_tokens,
            duration_ms=result.duration_ms,
        )

    def fail_execution(
        self,
        execution_id: str,
        error_message: str,
        from_statuses: Iterable[ExecutionStatus | str] = (ExecutionStatus.RUNNING,),
        completed_at: datetime | None = None,
    ) -> bool:
        """Move a non-terminal execution to failed. Usage fields stay untouched."""
        return self.transition_execution(
            execution_id,
            from_statuses,
            ExecutionStatus.FAILED,
            completed_at=completed_at or utcnow(),
            error_message=error_message,
        )

    def approve_execution(
        self, execution_id: str, approved_by: str, approved_at: datetime | None = None
    ) -> bool:
        """Mark a pending execution approved. False if not pending or already approved."""
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE agent_schedule_executions
                   SET approved_by = ?, approved_at = ?
                   WHERE id = ? AND status = 'pending_approval' AND approved_by IS NULL""",
                (approved_by, to_iso(approved_at or utcnow()), execution_id),
            )
            conn.commit()
        if cur.rowcount:
            logger.info(f"Execution {execution_id} approved by {approved_by}")
        return cur.rowcount > 0

    def find_approved_executions(self, limit: int = 20) -> list[Execution]:
        """Approved executions still waiting to run, each with its schedule."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM agent_schedule_executions
                   WHERE status = 'pending_approval' AND approved_by IS NOT NULL
                   ORDER BY approved_at, created_at
                   LIMIT ?""",
                (limit,),
            ).fetchall()
        executions = []
        for row in rows:
            execution = _row_to_execution(row)
            execution.schedule = self.get_schedule(execution.schedule_id)
            executions.append(execution)
        return executions

    def find_stale_executions(
        self, started_before: datetime, limit: int = 50
    ) -> list[Execution]:
        """Running executions whose start predates ``started_before``."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM agent_schedule_executions
                   WHERE status = 'running' AND started_at IS NOT NULL
                   AND started_at < ?
                   ORDER BY started_at LIMIT ?""",
                (to_iso(started_before), limit),
            ).fetchall()
        return [_row_to_execution(r) for r in rows]

    # ════════════════════════════════════════════════════════════
    # AGENT CHAT (notification sink)
    # ════════════════════════════════════════════════════════════

    def get_or_create_conversation(
        self,
        agent_id: str,
        user_id: str,
        workspace_id: str,
        title: str = "Scheduled Tasks",
    ) -> str:
        """Most recent agent/user conversation, created when missing."""
        with self._get_conn() as conn:
            row = conn.execute(
                """SELECT id FROM agent_conversations
                   WHERE agent_id = ? AND user_id = ? AND workspace_id = ?
                   ORDER BY updated_at DESC LIMIT 1""",
                (agent_id, user_id, workspace_id),
            ).fetchone()
            if row:
                return row["id"]
            conversation_id = _new_id()
            conn.execute(
                """INSERT INTO agent_conversations (id, agent_id, user_id, workspace_id, title)
                   VALUES (?, ?, ?, ?, ?)""",
                (conversation_id, agent_id, user_id, workspace_id, title),
            )
            conn.commit()
        return conversation_id

    def add_agent_message(
        self, conversation_id: str, content: str, role: str = "assistant"
    ) -> str:
        message_id = _new_id()
        now = to_iso(utcnow())
        with self._get_conn() as conn:
            conn.execute(
                """INSERT INTO agent_messages (id, conversation_id, role, content, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (message_id, conversation_id, role, content, now),
            )
            conn.execute(
                "UPDATE agent_conversations SET updated_at = ? WHERE id = ?",
                (now, conversation_id),
            )
            conn.commit()
        return message_id

    def get_user_agent_messages(self, user_id: str, limit: int = 50) -> list[dict[str, Any]]:
        """Messages agents posted to a user, newest first."""
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT m.id, m.role, m.content, m.created_at,
                          c.id AS conversation_id, c.agent_id, c.workspace_id
                   FROM agent_messages m
                   JOIN agent_conversations c ON c.id = m.conversation_id
                   WHERE c.user_id = ?
                   ORDER BY m.created_at DESC, m.rowid DESC LIMIT ?""",
                (user_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    # ════════════════════════════════════════════════════════════
    # DEAD-LETTER QUEUE
    # ════════════════════════════════════════════════════════════

    def move_to_dlq(
        self,
        execution_id: str,
        error_message: str,
        error_type: str = "unknown",
        requires_manual_review: bool = False,
    ) -> str:
        """Record a failed execution in the DLQ. Returns the DLQ entry id."""
        dlq_id = _new_id()
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT schedule_id, agent_id FROM agent_schedule_executions WHERE id = ?",
                (execution_id,),
            ).fetchone()
            conn.execute(
                """INSERT INTO agent_schedule_executions_dlq
                   (id, execution_id, schedule_id, agent_id, error_message,
                    error_type, requires_manual_review, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    dlq_id, execution_id,
                    row["schedule_id"] if row else None,
                    row["agent_id"] if row else None,
                    error_message, error_type, int(requires_manual_review),
                    to_iso(utcnow()),
                ),
            )
            conn.commit()
        logger.info(f"Execution {execution_id} moved to DLQ as {dlq_id} ({error_type})")
        return dlq_id

    def get_dlq_item(self, dlq_id: str) -> DLQEntry | None:
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM agent_schedule_executions_dlq WHERE id = ?", (dlq_id,)
            ).fetchone()
        return DLQEntry(**dict(row)) if row else None

    def list_dlq(
        self,
        status: str | None = None,
        requires_review: bool | None = None,
        limit: int = 50,
    ) -> list[DLQEntry]:
        clauses: list[str] = []
        params: list[Any] = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if requires_review is not None:
            clauses.append("requires_manual_review = ?")
            params.append(int(requires_review))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._get_conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM agent_schedule_executions_dlq{where} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (*params, limit),
            ).fetchall()
        return [DLQEntry(**dict(r)) for r in rows]

    def resolve_dlq_item(
        self,
        dlq_id: str,
        resolution_action: str,
        reviewed_by: str | None = None,
        notes: str | None = None,
    ) -> bool:
        """Close a pending DLQ entry. False when missing or already resolved."""
        with self._get_conn() as conn:
            cur = conn.execute(
                """UPDATE agent_schedule_executions_dlq
                   SET status = 'resolved', resolution_action = ?, reviewed_by = ?,
                       notes = ?, resolved_at = ?
                   WHERE id = ? AND status = 'pending'""",
                (resolution_action, reviewed_by, notes, to_iso(utcnow()), dlq_id),
            )
            conn.commit()
        return cur.rowcount > 0

    def get_dlq_stats(self) -> dict[str, Any]:
        with self._get_conn() as conn:
            by_status = conn.execute(
                "SELECT status, COUNT(*) AS n FROM agent_schedule_executions_dlq GROUP BY status"
            ).fetchall()
            by_type = conn.execute(
                """SELECT error_type, COUNT(*) AS n FROM agent_schedule_executions_dlq
                   WHERE status = 'pending' GROUP BY error_type"""
            ).fetchall()
            review = conn.execute(
                """SELECT COUNT(*) FROM agent_schedule_executions_dlq
                   WHERE status = 'pending' AND requires_manual_review = 1"""
            ).fetchone()[0]
        return {
            "by_status": {r["status"]: r["n"] for r in by_status},
            "pending_by_type": {r["error_type"]: r["n"] for r in by_type},
            "requires_review": review,
        }


# ════════════════════════════════════════════════════════════
# ROW MAPPING
# ════════════════════════════════════════════════════════════


def _row_to_schedule(row: sqlite3.Row) -> Schedule:
    data = dict(row)
    ai_agent = None
    if data.get("ai_id"):
        ai_agent = AgentDefinition(
            id=data["ai_id"],
            name=data.get("ai_name") or "",
            system_prompt=data.get("ai_system_prompt"),
            provider=data.get("ai_provider"),
            model=data.get("ai_model"),
        )
    for key in ("ai_id", "ai_name", "ai_system_prompt", "ai_provider", "ai_model"):
        data.pop(key, None)
    return Schedule(**data, ai_agent=ai_agent)


def _row_to_execution(row: sqlite3.Row) -> Execution:
    data = dict(row)
    data["result"] = _loads(data.get("result"))
    data["tool_calls"] = _loads(data.get("tool_calls"))
    data.pop("created_at", None)
    return Execution(**data)


# ════════════════════════════════════════════════════════════
# SQL SCHEMA
# ════════════════════════════════════════════════════════════

_SCHEMA = """
-- 1. Global agent definitions
CREATE TABLE IF NOT EXISTS ai_agents (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    system_prompt TEXT,
    provider TEXT,
    model TEXT,
    is_enabled INTEGER DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- 2. Workspace-local agents (runtime config)
CREATE TABLE IF NOT EXISTS agents (
    id TEXT PRIMARY KEY,
    ai_agent_id TEXT NOT NULL,
    workspace_id TEXT NOT NULL,
    tools TEXT NOT NULL DEFAULT '[]',
    system_prompt TEXT,
    reports_to TEXT,
    style_presets TEXT,
    custom_instructions TEXT,
    is_active INTEGER DEFAULT 1,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_agents_ai_agent ON agents(ai_agent_id, is_active);

-- 3. Workspace membership (admin / owner lookups)
CREATE TABLE IF NOT EXISTS workspace_members (
    workspace_id TEXT NOT NULL,
    profile_id TEXT NOT NULL,
    role TEXT NOT NULL DEFAULT 'member',
    joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (workspace_id, profile_id)
);

-- 4. Recurring agent schedules
CREATE TABLE IF NOT EXISTS agent_schedules (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    workspace_id TEXT,
    name TEXT NOT NULL,
    cron_expression TEXT NOT NULL,
    timezone TEXT DEFAULT 'UTC',
    task_prompt TEXT NOT NULL,
    requires_approval INTEGER DEFAULT 0,
    is_enabled INTEGER DEFAULT 1,
    next_run_at TEXT,
    last_run_at TEXT,
    created_by TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_schedules_due ON agent_schedules(is_enabled, next_run_at);

-- 5. Execution attempts
CREATE TABLE IF NOT EXISTS agent_schedule_executions (
    id TEXT PRIMARY KEY,
    schedule_id TEXT NOT NULL,
    agent_id TEXT NOT NULL,
    scheduled_for TEXT,
    status TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    result TEXT,
    tool_calls TEXT,
    tokens_input INTEGER,
    tokens_output INTEGER,
    duration_ms INTEGER,
    error_message TEXT,
    approved_by TEXT,
    approved_at TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    FOREIGN KEY (schedule_id) REFERENCES agent_schedules(id)
);
CREATE INDEX IF NOT EXISTS idx_executions_status ON agent_schedule_executions(status, approved_by);

-- 6. Agent chat (completion notifications land here)
CREATE TABLE IF NOT EXISTS agent_conversations (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    workspace_id TEXT NOT NULL,
    title TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_conversations_pair
    ON agent_conversations(agent_id, user_id, workspace_id, updated_at DESC);

CREATE TABLE IF NOT EXISTS agent_messages (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT,
    FOREIGN KEY (conversation_id) REFERENCES agent_conversations(id)
);

-- 7. Dead-letter queue for failed executions
CREATE TABLE IF NOT EXISTS agent_schedule_executions_dlq (
    id TEXT PRIMARY KEY,
    execution_id TEXT NOT NULL,
    schedule_id TEXT,
    agent_id TEXT,
    error_message TEXT NOT NULL,
    error_type TEXT DEFAULT 'unknown',
    requires_manual_review INTEGER DEFAULT 0,
    status TEXT DEFAULT 'pending',
    resolution_action TEXT,
    reviewed_by TEXT,
    notes TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    resolved_at TEXT
);
"""
