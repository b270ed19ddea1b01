"""ScheduleProcessor - one pass over due schedules and approved executions."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Literal

from loguru import logger

from schedbot.agent.executor import TaskExecutorAdapter
from schedbot.core.channels.notify import NotificationDispatcher, format_task_completion_message
from schedbot.core.channels.recipients import resolve_recipients
from schedbot.core.config.schema import Config
from schedbot.core.cron.approval import decide
from schedbot.core.cron.clock import utcnow
from schedbot.core.cron.dlq import classify_error, should_require_manual_review, status_code_of
from schedbot.core.cron.evaluator import CronExpressionError, compute_next_run
from schedbot.core.cron.types import (
    Execution,
    ExecutionStatus,
    LocalAgentConfig,
    ProcessResult,
    Schedule,
)
from schedbot.memory.store import ScheduleStore

AGENT_UNAVAILABLE = "Agent no longer available in workspace"

_Outcome = Literal["processed", "error", "skipped"]


class ScheduleProcessor:
    """Turns due schedules into executions and runs them.

    Both entry points walk their batch sequentially; a failure on one row is
    counted and logged, never raised.

    Parameters
    ----------
    store : ScheduleStore
        Schedules, executions, and the DLQ.
    adapter : TaskExecutorAdapter
        Runs the task prompt against the agent's LLM.
    dispatcher : NotificationDispatcher
        Delivers completion / failure messages.
    config : Config, optional
        Batch sizes, DLQ toggle, stale threshold. Defaults apply when omitted.
    clock : callable, optional
        Returns the current UTC time.
    """

    def __init__(
        self,
        store: ScheduleStore,
        adapter: TaskExecutorAdapter,
        dispatcher: NotificationDispatcher,
        config: Config | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.adapter = adapter
        self.dispatcher = dispatcher
        self.config = config or Config()
        self.clock = clock

    # ── Due schedules ───────────────────────────────────────

    async def process_agent_schedules(self, now: datetime | None = None) -> ProcessResult:
        now = now or self.clock()
        result = ProcessResult()
        try:
            schedules = self.store.find_due_schedules(
                now, limit=self.config.processor.schedule_batch_size
            )
        except Exception as e:
            logger.error(f"Due-schedule lookup failed: {e}")
            return ProcessResult(errors=1)
        if not schedules:
            return result

        logger.info(f"Processing {len(schedules)} due schedule(s)")
        for schedule in schedules:
            try:
                outcome = await self._process_schedule(schedule, now)
            except Exception as e:
                logger.error(f"Schedule {schedule.id} ({schedule.name}) failed: {e}")
                outcome = "error"

            if outcome == "processed":
                result.processed += 1
            elif outcome == "error":
                result.errors += 1

        logger.info(f"Schedules done: processed={result.processed} errors={result.errors}")
        return result

    async def _process_schedule(self, schedule: Schedule, now: datetime) -> _Outcome:
        local_agent = self.store.get_local_agent(
            schedule.agent_id, workspace_id=schedule.workspace_id, active_only=True
        )
        if local_agent is None:
            logger.debug(f"Schedule {schedule.id}: no active agent for {schedule.agent_id}")
            return "skipped"

        try:
            next_run_at = compute_next_run(schedule.cron_expression, schedule.timezone, now)
        except CronExpressionError as e:
            logger.error(f"Schedule {schedule.id}: {e}")
            return "error"

        decision = decide(schedule)
        execution = self.store.create_execution(
            schedule.id,
            schedule.agent_id,
            scheduled_for=schedule.next_run_at,
            status=decision.initial_status,
            started_at=now,
        )
        self.store.advance_schedule(schedule.id, next_run_at, last_run_at=now)
        logger.info(
            f"Execution {execution.id} created for schedule {schedule.id} "
            f"({execution.status.value}), next run {next_run_at.isoformat()}"
        )

        if not decision.run_now:
            return "processed"

        completed = await self.run_execution(execution.id, schedule, local_agent)
        return "processed" if completed else "error"

    # ── Approved executions ─────────────────────────────────

    async def process_approved_executions(self) -> ProcessResult:
        result = ProcessResult()
        try:
            executions = self.store.find_approved_executions(
                limit=self.config.processor.approved_batch_size
            )
        except Exception as e:
            logger.error(f"Approved-execution lookup failed: {e}")
            return ProcessResult(errors=1)
        if not executions:
            return result

        logger.info(f"Processing {len(executions)} approved execution(s)")
        for execution in executions:
            try:
                outcome = await self._process_approved(execution)
            except Exception as e:
                logger.error(f"Approved execution {execution.id} failed: {e}")
                outcome = "error"

            if outcome == "processed":
                result.processed += 1
            elif outcome == "error":
                result.errors += 1

        logger.info(f"Approved done: processed={result.processed} errors={result.errors}")
        return result

    async def _process_approved(self, execution: Execution) -> _Outcome:
        schedule = execution.schedule
        local_agent = None
        if schedule is not None:
            local_agent = self.store.get_local_agent(
                execution.agent_id, workspace_id=schedule.workspace_id, active_only=False
            )

        if schedule is None or local_agent is None:
            failed = self.store.fail_execution(
                execution.id,
                AGENT_UNAVAILABLE,
                from_statuses=[ExecutionStatus.PENDING_APPROVAL],
                completed_at=self.clock(),
            )
            if failed:
                logger.warning(f"Execution {execution.id}: {AGENT_UNAVAILABLE}")
                return "error"
            return "skipped"

        claimed = self.store.transition_execution(
            execution.id,
            [ExecutionStatus.PENDING_APPROVAL],
            ExecutionStatus.RUNNING,
            started_at=self.clock(),
        )
        if not claimed:
            logger.debug(f"Execution {execution.id} already claimed, skipping")
            return "skipped"

        completed = await self.run_execution(
            execution.id, schedule, local_agent, notify_user_id=execution.approved_by
        )
        return "processed" if completed else "error"

    # ── Run path ────────────────────────────────────────────

    async def run_execution(
        self,
        execution_id: str,
        schedule: Schedule,
        local_agent: LocalAgentConfig,
        notify_user_id: str | None = None,
    ) -> bool:
        """Run a ``running`` execution to a terminal state and notify.

        Returns True when the execution completed.
        """
        definition = schedule.ai_agent
        try:
            task = await self.adapter.run(
                local_agent,
                schedule,
                schedule.task_prompt,
                provider=definition.provider if definition else None,
                model=definition.model if definition else None,
                style_presets=local_agent.style_presets,
                custom_instructions=local_agent.custom_instructions,
            )
        except Exception as e:
            error_message = str(e) or type(e).__name__
            logger.error(f"Execution {execution_id} failed: {error_message}")
            if self.store.fail_execution(execution_id, error_message, completed_at=self.clock()):
                self._dead_letter(execution_id, error_message, status_code_of(e))
                await self._notify(
                    schedule, local_agent, "failed", error_message,
                    execution_id=execution_id, notify_user_id=notify_user_id,
                )
            return False

        if not self.store.complete_execution(execution_id, task, completed_at=self.clock()):
            logger.warning(f"Execution {execution_id} no longer running, result dropped")
            return False

        logger.info(f"Execution {execution_id} completed in {task.duration_ms}ms")
        await self._notify(
            schedule, local_agent, "completed", task.text,
            duration_ms=task.duration_ms,
            execution_id=execution_id, notify_user_id=notify_user_id,
        )
        return True

    async def _notify(
        self,
        schedule: Schedule,
        local_agent: LocalAgentConfig,
        status: Literal["completed", "failed"],
        text: str,
        duration_ms: int | None = None,
        execution_id: str | None = None,
        notify_user_id: str | None = None,
    ) -> None:
        try:
            recipients = resolve_recipients(
                local_agent,
                schedule,
                schedule.workspace_id or local_agent.workspace_id,
                self.store,
                notify_user_id=notify_user_id,
            )
            if not recipients:
                return
            content = format_task_completion_message(
                schedule.name, schedule.task_prompt, status, text, duration_ms
            )
            await self.dispatcher.dispatch(
                local_agent, recipients, content, execution_id=execution_id
            )
        except Exception as e:
            logger.error(f"Notification for execution {execution_id} failed: {e}")

    def _dead_letter(
        self, execution_id: str, error_message: str, status_code: int | None = None
    ) -> None:
        if not self.config.dlq.enabled:
            return
        error_type = classify_error(error_message, status_code)
        try:
            self.store.move_to_dlq(
                execution_id,
                error_message,
                error_type=error_type,
                requires_manual_review=should_require_manual_review(error_type, status_code),
            )
        except Exception as e:
            logger.error(f"DLQ write for execution {execution_id} failed: {e}")

    # ── Stale recovery ──────────────────────────────────────

    def recover_stale_executions(self, now: datetime | None = None) -> int:
        """Fail executions stuck in ``running`` past the stale threshold."""
        minutes = self.config.processor.stale_after_minutes
        if minutes <= 0:
            return 0
        now = now or self.clock()
        stale = self.store.find_stale_executions(
            now - timedelta(minutes=minutes),
            limit=self.config.processor.schedule_batch_size,
        )
        recovered = 0
        for execution in stale:
            message = f"Execution timed out: still running after {minutes} minutes"
            if self.store.fail_execution(execution.id, message, completed_at=now):
                recovered += 1
                self._dead_letter(execution.id, message)
        if recovered:
            logger.warning(f"Recovered {recovered} stale execution(s)")
        return recovered


def build_processor(config: Config, store: ScheduleStore) -> ScheduleProcessor:
    """Wire the production processor: LiteLLM executor, configured messenger."""
    from schedbot.agent.executor import LiteLLMTaskExecutor
    from schedbot.agent.tools import build_tool_registry
    from schedbot.core.channels.messaging import build_messenger

    executor = LiteLLMTaskExecutor(config, registry=build_tool_registry(store))
    return ScheduleProcessor(
        store,
        TaskExecutorAdapter(executor, default_provider=config.executor.default_provider),
        NotificationDispatcher(build_messenger(config, store)),
        config=config,
    )
