"""Completion / failure notifications for scheduled runs."""

from __future__ import annotations

from typing import Literal

from loguru import logger

from schedbot.core.channels.messaging import AgentMessage, Messenger
from schedbot.core.cron.types import LocalAgentConfig

RESULT_PREVIEW_CHARS = 500


def format_task_completion_message(
    schedule_name: str,
    task_prompt: str,
    status: Literal["completed", "failed"],
    result_text: str,
    duration_ms: int | None = None,
) -> str:
    """Markdown body posted to each recipient."""
    if status == "completed":
        preview = result_text
        if len(preview) > RESULT_PREVIEW_CHARS:
            preview = f"{preview[:RESULT_PREVIEW_CHARS]}..."
        footer = f"\n\n_Completed in {duration_ms / 1000:.1f}s_" if duration_ms else ""
        return (
            "**Scheduled Task Completed**\n\n"
            f"I finished running your scheduled task: **{schedule_name}**\n\n"
            f"**Task:** {task_prompt}\n\n"
            f"**Result:** {preview}{footer}"
        )

    return (
        "**Scheduled Task Failed**\n\n"
        f"I encountered an error running: **{schedule_name}**\n\n"
        f"**Task:** {task_prompt}\n\n"
        f"**Error:** {result_text}"
    )


class NotificationDispatcher:
    """Sends one message per recipient; delivery problems never propagate."""

    def __init__(self, messenger: Messenger):
        self.messenger = messenger

    async def dispatch(
        self,
        local_agent: LocalAgentConfig,
        recipients: list[str],
        content: str,
        execution_id: str | None = None,
    ) -> int:
        """Deliver ``content`` to every recipient. Returns the delivered count."""
        delivered = 0
        for recipient_id in recipients:
            message = AgentMessage(
                agent_id=local_agent.id,
                recipient_profile_id=recipient_id,
                workspace_id=local_agent.workspace_id,
                body=content,
                metadata={"execution_id": execution_id} if execution_id else {},
            )
            try:
                result = await self.messenger.send(message)
            except Exception as e:
                logger.error(
                    f"Notification to {recipient_id} failed (execution {execution_id}): {e}"
                )
                continue

            if result.success:
                delivered += 1
                logger.info(f"Notification sent to {recipient_id} (execution {execution_id})")
            else:
                logger.error(
                    f"Notification to {recipient_id} not delivered "
                    f"(execution {execution_id}): {result.error}"
                )

        if recipients:
            logger.info(
                f"Execution {execution_id}: notified {delivered}/{len(recipients)} recipient(s)"
            )
        return delivered
