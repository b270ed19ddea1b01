"""Recipient resolution - who hears about a scheduled run."""

from __future__ import annotations

from typing import Literal, Protocol

from loguru import logger

from schedbot.core.cron.types import LocalAgentConfig, Schedule

RecipientSource = Literal[
    "reports_to", "notify_user", "workspace_admins", "workspace_owner", "none"
]


class WorkspaceDirectory(Protocol):
    def get_workspace_admin_ids(self, workspace_id: str) -> list[str]: ...

    def get_workspace_owner_id(self, workspace_id: str) -> str | None: ...


def resolve_recipients_with_source(
    local_agent: LocalAgentConfig,
    schedule: Schedule,
    workspace_id: str,
    directory: WorkspaceDirectory,
    notify_user_id: str | None = None,
) -> tuple[list[str], RecipientSource]:
    """Walk the fallback chain; the first non-empty tier wins.

    1. the agent's ``reports_to`` (every entry)
    2. ``notify_user_id`` if given, else the schedule creator
    3. workspace owners and admins
    4. the workspace owner
    """
    if local_agent.reports_to:
        return list(local_agent.reports_to), "reports_to"

    user_id = notify_user_id or schedule.created_by
    if user_id:
        return [user_id], "notify_user"

    admin_ids = directory.get_workspace_admin_ids(workspace_id)
    if admin_ids:
        return list(admin_ids), "workspace_admins"

    owner_id = directory.get_workspace_owner_id(workspace_id)
    if owner_id:
        return [owner_id], "workspace_owner"

    return [], "none"


def resolve_recipients(
    local_agent: LocalAgentConfig,
    schedule: Schedule,
    workspace_id: str,
    directory: WorkspaceDirectory,
    notify_user_id: str | None = None,
) -> list[str]:
    recipients, source = resolve_recipients_with_source(
        local_agent, schedule, workspace_id, directory, notify_user_id
    )
    if not recipients:
        logger.warning(
            f"No recipients for schedule {schedule.id}: reports_to={local_agent.reports_to}, "
            f"created_by={schedule.created_by}, workspace_id={workspace_id}"
        )
    else:
        logger.debug(
            f"Recipients for schedule {schedule.id}: source={source}, count={len(recipients)}"
        )
    return recipients
