"""Approval gate - run now, or wait for a human."""

from __future__ import annotations

from pydantic import BaseModel

from schedbot.core.cron.types import ExecutionStatus, Schedule


class ApprovalDecision(BaseModel):
    initial_status: ExecutionStatus

    @property
    def run_now(self) -> bool:
        return self.initial_status is ExecutionStatus.RUNNING


def decide(schedule: Schedule) -> ApprovalDecision:
    """Initial execution status for a due schedule.

    There is no auto-approval: a ``pending_approval`` row waits until an
    approver sets ``approved_by`` and the approved-execution pass picks it up.
    """
    if schedule.requires_approval:
        return ApprovalDecision(initial_status=ExecutionStatus.PENDING_APPROVAL)
    return ApprovalDecision(initial_status=ExecutionStatus.RUNNING)
