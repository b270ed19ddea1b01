"""Tests for the approval gate."""

from schedbot.core.cron.approval import decide
from schedbot.core.cron.types import ExecutionStatus, Schedule


def _schedule(**kw) -> Schedule:
    return Schedule(
        id="s1", agent_id="ai-1", name="Daily", cron_expression="0 9 * * *",
        task_prompt="Report", **kw,
    )


def test_no_approval_runs_now():
    decision = decide(_schedule(requires_approval=False))
    assert decision.initial_status is ExecutionStatus.RUNNING
    assert decision.run_now


def test_approval_required_waits():
    decision = decide(_schedule(requires_approval=True))
    assert decision.initial_status is ExecutionStatus.PENDING_APPROVAL
    assert not decision.run_now
