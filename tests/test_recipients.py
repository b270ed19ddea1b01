"""Tests for recipient resolution."""

from unittest.mock import MagicMock

from schedbot.core.channels.recipients import resolve_recipients, resolve_recipients_with_source
from schedbot.core.cron.types import LocalAgentConfig, Schedule


def _agent(**kw) -> LocalAgentConfig:
    return LocalAgentConfig(id="local-1", ai_agent_id="ai-1", workspace_id="ws", **kw)


def _schedule(**kw) -> Schedule:
    return Schedule(
        id="s1", agent_id="ai-1", name="Daily", cron_expression="0 9 * * *",
        task_prompt="Report", **kw,
    )


def _directory(admins=None, owner=None):
    directory = MagicMock()
    directory.get_workspace_admin_ids.return_value = admins or []
    directory.get_workspace_owner_id.return_value = owner
    return directory


def test_reports_to_wins():
    directory = _directory(admins=["a1"], owner="o1")
    recipients, source = resolve_recipients_with_source(
        _agent(reports_to=["r1", "r2"]), _schedule(created_by="c1"), "ws", directory,
        notify_user_id="n1",
    )
    assert (recipients, source) == (["r1", "r2"], "reports_to")
    directory.get_workspace_admin_ids.assert_not_called()


def test_empty_reports_to_falls_through():
    recipients, source = resolve_recipients_with_source(
        _agent(reports_to=[]), _schedule(created_by="c1"), "ws", _directory()
    )
    assert (recipients, source) == (["c1"], "notify_user")


def test_notify_user_overrides_creator():
    recipients, _ = resolve_recipients_with_source(
        _agent(), _schedule(created_by="c1"), "ws", _directory(), notify_user_id="approver"
    )
    assert recipients == ["approver"]


def test_workspace_admins():
    recipients, source = resolve_recipients_with_source(
        _agent(), _schedule(), "ws", _directory(admins=["o1", "a1"], owner="o1")
    )
    assert (recipients, source) == (["o1", "a1"], "workspace_admins")


def test_workspace_owner():
    recipients, source = resolve_recipients_with_source(
        _agent(), _schedule(), "ws", _directory(owner="o1")
    )
    assert (recipients, source) == (["o1"], "workspace_owner")


def test_nobody():
    assert resolve_recipients(_agent(), _schedule(), "ws", _directory()) == []


def test_against_store(seeded):
    """Store satisfies the directory protocol: owner-only workspace → owner."""
    assert resolve_recipients(_agent(), _schedule(), "ws-1", seeded) == ["owner-1"]
