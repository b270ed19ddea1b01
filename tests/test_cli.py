"""Tests for schedbot.cli."""

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from schedbot.cli.commands import app
from schedbot.core.config import Config
from schedbot.core.cron.types import ExecutionStatus, ProcessResult, TickSummary
from tests.conftest import AI_AGENT, NOW

runner = CliRunner()

_PATCH_CONFIG = "schedbot.core.config.loader.load_config"
_PATCH_STORE = "schedbot.memory.store.ScheduleStore"


def _config(tmp_path) -> Config:
    return Config(database={"path": str(tmp_path / "test.db")})


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("run", "worker", "tick", "status", "schedules", "executions", "dlq"):
        assert name in result.output


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "schedbot v" in result.output


def test_status_output(tmp_path, seeded):
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "DB Path" in result.output
    assert "1/1 enabled" in result.output


def test_schedules_list(tmp_path, seeded):
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        result = runner.invoke(app, ["schedules", "list"])
    assert result.exit_code == 0
    assert "Idle" in result.output


def test_schedules_list_empty(tmp_path):
    fake_store = MagicMock()
    fake_store.list_schedules.return_value = []
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=fake_store):
        result = runner.invoke(app, ["schedules", "list"])
    assert result.exit_code == 0
    assert "No schedules found" in result.output


def test_executions_approve(tmp_path, seeded):
    ex = seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.PENDING_APPROVAL)
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        result = runner.invoke(app, ["executions", "approve", ex.id, "--by", "boss"])
    assert result.exit_code == 0
    assert seeded.get_execution(ex.id).approved_by == "boss"


def test_executions_approve_not_pending(tmp_path, seeded):
    ex = seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.RUNNING)
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        result = runner.invoke(app, ["executions", "approve", ex.id, "--by", "boss"])
    assert result.exit_code == 1


def test_executions_list_bad_status(tmp_path, seeded):
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        result = runner.invoke(app, ["executions", "list", "--status", "bogus"])
    assert result.exit_code == 1


def test_dlq_resolve(tmp_path, seeded):
    ex = seeded.create_execution("s1", AI_AGENT, NOW, ExecutionStatus.RUNNING)
    dlq_id = seeded.move_to_dlq(ex.id, "boom")
    with patch(_PATCH_CONFIG, return_value=_config(tmp_path)), patch(_PATCH_STORE, return_value=seeded):
        listed = runner.invoke(app, ["dlq", "list"])
        resolved = runner.invoke(app, ["dlq", "resolve", dlq_id, "--by", "ops"])
        again = runner.invoke(app, ["dlq", "resolve", dlq_id])
    assert listed.exit_code == 0
    assert resolved.exit_code == 0
    assert again.exit_code == 1


def test_tick(tmp_path, seeded):
    summary = TickSummary(schedules=ProcessResult(processed=4), approved=ProcessResult(errors=1))
    fake_ticker = MagicMock()
    fake_ticker.tick = AsyncMock(return_value=summary)
    with (
        patch(_PATCH_CONFIG, return_value=_config(tmp_path)),
        patch(_PATCH_STORE, return_value=seeded),
        patch("schedbot.core.cron.processor.build_processor"),
        patch("schedbot.core.cron.ticker.ScheduleTicker", return_value=fake_ticker),
    ):
        result = runner.invoke(app, ["tick"])
    assert result.exit_code == 0
    assert "4" in result.output
    fake_ticker.tick.assert_awaited_once()
