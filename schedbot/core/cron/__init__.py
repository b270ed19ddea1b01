"""Agent schedules - cron evaluation, execution records, processing."""

from schedbot.core.cron.evaluator import CronExpressionError, compute_next_run
from schedbot.core.cron.types import Execution, ExecutionStatus, Schedule

__all__ = ["CronExpressionError", "compute_next_run", "Execution", "ExecutionStatus", "Schedule"]
