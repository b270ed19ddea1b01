"""ScheduleTicker - drives the processor from APScheduler."""

from __future__ import annotations

import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from schedbot.core.cron.evaluator import build_trigger
from schedbot.core.cron.processor import ScheduleProcessor
from schedbot.core.cron.types import TickSummary

TICK_JOB_ID = "schedbot:tick"


class ScheduleTicker:
    """Runs one processor pass per tick.

    A pass is: recover stale executions, process due schedules, then process
    approved executions. Passes never overlap, whether triggered by the
    scheduler or called directly (HTTP cron endpoint, CLI).
    """

    def __init__(self, processor: ScheduleProcessor, tick_cron: str = "* * * * *"):
        self.processor = processor
        self.tick_cron = tick_cron
        self._lock = asyncio.Lock()
        self._scheduler = AsyncIOScheduler(
            job_defaults={"coalesce": True, "max_instances": 1}
        )

    async def tick(self) -> TickSummary:
        async with self._lock:
            summary = TickSummary()
            try:
                summary.recovered = self.processor.recover_stale_executions()
            except Exception as e:
                logger.error(f"Stale recovery failed: {e}")
            try:
                summary.schedules = await self.processor.process_agent_schedules()
            except Exception as e:
                logger.error(f"Schedule pass failed: {e}")
            try:
                summary.approved = await self.processor.process_approved_executions()
            except Exception as e:
                logger.error(f"Approved pass failed: {e}")
            return summary

    async def start(self) -> None:
        self._scheduler.add_job(
            self.tick,
            trigger=build_trigger(self.tick_cron, "UTC"),
            id=TICK_JOB_ID,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info(f"ScheduleTicker started ({self.tick_cron})")

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("ScheduleTicker stopped")

    @property
    def running(self) -> bool:
        return self._scheduler.running
