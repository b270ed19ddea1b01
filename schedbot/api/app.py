"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from schedbot import __version__
from schedbot.api.routes import router
from schedbot.core.config.loader import load_config
from schedbot.core.config.schema import Config
from schedbot.core.cron.processor import build_processor
from schedbot.core.cron.ticker import ScheduleTicker
from schedbot.memory.store import ScheduleStore


def create_app(
    config: Config | None = None,
    ticker: ScheduleTicker | None = None,
    store: ScheduleStore | None = None,
) -> FastAPI:
    """Create the API. Components not passed in are built from config at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup: Config → ScheduleStore → ScheduleProcessor → ScheduleTicker."""
        cfg = config or load_config()
        db = store or ScheduleStore(str(cfg.db_path))
        tick = ticker or ScheduleTicker(build_processor(cfg, db), cfg.scheduler.tick_cron)

        if cfg.scheduler.enabled:
            await tick.start()

        app.state.config = cfg
        app.state.store = db
        app.state.ticker = tick

        logger.info(f"schedbot API started (ticker={'on' if tick.running else 'off'})")
        yield

        await tick.stop()
        logger.info("schedbot API shutting down")

    app = FastAPI(
        title="schedbot API",
        description="Scheduled agent task processor",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
