"""FastAPI dependency injection - pull singletons from app.state."""

from __future__ import annotations

import hmac

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from schedbot.core.config.schema import Config
from schedbot.core.cron.ticker import ScheduleTicker
from schedbot.memory.store import ScheduleStore

_bearer_scheme = HTTPBearer(auto_error=False)


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_store(request: Request) -> ScheduleStore:
    return request.app.state.store


def get_ticker(request: Request) -> ScheduleTicker:
    return request.app.state.ticker


async def verify_cron_secret(
    config: Config = Depends(get_config),
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """Require ``Authorization: Bearer <auth.cron_secret>``.

    An unset secret rejects every request.
    """
    secret = config.auth.cron_secret
    if not secret or credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not hmac.compare_digest(credentials.credentials, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")
