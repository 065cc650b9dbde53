"""arq scheduler worker — the trigger source for the polling pipeline.

Schedule (UTC):
- achievement_check: every minute
- active_users_update: every 15 minutes
- announcement_drain: every minute, at second 30
- daily_cleanup: 00:00
- weekly_maintenance: Sunday 02:00
- monthly_rollover: 1st of the month, 00:05

Run with: arq rac.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from rac.config import get_settings
from rac.database import close_db, create_tables, get_session_factory, init_db
from rac.middleware.logging import setup_logging
from rac.notifier import RedisNotifier
from rac.pipeline import (
    ACHIEVEMENT_CHECK,
    ACTIVE_USERS_UPDATE,
    ANNOUNCEMENT_DRAIN,
    DAILY_CLEANUP,
    MONTHLY_ROLLOVER,
    WEEKLY_MAINTENANCE,
    Pipeline,
)
from rac.provider.client import RetroAchievementsClient

logger = logging.getLogger(__name__)


async def scheduler_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Build the pipeline shared by every cron job."""
    settings = get_settings()
    setup_logging(settings, component="scheduler")
    await init_db(settings.database_url)
    await create_tables()

    provider = RetroAchievementsClient(
        settings.provider_base_url,
        settings.provider_username,
        settings.provider_api_key,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    # arq owns ctx["redis"] and closes it after shutdown.
    notifier = RedisNotifier(ctx["redis"], settings.announcement_channel)
    pipeline = Pipeline.from_settings(settings, get_session_factory(), provider, notifier)

    active = await pipeline.refresh_active_users(datetime.now(timezone.utc))

    ctx["provider"] = provider
    ctx["pipeline"] = pipeline
    logger.info("Scheduler started: %d active users, jobs=%s", len(active), pipeline.trigger_names)


async def scheduler_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    settings = get_settings()
    pipeline: Pipeline | None = ctx.get("pipeline")
    if pipeline is not None:
        await pipeline.shutdown(settings.shutdown_grace_seconds)

    provider: RetroAchievementsClient | None = ctx.get("provider")
    if provider is not None:
        await provider.aclose()

    await close_db()
    logger.info("Scheduler shut down")


async def _run(ctx: dict, name: str) -> Any:  # type: ignore[type-arg]
    pipeline: Pipeline = ctx["pipeline"]
    return await pipeline.on_tick(name, datetime.now(timezone.utc))


async def achievement_check(ctx: dict) -> int:  # type: ignore[type-arg]
    """Poll due users; returns the number of changed users."""
    results = await _run(ctx, ACHIEVEMENT_CHECK)
    return len(results or [])


async def active_users_update(ctx: dict) -> int:  # type: ignore[type-arg]
    active = await _run(ctx, ACTIVE_USERS_UPDATE)
    return len(active or ())


async def announcement_drain(ctx: dict) -> int:  # type: ignore[type-arg]
    return await _run(ctx, ANNOUNCEMENT_DRAIN) or 0


async def daily_cleanup(ctx: dict) -> None:  # type: ignore[type-arg]
    await _run(ctx, DAILY_CLEANUP)


async def weekly_maintenance(ctx: dict) -> None:  # type: ignore[type-arg]
    await _run(ctx, WEEKLY_MAINTENANCE)


async def monthly_rollover(ctx: dict) -> None:  # type: ignore[type-arg]
    await _run(ctx, MONTHLY_ROLLOVER)


class SchedulerWorkerSettings:
    """arq worker settings for the challenge scheduler."""

    cron_jobs = [
        cron(achievement_check, second=0, unique=True),
        cron(active_users_update, minute={0, 15, 30, 45}, second=0, unique=True),
        cron(announcement_drain, second=30, unique=True),
        cron(daily_cleanup, hour=0, minute=0, second=0, unique=True),
        cron(weekly_maintenance, weekday=6, hour=2, minute=0, second=0, unique=True),  # Sunday
        cron(monthly_rollover, day=1, hour=0, minute=5, second=0, unique=True),
    ]
    on_startup = scheduler_startup
    on_shutdown = scheduler_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_jobs = 4
    job_timeout = 600
