"""Pipeline state: the check cache, ACTIVE set and announcement queue.

Every trigger handler receives the same pipeline instance. Poll cycles
and maintenance share one lock: polls drop when it is taken, maintenance
waits for it, so the two never mutate shared state at the same time.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.awards.scorer import Scorer
from rac.awards.tiers import PointsScheme
from rac.config import Settings
from rac.errors import ConfigurationError
from rac.polling.activity import ActivityClassifier
from rac.polling.announcements import AnnouncementQueue, Notifier
from rac.polling.check_cache import CheckCache
from rac.polling.models import CheckResult
from rac.polling.poller import TieredPoller
from rac.provider.client import AchievementProvider
from rac.ranking.ranker import Ranker

logger = structlog.get_logger()

ACHIEVEMENT_CHECK = "achievement_check"
ACTIVE_USERS_UPDATE = "active_users_update"
ANNOUNCEMENT_DRAIN = "announcement_drain"
DAILY_CLEANUP = "daily_cleanup"
WEEKLY_MAINTENANCE = "weekly_maintenance"
MONTHLY_ROLLOVER = "monthly_rollover"


class Pipeline:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: AchievementProvider,
        notifier: Notifier,
        points: PointsScheme | None = None,
        inactive_interval: timedelta = timedelta(minutes=15),
        activity_window: timedelta = timedelta(hours=72),
        fetch_timeout: float = 10.0,
        max_concurrent_fetches: int = 4,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier
        self.points = points or PointsScheme()

        self.cache = CheckCache()
        self.queue = AnnouncementQueue()
        self.classifier = ActivityClassifier(session_factory, activity_window)
        self.scorer = Scorer(session_factory, self.points, self.queue)
        self.ranker = Ranker(session_factory, self.points)
        self.poller = TieredPoller(
            session_factory,
            provider,
            self.classifier,
            self.cache,
            scorer=self.scorer,
            inactive_interval=inactive_interval,
            fetch_timeout=fetch_timeout,
            max_concurrent_fetches=max_concurrent_fetches,
        )
        self._cycle_task: asyncio.Task[list[CheckResult]] | None = None
        self._handlers: dict[str, Callable[[datetime], Awaitable[Any]]] = {
            ACHIEVEMENT_CHECK: self.poll,
            ACTIVE_USERS_UPDATE: self.refresh_active_users,
            ANNOUNCEMENT_DRAIN: self.drain_announcements,
            DAILY_CLEANUP: self.daily_cleanup,
            WEEKLY_MAINTENANCE: self.weekly_maintenance,
            MONTHLY_ROLLOVER: self.monthly_rollover,
        }

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        provider: AchievementProvider,
        notifier: Notifier,
    ) -> Pipeline:
        return cls(
            session_factory,
            provider,
            notifier,
            points=PointsScheme.from_settings(settings),
            inactive_interval=timedelta(
                seconds=settings.poll_tick_seconds * settings.inactive_check_interval_ticks,
            ),
            activity_window=timedelta(hours=settings.activity_window_hours),
            fetch_timeout=settings.provider_timeout_seconds,
            max_concurrent_fetches=settings.max_concurrent_fetches,
        )

    @property
    def trigger_names(self) -> list[str]:
        return list(self._handlers)

    async def on_tick(self, name: str, now: datetime) -> Any:
        """Entry point for the trigger source.

        Scheduled handlers never raise configuration errors to the caller;
        they are logged for operators.
        """
        handler = self._handlers.get(name)
        if handler is None:
            raise ValueError(f"Unknown trigger: {name}")
        try:
            return await handler(now)
        except ConfigurationError as exc:
            logger.error("trigger_configuration_error", trigger=name, error=str(exc))
            return None

    # --- Polling ---

    async def poll(self, now: datetime) -> list[CheckResult]:
        if self.poller.in_flight:
            return await self.poller.tick(now)
        self._cycle_task = asyncio.ensure_future(self.poller.tick(now))
        try:
            return await asyncio.shield(self._cycle_task)
        finally:
            if self._cycle_task is not None and self._cycle_task.done():
                self._cycle_task = None

    async def force_recheck(
        self, now: datetime, usernames: Iterable[str] | None = None,
    ) -> list[CheckResult]:
        """Privileged full re-check. Raises CycleInFlightError or ConfigurationError."""
        targets = list(usernames) if usernames is not None else None
        logger.info("force_recheck", usernames=targets or "all")
        return await self.poller.force(now, targets)

    async def refresh_active_users(self, now: datetime) -> set[str]:
        async with self.poller.exclusive():
            return await self.classifier.refresh(now)

    async def drain_announcements(self, _now: datetime) -> int:
        return await self.queue.drain(self.notifier)

    # --- Maintenance ---

    async def daily_cleanup(self, now: datetime) -> None:
        async with self.poller.exclusive():
            self.cache.clear()
            await self.classifier.refresh(now)
        logger.info("daily_cleanup_completed")

    async def weekly_maintenance(self, now: datetime) -> None:
        async with self.poller.exclusive():
            self.cache.clear()
            self.classifier.clear()
            await self.classifier.refresh(now)
        logger.info("weekly_maintenance_completed")

    async def monthly_rollover(self, now: datetime) -> None:
        async with self.poller.exclusive():
            self.cache.clear()
            self.classifier.clear()
            discarded = self.queue.clear()
            await self.classifier.refresh(now)
        logger.info("monthly_rollover_completed", discarded_announcements=discarded)

    # --- Lifecycle ---

    async def shutdown(self, grace_seconds: float = 30.0) -> None:
        """Let an in-flight cycle finish within the grace period, then abandon it."""
        task = self._cycle_task
        if task is not None and not task.done():
            done, _ = await asyncio.wait({task}, timeout=grace_seconds)
            if not done:
                logger.warning("cycle_abandoned_on_shutdown", grace_seconds=grace_seconds)
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self.cache.clear()
        self.classifier.clear()
        logger.info("pipeline_shut_down", pending_announcements=len(self.queue))

    def stats(self) -> dict[str, Any]:
        return {
            "active_users": len(self.classifier.active),
            "cached_users": len(self.cache),
            "queue_length": len(self.queue),
            "cycles_run": self.poller.cycles_run,
            "dropped_ticks": self.poller.dropped_ticks,
            "scoring_failures": self.poller.scoring_failures,
            "cycle_in_flight": self.poller.in_flight,
            "last_cycle_at": self.poller.last_cycle_at.isoformat() if self.poller.last_cycle_at else None,
            "triggers": self.trigger_names,
            "cache": self.cache.stats,
            "announcements": self.queue.stats,
        }
