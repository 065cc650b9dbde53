"""Tiered poller — decides which users to re-check on each tick.

ACTIVE users are checked every tick; INACTIVE users only once their last
check is at least ``inactive_interval`` old. Only one cycle may run at a
time: a tick that arrives while a cycle is in flight, or while maintenance
holds or waits for the cycle slot, is dropped, not queued.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.awards.scorer import Scorer
from rac.challenges.rules import ChallengeRules, load_period_rules
from rac.errors import ChallengeNotConfiguredError, CycleInFlightError, ProviderError
from rac.periods import Period
from rac.polling.activity import ActivityClassifier
from rac.polling.check_cache import CheckCache
from rac.polling.models import CheckResult, GameProgress, progress_signature
from rac.provider.client import AchievementProvider
from rac.users.repository import list_users, mark_checked, normalize_username

logger = logging.getLogger(__name__)


class TieredPoller:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        provider: AchievementProvider,
        classifier: ActivityClassifier,
        cache: CheckCache,
        scorer: Scorer | None = None,
        inactive_interval: timedelta = timedelta(minutes=15),
        fetch_timeout: float = 10.0,
        max_concurrent_fetches: int = 4,
    ) -> None:
        self.session_factory = session_factory
        self.provider = provider
        self.classifier = classifier
        self.cache = cache
        self.scorer = scorer
        self.inactive_interval = inactive_interval
        self.fetch_timeout = fetch_timeout
        self._fetch_slots = asyncio.Semaphore(max_concurrent_fetches)

        # Shared with maintenance: whoever holds it owns the cache and ACTIVE set.
        self._cycle_lock = asyncio.Lock()
        # Holders plus waiters of the lock.
        self._claims = 0
        self.cycles_run = 0
        self.dropped_ticks = 0
        self.scoring_failures = 0
        self.last_cycle_at: datetime | None = None

    @property
    def in_flight(self) -> bool:
        return self._claims > 0

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[None]:
        """Hold the cycle slot, waiting for whoever has it now."""
        self._claims += 1
        try:
            async with self._cycle_lock:
                yield
        finally:
            self._claims -= 1

    async def tick(self, now: datetime) -> list[CheckResult]:
        """Run one scheduled cycle, or drop the tick if the slot is taken."""
        if self.in_flight:
            self.dropped_ticks += 1
            logger.warning("Poll tick at %s dropped: previous cycle still in flight", now.isoformat())
            return []
        async with self.exclusive():
            return await self._cycle(now, forced=False, only=None)

    async def force(self, now: datetime, usernames: Iterable[str] | None = None) -> list[CheckResult]:
        """Privileged re-check ignoring tiers and cached signatures."""
        if self.in_flight:
            raise CycleInFlightError("An update is already in progress")
        only = {normalize_username(u) for u in usernames} if usernames is not None else None
        async with self.exclusive():
            return await self._cycle(now, forced=True, only=only)

    def is_due(self, username: str, now: datetime) -> bool:
        if self.classifier.is_active(username):
            return True
        last = self.cache.last_checked(username)
        return last is None or now - last >= self.inactive_interval

    async def _cycle(self, now: datetime, forced: bool, only: set[str] | None) -> list[CheckResult]:
        period = Period.from_datetime(now)
        async with self.session_factory() as db:
            rules, errors = await load_period_rules(db, period)
            users = [u.username for u in await list_users(db)]

        for exc in errors:
            logger.error("Challenge skipped: %s", exc)
        if not rules:
            if errors:
                raise errors[0]
            raise ChallengeNotConfiguredError(f"No challenge configured for {period.label}")

        if only is not None:
            eligible = [u for u in users if normalize_username(u) in only]
        elif forced:
            eligible = users
        else:
            eligible = [u for u in users if self.is_due(u, now)]

        fetched = await asyncio.gather(*(self._fetch_user(u, rules) for u in eligible))

        results: list[CheckResult] = []
        checked: list[str] = []
        for username, games in zip(eligible, fetched):
            if games is None:
                continue
            checked.append(username)
            signature = progress_signature(games)
            changed = self.cache.record(username, now, signature)
            if changed or forced:
                results.append(CheckResult(
                    username=username,
                    period=period,
                    checked_at=now,
                    games=games,
                    signature=signature,
                    forced=forced,
                ))

        if checked:
            async with self.session_factory() as db:
                await mark_checked(db, checked, now)
                await db.commit()

        if self.scorer is not None:
            results = [result for result in results if await self._score(result)]

        self.cycles_run += 1
        self.last_cycle_at = now
        logger.info(
            "Poll cycle %s: %d eligible, %d checked, %d changed%s",
            period.label, len(eligible), len(checked), len(results), " (forced)" if forced else "",
        )
        return results

    async def _score(self, result: CheckResult) -> bool:
        """Apply one result; on failure the user's cache entry is dropped so the next tick retries."""
        try:
            await self.scorer.apply(result)
        except Exception:
            self.scoring_failures += 1
            self.cache.forget(result.username)
            logger.exception("Failed to score %s for %s", result.username, result.period.label)
            return False
        return True

    async def _fetch_user(
        self, username: str, rules: list[ChallengeRules],
    ) -> tuple[GameProgress, ...] | None:
        """Progress across all challenge games, or None if any fetch failed."""
        games = []
        async with self._fetch_slots:
            for rule in rules:
                try:
                    statuses = await asyncio.wait_for(
                        self.provider.get_progress(rule.game_id, username),
                        timeout=self.fetch_timeout,
                    )
                except (ProviderError, asyncio.TimeoutError) as exc:
                    logger.warning(
                        "Skipping %s this cycle: game %s fetch failed (%r)", username, rule.game_id, exc,
                    )
                    return None
                earned = frozenset(aid for aid, status in statuses.items() if status.earned)
                games.append(GameProgress(
                    game_id=rule.game_id,
                    earned=earned,
                    achievement_total=rule.achievement_total,
                ))
        return tuple(games)
