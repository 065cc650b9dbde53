"""Folds raw per-game progress into deduplicated award records.

One award per (user, game, period). Tiers only ever go up; a strict tier
increase emits exactly one announcement.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.awards.repository import get_challenge_award, new_challenge_award
from rac.awards.tiers import AwardTier, PointsScheme
from rac.challenges.rules import ChallengeRules, load_period_rules
from rac.db.models import Award
from rac.errors import AwardInvariantError
from rac.periods import Period
from rac.polling.announcements import AnnouncementEvent, AnnouncementQueue
from rac.polling.models import CheckResult, GameProgress
from rac.users.repository import get_or_create_user, mark_activity, normalize_username

logger = logging.getLogger(__name__)


class Scorer:
    """Applies check results to the award store."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        points: PointsScheme,
        queue: AnnouncementQueue | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.points = points
        self.queue = queue

    async def apply(self, result: CheckResult) -> list[AnnouncementEvent]:
        """Upsert one award per game in the result. Returns tier-advance events."""
        username = normalize_username(result.username)
        events: list[AnnouncementEvent] = []

        async with self.session_factory() as db:
            rules, errors = await load_period_rules(db, result.period)
            for exc in errors:
                logger.error("Skipping challenge with invalid tier thresholds: %s", exc)
            rules_by_game = {r.game_id: r for r in rules}

            await get_or_create_user(db, result.username)
            await db.commit()

            progressed = False
            for game in result.games:
                rule = rules_by_game.get(game.game_id)
                if rule is None:
                    logger.warning(
                        "No usable challenge for game=%s period=%s user=%s",
                        game.game_id, result.period.label, username,
                    )
                    continue
                event, changed = await self._upsert(
                    db, username, game, rule, result.period, result.checked_at,
                )
                progressed = progressed or changed
                if event is not None:
                    events.append(event)

            if progressed:
                await mark_activity(db, username, result.checked_at)
                await db.commit()

        if self.queue is not None and events:
            self.queue.extend(events)
        return events

    async def _upsert(
        self,
        db: AsyncSession,
        username: str,
        game: GameProgress,
        rule: ChallengeRules,
        period: Period,
        now: datetime,
    ) -> tuple[AnnouncementEvent | None, bool]:
        """Atomically upsert a single award. Returns (event, progress_changed)."""
        computed = rule.tier_for(game.earned)

        award = await get_challenge_award(db, username, game.game_id, period)
        if award is None:
            if game.count == 0:
                return None, False
            award = new_challenge_award(
                username, game.game_id, period, computed, game.count,
                rule.achievement_total, self.points.points_for(computed), now,
            )
            db.add(award)
            try:
                await db.commit()
            except IntegrityError:
                # Another writer created the key first; continue as an update.
                await db.rollback()
                award = await get_challenge_award(db, username, game.game_id, period)
                if award is None:
                    raise AwardInvariantError(
                        f"Award for ({username}, {game.game_id}, {period.label}) vanished after conflict"
                    ) from None
            else:
                logger.info(
                    "Created award user=%s game=%s period=%s tier=%s",
                    username, game.game_id, period.label, computed.name,
                )
                if computed > AwardTier.NONE:
                    return self._event(username, rule, period, AwardTier.NONE, computed, now), True
                return None, True

        return await self._update(db, award, username, game, rule, period, computed, now)

    async def _update(
        self,
        db: AsyncSession,
        award: Award,
        username: str,
        game: GameProgress,
        rule: ChallengeRules,
        period: Period,
        computed: AwardTier,
        now: datetime,
    ) -> tuple[AnnouncementEvent | None, bool]:
        stored = AwardTier(award.tier)
        changed = award.achievement_count != game.count
        event = None

        award.achievement_count = game.count
        award.achievement_total = rule.achievement_total
        if computed > stored:
            award.tier = int(computed)
            award.points = self.points.points_for(computed)
            event = self._event(username, rule, period, stored, computed, now)
            logger.info(
                "Tier advanced user=%s game=%s period=%s %s->%s",
                username, game.game_id, period.label, stored.name, computed.name,
            )
        elif computed < stored:
            logger.warning(
                "Ignoring tier regression user=%s game=%s period=%s stored=%s reported=%s",
                username, game.game_id, period.label, stored.name, computed.name,
            )
        if changed or event is not None:
            award.updated_at = now
        await db.commit()
        return event, changed

    @staticmethod
    def _event(
        username: str,
        rule: ChallengeRules,
        period: Period,
        old: AwardTier,
        new: AwardTier,
        now: datetime,
    ) -> AnnouncementEvent:
        return AnnouncementEvent(
            username=username,
            game_id=rule.game_id,
            period=period,
            old_tier=old,
            new_tier=new,
            timestamp=now,
            title=rule.title,
        )
