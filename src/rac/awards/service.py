"""Manual awards, placements and per-user point summaries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.points import PointsBreakdown, tally_awards
from rac.awards.repository import (
    delete_manual_award,
    insert_manual_award,
    list_manual_awards,
    list_user_period_awards,
    list_year_awards,
)
from rac.awards.tiers import AwardTier, PointsScheme
from rac.challenges.repository import get_challenges_for_period
from rac.db.models import Award
from rac.periods import Period
from rac.polling.announcements import AnnouncementQueue, PointsAwardEvent
from rac.users.repository import get_or_create_user, normalize_username

logger = logging.getLogger(__name__)

PLACEMENTS: dict[str, dict[str, Any]] = {
    "first": {"points": 5, "emoji": "\U0001f947", "name": "First Place"},
    "second": {"points": 3, "emoji": "\U0001f948", "name": "Second Place"},
    "third": {"points": 2, "emoji": "\U0001f949", "name": "Third Place"},
}


async def add_manual_award(
    db: AsyncSession,
    queue: AnnouncementQueue | None,
    username: str,
    points: int,
    reason: str,
    awarded_by: str,
    metadata: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> Award:
    """Grant community points. Always creates a new award."""
    if now is None:
        now = datetime.now(timezone.utc)
    user, _ = await get_or_create_user(db, username)
    display_name = user.username
    award = await insert_manual_award(
        db, normalize_username(username), points, reason, awarded_by, now, metadata,
    )
    await db.commit()
    logger.info("Manual award %d: %d points to %s (%s)", award.id, points, display_name, reason)

    if queue is not None:
        queue.push(PointsAwardEvent(username=display_name, points=points, reason=reason, timestamp=now))
    return award


async def add_placement_award(
    db: AsyncSession,
    queue: AnnouncementQueue | None,
    username: str,
    placement: str,
    month_label: str,
    now: datetime | None = None,
) -> Award:
    """Monthly ranking bonus: first=5, second=3, third=2 points."""
    info = PLACEMENTS.get(placement.lower())
    if info is None:
        raise ValueError(f"Invalid placement: {placement}")

    metadata = {
        "type": "placement",
        "placement": info["name"],
        "month": month_label,
        "emoji": info["emoji"],
    }
    return await add_manual_award(
        db,
        queue,
        username,
        info["points"],
        f"{info['emoji']} {info['name']} - {month_label}",
        "System",
        metadata,
        now,
    )


async def remove_manual_award(db: AsyncSession, award_id: int) -> None:
    await delete_manual_award(db, award_id)
    await db.commit()
    logger.info("Removed manual award %d", award_id)


async def get_manual_awards(db: AsyncSession, username: str, year: int) -> list[Award]:
    return await list_manual_awards(db, normalize_username(username), year)


async def calculate_points(
    db: AsyncSession, scheme: PointsScheme, username: str, year: int,
) -> PointsBreakdown:
    """Yearly totals for one user; the same awards always yield the same total."""
    key = normalize_username(username)
    awards = await list_year_awards(db, year, username=key)
    return tally_awards(awards, scheme).get(key, PointsBreakdown(username=key))


@dataclass(frozen=True)
class ProgressRow:
    game_id: str
    title: str
    challenge_type: str
    achievement_count: int
    achievement_total: int
    tier: AwardTier


async def get_current_progress(db: AsyncSession, username: str, period: Period) -> list[ProgressRow]:
    """Per-challenge progress of a user in a period (challenges without progress are omitted)."""
    awards = {
        a.game_id: a for a in await list_user_period_awards(db, normalize_username(username), period)
    }
    rows = []
    for challenge in await get_challenges_for_period(db, period):
        award = awards.get(challenge.game_id)
        if award is None:
            continue
        rows.append(ProgressRow(
            game_id=challenge.game_id,
            title=challenge.title,
            challenge_type=challenge.challenge_type,
            achievement_count=award.achievement_count,
            achievement_total=award.achievement_total or challenge.achievement_total,
            tier=AwardTier(award.tier),
        ))
    return rows
