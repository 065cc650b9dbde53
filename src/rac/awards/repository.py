"""Award persistence: keyed lookups, inserts and yearly scans."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.tiers import MANUAL_GAME_ID, AwardKind, AwardTier
from rac.db.models import Award
from rac.errors import AwardInvariantError, AwardNotFoundError
from rac.periods import Period

logger = logging.getLogger(__name__)


async def get_challenge_award(
    db: AsyncSession, username: str, game_id: str, period: Period,
) -> Award | None:
    """Fetch the single challenge award for a key.

    More than one row for the key is an invariant violation, never repaired here.
    """
    result = await db.execute(
        select(Award).where(
            Award.username_normalized == username,
            Award.game_id == game_id,
            Award.month == period.month,
            Award.year == period.year,
            Award.kind == AwardKind.CHALLENGE.value,
        )
    )
    rows = list(result.scalars())
    if len(rows) > 1:
        logger.critical(
            "Duplicate awards for user=%s game=%s period=%s: ids=%s",
            username, game_id, period.label, [r.id for r in rows],
        )
        raise AwardInvariantError(
            f"{len(rows)} awards for ({username}, {game_id}, {period.label})"
        )
    return rows[0] if rows else None


def new_challenge_award(
    username: str,
    game_id: str,
    period: Period,
    tier: AwardTier,
    achievement_count: int,
    achievement_total: int,
    points: int,
    now: datetime,
) -> Award:
    return Award(
        username_normalized=username,
        game_id=game_id,
        month=period.month,
        year=period.year,
        kind=AwardKind.CHALLENGE.value,
        tier=int(tier),
        achievement_count=achievement_count,
        achievement_total=achievement_total,
        points=points,
        award_metadata={},
        awarded_at=now,
        updated_at=now,
    )


async def list_game_awards(db: AsyncSession, game_id: str, period: Period) -> list[Award]:
    """Challenge awards with progress for one game, in insertion order."""
    result = await db.execute(
        select(Award)
        .where(
            Award.game_id == str(game_id),
            Award.month == period.month,
            Award.year == period.year,
            Award.kind == AwardKind.CHALLENGE.value,
            Award.achievement_count > 0,
        )
        .order_by(Award.id)
    )
    return list(result.scalars())


async def has_challenge_awards(db: AsyncSession, game_id: str, period: Period) -> bool:
    """True once any user has been scored on this game for the period."""
    result = await db.execute(
        select(func.count(Award.id)).where(
            Award.game_id == str(game_id),
            Award.month == period.month,
            Award.year == period.year,
            Award.kind == AwardKind.CHALLENGE.value,
        )
    )
    return result.scalar_one() > 0


async def list_year_awards(
    db: AsyncSession, year: int, username: str | None = None,
) -> list[Award]:
    stmt = select(Award).where(Award.year == year)
    if username is not None:
        stmt = stmt.where(Award.username_normalized == username)
    result = await db.execute(stmt.order_by(Award.id))
    return list(result.scalars())


async def list_user_period_awards(db: AsyncSession, username: str, period: Period) -> list[Award]:
    result = await db.execute(
        select(Award)
        .where(
            Award.username_normalized == username,
            Award.month == period.month,
            Award.year == period.year,
            Award.kind == AwardKind.CHALLENGE.value,
        )
        .order_by(Award.id)
    )
    return list(result.scalars())


async def insert_manual_award(
    db: AsyncSession,
    username: str,
    points: int,
    reason: str,
    awarded_by: str,
    now: datetime,
    metadata: dict[str, Any] | None = None,
) -> Award:
    """Manual awards are additive; every call creates a new row."""
    period = Period.from_datetime(now)
    award = Award(
        username_normalized=username,
        game_id=MANUAL_GAME_ID,
        month=period.month,
        year=period.year,
        kind=AwardKind.MANUAL.value,
        tier=int(AwardTier.NONE),
        achievement_count=0,
        achievement_total=0,
        points=points,
        reason=reason,
        awarded_by=awarded_by,
        award_metadata=metadata or {},
        awarded_at=now,
        updated_at=now,
    )
    db.add(award)
    await db.flush()
    return award


async def delete_manual_award(db: AsyncSession, award_id: int) -> None:
    award = await db.get(Award, award_id)
    if award is None or award.kind != AwardKind.MANUAL.value:
        raise AwardNotFoundError(f"Invalid award ID or not a manual award: {award_id}")
    await db.delete(award)
    await db.flush()


async def list_manual_awards(db: AsyncSession, username: str, year: int) -> list[Award]:
    """Manual awards for a user in a year, newest first."""
    result = await db.execute(
        select(Award)
        .where(
            Award.username_normalized == username,
            Award.kind == AwardKind.MANUAL.value,
            Award.year == year,
        )
        .order_by(Award.awarded_at.desc(), Award.id.desc())
    )
    return list(result.scalars())
