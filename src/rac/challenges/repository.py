"""Challenge lookups by period."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.tiers import ChallengeType
from rac.db.models import Challenge
from rac.periods import Period


async def get_challenges_for_period(db: AsyncSession, period: Period) -> list[Challenge]:
    """All challenges of a period, PRIMARY first."""
    result = await db.execute(
        select(Challenge)
        .where(Challenge.month == period.month, Challenge.year == period.year)
        .order_by(Challenge.challenge_type, Challenge.id)
    )
    return list(result.scalars())


async def get_challenge(db: AsyncSession, game_id: str, period: Period) -> Challenge | None:
    result = await db.execute(
        select(Challenge).where(
            Challenge.game_id == str(game_id),
            Challenge.month == period.month,
            Challenge.year == period.year,
        )
    )
    return result.scalar_one_or_none()


async def get_challenge_by_type(
    db: AsyncSession, period: Period, challenge_type: ChallengeType,
) -> Challenge | None:
    result = await db.execute(
        select(Challenge)
        .where(
            Challenge.month == period.month,
            Challenge.year == period.year,
            Challenge.challenge_type == challenge_type.value,
        )
        .order_by(Challenge.id)
    )
    return result.scalars().first()