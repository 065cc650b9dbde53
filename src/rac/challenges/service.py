"""Monthly (primary) and shadow (secondary) challenge administration."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.repository import has_challenge_awards
from rac.awards.tiers import ChallengeType
from rac.challenges.repository import get_challenge, get_challenge_by_type
from rac.db.models import Challenge
from rac.errors import ChallengeLockedError, ChallengeNotConfiguredError, InvalidTierThresholdsError
from rac.periods import Period
from rac.provider.client import AchievementProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShadowChallengeResult:
    challenge: Challenge
    replaced_game_id: str | None


def _clean_ids(ids: Sequence[str | int]) -> list[str]:
    return [str(i).strip() for i in ids if str(i).strip()]


async def _validated_sets(
    provider: AchievementProvider,
    game_id: str,
    progression: Sequence[str | int],
    win: Sequence[str | int],
) -> tuple[str, int, list[str], list[str]]:
    progression_ids = _clean_ids(progression)
    win_ids = _clean_ids(win)
    if not progression_ids:
        raise InvalidTierThresholdsError("At least one progression achievement is required")

    meta = await provider.get_game_meta(game_id)
    if meta.achievement_total <= 0:
        raise InvalidTierThresholdsError(f"Game {game_id} has no achievements")
    unknown = (set(progression_ids) | set(win_ids)) - meta.achievement_ids
    if meta.achievement_ids and unknown:
        raise InvalidTierThresholdsError(
            f"Achievements not in game {game_id}: {', '.join(sorted(unknown))}"
        )
    return meta.title, meta.achievement_total, progression_ids, win_ids


async def _ensure_unscored(db: AsyncSession, challenge: Challenge, period: Period) -> None:
    if await has_challenge_awards(db, challenge.game_id, period):
        raise ChallengeLockedError(
            f"Scoring has started for {challenge.game_id} in {period.label}; "
            "only the achievement total can be corrected"
        )


async def set_primary_challenge(
    db: AsyncSession,
    provider: AchievementProvider,
    game_id: str,
    period: Period,
    progression: Sequence[str | int],
    win: Sequence[str | int] = (),
) -> Challenge:
    """Create or replace the monthly game for a period.

    Refused with ChallengeLockedError once the current game has awards.
    """
    title, total, progression_ids, win_ids = await _validated_sets(provider, game_id, progression, win)

    shadow = await get_challenge_by_type(db, period, ChallengeType.SECONDARY)
    if shadow is not None and shadow.game_id == str(game_id):
        raise InvalidTierThresholdsError(f"Game {game_id} is already the shadow challenge")

    existing = await get_challenge_by_type(db, period, ChallengeType.PRIMARY)
    if existing is not None:
        await _ensure_unscored(db, existing, period)
        if existing.game_id != str(game_id):
            await db.delete(existing)
            await db.flush()
            logger.info("Replaced primary challenge %s for %s", existing.game_id, period.label)

    challenge = existing if existing is not None and existing.game_id == str(game_id) else None
    if challenge is None:
        challenge = Challenge(
            game_id=str(game_id),
            month=period.month,
            year=period.year,
            challenge_type=ChallengeType.PRIMARY.value,
            revealed=True,
        )
        db.add(challenge)
    challenge.title = title
    challenge.achievement_total = total
    challenge.progression_achievements = progression_ids
    challenge.win_achievements = win_ids
    await db.commit()
    logger.info("Primary challenge for %s: %s (%s)", period.label, title, game_id)
    return challenge


async def set_shadow_challenge(
    db: AsyncSession,
    provider: AchievementProvider,
    game_id: str,
    period: Period,
    progression: Sequence[str | int],
    win: Sequence[str | int] = (),
) -> ShadowChallengeResult:
    """Attach a shadow game to the period's challenge, replacing any previous one.

    A new shadow game starts hidden; a replacement keeps the revealed flag.
    """
    primary = await get_challenge_by_type(db, period, ChallengeType.PRIMARY)
    if primary is None:
        raise ChallengeNotConfiguredError(
            f"No challenge exists for {period.label}. Create a monthly challenge first."
        )
    if primary.game_id == str(game_id):
        raise InvalidTierThresholdsError(f"Game {game_id} is already the monthly challenge")
    title, total, progression_ids, win_ids = await _validated_sets(provider, game_id, progression, win)

    revealed = False
    replaced = None
    existing = await get_challenge_by_type(db, period, ChallengeType.SECONDARY)
    if existing is not None:
        await _ensure_unscored(db, existing, period)
        revealed = existing.revealed
        replaced = existing.game_id
        await db.delete(existing)
        await db.flush()

    challenge = Challenge(
        game_id=str(game_id),
        month=period.month,
        year=period.year,
        title=title,
        challenge_type=ChallengeType.SECONDARY.value,
        achievement_total=total,
        progression_achievements=progression_ids,
        win_achievements=win_ids,
        revealed=revealed,
    )
    db.add(challenge)
    await db.commit()
    logger.info(
        "Shadow challenge for %s: %s (%s), replaced=%s", period.label, title, game_id, replaced,
    )
    return ShadowChallengeResult(challenge=challenge, replaced_game_id=replaced)


async def reveal_shadow_challenge(db: AsyncSession, period: Period) -> Challenge:
    challenge = await get_challenge_by_type(db, period, ChallengeType.SECONDARY)
    if challenge is None:
        raise ChallengeNotConfiguredError(f"No shadow challenge for {period.label}")
    challenge.revealed = True
    await db.commit()
    return challenge


async def correct_achievement_total(
    db: AsyncSession, game_id: str, period: Period, achievement_total: int,
) -> Challenge:
    """The only change allowed to a challenge once scoring has started."""
    challenge = await get_challenge(db, game_id, period)
    if challenge is None:
        raise ChallengeNotConfiguredError(f"No challenge {game_id} for {period.label}")
    required = set(challenge.progression_achievements or []) | set(challenge.win_achievements or [])
    if achievement_total < max(len(required), 1):
        raise InvalidTierThresholdsError(
            f"Total {achievement_total} is smaller than the required set of {game_id}"
        )
    logger.info(
        "Achievement total for %s (%s): %d -> %d",
        game_id, period.label, challenge.achievement_total, achievement_total,
    )
    challenge.achievement_total = achievement_total
    await db.commit()
    return challenge
