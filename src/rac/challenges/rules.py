"""Detached, validated view of a challenge's tier boundaries."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.tiers import AwardTier, ChallengeType, compute_tier
from rac.challenges.repository import get_challenges_for_period
from rac.db.models import Challenge
from rac.errors import InvalidTierThresholdsError
from rac.periods import Period


@dataclass(frozen=True)
class ChallengeRules:
    game_id: str
    title: str
    challenge_type: ChallengeType
    achievement_total: int
    progression: frozenset[str]
    win: frozenset[str]

    @classmethod
    def from_model(cls, challenge: Challenge) -> ChallengeRules:
        """Snapshot a challenge row. Raises InvalidTierThresholdsError if unusable."""
        progression = frozenset(str(a) for a in challenge.progression_achievements or [])
        win = frozenset(str(a) for a in challenge.win_achievements or [])
        if not progression:
            raise InvalidTierThresholdsError(
                f"Challenge {challenge.game_id} ({challenge.year}-{challenge.month:02d}) "
                "has no progression achievements"
            )
        if challenge.achievement_total < len(progression | win):
            raise InvalidTierThresholdsError(
                f"Challenge {challenge.game_id} total {challenge.achievement_total} "
                f"is smaller than its required set"
            )
        return cls(
            game_id=challenge.game_id,
            title=challenge.title,
            challenge_type=ChallengeType(challenge.challenge_type),
            achievement_total=challenge.achievement_total,
            progression=progression,
            win=win,
        )

    def tier_for(self, earned: frozenset[str] | set[str]) -> AwardTier:
        return compute_tier(set(earned), self.achievement_total, set(self.progression), set(self.win))


async def load_period_rules(
    db: AsyncSession, period: Period,
) -> tuple[list[ChallengeRules], list[InvalidTierThresholdsError]]:
    """Usable rules for a period plus the errors of the challenges that are not."""
    rules: list[ChallengeRules] = []
    errors: list[InvalidTierThresholdsError] = []
    for challenge in await get_challenges_for_period(db, period):
        try:
            rules.append(ChallengeRules.from_model(challenge))
        except InvalidTierThresholdsError as exc:
            errors.append(exc)
    return rules, errors
