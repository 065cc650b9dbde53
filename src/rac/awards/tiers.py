"""Award tiers, kinds and the points scheme.

Tier order: NONE < PARTICIPATION < BEATEN < MASTERED. A higher tier implies
every lower one for aggregate tallies (a mastered game was also beaten and
participated in).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from rac.errors import InvalidTierThresholdsError


class AwardTier(enum.IntEnum):
    NONE = 0
    PARTICIPATION = 1
    BEATEN = 2
    MASTERED = 3

    def implies(self, other: AwardTier) -> bool:
        """True if holding this tier counts toward ``other``'s tally."""
        return other is not AwardTier.NONE and self >= other


class AwardKind(str, enum.Enum):
    CHALLENGE = "challenge"
    MANUAL = "manual"


class ChallengeType(str, enum.Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


MANUAL_GAME_ID = "manual"


def compute_tier(
    earned: set[str],
    achievement_total: int,
    progression: set[str],
    win: set[str],
) -> AwardTier:
    """Derive the tier for one (user, game, period) from earned achievement ids.

    - MASTERED: every achievement of the game earned.
    - BEATEN: every progression achievement plus at least one win
      achievement (when the challenge defines any).
    - PARTICIPATION: at least one achievement earned.
    """
    if not progression:
        raise InvalidTierThresholdsError("Progression achievement set is empty")

    count = len(earned)
    if count == 0:
        return AwardTier.NONE
    if achievement_total > 0 and count >= achievement_total:
        return AwardTier.MASTERED
    if progression <= earned and (not win or bool(win & earned)):
        return AwardTier.BEATEN
    return AwardTier.PARTICIPATION


@dataclass(frozen=True)
class PointsScheme:
    """Cumulative points per tier."""

    participation: int = 1
    beaten: int = 4
    mastered: int = 7

    def __post_init__(self) -> None:
        if min(self.participation, self.beaten, self.mastered) < 0:
            raise InvalidTierThresholdsError("Tier points must be non-negative")
        if not self.participation <= self.beaten <= self.mastered:
            raise InvalidTierThresholdsError(
                "Tier points must not decrease: "
                f"participation={self.participation} beaten={self.beaten} mastered={self.mastered}"
            )

    @classmethod
    def from_settings(cls, settings: object) -> PointsScheme:
        return cls(
            participation=settings.points_participation,  # type: ignore[attr-defined]
            beaten=settings.points_beaten,  # type: ignore[attr-defined]
            mastered=settings.points_mastered,  # type: ignore[attr-defined]
        )

    def points_for(self, tier: AwardTier) -> int:
        if tier is AwardTier.MASTERED:
            return self.mastered
        if tier is AwardTier.BEATEN:
            return self.beaten
        if tier is AwardTier.PARTICIPATION:
            return self.participation
        return 0
