"""Point totals and tallies derived from awards.

Challenge points are counted once per (game, period) from the stored tier;
manual awards add their own point value. Tallies are cumulative: a mastered
game also counts as beaten and as participated.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from rac.awards.tiers import AwardKind, AwardTier, PointsScheme
from rac.db.models import Award


@dataclass
class PointsBreakdown:
    username: str
    challenge: int = 0
    community: int = 0
    participated: int = 0
    beaten: int = 0
    mastered: int = 0
    achievements: int = 0
    placements: list[dict[str, Any]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.challenge + self.community


def tally_awards(
    awards: Iterable[Award], scheme: PointsScheme,
) -> dict[str, PointsBreakdown]:
    """Fold awards into one breakdown per user. Pure and idempotent."""
    totals: dict[str, PointsBreakdown] = {}
    seen: set[tuple[str, str, int, int]] = set()

    for award in awards:
        user = award.username_normalized
        breakdown = totals.setdefault(user, PointsBreakdown(username=user))

        if award.kind == AwardKind.MANUAL.value:
            breakdown.community += award.points
            meta = award.award_metadata or {}
            if meta.get("type") == "placement":
                breakdown.placements.append({
                    "month": meta.get("month"),
                    "placement": meta.get("placement"),
                    "points": award.points,
                })
            continue

        key = (user, award.game_id, award.month, award.year)
        if key in seen:
            continue
        seen.add(key)

        tier = AwardTier(award.tier)
        breakdown.challenge += scheme.points_for(tier)
        breakdown.achievements += award.achievement_count
        if tier.implies(AwardTier.PARTICIPATION):
            breakdown.participated += 1
        if tier.implies(AwardTier.BEATEN):
            breakdown.beaten += 1
        if tier.implies(AwardTier.MASTERED):
            breakdown.mastered += 1

    return totals
