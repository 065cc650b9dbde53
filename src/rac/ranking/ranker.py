"""Leaderboard ranking — standard competition ranking, no tiebreakers.

Equal scores share a rank; the next lower score gets
1 + (number of entries strictly above it), so scores 5, 5, 3 rank 1, 1, 3.
Equal scores keep their input order (stable sort).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.awards.points import tally_awards
from rac.awards.repository import list_game_awards, list_year_awards
from rac.awards.tiers import AwardTier, PointsScheme
from rac.periods import Period
from rac.users.repository import display_names

T = TypeVar("T")


@dataclass(frozen=True)
class Entry:
    rank: int
    username: str
    value: int
    tier: AwardTier | None = None
    participated: int = 0
    beaten: int = 0
    mastered: int = 0


def competition_ranks(items: Sequence[T], score: Callable[[T], float]) -> list[tuple[int, T]]:
    """Sort items by score DESC (stable) and pair each with its competition rank."""
    ordered = sorted(items, key=lambda item: -score(item))
    ranked: list[tuple[int, T]] = []
    previous: float | None = None
    rank = 0
    for position, item in enumerate(ordered, start=1):
        value = score(item)
        if value != previous:
            rank = position
            previous = value
        ranked.append((rank, item))
    return ranked


class Ranker:
    """Builds monthly and yearly leaderboards from the award store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], points: PointsScheme) -> None:
        self.session_factory = session_factory
        self.points = points

    async def rank_monthly(self, period: Period, game_id: str) -> list[Entry]:
        """Rank a game's participants by raw achievement count."""
        async with self.session_factory() as db:
            awards = await list_game_awards(db, game_id, period)
            names = await display_names(db, (a.username_normalized for a in awards))

        return [
            Entry(
                rank=rank,
                username=names.get(award.username_normalized, award.username_normalized),
                value=award.achievement_count,
                tier=AwardTier(award.tier),
            )
            for rank, award in competition_ranks(awards, lambda a: a.achievement_count)
        ]

    async def rank_yearly(self, year: int) -> list[Entry]:
        """Rank users by total points for the year (challenge tiers + manual awards)."""
        async with self.session_factory() as db:
            awards = await list_year_awards(db, year)
            names = await display_names(db, (a.username_normalized for a in awards))

        totals = [b for b in tally_awards(awards, self.points).values() if b.total > 0]
        return [
            Entry(
                rank=rank,
                username=names.get(b.username, b.username),
                value=b.total,
                participated=b.participated,
                beaten=b.beaten,
                mastered=b.mastered,
            )
            for rank, b in competition_ranks(totals, lambda b: b.total)
        ]
