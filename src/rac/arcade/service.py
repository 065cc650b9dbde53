"""Arcade highscores: provider leaderboards narrowed to tracked users."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from rac.config import Settings
from rac.provider.client import AchievementProvider, LeaderboardEntry
from rac.users.repository import list_users, normalize_username

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArcadeBoard:
    number: int
    leaderboard_id: str
    name: str


def arcade_boards(settings: Settings) -> list[ArcadeBoard]:
    """Configured boards, numbered from 1 in configuration order."""
    return [
        ArcadeBoard(number=number, leaderboard_id=str(leaderboard_id), name=name)
        for number, (leaderboard_id, name) in enumerate(settings.arcade_leaderboards.items(), start=1)
    ]


def find_board(boards: list[ArcadeBoard], number: int) -> ArcadeBoard | None:
    if 1 <= number <= len(boards):
        return boards[number - 1]
    return None


async def registered_highscores(
    db: AsyncSession,
    provider: AchievementProvider,
    board: ArcadeBoard,
    limit: int = 15,
) -> list[LeaderboardEntry]:
    """Top entries of a board held by tracked users, best provider rank first.

    Provider errors propagate; there is nothing cached to fall back on.
    """
    entries = await provider.get_leaderboard_entries(board.leaderboard_id)
    tracked = {user.username_normalized for user in await list_users(db)}

    kept = [e for e in entries if normalize_username(e.username) in tracked]
    kept.sort(key=lambda e: e.rank)
    logger.info(
        "Arcade board %s: %d entries, %d from tracked users", board.leaderboard_id, len(entries), len(kept),
    )
    return kept[:limit]
