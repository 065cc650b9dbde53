"""Arcade API — provider highscore lists for tracked users."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rac.arcade.schemas import (
    ArcadeBoardEntry,
    ArcadeBoardListResponse,
    ArcadeHighscoresResponse,
    ArcadeScore,
)
from rac.arcade.service import ArcadeBoard, arcade_boards, find_board, registered_highscores
from rac.config import get_settings
from rac.dependencies import get_db, get_provider
from rac.provider.client import AchievementProvider

router = APIRouter(prefix="/api/v1/arcade", tags=["Arcade"])


def _board_entry(board: ArcadeBoard) -> ArcadeBoardEntry:
    return ArcadeBoardEntry(number=board.number, leaderboard_id=board.leaderboard_id, name=board.name)


@router.get("", response_model=ArcadeBoardListResponse)
async def list_boards() -> ArcadeBoardListResponse:
    return ArcadeBoardListResponse(boards=[_board_entry(b) for b in arcade_boards(get_settings())])


@router.get("/{number}", response_model=ArcadeHighscoresResponse)
async def board_highscores(
    number: int,
    db: AsyncSession = Depends(get_db),
    provider: AchievementProvider = Depends(get_provider),
) -> ArcadeHighscoresResponse:
    """Highscores of one board by its list number. Provider failures are a 502."""
    settings = get_settings()
    boards = arcade_boards(settings)
    board = find_board(boards, number)
    if board is None:
        raise HTTPException(
            status_code=404, detail=f"Invalid selection. Choose a number between 1 and {len(boards)}",
        )

    entries = await registered_highscores(db, provider, board, limit=settings.arcade_top_n)
    return ArcadeHighscoresResponse(
        board=_board_entry(board),
        entries=[
            ArcadeScore(rank=e.rank, username=e.username, score=e.score, formatted_score=e.formatted_score)
            for e in entries
        ],
    )
