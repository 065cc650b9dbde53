"""Leaderboard API — monthly and yearly rankings."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.tiers import ChallengeType
from rac.challenges.repository import get_challenge_by_type
from rac.dependencies import get_db, get_pipeline
from rac.periods import Period
from rac.pipeline import Pipeline
from rac.ranking.schemas import (
    MonthlyEntry,
    MonthlyLeaderboardResponse,
    YearlyEntry,
    YearlyLeaderboardResponse,
)

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


@router.get("/monthly", response_model=MonthlyLeaderboardResponse)
async def monthly_leaderboard(
    year: int | None = Query(None, ge=2000, le=2100),
    month: int | None = Query(None, ge=1, le=12),
    challenge_type: ChallengeType = Query(ChallengeType.PRIMARY, alias="type"),
    db: AsyncSession = Depends(get_db),
    pipeline: Pipeline = Depends(get_pipeline),
) -> MonthlyLeaderboardResponse:
    """Achievement-count ranking of one challenge game. Hidden shadow games are not listed."""
    current = Period.current()
    period = Period(year or current.year, month or current.month)

    challenge = await get_challenge_by_type(db, period, challenge_type)
    if challenge is None or not challenge.revealed:
        raise HTTPException(status_code=404, detail=f"No {challenge_type.value} challenge for {period.label}")

    entries = await pipeline.ranker.rank_monthly(period, challenge.game_id)
    return MonthlyLeaderboardResponse(
        period=period.label,
        game_id=challenge.game_id,
        title=challenge.title,
        challenge_type=challenge.challenge_type,
        entries=[
            MonthlyEntry(
                rank=e.rank,
                username=e.username,
                achievements=e.value,
                achievement_total=challenge.achievement_total,
                tier=e.tier.name if e.tier is not None else "NONE",
            )
            for e in entries
        ],
    )


@router.get("/yearly", response_model=YearlyLeaderboardResponse)
async def yearly_leaderboard(
    year: int | None = Query(None, ge=2000, le=2100),
    pipeline: Pipeline = Depends(get_pipeline),
) -> YearlyLeaderboardResponse:
    """Points ranking for the year: challenge tiers plus community awards."""
    year = year or Period.current().year
    entries = await pipeline.ranker.rank_yearly(year)
    return YearlyLeaderboardResponse(
        year=year,
        entries=[
            YearlyEntry(
                rank=e.rank,
                username=e.username,
                points=e.value,
                participated=e.participated,
                beaten=e.beaten,
                mastered=e.mastered,
            )
            for e in entries
        ],
    )
