"""Tracked user registration and profile API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from rac.awards.service import calculate_points, get_current_progress, get_manual_awards
from rac.db.base import as_utc
from rac.dependencies import get_db, get_pipeline
from rac.periods import Period
from rac.pipeline import Pipeline
from rac.users.repository import get_or_create_user, get_user
from rac.users.schemas import (
    ManualAwardEntry,
    PointsSummary,
    ProfileResponse,
    ProgressEntry,
    RegisterUserRequest,
    UserResponse,
)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=201)
async def register_user(
    body: RegisterUserRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """Start tracking a user. Registering an existing user is a no-op (200)."""
    user, created = await get_or_create_user(db, body.username)
    await db.commit()
    if not created:
        response.status_code = 200
    return UserResponse(
        username=user.username,
        tier=user.tier,
        created=created,
        last_checked_at=as_utc(user.last_checked_at),
    )


@router.get("/{username}/profile", response_model=ProfileResponse)
async def get_profile(
    username: str,
    year: int | None = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
    pipeline: Pipeline = Depends(get_pipeline),
) -> ProfileResponse:
    user = await get_user(db, username)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    period = Period.current()
    year = year or period.year
    breakdown = await calculate_points(db, pipeline.points, user.username, year)
    progress = await get_current_progress(db, user.username, period)
    manual = await get_manual_awards(db, user.username, year)

    return ProfileResponse(
        username=user.username,
        year=year,
        period=period.label,
        points=PointsSummary(
            total=breakdown.total,
            challenge=breakdown.challenge,
            community=breakdown.community,
            participated=breakdown.participated,
            beaten=breakdown.beaten,
            mastered=breakdown.mastered,
            placements=breakdown.placements,
        ),
        current_progress=[
            ProgressEntry(
                game_id=row.game_id,
                title=row.title,
                challenge_type=row.challenge_type,
                achievements=row.achievement_count,
                achievement_total=row.achievement_total,
                tier=row.tier.name,
            )
            for row in progress
        ],
        manual_awards=[
            ManualAwardEntry(
                id=a.id,
                points=a.points,
                reason=a.reason,
                awarded_by=a.awarded_by,
                awarded_at=as_utc(a.awarded_at),
                metadata=a.award_metadata,
            )
            for a in manual
        ],
    )
