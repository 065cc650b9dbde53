"""Admin API — forced re-checks, manual awards and challenge setup.

Every route requires the X-Admin-Key header.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from rac.admin.schemas import (
    AchievementTotalRequest,
    AwardResponse,
    ChallengeRequest,
    ChallengeResponse,
    ForceUpdateRequest,
    ForceUpdateResponse,
    ManualAwardRequest,
    PlacementAwardRequest,
    StatsResponse,
)
from rac.awards.service import add_manual_award, add_placement_award, remove_manual_award
from rac.challenges.service import (
    correct_achievement_total,
    reveal_shadow_challenge,
    set_primary_challenge,
    set_shadow_challenge,
)
from rac.db.base import as_utc
from rac.db.models import Award, Challenge
from rac.dependencies import get_db, get_pipeline, get_provider, require_admin
from rac.periods import Period
from rac.pipeline import Pipeline
from rac.provider.client import AchievementProvider

logger = structlog.get_logger()

router = APIRouter(
    prefix="/api/v1/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)


def _period(year: int | None, month: int | None) -> Period:
    current = Period.current()
    return Period(year or current.year, month or current.month)


def _award_response(award: Award, username: str) -> AwardResponse:
    return AwardResponse(
        id=award.id,
        username=username,
        points=award.points,
        reason=award.reason,
        awarded_by=award.awarded_by,
        awarded_at=as_utc(award.awarded_at),
        metadata=award.award_metadata,
    )


def _challenge_response(challenge: Challenge, replaced: str | None = None) -> ChallengeResponse:
    return ChallengeResponse(
        game_id=challenge.game_id,
        period=Period(challenge.year, challenge.month).label,
        title=challenge.title,
        challenge_type=challenge.challenge_type,
        achievement_total=challenge.achievement_total,
        progression=list(challenge.progression_achievements or []),
        win=list(challenge.win_achievements or []),
        revealed=challenge.revealed,
        replaced_game_id=replaced,
    )


@router.post("/force-update", response_model=ForceUpdateResponse)
async def force_update(
    body: ForceUpdateRequest | None = None,
    pipeline: Pipeline = Depends(get_pipeline),
) -> ForceUpdateResponse:
    """Re-check every (or the named) user now. 409 while a cycle is running."""
    queued_before = len(pipeline.queue)
    usernames = body.usernames if body is not None else None
    results = await pipeline.force_recheck(datetime.now(timezone.utc), usernames)
    return ForceUpdateResponse(
        checked=len(results),
        usernames=[r.username for r in results],
        announcements_queued=max(len(pipeline.queue) - queued_before, 0),
    )


@router.post("/awards/manual", response_model=AwardResponse, status_code=201)
async def create_manual_award(
    body: ManualAwardRequest,
    db: AsyncSession = Depends(get_db),
    pipeline: Pipeline = Depends(get_pipeline),
) -> AwardResponse:
    award = await add_manual_award(
        db, pipeline.queue, body.username, body.points, body.reason, body.awarded_by,
    )
    logger.info("manual_award_created", award_id=award.id, username=body.username, points=body.points)
    return _award_response(award, body.username)


@router.post("/awards/placement", response_model=AwardResponse, status_code=201)
async def create_placement_award(
    body: PlacementAwardRequest,
    db: AsyncSession = Depends(get_db),
    pipeline: Pipeline = Depends(get_pipeline),
) -> AwardResponse:
    try:
        award = await add_placement_award(
            db, pipeline.queue, body.username, body.placement, body.month_label,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    return _award_response(award, body.username)


@router.delete("/awards/manual/{award_id}", status_code=204)
async def delete_manual_award(
    award_id: int,
    db: AsyncSession = Depends(get_db),
) -> None:
    await remove_manual_award(db, award_id)


@router.post("/challenges", response_model=ChallengeResponse, status_code=201)
async def create_challenge(
    body: ChallengeRequest,
    db: AsyncSession = Depends(get_db),
    provider: AchievementProvider = Depends(get_provider),
) -> ChallengeResponse:
    """Set the monthly game of a period (defaults to the current one)."""
    challenge = await set_primary_challenge(
        db, provider, body.game_id, _period(body.year, body.month), body.progression, body.win,
    )
    return _challenge_response(challenge)


@router.post("/challenges/shadow", response_model=ChallengeResponse, status_code=201)
async def create_shadow_challenge(
    body: ChallengeRequest,
    db: AsyncSession = Depends(get_db),
    provider: AchievementProvider = Depends(get_provider),
) -> ChallengeResponse:
    result = await set_shadow_challenge(
        db, provider, body.game_id, _period(body.year, body.month), body.progression, body.win,
    )
    return _challenge_response(result.challenge, result.replaced_game_id)


@router.post("/challenges/shadow/reveal", response_model=ChallengeResponse)
async def reveal_shadow(
    year: int | None = None,
    month: int | None = None,
    db: AsyncSession = Depends(get_db),
) -> ChallengeResponse:
    challenge = await reveal_shadow_challenge(db, _period(year, month))
    return _challenge_response(challenge)


@router.patch("/challenges/{game_id}/total", response_model=ChallengeResponse)
async def update_achievement_total(
    game_id: str,
    body: AchievementTotalRequest,
    db: AsyncSession = Depends(get_db),
) -> ChallengeResponse:
    challenge = await correct_achievement_total(
        db, game_id, _period(body.year, body.month), body.achievement_total,
    )
    return _challenge_response(challenge)


@router.get("/stats", response_model=StatsResponse)
async def stats(pipeline: Pipeline = Depends(get_pipeline)) -> StatsResponse:
    return StatsResponse(**pipeline.stats())
