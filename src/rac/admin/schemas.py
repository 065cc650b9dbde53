"""Pydantic schemas for the admin API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ForceUpdateRequest(BaseModel):
    usernames: list[str] | None = None


class ForceUpdateResponse(BaseModel):
    checked: int
    usernames: list[str]
    announcements_queued: int


class ManualAwardRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    points: int = Field(..., ge=1)
    reason: str = Field(..., min_length=1, max_length=500)
    awarded_by: str = "admin"


class PlacementAwardRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    placement: str
    month_label: str = Field(..., min_length=1, max_length=64)


class AwardResponse(BaseModel):
    id: int
    username: str
    points: int
    reason: str | None
    awarded_by: str | None
    awarded_at: datetime
    metadata: dict[str, Any] | None = None


class ChallengeRequest(BaseModel):
    game_id: str = Field(..., min_length=1, max_length=32)
    year: int | None = Field(None, ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)
    progression: list[str]
    win: list[str] = []


class ChallengeResponse(BaseModel):
    game_id: str
    period: str
    title: str
    challenge_type: str
    achievement_total: int
    progression: list[str]
    win: list[str]
    revealed: bool
    replaced_game_id: str | None = None


class AchievementTotalRequest(BaseModel):
    year: int | None = Field(None, ge=2000, le=2100)
    month: int | None = Field(None, ge=1, le=12)
    achievement_total: int = Field(..., ge=1)


class StatsResponse(BaseModel):
    active_users: int
    cached_users: int
    queue_length: int
    cycles_run: int
    dropped_ticks: int
    scoring_failures: int
    cycle_in_flight: bool
    last_cycle_at: str | None
    triggers: list[str]
    cache: dict[str, int]
    announcements: dict[str, int]
