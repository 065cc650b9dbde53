"""Pydantic schemas for tracked users and profiles."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class RegisterUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)


class UserResponse(BaseModel):
    username: str
    tier: str
    created: bool = False
    last_checked_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProgressEntry(BaseModel):
    game_id: str
    title: str
    challenge_type: str
    achievements: int
    achievement_total: int
    tier: str


class ManualAwardEntry(BaseModel):
    id: int
    points: int
    reason: str | None
    awarded_by: str | None
    awarded_at: datetime
    metadata: dict[str, Any] | None = None


class PointsSummary(BaseModel):
    total: int
    challenge: int
    community: int
    participated: int
    beaten: int
    mastered: int
    placements: list[dict[str, Any]]


class ProfileResponse(BaseModel):
    username: str
    year: int
    period: str
    points: PointsSummary
    current_progress: list[ProgressEntry]
    manual_awards: list[ManualAwardEntry]
