"""Pydantic schemas for leaderboard responses."""

from __future__ import annotations

from pydantic import BaseModel


class MonthlyEntry(BaseModel):
    rank: int
    username: str
    achievements: int
    achievement_total: int
    tier: str


class MonthlyLeaderboardResponse(BaseModel):
    period: str
    game_id: str
    title: str
    challenge_type: str
    entries: list[MonthlyEntry]


class YearlyEntry(BaseModel):
    rank: int
    username: str
    points: int
    participated: int
    beaten: int
    mastered: int


class YearlyLeaderboardResponse(BaseModel):
    year: int
    entries: list[YearlyEntry]
