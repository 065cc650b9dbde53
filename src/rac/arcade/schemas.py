"""Pydantic schemas for arcade highscore responses."""

from __future__ import annotations

from pydantic import BaseModel


class ArcadeBoardEntry(BaseModel):
    number: int
    leaderboard_id: str
    name: str


class ArcadeBoardListResponse(BaseModel):
    boards: list[ArcadeBoardEntry]


class ArcadeScore(BaseModel):
    rank: int
    username: str
    score: int
    formatted_score: str


class ArcadeHighscoresResponse(BaseModel):
    board: ArcadeBoardEntry
    entries: list[ArcadeScore]
