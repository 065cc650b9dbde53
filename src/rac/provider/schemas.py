"""Pydantic models for the achievement provider's JSON payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ProviderAchievement(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(alias="ID")
    title: str = Field(default="", alias="Title")
    date_earned: datetime | None = Field(default=None, alias="DateEarned")
    date_earned_hardcore: datetime | None = Field(default=None, alias="DateEarnedHardcore")

    @property
    def earned_at(self) -> datetime | None:
        return self.date_earned_hardcore or self.date_earned


def _achievement_map(value: Any) -> dict[str, Any]:
    # The provider encodes an empty achievement map as [].
    if value is None or value == []:
        return {}
    if isinstance(value, list):
        return {str(item.get("ID")): item for item in value if isinstance(item, dict)}
    return value


class GameProgressPayload(BaseModel):
    """API_GetGameInfoAndUserProgress response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(alias="ID")
    title: str = Field(default="", alias="Title")
    num_achievements: int = Field(default=0, alias="NumAchievements")
    achievements: dict[str, ProviderAchievement] = Field(default_factory=dict, alias="Achievements")

    @field_validator("achievements", mode="before")
    @classmethod
    def normalize_achievements(cls, value: Any) -> dict[str, Any]:
        return _achievement_map(value)


class GameExtendedPayload(BaseModel):
    """API_GetGameExtended response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int = Field(alias="ID")
    title: str = Field(default="", alias="Title")
    num_achievements: int | None = Field(default=None, alias="NumAchievements")
    achievements: dict[str, ProviderAchievement] = Field(default_factory=dict, alias="Achievements")

    @field_validator("achievements", mode="before")
    @classmethod
    def normalize_achievements(cls, value: Any) -> dict[str, Any]:
        return _achievement_map(value)


class ProviderLeaderboardEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user: str | None = Field(default=None, alias="User")
    username: str | None = Field(default=None, alias="Username")
    rank: int = Field(alias="Rank")
    score: int = Field(default=0, alias="Score")
    formatted_score: str | None = Field(default=None, alias="FormattedScore")

    @property
    def name(self) -> str | None:
        return self.user or self.username


class LeaderboardEntriesPayload(BaseModel):
    """API_GetLeaderboardEntries response."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    total: int | None = Field(default=None, alias="Total")
    results: list[ProviderLeaderboardEntry] = Field(default_factory=list, alias="Results")

    @model_validator(mode="before")
    @classmethod
    def wrap_bare_entries(cls, value: Any) -> Any:
        # Entries may also arrive as a bare list or as an object of rows.
        if isinstance(value, list):
            return {"Results": value}
        if isinstance(value, dict) and "Results" not in value:
            if "message" in value:
                raise ValueError(f"provider error: {value['message']}")
            return {"Results": [row for row in value.values() if isinstance(row, dict)]}
        return value
