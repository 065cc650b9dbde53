"""Achievement provider interface and its RetroAchievements-style HTTP client.

Every call is time-bounded. Failures are mapped onto the ProviderError
family so callers can treat them as "no update this cycle".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from rac.errors import (
    MalformedPayloadError,
    ProviderError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from rac.provider.schemas import GameExtendedPayload, GameProgressPayload, LeaderboardEntriesPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AchievementStatus:
    earned: bool
    earned_at: datetime | None = None


@dataclass(frozen=True)
class GameMeta:
    game_id: str
    title: str
    achievement_total: int
    achievement_ids: frozenset[str]


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    username: str
    score: int
    formatted_score: str


class AchievementProvider(Protocol):
    async def get_progress(self, game_id: str, username: str) -> dict[str, AchievementStatus]:
        """achievement id → earned status for one user in one game."""

    async def get_game_meta(self, game_id: str) -> GameMeta:
        """Title and achievement set of a game."""

    async def get_leaderboard_entries(self, leaderboard_id: str) -> list[LeaderboardEntry]:
        """Ranked entries of one provider leaderboard."""


class RetroAchievementsClient:
    """httpx-backed provider client."""

    def __init__(
        self,
        base_url: str,
        username: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth = {"z": username, "y": api_key}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, endpoint: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(endpoint, params={**params, **self._auth})
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(f"{endpoint} timed out") from exc
        except httpx.HTTPError as exc:
            raise ProviderError(f"{endpoint} failed: {exc}") from exc

        if response.status_code == 429:
            raise ProviderRateLimitError(f"{endpoint} rate limited")
        if response.status_code >= 400:
            raise ProviderError(f"{endpoint} returned HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayloadError(f"{endpoint} returned non-JSON body") from exc

    async def get_progress(self, game_id: str, username: str) -> dict[str, AchievementStatus]:
        data = await self._get("API_GetGameInfoAndUserProgress.php", {"g": game_id, "u": username})
        try:
            payload = GameProgressPayload.model_validate(data)
        except ValidationError as exc:
            raise MalformedPayloadError(f"Bad progress payload for game {game_id}") from exc

        return {
            str(ach.id): AchievementStatus(earned=ach.earned_at is not None, earned_at=ach.earned_at)
            for ach in payload.achievements.values()
        }

    async def get_game_meta(self, game_id: str) -> GameMeta:
        data = await self._get("API_GetGameExtended.php", {"i": game_id})
        try:
            payload = GameExtendedPayload.model_validate(data)
        except ValidationError as exc:
            raise MalformedPayloadError(f"Bad game payload for game {game_id}") from exc

        ids = frozenset(str(a.id) for a in payload.achievements.values())
        total = payload.num_achievements if payload.num_achievements is not None else len(ids)
        return GameMeta(
            game_id=str(game_id),
            title=payload.title,
            achievement_total=total,
            achievement_ids=ids,
        )

    async def get_leaderboard_entries(
        self, leaderboard_id: str, count: int = 500,
    ) -> list[LeaderboardEntry]:
        data = await self._get("API_GetLeaderboardEntries.php", {"i": leaderboard_id, "c": count})
        try:
            payload = LeaderboardEntriesPayload.model_validate(data)
        except ValidationError as exc:
            raise MalformedPayloadError(f"Bad entries payload for leaderboard {leaderboard_id}") from exc

        entries = []
        for row in payload.results:
            if not row.name:
                logger.warning("Leaderboard %s: skipping rank %d without a username", leaderboard_id, row.rank)
                continue
            entries.append(LeaderboardEntry(
                rank=row.rank,
                username=row.name,
                score=row.score,
                formatted_score=row.formatted_score or str(row.score),
            ))
        return entries
