"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterable
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.awards.tiers import ChallengeType
from rac.config import get_settings
from rac.database import close_db, create_tables, get_session_factory, init_db
from rac.db.models import Challenge
from rac.errors import ProviderError, ProviderTimeoutError
from rac.periods import Period
from rac.pipeline import Pipeline
from rac.provider.client import AchievementStatus, GameMeta, LeaderboardEntry
from rac.users.repository import get_or_create_user

ADMIN_KEY = "test-admin-key"
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
PERIOD = Period(2026, 3)


class FakeProvider:
    """In-memory achievement provider; methods are AsyncMocks so calls can be asserted."""

    def __init__(self) -> None:
        self.games: dict[str, GameMeta] = {}
        self.earned: dict[tuple[str, str], set[str]] = {}
        self.leaderboards: dict[str, list[LeaderboardEntry]] = {}
        self.failing: set[str] = set()
        self.get_progress = AsyncMock(side_effect=self._progress)
        self.get_game_meta = AsyncMock(side_effect=self._meta)
        self.get_leaderboard_entries = AsyncMock(side_effect=self._leaderboard)

    def add_game(self, game_id: str, title: str, total: int) -> GameMeta:
        meta = GameMeta(
            game_id=game_id,
            title=title,
            achievement_total=total,
            achievement_ids=frozenset(str(i) for i in range(1, total + 1)),
        )
        self.games[game_id] = meta
        return meta

    def set_earned(self, game_id: str, username: str, ids: Iterable[int | str]) -> None:
        self.earned[(game_id, username.lower())] = {str(i) for i in ids}

    def set_leaderboard(self, leaderboard_id: str, rows: Iterable[tuple[int, str, int]]) -> None:
        self.leaderboards[leaderboard_id] = [
            LeaderboardEntry(rank=rank, username=name, score=score, formatted_score=str(score))
            for rank, name, score in rows
        ]

    def fetched_users(self) -> list[str]:
        return [c.args[1] for c in self.get_progress.await_args_list]

    async def _progress(self, game_id: str, username: str) -> dict[str, AchievementStatus]:
        if username.lower() in self.failing:
            raise ProviderTimeoutError(f"progress for {username} timed out")
        earned = self.earned.get((game_id, username.lower()), set())
        meta = self.games.get(game_id)
        ids = meta.achievement_ids if meta else frozenset(earned)
        return {aid: AchievementStatus(earned=aid in earned) for aid in ids}

    async def _meta(self, game_id: str) -> GameMeta:
        if game_id not in self.games:
            raise ProviderError(f"unknown game {game_id}")
        return self.games[game_id]

    async def _leaderboard(self, leaderboard_id: str) -> list[LeaderboardEntry]:
        if leaderboard_id not in self.leaderboards:
            raise ProviderError(f"unknown leaderboard {leaderboard_id}")
        return list(self.leaderboards[leaderboard_id])


@pytest.fixture(autouse=True)
def _test_settings(monkeypatch: pytest.MonkeyPatch):
    """Isolate settings from the developer's environment."""
    monkeypatch.setenv("RAC_ADMIN_API_KEY", ADMIN_KEY)
    monkeypatch.setenv("RAC_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """A fresh SQLite store per test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'rac.db'}")
    await create_tables()
    yield get_session_factory()
    await close_db()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider() -> FakeProvider:
    fake = FakeProvider()
    fake.add_game("1001", "Monthly Game", 10)
    return fake


@pytest.fixture
def notifier() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def pipeline(session_factory, provider, notifier) -> Pipeline:
    return Pipeline(session_factory, provider, notifier)


async def seed_challenge(
    session_factory: async_sessionmaker[AsyncSession],
    game_id: str = "1001",
    period: Period = PERIOD,
    total: int = 10,
    progression: Iterable[str] = ("1", "2", "3"),
    win: Iterable[str] = ("10",),
    challenge_type: ChallengeType = ChallengeType.PRIMARY,
    title: str = "Monthly Game",
    revealed: bool = True,
) -> None:
    """Insert a challenge row directly, bypassing provider validation."""
    async with session_factory() as db:
        db.add(Challenge(
            game_id=game_id,
            month=period.month,
            year=period.year,
            title=title,
            challenge_type=challenge_type.value,
            achievement_total=total,
            progression_achievements=list(progression),
            win_achievements=list(win),
            revealed=revealed,
        ))
        await db.commit()


async def seed_users(session_factory: async_sessionmaker[AsyncSession], *usernames: str) -> None:
    async with session_factory() as db:
        for username in usernames:
            await get_or_create_user(db, username)
        await db.commit()


@pytest_asyncio.fixture
async def client(session_factory, pipeline, provider) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with the test pipeline installed (no lifespan)."""
    from rac.main import create_app

    app = create_app()
    app.state.pipeline = pipeline
    app.state.provider = provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Key": ADMIN_KEY}
