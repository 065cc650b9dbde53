"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from rac.admin.router import router as admin_router
from rac.arcade.router import router as arcade_router
from rac.config import get_settings
from rac.database import close_db, create_tables, get_session_factory, init_db
from rac.health.router import router as health_router
from rac.middleware import setup_middleware
from rac.notifier import RedisNotifier
from rac.pipeline import Pipeline
from rac.provider.client import RetroAchievementsClient
from rac.ranking.router import router as ranking_router
from rac.users.router import router as users_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle.

    The API gets its own pipeline for reads, admin awards and forced
    re-checks; scheduled polling runs in the arq worker.
    """
    settings = get_settings()
    await init_db(settings.database_url)
    await create_tables()

    provider = RetroAchievementsClient(
        settings.provider_base_url,
        settings.provider_username,
        settings.provider_api_key,
        timeout_seconds=settings.provider_timeout_seconds,
    )
    notifier = RedisNotifier.from_url(settings.redis_url, settings.announcement_channel)
    pipeline = Pipeline.from_settings(settings, get_session_factory(), provider, notifier)
    app.state.provider = provider
    app.state.pipeline = pipeline

    yield

    await pipeline.drain_announcements(datetime.now(timezone.utc))
    await pipeline.shutdown(settings.shutdown_grace_seconds)
    await provider.aclose()
    await notifier.aclose()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="RetroAchievements Challenge Tracker",
        description="Monthly achievement challenges, awards and leaderboards",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ranking_router)
    app.include_router(users_router)
    app.include_router(arcade_router)
    app.include_router(admin_router)

    return app


app = create_app()
