"""Shared FastAPI dependencies."""

from __future__ import annotations

import secrets

from fastapi import Header, HTTPException, Request

from rac.config import get_settings
from rac.database import get_session as _get_session
from rac.pipeline import Pipeline
from rac.provider.client import AchievementProvider

get_db = _get_session


def get_pipeline(request: Request) -> Pipeline:
    """The pipeline built at startup."""
    return request.app.state.pipeline


def get_provider(request: Request) -> AchievementProvider:
    return request.app.state.provider


async def require_admin(x_admin_key: str | None = Header(default=None)) -> str:
    """Privileged routes need the configured X-Admin-Key header."""
    expected = get_settings().admin_api_key
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API is disabled")
    if x_admin_key is None or not secrets.compare_digest(x_admin_key, expected):
        raise HTTPException(status_code=401, detail="Invalid admin key")
    return "admin"
