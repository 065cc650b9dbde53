"""Tracked-user persistence."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from rac.db.base import utcnow
from rac.db.models import User

ACTIVE = "active"
INACTIVE = "inactive"


def normalize_username(username: str) -> str:
    """Usernames are unique case-insensitively."""
    return username.strip().lower()


async def get_user(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(
        select(User).where(User.username_normalized == normalize_username(username))
    )
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, username: str) -> tuple[User, bool]:
    """Return (user, created). Keeps the first-seen spelling as display name."""
    user = await get_user(db, username)
    if user is not None:
        return user, False

    user = User(
        username=username.strip(),
        username_normalized=normalize_username(username),
        tier=INACTIVE,
        created_at=utcnow(),
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        existing = await get_user(db, username)
        if existing is None:
            raise
        return existing, False
    return user, True


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.id))
    return list(result.scalars())


async def list_recently_active(db: AsyncSession, since: datetime) -> set[str]:
    """Normalized usernames with activity at or after ``since``."""
    result = await db.execute(
        select(User.username_normalized).where(
            User.last_activity_at.isnot(None),
            User.last_activity_at >= since,
        )
    )
    return set(result.scalars())


async def display_names(db: AsyncSession, normalized: Iterable[str]) -> dict[str, str]:
    keys = list(set(normalized))
    if not keys:
        return {}
    result = await db.execute(
        select(User.username_normalized, User.username).where(User.username_normalized.in_(keys))
    )
    return {row.username_normalized: row.username for row in result}


async def mark_checked(db: AsyncSession, usernames: Iterable[str], now: datetime) -> None:
    keys = [normalize_username(u) for u in usernames]
    if not keys:
        return
    await db.execute(
        update(User).where(User.username_normalized.in_(keys)).values(last_checked_at=now)
    )


async def mark_activity(db: AsyncSession, username: str, now: datetime) -> None:
    await db.execute(
        update(User)
        .where(User.username_normalized == normalize_username(username))
        .values(last_activity_at=now)
    )


async def set_activity_tiers(db: AsyncSession, active: set[str]) -> None:
    """Persist the ACTIVE/INACTIVE split computed by the classifier."""
    await db.execute(update(User).values(tier=INACTIVE))
    if active:
        await db.execute(
            update(User).where(User.username_normalized.in_(list(active))).values(tier=ACTIVE)
        )
