"""Activity classifier — splits tracked users into ACTIVE and INACTIVE.

A user is ACTIVE when their progress changed within the recent window.
The ACTIVE set is replaced in one assignment, so readers never see a
partial update, and a failed refresh keeps the previous set.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rac.users.repository import list_recently_active, set_activity_tiers

logger = logging.getLogger(__name__)


class ActivityClassifier:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        window: timedelta,
    ) -> None:
        self.session_factory = session_factory
        self.window = window
        self._active: frozenset[str] = frozenset()
        self.last_refresh: datetime | None = None

    @property
    def active(self) -> frozenset[str]:
        return self._active

    def is_active(self, username: str) -> bool:
        return username.lower() in self._active

    async def refresh(self, now: datetime | None = None) -> set[str]:
        """Recompute the ACTIVE set. Returns the set now in effect."""
        if now is None:
            now = datetime.now(timezone.utc)
        since = now - self.window

        try:
            async with self.session_factory() as db:
                active = await list_recently_active(db, since)
                await set_activity_tiers(db, active)
                await db.commit()
        except (SQLAlchemyError, OSError):
            logger.exception(
                "Active user refresh failed, keeping previous set of %d", len(self._active),
            )
            return set(self._active)

        self._active = frozenset(active)
        self.last_refresh = now
        logger.info("Active users refreshed: %d active", len(active))
        return set(active)

    def clear(self) -> None:
        self._active = frozenset()
        self.last_refresh = None
