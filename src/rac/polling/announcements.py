"""Announcement events and the FIFO queue feeding the notifier.

The queue is single-consumer: drain() delivers one event at a time, in
enqueue order, and a failed delivery is logged and dropped (best effort).
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from rac.awards.tiers import AwardTier
from rac.errors import DeliveryError
from rac.periods import Period

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnnouncementEvent:
    """A user's tier for (game, period) strictly increased."""

    username: str
    game_id: str
    period: Period
    old_tier: AwardTier
    new_tier: AwardTier
    timestamp: datetime
    title: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "tier_advanced",
            "username": self.username,
            "game_id": self.game_id,
            "title": self.title,
            "period": self.period.label,
            "old_tier": self.old_tier.name,
            "new_tier": self.new_tier.name,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PointsAwardEvent:
    """A manual (community or placement) points award was granted."""

    username: str
    points: int
    reason: str
    timestamp: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": "points_awarded",
            "username": self.username,
            "points": self.points,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


Announcement = AnnouncementEvent | PointsAwardEvent


class Notifier(Protocol):
    async def deliver(self, event: Announcement) -> None:
        """Deliver one event; raise DeliveryError on failure."""


class AnnouncementQueue:
    """Ordered, serialized queue of announcements."""

    def __init__(self) -> None:
        self._events: deque[Announcement] = deque()
        self._drain_lock = asyncio.Lock()
        self._delivered = 0
        self._dropped = 0

    def push(self, event: Announcement) -> None:
        self._events.append(event)

    def extend(self, events: list[AnnouncementEvent]) -> None:
        self._events.extend(events)

    def clear(self) -> int:
        """Discard all pending events. Returns how many were discarded."""
        discarded = len(self._events)
        self._events.clear()
        return discarded

    def snapshot(self) -> list[Announcement]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)

    async def drain(self, notifier: Notifier) -> int:
        """Deliver pending events one at a time. Returns the number delivered.

        A second concurrent drain is a no-op so the notifier only ever sees
        one consumer.
        """
        if self._drain_lock.locked():
            return 0

        delivered = 0
        async with self._drain_lock:
            while self._events:
                event = self._events.popleft()
                try:
                    await notifier.deliver(event)
                except DeliveryError:
                    self._dropped += 1
                    logger.warning("Dropped announcement for %s", event.username, exc_info=True)
                    continue
                delivered += 1
        self._delivered += delivered
        return delivered

    @property
    def stats(self) -> dict[str, int]:
        return {
            "pending": len(self._events),
            "delivered": self._delivered,
            "dropped": self._dropped,
        }
