"""Announcement delivery over Redis pub/sub."""

from __future__ import annotations

import json
import logging

import redis.asyncio as aioredis

from rac.errors import DeliveryError
from rac.polling.announcements import Announcement

logger = logging.getLogger(__name__)


class RedisNotifier:
    """Publishes each announcement's JSON payload on a pub/sub channel."""

    def __init__(self, redis: aioredis.Redis, channel: str) -> None:
        self.redis = redis
        self.channel = channel

    @classmethod
    def from_url(cls, url: str, channel: str, max_connections: int = 20) -> RedisNotifier:
        """A notifier with its own connection pool; close it with aclose()."""
        redis = aioredis.from_url(url, encoding="utf-8", decode_responses=True, max_connections=max_connections)
        return cls(redis, channel)

    async def aclose(self) -> None:
        await self.redis.aclose()

    async def deliver(self, event: Announcement) -> None:
        try:
            receivers = await self.redis.publish(self.channel, json.dumps(event.to_payload()))
        except aioredis.RedisError as exc:
            raise DeliveryError(f"Failed to publish to {self.channel}") from exc
        logger.debug("Announcement for %s published to %d subscribers", event.username, receivers)
