"""Redis notifier tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as aioredis

from rac.errors import DeliveryError
from rac.notifier import RedisNotifier
from rac.polling.announcements import PointsAwardEvent

EVENT = PointsAwardEvent("alice", 2, "Community event", datetime(2026, 3, 1, tzinfo=timezone.utc))


class TestRedisNotifier:
    async def test_publishes_json_payload(self):
        redis = AsyncMock()
        redis.publish.return_value = 1

        await RedisNotifier(redis, "pubsub:test").deliver(EVENT)

        channel, message = redis.publish.await_args.args
        assert channel == "pubsub:test"
        assert json.loads(message)["type"] == "points_awarded"
        assert json.loads(message)["username"] == "alice"

    async def test_redis_failure_becomes_delivery_error(self):
        redis = AsyncMock()
        redis.publish.side_effect = aioredis.ConnectionError("connection refused")

        with pytest.raises(DeliveryError):
            await RedisNotifier(redis, "pubsub:test").deliver(EVENT)

    async def test_from_url_owns_its_pool(self):
        notifier = RedisNotifier.from_url("redis://localhost:6379/3", "pubsub:test", max_connections=5)

        assert notifier.channel == "pubsub:test"
        assert notifier.redis.connection_pool.max_connections == 5
        await notifier.aclose()
