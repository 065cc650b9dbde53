"""Pipeline tests — trigger dispatch, forced re-checks, maintenance and shutdown."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, seed_challenge, seed_users
from rac.awards.tiers import AwardTier
from rac.errors import ChallengeNotConfiguredError, CycleInFlightError, DeliveryError
from rac.periods import Period
from rac.pipeline import (
    ACHIEVEMENT_CHECK,
    ANNOUNCEMENT_DRAIN,
    DAILY_CLEANUP,
    MONTHLY_ROLLOVER,
    WEEKLY_MAINTENANCE,
)
from rac.polling.announcements import AnnouncementEvent
from rac.provider.client import AchievementStatus


def _blocking_provider(provider):
    gate = asyncio.Event()
    started = asyncio.Event()

    async def slow_progress(game_id, username):
        started.set()
        await gate.wait()
        return {"1": AchievementStatus(earned=True)}

    provider.get_progress.side_effect = slow_progress
    return gate, started


class TestTriggers:
    async def test_unknown_trigger_rejected(self, pipeline):
        with pytest.raises(ValueError):
            await pipeline.on_tick("hourly_everything", NOW)

    async def test_missing_challenge_is_logged_not_raised(self, session_factory, pipeline, provider):
        await seed_users(session_factory, "alice")

        assert await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW) is None
        provider.get_progress.assert_not_awaited()

    async def test_challenges_of_other_periods_are_ignored(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory, period=Period(2026, 2))
        await seed_users(session_factory, "alice")

        assert await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW) is None
        provider.get_progress.assert_not_awaited()

    async def test_trigger_names(self, pipeline):
        assert set(pipeline.trigger_names) >= {ACHIEVEMENT_CHECK, DAILY_CLEANUP, MONTHLY_ROLLOVER}


class TestForceRecheck:
    async def test_missing_challenge_surfaces(self, session_factory, pipeline):
        await seed_users(session_factory, "alice")
        with pytest.raises(ChallengeNotConfiguredError):
            await pipeline.force_recheck(NOW)

    async def test_rejected_while_cycle_in_flight(self, session_factory, pipeline):
        await seed_challenge(session_factory)
        async with pipeline.poller.exclusive():
            with pytest.raises(CycleInFlightError):
                await pipeline.force_recheck(NOW)

    async def test_ignores_cache_and_tiers(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice", "bob")
        provider.set_earned("1001", "alice", [1, 2])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)
        provider.get_progress.reset_mock()

        results = await pipeline.force_recheck(NOW + timedelta(minutes=1))

        assert sorted(r.username for r in results) == ["alice", "bob"]
        assert all(r.forced for r in results)
        assert provider.get_progress.await_count == 2

    async def test_forced_rescore_is_idempotent(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1, 2])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)
        queued = len(pipeline.queue)

        await pipeline.force_recheck(NOW + timedelta(minutes=1))

        assert len(pipeline.queue) == queued

    async def test_named_users_only(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice", "bob")

        results = await pipeline.force_recheck(NOW, ["BOB"])

        assert [r.username for r in results] == ["bob"]
        assert provider.fetched_users() == ["bob"]


class TestMaintenance:
    async def test_maintenance_waits_for_running_cycle(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        gate, started = _blocking_provider(provider)

        cycle = asyncio.create_task(pipeline.on_tick(ACHIEVEMENT_CHECK, NOW))
        await started.wait()
        cleanup = asyncio.create_task(pipeline.on_tick(DAILY_CLEANUP, NOW))
        await asyncio.sleep(0.01)
        assert not cleanup.done()

        gate.set()
        await cycle
        await cleanup
        assert len(pipeline.cache) == 0

    async def test_weekly_maintenance_rebuilds_active_set(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)

        await pipeline.on_tick(WEEKLY_MAINTENANCE, NOW + timedelta(minutes=5))

        assert pipeline.classifier.active == frozenset({"alice"})
        assert len(pipeline.cache) == 0

    async def test_monthly_rollover_discards_pending_announcements(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)
        assert len(pipeline.queue) == 1

        await pipeline.on_tick(MONTHLY_ROLLOVER, NOW + timedelta(days=17))

        assert len(pipeline.queue) == 0
        assert len(pipeline.cache) == 0


class TestAnnouncements:
    async def test_drain_delivers_tier_events(self, session_factory, pipeline, provider, notifier):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1, 2, 3, 10])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)

        delivered = await pipeline.on_tick(ANNOUNCEMENT_DRAIN, NOW)

        assert delivered == 1
        event = notifier.deliver.await_args.args[0]
        assert isinstance(event, AnnouncementEvent)
        assert event.new_tier is AwardTier.BEATEN

    async def test_delivery_failure_does_not_block_queue(self, session_factory, pipeline, provider, notifier):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice", "bob")
        provider.set_earned("1001", "alice", [1])
        provider.set_earned("1001", "bob", [1])
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)
        notifier.deliver.side_effect = [DeliveryError("redis down"), None]

        assert await pipeline.on_tick(ANNOUNCEMENT_DRAIN, NOW) == 1
        assert len(pipeline.queue) == 0


class TestLifecycle:
    async def test_shutdown_abandons_cycle_after_grace(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        _, started = _blocking_provider(provider)

        cycle = asyncio.create_task(pipeline.on_tick(ACHIEVEMENT_CHECK, NOW))
        await started.wait()

        await pipeline.shutdown(grace_seconds=0.05)

        with pytest.raises(asyncio.CancelledError):
            await cycle
        assert not pipeline.poller.in_flight
        assert len(pipeline.cache) == 0

    async def test_shutdown_waits_for_quick_cycle(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        gate, started = _blocking_provider(provider)

        cycle = asyncio.create_task(pipeline.on_tick(ACHIEVEMENT_CHECK, NOW))
        await started.wait()
        asyncio.get_running_loop().call_later(0.01, gate.set)

        await pipeline.shutdown(grace_seconds=5)

        assert [r.username for r in await cycle] == ["alice"]
        assert pipeline.poller.cycles_run == 1

    async def test_stats(self, session_factory, pipeline, provider):
        await seed_challenge(session_factory)
        await seed_users(session_factory, "alice")
        await pipeline.on_tick(ACHIEVEMENT_CHECK, NOW)

        stats = pipeline.stats()

        assert stats["cycles_run"] == 1
        assert stats["cached_users"] == 1
        assert stats["cycle_in_flight"] is False
        assert stats["last_cycle_at"] == NOW.isoformat()
        assert ACHIEVEMENT_CHECK in stats["triggers"]
