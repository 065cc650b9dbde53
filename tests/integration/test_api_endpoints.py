"""Leaderboard, profile and admin API tests."""

from __future__ import annotations

from httpx import AsyncClient

from conftest import seed_challenge, seed_users
from rac.awards.tiers import ChallengeType
from rac.periods import Period
from rac.pipeline import ACHIEVEMENT_CHECK


async def _current_challenge(session_factory, **kwargs) -> Period:
    period = Period.current()
    await seed_challenge(session_factory, period=period, **kwargs)
    return period


class TestUsersApi:
    async def test_register_user(self, client: AsyncClient):
        response = await client.post("/api/v1/users", json={"username": "Alice"})
        assert response.status_code == 201
        assert response.json()["username"] == "Alice"
        assert response.json()["created"] is True

        again = await client.post("/api/v1/users", json={"username": "alice"})
        assert again.status_code == 200
        assert again.json()["created"] is False
        assert again.json()["username"] == "Alice"

    async def test_register_requires_username(self, client: AsyncClient):
        response = await client.post("/api/v1/users", json={"username": ""})
        assert response.status_code == 422

    async def test_profile_unknown_user(self, client: AsyncClient):
        response = await client.get("/api/v1/users/ghost/profile")
        assert response.status_code == 404

    async def test_profile(self, client: AsyncClient, session_factory, pipeline, provider):
        period = await _current_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1, 2, 3, 10])
        await pipeline.force_recheck(period.start())

        response = await client.get("/api/v1/users/ALICE/profile")

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert data["points"]["total"] == 4
        assert data["points"]["beaten"] == 1
        assert data["current_progress"][0]["tier"] == "BEATEN"
        assert data["current_progress"][0]["achievements"] == 4


class TestLeaderboardApi:
    async def test_monthly(self, client: AsyncClient, session_factory, pipeline, provider):
        period = await _current_challenge(session_factory)
        await seed_users(session_factory, "alice", "bob")
        provider.set_earned("1001", "alice", [1, 2])
        provider.set_earned("1001", "bob", range(1, 11))
        await pipeline.on_tick(ACHIEVEMENT_CHECK, period.start())

        response = await client.get(
            "/api/v1/leaderboard/monthly", params={"year": period.year, "month": period.month},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == period.label
        assert [(e["rank"], e["username"], e["tier"]) for e in data["entries"]] == [
            (1, "bob", "MASTERED"),
            (2, "alice", "PARTICIPATION"),
        ]

    async def test_hidden_shadow_not_listed(self, client: AsyncClient, session_factory):
        period = await _current_challenge(session_factory)
        await seed_challenge(
            session_factory, game_id="2002", period=period,
            challenge_type=ChallengeType.SECONDARY, revealed=False,
        )

        response = await client.get("/api/v1/leaderboard/monthly", params={"type": "secondary"})

        assert response.status_code == 404

    async def test_monthly_without_challenge(self, client: AsyncClient):
        response = await client.get("/api/v1/leaderboard/monthly", params={"year": 2020, "month": 1})
        assert response.status_code == 404

    async def test_yearly(self, client: AsyncClient, session_factory, pipeline, provider):
        period = await _current_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", range(1, 11))
        await pipeline.on_tick(ACHIEVEMENT_CHECK, period.start())

        response = await client.get("/api/v1/leaderboard/yearly", params={"year": period.year})

        assert response.status_code == 200
        assert response.json()["entries"] == [
            {"rank": 1, "username": "alice", "points": 7, "participated": 1, "beaten": 1, "mastered": 1},
        ]


class TestAdminApi:
    async def test_admin_key_required(self, client: AsyncClient):
        response = await client.get("/api/v1/admin/stats")
        assert response.status_code == 401

        response = await client.get("/api/v1/admin/stats", headers={"X-Admin-Key": "wrong"})
        assert response.status_code == 401

    async def test_stats(self, client: AsyncClient, admin_headers):
        response = await client.get("/api/v1/admin/stats", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["cycles_run"] == 0
        assert data["cycle_in_flight"] is False
        assert ACHIEVEMENT_CHECK in data["triggers"]

    async def test_manual_award_lifecycle(self, client: AsyncClient, admin_headers, pipeline):
        response = await client.post(
            "/api/v1/admin/awards/manual",
            json={"username": "alice", "points": 2, "reason": "Community event"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        award_id = response.json()["id"]
        assert len(pipeline.queue) == 1

        response = await client.delete(f"/api/v1/admin/awards/manual/{award_id}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.delete(f"/api/v1/admin/awards/manual/{award_id}", headers=admin_headers)
        assert response.status_code == 404

    async def test_placement_award(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/admin/awards/placement",
            json={"username": "alice", "placement": "first", "month_label": "March 2026"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["points"] == 5

        response = await client.post(
            "/api/v1/admin/awards/placement",
            json={"username": "alice", "placement": "fourth", "month_label": "March 2026"},
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_force_update(self, client: AsyncClient, admin_headers, session_factory, provider):
        await _current_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1])

        response = await client.post("/api/v1/admin/force-update", json={}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"checked": 1, "usernames": ["alice"], "announcements_queued": 1}

    async def test_force_update_without_challenge(self, client: AsyncClient, admin_headers):
        response = await client.post("/api/v1/admin/force-update", json={}, headers=admin_headers)
        assert response.status_code == 409

    async def test_force_update_while_cycle_running(self, client: AsyncClient, admin_headers, session_factory, pipeline):
        await _current_challenge(session_factory)
        async with pipeline.poller.exclusive():
            response = await client.post("/api/v1/admin/force-update", json={}, headers=admin_headers)
        assert response.status_code == 409

    async def test_challenge_setup(self, client: AsyncClient, admin_headers, provider):
        provider.add_game("2002", "Shadow Game", 8)

        response = await client.post(
            "/api/v1/admin/challenges/shadow",
            json={"game_id": "2002", "progression": ["1"]},
            headers=admin_headers,
        )
        assert response.status_code == 409

        response = await client.post(
            "/api/v1/admin/challenges",
            json={"game_id": "1001", "progression": ["1", "2"], "win": ["10"]},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["achievement_total"] == 10

        response = await client.post(
            "/api/v1/admin/challenges/shadow",
            json={"game_id": "2002", "progression": ["1"]},
            headers=admin_headers,
        )
        assert response.status_code == 201
        assert response.json()["revealed"] is False

        response = await client.post("/api/v1/admin/challenges/shadow/reveal", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["revealed"] is True

        response = await client.patch(
            "/api/v1/admin/challenges/1001/total",
            json={"achievement_total": 11},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["achievement_total"] == 11

    async def test_challenge_with_empty_progression(self, client: AsyncClient, admin_headers):
        response = await client.post(
            "/api/v1/admin/challenges",
            json={"game_id": "1001", "progression": []},
            headers=admin_headers,
        )
        assert response.status_code == 422

    async def test_scored_challenge_is_locked(
        self, client: AsyncClient, admin_headers, session_factory, pipeline, provider,
    ):
        period = await _current_challenge(session_factory)
        await seed_users(session_factory, "alice")
        provider.set_earned("1001", "alice", [1])
        await pipeline.force_recheck(period.start())

        response = await client.post(
            "/api/v1/admin/challenges",
            json={"game_id": "1001", "progression": ["1"]},
            headers=admin_headers,
        )
        assert response.status_code == 409
        assert "achievement total" in response.json()["detail"]

        response = await client.patch(
            "/api/v1/admin/challenges/1001/total",
            json={"achievement_total": 12},
            headers=admin_headers,
        )
        assert response.status_code == 200
