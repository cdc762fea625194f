"""Integration tests for gamification API endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from skillpath.gamification import catalog, leaderboard
from skillpath.gamification.catalog import ACHIEVEMENT_SEED_DATA


class TestAchievementsEndpoint:
    """GET /achievements (public)."""

    @pytest.mark.asyncio
    async def test_list_achievements(self, client: AsyncClient):
        response = await client.get("/api/v1/gamification/achievements")
        assert response.status_code == 200
        data = response.json()
        assert len(data["achievements"]) == len(ACHIEVEMENT_SEED_DATA)

    @pytest.mark.asyncio
    async def test_achievement_fields(self, client: AsyncClient):
        response = await client.get("/api/v1/gamification/achievements")
        achievement = response.json()["achievements"][0]
        for key in ("id", "slug", "title", "description", "category", "icon", "points", "rarity", "criteria"):
            assert key in achievement
        assert achievement["slug"] == "first-quiz"
        assert achievement["criteria"] == "quiz-passed x1"


class TestLevelsEndpoint:
    @pytest.mark.asyncio
    async def test_levels(self, client: AsyncClient):
        response = await client.get("/api/v1/gamification/levels", params={"count": 3})
        assert response.status_code == 200
        data = response.json()
        assert data["ranks"][0] == {"min_level": 1, "rank": "Novice"}
        assert [lvl["xp_required"] for lvl in data["levels"]] == [100, 150, 225]


class TestProfileEndpoint:
    @pytest.mark.asyncio
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/gamification/profile")
        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_fresh_profile(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/gamification/profile")
        assert response.status_code == 200
        data = response.json()
        assert data["level"] == 1
        assert data["current_xp"] == 0
        assert data["required_xp"] == 100
        assert data["total_xp"] == 0
        assert data["rank"] == "Novice"
        assert data["leaderboard_position"] == 1
        assert data["achievements"] == []
        assert data["new_achievements"] == []

    @pytest.mark.asyncio
    async def test_profile_after_rewards(self, authed_client: AsyncClient):
        for _ in range(2):
            await authed_client.post("/api/v1/gamification/reward", json={"action": "module-completed"})

        data = (await authed_client.get("/api/v1/gamification/profile")).json()
        assert data["total_xp"] == 200
        assert data["level"] == 2
        assert data["current_xp"] == 100
        unlocked = [a["achievement"]["slug"] for a in data["achievements"]]
        assert unlocked == ["first-module"]
        assert [a["achievement"]["slug"] for a in data["new_achievements"]] == ["first-module"]
        in_progress = {a["achievement"]["slug"]: a["progress"] for a in data["in_progress_achievements"]}
        assert in_progress["module-master"] == 40


class TestRewardEndpoint:
    @pytest.mark.asyncio
    async def test_reward(self, authed_client: AsyncClient):
        response = await authed_client.post(
            "/api/v1/gamification/reward",
            json={"action": "quiz-passed", "metadata": {"score": 80}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["xp_gained"] == 50
        assert data["reason"] == "Quiz passed"
        assert data["leveled_up"] is False
        assert data["new_level"] is None
        assert data["total_xp"] == 50
        assert [u["achievement"]["slug"] for u in data["unlocked"]] == ["first-quiz"]

    @pytest.mark.asyncio
    async def test_reward_level_up(self, authed_client: AsyncClient):
        await authed_client.post("/api/v1/gamification/reward", json={"action": "quiz-passed"})
        response = await authed_client.post("/api/v1/gamification/reward", json={"action": "module-completed"})
        data = response.json()
        assert data["leveled_up"] is True
        assert data["new_level"] == 2
        assert data["level_ups"] == [{"old_level": 1, "new_level": 2, "rank": "Novice"}]
        assert data["current_xp"] == 50
        assert data["required_xp"] == 150

    @pytest.mark.asyncio
    async def test_unknown_action(self, authed_client: AsyncClient):
        response = await authed_client.post("/api/v1/gamification/reward", json={"action": "teleport"})
        assert response.status_code == 422
        assert response.json()["error"] == "validation_error"

        profile = (await authed_client.get("/api/v1/gamification/profile")).json()
        assert profile["total_xp"] == 0

    @pytest.mark.asyncio
    async def test_bad_score(self, authed_client: AsyncClient):
        response = await authed_client.post(
            "/api/v1/gamification/reward",
            json={"action": "quiz-passed", "metadata": {"score": 250}},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_idempotency_header(self, authed_client: AsyncClient):
        headers = {"Idempotency-Key": "quiz-42-attempt-1"}
        first = await authed_client.post(
            "/api/v1/gamification/reward", json={"action": "quiz-passed"}, headers=headers
        )
        second = await authed_client.post(
            "/api/v1/gamification/reward", json={"action": "quiz-passed"}, headers=headers
        )
        assert first.json()["duplicate"] is False
        assert second.json()["duplicate"] is True
        assert second.json()["total_xp"] == 50


class TestViewEndpoint:
    @pytest.mark.asyncio
    async def test_mark_viewed(self, authed_client: AsyncClient):
        await authed_client.post("/api/v1/gamification/reward", json={"action": "quiz-passed"})

        for _ in range(2):
            response = await authed_client.put("/api/v1/gamification/achievements/first-quiz/view")
            assert response.status_code == 200
            assert response.json() == {"status": "ok"}

        data = (await authed_client.get("/api/v1/gamification/profile")).json()
        assert data["new_achievements"] == []
        assert data["achievements"][0]["is_viewed"] is True

    @pytest.mark.asyncio
    async def test_locked_achievement_is_noop(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/gamification/achievements/collector/view")
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_achievement(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/gamification/achievements/does-not-exist/view")
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestXPHistoryEndpoint:
    @pytest.mark.asyncio
    async def test_history(self, authed_client: AsyncClient):
        for action in ("daily-login", "quiz-passed", "module-completed"):
            await authed_client.post("/api/v1/gamification/reward", json={"action": action})

        response = await authed_client.get("/api/v1/gamification/xp/history", params={"per_page": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert len(data["entries"]) == 2
        assert data["entries"][0]["source"] == "action"
        assert data["entries"][0]["source_id"] == "module-completed"
        assert data["entries"][0]["amount"] == 100

        page2 = (await authed_client.get(
            "/api/v1/gamification/xp/history", params={"per_page": 2, "page": 2}
        )).json()
        assert [e["source_id"] for e in page2["entries"]] == ["daily-login"]


class TestLeaderboardEndpoint:
    @pytest.mark.asyncio
    async def test_leaderboard(self, client: AsyncClient, register):
        leader = await register("leader@example.com", "Leader")
        follower = await register("follower@example.com", "Follower")

        client.headers["Authorization"] = f"Bearer {leader['access_token']}"
        await client.post("/api/v1/gamification/reward", json={"action": "goal-completed"})
        client.headers["Authorization"] = f"Bearer {follower['access_token']}"
        await client.post("/api/v1/gamification/reward", json={"action": "quiz-passed"})

        response = await client.get("/api/v1/gamification/leaderboard")
        assert response.status_code == 200
        entries = response.json()
        assert [e["display_name"] for e in entries] == ["Leader", "Follower"]
        assert entries[0]["position"] == 1
        assert entries[0]["total_xp"] == 200

        profile = (await client.get("/api/v1/gamification/profile")).json()
        assert profile["leaderboard_position"] == 2

    @pytest.mark.asyncio
    async def test_limit_is_clamped(self, authed_client: AsyncClient, register):
        await register("second@example.com", "Second")
        one = (await authed_client.get("/api/v1/gamification/leaderboard", params={"limit": 1})).json()
        assert len(one) == 1
        many = await authed_client.get("/api/v1/gamification/leaderboard", params={"limit": 100000})
        assert many.status_code == 200
        assert len(many.json()) == 2
        zero = await authed_client.get("/api/v1/gamification/leaderboard", params={"limit": 0})
        assert len(zero.json()) == 1


def _disk_error(*args, **kwargs):
    raise OperationalError("SELECT", {}, Exception("disk I/O error"))


class TestStorageFailures:
    """Read endpoints answer 503 when the database fails underneath them."""

    @pytest.mark.asyncio
    async def test_profile(self, authed_client: AsyncClient, monkeypatch):
        async def broken_rank(db, user_id):
            _disk_error()

        monkeypatch.setattr(leaderboard, "rank_of", broken_rank)
        response = await authed_client.get("/api/v1/gamification/profile")
        assert response.status_code == 503
        assert response.json()["error"] == "storage_unavailable"

    @pytest.mark.asyncio
    async def test_leaderboard(self, authed_client: AsyncClient, monkeypatch):
        async def broken_top(db, n):
            _disk_error()

        monkeypatch.setattr(leaderboard, "top_n", broken_top)
        response = await authed_client.get("/api/v1/gamification/leaderboard")
        assert response.status_code == 503
        assert response.json()["error"] == "storage_unavailable"

    @pytest.mark.asyncio
    async def test_achievements(self, client: AsyncClient, monkeypatch):
        async def broken_list(db):
            _disk_error()

        monkeypatch.setattr(catalog, "list_active", broken_list)
        response = await client.get("/api/v1/gamification/achievements")
        assert response.status_code == 503
        assert response.json()["error"] == "storage_unavailable"
