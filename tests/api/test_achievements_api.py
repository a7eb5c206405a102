"""Achievement endpoints: catalog, earned list, recent, admin batch award."""

from __future__ import annotations

import pytest
import pytest_asyncio

from conftest import auth_headers


@pytest_asyncio.fixture
async def people(db_session, make_user, make_post):
    writer = await make_user(name="Writer")
    lurker = await make_user(name="Lurker")
    admin = await make_user(name="Admin", role="ADMIN")
    await make_post(writer)
    await db_session.commit()
    return writer, lurker, admin


class TestCatalogApi:
    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/api/v1/achievements")
        assert response.status_code == 200
        slugs = [a["slug"] for a in response.json()["achievements"]]
        assert slugs == ["first_post", "consistent_creator", "engagement_magnet", "week_warrior", "viral_moment"]


class TestAdminAward:
    @pytest.mark.asyncio
    async def test_award_batch(self, client, people):
        writer, lurker, admin = people
        response = await client.post(
            "/api/v1/admin/achievements/award",
            json={"user_ids": [writer.id, lurker.id, 31337]},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total_users_checked"] == 3
        assert data["total_awarded"] == 1
        by_user = {r["user_id"]: r for r in data["results"]}
        assert len(by_user[writer.id]["granted"]) == 1
        assert by_user[lurker.id]["granted"] == []
        assert by_user[31337]["failed"] is True

        mine = await client.get("/api/v1/users/me/achievements", headers=auth_headers(writer))
        earned = mine.json()
        assert earned["total_earned"] == 1
        assert earned["total_available"] == 5
        assert earned["earned"][0]["achievement"]["slug"] == "first_post"

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, people):
        writer, _, _ = people
        response = await client.post(
            "/api/v1/admin/achievements/award",
            json={"user_ids": [writer.id]},
            headers=auth_headers(writer),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_batch_limit(self, client, people):
        _, _, admin = people
        response = await client.post(
            "/api/v1/admin/achievements/award",
            json={"user_ids": list(range(1, 52))},
            headers=auth_headers(admin),
        )
        assert response.status_code == 400


class TestRecentAchievements:
    @pytest.mark.asyncio
    async def test_recent(self, client, people):
        writer, lurker, admin = people
        await client.post(
            "/api/v1/admin/achievements/award",
            json={"user_ids": [writer.id]},
            headers=auth_headers(admin),
        )
        response = await client.post(
            "/api/v1/achievements/recent",
            json={"user_ids": [writer.id, lurker.id]},
            headers=auth_headers(lurker),
        )
        assert response.status_code == 200
        recent = response.json()["achievements"]
        assert set(recent) == {str(writer.id)}
        assert recent[str(writer.id)]["achievement"]["slug"] == "first_post"

    @pytest.mark.asyncio
    async def test_empty_ids(self, client, people):
        writer, _, _ = people
        response = await client.post(
            "/api/v1/achievements/recent", json={"user_ids": []}, headers=auth_headers(writer),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_too_many_ids(self, client, people):
        writer, _, _ = people
        response = await client.post(
            "/api/v1/achievements/recent",
            json={"user_ids": list(range(1, 102))},
            headers=auth_headers(writer),
        )
        assert response.status_code == 400
