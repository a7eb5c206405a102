"""Dashboard endpoint: stats, recent posts and achievements of the caller."""

from __future__ import annotations

import pytest
import pytest_asyncio

from conftest import auth_headers


@pytest_asyncio.fixture
async def people(db_session, make_user):
    leader = await make_user(name="Leader", total_score=500)
    writer = await make_user(name="Writer")
    await db_session.commit()
    return leader, writer


class TestDashboardApi:
    @pytest.mark.asyncio
    async def test_empty(self, client, people):
        _, writer = people
        response = await client.get("/api/v1/dashboard", headers=auth_headers(writer))
        assert response.status_code == 200
        assert response.headers["cache-control"] == "private, max-age=300"
        data = response.json()
        assert data["user"]["id"] == writer.id
        assert data["user"]["rank"] == 2
        assert data["stats"]["total_posts"] == 0
        assert data["recent_posts"] == []
        assert data["recent_achievements"] == []

    @pytest.mark.asyncio
    async def test_after_submitting(self, client, people):
        _, writer = people
        submitted = await client.post(
            "/api/v1/posts",
            json={
                "linkedin_url": "https://www.linkedin.com/posts/writer-activity-1",
                "content": "a" * 160,
                "reactions": 10,
                "comments": 2,
                "reposts": 1,
            },
            headers=auth_headers(writer),
        )
        assert submitted.status_code == 201

        response = await client.get("/api/v1/dashboard", headers=auth_headers(writer))
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["total_score"] == 6
        assert data["user"]["current_streak"] == 1
        assert data["stats"]["total_posts"] == 1
        assert data["stats"]["total_engagement"] == 13
        assert data["stats"]["average_engagement"] == 13

        [post] = data["recent_posts"]
        assert post["content"] == "a" * 150 + "..."
        assert post["growth"] == {"reaction_growth": 0, "comment_growth": 0, "repost_growth": 0}

        assert [a["achievement"]["slug"] for a in data["recent_achievements"]] == ["first_post"]

    @pytest.mark.asyncio
    async def test_requires_auth(self, client, people):
        response = await client.get("/api/v1/dashboard")
        assert response.status_code in (401, 403)
