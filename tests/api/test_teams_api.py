"""Team endpoints: admin management and per-team leaderboard."""

from __future__ import annotations

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import select

from conftest import NOW, auth_headers
from postwars.db.models import User


@pytest_asyncio.fixture
async def org(db_session, make_team, make_user):
    sales = await make_team("Sales")
    admin = await make_user(name="Admin", role="ADMIN")
    alice = await make_user(name="Alice", team=sales, total_score=40, created_at=NOW - timedelta(days=10))
    bob = await make_user(name="Bob", team=sales, total_score=40, created_at=NOW - timedelta(days=20))
    loner = await make_user(name="Loner", total_score=5)
    await db_session.commit()
    return {"sales": sales, "admin": admin, "alice": alice, "bob": bob, "loner": loner}


class TestAdminTeamsApi:
    @pytest.mark.asyncio
    async def test_create(self, client, org):
        response = await client.post(
            "/api/v1/admin/teams",
            json={"name": "Engineering", "team_lead_id": org["loner"].id},
            headers=auth_headers(org["admin"]),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Engineering"
        assert data["team_lead_id"] == org["loner"].id
        assert data["members"] == []

    @pytest.mark.asyncio
    async def test_create_requires_name(self, client, org):
        response = await client.post("/api/v1/admin/teams", json={}, headers=auth_headers(org["admin"]))
        assert response.status_code == 400
        assert response.json() == {"detail": "Team name is required"}

    @pytest.mark.asyncio
    async def test_create_duplicate(self, client, org):
        response = await client.post(
            "/api/v1/admin/teams", json={"name": "Sales"}, headers=auth_headers(org["admin"]),
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, org):
        response = await client.post(
            "/api/v1/admin/teams", json={"name": "Rogue"}, headers=auth_headers(org["alice"]),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_add_and_remove_members(self, client, org):
        sales_id = org["sales"].id
        added = await client.post(
            f"/api/v1/admin/teams/{sales_id}/members",
            json={"user_ids": [org["loner"].id]},
            headers=auth_headers(org["admin"]),
        )
        assert added.status_code == 200
        assert [m["name"] for m in added.json()["members"]] == ["Alice", "Bob", "Loner"]

        removed = await client.request(
            "DELETE",
            f"/api/v1/admin/teams/{sales_id}/members",
            json={"user_ids": [org["alice"].id]},
            headers=auth_headers(org["admin"]),
        )
        assert removed.status_code == 200
        assert [m["name"] for m in removed.json()["members"]] == ["Bob", "Loner"]

    @pytest.mark.asyncio
    async def test_add_to_missing_team(self, client, org):
        response = await client.post(
            "/api/v1/admin/teams/999/members",
            json={"user_ids": [org["loner"].id]},
            headers=auth_headers(org["admin"]),
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_keeps_members(self, client, org, session_factory):
        member_ids = [org["alice"].id, org["bob"].id]
        response = await client.delete(
            f"/api/v1/admin/teams/{org['sales'].id}", headers=auth_headers(org["admin"]),
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "unassigned_members": 2}

        async with session_factory() as db:
            result = await db.execute(select(User.id, User.team_id).where(User.id.in_(member_ids)))
            assert sorted(tuple(row) for row in result.all()) == [(member_ids[0], None), (member_ids[1], None)]

        board = await client.get("/api/v1/leaderboard", headers=auth_headers(org["alice"]))
        assert {r["name"] for r in board.json()["rankings"]} >= {"Alice", "Bob"}

    @pytest.mark.asyncio
    async def test_delete_missing_team(self, client, org):
        response = await client.delete("/api/v1/admin/teams/999", headers=auth_headers(org["admin"]))
        assert response.status_code == 404


class TestTeamLeaderboardApi:
    @pytest.mark.asyncio
    async def test_any_user_can_view(self, client, org):
        response = await client.get(
            f"/api/v1/teams/{org['sales'].id}/leaderboard", headers=auth_headers(org["loner"]),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["scope"] == "team"
        assert data["team"]["name"] == "Sales"
        assert data["team"]["member_count"] == 2
        assert [r["name"] for r in data["rankings"]] == ["Bob", "Alice"]
        assert data["user_rank"] is None

    @pytest.mark.asyncio
    async def test_user_rank(self, client, org):
        response = await client.get(
            f"/api/v1/teams/{org['sales'].id}/leaderboard", headers=auth_headers(org["alice"]),
        )
        assert response.json()["user_rank"] == 2

    @pytest.mark.asyncio
    async def test_missing_team(self, client, org):
        response = await client.get("/api/v1/teams/999/leaderboard", headers=auth_headers(org["alice"]))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_timeframe(self, client, org):
        response = await client.get(
            f"/api/v1/teams/{org['sales'].id}/leaderboard",
            params={"timeframe": "year"},
            headers=auth_headers(org["alice"]),
        )
        assert response.status_code == 400
