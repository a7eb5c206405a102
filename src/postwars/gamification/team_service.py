"""Team management: create and delete teams, move users between them.

Deleting a team never deletes its members; they are left unassigned.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.auth.roles import Role
from postwars.database import translate_store_errors
from postwars.db.models import Team, User
from postwars.exceptions import ConflictError, NotFoundError, ValidationError
from postwars.gamification.leaderboard_service import (
    LeaderboardEntry,
    load_users,
    rank_entries,
    scores_for,
    validate_timeframe,
)

logger = logging.getLogger(__name__)


async def get_team(db: AsyncSession, team_id: int) -> Team:
    with translate_store_errors("load team"):
        team = await db.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team not found")
    return team


async def list_members(db: AsyncSession, team_id: int) -> list[User]:
    with translate_store_errors("load team members"):
        result = await db.execute(select(User).where(User.team_id == team_id).order_by(User.id))
        return list(result.scalars())


async def create_team(
    db: AsyncSession,
    name: str | None,
    description: str | None = None,
    team_lead_id: int | None = None,
) -> Team:
    """Create a team, promoting a REGULAR team lead to TEAM_LEAD."""
    name = (name or "").strip()
    if not name:
        raise ValidationError("Team name is required")

    with translate_store_errors("check team name"):
        existing = await db.execute(select(Team.id).where(Team.name == name))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Team name already exists")

    if team_lead_id is not None:
        with translate_store_errors("load team lead"):
            lead = await db.get(User, team_lead_id)
        if lead is None:
            raise ValidationError("Team lead not found")
        if Role.parse(lead.role) == Role.REGULAR:
            lead.role = Role.TEAM_LEAD.name

    team = Team(name=name, description=description, team_lead_id=team_lead_id)
    db.add(team)
    with translate_store_errors("create team"):
        await db.flush()
    logger.info("Created team %d (%s)", team.id, team.name)
    return team


async def delete_team(db: AsyncSession, team_id: int) -> int:
    """Delete a team and unassign its members. Returns how many were unassigned."""
    team = await get_team(db, team_id)
    members = await list_members(db, team.id)
    with translate_store_errors("delete team"):
        await db.execute(
            update(User)
            .where(User.team_id == team.id)
            .values(team_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await db.delete(team)
        await db.flush()
    logger.info("Deleted team %d, %d members unassigned", team_id, len(members))
    return len(members)


async def assign_members(db: AsyncSession, team_id: int, user_ids: Sequence[int]) -> list[User]:
    """Move the given users into a team. Returns the team's members afterwards."""
    if not user_ids:
        raise ValidationError("user_ids array is required")
    team = await get_team(db, team_id)

    ids = list(dict.fromkeys(user_ids))
    with translate_store_errors("load users"):
        result = await db.execute(select(User.id).where(User.id.in_(ids)))
    missing = set(ids) - set(result.scalars())
    if missing:
        raise NotFoundError(f"User {min(missing)} not found")

    with translate_store_errors("assign team members"):
        await db.execute(
            update(User)
            .where(User.id.in_(ids))
            .values(team_id=team.id)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
    logger.info("Assigned %d users to team %d", len(ids), team.id)
    return await list_members(db, team.id)


async def remove_members(db: AsyncSession, team_id: int, user_ids: Sequence[int]) -> list[User]:
    """Unassign users from a team; users in other teams are left alone."""
    if not user_ids:
        raise ValidationError("user_ids array is required")
    team = await get_team(db, team_id)
    with translate_store_errors("remove team members"):
        await db.execute(
            update(User)
            .where(User.id.in_(list(user_ids)), User.team_id == team.id)
            .values(team_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await db.flush()
    return await list_members(db, team.id)


async def build_team_leaderboard(
    db: AsyncSession,
    team_id: int,
    timeframe: str,
    requesting_user: User,
    now: datetime | None = None,
) -> tuple[Team, list[LeaderboardEntry]]:
    """Rank the members of one team, chosen by id rather than by membership."""
    validate_timeframe(timeframe)
    if now is None:
        now = datetime.now(timezone.utc)

    team = await get_team(db, team_id)
    users = await load_users(db, team.id)
    scores = await scores_for(db, users, timeframe, now)
    entries = [
        LeaderboardEntry(
            rank=0,
            user_id=u.id,
            name=u.name,
            team_id=team.id,
            team_name=team.name,
            score=scores[u.id],
            current_streak=u.current_streak,
            created_at=u.created_at,
            is_current_user=u.id == requesting_user.id,
        )
        for u in users
    ]
    return team, rank_entries(entries)
