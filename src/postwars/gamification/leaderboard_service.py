"""Leaderboards: users ranked by score within a scope and timeframe.

Scores for the `all` timeframe come from the stored users.total_score;
`month` and `week` are recomputed from posts created inside a rolling
window ending now. Ordering is fully deterministic: score descending, then
earlier account creation, then lower id.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.database import translate_store_errors
from postwars.db.models import Post, Team, User
from postwars.exceptions import NotApplicableError, ValidationError
from postwars.gamification.streak_service import as_utc

logger = logging.getLogger(__name__)

SCOPES = ("company", "team")
TIMEFRAMES = ("all", "month", "week")

TIMEFRAME_WINDOWS: dict[str, timedelta] = {
    "month": timedelta(days=30),
    "week": timedelta(days=7),
}


@dataclass
class LeaderboardEntry:
    rank: int
    user_id: int
    name: str | None
    team_id: int | None
    team_name: str | None
    score: int
    current_streak: int
    created_at: datetime
    is_current_user: bool = False


@dataclass
class TeamRanking:
    rank: int
    team_id: int
    name: str
    total_score: int
    member_count: int
    average_score: float
    is_user_team: bool = False


def validate_timeframe(timeframe: str) -> str:
    if timeframe not in TIMEFRAMES:
        raise ValidationError("Invalid timeframe. Use: all, month, or week")
    return timeframe


def window_start(timeframe: str, now: datetime) -> datetime | None:
    """Start of the rolling window for a timeframe; None means all-time."""
    window = TIMEFRAME_WINDOWS.get(timeframe)
    if window is None:
        return None
    return now - window


def rank_entries(entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Sort by score desc, created_at asc, user_id asc and assign ranks 1..n."""
    ordered = sorted(
        entries,
        key=lambda e: (-e.score, as_utc(e.created_at), e.user_id),
    )
    for position, entry in enumerate(ordered, start=1):
        entry.rank = position
    return ordered


async def windowed_scores(
    db: AsyncSession,
    since: datetime,
    user_ids: list[int] | None = None,
) -> dict[int, int]:
    """Sum of post scores per user for posts created at or after `since`."""
    stmt = (
        select(Post.user_id, func.coalesce(func.sum(Post.total_score), 0))
        .where(Post.created_at >= since)
        .group_by(Post.user_id)
    )
    if user_ids is not None:
        stmt = stmt.where(Post.user_id.in_(user_ids))
    with translate_store_errors("load windowed scores"):
        result = await db.execute(stmt)
        return {user_id: int(total) for user_id, total in result.all()}


async def load_users(db: AsyncSession, team_id: int | None) -> list[User]:
    stmt = select(User)
    if team_id is not None:
        stmt = stmt.where(User.team_id == team_id)
    with translate_store_errors("load leaderboard users"):
        result = await db.execute(stmt)
        return list(result.scalars())


async def _team_names(db: AsyncSession) -> dict[int, str]:
    with translate_store_errors("load team names"):
        result = await db.execute(select(Team.id, Team.name))
        return {team_id: name for team_id, name in result.all()}


async def scores_for(
    db: AsyncSession,
    users: list[User],
    timeframe: str,
    now: datetime,
) -> dict[int, int]:
    since = window_start(timeframe, now)
    if since is None:
        return {u.id: u.total_score for u in users}
    windowed = await windowed_scores(db, since, [u.id for u in users])
    return {u.id: windowed.get(u.id, 0) for u in users}


async def build_leaderboard(
    db: AsyncSession,
    scope: str,
    timeframe: str,
    requesting_user: User,
    now: datetime | None = None,
) -> list[LeaderboardEntry]:
    """Rank users of the company, or of the requester's team."""
    if scope not in SCOPES:
        raise ValidationError("Invalid scope. Use: team or company")
    validate_timeframe(timeframe)
    if now is None:
        now = datetime.now(timezone.utc)

    team_id: int | None = None
    if scope == "team":
        if requesting_user.team_id is None:
            raise NotApplicableError("User not assigned to a team")
        team_id = requesting_user.team_id

    users = await load_users(db, team_id)
    scores = await scores_for(db, users, timeframe, now)
    team_names = await _team_names(db)

    entries = [
        LeaderboardEntry(
            rank=0,
            user_id=u.id,
            name=u.name,
            team_id=u.team_id,
            team_name=team_names.get(u.team_id) if u.team_id is not None else None,
            score=scores[u.id],
            current_streak=u.current_streak,
            created_at=u.created_at,
            is_current_user=u.id == requesting_user.id,
        )
        for u in users
    ]
    ranked = rank_entries(entries)
    logger.debug("Leaderboard scope=%s timeframe=%s: %d entries", scope, timeframe, len(ranked))
    return ranked


def rank_teams(rankings: Iterable[TeamRanking]) -> list[TeamRanking]:
    """Sort by total score desc, then name and id; assign ranks 1..n."""
    ordered = sorted(rankings, key=lambda t: (-t.total_score, t.name, t.team_id))
    for position, team in enumerate(ordered, start=1):
        team.rank = position
    return ordered


async def build_team_rankings(
    db: AsyncSession,
    timeframe: str,
    requesting_user: User,
    now: datetime | None = None,
) -> list[TeamRanking]:
    """Team-vs-team standings. Teams without members are left out."""
    validate_timeframe(timeframe)
    if now is None:
        now = datetime.now(timezone.utc)

    with translate_store_errors("load teams"):
        result = await db.execute(select(Team))
        teams = list(result.scalars())
        members_result = await db.execute(select(User).where(User.team_id.is_not(None)))
        members = list(members_result.scalars())

    scores = await scores_for(db, members, timeframe, now)

    by_team: dict[int, list[int]] = {}
    for member in members:
        by_team.setdefault(member.team_id, []).append(scores[member.id])

    rankings = []
    for team in teams:
        member_scores = by_team.get(team.id, [])
        if not member_scores:
            continue
        total = sum(member_scores)
        rankings.append(TeamRanking(
            rank=0,
            team_id=team.id,
            name=team.name,
            total_score=total,
            member_count=len(member_scores),
            average_score=round(total / len(member_scores), 1),
            is_user_team=team.id == requesting_user.team_id,
        ))
    return rank_teams(rankings)
