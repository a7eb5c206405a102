"""Personal dashboard: stored stats, rank, recent posts and achievements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.database import translate_store_errors
from postwars.db.models import Post, PostAnalytics, User, UserAchievement
from postwars.gamification.score_service import get_user
from postwars.gamification.scoring import round_half_up
from postwars.gamification.streak_service import get_reference_tz

logger = logging.getLogger(__name__)

RECENT_POSTS_LIMIT = 10
RECENT_ACHIEVEMENTS_LIMIT = 5
CONTENT_PREVIEW_CHARS = 150


@dataclass
class DashboardPost:
    post: Post
    preview: str | None
    reaction_growth: int = 0
    comment_growth: int = 0
    repost_growth: int = 0


@dataclass
class DashboardStats:
    total_posts: int
    total_engagement: int
    monthly_posts: int
    monthly_engagement: int
    average_engagement: int


@dataclass
class Dashboard:
    user: User
    rank: int
    stats: DashboardStats
    recent_posts: list[DashboardPost] = field(default_factory=list)
    recent_achievements: list[UserAchievement] = field(default_factory=list)


def _published():  # noqa: ANN202
    return func.coalesce(Post.posted_at, Post.created_at)


def content_preview(content: str | None) -> str | None:
    if content is None or len(content) <= CONTENT_PREVIEW_CHARS:
        return content
    return content[:CONTENT_PREVIEW_CHARS] + "..."


def month_start(now: datetime) -> datetime:
    """First instant of the current calendar month in the reference timezone."""
    local = now.astimezone(get_reference_tz())
    start = local.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start.astimezone(timezone.utc)


async def user_rank(db: AsyncSession, user: User) -> int:
    """1 + the number of users with a strictly higher stored score."""
    with translate_store_errors("load user rank"):
        result = await db.execute(
            select(func.count()).select_from(User).where(User.total_score > user.total_score)
        )
        return int(result.scalar_one()) + 1


async def _post_totals(db: AsyncSession, user_id: int, since: datetime | None = None) -> tuple[int, int]:
    stmt = select(func.count(Post.id), func.coalesce(func.sum(Post.total_engagement), 0)).where(
        Post.user_id == user_id
    )
    if since is not None:
        stmt = stmt.where(_published() >= since)
    with translate_store_errors("load post totals"):
        result = await db.execute(stmt)
        count, engagement = result.one()
    return int(count), int(engagement)


async def _recent_posts(db: AsyncSession, user_id: int, limit: int) -> list[DashboardPost]:
    with translate_store_errors("load recent posts"):
        result = await db.execute(
            select(Post)
            .where(Post.user_id == user_id)
            .order_by(_published().desc(), Post.id.desc())
            .limit(limit)
        )
        posts = list(result.scalars())
        if not posts:
            return []
        snapshots = await db.execute(
            select(PostAnalytics)
            .where(PostAnalytics.post_id.in_([p.id for p in posts]))
            .order_by(PostAnalytics.recorded_at.desc(), PostAnalytics.id.desc())
        )

    latest: dict[int, PostAnalytics] = {}
    for snapshot in snapshots.scalars():
        latest.setdefault(snapshot.post_id, snapshot)

    items = []
    for post in posts:
        item = DashboardPost(post=post, preview=content_preview(post.content))
        snapshot = latest.get(post.id)
        if snapshot is not None:
            item.reaction_growth = snapshot.reaction_growth
            item.comment_growth = snapshot.comment_growth
            item.repost_growth = snapshot.repost_growth
        items.append(item)
    return items


async def get_user_dashboard(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
    recent_limit: int = RECENT_POSTS_LIMIT,
) -> Dashboard:
    """Read-only summary of one user's standing.

    Posts are ordered by when they were published (falling back to when
    they were tracked); growth figures come from each post's latest
    analytics snapshot. The monthly figures cover the current calendar
    month in the streak reference timezone.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    user = await get_user(db, user_id)
    rank = await user_rank(db, user)
    total_posts, total_engagement = await _post_totals(db, user.id)
    monthly_posts, monthly_engagement = await _post_totals(db, user.id, since=month_start(now))

    with translate_store_errors("load recent achievements"):
        result = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user.id)
            .order_by(UserAchievement.awarded_at.desc(), UserAchievement.id.desc())
            .limit(RECENT_ACHIEVEMENTS_LIMIT)
        )
        achievements = list(result.scalars())

    stats = DashboardStats(
        total_posts=total_posts,
        total_engagement=total_engagement,
        monthly_posts=monthly_posts,
        monthly_engagement=monthly_engagement,
        average_engagement=round_half_up(total_engagement / total_posts) if total_posts else 0,
    )
    logger.debug("Dashboard for user %d: rank %d, %d posts", user.id, rank, total_posts)
    return Dashboard(
        user=user,
        rank=rank,
        stats=stats,
        recent_posts=await _recent_posts(db, user.id, recent_limit),
        recent_achievements=achievements,
    )
