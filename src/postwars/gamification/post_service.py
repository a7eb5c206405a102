"""Post lifecycle: create, refresh engagement metrics, delete.

Each mutation re-runs the user stats pipeline for the post's owner.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.auth.roles import Role, has_role
from postwars.database import translate_store_errors
from postwars.db.models import Post, PostAnalytics, User
from postwars.exceptions import (
    ConflictError,
    DuplicatePostError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from postwars.gamification.engagement import total_engagement
from postwars.gamification.scoring import calculate_post_score
from postwars.gamification.user_stats import UserStats, update_user_stats

logger = logging.getLogger(__name__)


def validate_linkedin_url(url: str | None) -> str:
    url = (url or "").strip()
    if not url or "linkedin.com" not in url:
        raise ValidationError("Valid LinkedIn URL required")
    return url


def validate_counts(reactions: int, comments: int, reposts: int) -> None:
    for label, value in (("reactions", reactions), ("comments", comments), ("reposts", reposts)):
        if value is None or value < 0:
            raise ValidationError(f"{label} must be a non-negative integer")


async def get_post(db: AsyncSession, post_id: int) -> Post:
    with translate_store_errors("load post"):
        post = await db.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found")
    return post


def ensure_can_modify(post: Post, actor: User) -> None:
    """Only the owner or an admin may change a post."""
    if post.user_id != actor.id and not has_role(actor.role, Role.ADMIN):
        raise PermissionDeniedError("You can only modify your own posts")


def _apply_metrics(
    post: Post,
    reactions: int,
    comments: int,
    reposts: int,
    user_streak: int,
    now: datetime,
) -> None:
    score = calculate_post_score(
        reactions, comments, reposts,
        posted_at=post.posted_at or post.created_at,
        user_streak=user_streak,
        now=now,
    )
    post.reactions = reactions
    post.comments = comments
    post.reposts = reposts
    post.total_engagement = total_engagement(reactions, comments, reposts)
    post.engagement_score = score.engagement_score
    post.total_score = score.total_score
    post.last_scraped_at = now


async def create_post(
    db: AsyncSession,
    redis: object,
    owner: User,
    url: str,
    reactions: int = 0,
    comments: int = 0,
    reposts: int = 0,
    content: str | None = None,
    posted_at: datetime | None = None,
    now: datetime | None = None,
) -> tuple[Post, UserStats]:
    """Track a new post for `owner` and refresh their stats."""
    url = validate_linkedin_url(url)
    validate_counts(reactions, comments, reposts)
    if now is None:
        now = datetime.now(timezone.utc)

    with translate_store_errors("check duplicate post"):
        existing = await db.execute(
            select(Post.id).where(Post.user_id == owner.id, Post.url == url)
        )
    if existing.scalar_one_or_none() is not None:
        raise DuplicatePostError("Post already tracked by you")

    post = Post(user_id=owner.id, url=url, content=content, posted_at=posted_at, created_at=now)
    _apply_metrics(post, reactions, comments, reposts, owner.current_streak, now)
    db.add(post)
    try:
        with translate_store_errors("create post"):
            await db.flush()
    except ConflictError as exc:
        raise DuplicatePostError("Post already tracked by you") from exc

    db.add(PostAnalytics(
        post_id=post.id,
        reactions=post.reactions,
        comments=post.comments,
        reposts=post.reposts,
        total_engagement=post.total_engagement,
        recorded_at=now,
    ))
    logger.info("User %d tracked post %d (score %d)", owner.id, post.id, post.total_score)

    stats = await update_user_stats(db, redis, owner.id, now=now)
    return post, stats


async def get_latest_analytics(db: AsyncSession, post_id: int) -> PostAnalytics | None:
    with translate_store_errors("load post analytics"):
        result = await db.execute(
            select(PostAnalytics)
            .where(PostAnalytics.post_id == post_id)
            .order_by(PostAnalytics.recorded_at.desc(), PostAnalytics.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


async def update_post_metrics(
    db: AsyncSession,
    redis: object,
    post_id: int,
    actor: User,
    reactions: int,
    comments: int,
    reposts: int,
    now: datetime | None = None,
) -> tuple[Post, PostAnalytics, UserStats]:
    """Store fresh engagement counts, record a growth snapshot and rescore."""
    validate_counts(reactions, comments, reposts)
    if now is None:
        now = datetime.now(timezone.utc)

    post = await get_post(db, post_id)
    ensure_can_modify(post, actor)

    previous = await get_latest_analytics(db, post.id)
    baseline = previous or post
    snapshot = PostAnalytics(
        post_id=post.id,
        reactions=reactions,
        comments=comments,
        reposts=reposts,
        total_engagement=total_engagement(reactions, comments, reposts),
        reaction_growth=reactions - baseline.reactions,
        comment_growth=comments - baseline.comments,
        repost_growth=reposts - baseline.reposts,
        recorded_at=now,
    )

    owner = actor if actor.id == post.user_id else await db.get(User, post.user_id)
    _apply_metrics(post, reactions, comments, reposts, owner.current_streak if owner else 0, now)
    db.add(snapshot)
    with translate_store_errors("update post metrics"):
        await db.flush()

    stats = await update_user_stats(db, redis, post.user_id, now=now)
    return post, snapshot, stats


async def delete_post(
    db: AsyncSession,
    redis: object,
    post_id: int,
    actor: User,
    now: datetime | None = None,
) -> tuple[int, UserStats]:
    """Delete a post with its analytics and refresh the owner's stats.

    Returns the deleted post's score and the owner's refreshed stats.
    """
    post = await get_post(db, post_id)
    ensure_can_modify(post, actor)
    owner_id = post.user_id
    deleted_score = post.total_score

    with translate_store_errors("delete post"):
        await db.execute(delete(PostAnalytics).where(PostAnalytics.post_id == post.id))
        await db.delete(post)
        await db.flush()
    logger.info("Post %d deleted by user %d (owner %d)", post_id, actor.id, owner_id)

    stats = await update_user_stats(db, redis, owner_id, now=now)
    return deleted_score, stats
