"""Score aggregation: a user's total_score is the sum of their posts' scores."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.database import translate_store_errors
from postwars.db.models import Post, User
from postwars.exceptions import NotFoundError

logger = logging.getLogger(__name__)


async def get_user(db: AsyncSession, user_id: int) -> User:
    """Load a user or raise NotFoundError."""
    with translate_store_errors("load user"):
        user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    return user


async def sum_post_scores(db: AsyncSession, user_id: int) -> int:
    """Sum of total_score over all posts the user currently owns."""
    with translate_store_errors("sum post scores"):
        result = await db.execute(
            select(func.coalesce(func.sum(Post.total_score), 0)).where(Post.user_id == user_id)
        )
        return int(result.scalar_one())


async def recompute_total_score(db: AsyncSession, user_id: int) -> int:
    """Recompute and store the user's total_score. Safe to re-run.

    The write happens only after the read succeeded, so a failing read
    never overwrites a valid score.
    """
    user = await get_user(db, user_id)
    total = await sum_post_scores(db, user_id)

    if user.total_score != total:
        logger.debug("total_score for user %d: %d -> %d", user_id, user.total_score, total)
    user.total_score = total
    with translate_store_errors("update total score"):
        await db.flush()
    return total
