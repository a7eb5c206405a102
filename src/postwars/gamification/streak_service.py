"""Posting streaks: consecutive calendar days with at least one post.

Days are evaluated in a fixed reference timezone. A run ending yesterday
still counts as current (today's post may not have happened yet); a run
that ended two or more days ago resets the current streak to 0.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.config import get_settings
from postwars.database import translate_store_errors
from postwars.db.models import Post
from postwars.gamification.score_service import get_user

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakResult:
    current: int
    best: int


def get_reference_tz() -> tzinfo:
    """Timezone streak days are counted in."""
    return ZoneInfo(get_settings().streak_timezone)


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def local_day(dt: datetime, tz: tzinfo) -> date:
    """Calendar day of `dt` in the reference timezone."""
    return as_utc(dt).astimezone(tz).date()


def longest_run(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive days."""
    best = 0
    run = 0
    previous: date | None = None
    for day in sorted(set(days)):
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        best = max(best, run)
        previous = day
    return best


def current_run(days: Iterable[date], today: date) -> int:
    """Length of the run ending today, or yesterday if nothing was posted today."""
    day_set = set(days)
    if today in day_set:
        anchor = today
    elif today - timedelta(days=1) in day_set:
        anchor = today - timedelta(days=1)
    else:
        return 0

    run = 0
    while anchor in day_set:
        run += 1
        anchor -= timedelta(days=1)
    return run


def compute_streak(
    post_times: Iterable[datetime],
    now: datetime,
    tz: tzinfo,
    previous_best: int = 0,
) -> StreakResult:
    """Derive current and best streak from post timestamps.

    `best` never decreases: it is the maximum of the previously stored best
    and the longest run present in `post_times`.
    """
    days = {local_day(t, tz) for t in post_times}
    today = local_day(now, tz)
    current = current_run(days, today)
    best = max(previous_best, longest_run(days), current)
    return StreakResult(current=current, best=best)


def post_day_source(post: Post) -> datetime:
    """Publish time when known, otherwise the time the post was tracked."""
    return post.posted_at or post.created_at


async def load_post_times(db: AsyncSession, user_id: int) -> list[datetime]:
    with translate_store_errors("load post times"):
        result = await db.execute(
            select(Post.posted_at, Post.created_at).where(Post.user_id == user_id)
        )
        return [posted_at or created_at for posted_at, created_at in result.all()]


async def recompute_streak(
    db: AsyncSession,
    user_id: int,
    now: datetime | None = None,
) -> StreakResult:
    """Recompute and store current/best streak from the user's posts.

    Called after creations and deletions; a deletion can shrink the current
    streak, so the value is always rebuilt from scratch.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    user = await get_user(db, user_id)
    post_times = await load_post_times(db, user_id)
    streak = compute_streak(post_times, now, get_reference_tz(), previous_best=user.best_streak)

    if streak.current != user.current_streak:
        logger.info(
            "Streak for user %d changed: %d -> %d (best %d)",
            user_id, user.current_streak, streak.current, streak.best,
        )
    user.current_streak = streak.current
    user.best_streak = streak.best
    with translate_store_errors("update streak"):
        await db.flush()
    return streak
