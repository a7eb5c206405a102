"""Post-mutation pipeline: score, streak, then achievements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from postwars.gamification.achievement_service import check_and_award_achievements
from postwars.gamification.score_service import recompute_total_score
from postwars.gamification.streak_service import recompute_streak

logger = logging.getLogger(__name__)


@dataclass
class UserStats:
    user_id: int
    total_score: int
    current_streak: int
    best_streak: int
    new_achievements: list[int] = field(default_factory=list)


async def update_user_stats(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> UserStats:
    """Bring a user's derived fields in line with their posts.

    Flushes but does not commit; the caller owns the transaction so a
    failure part-way leaves the previously committed values untouched.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    total = await recompute_total_score(db, user_id)
    streak = await recompute_streak(db, user_id, now=now)
    granted = await check_and_award_achievements(db, redis, user_id, now=now)

    return UserStats(
        user_id=user_id,
        total_score=total,
        current_streak=streak.current,
        best_streak=streak.best,
        new_achievements=granted,
    )
