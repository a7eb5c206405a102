"""Achievement evaluation and awarding with duplicate prevention."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.config import get_settings
from postwars.database import translate_store_errors
from postwars.db.models import Achievement, Post, UserAchievement
from postwars.exceptions import ConflictError, PostWarsError, ValidationError
from postwars.gamification.engagement import post_engagement
from postwars.gamification.score_service import get_user
from postwars.gamification.streak_service import compute_streak, get_reference_tz, post_day_source

logger = logging.getLogger(__name__)

REQUIREMENT_TYPES = frozenset({
    "posts_count",
    "engagement_total",
    "streak_days",
    "single_post_reactions",
})


@dataclass(frozen=True)
class AchievementRule:
    """Immutable snapshot of a catalog row, safe to share across sessions."""

    id: int
    slug: str
    name: str
    description: str
    icon: str | None
    points: int
    requirement_type: str
    requirement_value: int

    @classmethod
    def from_row(cls, row: Achievement) -> AchievementRule:
        return cls(
            id=row.id,
            slug=row.slug,
            name=row.name,
            description=row.description,
            icon=row.icon,
            points=row.points,
            requirement_type=row.requirement_type,
            requirement_value=row.requirement_value,
        )


@dataclass(frozen=True)
class UserMetrics:
    posts_count: int = 0
    engagement_total: int = 0
    current_streak: int = 0
    max_single_post_reactions: int = 0


@dataclass
class BatchItemResult:
    """Outcome for one user of a batch evaluation."""

    user_id: int
    granted: list[int] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


class AchievementCatalog:
    """In-process cache of the achievement catalog.

    The catalog is only written by the seeder, which calls invalidate().
    """

    def __init__(self) -> None:
        self._rules: list[AchievementRule] | None = None

    async def get(self, db: AsyncSession) -> list[AchievementRule]:
        if self._rules is None:
            with translate_store_errors("load achievement catalog"):
                result = await db.execute(
                    select(Achievement).order_by(Achievement.sort_order, Achievement.id)
                )
                rules = [AchievementRule.from_row(a) for a in result.scalars()]
            unknown = [r.slug for r in rules if r.requirement_type not in REQUIREMENT_TYPES]
            if unknown:
                logger.warning("Achievements with unknown requirement types: %s", unknown)
            self._rules = rules
        return self._rules

    async def get_by_id(self, db: AsyncSession) -> dict[int, AchievementRule]:
        return {rule.id: rule for rule in await self.get(db)}

    def invalidate(self) -> None:
        self._rules = None


catalog = AchievementCatalog()


def compute_metrics(posts: Iterable[Post], now: datetime) -> UserMetrics:
    """Aggregate the metrics achievement requirements are checked against."""
    posts = list(posts)
    streak = compute_streak((post_day_source(p) for p in posts), now, get_reference_tz())
    return UserMetrics(
        posts_count=len(posts),
        engagement_total=sum(post_engagement(p) for p in posts),
        current_streak=streak.current,
        max_single_post_reactions=max((max(p.reactions or 0, 0) for p in posts), default=0),
    )


def requirement_met(requirement_type: str, requirement_value: int, metrics: UserMetrics) -> bool:
    """Check a single requirement. Unknown requirement types are never met."""
    if requirement_type == "posts_count":
        return metrics.posts_count >= requirement_value
    if requirement_type == "engagement_total":
        return metrics.engagement_total >= requirement_value
    if requirement_type == "streak_days":
        return metrics.current_streak >= requirement_value
    if requirement_type == "single_post_reactions":
        return metrics.max_single_post_reactions >= requirement_value
    return False


async def load_user_metrics(db: AsyncSession, user_id: int, now: datetime) -> UserMetrics:
    with translate_store_errors("load user posts"):
        result = await db.execute(select(Post).where(Post.user_id == user_id))
        posts = list(result.scalars())
    return compute_metrics(posts, now)


async def get_granted_achievement_ids(db: AsyncSession, user_id: int) -> set[int]:
    with translate_store_errors("load granted achievements"):
        result = await db.execute(
            select(UserAchievement.achievement_id).where(UserAchievement.user_id == user_id)
        )
        return set(result.scalars())


async def grant_achievement(
    db: AsyncSession,
    user_id: int,
    achievement_id: int,
    awarded_at: datetime | None = None,
) -> None:
    """Insert a grant if absent.

    Raises ConflictError when the (user, achievement) pair already exists,
    including when a concurrent evaluation inserted it first.
    """
    if awarded_at is None:
        awarded_at = datetime.now(timezone.utc)

    insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
    stmt = (
        insert(UserAchievement)
        .values(user_id=user_id, achievement_id=achievement_id, awarded_at=awarded_at)
        .on_conflict_do_nothing(index_elements=["user_id", "achievement_id"])
        .returning(UserAchievement.id)
    )
    with translate_store_errors("grant achievement"):
        result = await db.execute(stmt)
        inserted = result.scalar_one_or_none()
    if inserted is None:
        raise ConflictError(f"Achievement {achievement_id} already granted to user {user_id}")


async def check_and_award_achievements(
    db: AsyncSession,
    redis: object,
    user_id: int,
    now: datetime | None = None,
) -> list[int]:
    """Grant every satisfied, not-yet-granted achievement exactly once.

    Returns the ids granted by this call (empty when nothing new qualifies).
    """
    if now is None:
        now = datetime.now(timezone.utc)

    await get_user(db, user_id)
    rules = await catalog.get(db)
    granted = await get_granted_achievement_ids(db, user_id)
    metrics = await load_user_metrics(db, user_id, now)

    newly_granted: list[AchievementRule] = []
    for rule in rules:
        if rule.id in granted:
            continue
        if not requirement_met(rule.requirement_type, rule.requirement_value, metrics):
            continue
        try:
            await grant_achievement(db, user_id, rule.id, awarded_at=now)
        except ConflictError:
            # Another evaluation for this user got there first
            continue
        newly_granted.append(rule)

    if newly_granted:
        logger.info(
            "Awarded achievements %s to user %d",
            [r.slug for r in newly_granted], user_id,
        )
        for rule in newly_granted:
            await _emit_achievement_earned(redis, user_id, rule)

    return [r.id for r in newly_granted]


async def check_achievements_batch(
    db: AsyncSession,
    redis: object,
    user_ids: Sequence[int],
    now: datetime | None = None,
) -> list[BatchItemResult]:
    """Evaluate several users, each in its own unit of work.

    One user's failure is recorded on its result and does not stop the batch.
    """
    max_batch = get_settings().achievement_batch_max
    if not user_ids:
        raise ValidationError("At least one user id is required")
    if len(user_ids) > max_batch:
        raise ValidationError(f"Maximum {max_batch} user ids per batch")

    results: list[BatchItemResult] = []
    for user_id in user_ids:
        item = BatchItemResult(user_id=user_id)
        try:
            item.granted = await check_and_award_achievements(db, redis, user_id, now=now)
            with translate_store_errors("commit achievements"):
                await db.commit()
        except PostWarsError as exc:
            await db.rollback()
            item.error = exc.detail
            logger.warning("Achievement check failed for user %d: %s", user_id, exc.detail)
        except Exception:
            await db.rollback()
            item.error = "Internal error"
            logger.exception("Unexpected failure checking achievements for user %d", user_id)
        results.append(item)

    failed = sum(1 for r in results if r.failed)
    logger.info("Batch achievement check: %d users, %d failed", len(results), failed)
    return results


async def get_user_achievements(db: AsyncSession, user_id: int) -> list[UserAchievement]:
    """Grants of a user, most recent first."""
    with translate_store_errors("load user achievements"):
        result = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.awarded_at.desc(), UserAchievement.id.desc())
        )
        return list(result.scalars())


async def get_recent_achievements(
    db: AsyncSession, user_ids: Sequence[int],
) -> dict[int, UserAchievement]:
    """Most recent grant per user, for users that have one."""
    with translate_store_errors("load recent achievements"):
        result = await db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id.in_(list(user_ids)))
            .order_by(UserAchievement.awarded_at.desc(), UserAchievement.id.desc())
        )
        grants = result.scalars()

    latest: dict[int, UserAchievement] = {}
    for grant in grants:
        latest.setdefault(grant.user_id, grant)
    return latest


async def _emit_achievement_earned(redis: object, user_id: int, rule: AchievementRule) -> None:
    """Publish achievement-earned event for realtime clients."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[union-attr]
            "pubsub:achievement_earned",
            json.dumps({
                "user_id": user_id,
                "achievement_id": rule.id,
                "slug": rule.slug,
                "name": rule.name,
                "points": rule.points,
            }),
        )
    except Exception:
        logger.warning("Failed to publish achievement_earned event", exc_info=True)
