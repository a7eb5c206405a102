"""Background jobs for the gamification engine (arq).

Import path for arq CLI: arq postwars.gamification.worker.WorkerSettings

Jobs:
  * refresh_user_stats: recompute score, streak and achievements for one
    user. Nothing in this service enqueues it; external producers (a
    metrics scraper, an admin script) call
    enqueue_job("refresh_user_stats", user_id) after changing posts
    outside the API.
  * achievement_sweep: nightly batch evaluation over every user so that
    time-based requirements (streaks) are granted even without new posts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from arq import Retry
from arq.cron import cron
from arq.connections import RedisSettings
from sqlalchemy import select

from postwars.config import get_settings
from postwars.database import close_db, get_session_factory, init_db, translate_store_errors
from postwars.db.models import User
from postwars.exceptions import NotFoundError, StoreError
from postwars.gamification.achievement_service import check_achievements_batch
from postwars.gamification.user_stats import update_user_stats
from postwars.redis_client import close_redis, init_redis

logger = logging.getLogger(__name__)


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize DB + Redis connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["session_factory"] = get_session_factory()
    ctx["redis"] = await init_redis(settings.redis_url)
    logger.info("Gamification worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    await close_redis()
    logger.info("Gamification worker shut down")


async def refresh_user_stats(ctx: dict, user_id: int) -> dict[str, object]:  # type: ignore[type-arg]
    """Recompute one user's derived stats and commit them.

    Store failures are retried with a linear back-off; a user that no
    longer exists is not.
    """
    settings = get_settings()
    async with ctx["session_factory"]() as db:
        try:
            stats = await update_user_stats(db, ctx.get("redis"), user_id)
            with translate_store_errors("commit user stats"):
                await db.commit()
        except NotFoundError:
            await db.rollback()
            logger.info("refresh_user_stats: user %d no longer exists", user_id)
            return {"user_id": user_id, "skipped": True}
        except StoreError as exc:
            await db.rollback()
            attempt = ctx.get("job_try", 1)
            logger.warning("refresh_user_stats for user %d failed (try %d): %s", user_id, attempt, exc.detail)
            raise Retry(defer=attempt * settings.worker_retry_delay_seconds) from exc

    return {
        "user_id": stats.user_id,
        "total_score": stats.total_score,
        "current_streak": stats.current_streak,
        "new_achievements": stats.new_achievements,
    }


async def achievement_sweep(ctx: dict, now: datetime | None = None) -> dict[str, int]:  # type: ignore[type-arg]
    """Evaluate achievements for every user in batches of the configured size."""
    settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    chunk = settings.achievement_batch_max

    async with ctx["session_factory"]() as db:
        with translate_store_errors("load user ids"):
            result = await db.execute(select(User.id).order_by(User.id))
            user_ids = list(result.scalars())

        checked = awarded = failed = 0
        for start in range(0, len(user_ids), chunk):
            batch = user_ids[start:start + chunk]
            results = await check_achievements_batch(db, ctx.get("redis"), batch, now=now)
            checked += len(results)
            awarded += sum(len(r.granted) for r in results)
            failed += sum(1 for r in results if r.failed)

    logger.info("Achievement sweep: %d users, %d awarded, %d failed", checked, awarded, failed)
    return {"checked": checked, "awarded": awarded, "failed": failed}


class WorkerSettings:
    """arq worker settings for the gamification jobs."""

    functions = [refresh_user_stats, achievement_sweep]
    cron_jobs = [
        cron(achievement_sweep, hour={get_settings().achievement_sweep_hour}, minute={0}),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().redis_url)
    max_tries = get_settings().worker_max_tries
    max_jobs = 4
    job_timeout = 600
