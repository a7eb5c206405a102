"""Liveness, readiness and version checks."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.config import get_settings
from postwars.database import get_session
from postwars.db.models import Achievement
from postwars.redis_client import get_redis

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """Report store and Redis reachability plus the size of the achievement catalog.

    Redis is optional for serving requests, so a Redis failure degrades
    the status without failing the check.
    """
    checks: dict[str, object] = {}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
        checks["achievements"] = (await db.execute(select(func.count(Achievement.id)))).scalar_one()
    except Exception as exc:
        logger.warning("Readiness: database check failed", exc_info=True)
        checks["database"] = f"error: {exc}"

    try:
        await get_redis().ping()
        checks["redis"] = "ok"
    except Exception as exc:
        checks["redis"] = f"error: {exc}"

    ok = checks.get("database") == "ok" and checks.get("redis") == "ok"
    return {"status": "ready" if ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": "postwars",
        "version": settings.app_version,
        "environment": settings.environment,
    }
