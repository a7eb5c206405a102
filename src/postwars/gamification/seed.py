"""Achievement catalog seed data."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "slug": "first_post",
        "name": "First Post",
        "description": "Share your first LinkedIn post",
        "icon": "\U0001f389",
        "points": 50,
        "requirement_type": "posts_count",
        "requirement_value": 1,
        "sort_order": 1,
    },
    {
        "slug": "consistent_creator",
        "name": "Consistent Creator",
        "description": "Track 5 posts",
        "icon": "\U0001f4dd",
        "points": 100,
        "requirement_type": "posts_count",
        "requirement_value": 5,
        "sort_order": 2,
    },
    {
        "slug": "engagement_magnet",
        "name": "Engagement Magnet",
        "description": "Reach 100 total engagement across all posts",
        "icon": "\U0001f9f2",
        "points": 150,
        "requirement_type": "engagement_total",
        "requirement_value": 100,
        "sort_order": 3,
    },
    {
        "slug": "week_warrior",
        "name": "Week Warrior",
        "description": "Post for 7 consecutive days",
        "icon": "\U0001f525",
        "points": 200,
        "requirement_type": "streak_days",
        "requirement_value": 7,
        "sort_order": 4,
    },
    {
        "slug": "viral_moment",
        "name": "Viral Moment",
        "description": "Get 50 reactions on a single post",
        "icon": "\U0001f680",
        "points": 300,
        "requirement_type": "single_post_reactions",
        "requirement_value": 50,
        "sort_order": 5,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert missing catalog entries (matched by slug). Returns how many were added."""
    from postwars.gamification.achievement_service import catalog

    result = await db.execute(select(Achievement.slug))
    existing = set(result.scalars())

    added = 0
    for data in ACHIEVEMENT_SEED_DATA:
        if data["slug"] in existing:
            continue
        db.add(Achievement(**data))
        added += 1

    if added:
        await db.commit()
        logger.info("Seeded %d achievement definitions", added)
    catalog.invalidate()
    return added
