"""Integration tests for streak_service: stored current/best streaks."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import delete

from conftest import NOW
from postwars.db.models import Post
from postwars.gamification.streak_service import load_post_times, recompute_streak


class TestRecomputeStreak:
    @pytest.mark.asyncio
    async def test_consecutive_days(self, db_session, make_user, make_post):
        user = await make_user()
        for days_ago in (0, 1, 2):
            await make_post(user, created_at=NOW - timedelta(days=days_ago))

        result = await recompute_streak(db_session, user.id, now=NOW)
        assert (result.current, result.best) == (3, 3)
        assert user.current_streak == 3
        assert user.best_streak == 3

    @pytest.mark.asyncio
    async def test_no_posts(self, db_session, make_user):
        user = await make_user()
        result = await recompute_streak(db_session, user.id, now=NOW)
        assert (result.current, result.best) == (0, 0)

    @pytest.mark.asyncio
    async def test_broken_streak_keeps_best(self, db_session, make_user, make_post):
        user = await make_user()
        for days_ago in (5, 6, 7, 8):
            await make_post(user, created_at=NOW - timedelta(days=days_ago))

        result = await recompute_streak(db_session, user.id, now=NOW)
        assert result.current == 0
        assert result.best == 4

    @pytest.mark.asyncio
    async def test_deletion_shrinks_current_not_best(self, db_session, make_user, make_post):
        user = await make_user()
        await make_post(user, created_at=NOW - timedelta(days=2))
        yesterday = await make_post(user, created_at=NOW - timedelta(days=1))
        await make_post(user, created_at=NOW)
        await recompute_streak(db_session, user.id, now=NOW)
        assert user.current_streak == 3

        await db_session.execute(delete(Post).where(Post.id == yesterday.id))
        result = await recompute_streak(db_session, user.id, now=NOW)
        assert result.current == 1
        assert result.best == 3

    @pytest.mark.asyncio
    async def test_publish_time_preferred_over_tracking_time(self, db_session, make_user, make_post):
        user = await make_user()
        # Tracked today, but published two and three days ago
        await make_post(user, created_at=NOW, posted_at=NOW - timedelta(days=2))
        await make_post(user, created_at=NOW, posted_at=NOW - timedelta(days=3))

        times = await load_post_times(db_session, user.id)
        assert len(times) == 2
        result = await recompute_streak(db_session, user.id, now=NOW)
        assert result.current == 0
        assert result.best == 2

    @pytest.mark.asyncio
    async def test_previous_best_is_kept(self, db_session, make_user, make_post):
        user = await make_user(best_streak=12)
        await make_post(user, created_at=NOW)
        result = await recompute_streak(db_session, user.id, now=NOW)
        assert result.current == 1
        assert result.best == 12
