"""Integration tests for score_service: total_score is the sum of post scores."""

from __future__ import annotations

import pytest
from sqlalchemy import delete

from postwars.db.models import Post
from postwars.exceptions import NotFoundError, StoreError
from postwars.gamification import score_service
from postwars.gamification.score_service import recompute_total_score, sum_post_scores


class TestRecomputeTotalScore:
    @pytest.mark.asyncio
    async def test_sums_post_scores(self, db_session, make_user, make_post):
        user = await make_user()
        await make_post(user, total_score=5)
        await make_post(user, total_score=7)

        assert await recompute_total_score(db_session, user.id) == 12
        assert user.total_score == 12

    @pytest.mark.asyncio
    async def test_no_posts_is_zero(self, db_session, make_user):
        user = await make_user(total_score=40)
        assert await recompute_total_score(db_session, user.id) == 0
        assert user.total_score == 0

    @pytest.mark.asyncio
    async def test_other_users_posts_excluded(self, db_session, make_user, make_post):
        alice = await make_user()
        bob = await make_user()
        await make_post(alice, total_score=3)
        await make_post(bob, total_score=100)

        assert await sum_post_scores(db_session, alice.id) == 3

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session, make_user, make_post):
        user = await make_user()
        await make_post(user, total_score=9)
        first = await recompute_total_score(db_session, user.id)
        second = await recompute_total_score(db_session, user.id)
        assert first == second == 9

    @pytest.mark.asyncio
    async def test_follows_deletions(self, db_session, make_user, make_post):
        user = await make_user()
        keep = await make_post(user, total_score=4)
        gone = await make_post(user, total_score=6)
        await recompute_total_score(db_session, user.id)

        await db_session.execute(delete(Post).where(Post.id == gone.id))
        assert await recompute_total_score(db_session, user.id) == keep.total_score

    @pytest.mark.asyncio
    async def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            await recompute_total_score(db_session, 9999)

    @pytest.mark.asyncio
    async def test_failed_read_keeps_previous_score(self, db_session, make_user, make_post, monkeypatch):
        user = await make_user(total_score=21)

        async def _broken(*_args, **_kwargs):
            raise StoreError("sum post scores failed")

        monkeypatch.setattr(score_service, "sum_post_scores", _broken)
        with pytest.raises(StoreError):
            await recompute_total_score(db_session, user.id)
        assert user.total_score == 21
