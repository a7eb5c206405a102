"""Engagement totals shared by scoring, achievements and leaderboards."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def _count(value: int | None) -> int:
    if value is None or value < 0:
        return 0
    return int(value)


def total_engagement(
    reactions: int | None = 0,
    comments: int | None = 0,
    reposts: int | None = 0,
) -> int:
    """Sum of reactions, comments and reposts. Missing or negative counts are 0."""
    return _count(reactions) + _count(comments) + _count(reposts)


def post_engagement(post: Any) -> int:  # noqa: ANN401
    """Total engagement of a post-like object (ORM row or anything with the three counters)."""
    if post is None:
        return 0
    return total_engagement(
        getattr(post, "reactions", 0),
        getattr(post, "comments", 0),
        getattr(post, "reposts", 0),
    )


def user_engagement(posts: Iterable[Any]) -> dict[int, int]:
    """Map user_id -> summed engagement across the given posts."""
    totals: dict[int, int] = {}
    for post in posts:
        totals[post.user_id] = totals.get(post.user_id, 0) + post_engagement(post)
    return totals
