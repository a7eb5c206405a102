"""Post scoring: maps a post's engagement to the points stored on it.

Score = (base * streak multiplier + weighted engagement) * freshness,
rounded half-up. Freshness decays linearly once a post is older than
FRESH_HOURS and never drops below MIN_FRESHNESS.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class ScoringConfig:
    base_post_points: float = 1.0
    reaction_points: float = 0.1
    comment_points: float = 1.0
    repost_points: float = 2.0
    streak_multiplier: float = 0.1  # +10% per streak day
    max_streak_bonus: float = 1.5
    fresh_hours: float = 24.0
    decay_rate: float = 0.02  # per day once past fresh_hours
    min_freshness: float = 0.1


SCORING_CONFIG = ScoringConfig()


@dataclass(frozen=True)
class PostScore:
    base_score: int
    engagement_score: int
    total_score: int
    breakdown: dict[str, float] = field(default_factory=dict)


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative scores (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def streak_multiplier(streak: int, config: ScoringConfig = SCORING_CONFIG) -> float:
    return min(1 + max(streak, 0) * config.streak_multiplier, config.max_streak_bonus)


def freshness_factor(
    posted_at: datetime | None,
    now: datetime,
    config: ScoringConfig = SCORING_CONFIG,
) -> float:
    if posted_at is None:
        return 1.0
    if posted_at.tzinfo is None:
        posted_at = posted_at.replace(tzinfo=timezone.utc)
    hours_since = (now - posted_at).total_seconds() / 3600
    if hours_since <= config.fresh_hours:
        return 1.0
    days_old = (hours_since - config.fresh_hours) / 24
    return max(config.min_freshness, 1 - days_old * config.decay_rate)


def calculate_post_score(
    reactions: int,
    comments: int,
    reposts: int,
    posted_at: datetime | None = None,
    user_streak: int = 0,
    now: datetime | None = None,
    config: ScoringConfig = SCORING_CONFIG,
) -> PostScore:
    """Compute the stored score of a single post."""
    if now is None:
        now = datetime.now(timezone.utc)

    engagement_points = (
        max(reactions, 0) * config.reaction_points
        + max(comments, 0) * config.comment_points
        + max(reposts, 0) * config.repost_points
    )
    multiplier = streak_multiplier(user_streak, config)
    freshness = freshness_factor(posted_at, now, config)
    total = round_half_up((config.base_post_points * multiplier + engagement_points) * freshness)

    return PostScore(
        base_score=round_half_up(config.base_post_points),
        engagement_score=round_half_up(engagement_points),
        total_score=total,
        breakdown={
            "base_points": config.base_post_points,
            "streak_multiplier": multiplier,
            "engagement_points": engagement_points,
            "freshness_factor": freshness,
        },
    )
