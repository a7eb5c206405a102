"""Initial PostWars schema.

Creates teams, users, posts, post_analytics, achievements and
user_achievements. The unique constraints on posts(user_id, url) and
user_achievements(user_id, achievement_id) back the duplicate checks in
the services.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Teams ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS teams (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT,
            team_lead_id BIGINT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)

    # --- Users ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE NOT NULL,
            name VARCHAR(128),
            role VARCHAR(16) NOT NULL DEFAULT 'REGULAR',
            team_id BIGINT REFERENCES teams(id) ON DELETE SET NULL,
            total_score INTEGER NOT NULL DEFAULT 0,
            current_streak INTEGER NOT NULL DEFAULT 0,
            best_streak INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_team
        ON users(team_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_users_score
        ON users(total_score DESC, created_at ASC, id ASC)
    """)

    # --- Posts ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS posts (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            url VARCHAR(512) NOT NULL,
            content TEXT,
            reactions INTEGER NOT NULL DEFAULT 0,
            comments INTEGER NOT NULL DEFAULT 0,
            reposts INTEGER NOT NULL DEFAULT 0,
            total_engagement INTEGER NOT NULL DEFAULT 0,
            engagement_score INTEGER NOT NULL DEFAULT 0,
            total_score INTEGER NOT NULL DEFAULT 0,
            posted_at TIMESTAMPTZ,
            last_scraped_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT posts_user_id_url_key UNIQUE (user_id, url),
            CONSTRAINT posts_counts_non_negative CHECK (reactions >= 0 AND comments >= 0 AND reposts >= 0)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_posts_user_id
        ON posts(user_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_posts_created_at
        ON posts(created_at)
    """)

    # --- Post Analytics ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS post_analytics (
            id BIGSERIAL PRIMARY KEY,
            post_id BIGINT NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
            reactions INTEGER NOT NULL DEFAULT 0,
            comments INTEGER NOT NULL DEFAULT 0,
            reposts INTEGER NOT NULL DEFAULT 0,
            total_engagement INTEGER NOT NULL DEFAULT 0,
            reaction_growth INTEGER NOT NULL DEFAULT 0,
            comment_growth INTEGER NOT NULL DEFAULT 0,
            repost_growth INTEGER NOT NULL DEFAULT 0,
            recorded_at TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_post_analytics_post_id
        ON post_analytics(post_id, recorded_at DESC)
    """)

    # --- Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievements (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL,
            icon VARCHAR(16),
            points INTEGER NOT NULL DEFAULT 0,
            requirement_type VARCHAR(32) NOT NULL,
            requirement_value INTEGER NOT NULL,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    """)

    # --- User Achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_achievements (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            achievement_id INTEGER NOT NULL REFERENCES achievements(id),
            awarded_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT user_achievements_user_id_achievement_id_key UNIQUE (user_id, achievement_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS ix_user_achievements_user_id
        ON user_achievements(user_id, awarded_at DESC)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS post_analytics CASCADE")
    op.execute("DROP TABLE IF EXISTS posts CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")
    op.execute("DROP TABLE IF EXISTS teams CASCADE")
