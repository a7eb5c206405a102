"""Gamification API endpoints: posts, leaderboards, achievements, dashboard and teams."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from postwars.auth.dependencies import get_admin_user, get_current_user
from postwars.config import get_settings
from postwars.database import get_session, translate_store_errors
from postwars.db.models import Post, Team, User
from postwars.dependencies import get_redis_dep
from postwars.exceptions import ValidationError
from postwars.gamification.achievement_service import (
    AchievementRule,
    catalog,
    check_achievements_batch,
    get_recent_achievements,
    get_user_achievements,
)
from postwars.gamification.dashboard_service import get_user_dashboard
from postwars.gamification.leaderboard_service import LeaderboardEntry, build_leaderboard, build_team_rankings
from postwars.gamification.post_service import create_post, delete_post, update_post_metrics
from postwars.gamification.schemas import (
    AchievementResponse,
    AllAchievementsResponse,
    AwardAchievementsRequest,
    AwardAchievementsResponse,
    AwardResultItem,
    DashboardPostResponse,
    DashboardResponse,
    DashboardStatsResponse,
    DashboardUserResponse,
    EarnedAchievementResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    PostCreateRequest,
    PostDeleteResponse,
    PostGrowthResponse,
    PostMetricsRequest,
    PostMetricsResponse,
    PostMutationResponse,
    PostResponse,
    RecentAchievementsRequest,
    RecentAchievementsResponse,
    SingleTeamLeaderboardResponse,
    TeamCreateRequest,
    TeamDeleteResponse,
    TeamLeaderboardResponse,
    TeamMemberResponse,
    TeamMembersRequest,
    TeamRankingResponse,
    TeamResponse,
    TeamSummaryResponse,
    UserAchievementsResponse,
    UserStatsResponse,
)
from postwars.gamification.team_service import (
    assign_members,
    build_team_leaderboard,
    create_team,
    delete_team,
    remove_members,
)
from postwars.gamification.user_stats import UserStats

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _post_response(post: Post) -> PostResponse:
    return PostResponse(
        id=post.id,
        user_id=post.user_id,
        url=post.url,
        reactions=post.reactions,
        comments=post.comments,
        reposts=post.reposts,
        total_engagement=post.total_engagement,
        engagement_score=post.engagement_score,
        total_score=post.total_score,
        posted_at=post.posted_at,
        created_at=post.created_at,
    )


def _stats_response(stats: UserStats) -> UserStatsResponse:
    return UserStatsResponse(
        user_id=stats.user_id,
        total_score=stats.total_score,
        current_streak=stats.current_streak,
        best_streak=stats.best_streak,
        new_achievements=stats.new_achievements,
    )


def _achievement_response(rule: AchievementRule) -> AchievementResponse:
    return AchievementResponse(
        id=rule.id,
        slug=rule.slug,
        name=rule.name,
        description=rule.description,
        icon=rule.icon,
        points=rule.points,
        requirement_type=rule.requirement_type,
        requirement_value=rule.requirement_value,
    )


def _entry_response(entry: LeaderboardEntry) -> LeaderboardEntryResponse:
    return LeaderboardEntryResponse(
        rank=entry.rank,
        user_id=entry.user_id,
        name=entry.name,
        team_id=entry.team_id,
        team_name=entry.team_name,
        score=entry.score,
        current_streak=entry.current_streak,
        is_current_user=entry.is_current_user,
    )


def _team_response(team: Team, members: list[User]) -> TeamResponse:
    return TeamResponse(
        id=team.id,
        name=team.name,
        description=team.description,
        team_lead_id=team.team_lead_id,
        members=[TeamMemberResponse(id=m.id, name=m.name, email=m.email, role=m.role) for m in members],
    )


async def _commit(db: AsyncSession) -> None:
    with translate_store_errors("commit"):
        await db.commit()


# ── Posts ──


@router.post("/posts", response_model=PostMutationResponse, status_code=201)
async def submit_post(
    body: PostCreateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Track a post and refresh the caller's score, streak and achievements."""
    post, stats = await create_post(
        db, redis, user, body.linkedin_url,
        reactions=body.reactions,
        comments=body.comments,
        reposts=body.reposts,
        content=body.content,
        posted_at=body.posted_at,
    )
    await _commit(db)
    return PostMutationResponse(post=_post_response(post), stats=_stats_response(stats))


@router.patch("/posts/{post_id}/metrics", response_model=PostMetricsResponse)
async def refresh_post_metrics(
    post_id: int,
    body: PostMetricsRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Store new engagement counts for a post (owner or admin)."""
    post, snapshot, stats = await update_post_metrics(
        db, redis, post_id, user, body.reactions, body.comments, body.reposts,
    )
    await _commit(db)
    return PostMetricsResponse(
        post=_post_response(post),
        growth=PostGrowthResponse(
            reaction_growth=snapshot.reaction_growth,
            comment_growth=snapshot.comment_growth,
            repost_growth=snapshot.repost_growth,
        ),
        stats=_stats_response(stats),
    )


@router.delete("/posts/{post_id}", response_model=PostDeleteResponse)
async def remove_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Delete a post (owner or admin) and recompute the owner's stats."""
    deleted_score, stats = await delete_post(db, redis, post_id, user)
    await _commit(db)
    return PostDeleteResponse(deleted_post_score=deleted_score, stats=_stats_response(stats))


# ── Leaderboard ──


@router.get("/leaderboard", response_model=LeaderboardResponse | TeamLeaderboardResponse)
async def get_leaderboard(
    response: Response,
    scope: str = Query("company"),
    timeframe: str = Query("all"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Rank users (scope=company|team) or teams (scope=teams)."""
    response.headers["Cache-Control"] = f"public, max-age={get_settings().leaderboard_cache_seconds}"

    if scope == "teams":
        teams = await build_team_rankings(db, timeframe, user)
        return TeamLeaderboardResponse(
            timeframe=timeframe,
            team_rankings=[
                TeamRankingResponse(
                    rank=t.rank,
                    team_id=t.team_id,
                    name=t.name,
                    total_score=t.total_score,
                    member_count=t.member_count,
                    average_score=t.average_score,
                    is_user_team=t.is_user_team,
                )
                for t in teams
            ],
        )

    entries = await build_leaderboard(db, scope, timeframe, user)
    return LeaderboardResponse(
        scope=scope,
        timeframe=timeframe,
        rankings=[_entry_response(e) for e in entries],
    )


# ── Achievements ──


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    """Get the achievement catalog."""
    rules = await catalog.get(db)
    return AllAchievementsResponse(achievements=[_achievement_response(r) for r in rules])


@router.get("/users/me/achievements", response_model=UserAchievementsResponse)
async def my_achievements(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Achievements earned by the caller, most recent first."""
    rules = await catalog.get_by_id(db)
    grants = await get_user_achievements(db, user.id)
    earned = [
        EarnedAchievementResponse(
            achievement=_achievement_response(rules[g.achievement_id]),
            awarded_at=g.awarded_at,
        )
        for g in grants
        if g.achievement_id in rules
    ]
    return UserAchievementsResponse(
        earned=earned,
        total_available=len(rules),
        total_earned=len(earned),
    )


@router.get("/users/me/stats", response_model=UserStatsResponse)
async def my_stats(user: User = Depends(get_current_user)):
    """Stored score and streak of the caller."""
    return UserStatsResponse(
        user_id=user.id,
        total_score=user.total_score,
        current_streak=user.current_streak,
        best_streak=user.best_streak,
    )


@router.post("/achievements/recent", response_model=RecentAchievementsResponse)
async def recent_achievements(
    body: RecentAchievementsRequest,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Most recent achievement for each of the given users."""
    max_users = get_settings().recent_achievements_max_users
    if not body.user_ids:
        raise ValidationError("user_ids array is required")
    if len(body.user_ids) > max_users:
        raise ValidationError(f"Maximum {max_users} user_ids allowed")

    rules = await catalog.get_by_id(db)
    latest = await get_recent_achievements(db, body.user_ids)
    return RecentAchievementsResponse(
        achievements={
            user_id: EarnedAchievementResponse(
                achievement=_achievement_response(rules[grant.achievement_id]),
                awarded_at=grant.awarded_at,
            )
            for user_id, grant in latest.items()
            if grant.achievement_id in rules
        },
    )


@router.post("/admin/achievements/award", response_model=AwardAchievementsResponse)
async def award_achievements(
    body: AwardAchievementsRequest,
    _admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_dep),
):
    """Admin: evaluate achievements for a batch of users."""
    results = await check_achievements_batch(db, redis, body.user_ids)
    return AwardAchievementsResponse(
        total_users_checked=len(results),
        total_awarded=sum(len(r.granted) for r in results),
        results=[
            AwardResultItem(user_id=r.user_id, granted=r.granted, failed=r.failed, error=r.error)
            for r in results
        ],
    )


# ── Dashboard ──


@router.get("/dashboard", response_model=DashboardResponse)
async def my_dashboard(
    response: Response,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The caller's stats, rank, recent posts and recent achievements."""
    response.headers["Cache-Control"] = f"private, max-age={get_settings().dashboard_cache_seconds}"

    dashboard = await get_user_dashboard(db, user.id)
    rules = await catalog.get_by_id(db)
    return DashboardResponse(
        user=DashboardUserResponse(
            id=dashboard.user.id,
            name=dashboard.user.name,
            email=dashboard.user.email,
            total_score=dashboard.user.total_score,
            current_streak=dashboard.user.current_streak,
            best_streak=dashboard.user.best_streak,
            rank=dashboard.rank,
        ),
        stats=DashboardStatsResponse(
            total_posts=dashboard.stats.total_posts,
            total_engagement=dashboard.stats.total_engagement,
            monthly_posts=dashboard.stats.monthly_posts,
            monthly_engagement=dashboard.stats.monthly_engagement,
            average_engagement=dashboard.stats.average_engagement,
        ),
        recent_posts=[
            DashboardPostResponse(
                id=item.post.id,
                url=item.post.url,
                content=item.preview,
                reactions=item.post.reactions,
                comments=item.post.comments,
                reposts=item.post.reposts,
                total_engagement=item.post.total_engagement,
                total_score=item.post.total_score,
                posted_at=item.post.posted_at,
                last_scraped_at=item.post.last_scraped_at,
                growth=PostGrowthResponse(
                    reaction_growth=item.reaction_growth,
                    comment_growth=item.comment_growth,
                    repost_growth=item.repost_growth,
                ),
            )
            for item in dashboard.recent_posts
        ],
        recent_achievements=[
            EarnedAchievementResponse(
                achievement=_achievement_response(rules[g.achievement_id]),
                awarded_at=g.awarded_at,
            )
            for g in dashboard.recent_achievements
            if g.achievement_id in rules
        ],
    )


# ── Teams ──


@router.get("/teams/{team_id}/leaderboard", response_model=SingleTeamLeaderboardResponse)
async def get_team_leaderboard(
    team_id: int,
    response: Response,
    timeframe: str = Query("all"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Rank the members of a team by id."""
    response.headers["Cache-Control"] = f"public, max-age={get_settings().leaderboard_cache_seconds}"

    team, entries = await build_team_leaderboard(db, team_id, timeframe, user)
    return SingleTeamLeaderboardResponse(
        timeframe=timeframe,
        team=TeamSummaryResponse(
            id=team.id,
            name=team.name,
            description=team.description,
            team_lead_id=team.team_lead_id,
            member_count=len(entries),
        ),
        rankings=[_entry_response(e) for e in entries],
        user_rank=next((e.rank for e in entries if e.is_current_user), None),
    )


@router.post("/admin/teams", response_model=TeamResponse, status_code=201)
async def add_team(
    body: TeamCreateRequest,
    _admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_session),
):
    """Admin: create a team."""
    team = await create_team(db, body.name, body.description, body.team_lead_id)
    await _commit(db)
    return _team_response(team, [])


@router.delete("/admin/teams/{team_id}", response_model=TeamDeleteResponse)
async def remove_team(
    team_id: int,
    _admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_session),
):
    """Admin: delete a team. Its members stay, without a team."""
    unassigned = await delete_team(db, team_id)
    await _commit(db)
    return TeamDeleteResponse(unassigned_members=unassigned)


@router.post("/admin/teams/{team_id}/members", response_model=TeamResponse)
async def add_team_members(
    team_id: int,
    body: TeamMembersRequest,
    _admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_session),
):
    """Admin: move users into a team."""
    members = await assign_members(db, team_id, body.user_ids)
    await _commit(db)
    team = await db.get(Team, team_id)
    return _team_response(team, members)


@router.delete("/admin/teams/{team_id}/members", response_model=TeamResponse)
async def remove_team_members(
    team_id: int,
    body: TeamMembersRequest,
    _admin: User = Depends(get_admin_user),
    db: AsyncSession = Depends(get_session),
):
    """Admin: take users out of a team."""
    members = await remove_members(db, team_id, body.user_ids)
    await _commit(db)
    team = await db.get(Team, team_id)
    return _team_response(team, members)
