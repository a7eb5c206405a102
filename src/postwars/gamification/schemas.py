"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Posts ---


class PostCreateRequest(BaseModel):
    linkedin_url: str
    content: str | None = None
    reactions: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    reposts: int = Field(default=0, ge=0)
    posted_at: datetime | None = None


class PostMetricsRequest(BaseModel):
    reactions: int = Field(ge=0)
    comments: int = Field(ge=0)
    reposts: int = Field(ge=0)


class PostResponse(BaseModel):
    id: int
    user_id: int
    url: str
    reactions: int
    comments: int
    reposts: int
    total_engagement: int
    engagement_score: int
    total_score: int
    posted_at: datetime | None = None
    created_at: datetime


class UserStatsResponse(BaseModel):
    user_id: int
    total_score: int
    current_streak: int
    best_streak: int
    new_achievements: list[int] = []


class PostMutationResponse(BaseModel):
    post: PostResponse
    stats: UserStatsResponse


class PostGrowthResponse(BaseModel):
    reaction_growth: int
    comment_growth: int
    repost_growth: int


class PostMetricsResponse(BaseModel):
    post: PostResponse
    growth: PostGrowthResponse
    stats: UserStatsResponse


class PostDeleteResponse(BaseModel):
    success: bool = True
    deleted_post_score: int
    stats: UserStatsResponse


# --- Leaderboard ---


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    name: str | None = None
    team_id: int | None = None
    team_name: str | None = None
    score: int
    current_streak: int
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    scope: str
    timeframe: str
    rankings: list[LeaderboardEntryResponse]


class TeamRankingResponse(BaseModel):
    rank: int
    team_id: int
    name: str
    total_score: int
    member_count: int
    average_score: float
    is_user_team: bool = False


class TeamLeaderboardResponse(BaseModel):
    scope: str = "teams"
    timeframe: str
    team_rankings: list[TeamRankingResponse]


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str | None = None
    points: int
    requirement_type: str
    requirement_value: int


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementResponse]


class EarnedAchievementResponse(BaseModel):
    achievement: AchievementResponse
    awarded_at: datetime


class UserAchievementsResponse(BaseModel):
    earned: list[EarnedAchievementResponse]
    total_available: int
    total_earned: int


class RecentAchievementsRequest(BaseModel):
    user_ids: list[int]


class RecentAchievementsResponse(BaseModel):
    achievements: dict[int, EarnedAchievementResponse]


class AwardAchievementsRequest(BaseModel):
    user_ids: list[int]


class AwardResultItem(BaseModel):
    user_id: int
    granted: list[int] = []
    failed: bool = False
    error: str | None = None


class AwardAchievementsResponse(BaseModel):
    total_users_checked: int
    total_awarded: int
    results: list[AwardResultItem]


# --- Dashboard ---


class DashboardUserResponse(BaseModel):
    id: int
    name: str | None = None
    email: str
    total_score: int
    current_streak: int
    best_streak: int
    rank: int


class DashboardStatsResponse(BaseModel):
    total_posts: int
    total_engagement: int
    monthly_posts: int
    monthly_engagement: int
    average_engagement: int


class DashboardPostResponse(BaseModel):
    id: int
    url: str
    content: str | None = None
    reactions: int
    comments: int
    reposts: int
    total_engagement: int
    total_score: int
    posted_at: datetime | None = None
    last_scraped_at: datetime | None = None
    growth: PostGrowthResponse


class DashboardResponse(BaseModel):
    user: DashboardUserResponse
    stats: DashboardStatsResponse
    recent_posts: list[DashboardPostResponse]
    recent_achievements: list[EarnedAchievementResponse]


# --- Teams ---


class TeamCreateRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    team_lead_id: int | None = None


class TeamMembersRequest(BaseModel):
    user_ids: list[int]


class TeamMemberResponse(BaseModel):
    id: int
    name: str | None = None
    email: str
    role: str


class TeamResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    team_lead_id: int | None = None
    members: list[TeamMemberResponse] = []


class TeamSummaryResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    team_lead_id: int | None = None
    member_count: int


class TeamDeleteResponse(BaseModel):
    success: bool = True
    unassigned_members: int


class SingleTeamLeaderboardResponse(BaseModel):
    scope: str = "team"
    timeframe: str
    team: TeamSummaryResponse
    rankings: list[LeaderboardEntryResponse]
    user_rank: int | None = None
