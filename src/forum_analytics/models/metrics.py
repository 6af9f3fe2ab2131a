"""
Aggregate metric models.

These are derived on demand by the analytics functions and never persisted.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class Regression(BaseModel):
    slope: float = 0.0
    intercept: float = 0.0


class TrendPoint(BaseModel):
    x: float
    y: float


class EngagementMetrics(BaseModel):
    """Totals and averages over a set of posts."""
    total_posts: int = 0
    total_score: int = 0
    total_comments: int = 0
    avg_score: float = 0.0
    avg_comments: float = 0.0
    engagement_rate: float = 0.0


class HourlyEngagement(BaseModel):
    hour: int
    posts: int = 0
    total_score: int = 0
    total_comments: int = 0
    avg_engagement: float = 0.0


class EngagementReport(BaseModel):
    """Engagement summary returned by the engagement metrics query."""
    metrics: EngagementMetrics
    score_time_correlation: float = 0.0
    score_comments_correlation: float = 0.0
    hourly: List[HourlyEngagement] = Field(default_factory=list)
    peak_hour: Optional[int] = None


class TimeSeriesPoint(BaseModel):
    """One time bucket; ``timestamp`` is the bucket start in unix seconds."""
    timestamp: int
    date: str
    posts: int = 0
    total_score: int = 0
    total_comments: int = 0
    avg_score: float = 0.0
    avg_comments: float = 0.0
    avg_engagement: float = 0.0


class HeatmapCell(BaseModel):
    """Post count for one (weekday, hour) slot. Sunday is day 0."""
    day: int
    hour: int
    value: int = 0
    label: str = ""


class TopPost(BaseModel):
    id: Optional[str] = None
    title: str
    score: int
    url: Optional[str] = None


class EngagementHeatmapCell(BaseModel):
    day: int
    hour: int
    posts: int = 0
    total_score: int = 0
    total_comments: int = 0
    avg_score: float = 0.0
    avg_comments: float = 0.0
    avg_engagement: float = 0.0
    best_post: Optional[TopPost] = None


class TimeSlotPerformance(BaseModel):
    day: int
    hour: int
    day_name: str
    value: float
    performance: str  # excellent | good | average | poor


class AuthorStats(BaseModel):
    """Per-author rollup, ranked by total score."""
    author: str
    rank: int = 0
    post_count: int = 0
    total_score: int = 0
    avg_score: float = 0.0
    total_comments: int = 0
    avg_comments: float = 0.0
    avg_engagement: float = 0.0
    top_post: Optional[TopPost] = None
    recent_activity: int = 0
    trend: str = "stable"  # rising | stable | declining
    trend_value: float = 0.0
    platforms: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    tier: str = "casual"  # elite | top | active | casual


class PlatformMetrics(BaseModel):
    platform: str
    posts: int = 0
    total_score: int = 0
    total_comments: int = 0
    avg_score: float = 0.0
    avg_comments: float = 0.0
    percentage: float = 0.0


class PlatformStats(BaseModel):
    platform: str
    count: int
    avg_score: float
    avg_comments: float


class DatabaseSummary(BaseModel):
    total_posts: int = 0
    platforms: int = 0
    sources: int = 0
    authors: int = 0
    earliest_post: Optional[int] = None
    latest_post: Optional[int] = None
    avg_score: float = 0.0
    avg_comments: float = 0.0
