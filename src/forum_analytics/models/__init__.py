"""Data models for forum analytics."""

from .filters import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    SORTABLE_COLUMNS,
    FilterCriteria,
    PaginatedResult,
)
from .metrics import (
    AuthorStats,
    DatabaseSummary,
    EngagementHeatmapCell,
    EngagementMetrics,
    EngagementReport,
    HeatmapCell,
    HourlyEngagement,
    PlatformMetrics,
    PlatformStats,
    Regression,
    TimeSeriesPoint,
    TimeSlotPerformance,
    TopPost,
    TrendPoint,
)
from .post import DELETED_AUTHOR, POST_COLUMNS, Post

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "SORTABLE_COLUMNS",
    "FilterCriteria",
    "PaginatedResult",
    "AuthorStats",
    "DatabaseSummary",
    "EngagementHeatmapCell",
    "EngagementMetrics",
    "EngagementReport",
    "HeatmapCell",
    "HourlyEngagement",
    "PlatformMetrics",
    "PlatformStats",
    "Regression",
    "TimeSeriesPoint",
    "TimeSlotPerformance",
    "TopPost",
    "TrendPoint",
    "DELETED_AUTHOR",
    "POST_COLUMNS",
    "Post",
]
