"""In-memory aggregation over query results."""

from .authors import (
    author_tier,
    calculate_author_stats,
    filter_author_stats,
    format_trend,
    sort_author_stats,
)
from .engagement import (
    COMMENT_WEIGHT,
    calculate_engagement_metrics,
    engagement_level,
    engagement_report,
    engagement_score,
    hourly_engagement,
    platform_metrics,
)
from .heatmap import activity_heatmap, engagement_heatmap, optimal_posting_times
from .statistics import correlation, format_correlation, growth_rate, linear_regression, trend_line
from .timeseries import BUCKET_SECONDS, bucket_start, time_series

__all__ = [
    "author_tier",
    "calculate_author_stats",
    "filter_author_stats",
    "format_trend",
    "sort_author_stats",
    "COMMENT_WEIGHT",
    "calculate_engagement_metrics",
    "engagement_level",
    "engagement_report",
    "engagement_score",
    "hourly_engagement",
    "platform_metrics",
    "activity_heatmap",
    "engagement_heatmap",
    "optimal_posting_times",
    "correlation",
    "format_correlation",
    "growth_rate",
    "linear_regression",
    "trend_line",
    "BUCKET_SECONDS",
    "bucket_start",
    "time_series",
]
