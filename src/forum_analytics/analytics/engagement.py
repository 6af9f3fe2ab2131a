"""
Engagement metrics.

Engagement weighs a comment twice as much as a point of score:
``engagement = score + 2 * num_comments``.
"""

from typing import Dict, Iterable, List, Sequence

from ..models.metrics import EngagementMetrics, EngagementReport, HourlyEngagement, PlatformMetrics
from ..models.post import Post
from .statistics import correlation
from .timeutils import TimezoneLike, hour_of_day

COMMENT_WEIGHT = 2


def engagement_score(score: int, num_comments: int) -> int:
    return score + COMMENT_WEIGHT * num_comments


def engagement_level(score: int, num_comments: int) -> str:
    """Bucket a post's engagement into viral, high, medium or low."""
    engagement = engagement_score(score, num_comments)
    if engagement > 1000:
        return "viral"
    if engagement > 500:
        return "high"
    if engagement > 100:
        return "medium"
    return "low"


def calculate_engagement_metrics(posts: Sequence[Post]) -> EngagementMetrics:
    """
    Totals and averages for a set of posts.

    Args:
        posts: Posts to summarize

    Returns:
        EngagementMetrics: All zero for an empty input
    """
    if not posts:
        return EngagementMetrics()

    total_posts = len(posts)
    total_score = sum(post.score for post in posts)
    total_comments = sum(post.num_comments for post in posts)
    return EngagementMetrics(
        total_posts=total_posts,
        total_score=total_score,
        total_comments=total_comments,
        avg_score=total_score / total_posts,
        avg_comments=total_comments / total_posts,
        engagement_rate=engagement_score(total_score, total_comments) / total_posts,
    )


def hourly_engagement(posts: Iterable[Post], tz: TimezoneLike = None) -> List[HourlyEngagement]:
    """Engagement per hour of day; always 24 entries."""
    counts = [0] * 24
    scores = [0] * 24
    comments = [0] * 24
    for post in posts:
        hour = hour_of_day(post.created_utc, tz)
        counts[hour] += 1
        scores[hour] += post.score
        comments[hour] += post.num_comments

    return [
        HourlyEngagement(
            hour=hour,
            posts=counts[hour],
            total_score=scores[hour],
            total_comments=comments[hour],
            avg_engagement=engagement_score(scores[hour], comments[hour]) / counts[hour] if counts[hour] else 0.0,
        )
        for hour in range(24)
    ]


def engagement_report(posts: Sequence[Post], tz: TimezoneLike = None) -> EngagementReport:
    hourly = hourly_engagement(posts, tz)
    active_hours = [entry for entry in hourly if entry.posts]
    peak_hour = max(active_hours, key=lambda entry: entry.avg_engagement).hour if active_hours else None

    return EngagementReport(
        metrics=calculate_engagement_metrics(posts),
        score_time_correlation=correlation(
            [post.created_utc for post in posts], [post.score for post in posts]
        ),
        score_comments_correlation=correlation(
            [post.score for post in posts], [post.num_comments for post in posts]
        ),
        hourly=hourly,
        peak_hour=peak_hour,
    )


def platform_metrics(posts: Sequence[Post]) -> List[PlatformMetrics]:
    """Per-platform totals, largest platform first."""
    grouped: Dict[str, List[Post]] = {}
    for post in posts:
        grouped.setdefault(post.platform, []).append(post)

    total = len(posts)
    metrics = []
    for platform, platform_posts in grouped.items():
        count = len(platform_posts)
        total_score = sum(post.score for post in platform_posts)
        total_comments = sum(post.num_comments for post in platform_posts)
        metrics.append(PlatformMetrics(
            platform=platform,
            posts=count,
            total_score=total_score,
            total_comments=total_comments,
            avg_score=total_score / count,
            avg_comments=total_comments / count,
            percentage=count / total * 100,
        ))

    metrics.sort(key=lambda m: (-m.posts, m.platform))
    return metrics
