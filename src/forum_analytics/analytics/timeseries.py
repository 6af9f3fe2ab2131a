"""
Time bucketing of posts.

Hour, day and month buckets use integer division of the unix timestamp
(``floor(ts / size) * size``; a month is a fixed 30 days). Week buckets start
at Sunday 00:00 in the configured timezone.
"""

from datetime import timedelta
from typing import Dict, Iterable, List

from ..models.metrics import TimeSeriesPoint
from ..models.post import Post
from .engagement import COMMENT_WEIGHT
from .timeutils import TimezoneLike, local_datetime

BUCKET_SECONDS = {
    "hour": 3600,
    "day": 86400,
    "week": 604800,
    "month": 2592000,
}


def bucket_start(timestamp: int, interval: str, tz: TimezoneLike = None) -> int:
    """
    Start of the bucket containing ``timestamp``.

    Raises:
        ValueError: For an interval other than hour, day, week or month
    """
    if interval not in BUCKET_SECONDS:
        raise ValueError(f"Unknown interval: {interval!r}")

    if interval == "week":
        local = local_datetime(timestamp, tz)
        days_since_sunday = (local.weekday() + 1) % 7
        start = (local - timedelta(days=days_since_sunday)).replace(
            hour=0, minute=0, second=0, microsecond=0
        )
        return int(start.timestamp())

    size = BUCKET_SECONDS[interval]
    return (timestamp // size) * size


def time_series(
    posts: Iterable[Post],
    interval: str = "day",
    tz: TimezoneLike = None,
) -> List[TimeSeriesPoint]:
    """
    Aggregate posts into time buckets.

    Only buckets containing posts are returned, in ascending order.
    """
    buckets: Dict[int, List[Post]] = {}
    for post in posts:
        buckets.setdefault(bucket_start(post.created_utc, interval, tz), []).append(post)

    points = []
    for start in sorted(buckets):
        bucket = buckets[start]
        count = len(bucket)
        total_score = sum(post.score for post in bucket)
        total_comments = sum(post.num_comments for post in bucket)
        points.append(TimeSeriesPoint(
            timestamp=start,
            date=local_datetime(start, tz).isoformat(),
            posts=count,
            total_score=total_score,
            total_comments=total_comments,
            avg_score=total_score / count,
            avg_comments=total_comments / count,
            avg_engagement=(total_score + COMMENT_WEIGHT * total_comments) / count,
        ))
    return points
