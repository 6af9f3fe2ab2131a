"""
Author statistics and ranking.

Posts without an author or by ``[deleted]`` are left out. Authors are ranked
by total score, highest first; authors with equal totals keep the order in
which they first appeared.
"""

import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models.metrics import AuthorStats, TopPost
from ..models.post import Post
from .engagement import engagement_score

WEEK_SECONDS = 7 * 86400
TREND_THRESHOLD = 10.0  # percent

SORTABLE_AUTHOR_FIELDS = (
    "rank",
    "post_count",
    "total_score",
    "avg_score",
    "total_comments",
    "avg_engagement",
    "recent_activity",
    "trend_value",
    "author",
)


def author_tier(post_count: int, total_score: int, avg_score: float) -> str:
    if avg_score > 1000 and post_count > 10:
        return "elite"
    if avg_score > 500 or total_score > 10000:
        return "top"
    if post_count > 5 or avg_score > 100:
        return "active"
    return "casual"


def score_trend(recent: Sequence[Post], older: Sequence[Post]) -> Tuple[str, float]:
    """
    Compare the average score of two windows.

    Returns:
        (trend, percent change). ``stable`` with 0 when either window is
        empty or the older average is 0.
    """
    if not recent or not older:
        return "stable", 0.0

    recent_avg = sum(post.score for post in recent) / len(recent)
    older_avg = sum(post.score for post in older) / len(older)
    if older_avg == 0:
        return "stable", 0.0

    change = (recent_avg - older_avg) / abs(older_avg) * 100
    if change > TREND_THRESHOLD:
        return "rising", change
    if change < -TREND_THRESHOLD:
        return "declining", change
    return "stable", change


def calculate_author_stats(posts: Iterable[Post], now: Optional[int] = None) -> List[AuthorStats]:
    """
    Build ranked per-author statistics.

    The trend compares posts from the last seven days with posts from the
    seven days before that, both relative to ``now``.

    Args:
        posts: Posts to group
        now: Reference time in unix seconds, defaults to the current time

    Returns:
        List of AuthorStats ordered by rank
    """
    now = int(time.time()) if now is None else now
    recent_cutoff = now - WEEK_SECONDS
    older_cutoff = now - 2 * WEEK_SECONDS

    grouped: Dict[str, List[Post]] = {}
    for post in posts:
        if post.has_known_author:
            grouped.setdefault(post.author, []).append(post)

    stats = []
    for author, author_posts in grouped.items():
        post_count = len(author_posts)
        total_score = sum(post.score for post in author_posts)
        total_comments = sum(post.num_comments for post in author_posts)
        avg_score = total_score / post_count

        top = author_posts[0]
        for post in author_posts[1:]:
            if post.score > top.score:
                top = post

        recent = [post for post in author_posts if post.created_utc > recent_cutoff]
        older = [post for post in author_posts if older_cutoff < post.created_utc <= recent_cutoff]
        trend, trend_value = score_trend(recent, older)

        stats.append(AuthorStats(
            author=author,
            post_count=post_count,
            total_score=total_score,
            avg_score=avg_score,
            total_comments=total_comments,
            avg_comments=total_comments / post_count,
            avg_engagement=engagement_score(total_score, total_comments) / post_count,
            top_post=TopPost(id=top.id, title=top.title, score=top.score, url=top.url),
            recent_activity=len(recent),
            trend=trend,
            trend_value=trend_value,
            platforms=sorted({post.platform for post in author_posts}),
            sources=sorted({post.source for post in author_posts if post.source}),
            tier=author_tier(post_count, total_score, avg_score),
        ))

    stats.sort(key=lambda s: -s.total_score)
    for rank, entry in enumerate(stats, start=1):
        entry.rank = rank
    return stats


def filter_author_stats(
    stats: Iterable[AuthorStats],
    min_posts: Optional[int] = None,
    platform: Optional[str] = None,
    source: Optional[str] = None,
    trend: Optional[str] = None,
    tier: Optional[str] = None,
    search: Optional[str] = None,
) -> List[AuthorStats]:
    """Keep the authors matching every given condition; ranks are unchanged."""
    needle = search.lower() if search else None
    return [
        entry for entry in stats
        if (min_posts is None or entry.post_count >= min_posts)
        and (platform is None or platform in entry.platforms)
        and (source is None or source in entry.sources)
        and (trend is None or entry.trend == trend)
        and (tier is None or entry.tier == tier)
        and (needle is None or needle in entry.author.lower())
    ]


def sort_author_stats(
    stats: Iterable[AuthorStats],
    key: str = "total_score",
    descending: bool = True,
) -> List[AuthorStats]:
    if key not in SORTABLE_AUTHOR_FIELDS:
        key = "total_score"
    return sorted(stats, key=lambda entry: getattr(entry, key), reverse=descending)


def format_trend(trend: str, trend_value: float) -> str:
    if trend == "rising":
        return f"↑ {abs(trend_value):.1f}%"
    if trend == "declining":
        return f"↓ {abs(trend_value):.1f}%"
    return "→ stable"
