"""
Weekday by hour heatmaps.

Both heatmaps always contain 7 * 24 = 168 cells, day-major with Sunday as
day 0, zero-filled where no posts fall.
"""

from typing import Iterable, List, Optional, Sequence

from ..models.metrics import EngagementHeatmapCell, HeatmapCell, TimeSlotPerformance, TopPost
from ..models.post import Post
from .engagement import engagement_score
from .timeutils import DAY_NAMES, TimezoneLike, hour_of_day, weekday

HEATMAP_METRICS = ("posts", "avg_score", "avg_comments", "avg_engagement")


def _slot(day: int, hour: int) -> int:
    return day * 24 + hour


def activity_heatmap(posts: Iterable[Post], tz: TimezoneLike = None) -> List[HeatmapCell]:
    """Post counts per (weekday, hour) slot."""
    counts = [0] * 168
    for post in posts:
        counts[_slot(weekday(post.created_utc, tz), hour_of_day(post.created_utc, tz))] += 1

    return [
        HeatmapCell(
            day=day,
            hour=hour,
            value=counts[_slot(day, hour)],
            label=f"{DAY_NAMES[day]} {hour}:00 - {counts[_slot(day, hour)]} posts",
        )
        for day in range(7)
        for hour in range(24)
    ]


def engagement_heatmap(posts: Iterable[Post], tz: TimezoneLike = None) -> List[EngagementHeatmapCell]:
    """Engagement totals, averages and best post per (weekday, hour) slot."""
    cells = [
        EngagementHeatmapCell(day=day, hour=hour)
        for day in range(7)
        for hour in range(24)
    ]
    best: List[Optional[Post]] = [None] * 168

    for post in posts:
        index = _slot(weekday(post.created_utc, tz), hour_of_day(post.created_utc, tz))
        cell = cells[index]
        cell.posts += 1
        cell.total_score += post.score
        cell.total_comments += post.num_comments
        if best[index] is None or post.score > best[index].score:
            best[index] = post

    for index, cell in enumerate(cells):
        if not cell.posts:
            continue
        cell.avg_score = cell.total_score / cell.posts
        cell.avg_comments = cell.total_comments / cell.posts
        cell.avg_engagement = engagement_score(cell.total_score, cell.total_comments) / cell.posts
        top = best[index]
        cell.best_post = TopPost(id=top.id, title=top.title, score=top.score, url=top.url)

    return cells


def _performance(normalized: float) -> str:
    if normalized >= 75:
        return "excellent"
    if normalized >= 50:
        return "good"
    if normalized >= 25:
        return "average"
    return "poor"


def optimal_posting_times(
    cells: Sequence[EngagementHeatmapCell],
    metric: str = "avg_engagement",
    top_n: int = 5,
) -> List[TimeSlotPerformance]:
    """
    Best (weekday, hour) slots by a heatmap metric.

    Values are normalized against the best slot: 75% and above is
    excellent, 50% good, 25% average, anything lower poor.
    """
    if metric not in HEATMAP_METRICS:
        metric = "avg_engagement"

    active = [cell for cell in cells if cell.posts]
    if not active:
        return []

    best_value = max(getattr(cell, metric) for cell in active)
    ranked = sorted(active, key=lambda cell: getattr(cell, metric), reverse=True)

    slots = []
    for cell in ranked[:top_n]:
        value = float(getattr(cell, metric))
        normalized = value / best_value * 100 if best_value > 0 else 0.0
        slots.append(TimeSlotPerformance(
            day=cell.day,
            hour=cell.hour,
            day_name=DAY_NAMES[cell.day],
            value=value,
            performance=_performance(normalized),
        ))
    return slots
