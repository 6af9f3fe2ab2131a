"""
Basic statistics over paired numeric series.

All functions are pure and return neutral values (0, an empty list) for
empty, mismatched or degenerate input instead of raising.
"""

import math
from typing import List, Optional, Sequence

from ..models.metrics import Regression, TrendPoint


def _sums(x: Sequence[float], y: Sequence[float]):
    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(a * b for a, b in zip(x, y))
    sum_x2 = sum(a * a for a in x)
    sum_y2 = sum(b * b for b in y)
    return sum_x, sum_y, sum_xy, sum_x2, sum_y2


def correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient of two equally long series.

    Returns 0.0 for empty or mismatched input and when either series has no
    variance. The result is clamped to [-1, 1].
    """
    n = len(x)
    if n == 0 or n != len(y):
        return 0.0

    sum_x, sum_y, sum_xy, sum_x2, sum_y2 = _sums(x, y)
    numerator = n * sum_xy - sum_x * sum_y
    var_x = n * sum_x2 - sum_x * sum_x
    var_y = n * sum_y2 - sum_y * sum_y
    if var_x <= 0 or var_y <= 0:
        return 0.0

    r = numerator / math.sqrt(var_x * var_y)
    return max(-1.0, min(1.0, r))


def linear_regression(x: Sequence[float], y: Sequence[float]) -> Regression:
    """
    Ordinary least squares fit ``y = slope * x + intercept``.

    Empty or mismatched input gives slope and intercept 0. When every ``x``
    is equal the slope is 0 and the intercept is the mean of ``y``.
    """
    n = len(x)
    if n == 0 or n != len(y):
        return Regression(slope=0.0, intercept=0.0)

    sum_x, sum_y, sum_xy, sum_x2, _ = _sums(x, y)
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return Regression(slope=0.0, intercept=sum_y / n)

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return Regression(slope=slope, intercept=intercept)


def trend_line(
    x: Sequence[float],
    y: Sequence[float],
    x_min: Optional[float] = None,
    x_max: Optional[float] = None,
) -> List[TrendPoint]:
    """End points of the regression line between ``x_min`` and ``x_max``."""
    if x_min is None:
        if not x:
            return []
        x_min = min(x)
    if x_max is None:
        if not x:
            return []
        x_max = max(x)

    fit = linear_regression(x, y)
    return [
        TrendPoint(x=x_min, y=fit.slope * x_min + fit.intercept),
        TrendPoint(x=x_max, y=fit.slope * x_max + fit.intercept),
    ]


def correlation_strength(r: float) -> str:
    magnitude = abs(r)
    if magnitude >= 0.7:
        return "Strong"
    if magnitude >= 0.4:
        return "Moderate"
    if magnitude >= 0.2:
        return "Weak"
    return "Very Weak"


def format_correlation(r: float) -> str:
    """Human readable description, e.g. ``"Strong positive (r = 0.82)"``."""
    direction = "positive" if r >= 0 else "negative"
    return f"{correlation_strength(r)} {direction} (r = {r:.2f})"


def growth_rate(current: float, previous: float) -> float:
    """Percentage change from ``previous`` to ``current``."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / abs(previous) * 100
