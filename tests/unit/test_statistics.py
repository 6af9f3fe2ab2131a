"""Unit tests for the statistics helpers."""

import pytest

from forum_analytics.analytics.statistics import (
    correlation,
    correlation_strength,
    format_correlation,
    growth_rate,
    linear_regression,
    trend_line,
)


class TestCorrelation:
    """Test cases for correlation."""

    def test_perfect_positive(self):
        assert correlation([1, 2, 3], [2, 4, 6]) == pytest.approx(1.0)

    def test_perfect_negative(self):
        assert correlation([1, 2, 3], [6, 4, 2]) == pytest.approx(-1.0)

    def test_constant_series_is_zero(self):
        assert correlation([1, 2, 3], [5, 5, 5]) == 0.0
        assert correlation([4, 4, 4], [1, 2, 3]) == 0.0

    def test_empty_or_mismatched_is_zero(self):
        assert correlation([], []) == 0.0
        assert correlation([1, 2], [1, 2, 3]) == 0.0

    def test_result_is_within_bounds(self):
        r = correlation([1, 2, 3, 4, 5], [2, 1, 4, 3, 5])

        assert -1.0 <= r <= 1.0
        assert r == pytest.approx(0.8)


class TestLinearRegression:
    """Test cases for linear_regression and trend_line."""

    def test_fit(self):
        fit = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])

        assert fit.slope == pytest.approx(2.0)
        assert fit.intercept == pytest.approx(1.0)

    def test_zero_variance_uses_mean(self):
        fit = linear_regression([2, 2, 2], [1, 2, 6])

        assert fit.slope == 0.0
        assert fit.intercept == pytest.approx(3.0)

    def test_empty_input(self):
        fit = linear_regression([], [])

        assert (fit.slope, fit.intercept) == (0.0, 0.0)

    def test_trend_line_end_points(self):
        points = trend_line([0, 1, 2, 3], [1, 3, 5, 7])

        assert [(point.x, point.y) for point in points] == [
            (0, pytest.approx(1.0)), (3, pytest.approx(7.0)),
        ]

    def test_trend_line_explicit_range(self):
        points = trend_line([0, 1], [0, 1], x_min=-1, x_max=10)

        assert points[0].y == pytest.approx(-1.0)
        assert points[1].y == pytest.approx(10.0)

    def test_trend_line_of_nothing(self):
        assert trend_line([], []) == []


class TestFormatting:
    """Test cases for correlation labels and growth rates."""

    @pytest.mark.parametrize("r, label", [
        (0.85, "Strong"),
        (-0.7, "Strong"),
        (0.5, "Moderate"),
        (0.25, "Weak"),
        (0.1, "Very Weak"),
    ])
    def test_correlation_strength(self, r, label):
        assert correlation_strength(r) == label

    def test_format_correlation(self):
        assert format_correlation(0.82) == "Strong positive (r = 0.82)"
        assert format_correlation(-0.3) == "Weak negative (r = -0.30)"

    def test_growth_rate(self):
        assert growth_rate(150, 100) == pytest.approx(50.0)
        assert growth_rate(50, 100) == pytest.approx(-50.0)
        assert growth_rate(10, 0) == 100.0
        assert growth_rate(0, 0) == 0.0
