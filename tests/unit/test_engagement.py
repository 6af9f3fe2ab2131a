"""
Unit tests for engagement metrics and time bucketing.
"""

from datetime import timedelta, timezone

import pytest

from forum_analytics.analytics import (
    bucket_start,
    calculate_engagement_metrics,
    engagement_level,
    engagement_report,
    engagement_score,
    hourly_engagement,
    platform_metrics,
    time_series,
)

from .factories import DAY, HOUR, NOW, make_post

EST = timezone(timedelta(hours=-5))


class TestEngagementMetrics:
    """Test cases for engagement metrics."""

    def test_engagement_score_weighs_comments_twice(self):
        assert engagement_score(10, 5) == 20

    @pytest.mark.parametrize("score, comments, level", [
        (1001, 0, "viral"),
        (400, 60, "high"),
        (101, 0, "medium"),
        (100, 0, "low"),
    ])
    def test_engagement_level(self, score, comments, level):
        assert engagement_level(score, comments) == level

    def test_totals_and_averages(self):
        posts = [make_post("a", score=100, num_comments=4), make_post("b", score=300, num_comments=6)]

        metrics = calculate_engagement_metrics(posts)

        assert metrics.total_posts == 2
        assert metrics.total_score == 400
        assert metrics.avg_score == 200
        assert metrics.total_comments == 10
        assert metrics.avg_comments == 5
        assert metrics.engagement_rate == 210

    def test_empty_input_is_all_zero(self):
        metrics = calculate_engagement_metrics([])

        assert metrics.total_posts == 0
        assert metrics.avg_score == 0
        assert metrics.engagement_rate == 0

    def test_hourly_profile_has_24_entries(self, sample_posts):
        hourly = hourly_engagement(sample_posts)

        assert [entry.hour for entry in hourly] == list(range(24))
        assert hourly[21].posts == 1
        assert hourly[21].avg_engagement == 120
        assert hourly[22].posts == 3
        assert hourly[0].avg_engagement == 0.0

    def test_hourly_profile_uses_timezone(self):
        hourly = hourly_engagement([make_post("a", created_utc=NOW)], EST)

        assert hourly[17].posts == 1
        assert hourly[22].posts == 0

    def test_report(self, sample_posts):
        report = engagement_report(sample_posts)

        assert report.metrics.total_posts == 6
        assert report.peak_hour == 20
        assert len(report.hourly) == 24
        assert 0 < report.score_comments_correlation <= 1

    def test_report_of_nothing(self):
        report = engagement_report([])

        assert report.peak_hour is None
        assert report.score_time_correlation == 0.0

    def test_platform_metrics(self, sample_posts):
        metrics = platform_metrics(sample_posts)

        assert [m.platform for m in metrics] == ["reddit", "hackernews"]
        assert metrics[0].posts == 4
        assert metrics[1].total_score == 70
        assert metrics[1].percentage == pytest.approx(100 / 3)


class TestTimeSeries:
    """Test cases for time bucketing."""

    @pytest.mark.parametrize("interval, start", [
        ("hour", 1699999200),
        ("day", 1699920000),
        ("week", 1699747200),
        ("month", 1697760000),
    ])
    def test_bucket_start(self, interval, start):
        assert bucket_start(NOW, interval) == start

    def test_week_starts_on_local_sunday(self):
        start = bucket_start(NOW, "week", EST)

        assert start == 1699747200 + 5 * HOUR

    def test_unknown_interval(self):
        with pytest.raises(ValueError):
            bucket_start(NOW, "fortnight")

    def test_daily_series(self, sample_posts):
        points = time_series(sample_posts, "day")

        assert [point.timestamp for point in points] == sorted(point.timestamp for point in points)
        assert len(points) == 5
        latest = points[-1]
        assert latest.timestamp == 1699920000
        assert latest.date == "2023-11-14T00:00:00+00:00"
        assert latest.posts == 2
        assert latest.total_score == 400
        assert latest.avg_engagement == 250

    def test_empty_buckets_are_omitted(self):
        posts = [make_post("a", created_utc=NOW), make_post("b", created_utc=NOW - 10 * DAY)]

        assert len(time_series(posts, "day")) == 2

    def test_weekly_series(self, sample_posts):
        points = time_series(sample_posts, "week")

        assert [point.posts for point in points] == [2, 4]
