"""Unit tests for author statistics and ranking."""

import pytest

from forum_analytics.analytics import (
    author_tier,
    calculate_author_stats,
    filter_author_stats,
    format_trend,
    sort_author_stats,
)
from forum_analytics.analytics.authors import score_trend

from .factories import DAY, NOW, make_post


class TestCalculateAuthorStats:
    """Test cases for calculate_author_stats."""

    def test_ranks_by_total_score(self, sample_posts):
        stats = calculate_author_stats(sample_posts, now=NOW)

        assert [(entry.author, entry.rank) for entry in stats] == [("alice", 1), ("bob", 2), ("carol", 3)]
        alice = stats[0]
        assert alice.post_count == 2
        assert alice.total_score == 400
        assert alice.avg_score == 200
        assert alice.top_post.id == "p4"
        assert alice.sources == ["stocks"]
        assert alice.recent_activity == 2

    def test_unknown_and_deleted_authors_are_skipped(self, sample_posts):
        authors = {entry.author for entry in calculate_author_stats(sample_posts, now=NOW)}

        assert None not in authors
        assert "[deleted]" not in authors

    def test_ties_keep_first_appearance(self):
        posts = [make_post("1", author="zed", score=10), make_post("2", author="amy", score=10)]

        stats = calculate_author_stats(posts, now=NOW)

        assert [entry.author for entry in stats] == ["zed", "amy"]
        assert [entry.rank for entry in stats] == [1, 2]

    def test_rising_trend(self):
        posts = [
            make_post("new", score=150, created_utc=NOW - DAY),
            make_post("old", score=100, created_utc=NOW - 10 * DAY),
        ]

        stats = calculate_author_stats(posts, now=NOW)

        assert stats[0].trend == "rising"
        assert stats[0].trend_value == pytest.approx(50.0)

    def test_small_change_is_stable(self):
        posts = [
            make_post("new", score=105, created_utc=NOW - DAY),
            make_post("old", score=100, created_utc=NOW - 10 * DAY),
        ]

        assert calculate_author_stats(posts, now=NOW)[0].trend == "stable"

    def test_posts_older_than_two_weeks_do_not_count(self):
        posts = [
            make_post("new", score=10, created_utc=NOW - DAY),
            make_post("ancient", score=1000, created_utc=NOW - 30 * DAY),
        ]

        entry = calculate_author_stats(posts, now=NOW)[0]
        assert entry.trend == "stable"
        assert entry.trend_value == 0.0

    def test_empty_input(self):
        assert calculate_author_stats([], now=NOW) == []


class TestAuthorHelpers:
    """Test cases for tiers, trends and filtering."""

    @pytest.mark.parametrize("post_count, total_score, avg_score, tier", [
        (11, 12000, 1100, "elite"),
        (1, 5000, 5000, "top"),
        (6, 60, 10, "active"),
        (1, 150, 150, "active"),
        (1, 10, 10, "casual"),
    ])
    def test_author_tier(self, post_count, total_score, avg_score, tier):
        assert author_tier(post_count, total_score, avg_score) == tier

    def test_declining_trend(self):
        trend, value = score_trend([make_post("a", score=50)], [make_post("b", score=100)])

        assert trend == "declining"
        assert value == pytest.approx(-50.0)

    def test_zero_baseline_is_stable(self):
        assert score_trend([make_post("a", score=50)], [make_post("b", score=0)]) == ("stable", 0.0)

    def test_format_trend(self):
        assert format_trend("rising", 12.34) == "↑ 12.3%"
        assert format_trend("declining", -20) == "↓ 20.0%"
        assert format_trend("stable", 3) == "→ stable"

    def test_filter_and_sort(self, sample_posts):
        stats = calculate_author_stats(sample_posts, now=NOW)

        assert [e.author for e in filter_author_stats(stats, platform="hackernews")] == ["carol"]
        assert [e.author for e in filter_author_stats(stats, min_posts=2)] == ["alice"]
        assert [e.author for e in filter_author_stats(stats, search="BO")] == ["bob"]

        by_comments = sort_author_stats(stats, key="total_comments")
        assert [e.author for e in by_comments] == ["bob", "alice", "carol"]
        assert sort_author_stats(stats, key="nope") == sort_author_stats(stats)
