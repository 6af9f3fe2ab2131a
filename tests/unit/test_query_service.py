"""
Unit tests for the forum analytics query service.

The service runs against a real in-memory store seeded with six posts
across two platforms (see conftest.py).
"""

from unittest.mock import Mock, patch

import pytest

from forum_analytics.core import TransactionManager
from forum_analytics.core.errors import DatabaseError, ErrorKind, ErrorSeverity
from forum_analytics.models import FilterCriteria
from forum_analytics.services import ForumAnalyticsService
from forum_analytics.storage import RecordStore, batch_insert_posts

from .factories import DAY, HOUR, NOW, make_post


def ids(result):
    posts = result.data if hasattr(result, "data") else result
    return [post.id for post in posts]


class TestPostQueries:
    """Test cases for post queries."""

    def test_all_posts_newest_first(self, service):
        result = service.query_posts()

        assert result.total == 6
        assert ids(result) == ["p1", "p2", "p3", "p4", "p5", "p6"]
        assert result.has_more is False

    def test_pagination(self, service):
        first = service.query_posts(FilterCriteria(page_size=2))
        last = service.query_posts(FilterCriteria(page=3, page_size=2))

        assert ids(first) == ["p1", "p2"]
        assert first.has_more is True
        assert ids(last) == ["p5", "p6"]
        assert last.has_more is False
        assert last.total == 6

    def test_page_past_the_end_is_empty(self, service):
        result = service.query_posts(FilterCriteria(page=10, page_size=5))

        assert result.data == []
        assert result.total == 6

    def test_filters(self, service):
        assert ids(service.query_posts(FilterCriteria(platform="hackernews"))) == ["p3", "p6"]
        assert ids(service.query_posts(FilterCriteria(author="alice"))) == ["p1", "p4"]
        assert ids(service.query_posts(FilterCriteria(score_min=100, comments_max=20))) == ["p1", "p4"]
        assert ids(service.query_posts(FilterCriteria(date_from=NOW - 3 * HOUR, date_to=NOW))) == ["p1", "p2"]

    def test_sorting_breaks_ties_by_id(self, service):
        result = service.query_posts(FilterCriteria(sort_by="score", sort_order="desc"))

        assert ids(result) == ["p2", "p4", "p1", "p3", "p6", "p5"]

    def test_search_matches_title_and_content(self, service):
        assert service.store.fts_available
        result = service.query_posts(FilterCriteria(search_term="apple"))

        assert sorted(ids(result)) == ["p1", "p2"]

    def test_full_text_and_substring_search_agree(self, service, settings, sample_posts):
        accented = make_post("u1", title="Émile Zola review", created_utc=NOW - 5 * DAY)
        service.bulk_load_posts([accented])
        plain = RecordStore(settings, enable_fts=False)
        plain.initialize()
        try:
            batch_insert_posts(plain, TransactionManager(plain), sample_posts + [accented])
            plain_service = ForumAnalyticsService(plain, settings=settings, clock=lambda: NOW)

            for term in ("apple", "tool", "ap", "deliveries", "zola", "Émile", "émile"):
                criteria = FilterCriteria(search_term=term)
                assert ids(service.query_posts(criteria)) == ids(plain_service.query_posts(criteria))

            assert ids(service.query_posts(FilterCriteria(search_term="Émile"))) == ["u1"]
            assert ids(service.query_posts(FilterCriteria(search_term="émile"))) == []
        finally:
            plain.close()

    def test_default_page_size_comes_from_settings(self, store, settings):
        service = ForumAnalyticsService(
            store, settings=settings.model_copy(update={"default_page_size": 2}), clock=lambda: NOW
        )

        first = service.query_posts()
        assert ids(first) == ["p1", "p2"]
        assert first.page_size == 2
        assert first.has_more is True

        assert len(service.query_posts(FilterCriteria(platform="reddit")).data) == 2
        assert len(service.query_posts(FilterCriteria(page_size=5)).data) == 5

    def test_results_are_cached(self, service):
        with patch.object(service.store, "fetch_posts", wraps=service.store.fetch_posts) as fetch:
            first = service.query_posts(FilterCriteria(platform="reddit"))
            second = service.query_posts(FilterCriteria(platform="reddit"))

        assert first == second
        assert fetch.call_count == 1
        assert service.cache_stats()["hits"] == 1

    def test_recent_posts(self, service):
        assert ids(service.query_recent_posts(limit=2, platform="reddit")) == ["p1", "p2"]

    def test_get_post(self, service):
        assert service.get_post("p2").author == "bob"
        assert service.get_post("missing") is None

    def test_sources(self, service):
        assert service.query_sources() == ["investing", "stocks"]
        assert service.query_sources("hackernews") == []


class TestAnalyticsQueries:
    """Test cases for analytics queries."""

    def test_top_authors(self, service):
        authors = service.query_top_authors(limit=2)

        assert [(entry.author, entry.rank) for entry in authors] == [("alice", 1), ("bob", 2)]

    def test_top_authors_with_filters(self, service):
        authors = service.query_top_authors(filters=FilterCriteria(platform="hackernews"))

        assert [entry.author for entry in authors] == ["carol"]

    def test_time_series(self, service):
        points = service.query_time_series("day")

        assert len(points) == 5
        assert points[-1].posts == 2

    def test_invalid_interval_is_logged(self, service):
        with pytest.raises(DatabaseError) as exc_info:
            service.query_time_series("fortnight")

        assert exc_info.value.kind is ErrorKind.QUERY
        assert exc_info.value.severity is ErrorSeverity.LOW
        stats = service.error_stats()
        assert stats["total"] == 1
        assert stats["recent"][0]["context"]["operation"] == "query_time_series"

    def test_engagement_metrics(self, service):
        report = service.query_engagement_metrics(FilterCriteria(platform="reddit"))

        assert report.metrics.total_posts == 4
        assert report.metrics.total_score == 705

    def test_posting_heatmap_window(self, service):
        last_day = service.query_posting_heatmap(days=1)
        everything = service.query_posting_heatmap(days=0)

        assert len(last_day) == 168
        assert sum(cell.value for cell in last_day) == 2
        assert sum(cell.value for cell in everything) == 6

    def test_posting_heatmap_window_follows_the_clock(self, store, settings):
        now = [NOW]
        service = ForumAnalyticsService(store, settings=settings, clock=lambda: now[0])

        assert sum(cell.value for cell in service.query_posting_heatmap(days=1)) == 2

        # Same hour, same window
        now[0] = NOW + 10 * 60
        assert sum(cell.value for cell in service.query_posting_heatmap(days=1)) == 2
        assert service.cache_stats()["hits"] == 1

        now[0] = NOW + 23 * HOUR
        assert sum(cell.value for cell in service.query_posting_heatmap(days=1)) == 1
        assert service.cache_stats()["hits"] == 1

    def test_optimal_posting_times(self, service):
        slots = service.query_optimal_posting_times(days=0, metric="avg_engagement", top_n=3)

        assert (slots[0].day_name, slots[0].hour) == ("Tue", 20)
        assert slots[0].performance == "excellent"

    def test_platform_stats(self, service):
        stats = service.query_platform_stats()

        assert [entry.platform for entry in stats] == ["reddit", "hackernews"]
        assert stats[0].count == 4
        assert stats[0].avg_score == pytest.approx(176.25)
        assert stats[1].avg_comments == pytest.approx(3.5)

    def test_database_summary(self, service):
        summary = service.database_summary()

        assert summary.total_posts == 6
        assert summary.platforms == 2
        assert summary.sources == 2
        assert summary.authors == 3
        assert summary.earliest_post == NOW - 4 * DAY
        assert summary.latest_post == NOW - HOUR

    def test_summary_of_empty_dataset(self, empty_store, settings):
        summary = ForumAnalyticsService(empty_store, settings=settings).database_summary()

        assert summary.total_posts == 0
        assert summary.earliest_post is None
        assert summary.avg_score == 0


class TestDatasetLifecycle:
    """Test cases for loading, exporting and writing datasets."""

    def test_bulk_load(self, service):
        assert service.query_posts().total == 6

        inserted = service.bulk_load_posts([make_post(f"n{index}") for index in range(3)])

        assert inserted == 3
        # Cached results stay until their TTL expires
        assert service.query_posts().total == 6
        service.cache.clear()
        assert service.query_posts().total == 9

    def test_bulk_load_refreshes_search_index(self, service):
        service.bulk_load_posts([make_post("n1", title="Apple car rumours")])

        assert sorted(ids(service.query_posts(FilterCriteria(search_term="apple")))) == ["n1", "p1", "p2"]

    def test_failed_bulk_load_still_indexes_committed_batches(self, service):
        service.store.run(
            "CREATE TRIGGER reject_bad BEFORE INSERT ON posts WHEN NEW.id = 'bad' "
            "BEGIN SELECT RAISE(ABORT, 'rejected post'); END"
        )
        posts = [
            make_post("x1", title="Zebra crossing"),
            make_post("x2", title="Zebra stripes"),
            make_post("bad", title="Zebra herd"),
        ]

        with pytest.raises(DatabaseError) as exc_info:
            service.bulk_load_posts(posts)

        assert exc_info.value.context["inserted"] == 2
        assert not service.transactions.in_transaction
        assert service.store.fts_available
        assert ids(service.query_posts(FilterCriteria(search_term="zebra"))) == ["x1", "x2"]

    @pytest.mark.asyncio
    async def test_load_database_from_bytes(self, service, settings):
        data = service.export_database()
        assert data.startswith(b"SQLite format 3\x00")

        other = ForumAnalyticsService(RecordStore(settings), settings=settings)
        try:
            assert await other.load_database(data) == 6
            assert other.query_posts().total == 6
        finally:
            other.close()

    @pytest.mark.asyncio
    async def test_load_database_from_path(self, service, settings, tmp_path):
        path = tmp_path / "posts.db"
        path.write_bytes(service.export_database())
        other = ForumAnalyticsService(RecordStore(settings), settings=settings)
        try:
            assert await other.load_database(str(path)) == 6
        finally:
            other.close()

    @pytest.mark.asyncio
    async def test_load_without_source_creates_empty_dataset(self, empty_store, settings):
        service = ForumAnalyticsService(empty_store, settings=settings)

        assert await service.load_database() == 0

    @pytest.mark.asyncio
    async def test_reload_clears_cache(self, service):
        service.query_posts()
        assert len(service.cache) == 1

        await service.load_database(service.export_database())

        assert len(service.cache) == 0

    @pytest.mark.asyncio
    async def test_load_refused_during_transaction(self, service):
        service.transactions.begin()

        with pytest.raises(DatabaseError) as exc_info:
            await service.load_database(b"SQLite format 3\x00")

        assert exc_info.value.kind is ErrorKind.TRANSACTION
        assert exc_info.value.severity is ErrorSeverity.LOW
        assert service.transactions.in_transaction
        service.transactions.rollback()

    @pytest.mark.asyncio
    async def test_bad_dataset_is_recorded(self, service):
        with pytest.raises(DatabaseError) as exc_info:
            await service.load_database(b"not a database")

        assert exc_info.value.kind is ErrorKind.LOADING
        assert service.error_stats()["by_kind"] == {"loading": 1}
        # The previous dataset is still loaded
        assert service.query_posts().total == 6

    def test_import_csv(self, service, tmp_path):
        csv_path = tmp_path / "posts.csv"
        csv_path.write_text(
            "id,title,author,score,num_comments,created_utc,subreddit\n"
            "c1,From CSV,dave,7,1,1700000000,stocks\n",
            encoding="utf-8",
        )

        assert service.import_csv(str(csv_path)) == 1
        assert service.get_post("c1").source == "stocks"

    def test_closed_store(self, service):
        service.close()

        with pytest.raises(DatabaseError) as exc_info:
            service.query_posts()

        assert exc_info.value.kind is ErrorKind.INITIALIZATION
        assert len(service.error_log) == 1


class TestSafeQueriesAndRecovery:
    """Test cases for hand-written queries and recovery."""

    def test_run_safe_query(self, service):
        assert service.run_safe_query("SELECT COUNT(*) AS n FROM posts WHERE score > ?", (50,)) == [{"n": 3}]

    def test_run_safe_query_rejects_dangerous_sql(self, service):
        with pytest.raises(DatabaseError) as exc_info:
            service.run_safe_query("SELECT 1; DROP TABLE posts")

        assert exc_info.value.severity is ErrorSeverity.LOW
        assert service.query_posts().total == 6

    @pytest.mark.asyncio
    async def test_with_recovery_retries_query_errors(self, service):
        service.cache.put("stale", 1)
        operation = Mock(side_effect=[DatabaseError(ErrorKind.QUERY, "flaky"), "ok"])

        assert await service.with_recovery(operation) == "ok"
        assert operation.call_count == 2
        assert "stale" not in service.cache

    @pytest.mark.asyncio
    async def test_recover_transaction_errors(self, service):
        service.transactions.begin()

        assert await service.recover(DatabaseError(ErrorKind.TRANSACTION, "stuck")) is True
        assert not service.transactions.in_transaction
