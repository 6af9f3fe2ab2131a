"""
Query service for forum analytics.

This module is the entry point used by dashboards and the CLI: typed queries
go through the query builder and the result cache to the record store, and
analytics are computed in memory from the returned posts.
"""

import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Iterable, Iterator, List, Optional, Sequence, TypeVar, Union

import httpx
from loguru import logger

from ..analytics import (
    BUCKET_SECONDS,
    activity_heatmap,
    calculate_author_stats,
    engagement_heatmap,
    engagement_report,
    optimal_posting_times,
    time_series,
)
from ..analytics.timeutils import resolve_timezone
from ..config import Settings
from ..core.errors import DatabaseError, ErrorKind, ErrorLog, ErrorSeverity, ensure_safe_query
from ..core.query_builder import SELECT_POSTS, PostQuery
from ..core.recovery import ErrorRecovery, build_default_strategies, run_with_recovery
from ..core.result_cache import ResultCache, make_cache_key
from ..core.transactions import TransactionManager
from ..models import (
    AuthorStats,
    DatabaseSummary,
    EngagementReport,
    FilterCriteria,
    HeatmapCell,
    PaginatedResult,
    PlatformStats,
    Post,
    TimeSeriesPoint,
    TimeSlotPerformance,
)
from ..models.filters import clamp_page_size
from ..storage.loader import DatabaseSource, batch_insert_posts, read_database_source, read_posts_csv
from ..storage.record_store import RecordStore

T = TypeVar("T")

HOUR_SECONDS = 3600
DAY_SECONDS = 86400


class ForumAnalyticsService:
    """
    Analytical queries over a loaded forum dataset.

    Every failure surfaces as a ``DatabaseError`` and is recorded in the
    service's error log before it propagates.
    """

    def __init__(
        self,
        store: RecordStore,
        cache: Optional[ResultCache] = None,
        settings: Optional[Settings] = None,
        error_log: Optional[ErrorLog] = None,
        transactions: Optional[TransactionManager] = None,
        recovery: Optional[ErrorRecovery] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the query service.

        Args:
            store: Record store holding the dataset
            cache: Result cache, one is created from the settings when omitted
            settings: Settings, defaults to the store's settings
            error_log: Error history the service records failures in
            transactions: Transaction manager used for bulk loads
            recovery: Recovery engine, defaults to the standard strategies
            http_client: HTTP client used to download remote datasets
            clock: Wall clock in unix seconds
        """
        self.store = store
        self.settings = settings or store.settings
        self.cache = cache if cache is not None else ResultCache(
            capacity=self.settings.cache_max_entries,
            default_ttl=self.settings.cache_ttl_posts,
        )
        self.error_log = error_log if error_log is not None else ErrorLog(self.settings.error_history_size)
        self.transactions = transactions or TransactionManager(store)
        self.http_client = http_client
        self.clock = clock
        self.tz = resolve_timezone(self.settings.timezone)
        self.recovery = recovery or ErrorRecovery(build_default_strategies(
            store,
            self.cache,
            transactions=self.transactions,
            load_source=self.load_database,
            fallback_source=self.settings.fallback_database_path,
            remote_url=self.settings.database_url,
        ))

    @contextmanager
    def _reporting(self, operation: str) -> Iterator[None]:
        try:
            yield
        except DatabaseError as exc:
            exc.context.setdefault("operation", operation)
            self.error_log.record(exc)
            raise

    def _now(self) -> int:
        return int(self.clock())

    # Dataset lifecycle

    async def load_database(self, source: Optional[DatabaseSource] = None) -> int:
        """
        Load a dataset into the store, replacing the current one.

        Args:
            source: Bytes, path, URL or file object. Falls back to the
                configured ``database_path`` or ``database_url``; with none of
                them an empty dataset is created.

        Returns:
            Number of posts in the loaded dataset
        """
        with self._reporting("load_database"):
            if self.store.is_open and self.transactions.in_transaction:
                raise DatabaseError(
                    ErrorKind.TRANSACTION,
                    "Cannot load a dataset while a transaction is active",
                    severity=ErrorSeverity.LOW,
                    retryable=False,
                )

            if source is None:
                source = self.settings.database_path or self.settings.database_url

            data = None
            if source is not None:
                data = await read_database_source(
                    source, timeout=self.settings.fetch_timeout, client=self.http_client
                )

            self.store.initialize(data)
            self.transactions.reset()
            self.cache.clear()

            row = self.store.execute_first("SELECT COUNT(*) AS count FROM posts")
            total = int(row["count"]) if row else 0
            logger.info(f"Loaded dataset with {total} posts")
            return total

    def export_database(self) -> bytes:
        with self._reporting("export_database"):
            return self.store.serialize()

    def bulk_load_posts(self, posts: Iterable[Post]) -> int:
        """
        Insert or replace posts in batches of ``settings.batch_size``.

        Cached query results are not invalidated and may be stale until their
        TTL expires. The full-text index is rebuilt even when a batch fails,
        so it always covers the batches that were committed.
        """
        with self._reporting("bulk_load_posts"):
            try:
                return batch_insert_posts(
                    self.store, self.transactions, posts, batch_size=self.settings.batch_size
                )
            finally:
                if self.store.is_open:
                    self.store.refresh_search_index()

    def import_csv(self, csv_path: str, platform: str = "reddit") -> int:
        with self._reporting("import_csv"):
            posts = read_posts_csv(csv_path, platform=platform)
        return self.bulk_load_posts(posts)

    def close(self) -> None:
        if self.store.is_open and self.transactions.in_transaction:
            self.transactions.rollback()
        self.store.close()
        self.cache.clear()

    # Post queries

    def _builder(self, criteria: FilterCriteria) -> PostQuery:
        return PostQuery(criteria, use_fts=self.store.fts_available)

    def _fetch_all(self, criteria: Optional[FilterCriteria]) -> List[Post]:
        query = self._builder(criteria or FilterCriteria()).unpaginated().build()
        return self.store.fetch_posts(query.sql, query.params)

    def query_posts(self, filters: Optional[FilterCriteria] = None) -> PaginatedResult[Post]:
        """
        One page of posts matching the filters.

        Args:
            filters: Filter, sort and pagination options; all posts when
                omitted. Without an explicit ``page_size`` the configured
                ``default_page_size`` is used.

        Returns:
            PaginatedResult with ``has_more`` set when later pages exist
        """
        filters = filters or FilterCriteria()
        if "page_size" not in filters.model_fields_set:
            filters = filters.model_copy(
                update={"page_size": clamp_page_size(self.settings.default_page_size)}
            )

        def compute() -> PaginatedResult[Post]:
            query = self._builder(filters)
            count_query = query.build_count()
            row = self.store.execute_first(count_query.sql, count_query.params)
            total = int(row["count"]) if row else 0

            page_query = query.build()
            data = self.store.fetch_posts(page_query.sql, page_query.params)
            return PaginatedResult[Post].build(data, total, filters.page, filters.page_size)

        with self._reporting("query_posts"):
            return self.cache.get_or_compute(
                make_cache_key("posts", filters), self.settings.cache_ttl_posts, compute
            )

    def query_recent_posts(self, limit: int = 10, platform: Optional[str] = None) -> List[Post]:
        """Newest posts first, optionally for one platform."""
        criteria = FilterCriteria(
            platform=platform, sort_by="created_utc", sort_order="desc", page_size=limit
        )

        def compute() -> List[Post]:
            query = self._builder(criteria).build()
            return self.store.fetch_posts(query.sql, query.params)

        with self._reporting("query_recent_posts"):
            return self.cache.get_or_compute(
                make_cache_key("recent_posts", criteria), self.settings.cache_ttl_recent, compute
            )

    def get_post(self, post_id: str) -> Optional[Post]:
        with self._reporting("get_post"):
            posts = self.store.fetch_posts(f"{SELECT_POSTS} WHERE id = ?", (post_id,))
            return posts[0] if posts else None

    # Analytics queries

    def query_top_authors(self, limit: int = 10, filters: Optional[FilterCriteria] = None) -> List[AuthorStats]:
        """
        Highest scoring authors among the posts matching the filters.

        Args:
            limit: Number of authors returned
            filters: Restricts the posts considered; pagination is ignored

        Returns:
            AuthorStats ordered by rank
        """
        def compute() -> List[AuthorStats]:
            stats = calculate_author_stats(self._fetch_all(filters), now=self._now())
            return stats[:max(limit, 0)]

        with self._reporting("query_top_authors"):
            return self.cache.get_or_compute(
                make_cache_key("top_authors", filters, limit=limit),
                self.settings.cache_ttl_analytics,
                compute,
            )

    def query_time_series(
        self,
        interval: str = "day",
        filters: Optional[FilterCriteria] = None,
    ) -> List[TimeSeriesPoint]:
        """Post counts, scores and comments per hour, day, week or month bucket."""
        with self._reporting("query_time_series"):
            if interval not in BUCKET_SECONDS:
                raise DatabaseError(
                    ErrorKind.QUERY,
                    f"Unsupported time series interval: {interval!r}",
                    severity=ErrorSeverity.LOW,
                    retryable=False,
                    context={"allowed": list(BUCKET_SECONDS)},
                )
            return self.cache.get_or_compute(
                make_cache_key("time_series", filters, interval=interval),
                self.settings.cache_ttl_analytics,
                lambda: time_series(self._fetch_all(filters), interval, self.tz),
            )

    def query_engagement_metrics(self, filters: Optional[FilterCriteria] = None) -> EngagementReport:
        """Engagement totals, correlations and the hourly profile of matching posts."""
        with self._reporting("query_engagement_metrics"):
            return self.cache.get_or_compute(
                make_cache_key("engagement", filters),
                self.settings.cache_ttl_analytics,
                lambda: engagement_report(self._fetch_all(filters), self.tz),
            )

    def _window_start(self, days: Optional[int]) -> Optional[int]:
        """Start of the last ``days`` days, counted from the current hour."""
        if not days or days <= 0:
            return None
        return self._now() // HOUR_SECONDS * HOUR_SECONDS - days * DAY_SECONDS

    @staticmethod
    def _window_criteria(start: Optional[int]) -> FilterCriteria:
        if start is None:
            return FilterCriteria()
        return FilterCriteria(date_from=datetime.fromtimestamp(start, tz=timezone.utc))

    def query_posting_heatmap(self, days: Optional[int] = 30) -> List[HeatmapCell]:
        """
        Posts per weekday and hour over the last ``days`` days.

        The window starts at the current hour minus ``days`` days and that
        start is part of the cache key, so a cached heatmap is only reused
        within the hour it was computed in.

        Returns:
            168 cells, Sunday first; all posts when ``days`` is not positive
        """
        start = self._window_start(days)
        with self._reporting("query_posting_heatmap"):
            return self.cache.get_or_compute(
                make_cache_key("posting_heatmap", since=start),
                self.settings.cache_ttl_analytics,
                lambda: activity_heatmap(self._fetch_all(self._window_criteria(start)), self.tz),
            )

    def query_optimal_posting_times(
        self,
        days: Optional[int] = 30,
        metric: str = "avg_engagement",
        top_n: int = 5,
    ) -> List[TimeSlotPerformance]:
        with self._reporting("query_optimal_posting_times"):
            criteria = self._window_criteria(self._window_start(days))
            cells = engagement_heatmap(self._fetch_all(criteria), self.tz)
            return optimal_posting_times(cells, metric=metric, top_n=top_n)

    def query_platform_stats(self) -> List[PlatformStats]:
        def compute() -> List[PlatformStats]:
            rows = self.store.execute(
                "SELECT platform, COUNT(*) AS count, AVG(score) AS avg_score, "
                "AVG(num_comments) AS avg_comments FROM posts "
                "GROUP BY platform ORDER BY count DESC, platform ASC"
            )
            return [PlatformStats.model_validate(row) for row in rows]

        with self._reporting("query_platform_stats"):
            return self.cache.get_or_compute(
                make_cache_key("platform_stats"), self.settings.cache_ttl_stats, compute
            )

    def query_sources(self, platform: Optional[str] = None) -> List[str]:
        sql = "SELECT DISTINCT source FROM posts WHERE source IS NOT NULL"
        params: Sequence[Any] = ()
        if platform is not None:
            sql += " AND platform = ?"
            params = (platform,)
        sql += " ORDER BY source"

        with self._reporting("query_sources"):
            return [row["source"] for row in self.store.execute(sql, params)]

    def database_summary(self) -> DatabaseSummary:
        def compute() -> DatabaseSummary:
            row = self.store.execute_first(
                "SELECT COUNT(*) AS total_posts, "
                "COUNT(DISTINCT platform) AS platforms, "
                "COUNT(DISTINCT source) AS sources, "
                "COUNT(DISTINCT CASE WHEN author != '[deleted]' THEN author END) AS authors, "
                "MIN(created_utc) AS earliest_post, "
                "MAX(created_utc) AS latest_post, "
                "COALESCE(AVG(score), 0) AS avg_score, "
                "COALESCE(AVG(num_comments), 0) AS avg_comments "
                "FROM posts"
            )
            return DatabaseSummary.model_validate(row or {})

        with self._reporting("database_summary"):
            return self.cache.get_or_compute(
                make_cache_key("summary"), self.settings.cache_ttl_stats, compute
            )

    def run_safe_query(self, sql: str, params: Sequence[Any] = ()) -> List[dict]:
        """Execute a hand-written read query after rejecting unsafe statements."""
        with self._reporting("run_safe_query"):
            ensure_safe_query(sql)
            return self.store.execute(sql, params)

    # Error handling

    async def recover(self, error: DatabaseError) -> bool:
        return await self.recovery.attempt_recovery(error)

    async def with_recovery(self, operation: Callable[[], Union[T, Awaitable[T]]]) -> T:
        """Run an operation, recovering from and retrying structured errors."""
        return await run_with_recovery(
            operation,
            self.recovery,
            default_max_retries=self.settings.max_retries,
            default_retry_delay=self.settings.retry_delay,
        )

    def error_stats(self) -> dict:
        return self.error_log.stats()

    def cache_stats(self) -> dict:
        return self.cache.stats()
