"""
Parameterized SQL generation for post queries.

``PostQuery`` turns a ``FilterCriteria`` into a row query and a matching count
query. User values only ever travel as positional parameters; the only
identifiers interpolated into the SQL text come from fixed whitelists.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from ..models.filters import (
    DEFAULT_SORT_COLUMN,
    SORTABLE_COLUMNS,
    FilterCriteria,
    clamp_page,
    clamp_page_size,
)
from ..models.post import POST_COLUMNS

SELECT_POSTS = f"SELECT {', '.join(POST_COLUMNS)} FROM posts"
COUNT_POSTS = "SELECT COUNT(*) AS count FROM posts"

# Trigram full-text matching needs at least three ASCII characters
MIN_FTS_TERM_LENGTH = 3

_SORT_INDEXES = {
    "created_utc": "idx_created_utc",
    "score": "idx_score",
    "num_comments": "idx_num_comments",
    "author": "idx_author",
}


@dataclass(frozen=True)
class BuiltQuery:
    sql: str
    params: Tuple[Any, ...]


def to_unix(value: datetime) -> int:
    """Unix seconds for a datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def fts_phrase(term: str) -> str:
    return '"' + term.replace('"', '""') + '"'


class PostQuery:
    """
    Query builder for the posts table.

    Filters are applied from the criteria in a fixed field order so identical
    criteria always produce identical SQL and parameters. Sorting and
    pagination default to the criteria and can be overridden fluently.
    """

    def __init__(self, criteria: Optional[FilterCriteria] = None, use_fts: bool = False):
        self.criteria = criteria or FilterCriteria()
        self.use_fts = use_fts
        self._conditions: List[str] = []
        self._params: List[Any] = []
        self._touched: List[str] = []
        self._order_by = ""
        self._limit: Optional[Tuple[int, int]] = None

        self._apply_filters()
        self.order_by(self.criteria.sort_by, self.criteria.sort_order)
        self.paginate(self.criteria.page, self.criteria.page_size)

    def _add(self, clause: str, *params: Any, index: Optional[str] = None) -> None:
        self._conditions.append(clause)
        self._params.extend(params)
        if index:
            self._touch(index)

    def _touch(self, index: str) -> None:
        if index not in self._touched:
            self._touched.append(index)

    def _apply_filters(self) -> None:
        c = self.criteria
        if c.platform is not None:
            self._add("platform = ?", c.platform, index="idx_platform")
        if c.source is not None:
            self._add("source = ?", c.source, index="idx_source")
        if c.author is not None:
            self._add("author = ?", c.author, index="idx_author")
        if c.search_term is not None:
            self._add_search(c.search_term)
        if c.date_from is not None:
            self._add("created_utc >= ?", to_unix(c.date_from), index="idx_created_utc")
        if c.date_to is not None:
            self._add("created_utc <= ?", to_unix(c.date_to), index="idx_created_utc")
        if c.score_min is not None:
            self._add("score >= ?", c.score_min, index="idx_score")
        if c.score_max is not None:
            self._add("score <= ?", c.score_max, index="idx_score")
        if c.comments_min is not None:
            self._add("num_comments >= ?", c.comments_min, index="idx_num_comments")
        if c.comments_max is not None:
            self._add("num_comments <= ?", c.comments_max, index="idx_num_comments")

    def _add_search(self, term: str) -> None:
        # LIKE folds ASCII case only, the trigram tokenizer folds all of Unicode
        if self.use_fts and term.isascii() and len(term) >= MIN_FTS_TERM_LENGTH:
            self._add(
                "id IN (SELECT id FROM posts_fts WHERE posts_fts MATCH ?)",
                fts_phrase(term),
                index="posts_fts",
            )
            return
        pattern = f"%{escape_like(term)}%"
        self._add(
            "(title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')",
            pattern,
            pattern,
        )

    def order_by(self, column: Optional[str] = None, direction: Optional[str] = None) -> "PostQuery":
        """Sort by a whitelisted column; anything else sorts by creation time."""
        if column not in SORTABLE_COLUMNS:
            column = DEFAULT_SORT_COLUMN
        direction = "ASC" if (direction or "").lower() == "asc" else "DESC"
        self._order_by = f" ORDER BY {column} {direction}, id ASC"
        if column in _SORT_INDEXES:
            self._touch(_SORT_INDEXES[column])
        return self

    def paginate(self, page: Optional[int] = None, page_size: Optional[int] = None) -> "PostQuery":
        page = clamp_page(page)
        page_size = clamp_page_size(page_size)
        self._limit = (page_size, (page - 1) * page_size)
        return self

    def unpaginated(self) -> "PostQuery":
        self._limit = None
        return self

    @property
    def where_clause(self) -> str:
        return " WHERE 1=1" + "".join(f" AND {condition}" for condition in self._conditions)

    @property
    def touched_indexes(self) -> Tuple[str, ...]:
        return tuple(self._touched)

    def build(self) -> BuiltQuery:
        sql = SELECT_POSTS + self.where_clause + self._order_by
        params = list(self._params)
        if self._limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend(self._limit)
        return BuiltQuery(sql, tuple(params))

    def build_count(self) -> BuiltQuery:
        return BuiltQuery(COUNT_POSTS + self.where_clause, tuple(self._params))

    def explain(self, store) -> List[dict]:
        """Return the engine's query plan for the row query."""
        query = self.build()
        return store.execute(f"EXPLAIN QUERY PLAN {query.sql}", query.params)
