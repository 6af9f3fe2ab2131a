"""
Query request and response models.

FilterCriteria describes a post query; every field is optional and an empty
criteria object matches every post in the default order.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000

SORTABLE_COLUMNS = ("created_utc", "score", "num_comments", "author", "title")
DEFAULT_SORT_COLUMN = "created_utc"
DEFAULT_SORT_ORDER = "desc"


def clamp_page(page: Optional[int]) -> int:
    if page is None or page < 1:
        return 1
    return page


def clamp_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(page_size, MAX_PAGE_SIZE))


class FilterCriteria(BaseModel):
    """
    Filter, sort and pagination options for post queries.

    ``sort_by`` is checked against ``SORTABLE_COLUMNS`` when the query is built;
    unknown values fall back to ``created_utc``. ``page`` and ``page_size`` are
    clamped on construction.
    """
    platform: Optional[str] = None
    source: Optional[str] = None
    author: Optional[str] = None
    search_term: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    score_min: Optional[int] = None
    score_max: Optional[int] = None
    comments_min: Optional[int] = None
    comments_max: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: str = DEFAULT_SORT_ORDER
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @field_validator("page", mode="after")
    @classmethod
    def _clamp_page(cls, value: int) -> int:
        return clamp_page(value)

    @field_validator("page_size", mode="after")
    @classmethod
    def _clamp_page_size(cls, value: int) -> int:
        return clamp_page_size(value)

    @field_validator("search_term", mode="after")
    @classmethod
    def _blank_search_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class PaginatedResult(BaseModel, Generic[T]):
    """One page of query results plus the total match count."""
    data: List[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    has_more: bool = False

    @classmethod
    def build(cls, data: List[T], total: int, page: int, page_size: int) -> "PaginatedResult[T]":
        return cls(
            data=data,
            total=total,
            page=page,
            page_size=page_size,
            has_more=page * page_size < total,
        )
