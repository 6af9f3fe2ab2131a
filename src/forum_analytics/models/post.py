"""
Post record model.

A post is an immutable record loaded from the dataset. Rows returned by the
record store are validated into this model before any aggregation sees them.
"""

from typing import Optional

from pydantic import BaseModel, Field

DELETED_AUTHOR = "[deleted]"

# Column order used by every post SELECT
POST_COLUMNS = (
    "id",
    "title",
    "content",
    "author",
    "score",
    "num_comments",
    "created_utc",
    "url",
    "platform",
    "source",
    "permalink",
)


class Post(BaseModel):
    """
    A scraped forum post.

    ``source`` is the sub-forum the post was collected from (a subreddit for
    Reddit data), ``platform`` the site it came from.
    """
    id: str
    title: str
    content: Optional[str] = None
    author: Optional[str] = None
    platform: str
    source: Optional[str] = None
    score: int = 0  # may be negative
    num_comments: int = Field(default=0, ge=0)
    created_utc: int = Field(description="Creation time as unix seconds")
    url: Optional[str] = None
    permalink: Optional[str] = None

    model_config = {"from_attributes": True, "frozen": True, "coerce_numbers_to_str": True}

    @property
    def has_known_author(self) -> bool:
        return bool(self.author) and self.author != DELETED_AUTHOR

    def to_row(self) -> tuple:
        """Values in ``POST_COLUMNS`` order, ready for a parameterized INSERT."""
        return tuple(getattr(self, column) for column in POST_COLUMNS)
