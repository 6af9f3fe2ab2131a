"""Declarative schema for the posts table of a dataset file."""

from typing import Optional

from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PostORM(Base):
    """
    SQLAlchemy ORM model for scraped forum posts.

    Only used to create the schema of an empty store; queries run as
    parameterized SQL against whatever dataset was loaded.
    Schema:
      id            TEXT PRIMARY KEY,
      title         TEXT NOT NULL,
      content       TEXT,
      author        TEXT,
      score         INTEGER NOT NULL DEFAULT 0,
      num_comments  INTEGER NOT NULL DEFAULT 0,
      created_utc   INTEGER NOT NULL,  -- unix seconds
      url           TEXT,
      platform      TEXT NOT NULL,
      source        TEXT,
      permalink     TEXT
    """
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    author: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    score: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    num_comments: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    created_utc: Mapped[int] = mapped_column(Integer, nullable=False)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    platform: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    permalink: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("idx_platform_created", "platform", "created_utc"),
        Index("idx_source_created", "source", "created_utc"),
    )

    def __repr__(self) -> str:
        return f"<PostORM(id='{self.id}', platform='{self.platform}', created_utc={self.created_utc})>"


# Indexes ensured on every loaded dataset; a dataset without one of the
# columns only loses that index.
POST_INDEXES = {
    "idx_platform": "CREATE INDEX IF NOT EXISTS idx_platform ON posts(platform)",
    "idx_source": "CREATE INDEX IF NOT EXISTS idx_source ON posts(source)",
    "idx_author": "CREATE INDEX IF NOT EXISTS idx_author ON posts(author)",
    "idx_created_utc": "CREATE INDEX IF NOT EXISTS idx_created_utc ON posts(created_utc DESC)",
    "idx_score": "CREATE INDEX IF NOT EXISTS idx_score ON posts(score DESC)",
    "idx_num_comments": "CREATE INDEX IF NOT EXISTS idx_num_comments ON posts(num_comments DESC)",
    "idx_platform_created": "CREATE INDEX IF NOT EXISTS idx_platform_created ON posts(platform, created_utc DESC)",
    "idx_source_created": "CREATE INDEX IF NOT EXISTS idx_source_created ON posts(source, created_utc DESC)",
}
