"""
Dataset loading: raw database bytes from files or URLs, batched post inserts
and CSV imports of scraped posts.
"""

import asyncio
import os
from pathlib import Path
from typing import Any, BinaryIO, Iterable, List, Optional, Union

import httpx
import pandas as pd
from loguru import logger
from pydantic import ValidationError

from ..core.errors import DatabaseError, ErrorKind, wrap_error
from ..core.transactions import TransactionManager
from ..models.post import POST_COLUMNS, Post

DatabaseSource = Union[bytes, bytearray, memoryview, str, Path, BinaryIO]

INSERT_POST = (
    f"INSERT OR REPLACE INTO posts ({', '.join(POST_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in POST_COLUMNS)})"
)

# Scraper CSV column names mapped onto post fields
CSV_COLUMN_ALIASES = {
    "subreddit": "source",
    "selftext": "content",
    "created": "created_utc",
    "comments": "num_comments",
}


def is_url(source: Any) -> bool:
    return isinstance(source, str) and source.startswith(("http://", "https://"))


async def read_database_source(
    source: DatabaseSource,
    timeout: float = 30.0,
    client: Optional[httpx.AsyncClient] = None,
) -> bytes:
    """
    Read the bytes of a dataset file.

    Args:
        source: Raw bytes, an http(s) URL, a filesystem path or a binary
            file-like object
        timeout: Download timeout in seconds
        client: Optional HTTP client to download with

    Returns:
        bytes: Database file contents

    Raises:
        DatabaseError: Loading error for missing files or unsupported
            sources, Connection/Timeout/Permission errors for failed downloads
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)

    if is_url(source):
        return await _download(source, timeout, client)

    if isinstance(source, (str, os.PathLike)):
        path = Path(source)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            raise DatabaseError(
                ErrorKind.LOADING,
                f"Dataset file not found: {path}",
                retryable=False,
                context={"path": str(path)},
                original_error=exc,
            ) from exc
        except OSError as exc:
            raise wrap_error(exc, context={"path": str(path)}) from exc

    if hasattr(source, "read"):
        data = await asyncio.to_thread(source.read)
        return bytes(data)

    raise DatabaseError(
        ErrorKind.LOADING,
        f"Unsupported dataset source: {type(source).__name__}",
        retryable=False,
    )


async def _download(url: str, timeout: float, client: Optional[httpx.AsyncClient]) -> bytes:
    logger.info(f"Downloading dataset from {url}")
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned_client:
                response = await owned_client.get(url)
                response.raise_for_status()
        else:
            response = await client.get(url, timeout=timeout)
            response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        if status in (401, 403):
            kind = ErrorKind.PERMISSION
        elif status >= 500:
            kind = ErrorKind.CONNECTION
        else:
            kind = ErrorKind.LOADING
        raise DatabaseError(
            kind,
            f"Failed to fetch dataset: HTTP {status}",
            context={"url": url, "status_code": status},
            original_error=exc,
        ) from exc
    except httpx.HTTPError as exc:
        raise wrap_error(exc, context={"url": url}) from exc

    logger.info(f"Downloaded {len(response.content)} bytes from {url}")
    return response.content


def batch_insert_posts(
    store,
    transactions: TransactionManager,
    posts: Iterable[Post],
    batch_size: int = 500,
) -> int:
    """
    Insert or replace posts, one transaction per batch.

    A failing batch is rolled back and its error re-raised with the batch
    index and the number of posts already committed in its context; earlier
    batches stay committed.

    Returns:
        Number of posts written
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    posts = list(posts)
    inserted = 0
    for batch_index, start in enumerate(range(0, len(posts), batch_size)):
        batch = posts[start:start + batch_size]
        try:
            with transactions.transaction():
                store.run_many(INSERT_POST, (post.to_row() for post in batch))
        except DatabaseError as exc:
            logger.error(f"Batch {batch_index} failed after {inserted} posts: {exc}")
            raise wrap_error(exc, context={"batch_index": batch_index, "inserted": inserted})
        inserted += len(batch)
        logger.debug(f"Committed batch {batch_index} ({len(batch)} posts)")

    logger.info(f"Inserted {inserted} posts")
    return inserted


def read_posts_csv(csv_path: Union[str, Path], platform: str = "reddit") -> List[Post]:
    """
    Read scraped posts from a CSV file.

    Both post column names and the scraper's submission columns
    (``subreddit``, ``selftext``) are accepted. Rows that do not validate are
    skipped with a warning.

    Args:
        csv_path: Path to the CSV file
        platform: Platform used for rows without a ``platform`` column

    Returns:
        List of valid posts
    """
    try:
        df = pd.read_csv(csv_path, encoding="utf-8")
    except FileNotFoundError as exc:
        raise DatabaseError(
            ErrorKind.LOADING,
            f"CSV file not found: {csv_path}",
            retryable=False,
            context={"path": str(csv_path)},
            original_error=exc,
        ) from exc
    except (OSError, ValueError) as exc:
        raise wrap_error(exc, ErrorKind.LOADING, context={"path": str(csv_path)}) from exc

    renames = {
        alias: column
        for alias, column in CSV_COLUMN_ALIASES.items()
        if alias in df.columns and column not in df.columns
    }
    df = df.rename(columns=renames)
    df = df.astype(object).where(pd.notna(df), None)

    posts: List[Post] = []
    skipped = 0
    for index, record in enumerate(df.to_dict(orient="records")):
        values = {column: record[column] for column in POST_COLUMNS if record.get(column) is not None}
        values.setdefault("platform", platform)
        if "created_utc" in values:
            try:
                values["created_utc"] = int(float(values["created_utc"]))
            except (TypeError, ValueError):
                pass
        try:
            posts.append(Post.model_validate(values))
        except ValidationError as exc:
            skipped += 1
            logger.warning(f"Skipping malformed CSV row {index}: {exc.error_count()} validation error(s)")

    logger.info(f"Read {len(posts)} posts from {csv_path} ({skipped} skipped)")
    return posts
