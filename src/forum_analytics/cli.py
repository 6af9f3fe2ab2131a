"""Command-line interface for forum analytics."""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import typer
from loguru import logger
from pydantic import BaseModel
from typing_extensions import Annotated

from .config import load_settings
from .core.errors import DatabaseError
from .models import FilterCriteria
from .services import ForumAnalyticsService
from .storage import RecordStore
from .utils import setup_logging

app = typer.Typer(help="Forum Analytics - Query and analyze scraped forum posts")

ConfigOption = Annotated[Optional[str], typer.Option("--config", "-c", help="Path to a YAML configuration file")]
LogLevelOption = Annotated[str, typer.Option("--loglevel", "-l", help="Logging level")]
DatabaseArgument = Annotated[str, typer.Argument(help="Path or URL of the SQLite dataset")]


def _to_plain(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_plain(item) for item in value]
    return value


def _echo_json(value: Any) -> None:
    typer.echo(json.dumps(_to_plain(value), indent=2))


def _open_service(database: Optional[str], config: Optional[str], loglevel: str) -> ForumAnalyticsService:
    settings = load_settings(config)
    setup_logging(loglevel, settings=settings)
    service = ForumAnalyticsService(RecordStore(settings), settings=settings)
    if database is None:
        service.store.initialize()
    else:
        asyncio.run(service.load_database(database))
    return service


def _run(database: Optional[str], config: Optional[str], loglevel: str,
         action: Callable[[ForumAnalyticsService], Any]) -> None:
    service = None
    try:
        service = _open_service(database, config, loglevel)
        _echo_json(action(service))
    except DatabaseError as e:
        logger.debug(f"Command failed: {e!r}")
        typer.echo(f"Error: {e.user_message} ({e.message})", err=True)
        raise typer.Exit(code=1)
    finally:
        if service is not None:
            service.close()


@app.command()
def posts(
    database: DatabaseArgument,
    platform: Annotated[Optional[str], typer.Option(help="Only posts from this platform")] = None,
    source: Annotated[Optional[str], typer.Option(help="Only posts from this source")] = None,
    author: Annotated[Optional[str], typer.Option(help="Only posts by this author")] = None,
    search: Annotated[Optional[str], typer.Option("--search", "-s", help="Text to search in titles and content")] = None,
    date_from: Annotated[Optional[datetime], typer.Option("--from", help="Earliest creation date")] = None,
    date_to: Annotated[Optional[datetime], typer.Option("--to", help="Latest creation date")] = None,
    score_min: Annotated[Optional[int], typer.Option(help="Minimum score")] = None,
    comments_min: Annotated[Optional[int], typer.Option(help="Minimum number of comments")] = None,
    sort_by: Annotated[str, typer.Option(help="Sort column")] = "created_utc",
    sort_order: Annotated[str, typer.Option(help="asc or desc")] = "desc",
    page: Annotated[int, typer.Option(help="Page number")] = 1,
    page_size: Annotated[Optional[int], typer.Option(help="Posts per page")] = None,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Query posts with filters, sorting and pagination."""
    def action(service: ForumAnalyticsService):
        criteria = FilterCriteria(
            platform=platform,
            source=source,
            author=author,
            search_term=search,
            date_from=date_from,
            date_to=date_to,
            score_min=score_min,
            comments_min=comments_min,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            page_size=page_size or service.settings.default_page_size,
        )
        return service.query_posts(criteria)

    _run(database, config, loglevel, action)


@app.command()
def authors(
    database: DatabaseArgument,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of authors")] = 10,
    platform: Annotated[Optional[str], typer.Option(help="Only posts from this platform")] = None,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Rank authors by total score."""
    _run(database, config, loglevel,
         lambda service: service.query_top_authors(limit, FilterCriteria(platform=platform)))


@app.command()
def timeseries(
    database: DatabaseArgument,
    interval: Annotated[str, typer.Option("--interval", "-i", help="hour, day, week or month")] = "day",
    platform: Annotated[Optional[str], typer.Option(help="Only posts from this platform")] = None,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Aggregate posts into time buckets."""
    _run(database, config, loglevel,
         lambda service: service.query_time_series(interval, FilterCriteria(platform=platform)))


@app.command()
def engagement(
    database: DatabaseArgument,
    platform: Annotated[Optional[str], typer.Option(help="Only posts from this platform")] = None,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Engagement totals, correlations and hourly profile."""
    _run(database, config, loglevel,
         lambda service: service.query_engagement_metrics(FilterCriteria(platform=platform)))


@app.command()
def heatmap(
    database: DatabaseArgument,
    days: Annotated[int, typer.Option("--days", "-d", help="Look-back window in days (0 for all posts)")] = 30,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Posts per weekday and hour."""
    _run(database, config, loglevel, lambda service: service.query_posting_heatmap(days))


@app.command()
def summary(
    database: DatabaseArgument,
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Dataset summary and per-platform statistics."""
    def action(service: ForumAnalyticsService):
        return {
            "summary": _to_plain(service.database_summary()),
            "platforms": _to_plain(service.query_platform_stats()),
        }

    _run(database, config, loglevel, action)


@app.command("import-csv")
def import_csv(
    csv_path: Annotated[Path, typer.Argument(help="CSV file of scraped posts")],
    output: Annotated[Path, typer.Option("--output", "-o", help="SQLite file to write")],
    platform: Annotated[str, typer.Option(help="Platform for rows without one")] = "reddit",
    config: ConfigOption = None,
    loglevel: LogLevelOption = "WARNING",
):
    """Build a SQLite dataset from a CSV export of scraped posts."""
    def action(service: ForumAnalyticsService):
        imported = service.import_csv(str(csv_path), platform=platform)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(service.export_database())
        return {"imported": imported, "output": str(output)}

    # Start from an empty dataset
    _run(None, config, loglevel, action)


if __name__ == "__main__":
    app()
