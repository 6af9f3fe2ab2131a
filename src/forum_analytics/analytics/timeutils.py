"""Timestamp helpers shared by the bucketing and heatmap functions."""

from datetime import datetime, timezone, tzinfo
from typing import Union
from zoneinfo import ZoneInfo

TimezoneLike = Union[str, tzinfo, None]

DAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


def resolve_timezone(tz: TimezoneLike = None) -> tzinfo:
    if tz is None:
        return timezone.utc
    if isinstance(tz, str):
        return timezone.utc if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz


def local_datetime(timestamp: int, tz: TimezoneLike = None) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=resolve_timezone(tz))


def weekday(timestamp: int, tz: TimezoneLike = None) -> int:
    """Day of week with Sunday as 0."""
    return (local_datetime(timestamp, tz).weekday() + 1) % 7


def hour_of_day(timestamp: int, tz: TimezoneLike = None) -> int:
    return local_datetime(timestamp, tz).hour
