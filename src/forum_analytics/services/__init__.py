"""Services module for forum analytics."""

from .query_service import ForumAnalyticsService

__all__ = ["ForumAnalyticsService"]
