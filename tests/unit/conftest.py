"""Shared fixtures for forum analytics unit tests."""

import pytest

from forum_analytics.config import Settings
from forum_analytics.core import TransactionManager
from forum_analytics.services import ForumAnalyticsService
from forum_analytics.storage import RecordStore, batch_insert_posts

from .factories import DAY, HOUR, NOW, make_post


@pytest.fixture
def settings():
    return Settings(_env_file=None, batch_size=2, cache_max_entries=50, timezone="UTC")


@pytest.fixture
def sample_posts():
    return [
        make_post("p1", title="Apple earnings beat", content="Strong quarter", author="alice",
                  score=100, num_comments=10, created_utc=NOW - HOUR),
        make_post("p2", title="Market outlook", content="Where is APPLE heading?", author="bob",
                  source="investing", score=300, num_comments=40, created_utc=NOW - 2 * HOUR),
        make_post("p3", title="Show HN: a tiny tool", author="carol", platform="hackernews",
                  source=None, score=50, num_comments=5, created_utc=NOW - DAY - 2 * HOUR),
        make_post("p4", title="Tesla deliveries", author="alice", score=300, num_comments=20,
                  created_utc=NOW - 2 * DAY),
        make_post("p5", title="Orphan post", author=None, score=5, num_comments=0,
                  created_utc=NOW - 3 * DAY),
        make_post("p6", title="Removed account", author="[deleted]", platform="hackernews",
                  source=None, score=20, num_comments=2, created_utc=NOW - 4 * DAY),
    ]


@pytest.fixture
def empty_store(settings):
    store = RecordStore(settings)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def store(empty_store, sample_posts):
    batch_insert_posts(empty_store, TransactionManager(empty_store), sample_posts, batch_size=4)
    empty_store.refresh_search_index()
    return empty_store


@pytest.fixture
def service(store, settings):
    return ForumAnalyticsService(store, settings=settings, clock=lambda: NOW)
