"""Post factories and fixed timestamps shared by the unit tests."""

from forum_analytics.models import Post

# 2023-11-14 22:13:20 UTC, a Tuesday
NOW = 1_700_000_000
HOUR = 3600
DAY = 86400


def make_post(post_id, **overrides) -> Post:
    values = {
        "title": f"Post {post_id}",
        "platform": "reddit",
        "source": "stocks",
        "author": "alice",
        "score": 10,
        "num_comments": 1,
        "created_utc": NOW,
        "url": f"https://example.com/{post_id}",
    }
    values.update(overrides)
    return Post(id=str(post_id), **values)
