"""
Forum Analytics - Analytical query layer over scraped forum posts.

This package loads a SQLite dataset of posts into memory and serves filtered,
paginated queries, author rankings, time series and posting heatmaps with
result caching, explicit transactions and structured error recovery.
"""

__version__ = "1.0.0"
__author__ = "Development Team"
__email__ = "dev@example.com"
