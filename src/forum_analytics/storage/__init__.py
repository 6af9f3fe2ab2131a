"""Record store and dataset loaders."""

from .loader import batch_insert_posts, read_database_source, read_posts_csv
from .record_store import RecordStore

__all__ = ["RecordStore", "batch_insert_posts", "read_database_source", "read_posts_csv"]
