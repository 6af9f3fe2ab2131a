"""
Record store adapter over an in-memory SQLite database.

The store owns exactly one engine and connection per instance and is passed
to every component that needs it. Transaction control is explicit: the
connection runs in autocommit mode and the transaction manager issues
BEGIN/COMMIT/ROLLBACK/SAVEPOINT statements itself.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings
from ..core.errors import DatabaseError, ErrorKind, ErrorSeverity, wrap_error
from ..models.orm import POST_INDEXES, Base
from ..models.post import Post

SQLITE_HEADER = b"SQLite format 3\x00"


class RecordStore:
    """
    Handle to the loaded dataset.

    Every driver or engine failure is re-raised as a ``DatabaseError`` with
    the statement and parameters in its context. Using the store before
    ``initialize`` or after ``close`` raises an Initialization error.
    """

    def __init__(self, settings: Optional[Settings] = None, enable_fts: Optional[bool] = None):
        self.settings = settings or get_settings()
        self.enable_fts = self.settings.enable_fts if enable_fts is None else enable_fts
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None
        self.generation = 0
        self.fts_available = False

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def initialize(self, data: Optional[bytes] = None) -> None:
        """
        Open a fresh in-memory database.

        Args:
            data: Serialized SQLite database to load; an empty posts schema is
                created when omitted

        Raises:
            DatabaseError: Loading error for a file that is not a SQLite
                database, Corruption error when the integrity check fails
        """
        if data is not None and bytes(data[:len(SQLITE_HEADER)]) != SQLITE_HEADER:
            raise DatabaseError(
                ErrorKind.LOADING,
                "Dataset is not a SQLite database file (missing header)",
                context={"size": len(data)},
            )

        engine, connection = self._open()
        try:
            if data is None:
                Base.metadata.create_all(connection)
            else:
                self._deserialize(connection, bytes(data))
            self._prepare(connection)
        except DatabaseError:
            self._discard(engine, connection)
            raise
        except Exception as exc:
            self._discard(engine, connection)
            raise wrap_error(exc, ErrorKind.INITIALIZATION) from exc

        self.close()
        self._engine = engine
        self._connection = connection
        self.generation += 1
        self.fts_available = self._build_search_index() if self.enable_fts else False

        total = self.execute_first("SELECT COUNT(*) AS count FROM posts")
        logger.info(
            f"Record store initialized with {total['count'] if total else 0} posts "
            f"(generation {self.generation}, fts={self.fts_available})"
        )

    def _open(self):
        try:
            engine = create_engine(
                "sqlite://",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
                isolation_level="AUTOCOMMIT",
            )
            return engine, engine.connect()
        except Exception as exc:
            raise wrap_error(exc, ErrorKind.INITIALIZATION, "Failed to open the record store") from exc

    @staticmethod
    def _discard(engine: Engine, connection: Connection) -> None:
        connection.close()
        engine.dispose()

    @staticmethod
    def _deserialize(connection: Connection, data: bytes) -> None:
        try:
            connection.connection.driver_connection.deserialize(data)
        except Exception as exc:
            raise wrap_error(exc, ErrorKind.LOADING, f"Failed to load dataset: {exc}") from exc

        try:
            result = connection.exec_driver_sql("PRAGMA quick_check").scalar()
        except Exception as exc:
            raise wrap_error(exc, ErrorKind.CORRUPTION, f"Dataset failed the integrity check: {exc}") from exc
        if result != "ok":
            raise DatabaseError(
                ErrorKind.CORRUPTION,
                f"Dataset failed the integrity check: {result}",
            )

    @staticmethod
    def _prepare(connection: Connection) -> None:
        tables = connection.exec_driver_sql(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'posts'"
        ).all()
        if not tables:
            raise DatabaseError(ErrorKind.LOADING, "Dataset has no posts table")

        for name, statement in POST_INDEXES.items():
            try:
                connection.exec_driver_sql(statement)
            except Exception as exc:
                logger.warning(f"Failed to create index {name}: {exc}")

        try:
            connection.exec_driver_sql("ANALYZE")
        except Exception as exc:
            logger.warning(f"Failed to analyze dataset: {exc}")

    def _build_search_index(self) -> bool:
        connection = self._require_connection()
        try:
            connection.exec_driver_sql("DROP TABLE IF EXISTS posts_fts")
            connection.exec_driver_sql(
                "CREATE VIRTUAL TABLE posts_fts USING fts5("
                "id UNINDEXED, title, content, tokenize='trigram')"
            )
        except Exception as exc:
            logger.warning(f"Full-text search unavailable, falling back to LIKE search: {exc}")
            return False

        try:
            connection.exec_driver_sql(
                "INSERT INTO posts_fts (id, title, content) "
                "SELECT id, title, COALESCE(content, '') FROM posts"
            )
        except Exception as exc:
            logger.warning(f"Failed to populate full-text index: {exc}")
            connection.exec_driver_sql("DROP TABLE IF EXISTS posts_fts")
            return False
        return True

    def refresh_search_index(self) -> bool:
        """Rebuild the full-text index after posts were written."""
        self.fts_available = self._build_search_index() if self.enable_fts else False
        return self.fts_available

    def close(self) -> None:
        """Release the handle; later calls fail until ``initialize`` runs again."""
        if self._connection is None:
            return
        try:
            self._connection.close()
        finally:
            if self._engine is not None:
                self._engine.dispose()
            self._connection = None
            self._engine = None
            self.fts_available = False
            logger.debug("Record store closed")

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise DatabaseError(
                ErrorKind.INITIALIZATION,
                "Record store is not initialized",
                severity=ErrorSeverity.HIGH,
            )
        return self._connection

    def _exec(self, sql: str, params: Sequence[Any]):
        connection = self._require_connection()
        try:
            if params:
                return connection.exec_driver_sql(sql, tuple(params))
            return connection.exec_driver_sql(sql)
        except Exception as exc:
            raise wrap_error(exc, context={"sql": sql, "params": list(params)}) from exc

    def execute(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """Run a row-returning statement and return the rows as dicts."""
        result = self._exec(sql, params)
        return [dict(row) for row in result.mappings()]

    def execute_first(self, sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
        rows = self.execute(sql, params)
        return rows[0] if rows else None

    def run(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a statement that returns no rows; returns the affected row count."""
        result = self._exec(sql, params)
        return result.rowcount

    def run_many(self, sql: str, rows: Iterable[Sequence[Any]]) -> int:
        """Run one statement for each parameter row."""
        rows = [tuple(row) for row in rows]
        if not rows:
            return 0
        connection = self._require_connection()
        try:
            connection.exec_driver_sql(sql, rows)
        except Exception as exc:
            raise wrap_error(exc, context={"sql": sql, "rows": len(rows)}) from exc
        return len(rows)

    def fetch_posts(self, sql: str, params: Sequence[Any] = ()) -> List[Post]:
        """
        Run a post query and validate every row into a ``Post``.

        Raises:
            DatabaseError: Query error when a row does not have the post shape
        """
        rows = self.execute(sql, params)
        try:
            return [Post.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise DatabaseError(
                ErrorKind.QUERY,
                f"Row does not match the post shape: {exc.error_count()} validation error(s)",
                retryable=False,
                context={"sql": sql, "params": list(params)},
                original_error=exc,
            ) from exc

    def has_table(self, name: str) -> bool:
        row = self.execute_first(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') AND name = ?",
            (name,),
        )
        return row is not None

    @property
    def in_transaction(self) -> bool:
        return self._require_connection().connection.driver_connection.in_transaction

    def serialize(self) -> bytes:
        """Return the current database as SQLite file bytes."""
        connection = self._require_connection()
        try:
            return connection.connection.driver_connection.serialize()
        except Exception as exc:
            raise wrap_error(exc, context={"operation": "serialize"}) from exc

    def shrink_memory(self) -> bool:
        self.run("PRAGMA shrink_memory")
        return True
