"""
Structured database errors and failure classification.

Every failure that crosses the record store, transaction manager or loader
boundary is raised as a ``DatabaseError`` carrying its kind, severity and
recovery posture. ``classify_error`` maps raw exceptions onto an ``ErrorKind``
with an ordered, first-match-wins rule list.
"""

import re
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

import httpx
from loguru import logger
from sqlalchemy.exc import DBAPIError


class ErrorKind(str, Enum):
    INITIALIZATION = "initialization"
    CONNECTION = "connection"
    LOADING = "loading"
    QUERY = "query"
    TRANSACTION = "transaction"
    MEMORY = "memory"
    CORRUPTION = "corruption"
    PERMISSION = "permission"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class ErrorPosture:
    severity: ErrorSeverity
    recoverable: bool
    retryable: bool


DEFAULT_POSTURES: Mapping[ErrorKind, ErrorPosture] = MappingProxyType({
    ErrorKind.INITIALIZATION: ErrorPosture(ErrorSeverity.HIGH, recoverable=True, retryable=False),
    ErrorKind.CONNECTION: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=True),
    ErrorKind.LOADING: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=True),
    ErrorKind.QUERY: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=True),
    ErrorKind.TRANSACTION: ErrorPosture(ErrorSeverity.HIGH, recoverable=True, retryable=False),
    ErrorKind.MEMORY: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=True),
    ErrorKind.CORRUPTION: ErrorPosture(ErrorSeverity.CRITICAL, recoverable=False, retryable=False),
    ErrorKind.PERMISSION: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=False, retryable=False),
    ErrorKind.TIMEOUT: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=True),
    ErrorKind.UNKNOWN: ErrorPosture(ErrorSeverity.MEDIUM, recoverable=True, retryable=False),
})

USER_MESSAGES: Mapping[ErrorKind, str] = MappingProxyType({
    ErrorKind.INITIALIZATION: "Failed to initialize the database. Please reload and try again.",
    ErrorKind.CONNECTION: "Unable to connect to the database. Please check your connection and try again.",
    ErrorKind.LOADING: "Failed to load the database file. The file may be corrupted or incompatible.",
    ErrorKind.QUERY: "The database query failed. Please check your input and try again.",
    ErrorKind.TRANSACTION: "The database transaction failed. Your changes have been rolled back.",
    ErrorKind.MEMORY: "The operation requires more memory than available. Try a smaller query.",
    ErrorKind.CORRUPTION: "The database appears to be corrupted. Please restore from a backup.",
    ErrorKind.PERMISSION: "You do not have permission to perform this operation.",
    ErrorKind.TIMEOUT: "The operation took too long to complete. Please try again.",
    ErrorKind.UNKNOWN: "An unexpected error occurred. Please try again or contact support.",
})


class DatabaseError(Exception):
    """
    Structured error raised by every layer below the query service.

    Severity, recoverability and retryability default to the posture of the
    error kind and can be overridden per raise site.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        severity: Optional[ErrorSeverity] = None,
        recoverable: Optional[bool] = None,
        retryable: Optional[bool] = None,
        user_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[BaseException] = None,
        technical_details: Optional[str] = None,
    ):
        super().__init__(message)
        posture = DEFAULT_POSTURES[kind]
        self.kind = kind
        self.message = message
        self.severity = severity or posture.severity
        self.recoverable = posture.recoverable if recoverable is None else recoverable
        self.retryable = posture.retryable if retryable is None else retryable
        self.user_message = user_message or USER_MESSAGES[kind]
        self.context: Dict[str, Any] = dict(context or {})
        self.original_error = original_error
        self.technical_details = technical_details or (
            repr(original_error) if original_error is not None else None
        )
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "user_message": self.user_message,
            "recoverable": self.recoverable,
            "retryable": self.retryable,
            "context": self.context,
            "technical_details": self.technical_details,
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"DatabaseError(kind={self.kind.value}, severity={self.severity.value}, message={self.message!r})"


def _error_message(exc: BaseException) -> str:
    # SQLAlchemy decorates driver messages with the statement text; classify
    # on the driver's own message.
    if isinstance(exc, DBAPIError) and exc.orig is not None:
        return str(exc.orig)
    return str(exc)


Rule = Tuple[Callable[[BaseException, str], bool], ErrorKind]


def _of_type(*types: type) -> Callable[[BaseException, str], bool]:
    return lambda exc, message: isinstance(exc, types)


def _mentions(*words: str) -> Callable[[BaseException, str], bool]:
    return lambda exc, message: any(word in message for word in words)


CLASSIFICATION_RULES: Tuple[Rule, ...] = (
    (_of_type(MemoryError), ErrorKind.MEMORY),
    (_of_type(TimeoutError, httpx.TimeoutException), ErrorKind.TIMEOUT),
    (_of_type(PermissionError), ErrorKind.PERMISSION),
    (_of_type(httpx.TransportError), ErrorKind.CONNECTION),
    (_mentions("wasm", "webassembly"), ErrorKind.INITIALIZATION),
    (_mentions("network", "fetch"), ErrorKind.CONNECTION),
    (_mentions("load", "import", "file"), ErrorKind.LOADING),
    (_mentions("syntax", "query", "sql"), ErrorKind.QUERY),
    (_mentions("transaction", "rollback", "commit"), ErrorKind.TRANSACTION),
    (_mentions("memory", "heap", "stack"), ErrorKind.MEMORY),
    (_mentions("corrupt", "invalid", "malformed"), ErrorKind.CORRUPTION),
    (_mentions("permission", "denied", "unauthorized"), ErrorKind.PERMISSION),
    (_mentions("timeout", "timed out"), ErrorKind.TIMEOUT),
)


def classify_error(exc: BaseException) -> ErrorKind:
    """
    Map a raw exception onto an error kind.

    Rules are evaluated in order and the first match wins. Keyword rules look
    at the lower-cased message, so a message mentioning several concerns is
    classified by the earliest rule (``"failed to load query"`` is Loading).

    Args:
        exc: Exception raised by the driver, the engine or a loader

    Returns:
        ErrorKind: Classification, ``UNKNOWN`` when no rule matches
    """
    if isinstance(exc, DatabaseError):
        return exc.kind

    message = _error_message(exc).lower()
    for predicate, kind in CLASSIFICATION_RULES:
        if predicate(exc, message):
            return kind
    return ErrorKind.UNKNOWN


def wrap_error(
    exc: BaseException,
    kind: Optional[ErrorKind] = None,
    message: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    **overrides: Any,
) -> DatabaseError:
    """
    Wrap a raw exception into a DatabaseError with its classification attached.

    An exception that already is a DatabaseError is returned unchanged apart
    from merging in the extra context.
    """
    if isinstance(exc, DatabaseError) and kind is None:
        if context:
            for key, value in context.items():
                exc.context.setdefault(key, value)
        return exc

    return DatabaseError(
        kind or classify_error(exc),
        message or _error_message(exc) or exc.__class__.__name__,
        context=context,
        original_error=exc,
        **overrides,
    )


_DANGEROUS_PATTERNS = (
    re.compile(r";\s*DROP\s+", re.IGNORECASE),
    re.compile(r";\s*DELETE\s+FROM\s+", re.IGNORECASE),
    re.compile(r";\s*TRUNCATE\s+", re.IGNORECASE),
    re.compile(r";\s*ALTER\s+", re.IGNORECASE),
    re.compile(r";\s*CREATE\s+", re.IGNORECASE),
    re.compile(r"--"),
    re.compile(r"/\*"),
)


def validate_query(sql: str) -> Optional[str]:
    """
    Check a hand-written SQL statement before execution.

    Returns:
        The reason the statement was rejected, or None when it looks safe
    """
    if not sql or not sql.strip():
        return "Query is empty"

    for pattern in _DANGEROUS_PATTERNS:
        if pattern.search(sql):
            return "Query contains potentially dangerous SQL patterns"

    depth = 0
    for char in sql:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                break
    if depth != 0:
        return "Unbalanced parentheses in query"

    return None


def ensure_safe_query(sql: str) -> None:
    """Raise a Low severity Query error when ``validate_query`` rejects ``sql``."""
    problem = validate_query(sql)
    if problem:
        raise DatabaseError(
            ErrorKind.QUERY,
            problem,
            severity=ErrorSeverity.LOW,
            retryable=False,
            user_message=f"Invalid query: {problem}",
            context={"sql": sql},
        )


_LOG_LEVELS = {
    ErrorSeverity.LOW: "INFO",
    ErrorSeverity.MEDIUM: "WARNING",
    ErrorSeverity.HIGH: "ERROR",
    ErrorSeverity.CRITICAL: "CRITICAL",
}


class ErrorLog:
    """Bounded in-memory history of structured errors, newest first."""

    def __init__(self, max_entries: int = 100):
        self.max_entries = max_entries
        self._history: Deque[DatabaseError] = deque(maxlen=max_entries)

    def record(self, error: DatabaseError) -> None:
        """Add an error to the history and emit it to the log."""
        self._history.appendleft(error)
        logger.log(
            _LOG_LEVELS[error.severity],
            f"[{error.kind.value}] {error.message} (severity={error.severity.value}, "
            f"recoverable={error.recoverable}, retryable={error.retryable})"
        )

    @property
    def history(self) -> List[DatabaseError]:
        return list(self._history)

    def stats(self, recent: int = 10) -> Dict[str, Any]:
        """
        Summarize the recorded errors.

        Returns:
            Totals keyed by kind and severity plus the most recent errors
        """
        by_kind: Dict[str, int] = {}
        by_severity: Dict[str, int] = {}
        for error in self._history:
            by_kind[error.kind.value] = by_kind.get(error.kind.value, 0) + 1
            by_severity[error.severity.value] = by_severity.get(error.severity.value, 0) + 1

        return {
            "total": len(self._history),
            "by_kind": by_kind,
            "by_severity": by_severity,
            "recent": [error.to_dict() for error in list(self._history)[:recent]],
        }

    def clear(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)
