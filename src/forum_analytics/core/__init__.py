"""Query building, caching, transactions and error handling."""

from .errors import (
    DatabaseError,
    ErrorKind,
    ErrorLog,
    ErrorSeverity,
    classify_error,
    ensure_safe_query,
    validate_query,
    wrap_error,
)
from .query_builder import BuiltQuery, PostQuery
from .recovery import (
    ErrorRecovery,
    RecoveryAction,
    RecoveryStrategy,
    build_default_strategies,
    run_with_recovery,
)
from .result_cache import ResultCache, make_cache_key
from .transactions import TransactionManager, TransactionState

__all__ = [
    "DatabaseError",
    "ErrorKind",
    "ErrorLog",
    "ErrorSeverity",
    "classify_error",
    "ensure_safe_query",
    "validate_query",
    "wrap_error",
    "BuiltQuery",
    "PostQuery",
    "ErrorRecovery",
    "RecoveryAction",
    "RecoveryStrategy",
    "build_default_strategies",
    "run_with_recovery",
    "ResultCache",
    "make_cache_key",
    "TransactionManager",
    "TransactionState",
]
