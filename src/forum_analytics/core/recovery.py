"""Error recovery strategies and the retry loop built on them."""

import asyncio
import gc
import inspect
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Tuple, TypeVar, Union

from loguru import logger

from .errors import DatabaseError, ErrorKind, ErrorLog, ErrorSeverity

T = TypeVar("T")

ActionCallable = Callable[[], Union[bool, Awaitable[bool]]]


@dataclass(frozen=True)
class RecoveryAction:
    name: str
    action: ActionCallable


@dataclass(frozen=True)
class RecoveryStrategy:
    """Ordered remediation actions for one error kind."""
    kind: ErrorKind
    actions: Tuple[RecoveryAction, ...]
    max_retries: int
    retry_delay: float  # seconds


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class ErrorRecovery:
    """
    Runs recovery strategies for structured errors.

    The strategy table is copied into a read-only mapping on construction and
    never changes afterwards.
    """

    def __init__(self, strategies: Mapping[ErrorKind, RecoveryStrategy]):
        self._strategies: Mapping[ErrorKind, RecoveryStrategy] = MappingProxyType(dict(strategies))

    @property
    def strategies(self) -> Mapping[ErrorKind, RecoveryStrategy]:
        return self._strategies

    def strategy_for(self, kind: ErrorKind) -> Optional[RecoveryStrategy]:
        return self._strategies.get(kind)

    async def attempt_recovery(self, error: DatabaseError) -> bool:
        """
        Try each action of the strategy for ``error.kind`` in order.

        Returns:
            True as soon as one action succeeds; False when there is no
            strategy or every action failed. An action that raises counts as
            a failure.
        """
        strategy = self.strategy_for(error.kind)
        if strategy is None:
            logger.debug(f"No recovery strategy for {error.kind.value} errors")
            return False

        for recovery_action in strategy.actions:
            logger.info(f"Attempting recovery action: {recovery_action.name}")
            try:
                if await _resolve(recovery_action.action()):
                    logger.info(f"Recovery action succeeded: {recovery_action.name}")
                    return True
            except Exception as exc:
                logger.warning(f"Recovery action {recovery_action.name} failed: {exc}")

        logger.warning(f"All recovery actions failed for {error.kind.value} error")
        return False


def build_default_strategies(
    store,
    cache,
    transactions=None,
    load_source: Optional[Callable[[Any], Awaitable[Any]]] = None,
    fallback_source: Any = None,
    remote_url: Optional[str] = None,
) -> Mapping[ErrorKind, RecoveryStrategy]:
    """
    Build the standard strategy table for a store and its result cache.

    Args:
        store: Record store the actions operate on
        cache: Result cache cleared by several actions
        transactions: Transaction manager; adds a Transaction strategy when
            given, and an open transaction is rolled back before the store is
            reinitialized
        load_source: Coroutine function that loads a dataset source into the store
        fallback_source: Dataset used by "Use Fallback Database"
        remote_url: Dataset URL used by "Download Fresh Copy"

    Returns:
        Read-only mapping of error kind to strategy
    """

    def clear_cache() -> bool:
        cache.clear()
        return True

    def reinitialize_store() -> bool:
        # Reload the last committed dataset into a fresh handle
        if not store.is_open:
            return False
        if transactions is not None and transactions.in_transaction:
            transactions.rollback()
        store.initialize(store.serialize())
        if transactions is not None:
            transactions.reset()
        cache.clear()
        return True

    async def use_fallback() -> bool:
        if load_source is None or fallback_source is None:
            return False
        await load_source(fallback_source)
        return True

    async def download_fresh_copy() -> bool:
        if load_source is None or not remote_url:
            return False
        await load_source(remote_url)
        return True

    def clear_memory() -> bool:
        cache.clear()
        gc.collect()
        return True

    def shrink_store_memory() -> bool:
        return store.shrink_memory()

    strategies = {
        ErrorKind.INITIALIZATION: RecoveryStrategy(
            ErrorKind.INITIALIZATION,
            (RecoveryAction("Clear Cache", clear_cache), RecoveryAction("Reinitialize Store", reinitialize_store)),
            max_retries=3,
            retry_delay=1.0,
        ),
        ErrorKind.LOADING: RecoveryStrategy(
            ErrorKind.LOADING,
            (RecoveryAction("Use Fallback Database", use_fallback), RecoveryAction("Download Fresh Copy", download_fresh_copy)),
            max_retries=2,
            retry_delay=2.0,
        ),
        ErrorKind.QUERY: RecoveryStrategy(
            ErrorKind.QUERY,
            (RecoveryAction("Clear Result Cache", clear_cache),),
            max_retries=1,
            retry_delay=0.0,
        ),
        ErrorKind.MEMORY: RecoveryStrategy(
            ErrorKind.MEMORY,
            (RecoveryAction("Clear Memory", clear_memory), RecoveryAction("Shrink Store Memory", shrink_store_memory)),
            max_retries=2,
            retry_delay=3.0,
        ),
    }

    if transactions is not None:
        def rollback_transaction() -> bool:
            if transactions.in_transaction:
                transactions.rollback()
            return not transactions.in_transaction

        strategies[ErrorKind.TRANSACTION] = RecoveryStrategy(
            ErrorKind.TRANSACTION,
            (RecoveryAction("Rollback Transaction", rollback_transaction),),
            max_retries=1,
            retry_delay=0.0,
        )

    return MappingProxyType(strategies)


async def run_with_recovery(
    operation: Callable[[], Union[T, Awaitable[T]]],
    recovery: ErrorRecovery,
    *,
    error_log: Optional[ErrorLog] = None,
    default_max_retries: int = 2,
    default_retry_delay: float = 1.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run ``operation`` and recover from structured errors.

    Critical errors are raised at once. Recoverable errors get a recovery
    attempt. Low and Medium severity errors marked retryable are then retried
    up to the strategy's ``max_retries`` (or ``default_max_retries`` when the
    kind has no strategy), waiting ``retry_delay`` seconds between attempts.

    Args:
        operation: Sync or async callable taking no arguments
        recovery: Recovery engine holding the strategy table
        error_log: Optional log every caught error is recorded in
        sleep: Awaitable delay function, injectable for tests

    Returns:
        The operation's result
    """
    retries = 0
    while True:
        try:
            return await _resolve(operation())
        except DatabaseError as error:
            if error_log is not None:
                error_log.record(error)

            if error.severity is ErrorSeverity.CRITICAL:
                logger.critical(f"Not retrying critical error: {error.message}")
                raise

            if error.recoverable:
                await recovery.attempt_recovery(error)

            strategy = recovery.strategy_for(error.kind)
            max_retries = strategy.max_retries if strategy else default_max_retries
            delay = strategy.retry_delay if strategy else default_retry_delay

            if not error.retryable or error.severity not in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM):
                raise
            if retries >= max_retries:
                logger.error(f"Max retries ({max_retries}) exceeded: {error.message}")
                raise

            retries += 1
            logger.warning(
                f"{error.kind.value} error: {error.message}. "
                f"Retrying in {delay:.2f}s ({retries}/{max_retries})"
            )
            if delay > 0:
                await sleep(delay)
