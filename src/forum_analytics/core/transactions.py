"""
Explicit transaction control with a savepoint stack.

The manager is the only component that issues BEGIN/COMMIT/ROLLBACK and
SAVEPOINT statements against the record store. Invalid transitions raise Low
severity Transaction errors; a failed rollback is Critical and marks the
session unusable until the store is reinitialized.
"""

import re
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Optional, Tuple

from loguru import logger

from .errors import DatabaseError, ErrorKind, ErrorSeverity

_SAVEPOINT_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class TransactionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"


def _invalid_transition(message: str) -> DatabaseError:
    return DatabaseError(
        ErrorKind.TRANSACTION,
        message,
        severity=ErrorSeverity.LOW,
        retryable=False,
    )


class TransactionManager:
    """
    Transaction state machine over a ``RecordStore``.

    IDLE --begin--> ACTIVE --commit/rollback--> IDLE. While ACTIVE,
    ``savepoint`` pushes a name and ``rollback(to=name)`` rewinds to it.
    """

    def __init__(self, store):
        self.store = store
        self.state = TransactionState.IDLE
        self._savepoints: List[str] = []
        self._fatal_generation: Optional[int] = None

    @property
    def in_transaction(self) -> bool:
        return self.state is TransactionState.ACTIVE

    @property
    def savepoints(self) -> Tuple[str, ...]:
        return tuple(self._savepoints)

    @property
    def is_fatal(self) -> bool:
        """True after a failed rollback until the store has been reinitialized."""
        if self._fatal_generation is None:
            return False
        if self.store.generation != self._fatal_generation:
            self.reset()
            return False
        return True

    def reset(self) -> None:
        self.state = TransactionState.IDLE
        self._savepoints.clear()
        self._fatal_generation = None

    def begin(self) -> None:
        if self.is_fatal:
            raise DatabaseError(
                ErrorKind.TRANSACTION,
                "Session is unusable after a failed rollback; reinitialize the store",
                severity=ErrorSeverity.CRITICAL,
                recoverable=False,
                retryable=False,
            )
        if self.in_transaction:
            raise _invalid_transition("Transaction already in progress")

        try:
            self.store.run("BEGIN TRANSACTION")
        except DatabaseError as exc:
            raise DatabaseError(
                ErrorKind.TRANSACTION,
                "Failed to begin transaction",
                severity=ErrorSeverity.HIGH,
                original_error=exc,
            ) from exc

        self.state = TransactionState.ACTIVE
        self._savepoints.clear()
        logger.debug("Transaction started")

    def commit(self) -> None:
        """
        Commit the active transaction.

        A failed COMMIT is rolled back automatically and surfaced as a High
        severity, recoverable Transaction error. When SQLite has already
        ended the transaction itself, no ROLLBACK is issued.
        """
        if not self.in_transaction:
            raise _invalid_transition("No transaction in progress")

        try:
            self.store.run("COMMIT")
        except DatabaseError as exc:
            logger.error(f"Commit failed, rolling back: {exc}")
            self.rollback()
            raise DatabaseError(
                ErrorKind.TRANSACTION,
                "Failed to commit transaction",
                severity=ErrorSeverity.HIGH,
                recoverable=True,
                original_error=exc,
            ) from exc

        self.state = TransactionState.IDLE
        self._savepoints.clear()
        logger.debug("Transaction committed")

    def rollback(self, to: Optional[str] = None) -> None:
        """
        Roll back the whole transaction, or to a savepoint when ``to`` names
        one on the stack.

        Rolling back to a savepoint keeps that savepoint and drops every
        savepoint created after it; the transaction stays active. A name that
        is not on the stack rolls back the whole transaction. When the engine
        has already ended the transaction, the manager just returns to IDLE.
        """
        if not self.in_transaction:
            raise _invalid_transition("No transaction in progress")

        if to is not None and to in self._savepoints:
            index = len(self._savepoints) - 1 - self._savepoints[::-1].index(to)
            try:
                self.store.run(f"ROLLBACK TO SAVEPOINT {to}")
            except DatabaseError as exc:
                self._mark_fatal()
                raise DatabaseError(
                    ErrorKind.TRANSACTION,
                    f"Failed to rollback to savepoint {to}",
                    severity=ErrorSeverity.CRITICAL,
                    recoverable=False,
                    original_error=exc,
                ) from exc
            del self._savepoints[index + 1:]
            logger.debug(f"Rolled back to savepoint {to}")
            return

        if not self._engine_in_transaction():
            logger.warning("Engine has no open transaction; nothing to roll back")
            self.state = TransactionState.IDLE
            self._savepoints.clear()
            return

        try:
            self.store.run("ROLLBACK")
        except DatabaseError as exc:
            self._mark_fatal()
            raise DatabaseError(
                ErrorKind.TRANSACTION,
                "Failed to rollback transaction",
                severity=ErrorSeverity.CRITICAL,
                recoverable=False,
                original_error=exc,
            ) from exc
        finally:
            self.state = TransactionState.IDLE
            self._savepoints.clear()
        logger.debug("Transaction rolled back")

    def rollback_to(self, name: str) -> None:
        self.rollback(to=name)

    def savepoint(self, name: str) -> None:
        if not self.in_transaction:
            raise _invalid_transition("No transaction in progress")
        if not _SAVEPOINT_NAME.match(name):
            raise _invalid_transition(f"Invalid savepoint name: {name!r}")

        try:
            self.store.run(f"SAVEPOINT {name}")
        except DatabaseError as exc:
            raise DatabaseError(
                ErrorKind.TRANSACTION,
                f"Failed to create savepoint {name}",
                severity=ErrorSeverity.MEDIUM,
                original_error=exc,
            ) from exc

        self._savepoints.append(name)

    def _engine_in_transaction(self) -> bool:
        return bool(self.store.is_open and self.store.in_transaction)

    def _mark_fatal(self) -> None:
        self._fatal_generation = self.store.generation
        logger.critical("Rollback failed; the current session must be reinitialized")

    @contextmanager
    def transaction(self) -> Iterator["TransactionManager"]:
        """Run a block in a transaction, committing on success and rolling back on error."""
        self.begin()
        try:
            yield self
        except BaseException:
            if self.in_transaction:
                self.rollback()
            raise
        else:
            self.commit()
