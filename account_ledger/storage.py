"""
Ledger Store Module

Durable account storage with explicit transaction demarcation. Provides an
abstract store and implementations for SQLite (stdlib sqlite3) and PostgreSQL
(psycopg2). Auto-commit is disabled: every logical operation ends with an
explicit commit or rollback, and a failed rollback is reported together with
the failure that caused it.

A store instance owns one connection and is not safe for concurrent use on
its own; callers serialize access (see AccountService).
"""

from abc import ABC, abstractmethod
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union
import sqlite3

import psycopg2
import psycopg2.errorcodes
import psycopg2.extras

from .accounts import Account
from .logging_config import get_logger


logger = get_logger(__name__)

TABLE_NAME = "account"
HOLDER_COLUMN_NAME = "holder_name"
BALANCE_COLUMN_NAME = "balance"
HOLDER_COLUMN_LENGTH = 64

ROLLBACK_FAILURE_SUFFIX = ". Also failed to rollback transaction because of: "


class StoreError(Exception):
    """A call to the backing store failed"""


class DuplicateAccountError(StoreError):
    """Insert violated the unique holder constraint"""


class LedgerStore(ABC):
    """Abstract relational store for account rows"""

    # DB-API parameter marker used by the driver
    placeholder = "?"
    # Row lock suffix for read-modify-write reads
    lock_clause = ""

    def __init__(self, auto_create_schema: bool = True):
        self._in_transaction = False
        try:
            self._connection = self._connect()
        except self.driver_error as e:
            raise StoreError("Could not connect to datasource.") from e
        self._statements = self._prepare_statements()
        if auto_create_schema:
            self.ensure_schema()

    @property
    @abstractmethod
    def driver_error(self) -> type:
        """Base exception class raised by the driver"""
        pass

    @abstractmethod
    def _connect(self) -> Any:
        """Open the DB-API connection with auto-commit disabled"""
        pass

    @abstractmethod
    def _is_unique_violation(self, error: Exception) -> bool:
        """Check whether a driver error is a unique constraint violation"""
        pass

    def _prepare_statements(self) -> Dict[str, str]:
        p = self.placeholder
        select = f"SELECT {HOLDER_COLUMN_NAME}, {BALANCE_COLUMN_NAME} FROM {TABLE_NAME}"
        return {
            "create_table": (
                f"CREATE TABLE IF NOT EXISTS {TABLE_NAME} ("
                f"{HOLDER_COLUMN_NAME} VARCHAR({HOLDER_COLUMN_LENGTH}) PRIMARY KEY, "
                f"{BALANCE_COLUMN_NAME} INTEGER NOT NULL CHECK ({BALANCE_COLUMN_NAME} >= 0))"
            ),
            "create_account": (
                f"INSERT INTO {TABLE_NAME} ({HOLDER_COLUMN_NAME}, {BALANCE_COLUMN_NAME}) "
                f"VALUES ({p}, {p})"
            ),
            "find_account": f"{select} WHERE {HOLDER_COLUMN_NAME} = {p}",
            "find_account_locked": f"{select} WHERE {HOLDER_COLUMN_NAME} = {p}{self.lock_clause}",
            "find_all_accounts": f"{select} ORDER BY {HOLDER_COLUMN_NAME}",
            "change_balance": (
                f"UPDATE {TABLE_NAME} SET {BALANCE_COLUMN_NAME} = {p} "
                f"WHERE {HOLDER_COLUMN_NAME} = {p}"
            ),
            "delete_account": f"DELETE FROM {TABLE_NAME} WHERE {HOLDER_COLUMN_NAME} = {p}",
        }

    # Transaction demarcation

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @contextmanager
    def atomic(self):
        """
        Transaction scope. Commits on normal exit, rolls back on any exception
        and re-raises it. Nested scopes join the outermost one.
        """
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            try:
                yield
            except Exception as error:
                self._rollback(error)
                raise
            self._commit()
        finally:
            self._in_transaction = False

    def _commit(self) -> None:
        try:
            self._connection.commit()
        except self.driver_error as e:
            failure = StoreError(f"Could not commit transaction: {e}")
            self._rollback(failure)
            raise failure from e

    def _rollback(self, failure: BaseException) -> None:
        """Roll back after failure; raise a combined StoreError if that fails too"""
        try:
            self._connection.rollback()
        except self.driver_error as rollback_error:
            message = f"{_describe(failure)}{ROLLBACK_FAILURE_SUFFIX}{_describe(rollback_error)}"
            logger.error(message)
            raise StoreError(message) from failure

    def _execute(self, failure_msg: str, statement: str,
                 params: Sequence[Any] = (), fetch: Optional[str] = None) -> Any:
        """
        Run one prepared statement inside the current transaction scope

        Returns:
            The fetched row(s) when fetch is "one" or "all", else the row count
        """
        try:
            with closing(self._connection.cursor()) as cursor:
                cursor.execute(self._statements[statement], tuple(params))
                if fetch == "one":
                    return cursor.fetchone()
                if fetch == "all":
                    return cursor.fetchall()
                return cursor.rowcount
        except self.driver_error as e:
            if self._is_unique_violation(e):
                raise DuplicateAccountError(f"{failure_msg} Account already exists.") from e
            raise StoreError(f"{failure_msg} {e}") from e
        except OverflowError as e:
            # sqlite3 binds integers as 64-bit and raises this outside sqlite3.Error
            raise StoreError(f"{failure_msg} {e}") from e

    # Schema bootstrap

    def ensure_schema(self) -> None:
        """Create the account table if it does not exist"""
        with self.atomic():
            self._execute("Could not create account table.", "create_table")
        logger.debug("Account table ready")

    # Account operations

    def create_account(self, holder_name: str, balance: int = 0) -> Account:
        """
        Insert a new account row

        Raises:
            DuplicateAccountError: If the holder already has an account
            StoreError: If the insert failed
        """
        failure_msg = f"Could not create the account for: {holder_name}."
        with self.atomic():
            rows = self._execute(failure_msg, "create_account", (holder_name, balance))
            if rows != 1:
                raise StoreError(failure_msg)
        return Account(holder_name=holder_name, balance=balance)

    def find_by_holder(self, holder_name: str, lock: bool = False) -> Optional[Account]:
        """
        Point lookup by holder name

        Args:
            holder_name: Account identity
            lock: Hold a row lock until the enclosing transaction ends

        Returns:
            The account, or None if there is no such account
        """
        statement = "find_account_locked" if lock else "find_account"
        with self.atomic():
            row = self._execute("Could not search for specified account.",
                                statement, (holder_name,), fetch="one")
        return _row_to_account(row) if row is not None else None

    def find_all(self) -> List[Account]:
        """Retrieve all accounts ordered by holder name"""
        with self.atomic():
            rows = self._execute("Could not list accounts.", "find_all_accounts", fetch="all")
        return [_row_to_account(row) for row in rows]

    def update_balance(self, holder_name: str, new_balance: int) -> None:
        """
        Set the balance of an existing account

        Raises:
            StoreError: If the update failed or no account matched
        """
        failure_msg = f"Could not update the account for: {holder_name}."
        with self.atomic():
            rows = self._execute(failure_msg, "change_balance", (new_balance, holder_name))
            if rows != 1:
                raise StoreError(f"{failure_msg} No such account.")

    def delete(self, holder_name: str) -> bool:
        """
        Delete an account; deleting a missing account is a no-op

        Returns:
            True if a row was deleted
        """
        with self.atomic():
            rows = self._execute(f"Could not delete account: {holder_name}.",
                                 "delete_account", (holder_name,))
        return rows > 0

    def close(self) -> None:
        """Close the connection"""
        if self._connection is not None:
            try:
                self._connection.close()
            except self.driver_error as e:
                raise StoreError("Could not close connection.") from e
            finally:
                self._connection = None

    def __enter__(self) -> 'LedgerStore':
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


class SQLiteLedgerStore(LedgerStore):
    """SQLite store implementation"""

    def __init__(self, db_path: Union[str, Path] = ":memory:", auto_create_schema: bool = True):
        self.db_path = str(db_path)
        super().__init__(auto_create_schema=auto_create_schema)

    @property
    def driver_error(self) -> type:
        return sqlite3.Error

    def _connect(self) -> sqlite3.Connection:
        # isolation_level='DEFERRED' leaves transaction control to commit/rollback;
        # the service lock serializes use across threads.
        connection = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level='DEFERRED')
        connection.row_factory = sqlite3.Row

        if self.db_path != ":memory:":
            connection.execute("PRAGMA journal_mode = WAL")
            connection.execute("PRAGMA synchronous = NORMAL")
            connection.commit()
        return connection

    def _is_unique_violation(self, error: Exception) -> bool:
        return isinstance(error, sqlite3.IntegrityError) and "UNIQUE" in str(error)


class PostgreSQLLedgerStore(LedgerStore):
    """PostgreSQL store implementation with row locking for read-modify-write"""

    placeholder = "%s"
    lock_clause = " FOR UPDATE"

    def __init__(self, connection_string: str, auto_create_schema: bool = True):
        self.connection_string = connection_string
        super().__init__(auto_create_schema=auto_create_schema)

    @property
    def driver_error(self) -> type:
        return psycopg2.Error

    def _connect(self):
        connection = psycopg2.connect(
            self.connection_string,
            cursor_factory=psycopg2.extras.RealDictCursor
        )
        connection.autocommit = False  # We handle transactions manually
        return connection

    def _is_unique_violation(self, error: Exception) -> bool:
        return getattr(error, "pgcode", None) == psycopg2.errorcodes.UNIQUE_VIOLATION


def create_store(database_url: str, auto_create_schema: bool = True) -> LedgerStore:
    """
    Build a store from a database URL

    Supported forms: sqlite:// (in-memory), sqlite:///path/to.db,
    postgresql://... and postgres://...
    """
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        return SQLiteLedgerStore(":memory:", auto_create_schema=auto_create_schema)
    if database_url.startswith("sqlite:///"):
        return SQLiteLedgerStore(database_url[len("sqlite:///"):],
                                 auto_create_schema=auto_create_schema)
    if database_url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLLedgerStore(database_url, auto_create_schema=auto_create_schema)
    raise StoreError(f"Unable to create datasource, unsupported database URL: {database_url}")


def _row_to_account(row: Any) -> Account:
    return Account(holder_name=row[HOLDER_COLUMN_NAME], balance=int(row[BALANCE_COLUMN_NAME]))


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__
