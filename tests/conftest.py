"""
Shared fixtures: SQLite stores and a fault-injecting connection wrapper for
exercising commit and rollback failure paths.
"""

import sqlite3

import pytest

from account_ledger.service import AccountService
from account_ledger.storage import SQLiteLedgerStore


class FlakyCursor:
    """Cursor proxy that fails statements containing a marker"""

    def __init__(self, cursor, connection):
        self._cursor = cursor
        self._connection = connection

    def execute(self, sql, params=()):
        marker = self._connection.fail_statement
        if marker and marker in sql:
            raise sqlite3.OperationalError("disk I/O error")
        return self._cursor.execute(sql, params)

    def __getattr__(self, name):
        return getattr(self._cursor, name)


class FlakyConnection:
    """sqlite3 connection proxy with switchable commit/rollback failures"""

    def __init__(self, connection):
        self._connection = connection
        self.fail_statement = None
        self.fail_commit = False
        self.fail_rollback = False
        self.rollbacks = 0

    def cursor(self):
        return FlakyCursor(self._connection.cursor(), self)

    def commit(self):
        if self.fail_commit:
            raise sqlite3.OperationalError("database is locked")
        self._connection.commit()

    def rollback(self):
        self.rollbacks += 1
        if self.fail_rollback:
            raise sqlite3.OperationalError("cannot rollback - connection lost")
        self._connection.rollback()

    def reset(self):
        self.fail_statement = None
        self.fail_commit = False
        self.fail_rollback = False

    def __getattr__(self, name):
        return getattr(self._connection, name)


class FlakySQLiteStore(SQLiteLedgerStore):
    """In-memory SQLite store whose connection can be told to fail"""

    def _connect(self):
        self.flaky = FlakyConnection(super()._connect())
        return self.flaky


@pytest.fixture
def store():
    store = SQLiteLedgerStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def flaky_store():
    store = FlakySQLiteStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def service(store):
    return AccountService(store)
