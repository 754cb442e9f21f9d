##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `sqlite_connection.py` module.
"""

import os
import sqlite3
import sys
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from backupdb.backends.sqlite.sqlite_connection import SQLiteConnection
from backupdb.exceptions import TransactionStateError
from tests.fixture_types import FixtureDict


class LockedOnCommit:
    """Passes statements to a real connection but fails every COMMIT as a busy database would."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def execute(self, sql: str, params=()):
        if sql == "COMMIT":
            raise sqlite3.OperationalError("database is locked")
        return self._conn.execute(sql, params)

    def __getattr__(self, name: str):
        return getattr(self._conn, name)


@pytest.fixture
def mock_sqlite_components(mocker: MockerFixture) -> FixtureDict[str, MagicMock]:
    """
    Fixture to patch all external dependencies used by SQLiteConnection.

    Args:
        mocker: PyTest mocker fixture.

    Returns:
        A dictionary of mocked sqlite connection components.
    """
    mock_mkdir = mocker.patch("pathlib.Path.mkdir")
    mock_conn = MagicMock(spec=sqlite3.Connection)
    mock_connect = mocker.patch("sqlite3.connect", return_value=mock_conn)

    return {
        "mock_mkdir": mock_mkdir,
        "mock_connect": mock_connect,
        "mock_conn": mock_conn,
    }


def test_connection_enter_sets_up_connection(mock_sqlite_components: FixtureDict[str, MagicMock]):
    """
    Test that `__enter__` correctly initializes the SQLite connection with expected settings.

    Args:
        mock_sqlite_components: A dictionary of mocked sqlite connection components.
    """
    conn_mock = mock_sqlite_components["mock_conn"]
    db_path = os.path.join("tmp", "fake", "backupdb.sqlite")

    with SQLiteConnection(db_path) as sqlite_conn:
        assert sqlite_conn.conn is conn_mock

    mock_sqlite_components["mock_mkdir"].assert_called_once_with(parents=True, exist_ok=True)
    autocommit_kwargs = {"autocommit": True} if sys.version_info >= (3, 12) else {"isolation_level": None}
    mock_sqlite_components["mock_connect"].assert_called_once_with(
        db_path,
        check_same_thread=False,
        **autocommit_kwargs,
    )
    conn_mock.execute.assert_any_call("PRAGMA journal_mode=WAL")
    conn_mock.execute.assert_any_call("PRAGMA foreign_keys=ON")
    assert conn_mock.row_factory == sqlite3.Row
    conn_mock.close.assert_called_once()


def test_open_is_idempotent(mock_sqlite_components: FixtureDict[str, MagicMock]):
    """
    Test that opening twice reuses the connection.

    Args:
        mock_sqlite_components: A dictionary of mocked sqlite connection components.
    """
    sqlite_conn = SQLiteConnection(":memory:")
    assert sqlite_conn.open() is sqlite_conn.open()
    mock_sqlite_components["mock_connect"].assert_called_once()
    mock_sqlite_components["mock_mkdir"].assert_not_called()


class TestTransaction:
    """Tests for transactions on a real in-memory database."""

    @pytest.fixture
    def connection(self) -> SQLiteConnection:
        """
        An in-memory connection with one scratch table.

        Yields:
            The opened connection.
        """
        connection = SQLiteConnection(":memory:")
        connection.execute('CREATE TABLE "item" ("id" INTEGER PRIMARY KEY, "name" TEXT)')
        yield connection
        connection.close()

    def count(self, connection: SQLiteConnection) -> int:
        """Number of rows in the scratch table."""
        return connection.execute('SELECT COUNT(*) FROM "item"').fetchone()[0]

    def test_commit_on_clean_exit(self, connection: SQLiteConnection):
        """
        Test that a transaction commits when its block finishes.

        Args:
            connection: The scratch connection.
        """
        with connection.begin() as transaction:
            transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("a",))
            assert transaction.last_insert_id() == 1
        assert self.count(connection) == 1
        assert not transaction.is_active

    def test_rollback_on_exception(self, connection: SQLiteConnection):
        """
        Test that an exception escaping the block discards every write.

        Args:
            connection: The scratch connection.
        """
        with pytest.raises(RuntimeError):
            with connection.begin() as transaction:
                transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("a",))
                transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("b",))
                raise RuntimeError("boom")
        assert self.count(connection) == 0

    def test_explicit_rollback(self, connection: SQLiteConnection):
        """
        Test that an explicit rollback ends the transaction without writes.

        Args:
            connection: The scratch connection.
        """
        with connection.begin() as transaction:
            transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("a",))
            transaction.rollback()
        assert self.count(connection) == 0

    def test_finished_transaction_rejects_statements(self, connection: SQLiteConnection):
        """
        Test that a committed transaction can't be used again.

        Args:
            connection: The scratch connection.
        """
        with connection.begin() as transaction:
            pass
        with pytest.raises(TransactionStateError):
            transaction.execute('SELECT 1')

    def test_nested_begin_raises(self, connection: SQLiteConnection):
        """
        Test that a second transaction can't be opened while one is active.

        Args:
            connection: The scratch connection.
        """
        with connection.begin():
            with pytest.raises(TransactionStateError):
                connection.begin()
        # The first transaction finished, so a new one is fine
        with connection.begin():
            pass

    def test_failed_commit_rolls_back(self, connection: SQLiteConnection):
        """
        Test that a COMMIT that fails rolls the transaction back and lets the next one begin.

        Args:
            connection: The scratch connection.
        """
        with pytest.raises(sqlite3.OperationalError, match="database is locked"):
            with connection.begin() as transaction:
                transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("a",))
                transaction.conn = LockedOnCommit(transaction.conn)

        assert not transaction.is_active
        assert not connection.conn.in_transaction
        assert self.count(connection) == 0

        with connection.begin() as transaction:
            transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("b",))
        assert self.count(connection) == 1

    def test_explicit_commit_failure_rolls_back(self, connection: SQLiteConnection):
        """
        Test that a failing explicit commit also leaves the connection usable.

        Args:
            connection: The scratch connection.
        """
        transaction = connection.begin()
        transaction.execute('INSERT INTO "item" ("name") VALUES (?)', ("a",))
        transaction.conn = LockedOnCommit(transaction.conn)
        with pytest.raises(sqlite3.OperationalError):
            transaction.commit()

        assert not transaction.is_active
        assert self.count(connection) == 0
        connection.begin().rollback()
