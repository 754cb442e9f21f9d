##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
SQLite connection and transaction handles for backupdb.

This module defines `SQLiteConnection`, which owns the single connection a
`BackupDatabase` talks through, and `Transaction`, the handle returned by
`SQLiteConnection.begin`. The connection is opened in autocommit mode so that
transactions are always explicit: whoever calls `begin()` owns the resulting
handle and is the only party that may commit or roll it back.
"""

import logging
import sqlite3
import sys
from pathlib import Path
from types import TracebackType
from typing import Any, Optional, Sequence, Type

from backupdb.exceptions import TransactionStateError


LOG = logging.getLogger(__name__)


class Transaction:
    """
    An open transaction on a `SQLiteConnection`.

    Used as a context manager by its owner, the transaction commits on a clean
    exit and rolls back when an exception escapes. Code that merely receives a
    handle must only call `execute` and `last_insert_id`.

    Attributes:
        conn (sqlite3.Connection): The connection the transaction runs on.

    Methods:
        execute: Run a parameterized statement inside the transaction.
        last_insert_id: The identity generated by the most recent insert.
        commit: Make the transaction's writes permanent.
        rollback: Discard the transaction's writes.
    """

    def __init__(self, conn: sqlite3.Connection):
        """
        Begin a transaction on `conn`.

        Args:
            conn: An autocommit-mode SQLite connection.
        """
        self.conn: sqlite3.Connection = conn
        self._active: bool = True
        self.conn.execute("BEGIN")
        LOG.debug("Transaction started.")

    @property
    def is_active(self) -> bool:
        """Whether the transaction can still be used."""
        return self._active

    def _check_active(self):
        if not self._active:
            raise TransactionStateError("The transaction has already been committed or rolled back.")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """
        Run a parameterized statement inside the transaction.

        Args:
            sql: The statement to run.
            params: Positional parameters for the statement.

        Returns:
            The cursor of the executed statement.
        """
        self._check_active()
        LOG.debug(f"SQLite statement: {sql} {list(params)}")
        return self.conn.execute(sql, tuple(params))

    def last_insert_id(self) -> int:
        """
        The identity generated by the most recent insert on this connection.

        Returns:
            The last generated row id.
        """
        self._check_active()
        return self.conn.execute("SELECT last_insert_rowid()").fetchone()[0]

    def commit(self):
        """
        Make the transaction's writes permanent.

        If COMMIT fails the transaction is rolled back, so the connection can
        begin a new one, and the original error is re-raised.
        """
        self._check_active()
        try:
            self.conn.execute("COMMIT")
        except sqlite3.Error:
            self._abandon()
            raise
        self._active = False
        LOG.debug("Transaction committed.")

    def _abandon(self):
        self._active = False
        if self.conn.in_transaction:
            try:
                self.conn.execute("ROLLBACK")
            except sqlite3.Error as rollback_error:
                LOG.warning(f"Rollback after a failed commit also failed: {rollback_error}")

    def rollback(self):
        """Discard the transaction's writes."""
        self._check_active()
        self.conn.execute("ROLLBACK")
        self._active = False
        LOG.debug("Transaction rolled back.")

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type: Type[Exception], exc_value: Exception, traceback: TracebackType):
        """
        Commit if the block finished cleanly, otherwise roll back.

        Args:
            exc_type: The exception type raised, if any.
            exc_value: The exception instance raised, if any.
            traceback: The traceback object, if an exception was raised.
        """
        if not self._active:
            return
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self._abandon()
                raise
        else:
            LOG.debug(f"Rolling back after {exc_type.__name__}: {exc_value}")
            self.rollback()


class SQLiteConnection:
    """
    Owner of the SQLite connection used by a `BackupDatabase`.

    This class ensures SQLite connections are created with proper configuration, including:
    - WAL mode for better concurrency
    - Foreign key constraint enforcement
    - Dictionary-style row access via `sqlite3.Row`
    - Compatibility with Python versions < 3.12 and ≥ 3.12 regarding autocommit

    Attributes:
        db_path (str): The file the database lives in, or `:memory:`.
        conn (sqlite3.Connection): The active SQLite connection, once opened.

    Methods:
        open: Open and configure the connection.
        close: Close the connection.
        execute: Run a single statement outside of any transaction.
        begin: Start a transaction and return its handle.
    """

    def __init__(self, db_path: str):
        """
        Initialize the SQLiteConnection.

        Args:
            db_path: The file the database lives in, or `:memory:`.
        """
        self.db_path: str = db_path
        self.conn: Optional[sqlite3.Connection] = None
        self._transaction: Optional[Transaction] = None

    def open(self) -> sqlite3.Connection:
        """
        Open and configure the connection if it isn't open yet.

        Returns:
            A sqlite connection.
        """
        if self.conn is not None:
            return self.conn

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # Every store call is serialized by one lock, so the connection may be shared across threads
        connection_kwargs = {"check_same_thread": False}
        if sys.version_info < (3, 12):  # Autocommit wasn't added until python 3.12
            connection_kwargs["isolation_level"] = None
        else:
            connection_kwargs["autocommit"] = True

        self.conn = sqlite3.connect(self.db_path, **connection_kwargs)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.row_factory = sqlite3.Row
        LOG.debug(f"Opened SQLite database at '{self.db_path}'.")

        return self.conn

    def close(self):
        """Close the connection if it is open."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None
            LOG.debug(f"Closed SQLite database at '{self.db_path}'.")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """
        Run a single statement outside of any transaction.

        Args:
            sql: The statement to run.
            params: Positional parameters for the statement.

        Returns:
            The cursor of the executed statement.
        """
        LOG.debug(f"SQLite statement: {sql} {list(params)}")
        return self.open().execute(sql, tuple(params))

    def begin(self) -> Transaction:
        """
        Start a transaction.

        Returns:
            The handle of the new transaction. The caller owns it.

        Raises:
            TransactionStateError: If a transaction is already open on this connection.
        """
        if self._transaction is not None and self._transaction.is_active:
            raise TransactionStateError("A transaction is already open on this connection.")
        self._transaction = Transaction(self.open())
        return self._transaction

    def __enter__(self) -> "SQLiteConnection":
        self.open()
        return self

    def __exit__(self, exc_type: Type[Exception], exc_value: Exception, traceback: TracebackType):
        """
        Exits the runtime context and closes the connection.

        Args:
            exc_type: The exception type raised, if any.
            exc_value: The exception instance raised, if any.
            traceback: The traceback object, if an exception was raised.
        """
        self.close()
