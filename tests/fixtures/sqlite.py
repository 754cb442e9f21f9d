##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Fixtures for tests of the SQLite layer.
"""

import pytest

from backupdb.backends.sqlite.schema import create_schema
from backupdb.backends.sqlite.sqlite_connection import SQLiteConnection
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.common.serializing_lock import SerializingLock


# pylint: disable=redefined-outer-name


@pytest.fixture
def sqlite_connection() -> SQLiteConnection:
    """
    An in-memory connection with the full schema created.

    Yields:
        The opened connection.
    """
    connection = SQLiteConnection(":memory:")
    connection.open()
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def sqlite_engine(sqlite_connection: SQLiteConnection) -> UpsertEngine:
    """
    An upsert engine over the in-memory connection.

    Args:
        sqlite_connection: The in-memory connection.

    Returns:
        The engine.
    """
    return UpsertEngine(sqlite_connection, SerializingLock())
