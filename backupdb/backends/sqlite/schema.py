##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Table layout of the backupdb SQLite database.

The four mapped entities (backups, schedules, notifications and temp files) are
registered with the entity mapper here, once, and their tables are created from
those descriptors. The child tables keyed by `backup_id` hold plain rows and
are declared explicitly.

See also:
    - backupdb.backends.entity_mapper: Descriptor registration and row conversion
    - backupdb.db_scripts.data_models: Data model definitions
"""

import logging
from typing import Dict, Tuple

from backupdb.backends.entity_mapper import ID_COLUMN, EntityDescriptor, describe
from backupdb.backends.sqlite.sqlite_connection import SQLiteConnection
from backupdb.db_scripts.data_models import Backup, Notification, Schedule, TempFile


LOG = logging.getLogger(__name__)

BACKUP: EntityDescriptor = describe(Backup, table="backup")
SCHEDULE: EntityDescriptor = describe(Schedule, table="schedule")
NOTIFICATION: EntityDescriptor = describe(Notification, table="notification")
TEMP_FILE: EntityDescriptor = describe(TempFile, table="temp_file")

MAPPED_TABLES: Tuple[EntityDescriptor, ...] = (BACKUP, SCHEDULE, NOTIFICATION, TEMP_FILE)

SOURCE_TABLE = "source"
OPTION_TABLE = "option"
FILTER_TABLE = "filter"
METADATA_TABLE = "metadata"
LOG_TABLE = "log"
ERROR_LOG_TABLE = "error_log"

# Every table with rows keyed by `backup_id`; all of them are emptied when a backup is deleted
BACKUP_DEPENDENT_TABLES: Tuple[str, ...] = (
    ERROR_LOG_TABLE,
    FILTER_TABLE,
    LOG_TABLE,
    METADATA_TABLE,
    OPTION_TABLE,
    SOURCE_TABLE,
)

CHILD_TABLE_COLUMNS: Dict[str, str] = {
    SOURCE_TABLE: '"backup_id" INTEGER NOT NULL, "path" TEXT NOT NULL',
    OPTION_TABLE: '"backup_id" INTEGER NOT NULL, "filter" TEXT NOT NULL, "name" TEXT NOT NULL, "value" TEXT NOT NULL',
    FILTER_TABLE: '"backup_id" INTEGER NOT NULL, "order" INTEGER NOT NULL, "include" INTEGER NOT NULL, '
    '"expression" TEXT NOT NULL',
    METADATA_TABLE: '"backup_id" INTEGER NOT NULL, "name" TEXT NOT NULL, "value" TEXT',
    LOG_TABLE: (
        '"id" INTEGER PRIMARY KEY, "backup_id" INTEGER NOT NULL, "description" TEXT, "timestamp" INTEGER NOT NULL'
    ),
    ERROR_LOG_TABLE: '"backup_id" INTEGER, "message" TEXT NOT NULL, "exception" TEXT, "timestamp" INTEGER NOT NULL',
}


def quote(identifier: str) -> str:
    """
    Quote a table or column name for use in a statement.

    Args:
        identifier: The bare name.

    Returns:
        The name wrapped in double quotes.
    """
    return '"' + identifier.replace('"', '""') + '"'


def create_table_sql(descriptor: EntityDescriptor) -> str:
    """
    Build the CREATE TABLE statement for a mapped entity.

    The identity column becomes the integer primary key, so SQLite generates it
    on insert; every other column takes the SQLite type of its kind.

    Args:
        descriptor: The registered descriptor of the entity.

    Returns:
        The CREATE TABLE statement.
    """
    column_defs = []
    for column in descriptor.columns:
        if column.name == ID_COLUMN:
            column_defs.append(f"{quote(column.name)} INTEGER PRIMARY KEY")
        else:
            column_defs.append(f"{quote(column.name)} {column.kind.sqlite_type}")
    return f"CREATE TABLE IF NOT EXISTS {quote(descriptor.table)} ({', '.join(column_defs)});"


def create_schema(connection: SQLiteConnection):
    """
    Create every table and index that doesn't exist yet.

    Args:
        connection: The connection to create the schema through.
    """
    with connection.begin() as transaction:
        for descriptor in MAPPED_TABLES:
            transaction.execute(create_table_sql(descriptor))

        for table, columns in CHILD_TABLE_COLUMNS.items():
            transaction.execute(f"CREATE TABLE IF NOT EXISTS {quote(table)} ({columns});")
            transaction.execute(
                f"CREATE INDEX IF NOT EXISTS {quote(table + '_backup_id')} ON {quote(table)} (\"backup_id\");"
            )

    LOG.debug("Database schema is up to date.")


def drop_schema(connection: SQLiteConnection):
    """
    Drop every table that backupdb owns.

    Args:
        connection: The connection to drop the schema through.
    """
    tables = [descriptor.table for descriptor in MAPPED_TABLES] + list(CHILD_TABLE_COLUMNS)
    with connection.begin() as transaction:
        for table in tables:
            transaction.execute(f"DROP TABLE IF EXISTS {quote(table)}")
    LOG.info(f"Dropped {len(tables)} tables.")
