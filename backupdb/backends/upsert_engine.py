##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The "overwrite child set" write pattern and the generic readers built on the
entity mapper.

An overwrite is an optional parameterized DELETE followed by one INSERT or
UPDATE per value, all inside a single transaction. Every write operation comes
in two forms:

- `name(...)` opens its own transaction and commits it when the work succeeds.
- `name_in(transaction, ...)` runs inside a transaction the caller already
  holds. It never commits or rolls back; any failure propagates so the owner
  can roll the whole unit back.
"""

import logging
from typing import Any, Callable, Iterable, List, Optional, Sequence, TypeVar

from backupdb.backends.entity_mapper import ID_COLUMN, ColumnKind, EntityDescriptor, from_row, to_row, write_value
from backupdb.backends.sqlite.schema import quote
from backupdb.backends.sqlite.sqlite_connection import SQLiteConnection, Transaction
from backupdb.common.serializing_lock import SerializingLock
from backupdb.exceptions import IntegrityViolationError


LOG = logging.getLogger(__name__)

T = TypeVar("T")
RowFunction = Callable[[T], Optional[Sequence[Any]]]


class UpsertEngine:
    """
    Transactional reads and writes over one `SQLiteConnection`.

    Attributes:
        connection (SQLiteConnection): The connection statements run on.
        lock (SerializingLock): The lock that serializes every store operation.

    Methods:
        read_rows: Run a query and convert each row with a function.
        read: Read mapped entities with an optional WHERE clause.
        overwrite_and_update: Delete-then-insert in a new transaction.
        overwrite_and_update_in: Delete-then-insert in the caller's transaction.
        write_entities: Insert or update mapped entities in a new transaction.
        write_entities_in: Insert or update mapped entities in the caller's transaction.
        delete_by_id: Delete rows by an identifier in a new transaction.
        delete_by_id_in: Delete rows by an identifier in the caller's transaction.
    """

    def __init__(self, connection: SQLiteConnection, lock: SerializingLock):
        """
        Initialize the engine.

        Args:
            connection: The connection statements run on.
            lock: The lock that serializes every store operation.
        """
        self.connection: SQLiteConnection = connection
        self.lock: SerializingLock = lock

    ##################
    #    Reading     #
    ##################

    def read_rows(self, sql: str, params: Sequence[Any], row_fn: Callable[[Sequence[Any]], T]) -> List[T]:
        """
        Run a query and convert every row.

        Args:
            sql: The query to run.
            params: Positional parameters for the query.
            row_fn: Converts one row into a result item.

        Returns:
            The converted rows, in the order the query returned them.
        """
        with self.lock:
            cursor = self.connection.execute(sql, params)
            return [row_fn(row) for row in cursor.fetchall()]

    def read(self, descriptor: EntityDescriptor, where: str = None, params: Sequence[Any] = ()) -> List[Any]:
        """
        Read mapped entities.

        Args:
            descriptor: The descriptor of the entity to read.
            where: An optional WHERE clause (without the keyword).
            params: Positional parameters for the WHERE clause.

        Returns:
            The entities that matched.
        """
        columns = ", ".join(quote(name) for name in descriptor.column_names)
        sql = f"SELECT {columns} FROM {quote(descriptor.table)}"
        if where:
            sql += f" WHERE {where}"
        return self.read_rows(sql, params, lambda row: from_row(descriptor, row))

    ##################
    #  Raw overwrite #
    ##################

    def overwrite_and_update(
        self,
        delete_sql: Optional[str],
        delete_args: Sequence[Any],
        values: Iterable[T],
        insert_sql: str,
        row_fn: RowFunction,
    ) -> int:
        """
        Run an overwrite in a transaction owned by this call.

        Args:
            delete_sql: The DELETE that clears the old set, or None.
            delete_args: Parameters for `delete_sql`.
            values: The new set.
            insert_sql: The statement run once per value.
            row_fn: Converts a value into statement parameters; returning None skips it.

        Returns:
            The number of rows written.
        """
        with self.lock:
            with self.connection.begin() as transaction:
                return self.overwrite_and_update_in(transaction, delete_sql, delete_args, values, insert_sql, row_fn)

    def overwrite_and_update_in(
        self,
        transaction: Transaction,
        delete_sql: Optional[str],
        delete_args: Sequence[Any],
        values: Iterable[T],
        insert_sql: str,
        row_fn: RowFunction,
    ) -> int:
        """
        Run an overwrite inside the caller's transaction.

        Args:
            transaction: The caller's open transaction.
            delete_sql: The DELETE that clears the old set, or None.
            delete_args: Parameters for `delete_sql`.
            values: The new set.
            insert_sql: The statement run once per value.
            row_fn: Converts a value into statement parameters; returning None skips it.

        Returns:
            The number of rows written.
        """
        with self.lock:
            if delete_sql:
                cursor = transaction.execute(delete_sql, delete_args or ())
                LOG.debug(f"Cleared {cursor.rowcount} rows before overwrite.")

            written = 0
            for value in values or ():
                params = row_fn(value)
                if params is None:
                    continue
                written += transaction.execute(insert_sql, params).rowcount
            return written

    ##################
    # Mapped writes  #
    ##################

    def _insert_sql(self, descriptor: EntityDescriptor, include_id: bool) -> str:
        columns = descriptor.columns if include_id else descriptor.value_columns
        names = ", ".join(quote(column.name) for column in columns)
        placeholders = ", ".join("?" for _ in columns)
        return f"INSERT INTO {quote(descriptor.table)} ({names}) VALUES ({placeholders})"

    def _update_sql(self, descriptor: EntityDescriptor) -> str:
        assignments = ", ".join(f"{quote(column.name)}=?" for column in descriptor.value_columns)
        return f"UPDATE {quote(descriptor.table)} SET {assignments} WHERE {quote(ID_COLUMN)}=?"

    def write_entities(
        self,
        descriptor: EntityDescriptor,
        values: Sequence[Any],
        update_existing: bool = False,
        delete_sql: str = None,
        delete_args: Sequence[Any] = (),
    ) -> int:
        """
        Insert or update mapped entities in a transaction owned by this call.

        Args:
            descriptor: The descriptor of the entities.
            values: The entities to write.
            update_existing: UPDATE by identity instead of INSERT.
            delete_sql: An optional DELETE to run first.
            delete_args: Parameters for `delete_sql`.

        Returns:
            The number of rows affected.
        """
        with self.lock:
            with self.connection.begin() as transaction:
                return self.write_entities_in(transaction, descriptor, values, update_existing, delete_sql, delete_args)

    def write_entities_in(
        self,
        transaction: Transaction,
        descriptor: EntityDescriptor,
        values: Sequence[Any],
        update_existing: bool = False,
        delete_sql: str = None,
        delete_args: Sequence[Any] = (),
    ) -> int:
        """
        Insert or update mapped entities inside the caller's transaction.

        When a single entity without an identity is inserted, the identity the
        database generated is written back onto that entity before returning.
        An UPDATE that matches no row is not an error; check the returned count
        when existence matters.

        Args:
            transaction: The caller's open transaction.
            descriptor: The descriptor of the entities.
            values: The entities to write.
            update_existing: UPDATE by identity instead of INSERT.
            delete_sql: An optional DELETE to run first.
            delete_args: Parameters for `delete_sql`.

        Returns:
            The number of rows affected.
        """
        values = list(values)
        id_column = descriptor.id_column

        with self.lock:
            if update_existing:
                if id_column is None:
                    raise IntegrityViolationError(
                        f"Cannot update '{descriptor.table}' rows without an identity column."
                    )
                update_sql = self._update_sql(descriptor)
                return self.overwrite_and_update_in(
                    transaction,
                    delete_sql,
                    delete_args,
                    values,
                    update_sql,
                    lambda entity: to_row(descriptor, entity, descriptor.value_columns)
                    + [write_value(id_column, getattr(entity, ID_COLUMN))],
                )

            if delete_sql:
                cursor = transaction.execute(delete_sql, delete_args or ())
                LOG.debug(f"Cleared {cursor.rowcount} rows from '{descriptor.table}' before insert.")

            affected = 0
            unset_identity = []
            for entity in values:
                has_id = id_column is not None and getattr(entity, ID_COLUMN) is not None
                columns = descriptor.columns if has_id else descriptor.value_columns
                transaction.execute(self._insert_sql(descriptor, has_id), to_row(descriptor, entity, columns))
                affected += 1
                if id_column is not None and not has_id:
                    unset_identity.append(entity)

            if len(values) == 1 and unset_identity:
                new_id = transaction.last_insert_id()
                entity = unset_identity[0]
                setattr(entity, ID_COLUMN, str(new_id) if id_column.kind is ColumnKind.STRING else new_id)
                LOG.debug(f"Assigned identity {new_id} to new '{descriptor.table}' row.")

            return affected

    ##################
    #    Deleting    #
    ##################

    def delete_by_id(self, table: str, identifier: Any, column: str = ID_COLUMN) -> bool:
        """
        Delete rows matching an identifier in a transaction owned by this call.

        Args:
            table: The table to delete from.
            identifier: The value to match.
            column: The column to match against.

        Returns:
            True if exactly one row was deleted.
        """
        with self.lock:
            with self.connection.begin() as transaction:
                return self.delete_by_id_in(transaction, table, identifier, column)

    def delete_by_id_in(self, transaction: Transaction, table: str, identifier: Any, column: str = ID_COLUMN) -> bool:
        """
        Delete rows matching an identifier inside the caller's transaction.

        Deleting many rows by `backup_id` is normal. Deleting more than one row
        by primary identity means identities have collided, so it raises and
        the caller's transaction must be rolled back.

        Args:
            transaction: The caller's open transaction.
            table: The table to delete from.
            identifier: The value to match.
            column: The column to match against.

        Returns:
            True if exactly one row was deleted.

        Raises:
            IntegrityViolationError: If a delete by primary identity removed more than one row.
        """
        with self.lock:
            cursor = transaction.execute(f"DELETE FROM {quote(table)} WHERE {quote(column)}=?", (identifier,))
            deleted = cursor.rowcount
            if column == ID_COLUMN and deleted > 1:
                raise IntegrityViolationError(
                    f"Too many records attempted deleted from table {table} for id {identifier}: {deleted}"
                )
            LOG.debug(f"Deleted {deleted} rows from '{table}' where {column}={identifier}.")
            return deleted == 1
