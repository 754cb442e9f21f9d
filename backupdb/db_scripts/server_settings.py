##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Application-wide settings stored as option rows under `SERVER_SETTINGS_ID`.
"""

import logging
from typing import Dict, Optional

from backupdb.backends.sqlite.schema import OPTION_TABLE, quote
from backupdb.backends.sqlite.sqlite_connection import Transaction
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.db_scripts.data_models import SERVER_SETTINGS_ID
from backupdb.utils import parse_bool


LOG = logging.getLogger(__name__)

UNACKED_ERROR = "unacked-error"
UNACKED_WARNING = "unacked-warning"
FIXED_INVALID_BACKUP_ID = "fixed-invalid-backup-id"

SELECT_SQL = f'SELECT "name", "value" FROM {quote(OPTION_TABLE)} WHERE "backup_id"=?'
DELETE_SQL = f'DELETE FROM {quote(OPTION_TABLE)} WHERE "backup_id"=? AND "name"=?'
INSERT_SQL = f'INSERT INTO {quote(OPTION_TABLE)} ("backup_id", "filter", "name", "value") VALUES (?, ?, ?, ?)'


class ServerSettings:
    """
    Key/value settings that apply to the whole server.

    Attributes:
        engine (UpsertEngine): Runs reads and writes under the store lock.
        unacked_error (bool): Whether an error notification hasn't been dismissed.
        unacked_warning (bool): Whether a warning notification hasn't been dismissed.
        fixed_invalid_backup_id (bool): Whether stray rows under the global id were cleaned up.

    Methods:
        get_all: Every stored setting.
        get: One setting value.
        set: Store one setting value in a new transaction.
        set_in: Store one setting value in the caller's transaction.
    """

    def __init__(self, engine: UpsertEngine):
        self.engine: UpsertEngine = engine

    def get_all(self) -> Dict[str, str]:
        """
        Every stored application setting.

        Returns:
            The settings keyed by name. When a name repeats the last row wins.
        """
        rows = self.engine.read_rows(SELECT_SQL, (SERVER_SETTINGS_ID,), lambda row: (row[0], row[1]))
        return dict(rows)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        One application setting.

        Args:
            name: The setting name.
            default: Returned when the setting isn't stored.

        Returns:
            The stored value or `default`.
        """
        return self.get_all().get(name, default)

    def set(self, name: str, value: Optional[str]):
        """
        Store one setting in a transaction owned by this call.

        Args:
            name: The setting name.
            value: The new value. None removes the setting.
        """
        with self.engine.lock:
            with self.engine.connection.begin() as transaction:
                self.set_in(transaction, name, value)

    def set_in(self, transaction: Transaction, name: str, value: Optional[str]):
        """
        Store one setting inside the caller's transaction.

        Args:
            transaction: The caller's open transaction.
            name: The setting name.
            value: The new value. None removes the setting.
        """
        self.engine.overwrite_and_update_in(
            transaction,
            DELETE_SQL,
            (SERVER_SETTINGS_ID, name),
            [value],
            INSERT_SQL,
            lambda new_value: None if new_value is None else (SERVER_SETTINGS_ID, "", name, str(new_value)),
        )
        LOG.debug(f"Application setting '{name}' set to '{value}'.")

    def _get_flag(self, name: str) -> bool:
        return parse_bool(self.get(name), False)

    def _set_flag(self, name: str, value: bool):
        self.set(name, "true" if value else "false")

    @property
    def unacked_error(self) -> bool:
        """Whether an error notification is waiting to be dismissed."""
        return self._get_flag(UNACKED_ERROR)

    @unacked_error.setter
    def unacked_error(self, value: bool):
        self._set_flag(UNACKED_ERROR, value)

    @property
    def unacked_warning(self) -> bool:
        """Whether a warning notification is waiting to be dismissed."""
        return self._get_flag(UNACKED_WARNING)

    @unacked_warning.setter
    def unacked_warning(self, value: bool):
        self._set_flag(UNACKED_WARNING, value)

    @property
    def fixed_invalid_backup_id(self) -> bool:
        """Whether rows stored under the global id by mistake were removed."""
        return self._get_flag(FIXED_INVALID_BACKUP_ID)

    @fixed_invalid_backup_id.setter
    def fixed_invalid_backup_id(self, value: bool):
        self._set_flag(FIXED_INVALID_BACKUP_ID, value)
