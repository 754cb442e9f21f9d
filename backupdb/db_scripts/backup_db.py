##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module contains the functionality necessary to interact with everything
stored in the backupdb database.

One `BackupDatabase` is created per database file and handed to whoever needs
it. It owns the SQLite connection and the lock that serializes every operation,
and wires the stores together around them.
"""

import logging
import os
from types import TracebackType
from typing import Optional, Type

from backupdb.backends.sqlite.schema import create_schema
from backupdb.backends.sqlite.sqlite_connection import SQLiteConnection
from backupdb.backends.tag_index import TagIndex
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.common.serializing_lock import SerializingLock
from backupdb.config import Config
from backupdb.db_scripts.data_models import Backup
from backupdb.db_scripts.entity_store import DEFAULT_MAX_PATH_ATTEMPTS, EntityStore
from backupdb.db_scripts.export import ExportBundle, SourceNameResolver, prepare_backup_for_export
from backupdb.db_scripts.notification_log import NotificationLog
from backupdb.db_scripts.server_settings import ServerSettings
from backupdb.db_scripts.temporary_registry import TemporaryRegistry
from backupdb.db_scripts.update_notifier import SignalSink, UpdateNotifier
from backupdb.exceptions import BackupNotFoundError
from backupdb.utils import get_yaml_var


LOG = logging.getLogger(__name__)


class BackupDatabase:
    """
    High-level interface for accessing everything stored by backupdb.

    Attributes:
        connection (SQLiteConnection): The one connection every store uses.
        lock (SerializingLock): Serializes every operation on this database.
        engine (UpsertEngine): Transactional reads and writes.
        tags (TagIndex): Tag lookups.
        temporary (TemporaryRegistry): Backups that only live in memory.
        settings (ServerSettings): Application-wide settings.
        notifier (UpdateNotifier): Change counters and the change signal.
        entities (EntityStore): Backups, schedules and temp files.
        notifications (NotificationLog): The notification log.

    Methods:
        from_config: Build a database from a loaded configuration.
        open: Open the connection and create missing tables.
        close: Close the connection.
        register_temporary_backup: Hold a backup in memory only.
        unregister_temporary_backup: Forget a temporary backup.
        prepare_backup_for_export: Bundle a backup with its schedule for transfer.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        db_path: str,
        data_folder: str,
        max_path_attempts: int = DEFAULT_MAX_PATH_ATTEMPTS,
        signal: Optional[SignalSink] = None,
        source_names: Optional[SourceNameResolver] = None,
    ):
        """
        Initialize a new BackupDatabase instance.

        Args:
            db_path: The SQLite file, or `:memory:`.
            data_folder: Where storage paths for new backups are generated.
            max_path_attempts: How many random storage paths to try.
            signal: Called with no arguments after every committed change.
            source_names: Names the sources of exported backups.
        """
        self.connection: SQLiteConnection = SQLiteConnection(db_path)
        self.lock: SerializingLock = SerializingLock()
        self.engine: UpsertEngine = UpsertEngine(self.connection, self.lock)
        self.tags: TagIndex = TagIndex(self.engine)
        self.temporary: TemporaryRegistry = TemporaryRegistry(self.lock)
        self.settings: ServerSettings = ServerSettings(self.engine)
        self.notifier: UpdateNotifier = UpdateNotifier(signal)
        self.entities: EntityStore = EntityStore(
            self.engine,
            self.tags,
            self.temporary,
            self.settings,
            self.notifier,
            data_folder,
            max_path_attempts,
        )
        self.notifications: NotificationLog = NotificationLog(self.engine, self.settings, self.notifier)
        self.source_names: Optional[SourceNameResolver] = source_names

    @classmethod
    def from_config(cls, config: Config, signal: Optional[SignalSink] = None) -> "BackupDatabase":
        """
        Build a database from a loaded configuration.

        Args:
            config: The application configuration.
            signal: Called with no arguments after every committed change.

        Returns:
            An opened `BackupDatabase`.
        """
        database = cls(
            db_path=os.path.expanduser(get_yaml_var(config.database, "path", ":memory:")),
            data_folder=os.path.expanduser(get_yaml_var(config.storage, "data_folder", ".")),
            max_path_attempts=int(get_yaml_var(config.storage, "max_path_attempts", DEFAULT_MAX_PATH_ATTEMPTS)),
            signal=signal,
        )
        return database.open()

    def open(self) -> "BackupDatabase":
        """
        Open the connection and create any missing tables.

        Returns:
            This database.
        """
        with self.lock:
            self.connection.open()
            create_schema(self.connection)
        LOG.debug(f"Backup database ready at '{self.connection.db_path}'.")
        return self

    def close(self):
        """Close the connection."""
        with self.lock:
            self.connection.close()

    def __enter__(self) -> "BackupDatabase":
        return self.open()

    def __exit__(self, exc_type: Type[Exception], exc_value: Exception, traceback: TracebackType):
        self.close()

    def register_temporary_backup(self, backup: Backup) -> str:
        """
        Hold a backup in memory only.

        Args:
            backup: A backup without an identity.

        Returns:
            The generated temporary identity.
        """
        return self.temporary.register(backup)

    def unregister_temporary_backup(self, backup: Backup) -> bool:
        """
        Forget a temporary backup.

        Args:
            backup: The temporary backup.

        Returns:
            True if it was registered.
        """
        return self.temporary.unregister(backup)

    def prepare_backup_for_export(self, backup_id: str) -> ExportBundle:
        """
        Bundle a backup with its schedule and source display names.

        Args:
            backup_id: The backup to export.

        Returns:
            The export bundle.

        Raises:
            BackupNotFoundError: If there is no backup with this identity.
        """
        with self.lock:
            backup = self.entities.get_backup(backup_id)
            if backup is None:
                raise BackupNotFoundError(f"Backup with id '{backup_id}' does not exist.")
            schedule = self.entities.schedule_for_backup(backup.id)
        return prepare_backup_for_export(backup, schedule, self.source_names)
