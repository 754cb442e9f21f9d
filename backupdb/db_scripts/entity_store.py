##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Lifecycle of backups and schedules.

`EntityStore` validates, writes and deletes backups together with their child
rows (sources, settings, filters and metadata) and their linked schedule. Every
multi-statement write runs in one transaction; the store's public methods own
that transaction and bump the configuration counter once it has committed.

See also:
    - backupdb.backends.upsert_engine: The transactional write pattern
    - backupdb.backends.tag_index: Schedule-to-backup linking by tag
    - backupdb.db_scripts.validation: The checks run before any write
"""

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Union

from backupdb.backends.sqlite.schema import (
    BACKUP,
    BACKUP_DEPENDENT_TABLES,
    FILTER_TABLE,
    METADATA_TABLE,
    OPTION_TABLE,
    SCHEDULE,
    SOURCE_TABLE,
    TEMP_FILE,
    quote,
)
from backupdb.backends.sqlite.sqlite_connection import Transaction
from backupdb.backends.tag_index import TagIndex, id_tag
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.db_scripts.data_models import (
    ANY_BACKUP_ID,
    NUMERIC_ID_PATTERN,
    PASSWORD_PLACEHOLDER,
    Backup,
    Filter,
    Schedule,
    Setting,
    TempFile,
)
from backupdb.db_scripts.server_settings import FIXED_INVALID_BACKUP_ID, ServerSettings
from backupdb.db_scripts.temporary_registry import TemporaryRegistry
from backupdb.db_scripts.update_notifier import UpdateNotifier
from backupdb.db_scripts.validation import validate_backup
from backupdb.exceptions import (
    BackupNotFoundError,
    IntegrityViolationError,
    PlaceholderPersistenceError,
    ScheduleNotFoundError,
    StoragePathExhaustedError,
)
from backupdb.utils import ensure_directory_exists, generate_random_name, utcnow


LOG = logging.getLogger(__name__)

DEFAULT_MAX_PATH_ATTEMPTS = 100
STORAGE_FILE_EXTENSION = ".sqlite"


def _child_sql(table: str, columns: List[str]):
    names = ", ".join(quote(column) for column in ["backup_id"] + columns)
    placeholders = ", ".join("?" for _ in range(len(columns) + 1))
    return (
        f'SELECT {", ".join(quote(column) for column in columns)} FROM {quote(table)} WHERE "backup_id"=?',
        f'DELETE FROM {quote(table)} WHERE "backup_id"=?',
        f"INSERT INTO {quote(table)} ({names}) VALUES ({placeholders})",
    )


SOURCE_SELECT, SOURCE_DELETE, SOURCE_INSERT = _child_sql(SOURCE_TABLE, ["path"])
OPTION_SELECT, OPTION_DELETE, OPTION_INSERT = _child_sql(OPTION_TABLE, ["filter", "name", "value"])
FILTER_SELECT, FILTER_DELETE, FILTER_INSERT = _child_sql(FILTER_TABLE, ["order", "include", "expression"])
METADATA_SELECT, METADATA_DELETE, METADATA_INSERT = _child_sql(METADATA_TABLE, ["name", "value"])


class EntityStore:  # pylint: disable=too-many-public-methods
    """
    Backups, schedules and temp files, plus their validation and cascading delete.

    Attributes:
        engine (UpsertEngine): Runs every statement under the store lock.
        tags (TagIndex): Resolves which schedule belongs to which backup.
        temporary (TemporaryRegistry): Backups that only live in memory.
        settings (ServerSettings): Application-wide settings.
        notifier (UpdateNotifier): Bumped after every committed change.
        data_folder (str): Where generated storage paths are placed.
        max_path_attempts (int): How many random storage paths to try.

    Methods:
        get_backup: Look up a persisted or temporary backup.
        backups: Every persisted backup.
        add_or_update_backup: Validate and store a backup with its schedule.
        delete_backup: Delete a backup and everything that hangs off it.
        update_backup_db_path: Point a backup at a different storage path.
        get_schedule: Look up a schedule.
        schedules: Every schedule.
        schedule_for_backup: The schedule linked to a backup, if any.
        add_or_update_schedule: Store a schedule.
        delete_schedule: Delete a schedule.
        is_unencrypted_or_passphrase_stored: Whether a backup can run unattended.
        get_global_settings / set_global_settings: Settings that apply to every backup.
        get_global_filters / set_global_filters: Filters that apply to every backup.
        fix_invalid_backup_id: Remove rows that were stored under the global id by mistake.
        register_temp_file / get_temp_files / delete_temp_file: Temp file bookkeeping.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        engine: UpsertEngine,
        tags: TagIndex,
        temporary: TemporaryRegistry,
        settings: ServerSettings,
        notifier: UpdateNotifier,
        data_folder: str,
        max_path_attempts: int = DEFAULT_MAX_PATH_ATTEMPTS,
    ):
        self.engine: UpsertEngine = engine
        self.tags: TagIndex = tags
        self.temporary: TemporaryRegistry = temporary
        self.settings: ServerSettings = settings
        self.notifier: UpdateNotifier = notifier
        self.data_folder: str = data_folder
        self.max_path_attempts: int = max_path_attempts

    @property
    def lock(self):
        """The lock shared by every store of the database."""
        return self.engine.lock

    ##################
    #  Child tables  #
    ##################

    def get_sources(self, backup_id: int) -> List[str]:
        """The source paths of a backup."""
        return self.engine.read_rows(SOURCE_SELECT, (backup_id,), lambda row: row[0])

    def get_settings(self, backup_id: int) -> List[Setting]:
        """The settings of a backup."""
        return self.engine.read_rows(
            OPTION_SELECT,
            (backup_id,),
            lambda row: Setting(filter=row[0] or "", name=row[1] or "", value=row[2] or ""),
        )

    def get_filters(self, backup_id: int) -> List[Filter]:
        """The filters of a backup, in evaluation order."""
        return self.engine.read_rows(
            FILTER_SELECT + ' ORDER BY "order"',
            (backup_id,),
            lambda row: Filter(order=row[0], include=row[1] == 1, expression=row[2] or ""),
        )

    def get_metadata(self, backup_id: int) -> Dict[str, str]:
        """The metadata of a backup."""
        return dict(self.engine.read_rows(METADATA_SELECT, (backup_id,), lambda row: (row[0], row[1])))

    def set_sources_in(self, transaction: Transaction, backup_id: int, sources: List[str]):
        """Replace the source paths of a backup inside the caller's transaction."""
        self.engine.overwrite_and_update_in(
            transaction, SOURCE_DELETE, (backup_id,), sources or [], SOURCE_INSERT, lambda path: (backup_id, path)
        )

    def set_settings_in(self, transaction: Transaction, backup_id: int, settings: List[Setting]):
        """
        Replace the settings of a backup inside the caller's transaction.

        Raises:
            PlaceholderPersistenceError: If a setting value is the password placeholder.
        """

        def setting_row(setting: Setting):
            if setting.value == PASSWORD_PLACEHOLDER:
                raise PlaceholderPersistenceError("Attempted to save a property with the placeholder password")
            return (backup_id, setting.filter or "", setting.name, setting.value or "")

        self.engine.overwrite_and_update_in(
            transaction, OPTION_DELETE, (backup_id,), settings or [], OPTION_INSERT, setting_row
        )

    def set_filters_in(self, transaction: Transaction, backup_id: int, filters: List[Filter]):
        """Replace the filters of a backup inside the caller's transaction."""
        self.engine.overwrite_and_update_in(
            transaction,
            FILTER_DELETE,
            (backup_id,),
            filters or [],
            FILTER_INSERT,
            lambda rule: (backup_id, rule.order, 1 if rule.include else 0, rule.expression or ""),
        )

    def set_metadata_in(self, transaction: Transaction, backup_id: int, metadata: Dict[str, str]):
        """Replace the metadata of a backup inside the caller's transaction."""
        self.engine.overwrite_and_update_in(
            transaction,
            METADATA_DELETE,
            (backup_id,),
            list((metadata or {}).items()),
            METADATA_INSERT,
            lambda item: (backup_id, item[0], item[1]),
        )

    ##################
    #  Global scope  #
    ##################

    def get_global_settings(self) -> List[Setting]:
        """Settings that apply to every backup."""
        return self.get_settings(ANY_BACKUP_ID)

    def set_global_settings(self, settings: List[Setting]):
        """Replace the settings that apply to every backup."""
        with self.lock:
            with self.engine.connection.begin() as transaction:
                self.set_settings_in(transaction, ANY_BACKUP_ID, settings)
        self.notifier.data_changed()

    def get_global_filters(self) -> List[Filter]:
        """Filters that apply to every backup."""
        return self.get_filters(ANY_BACKUP_ID)

    def set_global_filters(self, filters: List[Filter]):
        """Replace the filters that apply to every backup."""
        with self.lock:
            with self.engine.connection.begin() as transaction:
                self.set_filters_in(transaction, ANY_BACKUP_ID, filters)
        self.notifier.data_changed()

    ##################
    #    Backups     #
    ##################

    def _read_backup_row(self, backup_id: int) -> Optional[Backup]:
        rows = self.engine.read(BACKUP, '"id"=?', (backup_id,))
        return rows[0] if rows else None

    def get_backup(self, backup_id: Union[str, int]) -> Optional[Backup]:
        """
        Look up a backup by identity.

        A positive integer identity is read from the database together with
        every child collection. Zero and negative integers are reserved and never
        match. Anything else is treated as a temporary identity and only the
        in-memory registry is consulted.

        Args:
            backup_id: The identity to look up.

        Returns:
            The backup, or None if there is none with this identity.

        Raises:
            ValueError: If `backup_id` is None or blank.
        """
        if backup_id is None or not str(backup_id).strip():
            raise ValueError("A backup id is required.")

        backup_id = str(backup_id).strip()
        if not NUMERIC_ID_PATTERN.match(backup_id):
            return self.temporary.get(backup_id)

        numeric_id = int(backup_id)
        if numeric_id <= 0:
            return None
        with self.lock:
            backup = self._read_backup_row(numeric_id)
            if backup is None:
                return None
            backup.sources = self.get_sources(numeric_id)
            backup.settings = self.get_settings(numeric_id)
            backup.filters = self.get_filters(numeric_id)
            backup.metadata = self.get_metadata(numeric_id)
            return backup

    def backups(self) -> List[Backup]:
        """
        Every persisted backup, with metadata loaded.

        Sources, settings and filters are left empty; use `get_backup` for the
        full entity.

        Returns:
            The persisted backups.
        """
        with self.lock:
            backups = self.engine.read(BACKUP)
            for backup in backups:
                backup.metadata = self.get_metadata(backup.numeric_id)
            return backups

    def _generate_db_path(self) -> str:
        """
        Pick an unused storage path under the data folder.

        Raises:
            StoragePathExhaustedError: If every attempt produced an existing file.
        """
        ensure_directory_exists(self.data_folder)
        for _ in range(self.max_path_attempts):
            guess = os.path.join(self.data_folder, generate_random_name() + STORAGE_FILE_EXTENSION)
            if not os.path.exists(guess):
                return guess
        raise StoragePathExhaustedError("Unable to generate a unique database file name")

    def _write_backup_in(self, transaction: Transaction, backup: Backup):
        if PASSWORD_PLACEHOLDER in (backup.target_url or ""):
            raise PlaceholderPersistenceError("Attempted to save a backup with the password placeholder")

        if backup.id is None:
            self.engine.write_entities_in(transaction, BACKUP, [backup])
        else:
            if backup.numeric_id is None or backup.numeric_id <= 0:
                raise IntegrityViolationError(
                    "Invalid update, cannot update application settings through update method"
                )
            existing = self._read_backup_row(backup.numeric_id)
            if existing is None:
                raise BackupNotFoundError(f"Backup with id '{backup.id}' does not exist.")
            # The storage path only changes through update_backup_db_path
            backup.db_path = existing.db_path
            self.engine.write_entities_in(transaction, BACKUP, [backup], update_existing=True)

        if backup.numeric_id is None or backup.numeric_id <= 0:
            raise IntegrityViolationError("Invalid addition, cannot update application settings through update method")

    def _replace_schedule_in(self, transaction: Transaction, backup_id: int, schedule: Optional[Schedule]):
        tags = [id_tag(backup_id)]
        existing = self.tags.schedule_ids_for_tags(tags)

        if schedule is None:
            if existing:
                self.engine.delete_by_id_in(transaction, SCHEDULE.table, existing[0])
                LOG.debug(f"Removed schedule {existing[0]} from backup {backup_id}.")
            return

        target = schedule
        if existing:
            target = self.get_schedule(existing[0])
            target.update_fields(
                {"tags": schedule.tags, "time": schedule.time, "repeat": schedule.repeat, "rule": schedule.rule}
            )
        else:
            target.id = None

        target.tags = tags
        self._write_schedule_in(transaction, target)
        schedule.id = target.id
        schedule.tags = tags

    def add_or_update_backup(self, backup: Backup, schedule: Schedule = None) -> Optional[str]:
        """
        Validate and store a backup together with its schedule.

        A backup without an identity is inserted and receives its identity (and
        a generated storage path if it has none). A backup with an identity
        replaces the stored one. The child collections are always replaced as a
        whole. The linked schedule is merged into any existing one, or deleted
        when `schedule` is None. Everything is written in one transaction.

        A temporary backup is validated and then replaces its in-memory copy.

        Args:
            backup: The backup to store.
            schedule: The schedule to link to the backup, if any.

        Returns:
            None on success, otherwise the reason validation failed. Nothing is
            written when validation fails.

        Raises:
            IntegrityViolationError: If the write would break a store invariant.
            BackupNotFoundError: If an update names a backup that doesn't exist.
            StoragePathExhaustedError: If no storage path could be generated.
        """
        reason = validate_backup(backup, schedule)
        if reason:
            LOG.info(f"Backup '{backup.name}' was not stored: {reason}")
            return reason

        if backup.is_temporary:
            self.temporary.update(backup)
            return None

        with self.lock:
            original_id = backup.id
            if backup.id is None and backup.db_path is None:
                backup.db_path = self._generate_db_path()

            try:
                with self.engine.connection.begin() as transaction:
                    self._write_backup_in(transaction, backup)
                    backup_id = backup.numeric_id
                    self.set_sources_in(transaction, backup_id, backup.sources)
                    self.set_settings_in(transaction, backup_id, backup.settings)
                    self.set_filters_in(transaction, backup_id, backup.filters)
                    self.set_metadata_in(transaction, backup_id, backup.metadata)
                    self._replace_schedule_in(transaction, backup_id, schedule)
            except Exception:
                backup.id = original_id
                raise

        LOG.info(f"Stored backup '{backup.name}' with id {backup.id}.")
        self.notifier.data_changed()
        return None

    def update_backup_db_path(self, backup: Backup, path: str) -> bool:
        """
        Point a backup at a different storage path.

        Args:
            backup: The backup to change.
            path: The new storage path.

        Returns:
            True if the backup row was updated.
        """
        with self.lock:
            updated = self.engine.overwrite_and_update(
                None,
                (),
                [path],
                f'UPDATE {quote(BACKUP.table)} SET "db_path"=? WHERE "id"=?',
                lambda new_path: (new_path, backup.numeric_id),
            )
            backup.db_path = path
        self.notifier.data_changed()
        return updated == 1

    def delete_backup(self, backup: Union[Backup, str, int]):
        """
        Delete a backup and everything that belongs to it.

        In one transaction the linked schedule is removed, then every row keyed
        by the backup in the child tables, then the backup row itself. A
        temporary backup is unregistered instead. Negative identities are
        ignored.

        Args:
            backup: The backup, or its identity.

        Raises:
            IntegrityViolationError: If a delete by identity removed more than one row.
        """
        backup_id = backup.id if isinstance(backup, Backup) else backup
        if backup_id is None:
            return

        if not NUMERIC_ID_PATTERN.match(str(backup_id)):
            temporary = self.temporary.get(str(backup_id))
            if temporary is not None:
                self.temporary.unregister(temporary)
            return

        backup_id = int(backup_id)
        if backup_id < 0:
            return

        with self.lock:
            with self.engine.connection.begin() as transaction:
                existing = self.tags.schedule_ids_for_tags([id_tag(backup_id)])
                if existing:
                    self.engine.delete_by_id_in(transaction, SCHEDULE.table, existing[0])
                for table in BACKUP_DEPENDENT_TABLES:
                    self.engine.delete_by_id_in(transaction, table, backup_id, "backup_id")
                self.engine.delete_by_id_in(transaction, BACKUP.table, backup_id)

        LOG.info(f"Deleted backup {backup_id}.")
        self.notifier.data_changed()

    def is_unencrypted_or_passphrase_stored(self, backup_id: int) -> bool:
        """
        Whether a backup can run without asking for a passphrase.

        Args:
            backup_id: The backup to check.

        Returns:
            True if the backup has no encryption module or has a stored passphrase.
        """

        def option_is_set(name: str) -> bool:
            values = self.engine.read_rows(
                f'SELECT "value" != \'\' FROM {quote(OPTION_TABLE)} WHERE "backup_id"=? AND "name"=?',
                (backup_id, name),
                lambda row: row[0] == 1,
            )
            return bool(values) and values[0]

        with self.lock:
            if not option_is_set("encryption-module"):
                return True
            return option_is_set("passphrase")

    def fix_invalid_backup_id(self) -> bool:
        """
        Remove rows that older versions wrote under the global id by mistake.

        Options, metadata, filters and sources stored under the global id are
        deleted, as is any schedule tagged for it. The cleanup is recorded in
        the application settings and only ever runs once.

        Returns:
            True if the cleanup ran, False if it had already been done.
        """
        with self.lock:
            if self.settings.fixed_invalid_backup_id:
                return False
            with self.engine.connection.begin() as transaction:
                for table in (OPTION_TABLE, METADATA_TABLE, FILTER_TABLE, SOURCE_TABLE):
                    transaction.execute(f'DELETE FROM {quote(table)} WHERE "backup_id"=?', (ANY_BACKUP_ID,))
                transaction.execute(
                    f'DELETE FROM {quote(SCHEDULE.table)} WHERE "tags"=?', (id_tag(ANY_BACKUP_ID),)
                )
                self.settings.set_in(transaction, FIXED_INVALID_BACKUP_ID, "true")
        LOG.info("Removed rows stored under the global backup id.")
        return True

    ##################
    #   Schedules    #
    ##################

    def get_schedule(self, schedule_id: int) -> Optional[Schedule]:
        """
        Look up a schedule by identity.

        Args:
            schedule_id: The schedule identity.

        Returns:
            The schedule, or None.
        """
        rows = self.engine.read(SCHEDULE, '"id"=?', (schedule_id,))
        return rows[0] if rows else None

    def schedules(self) -> List[Schedule]:
        """Every stored schedule."""
        return self.engine.read(SCHEDULE)

    def schedule_for_backup(self, backup_id) -> Optional[Schedule]:
        """
        The schedule linked to a backup.

        Args:
            backup_id: The backup identity.

        Returns:
            The first schedule tagged for the backup, or None.
        """
        with self.lock:
            existing = self.tags.schedule_ids_for_tags([id_tag(backup_id)])
            return self.get_schedule(existing[0]) if existing else None

    def _write_schedule_in(self, transaction: Transaction, schedule: Schedule) -> int:
        if schedule.id is not None and schedule.id < 0:
            schedule.id = None
        update = schedule.id is not None
        return self.engine.write_entities_in(transaction, SCHEDULE, [schedule], update_existing=update)

    def add_or_update_schedule(self, schedule: Schedule):
        """
        Store a schedule on its own.

        Args:
            schedule: The schedule. One without an identity is inserted and
                receives its identity.

        Raises:
            ScheduleNotFoundError: If `schedule` has an identity that is not stored.
        """
        with self.lock:
            with self.engine.connection.begin() as transaction:
                if not self._write_schedule_in(transaction, schedule):
                    raise ScheduleNotFoundError(f"Schedule with id '{schedule.id}' does not exist.")
        self.notifier.data_changed()

    def delete_schedule(self, schedule: Union[Schedule, int]):
        """
        Delete a schedule. Negative identities are ignored.

        Args:
            schedule: The schedule, or its identity.
        """
        schedule_id = schedule.id if isinstance(schedule, Schedule) else schedule
        if schedule_id is None or schedule_id < 0:
            return
        self.engine.delete_by_id(SCHEDULE.table, schedule_id)
        self.notifier.data_changed()

    ##################
    #   Temp files   #
    ##################

    def register_temp_file(self, origin: str, path: str, expires: datetime) -> int:
        """
        Record a temporary file that must be removed once it expires.

        Args:
            origin: What created the file.
            path: Where the file lives.
            expires: When the file may be removed.

        Returns:
            The identity of the new record.
        """
        temp_file = TempFile(timestamp=utcnow(), origin=origin, path=path, expires=expires)
        self.engine.write_entities(TEMP_FILE, [temp_file])
        return temp_file.id

    def get_temp_files(self) -> List[TempFile]:
        """Every recorded temporary file."""
        return self.engine.read(TEMP_FILE)

    def delete_temp_file(self, temp_file_id: int) -> bool:
        """
        Forget a temporary file.

        Args:
            temp_file_id: The record to delete.

        Returns:
            True if the record existed.
        """
        return self.engine.delete_by_id(TEMP_FILE.table, temp_file_id)
