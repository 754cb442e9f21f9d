##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
In-memory registry of backups that have not been persisted.

A temporary backup is keyed by a generated UUID and is never written to the
database, so persisted-table queries cannot see it. It stays registered until
it is explicitly unregistered.
"""

import logging
import uuid
from typing import Dict, List, Optional

from backupdb.common.serializing_lock import SerializingLock, serialized
from backupdb.db_scripts.data_models import Backup


LOG = logging.getLogger(__name__)


class TemporaryRegistry:
    """
    Overlay of not-yet-persisted backups, guarded by the store lock.

    Attributes:
        lock (SerializingLock): The lock shared with every other store.

    Methods:
        register: Give a new backup a temporary identity and hold it in memory.
        unregister: Forget a temporary backup.
        update: Replace the held copy of an already registered backup.
        get: Look up a temporary backup by identity.
        all: Every registered temporary backup.
    """

    def __init__(self, lock: SerializingLock):
        self.lock: SerializingLock = lock
        self._backups: Dict[str, Backup] = {}

    @serialized
    def register(self, backup: Backup) -> str:
        """
        Give a new backup a temporary identity and hold it in memory.

        Args:
            backup: A backup that has no identity yet.

        Returns:
            The generated identity, which is also set on `backup`.

        Raises:
            ValueError: If `backup` is None or already has an identity.
        """
        if backup is None:
            raise ValueError("A backup is required to register a temporary backup.")
        if backup.id is not None:
            raise ValueError("Backup is already active, cannot make temporary")

        backup.id = str(uuid.uuid4())
        self._backups[backup.id] = backup
        LOG.debug(f"Registered temporary backup '{backup.id}'.")
        return backup.id

    @serialized
    def unregister(self, backup: Backup) -> bool:
        """
        Forget a temporary backup.

        Args:
            backup: The backup to forget.

        Returns:
            True if the backup was registered.
        """
        removed = self._backups.pop(backup.id, None) is not None
        if removed:
            LOG.debug(f"Unregistered temporary backup '{backup.id}'.")
        return removed

    @serialized
    def update(self, backup: Backup) -> bool:
        """
        Replace the held copy of a backup that is already registered.

        Args:
            backup: The new copy, carrying the temporary identity.

        Returns:
            True if a registered backup was replaced, False if none was registered.
        """
        if backup.id not in self._backups:
            return False
        self._backups[backup.id] = backup
        return True

    @serialized
    def get(self, backup_id: str) -> Optional[Backup]:
        """
        Look up a temporary backup.

        Args:
            backup_id: The temporary identity.

        Returns:
            The registered backup, or None.
        """
        if not backup_id:
            return None
        return self._backups.get(backup_id)

    @serialized
    def all(self) -> List[Backup]:
        """Every registered temporary backup."""
        return list(self._backups.values())

    def __contains__(self, backup_id: str) -> bool:
        return self.get(backup_id) is not None

    def __len__(self) -> int:
        with self.lock:
            return len(self._backups)
