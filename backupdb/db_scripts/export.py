##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Bundling a backup for configuration transfer.

An export bundle carries the backup, the schedule linked to it (if any) and a
mapping from each source path to the name shown for it. Display names come from
a `SourceNameResolver` so that platform-specific folder naming stays outside
the store.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from backupdb import __version__
from backupdb.db_scripts.data_models import Backup, BaseDataModel, Schedule


LOG = logging.getLogger(__name__)

SPECIAL_FOLDER_PATTERN = re.compile(r"^%([A-Z0-9_]+)%$")


class SourceNameResolver(ABC):
    """
    Turns source paths into the names shown to an operator.

    Methods:
        get_source_names: Map the sources of a backup to display names.
    """

    @abstractmethod
    def get_source_names(self, backup: Backup) -> Dict[str, str]:
        """
        Map the sources of a backup to display names.

        Args:
            backup: The backup whose sources are named.

        Returns:
            Display names keyed by source path.
        """
        raise NotImplementedError("Subclasses of `SourceNameResolver` must implement a `get_source_names` method.")


class DefaultSourceNameResolver(SourceNameResolver):
    """
    Name special folders like `%MY_DOCUMENTS%` as `My Documents` and leave
    every other path as it is.
    """

    def get_source_names(self, backup: Backup) -> Dict[str, str]:
        names = {}
        for source in backup.sources or []:
            match = SPECIAL_FOLDER_PATTERN.match(source)
            names[source] = match.group(1).replace("_", " ").title() if match else source
        return names


@dataclass
class ExportBundle(BaseDataModel):
    """
    Everything needed to recreate a backup elsewhere.

    Attributes:
        created_by_version (str): The backupdb version that made the bundle.
        backup (Backup): The backup, with its child collections.
        schedule (Optional[Schedule]): The schedule linked to the backup.
        display_names (Dict[str, str]): Display names keyed by source path.
    """

    created_by_version: str = __version__
    backup: Backup = None
    schedule: Optional[Schedule] = None
    display_names: Dict[str, str] = field(default_factory=dict)

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return ["schedule", "display_names"]


def prepare_backup_for_export(
    backup: Backup, schedule: Optional[Schedule], resolver: SourceNameResolver = None
) -> ExportBundle:
    """
    Bundle a backup for configuration transfer.

    Args:
        backup: The backup to export.
        schedule: The schedule linked to the backup, if any.
        resolver: Names the sources. Defaults to `DefaultSourceNameResolver`.

    Returns:
        The export bundle.
    """
    resolver = resolver or DefaultSourceNameResolver()
    LOG.debug(f"Preparing backup '{backup.id}' for export.")
    return ExportBundle(
        created_by_version=__version__,
        backup=backup,
        schedule=schedule,
        display_names=resolver.get_source_names(backup),
    )
