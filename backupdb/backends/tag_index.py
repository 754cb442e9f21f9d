##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Exact-membership lookups over comma-joined tag columns.

Stored tags are wrapped as `,<tags>,` and tested for containment of `,<tag>,`,
so a query for `5` never matches a row tagged `15,25`. The test uses SQLite
`LIKE`, which ignores case for ASCII letters: a query for `prod` matches a row
tagged `PROD`.
"""

import logging
from typing import Iterable, List, Optional

from backupdb.backends.entity_mapper import ID_COLUMN, EntityDescriptor
from backupdb.backends.sqlite.schema import BACKUP, SCHEDULE, quote
from backupdb.backends.upsert_engine import UpsertEngine


LOG = logging.getLogger(__name__)

ID_TAG_PREFIX = "ID="
LIKE_ESCAPE = "\\"
TAG_COLUMN = "tags"


def id_tag(backup_id) -> str:
    """
    Build the tag that links a schedule to a backup.

    Args:
        backup_id: The backup identity.

    Returns:
        The tag, e.g. `ID=4`.
    """
    return f"{ID_TAG_PREFIX}{backup_id}"


def escape_like(value: str) -> str:
    """
    Escape the LIKE wildcards in a tag so it only matches itself.

    Args:
        value: The raw tag.

    Returns:
        The tag with `%`, `_` and the escape character escaped.
    """
    return value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


def _parse_id_tag(tag: str) -> Optional[int]:
    if not tag.startswith(ID_TAG_PREFIX):
        return None
    try:
        return int(tag[len(ID_TAG_PREFIX) :])
    except ValueError:
        return None


class TagIndex:
    """
    Tag lookups for backups and schedules.

    Attributes:
        engine (UpsertEngine): Runs the lookup queries under the store lock.

    Methods:
        backup_ids_for_tags: Identities of backups carrying any of the tags.
        schedule_ids_for_tags: Identities of schedules carrying any of the tags.
        ids_for_tags: Identities of rows in any tagged table carrying any of the tags.
    """

    def __init__(self, engine: UpsertEngine):
        self.engine: UpsertEngine = engine

    def ids_for_tags(self, descriptor: EntityDescriptor, tags: Iterable[str]) -> List[int]:
        """
        Find rows whose tag column contains any of `tags` as a whole tag.

        Args:
            descriptor: The descriptor of a table with a `tags` column.
            tags: The tags to look for, OR'ed together.

        Returns:
            The matching identities. Empty when `tags` is empty or None.
        """
        tags = [tag for tag in (tags or []) if tag is not None]
        if not tags:
            return []

        predicate = f"(',' || {quote(TAG_COLUMN)} || ',' LIKE '%,' || ? || ',%' ESCAPE '{LIKE_ESCAPE}')"
        where = " OR ".join(predicate for _ in tags)
        sql = f"SELECT {quote(ID_COLUMN)} FROM {quote(descriptor.table)} WHERE {where}"
        return self.engine.read_rows(sql, [escape_like(tag) for tag in tags], lambda row: int(row[0]))

    def backup_ids_for_tags(self, tags: Iterable[str]) -> List[int]:
        """
        Identities of backups carrying any of the tags.

        A single `ID=<n>` tag resolves straight to `[n]` without touching the
        table.

        Args:
            tags: The tags to look for.

        Returns:
            The matching backup identities.
        """
        tags = list(tags or [])
        if len(tags) == 1:
            backup_id = _parse_id_tag(tags[0])
            if backup_id is not None:
                return [backup_id]
        return self.ids_for_tags(BACKUP, tags)

    def schedule_ids_for_tags(self, tags: Iterable[str]) -> List[int]:
        """
        Identities of schedules carrying any of the tags.

        Args:
            tags: The tags to look for.

        Returns:
            The matching schedule identities.
        """
        return self.ids_for_tags(SCHEDULE, tags)
