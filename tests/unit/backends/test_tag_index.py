##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `tag_index.py` module.
"""

from typing import List

import pytest

from backupdb.backends.sqlite.schema import BACKUP, SCHEDULE
from backupdb.backends.tag_index import TagIndex, escape_like, id_tag
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.db_scripts.data_models import Backup, Schedule


# pylint: disable=redefined-outer-name


@pytest.fixture
def tag_index(sqlite_engine: UpsertEngine) -> TagIndex:
    """
    A tag index over an in-memory database.

    Args:
        sqlite_engine: An engine over an in-memory database.

    Returns:
        The tag index.
    """
    return TagIndex(sqlite_engine)


def store_backup(engine: UpsertEngine, tags: List[str]) -> int:
    """Insert a backup with `tags` and return its identity."""
    backup = Backup(name="b", target_url="file:///b", tags=tags)
    engine.write_entities(BACKUP, [backup])
    return int(backup.id)


def store_schedule(engine: UpsertEngine, tags: List[str]) -> int:
    """Insert a schedule with `tags` and return its identity."""
    schedule = Schedule(repeat="1D", tags=tags)
    engine.write_entities(SCHEDULE, [schedule])
    return schedule.id


def test_id_tag():
    """Test that the link tag is built from the backup identity."""
    assert id_tag(4) == "ID=4"
    assert id_tag("12") == "ID=12"


def test_escape_like():
    """Test that LIKE wildcards and the escape character are escaped."""
    assert escape_like("a%b_c\\d") == "a\\%b\\_c\\\\d"
    assert escape_like("plain") == "plain"


class TestTagIndex:
    """Tests for the `TagIndex` class."""

    def test_matches_whole_tags_only(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that a tag doesn't match other tags that merely contain it.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        exact = store_backup(sqlite_engine, ["5"])
        store_backup(sqlite_engine, ["15", "25"])
        store_backup(sqlite_engine, ["50"])

        assert tag_index.backup_ids_for_tags(["5"]) == [exact]

    def test_matches_first_middle_and_last_position(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that a tag is found wherever it sits in the list.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        first = store_backup(sqlite_engine, ["x", "a", "b"])
        middle = store_backup(sqlite_engine, ["a", "x", "b"])
        last = store_backup(sqlite_engine, ["a", "b", "x"])
        store_backup(sqlite_engine, ["a", "b"])

        assert sorted(tag_index.backup_ids_for_tags(["x"])) == [first, middle, last]

    def test_tags_are_ored(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that a row matching any of the tags is returned once.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        both = store_backup(sqlite_engine, ["red", "blue"])
        red = store_backup(sqlite_engine, ["red"])
        store_backup(sqlite_engine, ["green"])

        assert sorted(tag_index.backup_ids_for_tags(["red", "blue"])) == [both, red]

    def test_wildcards_are_literal(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that `%` and `_` in a tag only match themselves.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        literal = store_backup(sqlite_engine, ["a_c"])
        store_backup(sqlite_engine, ["abc"])
        store_backup(sqlite_engine, ["anything"])

        assert tag_index.backup_ids_for_tags(["a_c"]) == [literal]
        assert tag_index.backup_ids_for_tags(["%"]) == []

    def test_ascii_case_is_ignored(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that tags match regardless of ASCII letter case but still as whole tags.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        production = store_backup(sqlite_engine, ["PROD", "nightly"])
        store_backup(sqlite_engine, ["preprod"])

        assert tag_index.backup_ids_for_tags(["prod"]) == [production]
        assert tag_index.backup_ids_for_tags(["Nightly"]) == [production]
        assert tag_index.schedule_ids_for_tags(["prod"]) == []

    @pytest.mark.parametrize("tags", [[], None])
    def test_empty_tags_match_nothing(self, sqlite_engine: UpsertEngine, tag_index: TagIndex, tags: List[str]):
        """
        Test that no tags means no matches.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
            tags: The empty tag list.
        """
        store_backup(sqlite_engine, ["a"])
        assert tag_index.backup_ids_for_tags(tags) == []
        assert tag_index.schedule_ids_for_tags(tags) == []

    def test_single_id_tag_short_circuits_for_backups(self, tag_index: TagIndex):
        """
        Test that a single `ID=<n>` tag resolves to `[n]` without a stored row.

        Args:
            tag_index: The tag index.
        """
        assert tag_index.backup_ids_for_tags(["ID=17"]) == [17]

    def test_malformed_id_tag_is_searched(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that an `ID=` tag that isn't a number is treated as a normal tag.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        tagged = store_backup(sqlite_engine, ["ID=abc"])
        assert tag_index.backup_ids_for_tags(["ID=abc"]) == [tagged]

    def test_schedules_are_searched_by_id_tag(self, sqlite_engine: UpsertEngine, tag_index: TagIndex):
        """
        Test that schedule lookups by `ID=<n>` scan the schedule table.

        Args:
            sqlite_engine: An engine over an in-memory database.
            tag_index: The tag index.
        """
        linked = store_schedule(sqlite_engine, ["ID=1"])
        store_schedule(sqlite_engine, ["ID=11"])

        assert tag_index.schedule_ids_for_tags([id_tag(1)]) == [linked]
        assert tag_index.schedule_ids_for_tags([id_tag(2)]) == []
