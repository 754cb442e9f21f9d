##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `export.py` module.
"""

import os
from typing import Dict

from backupdb import __version__
from backupdb.db_scripts.data_models import Backup
from backupdb.db_scripts.export import (
    DefaultSourceNameResolver,
    ExportBundle,
    SourceNameResolver,
    prepare_backup_for_export,
)
from tests.fixture_types import FixtureBackup, FixtureSchedule


class UpperCaseResolver(SourceNameResolver):
    """Names every source in capitals."""

    def get_source_names(self, backup: Backup) -> Dict[str, str]:
        return {source: source.upper() for source in backup.sources}


def test_default_resolver():
    """Test that special folders get readable names and paths are left alone."""
    backup = Backup(sources=["%MY_DOCUMENTS%", "/srv/data"])
    assert DefaultSourceNameResolver().get_source_names(backup) == {
        "%MY_DOCUMENTS%": "My Documents",
        "/srv/data": "/srv/data",
    }


def test_prepare_backup_for_export(data_models_backup: FixtureBackup, data_models_schedule: FixtureSchedule):
    """
    Test that a bundle carries the backup, its schedule, the version and the display names.

    Args:
        data_models_backup: A valid, unsaved backup.
        data_models_schedule: A daily schedule.
    """
    bundle = prepare_backup_for_export(data_models_backup, data_models_schedule)
    assert bundle.created_by_version == __version__
    assert bundle.backup is data_models_backup
    assert bundle.schedule is data_models_schedule
    assert bundle.display_names == {source: source for source in data_models_backup.sources}


def test_custom_resolver(data_models_backup: FixtureBackup):
    """
    Test that a caller-supplied resolver names the sources.

    Args:
        data_models_backup: A valid, unsaved backup.
    """
    bundle = prepare_backup_for_export(data_models_backup, None, UpperCaseResolver())
    assert bundle.schedule is None
    assert bundle.display_names["/home/user/Documents"] == "/HOME/USER/DOCUMENTS"


def test_bundle_json_file_round_trip(
    data_models_backup: FixtureBackup, data_models_schedule: FixtureSchedule, tmp_path
):
    """
    Test that a bundle written to disk reads back with nested models intact.

    Args:
        data_models_backup: A valid, unsaved backup.
        data_models_schedule: A daily schedule.
        tmp_path: PyTest tmp_path fixture.
    """
    filepath = os.path.join(str(tmp_path), "export.json")
    bundle = prepare_backup_for_export(data_models_backup, data_models_schedule)
    bundle.dump_to_json_file(filepath)

    restored = ExportBundle.load_from_json_file(filepath)
    assert restored == bundle
    assert isinstance(restored.backup, Backup)
