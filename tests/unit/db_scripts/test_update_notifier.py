##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `update_notifier.py` module.
"""

import pytest
from pytest_mock import MockerFixture

from backupdb.db_scripts.backup_db import BackupDatabase
from backupdb.db_scripts.update_notifier import UpdateNotifier
from tests.fixture_types import FixtureBackup, FixtureStr


def test_counters_are_independent(mocker: MockerFixture):
    """
    Test that each change kind bumps its own counter and every change signals.

    Args:
        mocker: PyTest mocker fixture.
    """
    sink = mocker.MagicMock()
    notifier = UpdateNotifier(sink)

    assert notifier.data_changed() == 1
    assert notifier.data_changed() == 2
    assert notifier.notifications_changed() == 1

    assert notifier.last_data_update_id == 2
    assert notifier.last_notification_update_id == 1
    assert sink.call_count == 3


def test_signal_without_sink():
    """Test that changes without a sink only bump the counters."""
    notifier = UpdateNotifier()
    notifier.signal()
    assert notifier.data_changed() == 1


def test_failing_sink_is_logged(mocker: MockerFixture, caplog: pytest.LogCaptureFixture):
    """
    Test that a sink that raises does not fail the change that triggered it.

    Args:
        mocker: PyTest mocker fixture.
        caplog: PyTest caplog fixture.
    """
    sink = mocker.MagicMock(side_effect=ConnectionError("transport down"))
    notifier = UpdateNotifier(sink)

    assert notifier.data_changed() == 1
    assert notifier.notifications_changed() == 1
    assert sink.call_count == 2
    assert "The change signal sink failed." in caplog.text
    assert "transport down" in caplog.text


def test_failing_sink_keeps_committed_backup(
    mocker: MockerFixture,
    backup_db_path: FixtureStr,
    backup_db_data_folder: FixtureStr,
    data_models_backup: FixtureBackup,
):
    """
    Test that storing and deleting a backup succeed even when the change signal fails.

    Args:
        mocker: PyTest mocker fixture.
        backup_db_path: Path of the SQLite file.
        backup_db_data_folder: Folder for generated storage paths.
        data_models_backup: A valid, unsaved backup.
    """
    sink = mocker.MagicMock(side_effect=ConnectionError("transport down"))
    with BackupDatabase(backup_db_path, backup_db_data_folder, signal=sink) as database:
        assert database.entities.add_or_update_backup(data_models_backup) is None
        assert data_models_backup.id == "1"
        assert database.entities.get_backup("1").name == data_models_backup.name

        database.entities.delete_backup("1")
        assert database.entities.get_backup("1") is None
    assert sink.call_count == 2
