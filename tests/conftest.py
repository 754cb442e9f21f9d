##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module contains pytest fixtures to be used throughout the entire test suite.
"""
import logging
import os
from glob import glob

import pytest

from tests.fixture_types import FixtureModification


# pylint: disable=redefined-outer-name


#######################################
# Loading in Module Specific Fixtures #
#######################################

fixture_glob = os.path.join("tests", "fixtures", "**", "*.py")
pytest_plugins = [
    fixture_file.replace(os.sep, ".").replace(".py", "")
    for fixture_file in glob(fixture_glob, recursive=True)
    if not fixture_file.endswith("__init__.py")
]


#######################################
######### Fixture Definitions #########
#######################################


@pytest.fixture(autouse=True)
def clean_backupdb_env(monkeypatch: pytest.MonkeyPatch) -> FixtureModification:
    """
    Remove the environment overrides so a developer's shell can't leak into
    configuration tests.

    Args:
        monkeypatch: PyTest monkeypatch fixture.
    """
    monkeypatch.delenv("BACKUPDB_DB_PATH", raising=False)
    monkeypatch.delenv("BACKUPDB_DATA_FOLDER", raising=False)


@pytest.fixture
def debug_logging(caplog: pytest.LogCaptureFixture) -> FixtureModification:
    """
    Capture backupdb log records down to DEBUG level.

    Args:
        caplog: PyTest caplog fixture.
    """
    caplog.set_level(logging.DEBUG, logger="backupdb")
