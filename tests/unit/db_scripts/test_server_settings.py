##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `server_settings.py` module.
"""

import pytest

from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.db_scripts.server_settings import UNACKED_ERROR, ServerSettings


class TestServerSettings:
    """Tests for the `ServerSettings` class."""

    @pytest.fixture
    def settings(self, sqlite_engine: UpsertEngine) -> ServerSettings:
        """
        Server settings over an in-memory database.

        Args:
            sqlite_engine: An engine over an in-memory database.

        Returns:
            The settings store.
        """
        return ServerSettings(sqlite_engine)

    def test_set_and_get(self, settings: ServerSettings):
        """
        Test that setting a value twice keeps only the latest value.

        Args:
            settings: The settings store.
        """
        settings.set("server-port-changed", "1")
        settings.set("server-port-changed", "2")
        assert settings.get("server-port-changed") == "2"
        assert settings.get_all() == {"server-port-changed": "2"}

    def test_none_removes(self, settings: ServerSettings):
        """
        Test that setting None deletes the setting.

        Args:
            settings: The settings store.
        """
        settings.set("startup-delay", "5m")
        settings.set("startup-delay", None)
        assert settings.get("startup-delay", "unset") == "unset"

    def test_flags_default_to_false(self, settings: ServerSettings):
        """
        Test that unset flags read as False.

        Args:
            settings: The settings store.
        """
        assert settings.unacked_error is False
        assert settings.unacked_warning is False
        assert settings.fixed_invalid_backup_id is False

    def test_flags_round_trip(self, settings: ServerSettings):
        """
        Test that flags are stored as text and read back as booleans.

        Args:
            settings: The settings store.
        """
        settings.unacked_error = True
        settings.unacked_warning = True
        assert settings.get(UNACKED_ERROR) == "true"
        assert settings.unacked_error is True

        settings.unacked_error = False
        assert settings.unacked_error is False
        assert settings.unacked_warning is True

    def test_set_in_joins_caller_transaction(self, sqlite_engine: UpsertEngine, settings: ServerSettings):
        """
        Test that a setting written inside a rolled back transaction is discarded.

        Args:
            sqlite_engine: An engine over an in-memory database.
            settings: The settings store.
        """
        with pytest.raises(RuntimeError):
            with sqlite_engine.connection.begin() as transaction:
                settings.set_in(transaction, "abandoned", "yes")
                raise RuntimeError("abort")
        assert settings.get("abandoned") is None
