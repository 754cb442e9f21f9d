##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Tests for the `utils.py` module.
"""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from backupdb.utils import (
    UNSET_TIMESTAMP,
    ensure_directory_exists,
    from_epoch_seconds,
    generate_random_name,
    get_yaml_var,
    load_yaml,
    nested_dict_to_namespaces,
    nested_namespace_to_dicts,
    parse_bool,
    parse_size,
    parse_timespan,
    to_epoch_seconds,
    utcnow,
)


class TestParseBool:
    """Tests for `parse_bool`."""

    @pytest.mark.parametrize("value", ["1", "on", "TRUE", " yes "])
    def test_truthy_strings(self, value: str):
        """
        Test that the truthy spellings parse as True.

        Args:
            value: The text to parse.
        """
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "off", "False", "no"])
    def test_falsy_strings(self, value: str):
        """
        Test that the falsy spellings parse as False even with a True default.

        Args:
            value: The text to parse.
        """
        assert parse_bool(value, default=True) is False

    def test_unknown_text_uses_default(self):
        """Test that text that is neither truthy nor falsy returns the default."""
        assert parse_bool("maybe", default=True) is True
        assert parse_bool(None) is False


class TestParseTimespan:
    """Tests for `parse_timespan`."""

    @pytest.mark.parametrize(
        "timestr, expected",
        [
            ("1D", timedelta(days=1)),
            ("2W", timedelta(weeks=2)),
            ("1h30m", timedelta(hours=1, minutes=30)),
            ("3M", timedelta(days=90)),
            ("1Y", timedelta(days=365)),
            ("90", timedelta(seconds=90)),
            ("2d", timedelta(days=2)),
        ],
    )
    def test_valid_timespans(self, timestr: str, expected: timedelta):
        """
        Test that unit tokens and bare seconds are parsed.

        Args:
            timestr: The timespan text.
            expected: The parsed duration.
        """
        assert parse_timespan(timestr) == expected

    @pytest.mark.parametrize("timestr", ["", "forever", "1D junk", None])
    def test_invalid_timespans(self, timestr: str):
        """
        Test that anything but unit tokens raises.

        Args:
            timestr: The timespan text.
        """
        with pytest.raises(ValueError):
            parse_timespan(timestr)


class TestParseSize:
    """Tests for `parse_size`."""

    @pytest.mark.parametrize(
        "size, expected",
        [("1KB", 1024), ("50mb", 50 * 1024**2), ("2 GB", 2 * 1024**3), ("512", 512), ("1.5k", 1536)],
    )
    def test_valid_sizes(self, size: str, expected: int):
        """
        Test that suffixes are binary and case-insensitive.

        Args:
            size: The size text.
            expected: The size in bytes.
        """
        assert parse_size(size) == expected

    @pytest.mark.parametrize("size", ["big", "10 parsecs", "", None])
    def test_invalid_sizes(self, size: str):
        """
        Test that unknown suffixes and non-numbers raise.

        Args:
            size: The size text.
        """
        with pytest.raises(ValueError):
            parse_size(size)


class TestEpochSeconds:
    """Tests for the timestamp conversions."""

    def test_round_trip_whole_seconds(self):
        """Test that an aware datetime survives conversion to epoch seconds and back."""
        moment = datetime(2024, 5, 17, 12, 30, 15, tzinfo=timezone.utc)
        assert from_epoch_seconds(to_epoch_seconds(moment)) == moment

    def test_naive_datetime_is_utc(self):
        """Test that naive datetimes are read as UTC."""
        assert to_epoch_seconds(datetime(1970, 1, 2)) == 86400

    def test_unset_maps_to_zero(self):
        """Test that None and the unset instant are stored as 0 and 0 reads back as unset."""
        assert to_epoch_seconds(None) == 0
        assert to_epoch_seconds(UNSET_TIMESTAMP) == 0
        assert from_epoch_seconds(0) == UNSET_TIMESTAMP
        assert from_epoch_seconds(None) == UNSET_TIMESTAMP

    def test_utcnow_is_aware_and_truncated(self):
        """Test that `utcnow` is timezone-aware with no microseconds."""
        now = utcnow()
        assert now.tzinfo is not None
        assert now.microsecond == 0


def test_generate_random_name():
    """Test that random names have the requested length and only use upper-case letters."""
    name = generate_random_name(20)
    assert len(name) == 20
    assert name.isalpha() and name.isupper()


def test_ensure_directory_exists(tmp_path):
    """
    Test that a missing directory is created once.

    Args:
        tmp_path: PyTest tmp_path fixture.
    """
    target = os.path.join(str(tmp_path), "a", "b")
    assert ensure_directory_exists(target) is True
    assert os.path.isdir(target)
    assert ensure_directory_exists(target) is False


def test_load_yaml(tmp_path):
    """
    Test that a YAML file is read into a dictionary.

    Args:
        tmp_path: PyTest tmp_path fixture.
    """
    yaml_file = tmp_path / "app.yaml"
    yaml_file.write_text("database:\n  path: /tmp/db.sqlite\n")
    assert load_yaml(str(yaml_file)) == {"database": {"path": "/tmp/db.sqlite"}}


def test_namespace_round_trip():
    """Test that nested dictionaries convert to namespaces and back."""
    namespaces = nested_dict_to_namespaces({"storage": {"data_folder": "/data", "limits": {"attempts": 3}}})
    assert namespaces.storage.limits.attempts == 3
    assert nested_namespace_to_dicts(namespaces) == {"storage": {"data_folder": "/data", "limits": {"attempts": 3}}}


def test_get_yaml_var():
    """Test that values are found in dictionaries and namespaces, with a fallback default."""
    assert get_yaml_var({"path": "x"}, "path", "default") == "x"
    assert get_yaml_var(SimpleNamespace(path="y"), "path", "default") == "y"
    assert get_yaml_var(SimpleNamespace(), "path", "default") == "default"
    assert get_yaml_var(None, "path", "default") == "default"
