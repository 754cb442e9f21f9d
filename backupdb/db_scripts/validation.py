##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Validation of backups before they are written.

Validation never raises. `validate_backup` returns the first failing reason as
a human-readable string, or None when the backup may be stored.
"""

import logging
from datetime import timedelta
from typing import Callable, Dict, Optional

from backupdb.db_scripts.data_models import PASSWORD_PLACEHOLDER, Backup, Schedule
from backupdb.utils import parse_bool, parse_size, parse_timespan


LOG = logging.getLogger(__name__)

MIN_RETENTION = timedelta(minutes=5)
MIN_SCHEDULE_REPEAT = timedelta(minutes=5)
MIN_DBLOCK_SIZE = 1024 * 1024
MIN_BLOCKSIZE = 1024
MAX_BLOCKSIZE = 2**31 - 1

MISSING_NAME = "Missing a name"
MISSING_TARGET = "Missing a target"
INVALID_SOURCES = "Invalid source list"
KEEP_VERSIONS_NOT_POSITIVE = "Retention value must be a positive integer"
KEEP_TIME_TOO_SHORT = "Retention value must be more than 5 minutes"
KEEP_TIME_INVALID = "Retention value must be a valid timespan"
DBLOCK_TOO_SMALL = "DBlock size must be at least 1MB"
DBLOCK_INVALID = "DBlock value must be a valid size string"
BLOCKSIZE_OUT_OF_RANGE = "The blocksize must be at least 1KB"
BLOCKSIZE_INVALID = "The blocksize value must be a valid size string"
PREFIX_HAS_HYPHEN = "The prefix cannot contain hyphens (-)"
MISSING_PASSPHRASE = "Missing passphrase"
SCHEDULE_TOO_FREQUENT = "Schedule repetition time must be more than 5 minutes"
SCHEDULE_INVALID = "Schedule repetition value must be a valid timespan"
PLACEHOLDER_STORED = "The password placeholder cannot be stored as a setting or target"


def _check_keep_versions(value: str) -> Optional[str]:
    try:
        versions = int(str(value).strip())
    except (TypeError, ValueError):
        return KEEP_VERSIONS_NOT_POSITIVE
    return KEEP_VERSIONS_NOT_POSITIVE if versions <= 0 else None


def _check_keep_time(value: str) -> Optional[str]:
    try:
        span = parse_timespan(value)
    except ValueError:
        return KEEP_TIME_INVALID
    return KEEP_TIME_TOO_SHORT if span <= MIN_RETENTION else None


def _check_dblock_size(value: str) -> Optional[str]:
    try:
        size = parse_size(value)
    except ValueError:
        return DBLOCK_INVALID
    return DBLOCK_TOO_SMALL if size < MIN_DBLOCK_SIZE else None


def _check_blocksize(value: str) -> Optional[str]:
    try:
        size = parse_size(value)
    except ValueError:
        return BLOCKSIZE_INVALID
    return BLOCKSIZE_OUT_OF_RANGE if size < MIN_BLOCKSIZE or size > MAX_BLOCKSIZE else None


def _check_prefix(value: str) -> Optional[str]:
    if value and value.strip() and "-" in value:
        return PREFIX_HAS_HYPHEN
    return None


# Setting checks keyed by lower-cased setting name
SETTING_CHECKS: Dict[str, Callable[[str], Optional[str]]] = {
    "keep-versions": _check_keep_versions,
    "keep-time": _check_keep_time,
    "dblock-size": _check_dblock_size,
    "--blocksize": _check_blocksize,
    "--prefix": _check_prefix,
}


def validate_schedule(schedule: Schedule) -> Optional[str]:
    """
    Check that a schedule repeats at a sane interval.

    Args:
        schedule: The schedule to check.

    Returns:
        The failure reason, or None.
    """
    try:
        repeat = parse_timespan(schedule.repeat)
    except ValueError:
        return SCHEDULE_INVALID
    if repeat <= MIN_SCHEDULE_REPEAT:
        return SCHEDULE_TOO_FREQUENT
    return None


def validate_backup(backup: Backup, schedule: Schedule = None) -> Optional[str]:
    """
    Check a backup (and the schedule to be stored with it) before any write.

    The checks run in a fixed order and the first failure wins:

    1. a name and a target are required
    2. the source list must be non-empty with no blank entries
    3. neither the target nor any setting value may be the password placeholder
    4. per-setting checks for `keep-versions`, `keep-time`, `dblock-size`,
       `--blocksize` and `--prefix`
    5. encryption needs a passphrase unless `--no-encryption` is set or
       `--gpg-encryption-command` is `--encrypt`
    6. the schedule, if given, must repeat less often than every 5 minutes

    Setting names are compared case-insensitively.

    Args:
        backup: The backup to check.
        schedule: The schedule that will be stored with it, if any.

    Returns:
        The failure reason, or None when the backup is valid.
    """
    if not backup.name or not backup.name.strip():
        return MISSING_NAME

    if not backup.target_url or not backup.target_url.strip():
        return MISSING_TARGET

    if not backup.sources or any(not source or not source.strip() for source in backup.sources):
        return INVALID_SOURCES

    if PASSWORD_PLACEHOLDER in backup.target_url:
        return PLACEHOLDER_STORED

    encryption_disabled = False
    passphrase = ""
    asymmetric_encryption = False

    for setting in backup.settings or []:
        name = (setting.name or "").lower()
        value = setting.value

        if value == PASSWORD_PLACEHOLDER:
            return PLACEHOLDER_STORED

        if name == "--no-encryption":
            encryption_disabled = not value or not value.strip() or parse_bool(value, False)
        elif name == "passphrase":
            passphrase = value
        elif name == "--gpg-encryption-command":
            asymmetric_encryption = (value or "").lower() == "--encrypt"
        elif name in SETTING_CHECKS:
            reason = SETTING_CHECKS[name](value)
            if reason:
                LOG.debug(f"Setting '{setting.name}={value}' rejected: {reason}")
                return reason

    if not encryption_disabled and not asymmetric_encryption and (not passphrase or not passphrase.strip()):
        return MISSING_PASSPHRASE

    if schedule is not None:
        return validate_schedule(schedule)

    return None
