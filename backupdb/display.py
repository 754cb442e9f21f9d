##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Manages formatting for displaying information to the console.
"""
import logging
from datetime import datetime
from typing import List, Optional

from tabulate import tabulate

from backupdb.config import CONFIG_SECTIONS, Config
from backupdb.db_scripts.data_models import Backup, Notification, Schedule
from backupdb.utils import UNSET_TIMESTAMP


LOG = logging.getLogger(__name__)


def format_timestamp(value: Optional[datetime]) -> str:
    """
    Render a timestamp for a table cell.

    Args:
        value: The timestamp.

    Returns:
        The ISO text, or `-` when the timestamp is unset.
    """
    if value is None or value == UNSET_TIMESTAMP:
        return "-"
    return value.isoformat()


def display_backups(backups: List[Backup]):
    """
    Print a one-line summary for each backup.

    Args:
        backups: The backups to list.
    """
    if not backups:
        print("No backups found.")
        return
    rows = [[backup.id, backup.name, ",".join(backup.tags), backup.target_url] for backup in backups]
    print(tabulate(rows, headers=["ID", "Name", "Tags", "Target"]))


def display_backup(backup: Backup, schedule: Optional[Schedule] = None):
    """
    Print everything stored for one backup.

    Settings whose name contains `passphrase` are masked.

    Args:
        backup: The backup to show.
        schedule: The schedule linked to the backup, if any.
    """
    summary = [
        ("id", backup.id),
        ("name", backup.name),
        ("description", backup.description),
        ("tags", ",".join(backup.tags)),
        ("target", backup.target_url),
        ("storage path", backup.db_path),
    ]
    print(tabulate(summary, tablefmt="presto"))

    if backup.sources:
        print("\nSources:")
        print(tabulate([[source] for source in backup.sources], headers=["Path"]))

    if backup.settings:
        print("\nSettings:")
        rows = [
            [setting.name, "*****" if "passphrase" in setting.name.lower() else setting.value, setting.filter]
            for setting in backup.settings
        ]
        print(tabulate(rows, headers=["Name", "Value", "Filter"]))

    if backup.filters:
        print("\nFilters:")
        rows = [[rule.order, "include" if rule.include else "exclude", rule.expression] for rule in backup.filters]
        print(tabulate(rows, headers=["Order", "Type", "Expression"]))

    if backup.metadata:
        print("\nMetadata:")
        print(tabulate(sorted(backup.metadata.items()), headers=["Name", "Value"]))

    if schedule is not None:
        print("\nSchedule:")
        rows = [
            ("id", schedule.id),
            ("next run", format_timestamp(schedule.time)),
            ("repeat", schedule.repeat),
            ("last run", format_timestamp(schedule.last_run)),
            ("rule", schedule.rule),
        ]
        print(tabulate(rows, tablefmt="presto"))


def display_notifications(notifications: List[Notification]):
    """
    Print one line per notification.

    Args:
        notifications: The notifications to list.
    """
    if not notifications:
        print("No notifications.")
        return
    rows = [
        [
            notification.id,
            notification.type.value,
            format_timestamp(notification.timestamp),
            notification.backup_id or "",
            notification.title,
        ]
        for notification in notifications
    ]
    print(tabulate(rows, headers=["ID", "Type", "Timestamp", "Backup", "Title"]))


def display_config(config: Config):
    """
    Print the loaded configuration.

    Args:
        config: The configuration to show.
    """
    print("backupdb Configuration")
    print("-" * 25)
    rows = []
    for section in CONFIG_SECTIONS:
        namespace = getattr(config, section)
        if namespace is None:
            continue
        for key, value in namespace.__dict__.items():
            rows.append((f"{section}.{key}", value))
    print(tabulate(rows, tablefmt="presto"))
