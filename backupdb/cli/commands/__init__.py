##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
backupdb CLI Commands Package.

Each module encapsulates the argument parsing and dispatch for one top-level
command, built around the `CommandEntryPoint` interface.

Modules:
    command_entry_point: Defines the abstract base class `CommandEntryPoint` for all CLI commands.
    backups: Implements the `backups` command (list, get, delete, export).
    config: Implements the `config` command for showing the configuration in effect.
    notifications: Implements the `notifications` command (list, dismiss).
"""

from backupdb.cli.commands.backups import BackupsCommand
from backupdb.cli.commands.config import ConfigCommand
from backupdb.cli.commands.notifications import NotificationsCommand


ALL_COMMANDS = [
    BackupsCommand(),
    NotificationsCommand(),
    ConfigCommand(),
]
