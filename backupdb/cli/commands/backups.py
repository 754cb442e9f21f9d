##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module defines the `BackupsCommand` class, which provides CLI subcommands
for listing, inspecting, deleting and exporting the backups stored by backupdb.
"""

import logging
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace

from backupdb.cli.commands.command_entry_point import CommandEntryPoint
from backupdb.cli.utils import open_database
from backupdb.common.enums import ReturnCode
from backupdb.display import display_backup, display_backups
from backupdb.exceptions import BackupNotFoundError


LOG = logging.getLogger(__name__)


class BackupsCommand(CommandEntryPoint):
    """
    Handles `backups` CLI commands.

    Methods:
        add_parser: Adds the `backups` command and its subcommands to the CLI parser.
        process_command: Processes the CLI input and dispatches the appropriate action.
    """

    def add_parser(self, subparsers: ArgumentParser):
        """
        Add the `backups` command parser to the CLI argument parser.

        Parameters:
            subparsers: The subparsers object to which the `backups` command parser will be added.
        """
        backups: ArgumentParser = subparsers.add_parser(
            "backups",
            help="Inspect and manage stored backups.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        backups.set_defaults(func=self.process_command)
        backup_commands = backups.add_subparsers(dest="commands", required=True)

        backup_commands.add_parser(
            "list",
            help="List every stored backup.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        get_backup = backup_commands.add_parser(
            "get",
            help="Show one backup with its settings, filters and schedule.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        get_backup.add_argument("backup_id", type=str, help="The ID of the backup to show.")

        delete_backup = backup_commands.add_parser(
            "delete",
            help="Delete a backup, its schedule and everything stored for it.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        delete_backup.add_argument("backup_id", type=str, help="The ID of the backup to delete.")

        export_backup = backup_commands.add_parser(
            "export",
            help="Write a backup and its schedule to a JSON file.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        export_backup.add_argument("backup_id", type=str, help="The ID of the backup to export.")
        export_backup.add_argument("output_file", type=str, help="Where to write the export.")

    def process_command(self, args: Namespace) -> ReturnCode:
        """
        Process backups commands by routing to the correct action.

        Args:
            args: An argparse Namespace containing user arguments.

        Returns:
            The exit code of the command.
        """
        with open_database(args) as database:
            if args.commands == "list":
                display_backups(database.entities.backups())
                return ReturnCode.OK

            if args.commands == "get":
                backup = database.entities.get_backup(args.backup_id)
                if backup is None:
                    LOG.error(f"Backup with id '{args.backup_id}' does not exist.")
                    return ReturnCode.NOT_FOUND
                display_backup(backup, database.entities.schedule_for_backup(backup.id))
                return ReturnCode.OK

            if args.commands == "delete":
                if database.entities.get_backup(args.backup_id) is None:
                    LOG.error(f"Backup with id '{args.backup_id}' does not exist.")
                    return ReturnCode.NOT_FOUND
                database.entities.delete_backup(args.backup_id)
                LOG.info(f"Backup '{args.backup_id}' deleted.")
                return ReturnCode.OK

            # export
            try:
                bundle = database.prepare_backup_for_export(args.backup_id)
            except BackupNotFoundError as exc:
                LOG.error(str(exc))
                return ReturnCode.NOT_FOUND
            bundle.dump_to_json_file(args.output_file)
            LOG.info(f"Backup '{args.backup_id}' exported to '{args.output_file}'.")
            return ReturnCode.OK
