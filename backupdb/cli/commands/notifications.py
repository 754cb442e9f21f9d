##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module defines the `NotificationsCommand` class for listing and
dismissing operator notifications from the command line.
"""

import logging
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace

from backupdb.cli.commands.command_entry_point import CommandEntryPoint
from backupdb.cli.utils import open_database
from backupdb.common.enums import ReturnCode
from backupdb.display import display_notifications


LOG = logging.getLogger(__name__)


class NotificationsCommand(CommandEntryPoint):
    """
    Handles `notifications` CLI commands.

    Methods:
        add_parser: Adds the `notifications` command and its subcommands to the CLI parser.
        process_command: Processes the CLI input and dispatches the appropriate action.
    """

    def add_parser(self, subparsers: ArgumentParser):
        """
        Add the `notifications` command parser to the CLI argument parser.

        Parameters:
            subparsers: The subparsers object to which the `notifications` command parser will be added.
        """
        notifications: ArgumentParser = subparsers.add_parser(
            "notifications",
            help="List or dismiss operator notifications.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        notifications.set_defaults(func=self.process_command)
        notification_commands = notifications.add_subparsers(dest="commands", required=True)

        notification_commands.add_parser(
            "list",
            help="List every notification.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

        dismiss = notification_commands.add_parser(
            "dismiss",
            help="Dismiss a notification.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        dismiss.add_argument("notification_id", type=int, help="The ID of the notification to dismiss.")

    def process_command(self, args: Namespace) -> ReturnCode:
        """
        Process notifications commands by routing to the correct action.

        Args:
            args: An argparse Namespace containing user arguments.

        Returns:
            The exit code of the command.
        """
        with open_database(args) as database:
            if args.commands == "list":
                display_notifications(database.notifications.get_notifications())
                return ReturnCode.OK

            if not database.notifications.dismiss(args.notification_id):
                LOG.error(f"Notification with id '{args.notification_id}' does not exist.")
                return ReturnCode.NOT_FOUND
            LOG.info(f"Notification {args.notification_id} dismissed.")
            return ReturnCode.OK
