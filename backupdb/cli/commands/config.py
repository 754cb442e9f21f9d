##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
CLI command for inspecting the backupdb configuration.
"""

import logging
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, Namespace

from backupdb.cli.commands.command_entry_point import CommandEntryPoint
from backupdb.cli.utils import load_cli_config
from backupdb.common.enums import ReturnCode
from backupdb.display import display_config


LOG = logging.getLogger(__name__)


class ConfigCommand(CommandEntryPoint):
    """
    CLI command group for the backupdb configuration.

    Methods:
        add_parser: Adds the `config` command and its subcommands to the CLI parser.
        process_command: Processes the CLI input and dispatches the appropriate action.
    """

    def add_parser(self, subparsers: ArgumentParser):
        """
        Add the `config` command parser to the CLI argument parser.

        Parameters:
            subparsers: The subparsers object to which the `config` command parser will be added.
        """
        config: ArgumentParser = subparsers.add_parser(
            "config",
            help="Inspect the backupdb configuration.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )
        config.set_defaults(func=self.process_command)
        config_commands = config.add_subparsers(dest="commands", required=True)
        config_commands.add_parser(
            "show",
            help="Print the configuration in effect, defaults and overrides included.",
            formatter_class=ArgumentDefaultsHelpFormatter,
        )

    def process_command(self, args: Namespace) -> ReturnCode:
        """
        Process config commands.

        Args:
            args: An argparse Namespace containing user arguments.

        Returns:
            The exit code of the command.
        """
        display_config(load_cli_config(args))
        return ReturnCode.OK
