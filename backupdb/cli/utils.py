##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Utility functions to support backupdb CLI command handlers.
"""

import logging
from argparse import Namespace

from backupdb.config import Config, configfile
from backupdb.db_scripts.backup_db import BackupDatabase


LOG = logging.getLogger(__name__)


def load_cli_config(args: Namespace) -> Config:
    """
    Load the configuration named by `--config`, or the default one.

    The configuration is read once per process; later calls return the
    already loaded one.

    Args:
        args: The parsed CLI arguments.

    Returns:
        The loaded configuration.
    """
    if configfile.CONFIG is None:
        return configfile.initialize_config(getattr(args, "config", None))
    return configfile.CONFIG


def open_database(args: Namespace) -> BackupDatabase:
    """
    Open the database configured for this CLI invocation.

    Args:
        args: The parsed CLI arguments.

    Returns:
        An opened `BackupDatabase`. The caller closes it.
    """
    config = load_cli_config(args)
    LOG.debug(f"Opening backup database at '{config.database.path}'.")
    return BackupDatabase.from_config(config)
