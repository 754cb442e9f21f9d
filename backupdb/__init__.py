##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
backupdb: the configuration store behind a backup orchestration server.

This module contains the source code for backupdb.
"""

import os
import sys


__version__ = "1.0.0"
VERSION = __version__
PATH_TO_PROJ = os.path.join(os.path.dirname(__file__), "")

CLI_MOD = "backupdb.main"


def is_using_cli():
    """
    Checks whether the backupdb module is currently using the CLI.
    """
    return CLI_MOD in sys.modules
