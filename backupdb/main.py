##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Main entry point into backupdb's codebase.
"""

import logging
import sys
import traceback

from backupdb.cli.argparse_main import build_main_parser
from backupdb.cli.utils import load_cli_config
from backupdb.common.enums import ReturnCode
from backupdb.log_formatter import setup_logging_from_config


LOG = logging.getLogger("backupdb")


def main():
    """
    Entry point for the backupdb command-line interface (CLI) operations.

    This function sets up the argument parser, handles command-line arguments,
    initializes logging, and executes the appropriate function based on the
    provided command. Logging follows the `logging` section of the app config
    unless `--level` is given. The command's return code becomes the exit status.
    """
    parser = build_main_parser()
    if len(sys.argv) == 1:
        parser.print_help(sys.stdout)
        return ReturnCode.ERROR
    args = parser.parse_args()

    setup_logging_from_config(LOG, load_cli_config(args), args.level)

    try:
        return_code = args.func(args)
        # Being at the literal top of the program stack, a broad except is ok here.
    except Exception as excpt:  # pylint: disable=broad-except
        LOG.debug(traceback.format_exc())
        LOG.error(str(excpt))
        sys.exit(ReturnCode.ERROR)

    sys.exit(int(return_code if return_code is not None else ReturnCode.OK))


if __name__ == "__main__":
    main()
