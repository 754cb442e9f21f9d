##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""This module handles setting up logging for backupdb."""

import logging
import sys
from typing import Optional

import coloredlogs

from backupdb.config import Config
from backupdb.utils import get_yaml_var, parse_bool


DEFAULT_LOG_LEVEL = "INFO"

FORMATS = {
    "DEFAULT": "[%(asctime)s: %(levelname)s] %(message)s",
    "DEBUG": "[%(asctime)s: %(levelname)s] [%(module)s: %(lineno)d] %(message)s",
}


def setup_logging(logger: logging.Logger, log_level: str = DEFAULT_LOG_LEVEL, colors: bool = True):
    """
    Setup and configure Python logging.

    Args:
        logger: A logging.Logger object.
        log_level: Logger level.
        colors: If True use colored logs.
    """
    fmt = FORMATS["DEBUG"] if log_level == "DEBUG" else FORMATS["DEFAULT"]
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)

    logger.setLevel(log_level)
    logger.propagate = False

    if colors is True:
        coloredlogs.install(level=log_level, logger=logger, fmt=fmt)


def setup_logging_from_config(logger: logging.Logger, config: Config, log_level: Optional[str] = None):
    """
    Configure logging from the `logging` section of the app config.

    Args:
        logger: A logging.Logger object.
        config: The loaded configuration.
        log_level: Takes precedence over `logging.level` when given.
    """
    level = log_level or get_yaml_var(config.logging, "level", DEFAULT_LOG_LEVEL)
    colors = get_yaml_var(config.logging, "colors", True)
    if not isinstance(colors, bool):
        colors = parse_bool(str(colors), default=True)
    setup_logging(logger=logger, log_level=str(level).upper(), colors=colors)
