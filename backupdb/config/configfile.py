##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module provides functionality for locating and loading the application
configuration file and filling in default settings.

It houses the `CONFIG` object that the CLI uses when no explicit configuration
is handed to a `BackupDatabase`.
"""
import logging
import os
from typing import Dict, Optional

import yaml

from backupdb.config import Config
from backupdb.config.config_filepaths import (
    APP_FILENAME,
    BACKUPDB_HOME,
    CONFIG_PATH_FILE,
    DEFAULT_DATA_FOLDER,
    DEFAULT_DB_PATH,
)
from backupdb.utils import load_yaml


LOG: logging.Logger = logging.getLogger(__name__)

CONFIG: Optional[Config] = None

ENV_OVERRIDES = {
    "BACKUPDB_DB_PATH": ("database", "path"),
    "BACKUPDB_DATA_FOLDER": ("storage", "data_folder"),
}


def load_config(filepath: str) -> Dict:
    """
    Reads a YAML configuration file and returns its contents as a dictionary.

    Args:
        filepath: The path to the YAML configuration file.

    Returns:
        A dictionary containing the contents of the YAML file or None if file doesn't exist.
    """
    if not os.path.isfile(filepath):
        LOG.info(f"No app config file at {filepath}")
        return None
    LOG.info(f"Reading app config from file {filepath}")
    return load_yaml(filepath) or {}


def find_config_file(path: str = None) -> str:
    """
    Locate the application configuration file (`app.yaml`).

    If no directory is provided the search order is:
      1. `app.yaml` in the current working directory.
      2. The file named inside `CONFIG_PATH_FILE`, if that file exists.
      3. `app.yaml` in the `BACKUPDB_HOME` directory.

    Args:
        path: A specific directory to look for `app.yaml`.

    Returns:
        The full path to the `app.yaml` file if found, otherwise `None`.
    """
    if path is None:
        local_app = os.path.join(os.getcwd(), APP_FILENAME)
        if os.path.isfile(local_app):
            return local_app

        if os.path.isfile(CONFIG_PATH_FILE):
            with open(CONFIG_PATH_FILE, "r") as f:
                config_path = f.read().strip()
            if os.path.isfile(config_path):
                return config_path

        path_app = os.path.join(BACKUPDB_HOME, APP_FILENAME)
        if os.path.isfile(path_app):
            return path_app

        return None

    if os.path.isfile(path):
        return path

    app_path = os.path.join(path, APP_FILENAME)
    if os.path.exists(app_path):
        return app_path

    return None


def get_default_config() -> Dict:
    """
    Creates the default configuration used when no `app.yaml` exists.

    Returns:
        A configuration dictionary with every section filled in.
    """
    return {
        "database": {"path": DEFAULT_DB_PATH},
        "storage": {"data_folder": DEFAULT_DATA_FOLDER, "max_path_attempts": 100},
        "logging": {"level": "INFO", "colors": True},
    }


def load_defaults(config: Dict):
    """
    Fill in any section or key missing from `config` with the default value.

    Args:
        config: The configuration dictionary to be updated in place.
    """
    for section, defaults in get_default_config().items():
        if not isinstance(config.get(section), dict):
            config[section] = {}
        for key, value in defaults.items():
            config[section].setdefault(key, value)


def apply_env_overrides(config: Dict):
    """
    Apply environment variable overrides on top of the loaded configuration.

    Args:
        config: The configuration dictionary to be updated in place.
    """
    for env_var, (section, key) in ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            LOG.debug(f"Overriding {section}.{key} from ${env_var}.")
            config[section][key] = value


def get_config(path: Optional[str] = None) -> Dict:
    """
    Loads the configuration file and returns a dictionary containing the configuration data.

    A missing file is not an error: the defaults are used instead.

    Args:
        path: A file or directory to search for the configuration file. If `None`,
            default search paths are used.

    Returns:
        A dictionary containing all the configuration data.
    """
    filepath = find_config_file(path)
    if filepath is None:
        LOG.debug("No app.yaml found; using the default configuration.")
        config = {}
    else:
        config = load_config(filepath) or {}
    load_defaults(config)
    apply_env_overrides(config)
    return config


def initialize_config(path: Optional[str] = None) -> Config:
    """
    Initializes and returns the backupdb configuration.

    Args:
        path: Path to look for the configuration file.

    Returns:
        The initialized configuration object.
    """
    global CONFIG  # pylint: disable=global-statement

    try:
        CONFIG = Config(get_config(path))
    except (OSError, ValueError, yaml.YAMLError) as e:
        LOG.warning(f"Error loading configuration: {e}. Falling back to default configuration.")
        CONFIG = Config(get_default_config())

    return CONFIG
