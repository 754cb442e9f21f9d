##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Used to store the application configuration.

Modules:
    config_filepaths.py: Constants for the locations backupdb reads and writes.
    configfile.py: Locates, loads and applies defaults to the `app.yaml` file.
"""
from copy import copy
from types import SimpleNamespace
from typing import Dict, List, Optional

from backupdb.utils import nested_dict_to_namespaces


CONFIG_SECTIONS: List[str] = ["database", "storage", "logging"]


class Config:  # pylint: disable=R0903
    """
    The Config class, meant to store all backupdb config settings in one place.

    Attributes:
        database (Optional[SimpleNamespace]): Where the SQLite file lives.
        storage (Optional[SimpleNamespace]): Where per-backup storage files are generated.
        logging (Optional[SimpleNamespace]): Log level and coloring for the CLI.

    Methods:
        __copy__: Creates a shallow copy of the Config instance.
        __str__: Returns a formatted string representation of the Config instance.
        load_app_into_namespaces: Converts the provided configuration dictionary into namespaces
            and assigns them to the Config instance's attributes.
    """

    def __init__(self, app_dict: Dict):
        """
        Initializes the Config instance with configuration data from a dictionary.

        Args:
            app_dict: A dictionary containing configuration data for the application.
                Keys `database`, `storage` and `logging` are each converted into a
                `SimpleNamespace`.
        """
        self.database: Optional[SimpleNamespace] = None
        self.storage: Optional[SimpleNamespace] = None
        self.logging: Optional[SimpleNamespace] = None
        self.load_app_into_namespaces(app_dict)

    def __copy__(self) -> "Config":
        """
        Creates a shallow copy of the Config instance.

        Returns:
            A new Config instance with copied sections.
        """
        cls = self.__class__
        result = cls.__new__(cls)
        result.__dict__.update({section: copy(self.__dict__[section]) for section in CONFIG_SECTIONS})
        return result

    def __str__(self) -> str:
        """
        Returns a formatted string representation of the Config instance.

        Returns:
            A string containing the values of every configuration section.
        """
        formatted_str = "config:"
        for name in CONFIG_SECTIONS:
            attr = getattr(self, name)
            if attr is not None:
                items = (f"    {k}: {v!r}" for k, v in attr.__dict__.items())
                joined_items = "\n".join(items)
                formatted_str += f"\n  {name}:\n{joined_items}"
            else:
                formatted_str += f"\n  {name}:\n    None"
        return formatted_str

    def load_app_into_namespaces(self, app_dict: Dict):
        """
        Converts the provided application dictionary into namespaces and assigns them
        to the Config instance's attributes.

        Args:
            app_dict: A dictionary containing configuration data for the application.
        """
        for field in CONFIG_SECTIONS:
            try:
                setattr(self, field, nested_dict_to_namespaces(app_dict[field]))
            except KeyError:
                # The sections are optional
                pass
