##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
This module houses dataclasses that define the format of the data
that's stored in the backupdb database.
"""

import json
import logging
import os
import re
from abc import ABC, abstractmethod
from dataclasses import Field, asdict, dataclass, field
from dataclasses import fields as dataclass_fields
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from filelock import FileLock

from backupdb.backends.entity_mapper import COLUMN_KIND, ColumnKind
from backupdb.common.enums import NotificationType
from backupdb.utils import UNSET_TIMESTAMP


LOG = logging.getLogger(__name__)
T = TypeVar("T", bound="BaseDataModel")

# Filters and settings stored under this id apply to every backup
ANY_BACKUP_ID = -1
# Application-wide settings are stored under this id
SERVER_SETTINGS_ID = -2
# Sent to clients instead of real secrets; must never be written back
PASSWORD_PLACEHOLDER = "**********"

NUMERIC_ID_PATTERN = re.compile(r"^-?\d+$")
ALLOWED_DAYS_PATTERN = re.compile(r"AllowedWeekDays=([^;]*)", re.IGNORECASE)


def _json_default(value):
    """Convert values `json` can't handle natively."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _unwrap_optional(hint):
    """Strip `Optional[...]` from a type hint."""
    if get_origin(hint) is Union:
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _coerce(hint, value):
    """Convert a JSON-decoded value back into the type declared by `hint`."""
    if value is None:
        return None

    hint = _unwrap_optional(hint)
    origin = get_origin(hint)

    if origin in (list, List):
        (item_hint,) = get_args(hint) or (None,)
        return [_coerce(item_hint, item) for item in value]
    if isinstance(hint, type):
        if issubclass(hint, BaseDataModel) and isinstance(value, dict):
            return hint.from_dict(value)
        if issubclass(hint, datetime) and isinstance(value, str):
            return datetime.fromisoformat(value)
        if issubclass(hint, Enum) and not isinstance(value, hint):
            return hint(value)
    return value


@dataclass
class BaseDataModel(ABC):
    """
    A base class for dataclasses that provides common serialization, deserialization, and
    update functionality.

    Methods:
        to_dict:
            Convert the dataclass instance to a dictionary.

        to_json:
            Serialize the dataclass instance to a JSON string.

        from_dict (classmethod):
            Create an instance of the dataclass from a dictionary.

        from_json (classmethod):
            Create an instance of the dataclass from a JSON string.

        dump_to_json_file:
            Dump the data of this dataclass to a JSON file.

        load_from_json_file (classmethod):
            Load the data stored in a JSON file to this dataclass.

        get_instance_fields:
            Retrieve the fields associated with this dataclass instance.

        get_class_fields (classmethod):
            Retrieve the fields associated with the dataclass class itself.

        update_fields:
            Update the fields of the dataclass based on a given dictionary of updates.
    """

    def to_dict(self) -> Dict:
        """
        Convert the dataclass to a dictionary.

        Returns:
            The dataclass as a dictionary.
        """
        return asdict(self)

    def to_json(self) -> str:
        """
        Serialize the dataclass to a JSON string.

        Returns:
            The dataclass as a JSON string.
        """
        return json.dumps(self.to_dict(), default=_json_default)

    @classmethod
    def from_dict(cls: Type[T], data: Dict) -> T:
        """
        Create an instance of the dataclass from a dictionary.

        Nested models, datetimes and enumerations are rebuilt from their JSON
        representation. Keys that aren't fields of the class are ignored.

        Args:
            data: A dictionary to turn into an instance of this dataclass.

        Returns:
            An instance of the dataclass that called this.
        """
        hints = get_type_hints(cls)
        kwargs = {}
        for class_field in cls.get_class_fields():
            if class_field.name in data:
                kwargs[class_field.name] = _coerce(hints.get(class_field.name), data[class_field.name])
        return cls(**kwargs)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        """
        Create an instance of the dataclass from a JSON string.

        Args:
            json_str: A JSON string to turn into an instance of this dataclass.

        Returns:
            An instance of the dataclass that called this.
        """
        data = json.loads(json_str)
        return cls.from_dict(data)

    def dump_to_json_file(self, filepath: str):
        """
        Dump the data of this dataclass to a JSON file.

        Args:
            filepath: The path to the JSON file where the data will be written.

        Raises:
            ValueError: If the `filepath` is not provided or is invalid.
        """
        if not filepath:
            raise ValueError("A valid file path must be provided.")

        dirname = os.path.dirname(filepath)
        if dirname:
            os.makedirs(dirname, exist_ok=True)

        # Create a lock file alongside the target JSON file
        lock_file = f"{filepath}.lock"
        with FileLock(lock_file):  # pylint: disable=abstract-class-instantiated
            temp_filepath = f"{filepath}.tmp"  # Use a temporary file for atomic writes
            with open(temp_filepath, "w") as json_file:
                json.dump(self.to_dict(), json_file, indent=4, default=_json_default)

            os.replace(temp_filepath, filepath)

        LOG.debug(f"Data successfully dumped to {filepath}.")

    @classmethod
    def load_from_json_file(cls: Type[T], filepath: str) -> T:
        """
        Load the data stored in a JSON file to this dataclass.

        Args:
            filepath: The path to the JSON file where the data is located.

        Raises:
            ValueError: If the `filepath` is not provided or is invalid.
        """
        if not filepath or not os.path.exists(filepath):
            raise ValueError("A valid file path must be provided.")

        lock_file = f"{filepath}.lock"
        with FileLock(lock_file):  # pylint: disable=abstract-class-instantiated
            with open(filepath, "r") as json_file:
                data = json.load(json_file)

        return cls.from_dict(data)

    def get_instance_fields(self) -> Tuple[Field]:
        """
        Get the fields associated with this instance.

        Returns:
            A tuple of dataclass.Field objects representing the fields in this data class.
        """
        return dataclass_fields(self)

    @classmethod
    def get_class_fields(cls) -> Tuple[Field]:
        """
        Get the fields associated with this class.

        Returns:
            A tuple of dataclass.Field objects representing the fields in this data class.
        """
        return dataclass_fields(cls)

    @property
    @abstractmethod
    def fields_allowed_to_be_updated(self) -> List[str]:
        """
        A property to be overridden in subclasses to define which fields are allowed to be updated.

        Returns:
            A list of fields that are allowed to be updated in this class.
        """

    def update_fields(self, updates: Dict):
        """
        Given a dictionary of updates to be made to this data class, loop through the updates
        applying them when valid.

        Args:
            updates: A dictionary of updates to be made to this data class.
        """
        for field_name, new_value in updates.items():
            if field_name == "id":
                continue

            if not hasattr(self, field_name):
                LOG.warning(f"Field '{field_name}' does not exist on {type(self).__name__}. Ignoring the change.")
                continue

            if getattr(self, field_name) == new_value:  # Not an update so skip
                continue

            if field_name in self.fields_allowed_to_be_updated:
                setattr(self, field_name, new_value)
            else:
                LOG.debug(f"Field '{field_name}' is not allowed to be updated. Ignoring the change.")


@dataclass
class Setting(BaseDataModel):
    """
    A single option attached to a backup (or to the global scope).

    Attributes:
        filter (str): An optional filter expression limiting where the option applies.
        name (str): The option name, e.g. `passphrase` or `--blocksize`.
        value (str): The option value.
    """

    filter: str = ""
    name: str = ""
    value: str = ""

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return ["filter", "name", "value"]


@dataclass
class Filter(BaseDataModel):
    """
    An ordered include/exclude rule attached to a backup.

    Attributes:
        order (int): Position of the rule; rules are evaluated in this order.
        include (bool): True for an include rule, False for an exclude rule.
        expression (str): The path or regular expression the rule matches.
    """

    order: int = 0
    include: bool = True
    expression: str = ""

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return ["order", "include", "expression"]


@dataclass
class Backup(BaseDataModel):  # pylint: disable=too-many-instance-attributes
    """
    A dataclass to store all of the information for a backup job.

    Attributes:
        id (Optional[str]): The decimal text of the persisted identity, a generated
            UUID while the backup is temporary, or None before it has been stored.
        name (str): The display name of the backup.
        description (str): A free-form description.
        tags (List[str]): Labels stored as comma-joined text.
        target_url (str): Where the backup data is sent.
        db_path (str): The private storage path (local database file) for this backup.
        sources (List[str]): Paths that are backed up.
        settings (List[Setting]): Options for this backup.
        filters (List[Filter]): Ordered include/exclude rules.
        metadata (Dict[str, str]): Bookkeeping values written by the backup engine.
    """

    id: Optional[str] = None  # pylint: disable=invalid-name
    name: str = None
    description: str = ""
    tags: List[str] = field(default_factory=list, metadata={COLUMN_KIND: ColumnKind.TAGS})
    target_url: str = None
    db_path: str = None
    sources: List[str] = field(default_factory=list)
    settings: List[Setting] = field(default_factory=list)
    filters: List[Filter] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def is_temporary(self) -> bool:
        """
        Whether this backup only lives in the in-memory registry.

        Returns:
            True if the identity is set and is not an integer.
        """
        return self.id is not None and not NUMERIC_ID_PATTERN.match(str(self.id))

    @property
    def numeric_id(self) -> Optional[int]:
        """
        The persisted identity as an integer.

        Returns:
            The integer identity, or None for new and temporary backups.
        """
        if self.id is None or self.is_temporary:
            return None
        return int(self.id)

    def get_setting(self, name: str) -> Optional[str]:
        """
        Look up a setting value by name, ignoring case.

        Args:
            name: The setting name.

        Returns:
            The value of the first matching setting, or None.
        """
        for setting in self.settings:
            if setting.name and setting.name.lower() == name.lower():
                return setting.value
        return None

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return ["name", "description", "tags", "target_url", "sources", "settings", "filters", "metadata"]


@dataclass
class Schedule(BaseDataModel):
    """
    A time-repetition rule. A schedule belongs to a backup when it carries the
    tag `ID=<backup id>`.

    Attributes:
        id (Optional[int]): The persisted identity, or None before it has been stored.
        tags (List[str]): Labels stored as comma-joined text.
        time (datetime): The next time the schedule fires.
        repeat (str): The repeat interval as a timespan string, e.g. `1D`.
        last_run (datetime): When the schedule last fired.
        rule (str): Extra rule text, e.g. `AllowedWeekDays=Monday,Friday`.
    """

    id: Optional[int] = None  # pylint: disable=invalid-name
    tags: List[str] = field(default_factory=list, metadata={COLUMN_KIND: ColumnKind.TAGS})
    time: datetime = UNSET_TIMESTAMP
    repeat: str = None
    last_run: datetime = UNSET_TIMESTAMP
    rule: str = ""

    @property
    def allowed_days(self) -> List[str]:
        """
        The week days this schedule is allowed to run on.

        Returns:
            The days listed in the `AllowedWeekDays` clause of `rule`, or an
            empty list when every day is allowed.
        """
        match = ALLOWED_DAYS_PATTERN.search(self.rule or "")
        if not match:
            return []
        return [day.strip() for day in match.group(1).split(",") if day.strip()]

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return ["tags", "time", "repeat", "rule"]


@dataclass
class Notification(BaseDataModel):  # pylint: disable=too-many-instance-attributes
    """
    An operator-visible message.

    Attributes:
        id (Optional[int]): The persisted identity.
        type (NotificationType): Information, warning or error.
        title (str): A short headline.
        message (str): The full message.
        exception (str): Text of the exception that caused the notification, if any.
        backup_id (str): The backup this notification is about, if any.
        action (str): A tag the UI uses to offer a follow-up action.
        timestamp (datetime): When the notification was raised.
        log_entry_id (str): Correlates with a backup log entry.
        message_id (str): Correlates with a message in the backup log.
        message_log_tag (str): The log tag of the originating message.
    """

    id: Optional[int] = None  # pylint: disable=invalid-name
    type: NotificationType = NotificationType.INFORMATION
    title: str = None
    message: str = None
    exception: str = ""
    backup_id: str = None
    action: str = ""
    timestamp: datetime = UNSET_TIMESTAMP
    log_entry_id: str = None
    message_id: str = None
    message_log_tag: str = None

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return []


@dataclass
class TempFile(BaseDataModel):
    """
    A temporary file that must be removed once it expires.

    Attributes:
        id (Optional[int]): The persisted identity.
        timestamp (datetime): When the file was registered.
        origin (str): What created the file.
        path (str): Where the file lives.
        expires (datetime): When the file may be removed.
    """

    id: Optional[int] = None  # pylint: disable=invalid-name
    timestamp: datetime = UNSET_TIMESTAMP
    origin: str = None
    path: str = None
    expires: datetime = UNSET_TIMESTAMP

    @property
    def fields_allowed_to_be_updated(self) -> List[str]:
        return []

