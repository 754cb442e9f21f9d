##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Generic translation between model dataclasses and table rows.

Each model class is described once by an `EntityDescriptor`: an ordered tuple of
`Column` objects built from the dataclass fields in declaration order. One pair
of generic routines, `from_row` and `to_row`, then converts any described
model without inspecting types at call time.

Mappable kinds are integers, strings, booleans, timestamps and enumerations.
A `List[str]` field may opt in as comma-joined tag text through field metadata
(`{COLUMN_KIND: ColumnKind.TAGS}`). Every other field is skipped.

Storage conventions:
    - integers and strings keep NULL as None; an empty string stays empty
    - booleans are stored as 0/1
    - timestamps are stored as integer UTC epoch seconds, 0 meaning unset
    - enumerations are stored as the member name
    - tags are stored as one comma-joined string
"""

import logging
import re
from dataclasses import MISSING, dataclass, is_dataclass
from dataclasses import fields as dataclass_fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type, Union, get_args, get_origin, get_type_hints

from backupdb.exceptions import UnparseableColumnError, UnsupportedEntityError
from backupdb.utils import from_epoch_seconds, to_epoch_seconds


LOG = logging.getLogger(__name__)

COLUMN_KIND = "column_kind"
ID_COLUMN = "id"


class ColumnKind(Enum):
    """The attribute kinds the mapper knows how to store."""

    INTEGER = "integer"
    STRING = "string"
    BOOLEAN = "boolean"
    TIMESTAMP = "timestamp"
    ENUM = "enum"
    TAGS = "tags"

    @property
    def sqlite_type(self) -> str:
        """The SQLite column type used to store this kind."""
        return "TEXT" if self in (ColumnKind.STRING, ColumnKind.ENUM, ColumnKind.TAGS) else "INTEGER"


@dataclass(frozen=True)
class Column:
    """
    A single mapped attribute.

    Attributes:
        name: The attribute name, which is also the column name.
        kind: How values are converted to and from the row.
        enum_class: The enumeration type for `ColumnKind.ENUM` columns.
    """

    name: str
    kind: ColumnKind
    enum_class: Optional[Type[Enum]] = None


@dataclass(frozen=True)
class EntityDescriptor:
    """
    The registered shape of one model class.

    Attributes:
        table: The table the model is stored in.
        model_class: The dataclass being mapped.
        columns: Every mapped column, in declaration order.
        strict_enums: Raise on unparseable enumeration text instead of falling
            back to the first declared member.
    """

    table: str
    model_class: type
    columns: Tuple[Column, ...]
    strict_enums: bool = False

    @property
    def column_names(self) -> List[str]:
        """Names of every mapped column, in declaration order."""
        return [column.name for column in self.columns]

    @property
    def id_column(self) -> Optional[Column]:
        """The identity column, if the model has one."""
        for column in self.columns:
            if column.name == ID_COLUMN:
                return column
        return None

    @property
    def value_columns(self) -> Tuple[Column, ...]:
        """Every mapped column except the identity."""
        return tuple(column for column in self.columns if column.name != ID_COLUMN)


_REGISTRY: Dict[type, EntityDescriptor] = {}


def _table_name_for(model_class: type) -> str:
    """Turn `TempFile` into `temp_file`."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", model_class.__name__).lower()


def _unwrap_optional(hint: Any) -> Any:
    if get_origin(hint) is Union:
        args = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _kind_for(hint: Any, metadata: Dict) -> Optional[ColumnKind]:
    """
    Work out the column kind for a field, or None if the field isn't mappable.

    Args:
        hint: The resolved type hint of the field.
        metadata: The dataclass field metadata.

    Returns:
        The column kind, or None.
    """
    hint = _unwrap_optional(hint)

    if metadata.get(COLUMN_KIND) is ColumnKind.TAGS:
        if get_origin(hint) in (list, List):
            return ColumnKind.TAGS
        LOG.warning(f"Tag columns must be declared as List[str], not {hint}. Skipping.")
        return None

    if not isinstance(hint, type):
        return None
    # bool must be checked before int since it's a subclass
    if issubclass(hint, bool):
        return ColumnKind.BOOLEAN
    if issubclass(hint, Enum):
        return ColumnKind.ENUM
    if issubclass(hint, int):
        return ColumnKind.INTEGER
    if issubclass(hint, str):
        return ColumnKind.STRING
    if issubclass(hint, datetime):
        return ColumnKind.TIMESTAMP
    return None


def describe(model_class: type, table: str = None, strict_enums: bool = False) -> EntityDescriptor:
    """
    Build and register the descriptor for a model class.

    Calling this again for an already registered class returns the existing
    descriptor unchanged.

    Args:
        model_class: The dataclass to describe.
        table: The table name. Defaults to the snake_case class name.
        strict_enums: Fail on unparseable enumeration text.

    Returns:
        The registered descriptor.

    Raises:
        UnsupportedEntityError: If `model_class` is not a dataclass or has a
            field without a default.
    """
    if model_class in _REGISTRY:
        return _REGISTRY[model_class]

    if not (isinstance(model_class, type) and is_dataclass(model_class)):
        raise UnsupportedEntityError(f"{model_class!r} is not a dataclass and cannot be mapped.")
    if not has_default_constructor(model_class):
        raise UnsupportedEntityError(f"{model_class.__name__} needs a default for every field to be built from a row.")

    hints = get_type_hints(model_class)
    columns = []
    for class_field in dataclass_fields(model_class):
        kind = _kind_for(hints.get(class_field.name), class_field.metadata)
        if kind is None:
            LOG.debug(f"Skipping unmappable field '{model_class.__name__}.{class_field.name}'.")
            continue
        enum_class = _unwrap_optional(hints[class_field.name]) if kind is ColumnKind.ENUM else None
        columns.append(Column(class_field.name, kind, enum_class))

    descriptor = EntityDescriptor(
        table=table or _table_name_for(model_class),
        model_class=model_class,
        columns=tuple(columns),
        strict_enums=strict_enums,
    )
    _REGISTRY[model_class] = descriptor
    LOG.debug(f"Registered '{descriptor.table}' with columns {descriptor.column_names}.")
    return descriptor


def get_descriptor(model_class: type) -> EntityDescriptor:
    """
    Fetch the descriptor for a model class, describing it on first use.

    Args:
        model_class: The dataclass to look up.

    Returns:
        The registered descriptor.
    """
    descriptor = _REGISTRY.get(model_class)
    if descriptor is None:
        descriptor = describe(model_class)
    return descriptor


def columns_for(model_class: type) -> List[str]:
    """
    The mapped column names of a model class, in declaration order.

    Args:
        model_class: The dataclass to look up.

    Returns:
        The column names used for SELECT, INSERT and UPDATE statements.
    """
    return get_descriptor(model_class).column_names


def _read_enum(descriptor: EntityDescriptor, column: Column, raw: Any) -> Enum:
    members = list(column.enum_class)
    try:
        return column.enum_class[str(raw)]
    except KeyError as exc:
        if descriptor.strict_enums:
            raise UnparseableColumnError(
                f"Cannot parse '{raw}' as {column.enum_class.__name__} in {descriptor.table}.{column.name}"
            ) from exc
        LOG.warning(
            f"Unknown {column.enum_class.__name__} value '{raw}' in {descriptor.table}.{column.name}; "
            f"using {members[0].name}."
        )
        return members[0]


def read_value(descriptor: EntityDescriptor, column: Column, raw: Any) -> Any:
    """
    Convert one stored value into its attribute value.

    Args:
        descriptor: The descriptor the column belongs to.
        column: The column being read.
        raw: The value from the row.

    Returns:
        The attribute value.
    """
    kind = column.kind
    if kind is ColumnKind.STRING:
        return None if raw is None else str(raw)
    if kind is ColumnKind.INTEGER:
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise UnparseableColumnError(
                f"Cannot parse '{raw}' as an integer in {descriptor.table}.{column.name}"
            ) from exc
    if kind is ColumnKind.BOOLEAN:
        return raw == 1
    if kind is ColumnKind.TIMESTAMP:
        return from_epoch_seconds(raw)
    if kind is ColumnKind.ENUM:
        return _read_enum(descriptor, column, raw)
    # ColumnKind.TAGS
    return [tag for tag in (raw or "").split(",") if tag]


def write_value(column: Column, value: Any) -> Any:
    """
    Convert one attribute value into the value stored in the row.

    Args:
        column: The column being written.
        value: The attribute value.

    Returns:
        The value to bind as a statement parameter.
    """
    kind = column.kind
    if kind is ColumnKind.STRING:
        return None if value is None else str(value)
    if kind is ColumnKind.INTEGER:
        return None if value is None else int(value)
    if kind is ColumnKind.BOOLEAN:
        return 1 if value else 0
    if kind is ColumnKind.TIMESTAMP:
        return to_epoch_seconds(value)
    if kind is ColumnKind.ENUM:
        return None if value is None else value.name
    # ColumnKind.TAGS
    return ",".join(value or [])


def from_row(descriptor: EntityDescriptor, row: Sequence[Any]) -> Any:
    """
    Build a model instance from a row laid out as `descriptor.column_names`.

    Args:
        descriptor: The descriptor of the model to build.
        row: The row values, in column order.

    Returns:
        A new model instance with every mapped attribute set.
    """
    entity = descriptor.model_class()
    for index, column in enumerate(descriptor.columns):
        setattr(entity, column.name, read_value(descriptor, column, row[index]))
    return entity


def to_row(descriptor: EntityDescriptor, entity: Any, columns: Sequence[Column] = None) -> List[Any]:
    """
    Convert a model instance into statement parameters.

    Args:
        descriptor: The descriptor of the model.
        entity: The instance to convert.
        columns: The columns to emit, defaulting to every mapped column.

    Returns:
        The values for each column, in order.
    """
    if columns is None:
        columns = descriptor.columns
    return [write_value(column, getattr(entity, column.name)) for column in columns]


def has_default_constructor(model_class: type) -> bool:
    """
    Check that every field of a dataclass has a default so a zero-value
    instance can be allocated by `from_row`.

    Args:
        model_class: The dataclass to check.

    Returns:
        True if the class can be built with no arguments.
    """
    return all(
        class_field.default is not MISSING or class_field.default_factory is not MISSING
        for class_field in dataclass_fields(model_class)
    )
