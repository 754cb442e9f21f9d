##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Module for project-wide utility functions.
"""
import logging
import os
import re
import secrets
import string
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, Optional, Union

import yaml


LOG = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
UNSET_TIMESTAMP = datetime(1, 1, 1, tzinfo=timezone.utc)

TRUE_STRINGS = ("1", "on", "true", "yes")
FALSE_STRINGS = ("0", "off", "false", "no")

# Units understood in a timespan string; `m` is minutes and `M` is months
TIMESPAN_UNITS = {
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "D": timedelta(days=1),
    "W": timedelta(weeks=1),
    "M": timedelta(days=30),
    "Y": timedelta(days=365),
}
TIMESPAN_TOKEN = re.compile(r"(\d+)\s*([smhdDwWMyY])")
TIMESPAN_FULL = re.compile(r"^\s*(?:\d+\s*[smhdDwWMyY]\s*)+$")

SIZE_MULTIPLIERS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
    "t": 1024**4,
    "tb": 1024**4,
}
SIZE_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-zA-Z]*)\s*$")


def load_yaml(filepath: str) -> Dict:
    """
    Safely read a YAML file and return its contents.

    Args:
        filepath: The file path to the YAML file to be read.

    Returns:
        A dict representing the contents of the YAML file.
    """
    with open(filepath, "r") as _file:
        return yaml.safe_load(_file)


def nested_dict_to_namespaces(dic: Dict) -> SimpleNamespace:
    """
    Convert a nested dictionary into a nested SimpleNamespace structure.

    Args:
        dic: The nested dictionary to be converted.

    Returns:
        A SimpleNamespace object representing the nested structure of the input dictionary.

    Raises:
        TypeError: If the input is not a dictionary.
    """

    def recurse(dic):
        if not isinstance(dic, dict):
            return dic
        for key, val in list(dic.items()):
            dic[key] = recurse(val)
        return SimpleNamespace(**dic)

    if not isinstance(dic, dict):
        raise TypeError(f"Expected a dict, got {type(dic)}")

    return recurse(dic)


def nested_namespace_to_dicts(namespaces: SimpleNamespace) -> Dict:
    """
    Convert a nested SimpleNamespace structure back into plain dictionaries.

    Args:
        namespaces: The namespace structure to convert.

    Returns:
        A dictionary mirroring the namespace structure.

    Raises:
        TypeError: If the input is not a SimpleNamespace.
    """

    def recurse(namespaces):
        if not isinstance(namespaces, SimpleNamespace):
            return namespaces
        return {key: recurse(val) for key, val in namespaces.__dict__.items()}

    if not isinstance(namespaces, SimpleNamespace):
        raise TypeError(f"Expected a SimpleNamespace, got {type(namespaces)}")

    return recurse(namespaces)


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """
    Interpret a setting value as a boolean.

    Args:
        value: The text to interpret.
        default: What to return when the text is neither truthy nor falsy.

    Returns:
        The boolean the text represents, or `default`.
    """
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in TRUE_STRINGS:
        return True
    if lowered in FALSE_STRINGS:
        return False
    return default


def parse_timespan(timestr: Union[str, int]) -> timedelta:
    """
    Convert a timespan string into a timedelta.

    Accepts a bare integer (seconds) or a sequence of `<number><unit>` tokens
    such as `1D`, `2W`, `1h30m`. Units are `s`, `m` (minutes), `h`, `D`, `W`,
    `M` (months, 30 days) and `Y` (years, 365 days); `d`, `w` and `y` are
    accepted as lower-case aliases.

    Args:
        timestr: The timespan to parse.

    Returns:
        The parsed duration.

    Raises:
        ValueError: If the string is empty or contains anything other than
            unit tokens.
    """
    if timestr is None:
        raise ValueError("Cannot parse an empty timespan")

    timestr = str(timestr).strip()
    if timestr.isdigit():
        return timedelta(seconds=int(timestr))

    if not timestr or not TIMESPAN_FULL.match(timestr):
        raise ValueError(f"Cannot parse '{timestr}' as a timespan")

    total = timedelta()
    for amount, unit in TIMESPAN_TOKEN.findall(timestr):
        if unit in ("d", "w", "y"):
            unit = unit.upper()
        total += int(amount) * TIMESPAN_UNITS[unit]
    return total


def parse_size(size: str) -> int:
    """
    Convert a size string such as `50mb` or `1KB` into a number of bytes.

    Multipliers are binary (`1kb` is 1024 bytes) and case-insensitive. A number
    with no suffix is taken as bytes.

    Args:
        size: The size string to parse.

    Returns:
        The size in bytes.

    Raises:
        ValueError: If the string is not a number followed by a known suffix.
    """
    if size is None:
        raise ValueError("Cannot parse an empty size")

    match = SIZE_PATTERN.match(str(size))
    if not match:
        raise ValueError(f"Cannot parse '{size}' as a size")

    number, suffix = match.groups()
    suffix = suffix.lower()
    if suffix not in SIZE_MULTIPLIERS:
        raise ValueError(f"Unknown size suffix '{suffix}' in '{size}'")

    return int(float(number) * SIZE_MULTIPLIERS[suffix])


def to_epoch_seconds(value: Optional[datetime]) -> int:
    """
    Convert a datetime into integer UTC epoch seconds.

    Naive datetimes are taken to be UTC. `None` and the unset instant map to 0.

    Args:
        value: The datetime to convert.

    Returns:
        Whole seconds since the UNIX epoch.
    """
    if value is None:
        return 0
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    if value == UNSET_TIMESTAMP:
        return 0
    return int((value - EPOCH).total_seconds())


def from_epoch_seconds(seconds: Optional[int]) -> datetime:
    """
    Convert integer UTC epoch seconds into an aware datetime.

    Args:
        seconds: Seconds since the UNIX epoch; 0 or None means unset.

    Returns:
        The matching UTC datetime, or `UNSET_TIMESTAMP`.
    """
    if not seconds:
        return UNSET_TIMESTAMP
    return EPOCH + timedelta(seconds=int(seconds))


def utcnow() -> datetime:
    """
    Current time as an aware UTC datetime truncated to whole seconds.

    Returns:
        The current UTC time.
    """
    return datetime.now(timezone.utc).replace(microsecond=0)


def generate_random_name(length: int = 16) -> str:
    """
    Generate a random file name stem made of upper-case letters.

    Args:
        length: How many characters to generate.

    Returns:
        The random name.
    """
    return "".join(secrets.choice(string.ascii_uppercase) for _ in range(length))


def ensure_directory_exists(dirpath: str) -> bool:
    """
    Create a directory (and its parents) if it doesn't already exist.

    Args:
        dirpath: The directory to create.

    Returns:
        True if the directory had to be created, False if it already existed.
    """
    if os.path.isdir(dirpath):
        return False
    LOG.debug(f"Creating directory '{dirpath}'.")
    os.makedirs(dirpath, exist_ok=True)
    return True


def get_yaml_var(entry: Dict[str, Any], var: str, default: Any) -> Any:
    """
    Retrieve the value associated with a specified key from a YAML dictionary.

    Args:
        entry: The YAML dictionary to search.
        var: The key to look up.
        default: The value to return when the key is missing.

    Returns:
        The value from the dictionary, or `default`.
    """
    try:
        return entry[var]
    except (TypeError, KeyError):
        try:
            return getattr(entry, var)
        except AttributeError:
            return default
