##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""This module provides enumerations for interfaces."""
from enum import Enum, IntEnum


__all__ = ("NotificationType", "ReturnCode")


class NotificationType(Enum):
    """
    Severity of an operator-visible notification.

    Stored as the member name in the notification table. The declaration order
    matters: `INFORMATION` is the value used when stored text cannot be parsed.

    Attributes:
        INFORMATION (str): An informational message.
        WARNING (str): A warning that the operator has not acknowledged yet.
        ERROR (str): An error that the operator has not acknowledged yet.
    """

    INFORMATION = "Information"
    WARNING = "Warning"
    ERROR = "Error"


class ReturnCode(IntEnum):
    """
    Enum for backupdb CLI return codes.

    Attributes:
        OK (int): Indicates a successful operation. Numeric value: 0.
        ERROR (int): Indicates a general error occurred. Numeric value: 1.
        INVALID (int): Indicates the input was rejected by validation. Numeric value: 2.
        NOT_FOUND (int): Indicates the requested entity does not exist. Numeric value: 3.
    """

    OK: int = 0
    ERROR: int = 1
    INVALID: int = 2
    NOT_FOUND: int = 3
