##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Module of all backupdb-specific exception types.

Validation problems are never raised; they are reported as reason strings. The
exceptions here are for integrity violations (programming-contract breaches that
must abort the enclosing transaction), resource exhaustion, and lookups that
require an entity to exist.
"""

# Pylint complains that these exceptions are no different from Exception
# but we don't care, we just need new names for exceptions here
# pylint: disable=W0235

__all__ = (
    "BackupDBError",
    "IntegrityViolationError",
    "PlaceholderPersistenceError",
    "StoragePathExhaustedError",
    "BackupNotFoundError",
    "ScheduleNotFoundError",
    "UnparseableColumnError",
    "TransactionStateError",
    "UnsupportedEntityError",
)


class BackupDBError(Exception):
    """
    Base class for every error raised by backupdb.
    """


class IntegrityViolationError(BackupDBError):
    """
    Exception to signal that a write would break a store invariant, e.g. a
    delete by primary identity that touches more than one row, or an attempt to
    modify the application settings identity through the backup update path.
    """


class PlaceholderPersistenceError(IntegrityViolationError):
    """
    Exception to signal that the password placeholder was about to be written
    as a live setting value or as a backup target.
    """


class StoragePathExhaustedError(BackupDBError):
    """
    Exception to signal that no unique storage path could be generated for a
    new backup within the allowed number of attempts.
    """


class BackupNotFoundError(BackupDBError):
    """
    Exception to signal that a backup does not exist.
    """


class ScheduleNotFoundError(BackupDBError):
    """
    Exception to signal that a schedule does not exist.
    """


class UnparseableColumnError(BackupDBError):
    """
    Exception to signal that a stored column value could not be converted back
    into its declared attribute type.
    """


class TransactionStateError(BackupDBError):
    """
    Exception to signal misuse of a transaction handle, such as committing twice
    or writing through a handle that is already closed.
    """


class UnsupportedEntityError(BackupDBError):
    """
    Exception to signal that a class without a registered column descriptor was
    handed to the entity mapper.
    """
