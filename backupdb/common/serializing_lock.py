##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The process-wide mutex that serializes every store operation.

Reads are serialized along with writes because tag lookups, temporary-registry
lookups, and identity back-fill must observe a state consistent with any write
in flight. There is no timeout and no cancellation: callers block until the
lock is free.
"""

import logging
import threading
from functools import wraps
from typing import Any, Callable, TypeVar


LOG = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class SerializingLock:
    """
    A re-entrant mutex owned by one `BackupDatabase` and shared with its stores.

    Re-entrancy lets composite operations (e.g. adding a backup and then looking
    up its schedule) call other locked operations on the same thread.

    Methods:
        acquire: Block until the lock is held by the calling thread.
        release: Release one level of ownership.
        held_by_current_thread: Check whether the calling thread owns the lock.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._owner = None
        self._depth = 0

    def acquire(self):
        """Block until the lock is held by the calling thread."""
        self._lock.acquire()
        self._owner = threading.get_ident()
        self._depth += 1

    def release(self):
        """Release one level of ownership."""
        self._depth -= 1
        if self._depth == 0:
            self._owner = None
        self._lock.release()

    def held_by_current_thread(self) -> bool:
        """
        Check whether the calling thread currently owns the lock.

        Returns:
            True if the calling thread holds the lock, False otherwise.
        """
        return self._owner == threading.get_ident()

    def __enter__(self) -> "SerializingLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.release()


def serialized(method: F) -> F:
    """
    Decorator that runs an instance method under `self.lock`.

    Args:
        method: A method of an object exposing a `lock` attribute.

    Returns:
        The wrapped method.
    """

    @wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)

    return wrapper
