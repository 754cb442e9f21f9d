##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Policies deciding what happens when a notification is registered.

A policy sees the candidate notification and every notification already stored
and answers with a `ConflictDecision`:

- `keep_new()`: store the candidate.
- `keep_existing(id)`: leave the stored notification alone and drop the candidate.
- `drop()`: drop the candidate.
- `replace(id)`: delete the stored notification, then store the candidate.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from backupdb.common.enums import NotificationType
from backupdb.db_scripts.data_models import Notification


LOG = logging.getLogger(__name__)


class ConflictAction(Enum):
    """What to do with a candidate notification."""

    KEEP_NEW = "keep_new"
    KEEP_EXISTING = "keep_existing"
    REPLACE = "replace"


@dataclass(frozen=True)
class ConflictDecision:
    """
    The outcome of a conflict policy.

    Attributes:
        action: What to do with the candidate.
        existing_id: The stored notification the action refers to, if any.
    """

    action: ConflictAction
    existing_id: Optional[int] = None

    @classmethod
    def keep_new(cls) -> "ConflictDecision":
        """Store the candidate."""
        return cls(ConflictAction.KEEP_NEW)

    @classmethod
    def keep_existing(cls, existing_id: int) -> "ConflictDecision":
        """Drop the candidate in favour of a stored notification."""
        return cls(ConflictAction.KEEP_EXISTING, existing_id)

    @classmethod
    def drop(cls) -> "ConflictDecision":
        """Drop the candidate without naming a stored notification."""
        return cls(ConflictAction.KEEP_EXISTING)

    @classmethod
    def replace(cls, existing_id: int) -> "ConflictDecision":
        """Delete a stored notification and store the candidate."""
        return cls(ConflictAction.REPLACE, existing_id)


class ConflictPolicy(ABC):
    """
    Decides how a candidate notification relates to the stored ones.

    Methods:
        resolve: Return the decision for a candidate.
    """

    @abstractmethod
    def resolve(self, candidate: Notification, existing: List[Notification]) -> ConflictDecision:
        """
        Decide what to do with a candidate notification.

        Args:
            candidate: The notification being registered. It has no identity yet.
            existing: Every stored notification.

        Returns:
            The decision.
        """
        raise NotImplementedError("Subclasses of `ConflictPolicy` must implement a `resolve` method.")


class KeepNewPolicy(ConflictPolicy):
    """Always store the candidate."""

    def resolve(self, candidate: Notification, existing: List[Notification]) -> ConflictDecision:
        return ConflictDecision.keep_new()


class ReplaceExistingPolicy(ConflictPolicy):
    """
    Replace the first stored notification that matches the candidate.

    By default two notifications match when they have the same type, title and
    backup. Pass `match` to compare differently.
    """

    def __init__(self, match: Callable[[Notification, Notification], bool] = None):
        self.match = match or self._same_subject

    @staticmethod
    def _same_subject(candidate: Notification, stored: Notification) -> bool:
        return (
            candidate.type == stored.type
            and candidate.title == stored.title
            and candidate.backup_id == stored.backup_id
        )

    def resolve(self, candidate: Notification, existing: List[Notification]) -> ConflictDecision:
        for stored in existing:
            if self.match(candidate, stored):
                return ConflictDecision.replace(stored.id)
        return ConflictDecision.keep_new()


class SingleActiveErrorPolicy(ConflictPolicy):
    """
    Keep at most one error notification per backup.

    A new error for a backup that already has one replaces it. Other types are
    always stored.
    """

    def resolve(self, candidate: Notification, existing: List[Notification]) -> ConflictDecision:
        if candidate.type is not NotificationType.ERROR:
            return ConflictDecision.keep_new()
        for stored in existing:
            if stored.type is NotificationType.ERROR and stored.backup_id == candidate.backup_id:
                return ConflictDecision.replace(stored.id)
        return ConflictDecision.keep_new()


class CallablePolicy(ConflictPolicy):
    """
    Adapt a plain function `(candidate, existing) -> Notification | None`.

    Returning the candidate stores it, returning None drops it, and returning a
    stored notification replaces that notification with the candidate.
    """

    def __init__(self, handler: Callable[[Notification, List[Notification]], Optional[Notification]]):
        self.handler = handler

    def resolve(self, candidate: Notification, existing: List[Notification]) -> ConflictDecision:
        result = self.handler(candidate, existing)
        if result is None:
            return ConflictDecision.drop()
        if result is candidate:
            return ConflictDecision.keep_new()
        return ConflictDecision.replace(result.id)
