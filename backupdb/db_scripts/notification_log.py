##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
The operator-visible notification log.

Registering a notification asks a `ConflictPolicy` how the candidate relates to
what is already stored, so deduplication rules stay outside the log. Whether an
error or a warning is still waiting to be dismissed is kept in the application
settings and recomputed on every dismissal.
"""

import logging
import traceback
from typing import Callable, List, Optional, Union

from backupdb.backends.sqlite.schema import NOTIFICATION
from backupdb.backends.upsert_engine import UpsertEngine
from backupdb.common.enums import NotificationType
from backupdb.db_scripts.conflict_policies import (
    CallablePolicy,
    ConflictAction,
    ConflictPolicy,
    KeepNewPolicy,
)
from backupdb.db_scripts.data_models import Notification
from backupdb.db_scripts.server_settings import UNACKED_ERROR, UNACKED_WARNING, ServerSettings
from backupdb.db_scripts.update_notifier import UpdateNotifier
from backupdb.utils import UNSET_TIMESTAMP, utcnow


LOG = logging.getLogger(__name__)

PolicyLike = Union[ConflictPolicy, Callable[[Notification, List[Notification]], Optional[Notification]]]


def _as_policy(policy: Optional[PolicyLike]) -> ConflictPolicy:
    if policy is None:
        return KeepNewPolicy()
    if isinstance(policy, ConflictPolicy):
        return policy
    return CallablePolicy(policy)


def format_exception(exc: Optional[BaseException]) -> str:
    """
    Render an exception (with traceback) as notification text.

    Args:
        exc: The exception, or None.

    Returns:
        The formatted exception, or an empty string.
    """
    if exc is None:
        return ""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).strip()


class NotificationLog:
    """
    Append-only log of notifications with policy-driven conflict handling.

    Attributes:
        engine (UpsertEngine): Runs every statement under the store lock.
        settings (ServerSettings): Holds the unacknowledged error/warning flags.
        notifier (UpdateNotifier): Bumped after every committed change.

    Methods:
        get_notifications: Every stored notification.
        register: Store a notification, subject to a conflict policy.
        notify: Build a notification from its fields and register it.
        dismiss: Delete a notification and recompute the unacknowledged flags.
    """

    def __init__(self, engine: UpsertEngine, settings: ServerSettings, notifier: UpdateNotifier):
        self.engine: UpsertEngine = engine
        self.settings: ServerSettings = settings
        self.notifier: UpdateNotifier = notifier

    def get_notifications(self) -> List[Notification]:
        """Every stored notification, oldest first."""
        return self.engine.read(NOTIFICATION)

    def register(self, notification: Notification, policy: PolicyLike = None) -> Optional[Notification]:
        """
        Store a notification unless the conflict policy drops it.

        Args:
            notification: The candidate. Its identity is ignored and it is
                timestamped now when it has no timestamp.
            policy: A `ConflictPolicy`, or a plain handler function. Defaults to
                storing every candidate.

        Returns:
            The stored notification with its identity set, or None if the
            policy dropped it.
        """
        policy = _as_policy(policy)
        notification.id = None
        if notification.timestamp is None or notification.timestamp == UNSET_TIMESTAMP:
            notification.timestamp = utcnow()

        with self.engine.lock:
            decision = policy.resolve(notification, self.get_notifications())
            if decision.action is ConflictAction.KEEP_EXISTING:
                LOG.debug(f"Notification '{notification.title}' dropped in favour of {decision.existing_id}.")
                return None

            with self.engine.connection.begin() as transaction:
                if decision.action is ConflictAction.REPLACE:
                    self.engine.delete_by_id_in(transaction, NOTIFICATION.table, decision.existing_id)
                self.engine.write_entities_in(transaction, NOTIFICATION, [notification])

                if notification.type is NotificationType.ERROR:
                    self.settings.set_in(transaction, UNACKED_ERROR, "true")
                elif notification.type is NotificationType.WARNING:
                    self.settings.set_in(transaction, UNACKED_WARNING, "true")

        LOG.info(f"Registered {notification.type.value.lower()} notification '{notification.title}'.")
        self.notifier.notifications_changed()
        return notification

    def notify(  # pylint: disable=too-many-arguments
        self,
        notification_type: NotificationType,
        title: str,
        message: str,
        exception: BaseException = None,
        backup_id: str = None,
        action: str = None,
        log_entry_id: str = None,
        message_id: str = None,
        message_log_tag: str = None,
        policy: PolicyLike = None,
    ) -> Optional[Notification]:
        """
        Build a notification from its fields and register it.

        Args:
            notification_type: Information, warning or error.
            title: A short headline.
            message: The full message.
            exception: The exception that caused the notification, if any.
            backup_id: The backup the notification is about, if any.
            action: A tag the UI uses to offer a follow-up action.
            log_entry_id: Correlates with a backup log entry.
            message_id: Correlates with a message in the backup log.
            message_log_tag: The log tag of the originating message.
            policy: How to handle conflicts with stored notifications.

        Returns:
            The stored notification, or None if the policy dropped it.
        """
        notification = Notification(
            type=notification_type,
            title=title,
            message=message,
            exception=format_exception(exception),
            backup_id=backup_id,
            action=action or "",
            timestamp=utcnow(),
            log_entry_id=log_entry_id,
            message_id=message_id,
            message_log_tag=message_log_tag,
        )
        return self.register(notification, policy)

    def dismiss(self, notification_id: int) -> bool:
        """
        Delete a notification and recompute the unacknowledged flags.

        Args:
            notification_id: The notification to delete.

        Returns:
            False if no notification has this identity, True otherwise.
        """
        with self.engine.lock:
            notifications = self.get_notifications()
            if not any(notification.id == notification_id for notification in notifications):
                return False

            remaining = [notification for notification in notifications if notification.id != notification_id]
            has_error = any(notification.type is NotificationType.ERROR for notification in remaining)
            has_warning = any(notification.type is NotificationType.WARNING for notification in remaining)

            with self.engine.connection.begin() as transaction:
                self.engine.delete_by_id_in(transaction, NOTIFICATION.table, notification_id)
                self.settings.set_in(transaction, UNACKED_ERROR, "true" if has_error else "false")
                self.settings.set_in(transaction, UNACKED_WARNING, "true" if has_warning else "false")

        LOG.info(f"Dismissed notification {notification_id}.")
        self.notifier.notifications_changed()
        return True
