##############################################################################
# Copyright (c) Lawrence Livermore National Security, LLC and other Merlin
# Project developers. See top-level LICENSE and COPYRIGHT files for dates and
# other details. No copyright assignment is required to contribute to Merlin.
##############################################################################

"""
Change counters and the "something changed" signal.

Other components compare the counters with the values they saw last to detect
stale state without reading full content. The signal carries no payload; how
repeated signals are coalesced is up to whatever receives them.
"""

import logging
import threading
from typing import Callable, Optional


LOG = logging.getLogger(__name__)

SignalSink = Callable[[], None]


class UpdateNotifier:
    """
    Two monotonically increasing counters plus a payload-free signal.

    Attributes:
        last_data_update_id (int): Bumped on every configuration change.
        last_notification_update_id (int): Bumped on every notification change.

    Methods:
        data_changed: Record a configuration change and signal observers.
        notifications_changed: Record a notification change and signal observers.
        signal: Emit the change signal without touching the counters.
    """

    def __init__(self, sink: Optional[SignalSink] = None):
        """
        Initialize the notifier.

        Args:
            sink: Called with no arguments whenever something changed.
        """
        self._sink: Optional[SignalSink] = sink
        self._counter_lock = threading.Lock()
        self.last_data_update_id: int = 0
        self.last_notification_update_id: int = 0

    def data_changed(self) -> int:
        """
        Record a configuration change and signal observers.

        Returns:
            The new configuration counter value.
        """
        with self._counter_lock:
            self.last_data_update_id += 1
            value = self.last_data_update_id
        self.signal()
        return value

    def notifications_changed(self) -> int:
        """
        Record a notification change and signal observers.

        Returns:
            The new notification counter value.
        """
        with self._counter_lock:
            self.last_notification_update_id += 1
            value = self.last_notification_update_id
        self.signal()
        return value

    def signal(self):
        """
        Emit the change signal.

        The change has already been committed when this runs. A failing sink is
        logged and never raised to the caller.
        """
        if self._sink is None:
            return
        try:
            self._sink()
        except Exception:  # pylint: disable=broad-except
            LOG.warning("The change signal sink failed.", exc_info=True)
