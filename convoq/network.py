"""
Connectivity monitor.

The host reports reachability changes through set_connected(); listeners run
on every transition (not on repeated reports of the same state).
"""

from __future__ import annotations

from collections.abc import Callable

from convoq.observability.logging import get_logger
from convoq.observability.telemetry import counter

logger = get_logger(__name__)

ConnectivityListener = Callable[[bool], None]


class NetworkMonitor:
    def __init__(self, connected: bool = True):
        self._connected = connected
        self._listeners: list[ConnectivityListener] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    def add_listener(self, listener: ConnectivityListener) -> Callable[[], None]:
        """Register `listener(connected)`. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def set_connected(self, connected: bool) -> None:
        """
        Record a reachability report from the host.

        Side Effects:
            - Calls every listener when the state changes
            - Listener failures are logged, not raised
        """
        if connected == self._connected:
            return

        self._connected = connected
        counter("network.restored" if connected else "network.lost")
        logger.info("Network %s", "restored" if connected else "lost")

        for listener in list(self._listeners):
            try:
                listener(connected)
            except Exception as e:
                logger.error("Connectivity listener failed: %s", e)
