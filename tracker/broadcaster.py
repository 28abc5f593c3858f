"""
Location fan-out.

Relays each location report to every other connection. Delivery is
best-effort with no sequencing; receivers keep whatever arrived last.
"""

import logging

from tracker import events
from tracker.events import Notifier
from tracker.registry import ConnectionRegistry


logger = logging.getLogger(__name__)


class LocationBroadcaster:
    """Records location reports and forwards them to peers."""

    def __init__(self, registry: ConnectionRegistry, notifier: Notifier):
        self.registry = registry
        self.notifier = notifier

    def report(self, connection_id: str, lat: float, lon: float) -> int:
        """
        Record a location and send it to all other connections.

        Args:
            connection_id: Reporting connection
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            Number of peers the update was sent to
        """
        if not self.registry.update_location(connection_id, lat, lon):
            return 0

        connection = self.registry.get(connection_id)
        message = events.location_broadcast(connection_id, connection.role, lat, lon)

        sent = 0
        for peer_id in self.registry.ids():
            if peer_id == connection_id:
                continue
            self.notifier.send(peer_id, message)
            sent += 1

        logger.debug(f"Location from {connection_id} ({connection.role.value}) sent to {sent} peers")
        return sent
