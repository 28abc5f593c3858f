"""
Connection lifecycle and inbound event dispatch.

The hub ties the registry, role coordinator and location broadcaster
together. Each method runs to completion on the event loop: state is
mutated and outbound events are queued before it returns.
"""

from typing import Any, Dict, Optional
import logging

from pydantic import ValidationError

from tracker import events
from tracker.broadcaster import LocationBroadcaster
from tracker.coordinator import RoleCoordinator
from tracker.events import MalformedEvent, Notifier, LocationReport
from tracker.registry import ConnectionRegistry, Connection


logger = logging.getLogger(__name__)


class TrackerHub:
    """
    Entry point for everything a client connection does.

    Typical usage from a transport:

        hub.connect(connection_id)
        for frame in incoming:
            hub.dispatch(connection_id, frame)
        hub.disconnect(connection_id)
    """

    def __init__(self, notifier: Notifier, registry: Optional[ConnectionRegistry] = None):
        self.notifier = notifier
        self.registry = registry if registry is not None else ConnectionRegistry()
        self.coordinator = RoleCoordinator(self.registry, notifier)
        self.broadcaster = LocationBroadcaster(self.registry, notifier)

        self._handlers = {
            events.REPORT_LOCATION: self._on_report_location,
            events.REQUEST_BUS_ROLE: self._on_request_bus_role,
            events.RELEASE_BUS_ROLE: self._on_release_bus_role,
            events.PING: self._on_ping,
        }

    @property
    def bus_id(self) -> Optional[str]:
        return self.coordinator.bus_id

    def connect(self, connection_id: str) -> Connection:
        """
        Register a new connection and send it the current state.

        Args:
            connection_id: Fresh connection identifier

        Returns:
            The registered Connection
        """
        connection = self.registry.register(connection_id)
        self.notifier.send(
            connection_id,
            events.snapshot(self.registry.all(), self.coordinator.bus_id, connection_id)
        )
        return connection

    def disconnect(self, connection_id: str) -> None:
        """
        Tear down a connection: release the bus role, forget it, tell peers.

        Args:
            connection_id: Departing connection identifier
        """
        if connection_id not in self.registry:
            logger.warning(f"Disconnect of unknown connection: {connection_id}")
            return

        self.coordinator.on_disconnect(connection_id)
        self.registry.remove(connection_id)

        message = events.peer_disconnected(connection_id)
        for peer_id in self.registry.ids():
            self.notifier.send(peer_id, message)

    def dispatch(self, connection_id: str, frame: Any) -> bool:
        """
        Handle one decoded inbound frame.

        Malformed frames, unknown events and events from connections that
        are no longer registered are logged and dropped. Nothing is ever
        sent back to the client about a dropped frame.

        Args:
            connection_id: Sending connection
            frame: Decoded JSON frame

        Returns:
            True if the frame was handled, False if it was dropped
        """
        if connection_id not in self.registry:
            logger.warning(f"Dropping event from unknown connection: {connection_id}")
            return False

        try:
            name = events.event_name(frame)
        except MalformedEvent as e:
            logger.warning(f"Dropping malformed frame from {connection_id}: {e}")
            return False

        handler = self._handlers.get(name)
        if handler is None:
            logger.warning(f"Dropping unknown event '{name}' from {connection_id}")
            return False

        try:
            handler(connection_id, frame)
        except (MalformedEvent, ValidationError) as e:
            logger.warning(f"Dropping invalid '{name}' from {connection_id}: {e}")
            return False

        return True

    def _on_report_location(self, connection_id: str, frame: Dict[str, Any]):
        report = LocationReport.model_validate(frame)
        self.broadcaster.report(connection_id, report.lat, report.lon)

    def _on_request_bus_role(self, connection_id: str, frame: Dict[str, Any]):
        self.coordinator.promote(connection_id)

    def _on_release_bus_role(self, connection_id: str, frame: Dict[str, Any]):
        self.coordinator.demote(connection_id)

    def _on_ping(self, connection_id: str, frame: Dict[str, Any]):
        self.notifier.send(connection_id, events.pong())
