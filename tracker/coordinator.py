"""
Bus role coordination.

Exactly zero or one connection holds the bus role at a time. A promotion
request always wins: the previous holder is demoted and told so, and every
connection learns the new designation.
"""

from typing import Optional
import logging

from tracker import events
from tracker.events import Notifier
from tracker.registry import ConnectionRegistry, Role


logger = logging.getLogger(__name__)


class RoleCoordinator:
    """
    Owns the single bus designation.

    All methods are synchronous and complete without suspending, so calls
    made from the event loop never interleave.
    """

    def __init__(self, registry: ConnectionRegistry, notifier: Notifier):
        """
        Initialize role coordinator.

        Args:
            registry: Connection registry holding per-connection roles
            notifier: Outbound delivery for role change events
        """
        self.registry = registry
        self.notifier = notifier
        self._bus_id: Optional[str] = None

    @property
    def bus_id(self) -> Optional[str]:
        """Id of the connection currently designated bus, if any."""
        return self._bus_id

    def _broadcast(self, message, exclude: Optional[str] = None):
        for connection_id in self.registry.ids():
            if connection_id != exclude:
                self.notifier.send(connection_id, message)

    def promote(self, connection_id: str) -> bool:
        """
        Designate a connection as the bus, displacing any current holder.

        Args:
            connection_id: Connection requesting the bus role

        Returns:
            True if the connection is now the bus, False if it is unknown
        """
        if connection_id not in self.registry:
            logger.warning(f"Bus role requested by unknown connection: {connection_id}")
            return False

        previous = self._bus_id
        if previous is not None and previous != connection_id:
            self.registry.set_role(previous, Role.RIDER)
            self._bus_id = None
            self.notifier.send(previous, events.role_changed(previous, Role.RIDER))
            logger.info(f"Bus role taken from {previous}")

        self.registry.set_role(connection_id, Role.BUS)
        self._bus_id = connection_id

        if previous == connection_id:
            logger.info(f"Bus role re-announced for {connection_id}")
        else:
            logger.info(f"Bus role assigned to {connection_id}")

        self._broadcast(events.role_changed(connection_id, Role.BUS))
        return True

    def demote(self, connection_id: str) -> bool:
        """
        Release the bus role held by a connection.

        No-op if the connection is not the current bus.

        Args:
            connection_id: Connection releasing the bus role

        Returns:
            True if the designation was cleared
        """
        if self._bus_id is None or self._bus_id != connection_id:
            logger.debug(f"Ignoring bus release from non-bus connection: {connection_id}")
            return False

        self._bus_id = None
        self.registry.set_role(connection_id, Role.RIDER)
        self.notifier.send(connection_id, events.role_changed(connection_id, Role.RIDER))
        self._broadcast(events.no_bus())

        logger.info(f"Bus role released by {connection_id}")
        return True

    def on_disconnect(self, connection_id: str) -> bool:
        """
        Clear the designation if the departing connection held it.

        Must run before the connection is removed from the registry; the
        departing connection is not notified.

        Args:
            connection_id: Departing connection

        Returns:
            True if the departing connection was the bus
        """
        if self._bus_id is None or self._bus_id != connection_id:
            return False

        self._bus_id = None
        self.registry.set_role(connection_id, Role.RIDER)
        self._broadcast(events.no_bus(), exclude=connection_id)

        logger.info(f"Bus {connection_id} disconnected, no bus designated")
        return True
