"""
Connection registry for the tracker server.

Keeps one in-memory entry per connected client:
- Role (rider or bus)
- Last reported location
- Connection timestamp
"""

from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging


logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Role a connection plays in the system."""
    RIDER = "rider"
    BUS = "bus"


@dataclass
class Location:
    """A reported GPS fix."""
    lat: float
    lon: float

    def to_dict(self) -> Dict[str, float]:
        return {'lat': self.lat, 'lon': self.lon}


@dataclass
class Connection:
    """State held for one connected client."""
    connection_id: str
    role: Role = Role.RIDER
    location: Optional[Location] = None
    connected_at: datetime = field(default_factory=datetime.now)

    @property
    def is_bus(self) -> bool:
        return self.role == Role.BUS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape used in snapshots and API responses."""
        return {
            'id': self.connection_id,
            'role': self.role.value,
            'location': self.location.to_dict() if self.location else None
        }


class ConnectionRegistry:
    """
    Registry of active connections.

    Operations on unknown connection ids never raise; they are logged and
    ignored, since location telemetry is best-effort.
    """

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def __contains__(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def __len__(self) -> int:
        return len(self._connections)

    def register(self, connection_id: str) -> Connection:
        """
        Register a new connection as a rider with no location.

        Args:
            connection_id: Unique connection identifier

        Returns:
            The registered Connection (the existing one if already present)
        """
        existing = self._connections.get(connection_id)
        if existing is not None:
            logger.warning(f"Connection already registered: {connection_id}")
            return existing

        connection = Connection(connection_id=connection_id)
        self._connections[connection_id] = connection
        logger.info(f"Connection registered: {connection_id} (total: {len(self._connections)})")
        return connection

    def get(self, connection_id: str) -> Optional[Connection]:
        """
        Get a connection.

        Args:
            connection_id: Connection identifier

        Returns:
            Connection or None if not found
        """
        return self._connections.get(connection_id)

    def update_location(self, connection_id: str, lat: float, lon: float) -> bool:
        """
        Record the latest location of a connection.

        Args:
            connection_id: Connection identifier
            lat: Latitude in degrees
            lon: Longitude in degrees

        Returns:
            True if updated, False if the connection is unknown
        """
        connection = self._connections.get(connection_id)

        if connection is None:
            logger.warning(f"Location update from unknown connection: {connection_id}")
            return False

        connection.location = Location(lat=lat, lon=lon)
        return True

    def set_role(self, connection_id: str, role: Role) -> bool:
        """
        Set the role of a connection.

        Args:
            connection_id: Connection identifier
            role: New role

        Returns:
            True if updated, False if the connection is unknown
        """
        connection = self._connections.get(connection_id)

        if connection is None:
            logger.warning(f"Role change for unknown connection: {connection_id}")
            return False

        connection.role = role
        return True

    def remove(self, connection_id: str) -> bool:
        """
        Remove a connection.

        Args:
            connection_id: Connection identifier

        Returns:
            True if removed, False if the connection is unknown
        """
        connection = self._connections.pop(connection_id, None)

        if connection is None:
            logger.warning(f"Remove of unknown connection: {connection_id}")
            return False

        logger.info(f"Connection removed: {connection_id} (total: {len(self._connections)})")
        return True

    def ids(self) -> List[str]:
        """Connection ids in registration order."""
        return list(self._connections)

    def all(self, role: Optional[Role] = None) -> List[Connection]:
        """
        Get all connections, optionally filtered by role.

        Args:
            role: Filter by role (None for all)

        Returns:
            List of Connection in registration order
        """
        connections = list(self._connections.values())
        if role is not None:
            connections = [c for c in connections if c.role == role]
        return connections

    def count(self) -> Dict[str, int]:
        """
        Get connection counts by role.

        Returns:
            Dictionary with counts: {'total': N, 'riders': M, 'buses': K}
        """
        buses = len(self.all(role=Role.BUS))
        return {
            'total': len(self._connections),
            'riders': len(self._connections) - buses,
            'buses': buses
        }
