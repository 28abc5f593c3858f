"""
Wire events exchanged over the tracker WebSocket.

Every frame is a JSON object tagged with an ``event`` key; the remaining
keys are the payload.
"""

from typing import Optional, List, Dict, Any, Protocol

from pydantic import BaseModel, Field

from tracker.registry import Connection, Role


# Inbound
REPORT_LOCATION = "report-location"
REQUEST_BUS_ROLE = "request-bus-role"
RELEASE_BUS_ROLE = "release-bus-role"
PING = "ping"

# Outbound
SNAPSHOT = "snapshot"
LOCATION_BROADCAST = "location-broadcast"
ROLE_CHANGED = "role-changed"
PEER_DISCONNECTED = "peer-disconnected"
PONG = "pong"


class MalformedEvent(ValueError):
    """Raised when an inbound frame cannot be decoded into an event."""


class LocationReport(BaseModel):
    """Payload of a report-location event."""
    lat: float = Field(..., ge=-90.0, le=90.0, strict=True, allow_inf_nan=False,
                       description="Latitude in degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, strict=True, allow_inf_nan=False,
                       description="Longitude in degrees")


class Notifier(Protocol):
    """Delivers an outbound event to a single connection without blocking."""

    def send(self, connection_id: str, message: Dict[str, Any]) -> None:
        ...


def event_name(frame: Any) -> str:
    """
    Extract the event tag from a decoded frame.

    Raises:
        MalformedEvent: If the frame is not an object with a string event tag
    """
    if not isinstance(frame, dict):
        raise MalformedEvent(f"frame is not an object: {type(frame).__name__}")

    name = frame.get('event')
    if not isinstance(name, str) or not name:
        raise MalformedEvent("frame has no event tag")

    return name


def snapshot(connections: List[Connection], bus_id: Optional[str], self_id: str) -> Dict[str, Any]:
    return {
        'event': SNAPSHOT,
        'connections': [c.to_dict() for c in connections],
        'busId': bus_id,
        'selfId': self_id
    }


def location_broadcast(connection_id: str, role: Role, lat: float, lon: float) -> Dict[str, Any]:
    return {
        'event': LOCATION_BROADCAST,
        'id': connection_id,
        'role': role.value,
        'lat': lat,
        'lon': lon
    }


def role_changed(connection_id: Optional[str], role: Role) -> Dict[str, Any]:
    """Role change notice; ``connection_id=None`` announces that no bus is designated."""
    return {
        'event': ROLE_CHANGED,
        'id': connection_id,
        'role': role.value
    }


def no_bus() -> Dict[str, Any]:
    return role_changed(None, Role.RIDER)


def peer_disconnected(connection_id: str) -> Dict[str, Any]:
    return {
        'event': PEER_DISCONNECTED,
        'id': connection_id
    }


def pong() -> Dict[str, Any]:
    return {'event': PONG}
