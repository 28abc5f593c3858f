"""
WebSocket client for the tracker server.

Keeps a local view of every peer, the current bus and this client's own
role, and answers "how far away is the bus" from the last location this
client reported.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable

import websockets

from rider.config import RiderConfig
from rider.geo import Eta, Point, estimate_eta, haversine_km


logger = logging.getLogger(__name__)


@dataclass
class PeerState:
    """What this client knows about another connection."""
    role: str = "rider"
    location: Optional[Point] = None


class TrackerClient:
    """
    Client for one tracker connection.

    ``handle_event`` applies a decoded server event to the local view and
    has no I/O, so the view can be driven without a socket.
    """

    def __init__(
        self,
        config: Optional[RiderConfig] = None,
        on_event: Optional[Callable[[Dict[str, Any]], None]] = None
    ):
        """
        Initialize tracker client.

        Args:
            config: Client configuration
            on_event: Called with every server event after it is applied
        """
        self.config = config or RiderConfig()
        self.on_event = on_event

        self.connection_id: Optional[str] = None
        self.role = "rider"
        self.bus_id: Optional[str] = None
        self.location: Optional[Point] = None
        self.peers: Dict[str, PeerState] = {}

        self._websocket = None

    @property
    def is_bus(self) -> bool:
        return self.role == "bus"

    @property
    def connected(self) -> bool:
        return self._websocket is not None

    async def connect(self):
        """Open the WebSocket connection."""
        self._websocket = await websockets.connect(self.config.server_url)
        logger.info(f"Connected to tracker at {self.config.server_url}")

    async def close(self):
        """Close the WebSocket connection."""
        if self._websocket is not None:
            await self._websocket.close()
            self._websocket = None
            logger.info("Disconnected from tracker")

    async def _send(self, message: Dict[str, Any]):
        if self._websocket is None:
            raise RuntimeError("Client is not connected")
        await self._websocket.send(json.dumps(message))

    async def report_location(self, lat: float, lon: float):
        """Send this client's location to the server."""
        self.location = (lat, lon)
        await self._send({'event': 'report-location', 'lat': lat, 'lon': lon})

    async def request_bus_role(self):
        await self._send({'event': 'request-bus-role'})

    async def release_bus_role(self):
        await self._send({'event': 'release-bus-role'})

    async def ping(self):
        await self._send({'event': 'ping'})

    async def listen(self):
        """Apply server events until the connection closes."""
        if self._websocket is None:
            raise RuntimeError("Client is not connected")

        try:
            async for message in self._websocket:
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.warning(f"Failed to parse message: {message}")
                    continue
                if not isinstance(data, dict):
                    logger.warning(f"Ignoring non-object message: {message}")
                    continue
                self.handle_event(data)

        except websockets.exceptions.ConnectionClosed:
            logger.warning("Connection to tracker closed")
        finally:
            self._websocket = None

    async def run(self):
        """Connect and listen, reconnecting after the connection drops."""
        while True:
            try:
                await self.connect()
                await self.listen()
            except (OSError, websockets.exceptions.WebSocketException) as e:
                logger.error(f"WebSocket error: {e}")

            logger.info(f"Reconnecting in {self.config.reconnect_delay}s...")
            await asyncio.sleep(self.config.reconnect_delay)

    def handle_event(self, data: Dict[str, Any]):
        """
        Apply one server event to the local view.

        Args:
            data: Decoded event frame
        """
        event = data.get('event')

        if event == 'snapshot':
            self._apply_snapshot(data)
        elif event == 'location-broadcast':
            peer = self.peers.setdefault(data['id'], PeerState())
            peer.role = data.get('role', peer.role)
            peer.location = (data['lat'], data['lon'])
        elif event == 'role-changed':
            self._apply_role_change(data.get('id'), data.get('role'))
        elif event == 'peer-disconnected':
            self.peers.pop(data.get('id'), None)
            if self.bus_id == data.get('id'):
                self.bus_id = None
        elif event == 'pong':
            pass
        else:
            logger.debug(f"Ignoring event: {event}")

        if self.on_event is not None:
            self.on_event(data)

    def _apply_snapshot(self, data: Dict[str, Any]):
        # A snapshot marks a new session: nothing from a previous one survives.
        self.connection_id = data.get('selfId')
        self.bus_id = data.get('busId')
        self.role = "bus" if self.bus_id and self.bus_id == self.connection_id else "rider"
        self.peers = {}

        for entry in data.get('connections', []):
            if entry['id'] == self.connection_id:
                continue
            location = entry.get('location')
            self.peers[entry['id']] = PeerState(
                role=entry.get('role', "rider"),
                location=(location['lat'], location['lon']) if location else None
            )

    def _apply_role_change(self, connection_id: Optional[str], role: Optional[str]):
        if connection_id is None:
            # No bus designated
            if self.bus_id in self.peers:
                self.peers[self.bus_id].role = "rider"
            self.bus_id = None
            self.role = "rider"
            return

        if role == "bus":
            if self.bus_id in self.peers:
                self.peers[self.bus_id].role = "rider"
            self.bus_id = connection_id
        elif self.bus_id == connection_id:
            self.bus_id = None

        if connection_id == self.connection_id:
            self.role = role
        else:
            self.peers.setdefault(connection_id, PeerState()).role = role
            if role == "bus":
                self.role = "rider"

    def bus_location(self) -> Optional[Point]:
        """Last known location of the bus, if there is one and it has reported."""
        if self.bus_id is None or self.bus_id == self.connection_id:
            return None
        peer = self.peers.get(self.bus_id)
        return peer.location if peer else None

    def distance_to_bus(self) -> Optional[float]:
        """Kilometres from this client's last reported location to the bus."""
        bus = self.bus_location()
        if bus is None or self.location is None:
            return None
        return haversine_km(self.location, bus)

    def eta_to_bus(self) -> Optional[Eta]:
        """Estimated time for the bus to reach this client."""
        distance = self.distance_to_bus()
        if distance is None:
            return None
        return estimate_eta(distance, self.config.average_speed_kmh)
