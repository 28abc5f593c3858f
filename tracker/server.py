"""
Tracker server for real-time bus location sharing.

Provides a WebSocket endpoint for:
- Location reports and fan-out
- Bus role requests and releases
- Connection snapshots and departure notices

and REST endpoints for:
- Health and connection status
- The static route/stop catalog
"""

import argparse
import asyncio
import contextlib
import json
import logging
import uuid
from typing import Optional, Dict, Any
from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from tracker import __version__
from tracker.config import ServerConfig
from tracker.hub import TrackerHub
from tracker.routes import RouteCatalog


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# WebSocket connection manager

class ConnectionManager:
    """
    Manages WebSocket connections and their outbound queues.

    ``send`` only enqueues, so it never suspends the caller. A dedicated
    sender task per socket drains its queue.
    """

    def __init__(self, queue_size: int = 256):
        self.queue_size = queue_size
        self.active_connections: Dict[str, WebSocket] = {}
        self._queues: Dict[str, asyncio.Queue] = {}

    async def connect(self, websocket: WebSocket) -> str:
        """Accept new WebSocket connection and assign it a fresh id."""
        await websocket.accept()
        connection_id = uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        self._queues[connection_id] = asyncio.Queue(maxsize=self.queue_size)
        logger.info(f"WebSocket connected: {connection_id}. Total connections: {len(self.active_connections)}")
        return connection_id

    def disconnect(self, connection_id: str):
        """Remove WebSocket connection."""
        self.active_connections.pop(connection_id, None)
        self._queues.pop(connection_id, None)
        logger.info(f"WebSocket disconnected: {connection_id}. Total connections: {len(self.active_connections)}")

    def send(self, connection_id: str, message: Dict[str, Any]):
        """Queue a message for one connection; drops it if the queue is full."""
        queue = self._queues.get(connection_id)
        if queue is None:
            logger.debug(f"Dropping message for closed connection {connection_id}")
            return

        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbound queue full for {connection_id}, dropping '{message.get('event')}'")

    async def run_sender(self, connection_id: str):
        """
        Deliver queued messages to the socket until it closes.

        Returns after the first failed send, closing the socket with 1011.
        """
        websocket = self.active_connections.get(connection_id)
        queue = self._queues.get(connection_id)
        if websocket is None or queue is None:
            return

        while True:
            message = await queue.get()
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error sending to WebSocket {connection_id}: {e}")
                break

        try:
            await websocket.close(code=1011)
        except Exception as e:
            logger.debug(f"Error closing WebSocket {connection_id}: {e}")


# Global state
app_config: Optional[ServerConfig] = None
ws_manager: ConnectionManager = ConnectionManager()
hub: TrackerHub = TrackerHub(ws_manager)
route_catalog: RouteCatalog = RouteCatalog()


def setup_state(config: ServerConfig):
    """Create fresh in-memory state for the given configuration."""
    global app_config, ws_manager, hub, route_catalog

    app_config = config
    ws_manager = ConnectionManager(queue_size=config.outbound_queue_size)
    hub = TrackerHub(ws_manager)
    route_catalog = RouteCatalog.from_json_file(config.routes_file)


def configure(config: ServerConfig):
    """
    Apply configuration that must be in place before the app starts.

    Args:
        config: Server configuration
    """
    global app_config

    app_config = config
    logging.getLogger().setLevel(config.log_level)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


# Lifespan context manager

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan (startup/shutdown)."""
    # Startup
    logger.info("Starting tracker server...")
    setup_state(app_config or ServerConfig.from_env())
    logger.info("Tracker server started successfully")

    yield

    # Shutdown
    logger.info(f"Shutting down tracker server ({len(hub.registry)} connections open)")


# Create FastAPI app

app = FastAPI(
    title="Bus Tracker",
    description="Real-time bus location sharing server",
    version=__version__,
    lifespan=lifespan
)


# API Endpoints

@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Bus Tracker",
        "version": __version__,
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "connections": hub.registry.count(),
        "bus_id": hub.bus_id
    }


@app.get("/connections")
async def list_connections():
    """List all connected clients."""
    connections = hub.registry.all()

    return {
        "connections": [c.to_dict() for c in connections],
        "count": len(connections)
    }


@app.get("/connections/{connection_id}")
async def get_connection(connection_id: str):
    """
    Get one connected client.

    Returns 404 if the connection is not registered.
    """
    connection = hub.registry.get(connection_id)

    if connection is None:
        raise HTTPException(status_code=404, detail="Connection not found")

    return connection.to_dict()


@app.get("/bus")
async def get_bus():
    """Current bus designation."""
    bus_id = hub.bus_id
    connection = hub.registry.get(bus_id) if bus_id else None

    return {
        "bus_id": bus_id,
        "connection": connection.to_dict() if connection else None
    }


@app.get("/routes")
async def list_routes():
    """Static route catalog keyed by route id."""
    return {
        "routes": route_catalog.to_dict(),
        "count": len(route_catalog)
    }


@app.get("/routes/{route_id}")
async def get_route(route_id: str):
    """
    Get one route with its stops.

    Returns 404 if the route is not in the catalog.
    """
    route = route_catalog.get(route_id)

    if route is None:
        raise HTTPException(status_code=404, detail="Route not found")

    return route.to_dict()


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for location sharing.

    Inbound events:
    - report-location: {lat, lon}
    - request-bus-role: become the bus
    - release-bus-role: stop being the bus
    - ping: keep-alive, answered with pong

    Outbound events:
    - snapshot: all connections and current bus, sent once on connect
    - location-broadcast: another client's location
    - role-changed: bus designation changes
    - peer-disconnected: another client left
    """
    manager = ws_manager
    connection_id = await manager.connect(websocket)
    sender = asyncio.create_task(manager.run_sender(connection_id))
    receiver = asyncio.create_task(receive_frames(websocket, connection_id))

    hub.connect(connection_id)

    try:
        # Either the client leaves or a send to it fails
        await asyncio.wait({receiver, sender}, return_when=asyncio.FIRST_COMPLETED)

    finally:
        hub.disconnect(connection_id)
        manager.disconnect(connection_id)
        receiver.cancel()
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(receiver, sender, return_exceptions=True)


async def receive_frames(websocket: WebSocket, connection_id: str):
    """Dispatch inbound text frames until the client disconnects."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return

        text = message.get("text")
        if text is None:
            logger.warning(f"Dropping binary frame from {connection_id}")
            continue

        try:
            frame = json.loads(text)
        except json.JSONDecodeError:
            logger.warning(f"Dropping non-JSON frame from {connection_id}")
            continue

        try:
            hub.dispatch(connection_id, frame)
        except Exception:
            logger.exception(f"Error handling frame from {connection_id}")


# Development server

def run_server(config: Optional[ServerConfig] = None):
    """
    Run the tracker server.

    Args:
        config: Server configuration (default: read from environment)
    """
    config = config or ServerConfig.from_env()
    configure(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


def main():
    parser = argparse.ArgumentParser(description="Bus tracker server")
    parser.add_argument("--config", help="Path to JSON config file")
    parser.add_argument("--host", help="Host to bind to")
    parser.add_argument("--port", type=int, help="Port to bind to")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    args = parser.parse_args()

    if args.config:
        config = ServerConfig.from_json_file(args.config)
    else:
        config = ServerConfig.from_env()

    overrides = config.to_dict()
    if args.host:
        overrides['host'] = args.host
    if args.port:
        overrides['port'] = args.port
    if args.log_level:
        overrides['log_level'] = args.log_level

    run_server(ServerConfig.from_dict(overrides))


if __name__ == "__main__":
    main()
