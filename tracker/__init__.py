"""
Tracker server for real-time bus location sharing.

The server is responsible for:
- Connection registration and state snapshots
- Location fan-out between connected clients
- Single bus role designation and hand-off
- Serving the static route/stop catalog
"""

__version__ = "0.1.0"
