"""
Rider client for the bus tracker.

Connects to the tracker WebSocket, keeps a view of peers and the bus, and
estimates the bus's distance and arrival time.
"""
