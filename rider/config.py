"""
Rider client configuration.
"""

from dataclasses import dataclass
from typing import Dict, Any


@dataclass
class RiderConfig:
    """Settings for a tracker client."""

    server_url: str = "ws://localhost:3000/ws"
    average_speed_kmh: float = 20.0  # used for ETA estimates
    report_interval: float = 2.0  # seconds between location reports
    reconnect_delay: float = 5.0  # seconds

    def __post_init__(self):
        if not self.server_url.startswith(("ws://", "wss://")):
            raise ValueError(f"server_url must be a ws:// or wss:// URL, got {self.server_url}")
        if self.average_speed_kmh <= 0:
            raise ValueError("average_speed_kmh must be positive")
        if self.report_interval <= 0:
            raise ValueError("report_interval must be positive")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'RiderConfig':
        return cls(**config_dict)
