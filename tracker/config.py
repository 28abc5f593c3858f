"""
Server configuration for the bus tracker.

Defines all configuration parameters for the tracker server.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Dict, Any, List
import json


DEFAULT_ROUTES_FILE = str(Path(__file__).parent / "data" / "routes.json")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass
class ServerConfig:
    """
    Configuration for the tracker server.

    This includes network settings, CORS, the static route dataset and
    operational settings.
    """

    # Network settings
    host: str = "0.0.0.0"
    port: int = 3000

    # Browser access
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Static route/stop dataset
    routes_file: str = DEFAULT_ROUTES_FILE

    # Per-connection outbound buffer; messages beyond this are dropped
    outbound_queue_size: int = 256

    # Logging
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR

    def __post_init__(self):
        """Validate settings."""
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")

        if self.outbound_queue_size <= 0:
            raise ValueError("outbound_queue_size must be positive")

        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'ServerConfig':
        """
        Create config from environment variables.

        Reads PORT, HOST, CORS_ORIGINS (comma separated), ROUTES_FILE,
        OUTBOUND_QUEUE_SIZE and LOG_LEVEL; unset variables keep defaults.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            ServerConfig instance
        """
        environ = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}

        if environ.get("PORT"):
            kwargs['port'] = int(environ["PORT"])
        if environ.get("HOST"):
            kwargs['host'] = environ["HOST"]
        if environ.get("CORS_ORIGINS"):
            kwargs['cors_origins'] = [
                origin.strip() for origin in environ["CORS_ORIGINS"].split(",") if origin.strip()
            ]
        if environ.get("ROUTES_FILE"):
            kwargs['routes_file'] = environ["ROUTES_FILE"]
        if environ.get("OUTBOUND_QUEUE_SIZE"):
            kwargs['outbound_queue_size'] = int(environ["OUTBOUND_QUEUE_SIZE"])
        if environ.get("LOG_LEVEL"):
            kwargs['log_level'] = environ["LOG_LEVEL"]

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert config to dictionary.

        Returns:
            Configuration as dictionary
        """
        return {
            'host': self.host,
            'port': self.port,
            'cors_origins': list(self.cors_origins),
            'routes_file': self.routes_file,
            'outbound_queue_size': self.outbound_queue_size,
            'log_level': self.log_level
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ServerConfig':
        """
        Create config from dictionary.

        Unknown keys are rejected.

        Args:
            config_dict: Configuration dictionary

        Returns:
            ServerConfig instance
        """
        known = {f.name for f in fields(cls)}
        unknown = set(config_dict) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(sorted(unknown))}")
        return cls(**config_dict)

    @classmethod
    def from_json_file(cls, path: str) -> 'ServerConfig':
        """
        Load config from JSON file.

        Args:
            path: Path to JSON config file

        Returns:
            ServerConfig instance
        """
        with open(path, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ServerConfig(host='{self.host}', port={self.port}, "
            f"routes_file='{self.routes_file}')"
        )
