"""
Static route and stop catalog.

Routes are loaded once from a JSON file of the form::

    {
      "route_1": {
        "name": "Swargate - Shivajinagar",
        "color": "#e53935",
        "stops": [{"name": "...", "lat": 18.5, "lon": 73.8, "schedule": ["07:00"]}]
      }
    }

The catalog is served read-only and is independent of connection state.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
import json
import logging


logger = logging.getLogger(__name__)


@dataclass
class Stop:
    """A bus stop on a route."""
    name: str
    lat: float
    lon: float
    schedule: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Stop':
        return cls(
            name=data['name'],
            lat=float(data['lat']),
            lon=float(data['lon']),
            schedule=list(data.get('schedule', []))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'lat': self.lat,
            'lon': self.lon,
            'schedule': list(self.schedule)
        }


@dataclass
class Route:
    """A named sequence of stops."""
    route_id: str
    name: str
    stops: List[Stop]
    color: str = "#007cba"

    @classmethod
    def from_dict(cls, route_id: str, data: Dict[str, Any]) -> 'Route':
        return cls(
            route_id=route_id,
            name=data['name'],
            stops=[Stop.from_dict(s) for s in data.get('stops', [])],
            color=data.get('color', "#007cba")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.route_id,
            'name': self.name,
            'color': self.color,
            'stops': [s.to_dict() for s in self.stops]
        }


class RouteCatalog:
    """Read-only collection of routes keyed by route id."""

    def __init__(self, routes: Optional[List[Route]] = None):
        self._routes: Dict[str, Route] = {r.route_id: r for r in routes or []}

    def __len__(self) -> int:
        return len(self._routes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RouteCatalog':
        """
        Build a catalog from a mapping of route id to route data.

        Raises:
            ValueError: If a route is missing required fields
        """
        routes = []
        for route_id, route_data in data.items():
            try:
                routes.append(Route.from_dict(route_id, route_data))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"Invalid route '{route_id}': {e}") from e
        return cls(routes)

    @classmethod
    def from_json_file(cls, path: str) -> 'RouteCatalog':
        """
        Load catalog from JSON file.

        Args:
            path: Path to routes JSON file

        Returns:
            RouteCatalog instance
        """
        with open(path, 'r') as f:
            data = json.load(f)

        catalog = cls.from_dict(data)
        logger.info(f"Loaded {len(catalog)} routes from {path}")
        return catalog

    def get(self, route_id: str) -> Optional[Route]:
        return self._routes.get(route_id)

    def all(self) -> List[Route]:
        return list(self._routes.values())

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {route_id: route.to_dict() for route_id, route in self._routes.items()}
