"""
Distance and arrival-time estimates between GPS points.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Any


EARTH_RADIUS_KM = 6371.0

Point = Tuple[float, float]


@dataclass
class Eta:
    """Estimated arrival of a bus at a point."""
    distance_km: float
    minutes: float
    eta_text: str

    def to_dict(self):
        return {
            'distance': round(self.distance_km, 3),
            'minutes': round(self.minutes, 1),
            'etaText': self.eta_text
        }


def haversine_km(a: Point, b: Point) -> float:
    """
    Great-circle distance between two (lat, lon) points.

    Args:
        a: First point in degrees
        b: Second point in degrees

    Returns:
        Distance in kilometres
    """
    lat1, lon1 = map(math.radians, a)
    lat2, lon2 = map(math.radians, b)

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2

    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def format_eta(minutes: float) -> str:
    if minutes < 1:
        return "Arriving"
    rounded = round(minutes)
    if rounded < 60:
        return f"{rounded} min"
    hours, rest = divmod(rounded, 60)
    return f"{hours} h {rest} min"


def estimate_eta(distance_km: float, speed_kmh: float) -> Eta:
    """
    Estimate time to cover a distance at a constant average speed.

    Raises:
        ValueError: If speed is not positive or distance is negative
    """
    if speed_kmh <= 0:
        raise ValueError("speed_kmh must be positive")
    if distance_km < 0:
        raise ValueError("distance_km must not be negative")

    minutes = distance_km / speed_kmh * 60
    return Eta(distance_km=distance_km, minutes=minutes, eta_text=format_eta(minutes))


def format_distance(km: Any) -> str:
    """Human-readable distance: metres below 1 km, one decimal of km above."""
    try:
        value = float(km)
    except (TypeError, ValueError):
        return "--"

    if not math.isfinite(value) or value < 0:
        return "--"
    if value < 1:
        return f"{round(value * 1000)}m"
    return f"{value:.1f}km"


def nearest_stop(point: Point, stops: Sequence[Any]) -> Optional[Any]:
    """
    Find the stop closest to a point.

    Args:
        point: (lat, lon) in degrees
        stops: Objects with ``lat`` and ``lon`` attributes

    Returns:
        The nearest stop, or None if there are no stops
    """
    if not stops:
        return None
    return min(stops, key=lambda s: haversine_km(point, (s.lat, s.lon)))
