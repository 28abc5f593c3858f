"""
Simulate a bus driving a route while riders watch it approach.

Starts one client that takes the bus role and moves between the stops of a
catalog route, plus a number of rider clients standing at random stops that
log their distance and ETA to the bus.

Usage:
    # Terminal 1: Start tracker
    python -m tracker.server

    # Terminal 2: Run the simulation
    python scripts/simulate_bus.py --route route_1 --riders 2
"""

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path
from typing import List

import httpx

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from rider.client import TrackerClient
from rider.config import RiderConfig
from rider.geo import format_distance
from tracker.routes import Route

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def interpolate(route: Route, steps_per_leg: int) -> List[tuple]:
    """Points along the route, ``steps_per_leg`` per pair of stops."""
    if not route.stops:
        return []

    points = []
    for a, b in zip(route.stops, route.stops[1:]):
        for i in range(steps_per_leg):
            t = i / steps_per_leg
            points.append((a.lat + (b.lat - a.lat) * t, a.lon + (b.lon - a.lon) * t))
    last = route.stops[-1]
    points.append((last.lat, last.lon))
    return points


async def fetch_route(http_url: str, route_id: str) -> Route:
    async with httpx.AsyncClient() as client:
        response = await client.get(f"{http_url}/routes/{route_id}")
        response.raise_for_status()
        data = response.json()

    route = Route.from_dict(data['id'], data)
    if not route.stops:
        raise ValueError(f"Route {route_id} has no stops")
    return route


async def run_bus(config: RiderConfig, route: Route, steps_per_leg: int):
    client = TrackerClient(config)
    await client.connect()
    listener = asyncio.create_task(client.listen())

    try:
        await client.request_bus_role()
        logger.info(f"Bus driving {route.name} ({len(route.stops)} stops)")

        for lat, lon in interpolate(route, steps_per_leg):
            await client.report_location(lat, lon)
            await asyncio.sleep(config.report_interval)

        await client.release_bus_role()
        logger.info("Bus reached the end of the route")
    finally:
        await client.close()
        listener.cancel()


async def run_rider(name: str, config: RiderConfig, route: Route, duration: float):
    stop = random.choice(route.stops)
    client = TrackerClient(config)
    await client.connect()
    listener = asyncio.create_task(client.listen())

    try:
        await client.report_location(stop.lat, stop.lon)
        logger.info(f"{name} waiting at {stop.name}")

        elapsed = 0.0
        while elapsed < duration:
            await asyncio.sleep(config.report_interval)
            elapsed += config.report_interval

            eta = client.eta_to_bus()
            if eta is None:
                logger.info(f"{name}: no bus in sight")
            else:
                logger.info(f"{name}: bus {format_distance(eta.distance_km)} away, ETA {eta.eta_text}")
    finally:
        await client.close()
        listener.cancel()


async def main():
    parser = argparse.ArgumentParser(description="Simulate a bus and riders")
    parser.add_argument("--server", default="localhost:3000", help="Tracker host:port")
    parser.add_argument("--route", default="route_1", help="Route id to drive")
    parser.add_argument("--riders", type=int, default=2, help="Number of rider clients")
    parser.add_argument("--steps", type=int, default=5, help="Location reports between stops")
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between reports")
    args = parser.parse_args()

    config = RiderConfig(server_url=f"ws://{args.server}/ws", report_interval=args.interval)

    try:
        route = await fetch_route(f"http://{args.server}", args.route)
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"✗ Could not load route {args.route}: {e}")
        return 1

    duration = (len(route.stops) - 1) * args.steps * args.interval
    results = await asyncio.gather(
        run_bus(config, route, args.steps),
        *(run_rider(f"rider_{i + 1}", config, route, duration) for i in range(args.riders)),
        return_exceptions=True
    )

    failures = [r for r in results if isinstance(r, Exception)]
    for failure in failures:
        logger.error(f"Client failed with exception: {failure}")

    return 1 if failures else 0


if __name__ == "__main__":
    exit_code = asyncio.run(main())
    sys.exit(exit_code)
