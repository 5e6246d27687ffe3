"""Google Maps directions link export."""

from __future__ import annotations

from typing import Sequence
from urllib.parse import quote

from ...exceptions import InvariantViolation
from ...models.orm import Waypoint

MAPS_DIRECTIONS_URL = "https://www.google.com/maps/dir/"


def build_directions_url(waypoints: Sequence[Waypoint]) -> str:
    """Build a shareable Google Maps directions URL for the routable stops.

    Args:
        waypoints: Stops in visiting order. Gap stops are skipped.

    Returns:
        URL with origin, destination and ``|``-separated intermediate waypoints.
    """
    addresses = [waypoint.address for waypoint in waypoints if not waypoint.is_gap_stop]
    if len(addresses) < 2:
        raise InvariantViolation("Route must have at least 2 waypoints")

    origin = quote(addresses[0], safe="")
    destination = quote(addresses[-1], safe="")
    url = f"{MAPS_DIRECTIONS_URL}?api=1&origin={origin}&destination={destination}&travelmode=driving"

    intermediates = "|".join(quote(address, safe="") for address in addresses[1:-1])
    if intermediates:
        url += f"&waypoints={intermediates}"
    return url
