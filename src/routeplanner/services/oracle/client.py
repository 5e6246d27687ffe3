"""HTTP client for the Google Routes API (the distance oracle)."""

from __future__ import annotations

import logging
import time
from typing import Any, Sequence

import httpx

from ...config import settings
from ...exceptions import OracleError, RouteNotFoundError
from .models import OracleLeg, OracleRoute, OracleStop

FIELD_MASK = ",".join(
    (
        "routes.duration",
        "routes.distanceMeters",
        "routes.polyline",
        "routes.legs",
        "routes.optimizedIntermediateWaypointIndex",
    )
)

logger = logging.getLogger(__name__)


def parse_duration_seconds(value: Any) -> int:
    """Parse a protobuf duration string such as ``"3600s"`` into whole seconds."""
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return int(round(value))
    text = str(value).strip()
    if text.endswith("s"):
        text = text[:-1]
    try:
        return int(round(float(text)))
    except ValueError as exc:
        raise OracleError(f"Unparseable duration from routing service: {value!r}") from exc


def _lat_lng(location: dict | None) -> tuple[float | None, float | None]:
    lat_lng = (location or {}).get("latLng") or {}
    return lat_lng.get("latitude"), lat_lng.get("longitude")


def _waypoint_payload(stop: OracleStop) -> dict:
    if stop.address and stop.address.strip():
        return {"address": stop.address}
    if stop.latitude is not None and stop.longitude is not None:
        return {"location": {"latLng": {"latitude": stop.latitude, "longitude": stop.longitude}}}
    raise ValueError("Every stop needs an address or a latitude/longitude pair.")


def build_request_body(
    stops: Sequence[OracleStop],
    *,
    optimize_order: bool = False,
    routing_preference: str | None = None,
) -> dict:
    """Build a computeRoutes body: first stop is origin, last is destination."""
    if len(stops) < 2:
        raise ValueError("At least two stops are required to compute a route.")

    body: dict[str, Any] = {
        "origin": _waypoint_payload(stops[0]),
        "destination": _waypoint_payload(stops[-1]),
        "travelMode": "DRIVE",
        "routingPreference": routing_preference or settings.routing_preference,
        "computeAlternativeRoutes": False,
        "routeModifiers": {
            "avoidTolls": False,
            "avoidHighways": False,
            "avoidFerries": False,
        },
    }
    intermediates = stops[1:-1]
    if intermediates:
        body["intermediates"] = [_waypoint_payload(stop) for stop in intermediates]
        if optimize_order:
            body["optimizeWaypointOrder"] = True
    return body


def parse_route(data: dict) -> OracleRoute:
    """Convert the first entry of a computeRoutes response into an ``OracleRoute``."""
    routes = data.get("routes") or []
    if not routes:
        raise RouteNotFoundError("No route found for the given waypoints")

    route = routes[0]
    legs = []
    for leg in route.get("legs") or []:
        start_lat, start_lng = _lat_lng(leg.get("startLocation"))
        end_lat, end_lng = _lat_lng(leg.get("endLocation"))
        legs.append(
            OracleLeg(
                start_latitude=start_lat,
                start_longitude=start_lng,
                end_latitude=end_lat,
                end_longitude=end_lng,
                distance_meters=int(leg.get("distanceMeters") or 0),
                duration_seconds=parse_duration_seconds(leg.get("duration")),
            )
        )

    return OracleRoute(
        # distanceMeters is omitted by the API when it is zero
        distance_meters=int(route.get("distanceMeters") or 0),
        duration_seconds=parse_duration_seconds(route.get("duration")),
        legs=legs,
        optimized_intermediate_order=[int(index) for index in route.get("optimizedIntermediateWaypointIndex") or []],
        encoded_polyline=(route.get("polyline") or {}).get("encodedPolyline"),
    )


class GoogleRoutesClient:
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key or settings.google_maps_api_key
        if not self.api_key:
            raise ValueError("Google Maps API key is not configured.")
        self.base_url = base_url or settings.routes_api_url
        self.timeout = timeout if timeout is not None else settings.oracle_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.oracle_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.oracle_backoff_seconds
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=self._transport,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.api_key,
            "X-Goog-FieldMask": FIELD_MASK,
        }

    def compute_route(self, stops: Sequence[OracleStop], *, optimize_order: bool = False) -> OracleRoute:
        """Compute a driving route through ``stops`` in the given order.

        When ``optimize_order`` is set the service may reorder the intermediate stops
        and reports the permutation in ``optimized_intermediate_order``.

        Raises:
            OracleError: non-2xx response, network failure or malformed payload.
            RouteNotFoundError: the service answered with an empty ``routes`` array.
        """
        body = build_request_body(stops, optimize_order=optimize_order)

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.post(self.base_url, json=body, headers=self._headers())
                    response.raise_for_status()
                    data = response.json()
                    return parse_route(data)
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    if status_code < 500:
                        raise OracleError(f"Failed to calculate route: {e.response.text}") from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise OracleError(
                            f"Routing service returned {status_code} after {attempt} attempts: {e.response.text}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Routing service returned {status_code}, retrying in {wait_time:.1f}s "
                        f"(attempt {attempt}/{self.max_retries})"
                    )
                    time.sleep(wait_time)
                except httpx.TransportError as e:
                    # Timeouts, connection failures and dropped connections
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"Routing request failed after {self.max_retries} retries: {e}")
                        raise OracleError(f"Failed to reach routing service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(
                        f"Routing request error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}"
                    )
                    time.sleep(wait_time)
                except ValueError as e:
                    # JSON decoding failed
                    raise OracleError(f"Malformed response from routing service: {e}") from e
                except httpx.HTTPError as e:
                    raise OracleError(f"Routing request to {self.base_url} failed: {e}") from e
        finally:
            client.close()


def check_health() -> bool:
    """Report whether the oracle is configured; no request is spent on a probe."""
    return bool(settings.google_maps_api_key and settings.routes_api_url)
