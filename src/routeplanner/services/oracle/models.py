"""Distance oracle request/response models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence


@dataclass(slots=True)
class OracleStop:
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@dataclass(slots=True)
class OracleLeg:
    start_latitude: Optional[float]
    start_longitude: Optional[float]
    end_latitude: Optional[float]
    end_longitude: Optional[float]
    distance_meters: int = 0
    duration_seconds: int = 0


@dataclass(slots=True)
class OracleRoute:
    distance_meters: int
    duration_seconds: int
    legs: List[OracleLeg] = field(default_factory=list)
    optimized_intermediate_order: List[int] = field(default_factory=list)
    encoded_polyline: Optional[str] = None

    def stop_coordinates(self, stop_count: int) -> list[tuple[Optional[float], Optional[float]]]:
        """Coordinates per stop: leg i start for stop i, last leg end for the final stop."""
        coordinates: list[tuple[Optional[float], Optional[float]]] = []
        for index in range(stop_count):
            if index < len(self.legs):
                leg = self.legs[index]
                coordinates.append((leg.start_latitude, leg.start_longitude))
            elif index == stop_count - 1 and self.legs:
                leg = self.legs[-1]
                coordinates.append((leg.end_latitude, leg.end_longitude))
            else:
                coordinates.append((None, None))
        return coordinates


class DistanceOracle(Protocol):
    def compute_route(self, stops: Sequence[OracleStop], *, optimize_order: bool = False) -> OracleRoute:
        ...
