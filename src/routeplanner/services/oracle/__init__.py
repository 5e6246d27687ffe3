"""Distance oracle client and models."""

from .client import GoogleRoutesClient, check_health, parse_duration_seconds
from .models import DistanceOracle, OracleLeg, OracleRoute, OracleStop

__all__ = [
    "DistanceOracle",
    "GoogleRoutesClient",
    "OracleLeg",
    "OracleRoute",
    "OracleStop",
    "check_health",
    "parse_duration_seconds",
]
