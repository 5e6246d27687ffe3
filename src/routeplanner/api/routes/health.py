"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


def _get_oracle_health_check():
    """Lazy import to avoid startup failures."""
    from ...services.oracle.client import check_health as oracle_health_check
    return oracle_health_check


@router.get("/health/oracle", status_code=status.HTTP_200_OK)
def health_oracle() -> dict:
    """Report whether the Google Routes client is configured."""
    configured = _get_oracle_health_check()()
    return {
        "service": "google_routes",
        "configured": configured,
        "message": None if configured else "Set ROUTEPLANNER_GOOGLE_MAPS_API_KEY to enable routing.",
    }


@router.get("/health/database", status_code=status.HTTP_200_OK)
def health_database() -> dict:
    """Check the database connection."""
    from ...db.session import check_database

    connected = check_database()
    return {
        "connected": connected,
        "message": "Database connected." if connected else "Database connection failed; see server logs.",
    }
