"""Request-scoped dependencies."""

from __future__ import annotations

from typing import Iterator, Optional

from fastapi import Header, HTTPException, status
from sqlalchemy.orm import Session

from ..db.session import get_session_factory
from ..services.oracle.models import DistanceOracle


def get_db() -> Iterator[Session]:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()


def get_current_owner(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Owner identity as forwarded by the authenticating gateway."""
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return owner_id


def get_oracle() -> Optional[DistanceOracle]:
    """Distance oracle for the request; None means the configured Google Routes client."""
    return None
