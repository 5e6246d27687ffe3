"""Route completion notifications for downstream collaborators (billing)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RouteCompleted:
    route_id: int
    owner_id: str
    completed_at: datetime
    completed_stops: int
    missed_stops: int


Listener = Callable[[RouteCompleted], None]

_listeners: List[Listener] = []


def register_listener(listener: Listener) -> None:
    if listener not in _listeners:
        _listeners.append(listener)


def unregister_listener(listener: Listener) -> None:
    if listener in _listeners:
        _listeners.remove(listener)


def clear_listeners() -> None:
    _listeners.clear()


def publish(event: RouteCompleted) -> None:
    """Deliver ``event`` to every listener.

    Called after the mutation is committed; a failing listener is logged and the
    remaining listeners still run.
    """
    for listener in list(_listeners):
        try:
            listener(event)
        except Exception as exc:
            logger.exception(f"Route completion listener failed for route {event.route_id}: {exc}")
