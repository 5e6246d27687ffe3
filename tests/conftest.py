from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from routeplanner.api.deps import get_db, get_oracle
from routeplanner.db.session import build_engine, init_db
from routeplanner.exceptions import OracleError
from routeplanner.main import create_app
from routeplanner.services.execution.events import clear_listeners
from routeplanner.services.oracle.models import OracleLeg, OracleRoute

# Addresses lie on a line; the number is the distance from "Depot" in km.
LINE_POSITIONS: Dict[str, float] = {
    "Depot": 0.0,
    "Origin": 0.0,
    "100 A St": 1.0,
    "150 A St": 1.5,
    "200 B St": 2.0,
    "300 C St": 3.0,
    "400 D St": 4.0,
    "500 E St": 5.0,
}


class DummyOracle:
    """Distance oracle over ``LINE_POSITIONS``: cost is the distance walked along the line."""

    def __init__(self, positions: Dict[str, float] | None = None):
        self.positions = positions or LINE_POSITIONS
        self.calls = []
        self.fail = False

    def compute_route(self, stops, *, optimize_order=False):
        self.calls.append(([stop.address for stop in stops], optimize_order))
        if self.fail:
            raise OracleError("Failed to calculate route: upstream unavailable")

        xs = [self.positions.get(stop.address, 0.0) for stop in stops]
        order = []
        if optimize_order and len(xs) > 2:
            order = sorted(range(len(xs) - 2), key=lambda index: xs[index + 1])
            xs = [xs[0], *(xs[index + 1] for index in order), xs[-1]]

        legs = [
            OracleLeg(
                start_latitude=start / 100,
                start_longitude=0.0,
                end_latitude=end / 100,
                end_longitude=0.0,
                distance_meters=int(round(abs(end - start) * 1000)),
                duration_seconds=int(round(abs(end - start) * 100)),
            )
            for start, end in zip(xs, xs[1:])
        ]
        return OracleRoute(
            distance_meters=sum(leg.distance_meters for leg in legs),
            duration_seconds=sum(leg.duration_seconds for leg in legs),
            legs=legs,
            optimized_intermediate_order=order,
        )


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Iterator[Session]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def oracle() -> DummyOracle:
    return DummyOracle()


@pytest.fixture(autouse=True)
def reset_completion_listeners():
    clear_listeners()
    yield
    clear_listeners()


@pytest.fixture
def api_client(session_factory, oracle) -> TestClient:
    app = create_app()

    def override_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    return TestClient(app)
