"""Pytest configuration and shared fixtures"""

import json
from datetime import datetime, time, timedelta, timezone
from typing import AsyncGenerator, Callable, List, Optional

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.core.database import init_models
from backend.app.models import Contractor, Job, TradeType
from backend.app.schemas.geo import Coordinate


# In-memory SQLite, one connection shared by the whole test
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

MATRIX_URL = "https://maps.test/distancematrix/json"


@pytest.fixture
async def test_engine():
    """Create test database engine and setup schema"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    await init_models(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session"""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


def make_contractor(
    contractor_id: int,
    rating: Optional[float] = 4.0,
    latitude: float = 40.0,
    longitude: float = -74.0,
    trade_type: TradeType = TradeType.PLUMBING,
    is_active: bool = True,
    working_hours: tuple = (time(8, 0), time(17, 0)),
    review_count: int = 10
) -> Contractor:
    """Build a transient contractor record"""
    return Contractor(
        id=contractor_id,
        name=f"Contractor {contractor_id}",
        latitude=latitude,
        longitude=longitude,
        trade_type=trade_type,
        working_hours_start=working_hours[0],
        working_hours_end=working_hours[1],
        average_rating=rating,
        review_count=review_count if rating is not None else 0,
        is_active=is_active,
    )


def make_job(
    job_id: int = 1,
    desired: datetime = None,
    duration_hours: float = 2.0,
    trade_type: TradeType = TradeType.PLUMBING,
    latitude: float = 40.0,
    longitude: float = -74.0
) -> Job:
    """Build a transient job, by default tomorrow at 10:00"""
    if desired is None:
        desired = datetime.combine(datetime.now(timezone.utc).date() + timedelta(days=1), time(10, 0))
    return Job(
        id=job_id,
        job_type=trade_type,
        location="123 Main St",
        latitude=latitude,
        longitude=longitude,
        desired_datetime=desired,
        estimated_duration_hours=duration_hours,
    )


def matrix_payload(
    origins: List[Coordinate],
    destinations: List[Coordinate],
    meters: Callable[[int, int], float] = lambda i, j: 1609.344 * (i + j + 1),
    seconds: Callable[[int, int], float] = lambda i, j: 600.0 * (i + j + 1)
) -> dict:
    """Well-formed Distance Matrix response"""
    return {
        "status": "OK",
        "origin_addresses": [o.to_provider_format() for o in origins],
        "destination_addresses": [d.to_provider_format() for d in destinations],
        "rows": [
            {
                "elements": [
                    {
                        "status": "OK",
                        "distance": {"value": meters(i, j), "text": ""},
                        "duration": {"value": seconds(i, j), "text": ""},
                    }
                    for j in range(len(destinations))
                ]
            }
            for i in range(len(origins))
        ],
    }


def parse_coordinates(param: str) -> List[Coordinate]:
    return [Coordinate.of(*map(float, part.split(","))) for part in param.split("|")]


class MatrixProvider:
    """Fake Distance Matrix endpoint that records every request"""

    def __init__(self, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: List[httpx.Request] = []
        self._handler = handler or self.ok_response

    @staticmethod
    def ok_response(request: httpx.Request) -> httpx.Response:
        origins = parse_coordinates(request.url.params["origins"])
        destinations = parse_coordinates(request.url.params["destinations"])
        return httpx.Response(200, content=json.dumps(matrix_payload(origins, destinations)))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def matrix_provider() -> MatrixProvider:
    return MatrixProvider()


class FakeClock:
    """Monotonic clock that only moves when told to"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta.total_seconds()
