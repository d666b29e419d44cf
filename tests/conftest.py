"""Shared test fixtures for courtbook tests."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update

from courtbook.core.database import (
    build_engine,
    build_session_factory,
    get_db,
    get_session_factory,
    init_db,
)
from courtbook.core.metrics import PrometheusMetrics
from courtbook.models import Booking, BookingStatus, Court, OperatingHours, Venue

# 2030-06-03 is a Monday, 2030-06-02 a Sunday
OPEN_DAY = "2030-06-03"
CLOSED_DAY = "2030-06-02"


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Engine on a throwaway SQLite file so separate sessions really contend."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'courtbook.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def venue(session_factory) -> Venue:
    """Venue open 06:00-22:00 Monday to Saturday and closed on Sunday."""
    async with session_factory() as db:
        venue = Venue(name="Riverside Sports Centre", city="Madrid", timezone="Europe/Madrid")
        venue.operating_hours = [
            OperatingHours(
                day_of_week=day,
                opening_time="06:00",
                closing_time="22:00",
                is_open=day != 0,
            )
            for day in range(7)
        ]
        db.add(venue)
        await db.commit()
        return venue


@pytest_asyncio.fixture
async def court(session_factory, venue) -> Court:
    """Active court priced at 40.00 per hour."""
    async with session_factory() as db:
        court = Court(
            venue_id=venue.id,
            name="Court 1",
            sport="padel",
            price_per_hour=Decimal("40.00"),
            max_players=4,
        )
        db.add(court)
        await db.commit()
        return court


@pytest.fixture
def add_booking(session_factory):
    """Insert a booking row directly, bypassing the write gate."""

    async def _add(
        court: Court,
        start_time: str,
        end_time: str,
        status: BookingStatus = BookingStatus.CONFIRMED,
        on: str = OPEN_DAY,
    ) -> Booking:
        async with session_factory() as db:
            booking = Booking(
                court_id=court.id,
                venue_id=court.venue_id,
                date=date.fromisoformat(on),
                start_time=start_time,
                end_time=end_time,
                duration=60,
                total_price=Decimal("40.00"),
                status=status.value,
            )
            db.add(booking)
            await db.commit()
            return booking

    return _add


@pytest.fixture
def metrics() -> PrometheusMetrics:
    return PrometheusMetrics()


@pytest_asyncio.fixture
async def client(session_factory, metrics):
    """HTTP client for the app wired to the test database."""
    from courtbook.main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.metrics = metrics

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def set_opening(session_factory, venue):
    """Move the opening time of one weekday of the venue (1 = Monday)."""

    async def _set(opening_time: str, day_of_week: int = 1) -> None:
        async with session_factory() as db:
            await db.execute(
                update(OperatingHours)
                .where(
                    OperatingHours.venue_id == venue.id,
                    OperatingHours.day_of_week == day_of_week,
                )
                .values(opening_time=opening_time)
            )
            await db.commit()

    return _set
