"""
Pytest fixtures for database, coordinators, client, and authentication.

Each test gets its own SQLite database file under tmp_path. Set
TEST_DATABASE_URL to run the same suite against PostgreSQL instead.
"""

import os

# Before anything reads (and caches) the settings
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("OPTIMISTIC_MAX_RETRIES", "25")

from datetime import timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select, func

from eventflow.core.clock import utcnow
from eventflow.core.config import Settings, get_settings
from eventflow.core.security import create_access_token
from eventflow.db.session import Database
from eventflow.main import build_services, create_app
from eventflow.models.booking import Booking, BookingStatus
from eventflow.models.event import Event
from eventflow.services.cancellation import CancellationCompensator
from eventflow.services.interfaces.event_lock import EventLockStrategy
from eventflow.services.notifications import LoggingEmailSender, NotificationDispatcher
from eventflow.services.reservation import ReservationCoordinator
from eventflow.services.strategy_factory import get_lock_strategy

USER_ID = 1
OTHER_USER_ID = 2
ORGANIZER_ID = 50
ADMIN_ID = 99
USER_EMAIL = "test@example.com"


def bearer(user_id: int, role: str = "user", email: Optional[str] = None) -> dict:
    claims = {"sub": str(user_id), "role": role}
    if email:
        claims["email"] = email
    return {"Authorization": f"Bearer {create_access_token(data=claims)}"}


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture(scope="function")
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Create tables, yield the pool, then drop tables for isolation."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'eventflow_test.db'}"
    db = Database(url, lock_timeout_ms=5000)
    await db.create_all()

    yield db

    await db.drop_all()
    await db.dispose()


@pytest.fixture(params=["row", "optimistic"])
def locks(request) -> EventLockStrategy:
    """Every coordinator test runs once per lock strategy."""
    return get_lock_strategy(request.param)


@pytest.fixture
def email_sender() -> LoggingEmailSender:
    return LoggingEmailSender()


@pytest_asyncio.fixture
async def notifier(email_sender) -> AsyncGenerator[NotificationDispatcher, None]:
    dispatcher = NotificationDispatcher(email_sender, max_queue_size=100)
    await dispatcher.start()
    yield dispatcher
    await dispatcher.stop()


@pytest.fixture
def coordinator(database, locks, notifier) -> ReservationCoordinator:
    return ReservationCoordinator(database, locks, notifier=notifier)


@pytest.fixture
def compensator(database, locks) -> CancellationCompensator:
    return CancellationCompensator(database, locks)


@pytest.fixture
def make_event(database):
    """Factory for events; a negative days_ahead makes an elapsed event."""

    async def _make_event(
        capacity: int = 10,
        available_seats: Optional[int] = None,
        days_ahead: float = 30,
        title: str = "Test Concert",
        venue: Optional[str] = "Test Venue",
    ) -> Event:
        event = Event(
            title=title,
            venue=venue,
            event_time=utcnow() + timedelta(days=days_ahead),
            capacity=capacity,
            available_seats=capacity if available_seats is None else available_seats,
        )
        async with database.session() as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def inventory_state(database):
    """(available_seats, sum of confirmed tickets) as committed in the database."""

    async def _inventory_state(event_id: int) -> tuple[int, int]:
        async with database.session() as session:
            available = await session.scalar(
                select(Event.available_seats).where(Event.id == event_id)
            )
            confirmed = await session.scalar(
                select(func.coalesce(func.sum(Booking.number_of_tickets), 0)).where(
                    Booking.event_id == event_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
            )
        return available, int(confirmed)

    return _inventory_state


@pytest_asyncio.fixture
async def app(settings, database, locks, email_sender):
    """App wired to the test database; the lifespan is not run under ASGITransport."""
    application = create_app(settings)
    build_services(application, settings, database=database, email_sender=email_sender, locks=locks)
    await application.state.notifier.start()
    yield application
    await application.state.notifier.stop()


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    """Authorization headers with Bearer token."""
    return bearer(USER_ID, email=USER_EMAIL)


@pytest.fixture
def other_headers() -> dict:
    return bearer(OTHER_USER_ID, email="other@example.com")


@pytest.fixture
def admin_headers() -> dict:
    return bearer(ADMIN_ID, role="admin")


@pytest.fixture
def organizer_headers() -> dict:
    return bearer(ORGANIZER_ID, role="organizer")
