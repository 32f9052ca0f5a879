"""
Tests for the availability endpoint and the service-level routes.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_event_availability(client: AsyncClient, make_event):
    event = await make_event(capacity=40, available_seats=25, title="Python Conference 2026")

    response = await client.get(f"/api/v1/events/{event.id}/availability")

    assert response.status_code == 200
    data = response.json()
    assert data["event_id"] == event.id
    assert data["title"] == "Python Conference 2026"
    assert data["capacity"] == 40
    assert data["available_seats"] == 25
    assert data["booked_tickets"] == 0
    assert data["is_closed"] is False
    assert data["cached"] is False


@pytest.mark.asyncio
async def test_past_event_is_closed(client: AsyncClient, make_event):
    event = await make_event(days_ahead=-1)

    response = await client.get(f"/api/v1/events/{event.id}/availability")

    assert response.json()["is_closed"] is True


@pytest.mark.asyncio
async def test_availability_unknown_event(client: AsyncClient):
    response = await client.get("/api/v1/events/999999/availability")
    assert response.status_code == 404
    assert response.json()["code"] == "event_not_found"
    assert response.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["database"] == "connected"
    assert data["lock_strategy"] in ("row", "optimistic")
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_exposed(client: AsyncClient, auth_headers, make_event):
    event = await make_event()
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": event.id, "number_of_tickets": 1},
        headers=auth_headers,
    )

    response = await client.get("/metrics")

    assert response.status_code == 200
    assert "reservation_attempts_total" in response.text


@pytest.mark.asyncio
async def test_root(client: AsyncClient, settings):
    response = await client.get("/")
    assert response.json()["message"] == f"Welcome to {settings.APP_NAME}"


@pytest.mark.asyncio
async def test_availability_reports_booked_tickets(client: AsyncClient, auth_headers, other_headers, make_event):
    event = await make_event(capacity=10)
    for headers, tickets in ((auth_headers, 3), (other_headers, 2)):
        await client.post(
            "/api/v1/bookings/",
            json={"event_id": event.id, "number_of_tickets": tickets},
            headers=headers,
        )

    data = (await client.get(f"/api/v1/events/{event.id}/availability")).json()

    assert data["available_seats"] == 5
    assert data["booked_tickets"] == 5
