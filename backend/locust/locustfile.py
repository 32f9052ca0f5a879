"""
Locust Load Test Suite

Tokens are minted locally with the API's SECRET_KEY, so the identity
service is not needed. Point EVENT_ID at an event created by the catalog.

Run scenarios:
  EVENT_ID=1 locust -f locustfile.py --tags concurrency  # Test overbooking
  EVENT_ID=1 locust -f locustfile.py --tags throughput   # Test cache
  EVENT_ID=1 locust -f locustfile.py --tags edge         # Test bad input
  EVENT_ID=1 locust -f locustfile.py                     # All tests
"""

import itertools
import os
import random

from locust import HttpUser, task, between, tag, events

from eventflow.core.security import create_access_token

EVENT_ID = int(os.getenv("EVENT_ID", "1"))
_user_ids = itertools.count(int(os.getenv("FIRST_USER_ID", "100000")))


def bearer_headers(user_id: int, role: str = "user") -> dict:
    token = create_access_token(
        data={"sub": str(user_id), "role": role, "email": f"load_{user_id}@test.com"}
    )
    return {"Authorization": f"Bearer {token}"}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Target event: {EVENT_ID}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users fight for one event's seats

    Run: EVENT_ID=1 locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT capacity - available_seats FROM events WHERE id = X;
      SELECT SUM(number_of_tickets) FROM bookings WHERE event_id = X AND status = 'confirmed';
    Both must match and never exceed capacity.
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.user_id = next(_user_ids)
        self.headers = bearer_headers(self.user_id)
        self.booking_id = None

    @tag("concurrency")
    @task(4)
    def book_limited_seats(self):
        """All users fight for the same seats."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": random.randint(1, 3)},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                self.booking_id = resp.json()["id"]
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out or duplicate
            elif resp.status_code == 503:
                resp.success()  # Lock wait timed out under load
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("concurrency")
    @task(1)
    def cancel_own_booking(self):
        """Released seats go back into the pool."""
        if not self.booking_id:
            return
        with self.client.delete(f"/api/v1/bookings/{self.booking_id}",
            headers=self.headers,
            name="/api/v1/bookings/{id}",
            catch_response=True
        ) as resp:
            if resp.status_code in [200, 409, 503]:
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
            self.booking_id = None


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false on the API, run again

    Compare:
      - Avg response time
      - Requests/sec
      - P95/P99 latency
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def availability_cached(self):
        """Hammer the cached endpoint."""
        self.client.get(f"/api/v1/events/{EVENT_ID}/availability",
            name="/api/v1/events/{id}/availability [cached]")

    @tag("throughput")
    @task(1)
    def health_check(self):
        """Monitor system health."""
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = bearer_headers(next(_user_ids))

    def _expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_event_id(self):
        """Book non-existent event."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": 999999, "number_of_tickets": 1},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def negative_tickets(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": -5},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def zero_tickets(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": 0},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [422])

    @tag("edge")
    @task
    def huge_tickets(self):
        """Absurd request: rejected on capacity, nothing reserved."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": 999999},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 409])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        """Try booking without auth."""
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": 1},
            catch_response=True
        ) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def organizer_cannot_book(self):
        with self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": 1},
            headers=bearer_headers(next(_user_ids), role="organizer"),
            catch_response=True
        ) as resp:
            self._expect(resp, [403])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly checking availability and history
      - Some bookings
      - Occasional cancellations
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = bearer_headers(next(_user_ids))
        self.booking_ids = []

    @task(50)
    def check_availability(self):
        self.client.get(f"/api/v1/events/{EVENT_ID}/availability",
            name="/api/v1/events/{id}/availability")

    @task(20)
    def view_history(self):
        self.client.get("/api/v1/bookings/?page=1&page_size=20", headers=self.headers)

    @task(10)
    def book_seats(self):
        resp = self.client.post("/api/v1/bookings/",
            json={"event_id": EVENT_ID, "number_of_tickets": random.randint(1, 3)},
            headers=self.headers)
        if resp.status_code == 201:
            self.booking_ids.append(resp.json()["id"])

    @task(3)
    def cancel_booking(self):
        if self.booking_ids:
            booking_id = self.booking_ids.pop()
            self.client.delete(f"/api/v1/bookings/{booking_id}",
                headers=self.headers,
                name="/api/v1/bookings/{id}")
