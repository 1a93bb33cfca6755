"""
Locust Load Test Suite

Trips and users are not created through this API, so seed them first and
point the run at them:
  CONCURRENCY_TRIP_ID  trip with a small bus (e.g. 10 seats)
  BROWSE_TRIP_IDS      comma-separated trips for read traffic
  USER_ID_MAX          users 1..USER_ID_MAX must exist

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput   # Test availability cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests
"""

import os
import random

from locust import HttpUser, task, between, tag, events

CONCURRENCY_TRIP_ID = int(os.environ.get("CONCURRENCY_TRIP_ID", "1"))
BROWSE_TRIP_IDS = [int(t) for t in os.environ.get("BROWSE_TRIP_IDS", "1,2,3,4,5").split(",")]
USER_ID_MAX = int(os.environ.get("USER_ID_MAX", "100"))

# Reservations made by RealisticUser, available for cancellation
MY_RESERVATIONS = []


def random_user_headers():
    return {"X-User-ID": str(random.randint(1, USER_ID_MAX))}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "=" * 60)
    print(f"Concurrency trip: {CONCURRENCY_TRIP_ID}, users 1..{USER_ID_MAX}")
    print("=" * 60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - 100 users -> one small trip

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT SUM(seat_count) FROM reservations
      WHERE trip_id = X AND status = 'confirmed';
    Should be <= the bus capacity
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = random_user_headers()

    @tag("concurrency")
    @task
    def book_limited_seats(self):
        """All users fight for the same seats."""
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": CONCURRENCY_TRIP_ID, "seat_count": random.randint(1, 2)},
            headers=self.headers,
            name="/api/v1/me/reservations/ [contended]",
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                resp.success()
            elif resp.status_code == 409:
                resp.success()  # Expected: sold out
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - availability cache effectiveness

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
    def trip_availability(self):
        """Hammer the cached endpoint."""
        trip_id = random.choice(BROWSE_TRIP_IDS)
        self.client.get(f"/api/v1/trips/{trip_id}/availability",
            name="/api/v1/trips/{id}/availability [cached]")

    @tag("throughput", "read")
    @task(3)
    def list_reservations(self):
        page = random.randint(1, 5)
        self.client.get(f"/api/v1/reservations/?page={page}",
            name="/api/v1/reservations/")

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
        self.headers = random_user_headers()

    def expect(self, resp, allowed):
        if resp.status_code in allowed:
            resp.success()
        else:
            resp.failure(f"Expected {allowed}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_trip_id(self):
        """Book non-existent trip."""
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": 999999, "seat_count": 1},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def zero_seats(self):
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": CONCURRENCY_TRIP_ID, "seat_count": 0},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def huge_seats(self):
        """Try to book an absurd number of seats."""
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": CONCURRENCY_TRIP_ID, "seat_count": 999999},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [409, 422])

    @tag("edge")
    @task
    def malformed_json(self):
        """Send garbage data."""
        with self.client.post("/api/v1/me/reservations/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_user_header(self):
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": CONCURRENCY_TRIP_ID, "seat_count": 1},
            catch_response=True
        ) as resp:
            self.expect(resp, [401])

    @tag("edge")
    @task
    def inverted_date_range(self):
        with self.client.get("/api/v1/reservations/",
            params={"reserved_from": "2026-03-05", "reserved_to": "2026-03-01"},
            catch_response=True
        ) as resp:
            self.expect(resp, [422])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

    Simulates real traffic:
      - Mostly browsing availability and own reservations
      - Some bookings
      - Occasional cancellations
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = random_user_headers()

    @task(50)
    def browse_availability(self):
        trip_id = random.choice(BROWSE_TRIP_IDS)
        self.client.get(f"/api/v1/trips/{trip_id}/availability",
            name="/api/v1/trips/{id}/availability")

    @task(20)
    def my_reservations(self):
        self.client.get("/api/v1/me/reservations/?upcoming=true", headers=self.headers)

    @task(10)
    def book(self):
        with self.client.post("/api/v1/me/reservations/",
            json={"trip_id": random.choice(BROWSE_TRIP_IDS), "seat_count": random.randint(1, 4)},
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                MY_RESERVATIONS.append((self.headers["X-User-ID"], resp.json()["id"]))
                resp.success()
            elif resp.status_code in (404, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @task(3)
    def cancel(self):
        if not MY_RESERVATIONS:
            return
        user_id, reservation_id = MY_RESERVATIONS.pop(random.randrange(len(MY_RESERVATIONS)))
        with self.client.post(f"/api/v1/me/reservations/{reservation_id}/cancel",
            headers={"X-User-ID": user_id},
            name="/api/v1/me/reservations/{id}/cancel",
            catch_response=True
        ) as resp:
            if resp.status_code in (200, 404, 422):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
