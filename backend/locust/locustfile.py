"""
Locust Load Test Suite

Garages are administered outside this API, so seed them first and point the
run at one:

  GARAGE_ID=1 locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags throughput               # Availability/recommendation reads
  locust -f locustfile.py --tags edge                     # Test bad input
  locust -f locustfile.py                                 # All tests
"""

import os
import random
from locust import HttpUser, task, between, tag, events
from datetime import datetime, timezone, timedelta

GARAGE_ID = int(os.environ.get("GARAGE_ID", "1"))
GARAGE_IDS = [int(g) for g in os.environ.get("GARAGE_IDS", str(GARAGE_ID)).split(",")]

# Every concurrency user asks for the same window so they all compete
CONTESTED_START = (datetime.now(timezone.utc) + timedelta(days=1)).replace(minute=0, second=0, microsecond=0)
CONTESTED_END = CONTESTED_START + timedelta(hours=2)

RESERVATION_IDS = []


def user_headers():
    return {"X-User-Id": str(random.randint(1, 1_000_000))}


def window(days_ahead=1, hours=2):
    start = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    return start.isoformat(), (start + timedelta(hours=hours)).isoformat()


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    print("\n" + "="*60)
    print(f"Contested garage {GARAGE_ID}, window {CONTESTED_START.isoformat()} / {CONTESTED_END.isoformat()}")
    print("="*60)


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users, one garage, one window

    Run: GARAGE_ID=1 locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM reservations
      WHERE garage_id = X AND status = 'active'
        AND start_time < :end AND end_time > :start;
    Should be <= garages.total_spaces
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = user_headers()

    @tag("concurrency")
    @task
    def reserve_contested_window(self):
        with self.client.post("/api/v1/reservations/",
            json={
                "garage_id": GARAGE_ID,
                "start_time": CONTESTED_START.isoformat(),
                "end_time": CONTESTED_END.isoformat(),
            },
            headers=self.headers,
            catch_response=True
        ) as resp:
            if resp.status_code == 201:
                RESERVATION_IDS.append(resp.json()["id"])
                resp.success()
            elif resp.status_code in (409, 503):
                resp.success()  # Expected: full, or busy under contention
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 2: Read throughput

    Run: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s

    Availability is never cached, so this measures the overlap query
    against ix_reservations_availability.
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def check_availability(self):
        start, end = window(days_ahead=random.randint(1, 14), hours=random.randint(1, 8))
        self.client.get(f"/api/v1/garages/{random.choice(GARAGE_IDS)}/availability",
            params={"start_time": start, "end_time": end},
            name="/api/v1/garages/{id}/availability")

    @tag("throughput", "read")
    @task(5)
    def recommend(self):
        start, end = window(days_ahead=random.randint(1, 14))
        self.client.post("/api/v1/recommendations/",
            json={
                "start_time": start,
                "end_time": end,
                "latitude": 51.5074 + random.uniform(-0.05, 0.05),
                "longitude": -0.1278 + random.uniform(-0.05, 0.05),
            },
            headers=user_headers())

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = user_headers()

    def expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def unknown_garage(self):
        start, end = window()
        with self.client.post("/api/v1/reservations/",
            json={"garage_id": 999999, "start_time": start, "end_time": end},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [404])

    @tag("edge")
    @task
    def reversed_window(self):
        start, end = window()
        with self.client.post("/api/v1/reservations/",
            json={"garage_id": GARAGE_ID, "start_time": end, "end_time": start},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def past_window(self):
        start, end = window(days_ahead=-2)
        with self.client.post("/api/v1/reservations/",
            json={"garage_id": GARAGE_ID, "start_time": start, "end_time": end},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400])

    @tag("edge")
    @task
    def client_supplied_price(self):
        start, end = window()
        with self.client.post("/api/v1/reservations/",
            json={"garage_id": GARAGE_ID, "start_time": start, "end_time": end, "price": "0.01"},
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [422])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post("/api/v1/reservations/",
            data="not json at all",
            headers=self.headers,
            catch_response=True
        ) as resp:
            self.expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_user(self):
        start, end = window()
        with self.client.post("/api/v1/reservations/",
            json={"garage_id": GARAGE_ID, "start_time": start, "end_time": end},
            catch_response=True
        ) as resp:
            self.expect(resp, [401])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

      - Mostly browsing (availability, recommendations)
      - Some reservations
      - Occasional cancellations
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = user_headers()
        self.mine = []

    @task(30)
    def browse_availability(self):
        start, end = window(days_ahead=random.randint(1, 7))
        self.client.get(f"/api/v1/garages/{random.choice(GARAGE_IDS)}/availability",
            params={"start_time": start, "end_time": end},
            name="/api/v1/garages/{id}/availability")

    @task(20)
    def get_recommendations(self):
        start, end = window(days_ahead=random.randint(1, 7))
        self.client.post("/api/v1/recommendations/",
            json={"start_time": start, "end_time": end},
            headers=self.headers)

    @task(10)
    def reserve(self):
        start, end = window(days_ahead=random.randint(1, 7), hours=random.randint(1, 4))
        resp = self.client.post("/api/v1/reservations/",
            json={"garage_id": random.choice(GARAGE_IDS), "start_time": start, "end_time": end},
            headers=self.headers)
        if resp.status_code == 201:
            self.mine.append(resp.json()["id"])

    @task(5)
    def list_mine(self):
        self.client.get("/api/v1/reservations/", headers=self.headers)

    @task(2)
    def cancel(self):
        if self.mine:
            reservation_id = self.mine.pop(random.randrange(len(self.mine)))
            self.client.delete(f"/api/v1/reservations/{reservation_id}",
                headers=self.headers,
                name="/api/v1/reservations/{id}")
