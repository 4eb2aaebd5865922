"""
Locust Load Test Suite

Run scenarios:
  locust -f locustfile.py --tags concurrency  # Test overbooking
  locust -f locustfile.py --tags webhook      # Test webhook redelivery
  locust -f locustfile.py --tags throughput   # Test listing cache
  locust -f locustfile.py --tags edge         # Test bad input
  locust -f locustfile.py                     # All tests

Tokens are signed locally with LOAD_TEST_SECRET_KEY, which must match the
server's SECRET_KEY. The contended event is created beforehand by an admin
and passed in as CONCURRENCY_EVENT_ID. The webhook scenario needs the server
running with PAYPAL_ENFORCE_WEBHOOK_SIGNATURE=false.
"""

import json
import os
import random
import uuid

from jose import jwt
from locust import HttpUser, task, between, tag

SECRET_KEY = os.environ.get("LOAD_TEST_SECRET_KEY", "super-secret-key-change-in-production")
CONCURRENCY_EVENT_ID = int(os.environ.get("CONCURRENCY_EVENT_ID", "1"))

# Shared state
EVENT_IDS = []
REDELIVERED_CAPTURE_ID = f"LOAD-{uuid.uuid4().hex[:12].upper()}"


def make_token(user_id: str) -> str:
    return jwt.encode({"sub": user_id}, SECRET_KEY, algorithm="HS256")


def new_identity(client) -> dict:
    user_id = f"load-{uuid.uuid4().hex[:12]}"
    headers = {"Authorization": f"Bearer {make_token(user_id)}"}
    client.post(
        "/api/v1/users/me/sync",
        json={"email": f"{user_id}@test.com", "display_name": user_id},
        headers=headers,
        name="/api/v1/users/me/sync",
    )
    return headers


class ConcurrencyUser(HttpUser):
    """
    TEST 1: Concurrency - many users, one small event

    Run: locust -f locustfile.py --tags concurrency -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT spots, spots_left, json_array_length(attendees) FROM events WHERE id = X;
      SELECT COUNT(*) FROM bookings WHERE event_id = X AND status != 'cancelled';
    Bookings should equal spots - spots_left, never more than spots
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = new_identity(self.client)

    @tag("concurrency")
    @task
    def book_limited_spots(self):
        """All users fight for the same spots."""
        with self.client.post(
            "/api/v1/bookings",
            json={"event_id": CONCURRENCY_EVENT_ID, "email": "load@test.com"},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code != 200:
                resp.failure(f"Unexpected: {resp.status_code}")
            elif resp.json()["success"] or resp.json()["message"] in ("No spots left", "Booking closed"):
                resp.success()
            else:
                resp.failure(resp.json()["message"])


class WebhookRedeliveryUser(HttpUser):
    """
    TEST 2: The same capture notification delivered over and over

    Run: locust -f locustfile.py --tags webhook -u 20 -r 10 --run-time 30s

    After test, verify there is exactly one payment row for the capture id
    and that no event lost more than one spot to it.
    """
    wait_time = between(0, 0.2)

    @tag("webhook")
    @task
    def redeliver_capture(self):
        payload = {
            "id": f"WH-{uuid.uuid4().hex[:10]}",
            "event_type": "PAYMENT.CAPTURE.COMPLETED",
            "resource_type": "capture",
            "resource": {
                "id": REDELIVERED_CAPTURE_ID,
                "status": "COMPLETED",
                "amount": {"value": "25.00", "currency_code": "EUR"},
                "custom_id": json.dumps({"eventId": CONCURRENCY_EVENT_ID, "userId": "load-payer"}),
            },
        }
        with self.client.post("/api/v1/webhooks/paypal", json=payload, catch_response=True) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Webhook must always be acknowledged, got {resp.status_code}")


class ThroughputUser(HttpUser):
    """
    TEST 3: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_events_cached(self):
        event_type = random.choice([None, "hunt", "workshop", "exhibition", "walk"])
        url = "/api/v1/events" + (f"?type={event_type}" if event_type else "")
        resp = self.client.get(url, name="/api/v1/events [cached]")
        if resp.status_code == 200:
            for event in resp.json().get("events", []):
                if event["id"] not in EVENT_IDS:
                    EVENT_IDS.append(event["id"])

    @tag("throughput", "read")
    @task(3)
    def check_bookable(self):
        if EVENT_IDS:
            self.client.get(
                f"/api/v1/events/{random.choice(EVENT_IDS)}/bookable",
                name="/api/v1/events/{id}/bookable",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 4: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = new_identity(self.client)

    @tag("edge")
    @task
    def invalid_event_id(self):
        """Booking a missing event is a business failure, not an HTTP error."""
        with self.client.post(
            "/api/v1/bookings",
            json={"event_id": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 200 and resp.json()["message"] == "Event not found":
                resp.success()
            else:
                resp.failure(f"Expected 'Event not found', got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code in [400, 422]:
                resp.success()
            else:
                resp.failure(f"Expected 400/422, got {resp.status_code}")

    @tag("edge")
    @task
    def malformed_webhook(self):
        """Garbage to the webhook is still acknowledged."""
        with self.client.post(
            "/api/v1/webhooks/paypal",
            data="{not json",
            headers={"Content-Type": "application/json"},
            catch_response=True,
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            else:
                resp.failure(f"Expected 200, got {resp.status_code}")

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings",
            json={"event_id": 1},
            catch_response=True,
        ) as resp:
            if resp.status_code == 401:
                resp.success()
            else:
                resp.failure(f"Expected 401, got {resp.status_code}")
