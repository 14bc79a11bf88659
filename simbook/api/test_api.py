"""
HTTP surface over a temp SQLite store.
"""
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from simbook.api.main import app, get_store
from simbook.database import get_db
from simbook.utils.helpers import now_local

ROOT = Path(__file__).resolve().parents[2]


def next_monday():
    d = now_local().date() + timedelta(days=3)
    while d.weekday() != 0:
        d += timedelta(days=1)
    return d


MONDAY = next_monday()


@pytest.fixture
def client(store, session_factory, studio):
    def _db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_db] = _db
    yield TestClient(app)
    app.dependency_overrides.clear()


def book(client, user_id=7, hour=10, hours=2, **extra):
    return client.post("/bookings", json={
        "user_id": user_id,
        "start_time": f"{MONDAY.isoformat()}T{hour:02d}:00:00",
        "duration_hours": hours,
        **extra,
    })


def test_health(client):
    assert client.get("/").json()["service"] == "Simbook Booking API"


def test_sessions_by_date(client):
    resp = client.post("/sessions", json={
        "duration_hours": 1, "horizon_days": 7, "reference_date": MONDAY.isoformat(),
    })
    assert resp.status_code == 200
    body = resp.json()

    assert len(body["sessions"]) == 7
    monday = body["sessions"][MONDAY.isoformat()]
    assert len(monday) == 10
    assert monday[0]["formatted_time"] == "8:00 AM - 9:00 AM"
    assert all(s["is_available"] for s in monday)

    saturday = body["sessions"][(MONDAY + timedelta(days=5)).isoformat()]
    assert saturday == [{
        "start_time": saturday[0]["start_time"],
        "end_time": saturday[0]["start_time"],
        "formatted_time": "Not Available",
        "is_available": False,
        "unavailable_reason": "Closed on Saturdays",
        "reason_code": "CLOSED",
    }]
    assert body["no_availability_reason"] is None


def test_hidden_unavailable_sessions(client):
    resp = client.post("/sessions", json={
        "duration_hours": 1, "horizon_days": 7, "reference_date": MONDAY.isoformat(),
        "include_unavailable": False,
    })
    assert len(resp.json()["sessions"]) == 5


@pytest.mark.parametrize("body", [
    {"duration_hours": 0},
    {"duration_hours": 1, "coach": "not a coach!"},
    {"duration_hours": 1, "coach_hours": 1},
    {"duration_hours": 1, "horizon_days": 90},
])
def test_bad_session_requests(client, body):
    resp = client.post("/sessions", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "ValidationError"


def test_first_available(client):
    resp = client.post("/sessions/first-available", json={
        "duration_hours": 2, "reference_date": MONDAY.isoformat(),
    })
    assert resp.status_code == 200
    assert resp.json()["start_time"] == f"{MONDAY.isoformat()}T08:00:00"


def test_first_available_none_is_404(client):
    weekend = MONDAY + timedelta(days=5)
    resp = client.post("/sessions/first-available", json={
        "duration_hours": 1, "horizon_days": 2, "reference_date": weekend.isoformat(),
    })
    assert resp.status_code == 404
    assert resp.json()["detail"]["message"] == "All dates in range are closed"


def test_booking_lifecycle(client):
    assert client.post("/credits/7", json={"hours": 3}).json() == \
        {"user_id": 7, "simulator_hours": 3}

    resp = book(client)
    assert resp.status_code == 201
    booking = resp.json()
    assert booking["simulator_id"] == 1
    assert booking["remaining_credits"] == 1
    assert booking["status"] == "confirmed"
    assert client.get("/credits/7").json()["simulator_hours"] == 1

    resp = client.post(f"/bookings/{booking['booking_id']}/cancel", json={"reason": "rain"})
    assert resp.json() == {"booking_id": booking["booking_id"], "status": "cancelled",
                           "refunded_hours": 2}
    assert client.get("/credits/7").json()["simulator_hours"] == 3


def test_insufficient_credits_is_402(client):
    client.post("/credits/7", json={"hours": 1})
    resp = book(client)
    assert resp.status_code == 402
    assert resp.json()["detail"]["details"] == {"required": 2, "available": 1}


def test_full_studio_is_409(client):
    for user in range(1, 6):
        client.post(f"/credits/{user}", json={"hours": 2})
    for user in range(1, 5):
        assert book(client, user_id=user).status_code == 201
    assert book(client, user_id=5, hours=1).status_code == 409


def test_pending_payment_then_confirm(client):
    booking = book(client, pending_payment=True).json()
    assert booking["status"] == "pending_payment"

    resp = client.post(f"/bookings/{booking['booking_id']}/confirm-payment",
                       json={"payment_ref": "pi_42"})
    assert resp.json() == {"booking_id": booking["booking_id"], "status": "confirmed"}


def test_unknown_booking_is_404(client):
    assert client.post("/bookings/999/cancel").status_code == 404


@pytest.mark.parametrize("extra, message", [
    ({"coach_hours": 1}, "coach_hours given without a coach"),
    ({"hours": 0}, "Slot is not a bookable session"),
])
def test_bad_booking_requests(client, extra, message):
    client.post("/credits/7", json={"hours": 3})
    resp = book(client, **extra)
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == message


def test_weekend_booking_is_400(client):
    client.post("/credits/7", json={"hours": 3})
    resp = client.post("/bookings", json={
        "user_id": 7,
        "start_time": f"{(MONDAY + timedelta(days=5)).isoformat()}T10:00:00",
        "duration_hours": 1,
    })
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "CLOSED"


def test_occupancy_metrics(client):
    client.post("/credits/7", json={"hours": 3})
    book(client)
    resp = client.get("/metrics/occupancy", params={"start_date": MONDAY.isoformat(),
                                                    "days": 1})
    day = resp.json()["days"][0]
    assert day["capacity_hours"] == 40
    assert day["booked_hours"] == 2
    assert day["occupancy_rate"] == pytest.approx(5.0)


def test_ingest_run(client, monkeypatch):
    monkeypatch.chdir(ROOT)
    first = client.post("/ingest/run").json()
    assert first["status"] == "success"
    assert client.post("/ingest/run").json()["status"] == "skipped"
