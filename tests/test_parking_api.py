from __future__ import annotations

import inspect
import sqlite3
from dataclasses import replace
from datetime import datetime

from fastapi import FastAPI
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from app import create_app
from backend.utils.config import get_settings


NOW = datetime(2030, 1, 7, 10, 5)


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        ledger_lookahead_days=1,
        max_advance_booking_days=7,
    )


def _build_test_app(tmp_path, filename: str) -> FastAPI:
    return create_app(settings=_build_test_settings(tmp_path, filename), clock=lambda: NOW)


def test_park_now_and_order_lookup(tmp_path):
    app = _build_test_app(tmp_path, "api_park_now.db")

    with TestClient(app) as client:
        response = client.post("/park_now", json={"customer_id": "C1"})
        assert response.status_code == 201
        body = response.json()
        assert body["kind"] == "confirmation"
        assert body["spot"] == 1
        assert body["start_time"] == "10:00:00"
        assert body["end_time"] == "14:00:00"
        assert body["duration_hours"] == 4.0

        order = client.get(f"/orders/{body['order_id']}")
        assert order.status_code == 200
        assert order.json()["customer_id"] == "C1"
        assert order.json()["placed_on"] == "2030-01-07"

        missing = client.get("/orders/9999")
        assert missing.status_code == 404


def test_validation_errors_map_to_400(tmp_path):
    app = _build_test_app(tmp_path, "api_validation.db")

    with TestClient(app) as client:
        blank = client.post("/park_now", json={"customer_id": " "})
        assert blank.status_code == 400
        assert blank.json()["detail"] == "Customer ID is required"

        unaligned = client.post(
            "/prebook",
            json={"customer_id": "C2", "date": "2030-01-07", "start_time": "10:07"},
        )
        assert unaligned.status_code == 400

        malformed = client.post("/prebook", json={"customer_id": "C2", "date": "not-a-date"})
        assert malformed.status_code == 422


def test_prebook_availability_and_summary(tmp_path):
    app = _build_test_app(tmp_path, "api_prebook.db")

    with TestClient(app) as client:
        booked = client.post(
            "/prebook",
            json={"customer_id": "C3", "date": "2030-01-08", "start_time": "09:00"},
        )
        assert booked.status_code == 201
        assert booked.json()["date"] == "2030-01-08"

        availability = client.get("/availability")
        assert availability.status_code == 200
        assert availability.json()["kind"] == "spot_availability"
        assert availability.json()["spot"] == 1
        assert availability.json()["available_spots"] == 100

        summary = client.get("/summary", params={"date": "2030-01-07"})
        assert summary.status_code == 200
        assert summary.json()["kind"] == "summary"
        assert summary.json()["free"] == 100
        assert summary.json()["as_of_time"] == "10:00:00"

        frames = client.get("/time_frames", params={"date": "2030-01-08"})
        assert frames.status_code == 200
        rows = frames.json()["time_frames"]
        assert len(rows) == 96
        nine = next(row for row in rows if row["start_time"] == "09:00:00")
        assert nine["assigned_spot"] == 2
        assert nine["free_spots"] == 99


def test_no_availability_maps_to_404(tmp_path):
    app = _build_test_app(tmp_path, "api_full.db")

    with TestClient(app) as client:
        ledger = app.state.ledger
        for spot in range(1, 101):
            ledger.reserve(
                target_date=NOW.date(),
                spot=spot,
                from_slot=40,
                slot_count=1,
                customer_id=f"holder-{spot}",
                placed_on=NOW.date(),
            )
        response = client.post("/park_now", json={"customer_id": "late"})
        assert response.status_code == 404


def test_tagged_requests_echo_correlation_id(tmp_path):
    app = _build_test_app(tmp_path, "api_gateway.db")

    with TestClient(app) as client:
        parked = client.post(
            "/requests",
            json={
                "correlation_id": "abc-123",
                "request": {"type": "PARK_NOW", "customer_id": "C1"},
            },
        )
        assert parked.status_code == 200
        body = parked.json()
        assert body["correlation_id"] == "abc-123"
        assert body["success"] is True
        assert body["message"] == "Parking confirmed"
        assert body["response"]["kind"] == "confirmation"
        assert body["response"]["spot"] == 1

        check = client.post("/requests", json={"request": {"type": "CHECK_AVAILABILITY"}})
        assert check.json()["message"] == "Best spot: #2 available for 4.0 hours until 14:00"
        assert check.json()["correlation_id"]

        summary = client.post("/requests", json={"request": {"type": "GET_SUMMARY"}})
        assert summary.json()["response"]["occupied"] == 1

        rejected = client.post(
            "/requests",
            json={
                "correlation_id": "bad-1",
                "request": {
                    "type": "PREBOOKING",
                    "customer_id": "C2",
                    "date": "2030-01-07",
                    "start_time": "10:07",
                },
            },
        )
        assert rejected.status_code == 200
        assert rejected.json()["success"] is False
        assert rejected.json()["correlation_id"] == "bad-1"
        assert rejected.json()["response"] == {
            "kind": "error",
            "code": "VALIDATION_ERROR",
            "reason": "Start time 10:07 is not on a 15-minute boundary",
        }

        unknown = client.post("/requests", json={"request": {"type": "CANCEL"}})
        assert unknown.status_code == 422


def test_health_reports_app_identity(tmp_path):
    app = _build_test_app(tmp_path, "api_health.db")

    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"


def test_missing_service_returns_503(tmp_path):
    app = _build_test_app(tmp_path, "api_missing.db")
    app.state.park_now_service = None

    with TestClient(app) as client:
        response = client.post("/park_now", json={"customer_id": "C1"})
        assert response.status_code == 503


def test_offset_aware_start_time_is_a_validation_error(tmp_path):
    app = _build_test_app(tmp_path, "api_aware_time.db")

    with TestClient(app) as client:
        rest = client.post(
            "/prebook",
            json={"customer_id": "C2", "date": "2030-01-07", "start_time": "10:00:00Z"},
        )
        assert rest.status_code == 400

        tagged = client.post(
            "/requests",
            json={
                "correlation_id": "abc",
                "request": {
                    "type": "PREBOOKING",
                    "customer_id": "C2",
                    "date": "2030-01-07",
                    "start_time": "10:00:00+02:00",
                },
            },
        )
        assert tagged.status_code == 200
        assert tagged.json()["correlation_id"] == "abc"
        assert tagged.json()["success"] is False
        assert tagged.json()["response"]["code"] == "VALIDATION_ERROR"

        assert app.state.ledger.repository.count_orders() == 0


def test_store_failure_maps_to_503(tmp_path):
    app = _build_test_app(tmp_path, "api_store_failure.db")

    with TestClient(app) as client:
        with sqlite3.connect(app.state.repository.database_path) as conn:
            conn.execute(
                "DELETE FROM SpotAvailability WHERE availability_date = ?;",
                (NOW.date().isoformat(),),
            )

        response = client.post("/park_now", json={"customer_id": "C1"})
        assert response.status_code == 503

        tagged = client.post(
            "/requests",
            json={"correlation_id": "store-1", "request": {"type": "PARK_NOW", "customer_id": "C1"}},
        )
        assert tagged.json()["correlation_id"] == "store-1"
        assert tagged.json()["response"]["code"] == "PERSISTENCE_ERROR"


def test_unexpected_gateway_failure_keeps_correlation_id(tmp_path, monkeypatch):
    app = _build_test_app(tmp_path, "api_unexpected.db")

    def _explode():
        raise RuntimeError("boom")

    with TestClient(app) as client:
        monkeypatch.setattr(app.state.park_now_service, "check_available_now", _explode)
        response = client.post(
            "/requests",
            json={"correlation_id": "xyz", "request": {"type": "CHECK_AVAILABILITY"}},
        )
        assert response.status_code == 200
        assert response.json()["correlation_id"] == "xyz"
        assert response.json()["response"]["code"] == "INTERNAL_ERROR"


def test_ledger_endpoints_run_in_threadpool(tmp_path):
    app = _build_test_app(tmp_path, "api_sync_handlers.db")

    routes = [route for route in app.routes if isinstance(route, APIRoute)]
    assert routes
    for route in routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
