from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
import threading

import pytest

from smartcharge.core.errors import ServiceError
from smartcharge.models.parsing import ReservationRequest
from smartcharge.services.reservations import create_reservation, find_conflict, intervals_overlap


def _reserve(client, start, end, station_id=1, user_id="user-1"):
    return client.post("/api/reservations", json={
        "userId": user_id,
        "stationId": station_id,
        "startTime": f"2026-05-04T{start}:00Z",
        "endTime": f"2026-05-04T{end}:00Z",
    })


@pytest.fixture
def booked(client):
    resp = _reserve(client, "10:00", "11:00")
    assert resp.status_code == 201
    return resp.json()["data"]


def at(hhmm):
    h, m = hhmm.split(":")
    return datetime(2026, 5, 4, int(h), int(m))


@pytest.mark.parametrize(
    "start, end, expected",
    [
        ("10:30", "10:45", True),
        ("09:30", "10:30", True),
        ("10:30", "11:30", True),
        ("09:00", "12:00", True),
        ("10:00", "11:00", True),
        ("09:00", "10:00", False),
        ("11:00", "12:00", False),
        ("08:00", "09:00", False),
    ],
)
def test_intervals_overlap_is_half_open(start, end, expected):
    assert intervals_overlap(at(start), at(end), at("10:00"), at("11:00")) is expected


def test_create_returns_pending_reservation(booked, db):
    assert booked["status"] == "PENDING"
    assert booked["stationId"] == 1
    assert booked["startTime"] == "2026-05-04T10:00:00Z"
    assert booked["station"]["name"] == "Station Bastille A1"
    assert db.reservations.count_documents({}) == 1


@pytest.mark.parametrize(
    "start, end, status",
    [
        ("10:30", "10:45", 409),
        ("09:00", "10:00", 201),
        ("11:00", "12:00", 201),
        ("09:30", "10:30", 409),
        ("10:45", "11:15", 409),
        ("09:00", "11:30", 409),
    ],
)
def test_candidate_against_existing_reservation(client, booked, start, end, status):
    resp = _reserve(client, start, end)
    assert resp.status_code == status
    if status == 409:
        assert resp.json()["error"] == "Time slot is already reserved"


def test_terminal_reservations_do_not_conflict(client, db, booked):
    db.reservations.update_one({}, {"$set": {"status": "CANCELLED"}})
    assert _reserve(client, "10:15", "10:45").status_code == 201


def test_other_station_does_not_conflict(client, booked):
    assert _reserve(client, "10:00", "11:00", station_id=2).status_code == 201


@pytest.mark.parametrize("start, end", [("11:00", "10:00"), ("10:00", "10:00")])
def test_inverted_interval_is_rejected_even_without_reservations(client, db, start, end):
    resp = _reserve(client, start, end)
    assert resp.status_code == 400
    assert resp.json()["details"][0]["code"] == "interval_inverted"
    assert db.reservations.count_documents({}) == 0


def test_unavailable_station(client):
    resp = _reserve(client, "10:00", "11:00", station_id=3)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Station is not available for reservation"


def test_unknown_station_and_user(client):
    assert _reserve(client, "10:00", "11:00", station_id=42).status_code == 404
    resp = _reserve(client, "10:00", "11:00", user_id="ghost")
    assert resp.status_code == 404
    assert resp.json()["error"] == "User not found"


def test_busy_station_lock_reports_conflict(client, db):
    db.locks.insert_one({"_id": "reservations:1", "expires_at": datetime(2999, 1, 1)})
    resp = _reserve(client, "10:00", "11:00")
    assert resp.status_code == 409
    assert db.reservations.count_documents({}) == 0


def test_expired_lock_is_taken_over(client, db):
    db.locks.insert_one({"_id": "reservations:1", "expires_at": datetime(2000, 1, 1)})
    assert _reserve(client, "10:00", "11:00").status_code == 201
    assert db.locks.count_documents({}) == 0


def test_find_conflict_excludes_given_reservation(db, booked):
    from bson import ObjectId

    oid = ObjectId(booked["id"])
    assert find_conflict(db, 1, at("10:30"), at("11:30"))["_id"] == oid
    assert find_conflict(db, 1, at("10:30"), at("11:30"), exclude_id=oid) is None


def test_list_and_get(client, booked):
    _reserve(client, "12:00", "13:00")
    _reserve(client, "12:00", "13:00", station_id=2)

    resp = client.get("/api/reservations", params={"stationId": 1})
    assert resp.json()["count"] == 2
    assert [r["startTime"][11:16] for r in resp.json()["data"]] == ["12:00", "10:00"]

    assert client.get("/api/reservations", params={"userId": "user-1"}).json()["count"] == 3
    assert client.get("/api/reservations", params={"status": "CANCELLED"}).json()["count"] == 0

    resp = client.get(f"/api/reservations/{booked['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == booked["id"]
    assert client.get("/api/reservations/not-an-id").status_code == 404


def test_update_rechecks_conflicts(client, booked):
    other = _reserve(client, "12:00", "13:00").json()["data"]

    resp = client.patch(f"/api/reservations/{other['id']}", json={"startTime": "2026-05-04T10:30:00Z"})
    assert resp.status_code == 409

    resp = client.patch(f"/api/reservations/{other['id']}", json={"startTime": "2026-05-04T11:00:00Z"})
    assert resp.status_code == 200
    assert resp.json()["data"]["startTime"] == "2026-05-04T11:00:00Z"

    # moverse dentro de su propio hueco no choca consigo misma
    resp = client.patch(f"/api/reservations/{booked['id']}", json={"endTime": "2026-05-04T10:30:00Z"})
    assert resp.status_code == 200


def test_update_status_and_terminal_guard(client, booked):
    resp = client.patch(f"/api/reservations/{booked['id']}", json={"status": "COMPLETED"})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "COMPLETED"

    resp = client.patch(f"/api/reservations/{booked['id']}", json={"status": "ACTIVE"})
    assert resp.status_code == 400
    assert client.delete(f"/api/reservations/{booked['id']}").status_code == 400


def test_update_rejects_inverted_result(client, booked):
    resp = client.patch(f"/api/reservations/{booked['id']}", json={"endTime": "2026-05-04T09:00:00Z"})
    assert resp.status_code == 400


def test_cancel_is_soft_delete(client, db, booked):
    resp = client.delete(f"/api/reservations/{booked['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "CANCELLED"
    assert db.reservations.count_documents({}) == 1
    assert _reserve(client, "10:00", "11:00").status_code == 201


def test_concurrent_requests_for_same_slot_admit_one(db, settings):
    request = ReservationRequest(user_id="user-1", station_id=1, start_time=at("10:00"), end_time=at("11:00"))
    barrier = threading.Barrier(2)

    def reserve():
        barrier.wait()
        try:
            create_reservation(db, request, settings)
        except ServiceError as exc:
            return exc.status_code
        return 201

    with ThreadPoolExecutor(max_workers=2) as pool:
        codes = [f.result() for f in [pool.submit(reserve), pool.submit(reserve)]]

    assert sorted(codes) == [201, 409]
    assert db.reservations.count_documents({"station_id": 1}) == 1
    assert db.locks.count_documents({}) == 0


def test_date_only_times_are_rejected(client, db):
    resp = client.post("/api/reservations", json={
        "userId": "user-1",
        "stationId": 1,
        "startTime": "2026-05-04",
        "endTime": "2026-05-05",
    })
    assert resp.status_code == 400
    assert {d["code"] for d in resp.json()["details"]} == {"invalid_datetime"}
    assert db.reservations.count_documents({}) == 0
