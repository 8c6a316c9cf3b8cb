from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import OperationalError

from lessonbook.api.v1 import tutor_schedule
from lessonbook.models import LessonSlot, SlotSource
from lessonbook.services.availability.materializer import AvailabilityMaterializer
from lessonbook.services.schedule.week_grid_service import WeekGridService

API = "/api/v1"
EVERY_DAY = {str(day): [9, 10] for day in range(7)}


def test_save_pattern_then_sync(client, db, auth_headers, tutor):
    response = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Europe/London", "hours_by_dow": EVERY_DAY},
        headers=auth_headers(tutor),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["synced"] is True
    assert body["warning"] is None
    assert body["pattern"]["hours_by_dow"]["1"] == [9, 10]
    # 21 days x 2 hours, minus today's hours that may already have passed
    assert 40 <= body["sync"]["created"] <= 42

    db.expire_all()
    assert db.query(LessonSlot).filter(LessonSlot.source == SlotSource.PATTERN.value).count() == body["sync"]["created"]

    again = client.post(f"{API}/tutor/schedule/sync", headers=auth_headers(tutor))
    assert again.status_code == 200
    assert again.json()["created"] == 0


def test_pattern_saved_even_when_sync_fails(client, auth_headers, tutor, monkeypatch):
    def broken_sync(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(AvailabilityMaterializer, "sync", staticmethod(broken_sync))

    response = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Europe/London", "hours_by_dow": {"1": [9]}},
        headers=auth_headers(tutor),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["synced"] is False
    assert body["warning"] == tutor_schedule.MSG_SYNC_FAILED

    saved = client.get(f"{API}/tutor/schedule/pattern", headers=auth_headers(tutor)).json()
    assert saved["saved"] is True
    assert saved["hours_by_dow"]["1"] == [9]


def test_pattern_rejects_bad_input(client, auth_headers, tutor):
    bad_hour = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Europe/London", "hours_by_dow": {"1": [25]}},
        headers=auth_headers(tutor),
    )
    bad_zone = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Nowhere/Special", "hours_by_dow": {"1": [9]}},
        headers=auth_headers(tutor),
    )
    missing_zone = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"hours_by_dow": {"1": [9]}},
        headers=auth_headers(tutor),
    )
    bad_day = client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Europe/London", "hours_by_dow": {"7": [9], "mon": [10]}},
        headers=auth_headers(tutor),
    )

    assert bad_hour.status_code == 400
    assert bad_hour.json()["code"] == "Validation"
    assert bad_zone.status_code == 400
    assert missing_zone.status_code == 422
    assert "details" in missing_zone.json()
    assert bad_day.status_code == 400
    assert bad_day.json()["code"] == "Validation"
    assert client.get(f"{API}/tutor/schedule/pattern", headers=auth_headers(tutor)).json()["saved"] is False


def test_student_cannot_manage_schedule(client, auth_headers, student):
    response = client.get(f"{API}/tutor/schedule/pattern", headers=auth_headers(student))

    assert response.status_code == 403
    assert response.json()["error"] == "Tutor access required."


def test_public_pattern_endpoint(client, auth_headers, tutor):
    empty = client.get(f"{API}/tutors/{tutor.id}/availability-pattern")
    assert empty.json() == {"hours_by_dow": None, "timezone": None}

    client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "Europe/London", "hours_by_dow": {"2": [15, 14]}},
        headers=auth_headers(tutor),
    )

    saved = client.get(f"{API}/tutors/{tutor.id}/availability-pattern").json()
    assert saved["timezone"] == "Europe/London"
    assert saved["hours_by_dow"]["2"] == [14, 15]


def test_time_off_removes_pattern_slots(client, db, auth_headers, tutor):
    client.put(
        f"{API}/tutor/schedule/pattern",
        json={"timezone": "UTC", "hours_by_dow": EVERY_DAY},
        headers=auth_headers(tutor),
    )
    start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=3)

    response = client.post(
        f"{API}/tutor/schedule/time-off",
        json={"starts_at": start.isoformat(), "ends_at": (start + timedelta(days=1)).isoformat(), "reason": "Trip"},
        headers=auth_headers(tutor),
    )

    assert response.status_code == 201
    assert response.json()["synced"] is True
    assert response.json()["sync"]["removed"] == 2

    listed = client.get(f"{API}/tutor/schedule/time-off", headers=auth_headers(tutor)).json()
    assert [entry["reason"] for entry in listed["time_off"]] == ["Trip"]


def test_time_off_requires_offset(client, auth_headers, tutor):
    response = client.post(
        f"{API}/tutor/schedule/time-off",
        json={"starts_at": "2030-01-01T09:00:00", "ends_at": "2030-01-01T10:00:00"},
        headers=auth_headers(tutor),
    )

    assert response.status_code == 422


def test_manual_slot_crud(client, auth_headers, tutor, student, next_hour):
    created = client.post(
        f"{API}/tutor/slots",
        json={"starts_at": next_hour.isoformat(), "duration_minutes": 60, "price_cents": 4000},
        headers=auth_headers(tutor),
    )
    assert created.status_code == 201
    assert created.json()["overlaps"] is False
    slot_id = created.json()["slot"]["id"]

    overlapping = client.post(
        f"{API}/tutor/slots",
        json={"starts_at": (next_hour + timedelta(minutes=30)).isoformat(), "duration_minutes": 60},
        headers=auth_headers(tutor),
    )
    assert overlapping.json()["overlaps"] is True
    assert overlapping.json()["warning"]

    listed = client.get(f"{API}/tutor/slots", headers=auth_headers(tutor)).json()
    assert len(listed["slots"]) == 2

    client.post(f"{API}/slots/{slot_id}/hold", headers=auth_headers(student))
    blocked = client.delete(f"{API}/tutor/slots/{slot_id}", headers=auth_headers(tutor))
    assert blocked.status_code == 409

    client.post(f"{API}/slots/{slot_id}/release", headers=auth_headers(student))
    deleted = client.delete(f"{API}/tutor/slots/{slot_id}", headers=auth_headers(tutor))
    assert deleted.status_code == 200
    assert deleted.json() == {"ok": True}


def test_manual_slot_requires_length(client, auth_headers, tutor, next_hour):
    response = client.post(
        f"{API}/tutor/slots",
        json={"starts_at": next_hour.isoformat()},
        headers=auth_headers(tutor),
    )

    assert response.status_code == 422


def test_week_grid_endpoint(client, auth_headers, tutor):
    response = client.get(f"{API}/tutor/schedule/week?start=2026-06-10", headers=auth_headers(tutor))

    assert response.status_code == 200
    body = response.json()
    assert body["week_start"] == "2026-06-08"
    assert len(body["days"]) == 7


def test_week_grid_degrades_on_database_error(client, auth_headers, tutor, monkeypatch):
    def broken_build(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr(WeekGridService, "build_week", staticmethod(broken_build))

    response = client.get(f"{API}/tutor/schedule/week?start=2026-06-10", headers=auth_headers(tutor))

    assert response.status_code == 200
    assert response.json()["days"] == []
    assert response.json()["error"] == tutor_schedule.MSG_GRID_FAILED


def test_unhandled_database_error_is_500(client, auth_headers, tutor, monkeypatch):
    def broken_sync(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(AvailabilityMaterializer, "sync", staticmethod(broken_sync))

    response = client.post(f"{API}/tutor/schedule/sync", headers=auth_headers(tutor))

    assert response.status_code == 500
    assert response.json() == {"error": "Something went wrong. Please try again."}


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
