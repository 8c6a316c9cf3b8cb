from datetime import date, datetime, timedelta, timezone

import pytest

from lessonbook.models import AvailabilityPattern, Booking, SlotStatus, TimeOff
from lessonbook.services.schedule.week_grid_service import WeekGridService

UTC = timezone.utc

# Monday 2026-06-08, 09:30 in London
NOW = datetime(2026, 6, 8, 8, 30, tzinfo=UTC)


@pytest.fixture
def pattern(db, tutor):
    row = AvailabilityPattern(
        tutor_id=tutor.id,
        timezone="Europe/London",
        hours_by_dow={"1": [9, 10, 11], "2": [9]},
    )
    db.add(row)
    db.commit()
    return row


def _cell(grid, day, hour):
    for entry in grid["days"]:
        if entry["date"] == day.isoformat():
            for cell in entry["cells"]:
                if cell["hour"] == hour:
                    return cell
    raise AssertionError(f"no cell for {day} {hour}")


def test_grid_shape_and_metadata(db, tutor, pattern):
    grid = WeekGridService.build_week(db, tutor, date(2026, 6, 10), now=NOW)

    assert grid["week_start"] == "2026-06-08"
    assert grid["timezone"] == "Europe/London"
    assert grid["error"] is None
    assert [d["weekday"] for d in grid["days"]] == ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    assert all(len(d["cells"]) == 24 for d in grid["days"])


def test_cell_statuses(db, tutor, student, other_student, pattern, make_slot):
    monday = date(2026, 6, 8)
    make_slot(datetime(2026, 6, 8, 8, 0, tzinfo=UTC))  # 09:00 local, already started
    booked = make_slot(datetime(2026, 6, 8, 9, 0, tzinfo=UTC), status=SlotStatus.BOOKED.value)
    make_slot(
        datetime(2026, 6, 8, 10, 0, tzinfo=UTC),
        status=SlotStatus.HELD.value,
        held_by=other_student.id,
        hold_expires_at=NOW + timedelta(minutes=10),
    )
    open_slot = make_slot(datetime(2026, 6, 8, 11, 0, tzinfo=UTC))  # 12:00 local, outside the pattern
    db.add(Booking(
        tutor_id=tutor.id,
        student_id=student.id,
        slot_id=booked.id,
        starts_at=booked.starts_at,
        ends_at=booked.ends_at,
        price_cents=3000,
    ))
    db.add(TimeOff(
        tutor_id=tutor.id,
        starts_at=datetime(2026, 6, 11, 0, 0, tzinfo=UTC),
        ends_at=datetime(2026, 6, 12, 0, 0, tzinfo=UTC),
    ))
    db.commit()

    grid = WeekGridService.build_week(db, tutor, monday, now=NOW)

    past = _cell(grid, monday, 9)
    assert (past["status"], past["reason"]) == ("unavailable", "past")

    booked_cell = _cell(grid, monday, 10)
    assert booked_cell["status"] == "booked"
    assert booked_cell["slot_id"] == str(booked.id)
    assert booked_cell["student"]["display_name"] == "Sam Student"
    assert booked_cell["student"]["avatar_url"] == "https://img.test/sam.png"

    held = _cell(grid, monday, 11)
    assert (held["status"], held["reason"]) == ("unavailable", "held")

    available = _cell(grid, monday, 12)
    assert available["status"] == "available"
    assert available["slot_id"] == str(open_slot.id)

    unpublished = _cell(grid, date(2026, 6, 9), 9)
    assert (unpublished["status"], unpublished["reason"]) == ("unavailable", "unpublished")

    out_of_pattern = _cell(grid, date(2026, 6, 10), 9)
    assert out_of_pattern["reason"] == "out_of_pattern"

    time_off = _cell(grid, date(2026, 6, 11), 12)
    assert time_off["reason"] == "time_off"


def test_lapsed_hold_shows_available(db, tutor, student, pattern, make_slot):
    make_slot(
        datetime(2026, 6, 9, 8, 0, tzinfo=UTC),
        status=SlotStatus.HELD.value,
        held_by=student.id,
        hold_expires_at=NOW - timedelta(minutes=1),
    )

    grid = WeekGridService.build_week(db, tutor, date(2026, 6, 8), now=NOW)

    assert _cell(grid, date(2026, 6, 9), 9)["status"] == "available"


def test_spring_forward_day_has_no_missing_hour(db, tutor, pattern):
    grid = WeekGridService.build_week(
        db, tutor, date(2026, 3, 29), now=datetime(2026, 3, 20, tzinfo=UTC)
    )

    sunday = grid["days"][-1]
    assert sunday["date"] == "2026-03-29"
    hours = [c["hour"] for c in sunday["cells"]]
    assert len(hours) == 23
    assert 1 not in hours


def test_grid_without_pattern_uses_profile_timezone(db, tutor):
    grid = WeekGridService.build_week(db, tutor, date(2026, 6, 8), now=NOW)

    assert grid["timezone"] == "Europe/London"
    assert _cell(grid, date(2026, 6, 9), 9)["reason"] == "out_of_pattern"


def test_empty_week(tutor):
    grid = WeekGridService.empty_week(tutor, date(2026, 6, 10), "boom")

    assert grid["days"] == []
    assert grid["week_start"] == "2026-06-08"
    assert grid["error"] == "boom"
