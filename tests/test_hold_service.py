from datetime import datetime, timedelta, timezone

import pytest

from lessonbook.core.exceptions import (
    ConflictException,
    ForbiddenException,
    HoldExpiredException,
    NotFoundException,
    SlotStartedException,
)
from lessonbook.models import Booking, BookingStatus, LessonSlot, SlotStatus
from lessonbook.services.slot import hold_service
from lessonbook.services.slot.hold_service import SlotHoldService

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def slot(make_slot):
    return make_slot(NOW + timedelta(days=1))


def _reload(db, slot_id):
    db.expire_all()
    return db.query(LessonSlot).filter(LessonSlot.id == slot_id).one()


def test_hold_sets_fifteen_minute_expiry(db, slot, student):
    held, expires_at = SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    assert expires_at == NOW + timedelta(minutes=15)
    assert held.status == SlotStatus.HELD.value
    assert held.held_by == student.id
    assert held.hold_expires_at == expires_at
    assert held.version == 2


def test_second_student_conflicts_while_hold_is_live(db, slot, student, other_student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, other_student, now=NOW + timedelta(minutes=5))

    assert _reload(db, slot.id).held_by == student.id


def test_holder_cannot_extend_live_hold(db, slot, student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, student, now=NOW + timedelta(minutes=14))

    assert _reload(db, slot.id).hold_expires_at == NOW + timedelta(minutes=15)

    # once the hold lapses the same student may pick the slot again
    _, expires_at = SlotHoldService.place_hold(db, slot.id, student, now=NOW + timedelta(minutes=16))
    assert expires_at == NOW + timedelta(minutes=31)


def test_hold_then_book_then_others_conflict(db, slot, student, other_student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)
    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, other_student, now=NOW + timedelta(minutes=1))

    booking, booked = SlotHoldService.confirm_booking(db, slot.id, student, now=NOW + timedelta(minutes=2))

    assert booked.status == SlotStatus.BOOKED.value
    assert booked.held_by is None
    assert booked.hold_expires_at is None
    assert booking.status == BookingStatus.BOOKED.value
    assert booking.student_id == student.id
    assert booking.tutor_id == slot.tutor_id
    assert booking.starts_at == slot.starts_at
    assert booking.price_cents == 3000

    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, other_student, now=NOW + timedelta(minutes=3))


def test_confirm_after_expiry_fails_and_slot_is_free_again(db, slot, student, other_student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    with pytest.raises(HoldExpiredException) as exc_info:
        SlotHoldService.confirm_booking(db, slot.id, student, now=NOW + timedelta(minutes=16))
    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "Hold expired. Please pick the slot again."

    # Still stored as held, but reads as available once the hold has lapsed
    stale = _reload(db, slot.id)
    assert stale.status == SlotStatus.HELD.value
    assert stale.effective_status(NOW + timedelta(minutes=16)) == SlotStatus.AVAILABLE

    held, _ = SlotHoldService.place_hold(db, slot.id, other_student, now=NOW + timedelta(minutes=16))
    assert held.held_by == other_student.id
    assert db.query(Booking).count() == 0


def test_confirm_exactly_at_expiry_is_expired(db, slot, student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    with pytest.raises(HoldExpiredException):
        SlotHoldService.confirm_booking(db, slot.id, student, now=NOW + timedelta(minutes=15))


def test_confirm_without_hold_conflicts(db, slot, student, other_student):
    with pytest.raises(ConflictException):
        SlotHoldService.confirm_booking(db, slot.id, student, now=NOW)

    SlotHoldService.place_hold(db, slot.id, student, now=NOW)
    with pytest.raises(ConflictException) as exc_info:
        SlotHoldService.confirm_booking(db, slot.id, other_student, now=NOW)
    assert not isinstance(exc_info.value, HoldExpiredException)


def test_hold_on_started_slot_is_rejected(db, make_slot, student):
    started = make_slot(NOW - timedelta(minutes=5))

    with pytest.raises(SlotStartedException) as exc_info:
        SlotHoldService.place_hold(db, started.id, student, now=NOW)
    assert exc_info.value.status_code == 400


@pytest.mark.parametrize("status", [SlotStatus.BOOKED.value, SlotStatus.CANCELED.value])
def test_hold_on_booked_or_canceled_slot_conflicts(db, make_slot, student, status):
    slot = make_slot(NOW + timedelta(days=1), status=status)

    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, student, now=NOW)


def test_unknown_or_malformed_slot_id_is_not_found(db, student):
    with pytest.raises(NotFoundException):
        SlotHoldService.place_hold(db, "not-a-uuid", student, now=NOW)
    with pytest.raises(NotFoundException):
        SlotHoldService.place_hold(db, "00000000-0000-0000-0000-000000000000", student, now=NOW)


def test_tutor_cannot_hold(db, slot, tutor):
    with pytest.raises(ForbiddenException):
        SlotHoldService.place_hold(db, slot.id, tutor, now=NOW)


def test_hold_loses_race_on_stale_version(db, slot, student, other_student, monkeypatch):
    # Snapshot the row as the losing request saw it before the winner committed
    stale = db.query(LessonSlot).filter(LessonSlot.id == slot.id).one()
    db.expunge(stale)

    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    monkeypatch.setattr(hold_service, "get_slot_or_404", lambda _db, _id: stale)
    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, other_student, now=NOW)

    winner = _reload(db, slot.id)
    assert winner.held_by == student.id
    assert winner.version == 2


def test_release_is_noop_on_available_slot(db, slot, student):
    before = _reload(db, slot.id).version

    released_slot, released = SlotHoldService.release_hold(db, slot.id, student, now=NOW)

    assert released is False
    assert released_slot.status == SlotStatus.AVAILABLE.value
    assert _reload(db, slot.id).version == before


def test_release_twice_is_safe(db, slot, student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    _, first = SlotHoldService.release_hold(db, slot.id, student, now=NOW + timedelta(minutes=1))
    _, second = SlotHoldService.release_hold(db, slot.id, student, now=NOW + timedelta(minutes=2))

    assert first is True
    assert second is False
    reloaded = _reload(db, slot.id)
    assert reloaded.status == SlotStatus.AVAILABLE.value
    assert reloaded.held_by is None


def test_release_by_someone_else_leaves_live_hold(db, slot, student, other_student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)

    _, released = SlotHoldService.release_hold(db, slot.id, other_student, now=NOW + timedelta(minutes=1))

    assert released is False
    assert _reload(db, slot.id).held_by == student.id


def test_release_does_not_touch_booked_slot(db, slot, student):
    SlotHoldService.place_hold(db, slot.id, student, now=NOW)
    SlotHoldService.confirm_booking(db, slot.id, student, now=NOW)

    _, released = SlotHoldService.release_hold(db, slot.id, student, now=NOW)

    assert released is False
    assert _reload(db, slot.id).status == SlotStatus.BOOKED.value


def test_expire_stale_holds_only_resets_lapsed(db, make_slot, student, other_student):
    lapsed = make_slot(NOW + timedelta(days=1))
    live = make_slot(NOW + timedelta(days=2))
    SlotHoldService.place_hold(db, lapsed.id, student, now=NOW - timedelta(minutes=30))
    SlotHoldService.place_hold(db, live.id, other_student, now=NOW)

    assert SlotHoldService.expire_stale_holds(db, now=NOW) == 1

    assert _reload(db, lapsed.id).status == SlotStatus.AVAILABLE.value
    assert _reload(db, lapsed.id).held_by is None
    assert _reload(db, live.id).status == SlotStatus.HELD.value


def test_never_held_and_booked_at_once(db, slot, student, other_student):
    checkpoints = [NOW, NOW + timedelta(minutes=1), NOW + timedelta(minutes=20)]

    SlotHoldService.place_hold(db, slot.id, student, now=checkpoints[0])
    SlotHoldService.confirm_booking(db, slot.id, student, now=checkpoints[1])
    with pytest.raises(ConflictException):
        SlotHoldService.place_hold(db, slot.id, other_student, now=checkpoints[2])

    final = _reload(db, slot.id)
    for moment in checkpoints:
        assert not (final.hold_is_live(moment) and final.status == SlotStatus.BOOKED.value)
    assert db.query(Booking).filter(Booking.slot_id == slot.id).count() == 1
