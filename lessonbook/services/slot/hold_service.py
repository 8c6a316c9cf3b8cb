# ============================================================================
# lessonbook/services/slot/hold_service.py
# Slot hold lifecycle: available -> held -> booked, held -> available
# ============================================================================
"""
Hold and booking transitions for lesson slots.

Every transition is a single conditional UPDATE that re-checks status,
holder, expiry and the row version, so when two requests race for the
same slot exactly one of them changes the row and the other gets a
conflict. Expiry is evaluated lazily against ``now``; the periodic sweep
only tidies rows that nobody touched.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lessonbook.config.settings import get_settings
from lessonbook.core.exceptions import (
    ConflictException,
    HoldExpiredException,
    NotFoundException,
    SlotStartedException,
)
from lessonbook.core.permissions import ensure_can_hold
from lessonbook.models.booking import Booking, BookingStatus
from lessonbook.models.profile import Profile
from lessonbook.models.slot import LessonSlot, SlotStatus
from lessonbook.utils.timezone_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

MSG_SLOT_UNAVAILABLE = "Slot is no longer available. Please pick another time."
MSG_BOOKING_FAILED = "Booking failed. Please try again."
MSG_SLOT_NOT_FOUND = "Slot not found"


def parse_slot_id(slot_id) -> UUID:
    """Accept a UUID or its string form; anything else cannot name a slot."""
    if isinstance(slot_id, UUID):
        return slot_id
    try:
        return UUID(str(slot_id))
    except ValueError:
        raise NotFoundException(MSG_SLOT_NOT_FOUND)


def get_slot_or_404(db: Session, slot_id) -> LessonSlot:
    slot = db.query(LessonSlot).filter(LessonSlot.id == parse_slot_id(slot_id)).first()
    if not slot:
        raise NotFoundException(MSG_SLOT_NOT_FOUND)
    return slot


class SlotHoldService:
    """Places, releases and converts holds on lesson slots"""

    @staticmethod
    def place_hold(
            db: Session,
            slot_id,
            student: Profile,
            now: Optional[datetime] = None,
            ttl_minutes: Optional[int] = None
    ) -> Tuple[LessonSlot, datetime]:
        """
        Reserve a slot for ``student`` for the hold TTL.

        A live hold is never extended, not even by its holder.

        Raises:
            NotFoundException: unknown slot id
            SlotStartedException: the slot has already started
            ConflictException: the slot is booked, canceled or held
        """
        ensure_can_hold(student)
        now = ensure_utc(now) if now else utcnow()
        ttl = ttl_minutes if ttl_minutes is not None else get_settings().HOLD_TTL_MINUTES

        slot = get_slot_or_404(db, slot_id)

        if slot.starts_at <= now:
            raise SlotStartedException()

        if slot.effective_status(now) != SlotStatus.AVAILABLE:
            logger.info(f"Hold refused for slot {slot.id}: status={slot.status}")
            raise ConflictException(MSG_SLOT_UNAVAILABLE)

        expires_at = now + timedelta(minutes=ttl)

        updated = db.query(LessonSlot).filter(
            LessonSlot.id == slot.id,
            LessonSlot.version == slot.version,
            LessonSlot.starts_at > now,
            or_(
                LessonSlot.status == SlotStatus.AVAILABLE.value,
                and_(
                    LessonSlot.status == SlotStatus.HELD.value,
                    LessonSlot.hold_expires_at <= now,
                ),
            ),
        ).update(
            {
                LessonSlot.status: SlotStatus.HELD.value,
                LessonSlot.held_by: student.id,
                LessonSlot.hold_expires_at: expires_at,
                LessonSlot.version: LessonSlot.version + 1,
            },
            synchronize_session=False,
        )

        if updated != 1:
            db.rollback()
            logger.info(f"Lost hold race on slot {slot_id}")
            raise ConflictException(MSG_SLOT_UNAVAILABLE)

        db.commit()
        db.refresh(slot)

        logger.info(f"Slot {slot.id} held by {student.id} until {expires_at.isoformat()}")
        return slot, expires_at

    @staticmethod
    def release_hold(
            db: Session,
            slot_id,
            student: Profile,
            now: Optional[datetime] = None
    ) -> Tuple[LessonSlot, bool]:
        """
        Best-effort release. Returns ``(slot, released)``.

        Releasing a slot that is not held, or that is held live by someone
        else, changes nothing and is not an error.
        """
        now = ensure_utc(now) if now else utcnow()
        slot = get_slot_or_404(db, slot_id)

        if slot.status != SlotStatus.HELD.value:
            return slot, False

        if slot.held_by != student.id and slot.hold_is_live(now):
            logger.info(f"Ignoring release of slot {slot.id} by non-holder {student.id}")
            return slot, False

        updated = db.query(LessonSlot).filter(
            LessonSlot.id == slot.id,
            LessonSlot.version == slot.version,
            LessonSlot.status == SlotStatus.HELD.value,
        ).update(
            {
                LessonSlot.status: SlotStatus.AVAILABLE.value,
                LessonSlot.held_by: None,
                LessonSlot.hold_expires_at: None,
                LessonSlot.version: LessonSlot.version + 1,
            },
            synchronize_session=False,
        )

        if updated != 1:
            db.rollback()
            db.refresh(slot)
            return slot, False

        db.commit()
        db.refresh(slot)

        logger.info(f"Hold on slot {slot.id} released")
        return slot, True

    @staticmethod
    def confirm_booking(
            db: Session,
            slot_id,
            student: Profile,
            now: Optional[datetime] = None
    ) -> Tuple[Booking, LessonSlot]:
        """
        Turn the caller's live hold into a booking.

        The slot update and the booking insert commit together.

        Raises:
            NotFoundException: unknown slot id
            HoldExpiredException: the caller's hold has run out
            ConflictException: the caller does not hold the slot, or lost a race
        """
        ensure_can_hold(student)
        now = ensure_utc(now) if now else utcnow()

        slot = get_slot_or_404(db, slot_id)

        held_by_caller = slot.status == SlotStatus.HELD.value and slot.held_by == student.id
        if held_by_caller and not slot.hold_is_live(now):
            logger.info(f"Hold on slot {slot.id} expired before confirmation")
            raise HoldExpiredException()
        if not held_by_caller:
            raise ConflictException(MSG_BOOKING_FAILED)

        booking = Booking(
            tutor_id=slot.tutor_id,
            student_id=student.id,
            slot_id=slot.id,
            starts_at=slot.starts_at,
            ends_at=slot.ends_at,
            price_cents=slot.price_cents or 0,
            status=BookingStatus.BOOKED.value,
        )

        updated = db.query(LessonSlot).filter(
            LessonSlot.id == slot.id,
            LessonSlot.version == slot.version,
            LessonSlot.status == SlotStatus.HELD.value,
            LessonSlot.held_by == student.id,
            LessonSlot.hold_expires_at > now,
        ).update(
            {
                LessonSlot.status: SlotStatus.BOOKED.value,
                LessonSlot.held_by: None,
                LessonSlot.hold_expires_at: None,
                LessonSlot.version: LessonSlot.version + 1,
            },
            synchronize_session=False,
        )

        if updated != 1:
            db.rollback()
            logger.warning(f"Booking race lost on slot {slot_id}")
            raise ConflictException(MSG_BOOKING_FAILED)

        db.add(booking)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Slot {slot_id} already has a live booking")
            raise ConflictException(MSG_BOOKING_FAILED)

        db.refresh(booking)
        db.refresh(slot)

        logger.info(f"Slot {slot.id} booked by {student.id} (booking {booking.id})")
        return booking, slot

    @staticmethod
    def expire_stale_holds(db: Session, now: Optional[datetime] = None) -> int:
        """Reset every lapsed hold back to available. Returns the number of slots touched."""
        now = ensure_utc(now) if now else utcnow()

        updated = db.query(LessonSlot).filter(
            LessonSlot.status == SlotStatus.HELD.value,
            LessonSlot.hold_expires_at <= now,
        ).update(
            {
                LessonSlot.status: SlotStatus.AVAILABLE.value,
                LessonSlot.held_by: None,
                LessonSlot.hold_expires_at: None,
                LessonSlot.version: LessonSlot.version + 1,
            },
            synchronize_session=False,
        )
        db.commit()

        if updated:
            logger.info(f"Released {updated} expired holds")
        return updated
