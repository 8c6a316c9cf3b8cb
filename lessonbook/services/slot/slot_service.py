# ============================================================================
# lessonbook/services/slot/slot_service.py
# Tutor-managed slots and slot listings
# ============================================================================
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from lessonbook.core.exceptions import ConflictException, ValidationException
from lessonbook.core.permissions import ensure_can_edit_slot, ensure_can_publish
from lessonbook.models.profile import Profile
from lessonbook.models.slot import LessonSlot, SlotSource, SlotStatus
from lessonbook.services.slot.hold_service import get_slot_or_404
from lessonbook.utils.timezone_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


def _intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    if a_end is None or b_end is None:
        # open-ended slots count as instants
        a_end = a_end or a_start
        b_end = b_end or b_start
        return a_start <= b_end and b_start <= a_end
    return a_start < b_end and b_start < a_end


class SlotService:
    """Handles slot operations a tutor performs by hand"""

    @staticmethod
    def create_slot(
            db: Session,
            tutor: Profile,
            starts_at: datetime,
            duration_minutes: Optional[int] = None,
            ends_at: Optional[datetime] = None,
            price_cents: int = 0,
            room: Optional[str] = None,
            now: Optional[datetime] = None
    ) -> Tuple[LessonSlot, bool]:
        """
        Create a manual slot. Returns ``(slot, overlaps)``.

        Overlap with another live slot of the same tutor is reported but
        does not block creation.
        """
        ensure_can_publish(tutor)
        now = ensure_utc(now) if now else utcnow()
        starts_at = ensure_utc(starts_at)

        if starts_at <= now:
            raise ValidationException("Start time must be in the future.")

        if ends_at is None and duration_minutes is not None:
            if duration_minutes <= 0:
                raise ValidationException("Duration must be greater than zero.")
            ends_at = starts_at + timedelta(minutes=duration_minutes)
        elif ends_at is not None:
            ends_at = ensure_utc(ends_at)
            if ends_at <= starts_at:
                raise ValidationException("End must be after start.")

        if price_cents is None or price_cents < 0:
            raise ValidationException("Price cannot be negative.")

        overlaps = SlotService.has_overlap(db, tutor.id, starts_at, ends_at)

        slot = LessonSlot(
            tutor_id=tutor.id,
            starts_at=starts_at,
            ends_at=ends_at,
            price_cents=price_cents,
            status=SlotStatus.AVAILABLE.value,
            room=room,
            source=SlotSource.MANUAL.value,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)

        if overlaps:
            logger.info(f"Slot {slot.id} for tutor {tutor.id} overlaps an existing slot")
        return slot, overlaps

    @staticmethod
    def has_overlap(
            db: Session,
            tutor_id: UUID,
            starts_at: datetime,
            ends_at: Optional[datetime],
            exclude_id: Optional[UUID] = None
    ) -> bool:
        """Check for an overlapping non-canceled slot of the same tutor"""
        # A slot without an end is treated as an instant
        end = ends_at or starts_at

        query = db.query(LessonSlot).filter(
            LessonSlot.tutor_id == tutor_id,
            LessonSlot.status != SlotStatus.CANCELED.value,
            LessonSlot.starts_at <= end,
        )
        if exclude_id:
            query = query.filter(LessonSlot.id != exclude_id)

        for other in query.all():
            if _intervals_overlap(starts_at, ends_at, other.starts_at, other.ends_at):
                return True
        return False

    @staticmethod
    def delete_slot(
            db: Session,
            slot_id,
            tutor: Profile,
            now: Optional[datetime] = None
    ) -> None:
        """Delete a future slot nobody is holding or has booked"""
        now = ensure_utc(now) if now else utcnow()
        slot = get_slot_or_404(db, slot_id)
        ensure_can_edit_slot(tutor, slot)

        if slot.effective_status(now) != SlotStatus.AVAILABLE:
            raise ConflictException("Only available slots can be deleted")
        if slot.starts_at <= now:
            raise ConflictException("Only future slots can be deleted")

        deleted = db.query(LessonSlot).filter(
            LessonSlot.id == slot.id,
            LessonSlot.version == slot.version,
        ).delete(synchronize_session=False)

        if deleted != 1:
            db.rollback()
            raise ConflictException("Only available slots can be deleted")

        db.commit()
        logger.info(f"Slot {slot_id} deleted by tutor {tutor.id}")

    @staticmethod
    def list_tutor_slots(
            db: Session,
            tutor_id: UUID,
            start: Optional[datetime] = None,
            end: Optional[datetime] = None,
            now: Optional[datetime] = None,
            include_past: bool = False
    ) -> List[LessonSlot]:
        """Non-canceled slots of one tutor in ``[start, end)``, ordered by start time"""
        now = ensure_utc(now) if now else utcnow()

        query = db.query(LessonSlot).filter(
            LessonSlot.tutor_id == tutor_id,
            LessonSlot.status != SlotStatus.CANCELED.value,
        )
        if start is not None:
            query = query.filter(LessonSlot.starts_at >= ensure_utc(start))
        elif not include_past:
            query = query.filter(LessonSlot.starts_at > now)
        if end is not None:
            query = query.filter(LessonSlot.starts_at < ensure_utc(end))

        return query.order_by(LessonSlot.starts_at.asc()).all()
