# ============================================================================
# lessonbook/services/booking/booking_query_service.py
# Pure business logic - no FastAPI dependencies
# ============================================================================
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from lessonbook.models.booking import Booking, BookingStatus
from lessonbook.models.profile import Profile, UserRole
from lessonbook.utils.timezone_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)


class BookingQueryService:
    """Service layer for booking listings and status housekeeping."""

    @staticmethod
    def list_for_profile(
            db: Session,
            profile: Profile,
            upcoming_only: bool = False,
            now: Optional[datetime] = None
    ) -> List[Booking]:
        """Bookings where the profile is the student or the tutor, by start time"""
        if profile.role == UserRole.STUDENT:
            query = db.query(Booking).filter(Booking.student_id == profile.id)
        elif profile.role == UserRole.TUTOR:
            query = db.query(Booking).filter(Booking.tutor_id == profile.id)
        else:
            raise ValueError(f"Unhandled role: {profile.role}")

        if upcoming_only:
            now = ensure_utc(now) if now else utcnow()
            query = query.filter(
                Booking.starts_at > now,
                Booking.status == BookingStatus.BOOKED.value,
            )

        return query.order_by(Booking.starts_at.asc()).all()

    @staticmethod
    def complete_past_bookings(db: Session, now: Optional[datetime] = None) -> int:
        """Mark booked lessons whose time has passed as completed"""
        now = ensure_utc(now) if now else utcnow()

        updated = db.query(Booking).filter(
            Booking.status == BookingStatus.BOOKED.value,
            or_(
                Booking.ends_at <= now,
                and_(Booking.ends_at.is_(None), Booking.starts_at <= now),
            ),
        ).update(
            {Booking.status: BookingStatus.COMPLETED.value},
            synchronize_session=False,
        )
        db.commit()

        if updated:
            logger.info(f"Marked {updated} bookings as completed")
        return updated
