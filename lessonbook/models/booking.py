# ===== lessonbook/models/booking.py =====
from sqlalchemy import Column, String, Integer, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from lessonbook.models.base import Base, UTCDateTime
from lessonbook.utils.timezone_utils import utcnow


class BookingStatus(str, enum.Enum):
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELED = "canceled"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one live booking per slot
        Index(
            "uq_bookings_live_slot",
            "slot_id",
            unique=True,
            postgresql_where=text("status <> 'canceled' AND slot_id IS NOT NULL"),
            sqlite_where=text("status <> 'canceled' AND slot_id IS NOT NULL"),
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # References
    tutor_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    slot_id = Column(UUID(as_uuid=True), ForeignKey("lesson_slots.id", ondelete="SET NULL"), nullable=True)

    # Copied from the slot at confirmation time
    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=True)
    price_cents = Column(Integer, default=0, nullable=False)

    # Status tracking
    status = Column(String(16), default=BookingStatus.BOOKED.value, nullable=False)  # booked, completed, canceled

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": str(self.id),
            "tutor_id": str(self.tutor_id),
            "student_id": str(self.student_id),
            "slot_id": str(self.slot_id) if self.slot_id else None,
            "starts_at": self.starts_at.isoformat(),
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "price_cents": self.price_cents,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
