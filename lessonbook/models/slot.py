# ===== lessonbook/models/slot.py =====
from datetime import datetime
from typing import Optional
from sqlalchemy import Column, String, Integer, ForeignKey, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from lessonbook.models.base import Base, UTCDateTime
from lessonbook.utils.timezone_utils import ensure_utc, utcnow


class SlotStatus(str, enum.Enum):
    AVAILABLE = "available"
    HELD = "held"
    BOOKED = "booked"
    CANCELED = "canceled"


class SlotSource(str, enum.Enum):
    PATTERN = "pattern"  # created by the availability materializer
    MANUAL = "manual"    # created directly by the tutor


class LessonSlot(Base):
    """One bookable window of tutor time. A hold lives on the row itself."""
    __tablename__ = "lesson_slots"
    __table_args__ = (
        CheckConstraint("ends_at IS NULL OR ends_at > starts_at", name="ck_lesson_slots_ends_after_start"),
        CheckConstraint("price_cents >= 0", name="ck_lesson_slots_price_non_negative"),
        Index("ix_lesson_slots_tutor_starts_at", "tutor_id", "starts_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tutor_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=True)
    price_cents = Column(Integer, default=0, nullable=False)

    status = Column(String(16), default=SlotStatus.AVAILABLE.value, nullable=False, index=True)
    held_by = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    hold_expires_at = Column(UTCDateTime, nullable=True)

    room = Column(String(255), nullable=True)
    source = Column(String(16), default=SlotSource.MANUAL.value, nullable=False)

    # Bumped on every state transition; conditional updates compare it
    version = Column(Integer, default=1, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def hold_is_live(self, now: Optional[datetime] = None) -> bool:
        """True while a hold is set and its expiry is still ahead of ``now``."""
        if self.status != SlotStatus.HELD.value or not self.hold_expires_at:
            return False
        now = ensure_utc(now) if now else utcnow()
        return ensure_utc(self.hold_expires_at) > now

    def effective_status(self, now: Optional[datetime] = None) -> SlotStatus:
        """
        Status as readers should see it at ``now``.

        Expiry is evaluated lazily: a held row whose hold has passed reads
        as available even before anything rewrites it.
        """
        if self.status == SlotStatus.HELD.value and not self.hold_is_live(now):
            return SlotStatus.AVAILABLE
        return SlotStatus(self.status)

    def to_dict(self, now: Optional[datetime] = None) -> dict:
        """Convert to dictionary for API responses"""
        return {
            "id": str(self.id),
            "tutor_id": str(self.tutor_id),
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "price_cents": self.price_cents,
            "status": self.effective_status(now).value,
            "held_by": str(self.held_by) if self.held_by and self.hold_is_live(now) else None,
            "hold_expires_at": (
                self.hold_expires_at.isoformat()
                if self.hold_expires_at and self.hold_is_live(now) else None
            ),
            "room": self.room,
            "source": self.source,
        }

    def __repr__(self):
        return f"<LessonSlot(id={self.id}, starts_at={self.starts_at}, status={self.status})>"
