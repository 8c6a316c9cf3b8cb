# ===== lessonbook/models/availability.py =====
from sqlalchemy import Column, String, ForeignKey, JSON, CheckConstraint, Index
from sqlalchemy.dialects.postgresql import UUID
import uuid

from lessonbook.models.base import Base, UTCDateTime
from lessonbook.utils.timezone_utils import utcnow


class AvailabilityPattern(Base):
    """Recurring weekly availability, one row per tutor (replaced wholesale)"""
    __tablename__ = "tutor_availability_patterns"

    tutor_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), primary_key=True)
    timezone = Column(String(64), nullable=False)

    # {"0": [9, 10], ..., "6": []}; 0=Sunday, hours are local to `timezone`
    hours_by_dow = Column(JSON, nullable=False, default=dict)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)


class TimeOff(Base):
    """Explicit window where the tutor is unavailable regardless of pattern"""
    __tablename__ = "tutor_time_off"
    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="ck_tutor_time_off_ends_after_start"),
        Index("ix_tutor_time_off_tutor_window", "tutor_id", "starts_at", "ends_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tutor_id = Column(UUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)

    starts_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    reason = Column(String, nullable=True)  # "Travelling", "Holiday", etc.

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    def overlaps(self, start, end) -> bool:
        return self.starts_at < end and start < self.ends_at

    def to_dict(self):
        return {
            "id": str(self.id),
            "tutor_id": str(self.tutor_id),
            "starts_at": self.starts_at.isoformat(),
            "ends_at": self.ends_at.isoformat(),
            "reason": self.reason,
        }
