# ============================================================================
# FILE: lessonbook/models/profile.py
# Marketplace profile, keyed by the identity provider's user id
# ============================================================================
from sqlalchemy import Column, String, Boolean, Integer, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
import uuid
import enum

from lessonbook.models.base import Base, UTCDateTime
from lessonbook.utils.timezone_utils import utcnow


class UserRole(str, enum.Enum):
    """Marketplace roles. Policy checks switch on this, never on raw strings."""
    STUDENT = "student"
    TUTOR = "tutor"


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the identity provider's subject claim
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    role = Column(
        SQLEnum(UserRole, name="userrole", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True
    )

    display_name = Column(String(255), nullable=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    avatar_url = Column(String(1024), nullable=True)

    # Tutor extension fields
    timezone = Column(String(64), nullable=True)
    hourly_rate_cents = Column(Integer, nullable=True)

    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def is_tutor(self) -> bool:
        return self.role == UserRole.TUTOR

    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    @property
    def public_name(self) -> str:
        """Name shown to other users, falling back the same way the dashboards do."""
        return self.display_name or self.full_name or self.email or "Unnamed user"

    def __repr__(self):
        return f"<Profile {self.id} ({self.role})>"
