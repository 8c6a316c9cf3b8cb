# lessonbook/models/__init__.py
from .base import Base, UTCDateTime
from .profile import Profile, UserRole
from .slot import LessonSlot, SlotStatus, SlotSource
from .availability import AvailabilityPattern, TimeOff
from .booking import Booking, BookingStatus

__all__ = [
    "Base",
    "UTCDateTime",
    "Profile",
    "UserRole",
    "LessonSlot",
    "SlotStatus",
    "SlotSource",
    "AvailabilityPattern",
    "TimeOff",
    "Booking",
    "BookingStatus",
]
