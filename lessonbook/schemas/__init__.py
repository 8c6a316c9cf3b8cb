# lessonbook/schemas/__init__.py
from .schedule import (
    SlotCreateRequest,
    AvailabilityPatternRequest,
    TimeOffCreateRequest
)
