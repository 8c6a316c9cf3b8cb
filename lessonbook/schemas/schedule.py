"""
Pydantic schemas for slot and availability requests
"""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, List
from datetime import datetime


def _require_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        raise ValueError("Datetime must include a timezone offset")
    return value


# ============================================================================
# Slot Schemas
# ============================================================================

class SlotCreateRequest(BaseModel):
    """Schema for a tutor adding a single slot by hand"""
    starts_at: datetime
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60, description="Lesson length in minutes")
    ends_at: Optional[datetime] = None
    price_cents: int = Field(0, ge=0, description="Price in minor currency units")
    room: Optional[str] = Field(None, max_length=255)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def check_aware(cls, v):
        return _require_aware(v)

    @model_validator(mode="after")
    def check_length(self):
        if self.duration_minutes is None and self.ends_at is None:
            raise ValueError("Provide either duration_minutes or ends_at")
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "starts_at": "2026-11-02T09:00:00+00:00",
                "duration_minutes": 60,
                "price_cents": 2500
            }
        }


# ============================================================================
# Availability Schemas
# ============================================================================

class AvailabilityPatternRequest(BaseModel):
    """Weekly pattern, keys "0" (Sunday) to "6" (Saturday), hours 0-23 in `timezone`"""
    timezone: str = Field(..., min_length=1, max_length=64)
    hours_by_dow: Dict[str, List[int]] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "timezone": "Europe/London",
                "hours_by_dow": {"1": [9, 10, 11], "3": [14, 15]}
            }
        }


class TimeOffCreateRequest(BaseModel):
    starts_at: datetime
    ends_at: datetime
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("starts_at", "ends_at")
    @classmethod
    def check_aware(cls, v):
        return _require_aware(v)
