# ============================================================================
# FILE: lessonbook/api/v1/tutors.py
# Public tutor endpoints used by the booking pages
# ============================================================================
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lessonbook.config.database import get_db
from lessonbook.services.availability.availability_service import AvailabilityService, normalize_pattern
from lessonbook.services.slot.slot_service import SlotService
from lessonbook.utils.timezone_utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutors", tags=["tutors"])


@router.get("/{tutor_id}/availability-pattern")
async def get_availability_pattern(
        tutor_id: UUID = Path(..., description="The tutor ID"),
        db: Session = Depends(get_db)
):
    """The tutor's saved weekly pattern, or nulls when none is saved."""
    row = AvailabilityService.get_pattern_row(db, tutor_id)
    return {
        "hours_by_dow": normalize_pattern(row.hours_by_dow) if row else None,
        "timezone": row.timezone if row else None,
    }


@router.get("/{tutor_id}/slots")
async def list_tutor_slots(
        tutor_id: UUID = Path(..., description="The tutor ID"),
        start: Optional[datetime] = Query(None, description="Only slots starting at or after this instant"),
        end: Optional[datetime] = Query(None, description="Only slots starting before this instant"),
        db: Session = Depends(get_db)
):
    """
    Bookable slots for a tutor, with the status as of now.
    Returns an empty list with an error message if slots cannot be loaded.
    """
    now = utcnow()
    try:
        slots = SlotService.list_tutor_slots(db, tutor_id, start=start, end=end, now=now)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Slot listing failed for tutor {tutor_id}: {e}")
        return {"slots": [], "error": "Could not load slots"}

    return {"slots": [slot.to_dict(now) for slot in slots], "error": None}
