# ============================================================================
# FILE: lessonbook/api/v1/tutor_schedule.py
# Tutor availability pattern, time off, slot sync and weekly grid
# ============================================================================
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lessonbook.config.database import get_db
from lessonbook.api.dependencies import require_tutor
from lessonbook.core.exceptions import DomainException
from lessonbook.models.profile import Profile
from lessonbook.schemas.schedule import AvailabilityPatternRequest, TimeOffCreateRequest
from lessonbook.services.availability.availability_service import AvailabilityService
from lessonbook.services.availability.materializer import AvailabilityMaterializer
from lessonbook.services.events.slot_events import SLOTS_SYNCED, publish_slot_event
from lessonbook.services.schedule.week_grid_service import WeekGridService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tutor/schedule", tags=["tutor-schedule"])

MSG_SYNC_FAILED = "Availability saved, but we couldn't refresh booking slots. Please try again."
MSG_GRID_FAILED = "We couldn't load your schedule right now. Please try again."


async def _sync_after_change(db: Session, tutor: Profile) -> dict:
    """
    Refresh slots after the pattern or time off changed.

    The change itself is already committed; a failed refresh only produces
    a warning so the tutor can retry the sync on its own.
    """
    try:
        result = AvailabilityMaterializer.sync(db, tutor.id)
    except (SQLAlchemyError, DomainException) as e:
        db.rollback()
        logger.error(f"Slot sync after schedule change failed for tutor {tutor.id}: {e}")
        return {"synced": False, "sync": None, "warning": MSG_SYNC_FAILED}

    await publish_slot_event(SLOTS_SYNCED, tutor.id, result.to_dict())
    return {"synced": True, "sync": result.to_dict(), "warning": None}


@router.post("/sync")
async def sync_slots(
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """Materialize the saved weekly pattern into slots for the coming weeks."""
    result = AvailabilityMaterializer.sync(db, tutor.id)

    await publish_slot_event(SLOTS_SYNCED, tutor.id, result.to_dict())

    return result.to_dict()


@router.get("/pattern")
async def get_pattern(
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    return AvailabilityService.get_pattern(db, tutor.id)


@router.put("/pattern")
async def save_pattern(
        request: AvailabilityPatternRequest,
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """
    Replace the weekly pattern, then refresh slots.
    The pattern is saved even when the refresh fails.
    """
    AvailabilityService.save_pattern(db, tutor, request.timezone, request.hours_by_dow)
    outcome = await _sync_after_change(db, tutor)

    return {
        "message": "Availability saved",
        "pattern": AvailabilityService.get_pattern(db, tutor.id),
        **outcome,
    }


@router.get("/time-off")
async def list_time_off(
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    entries = AvailabilityService.list_time_off(db, tutor.id)
    return {"time_off": [entry.to_dict() for entry in entries]}


@router.post("/time-off", status_code=201)
async def add_time_off(
        request: TimeOffCreateRequest,
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """Block out a window; pattern slots inside it are removed by the follow-up sync."""
    entry = AvailabilityService.add_time_off(
        db, tutor, request.starts_at, request.ends_at, request.reason
    )
    outcome = await _sync_after_change(db, tutor)

    return {"time_off": entry.to_dict(), **outcome}


@router.get("/week")
async def get_week(
        start: Optional[date] = Query(None, description="Any date in the week; snapped to Monday"),
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """Per-day/per-hour status grid. Degrades to an empty grid on storage errors."""
    try:
        return WeekGridService.build_week(db, tutor, start)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Week grid failed for tutor {tutor.id}: {e}")
        return WeekGridService.empty_week(tutor, start, MSG_GRID_FAILED)
