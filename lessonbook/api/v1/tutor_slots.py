# ============================================================================
# FILE: lessonbook/api/v1/tutor_slots.py
# Tutor slot management - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from lessonbook.config.database import get_db
from lessonbook.api.dependencies import require_tutor
from lessonbook.models.profile import Profile
from lessonbook.schemas.schedule import SlotCreateRequest
from lessonbook.services.slot.slot_service import SlotService
from lessonbook.services.events.slot_events import SLOT_CREATED, SLOT_DELETED, publish_slot_event
from lessonbook.utils.timezone_utils import utcnow

router = APIRouter(prefix="/tutor/slots", tags=["tutor-slots"])


@router.get("")
async def list_my_slots(
        include_past: bool = Query(False, description="Include slots that already started"),
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """Upcoming slots of the signed-in tutor."""
    now = utcnow()
    slots = SlotService.list_tutor_slots(db, tutor.id, now=now, include_past=include_past)
    return {"slots": [slot.to_dict(now) for slot in slots]}


@router.post("", status_code=201)
async def create_slot(
        request: SlotCreateRequest,
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """
    Add a single slot. Overlap with another slot is reported, not blocked.
    """
    slot, overlaps = SlotService.create_slot(
        db,
        tutor,
        starts_at=request.starts_at,
        duration_minutes=request.duration_minutes,
        ends_at=request.ends_at,
        price_cents=request.price_cents,
        room=request.room,
    )

    await publish_slot_event(SLOT_CREATED, tutor.id, {"slot_id": str(slot.id)})

    return {
        "slot": slot.to_dict(),
        "overlaps": overlaps,
        "warning": "Heads up: this overlaps with one of your existing slots." if overlaps else None,
    }


@router.delete("/{slot_id}")
async def delete_slot(
        slot_id: str = Path(..., description="The slot ID"),
        tutor: Profile = Depends(require_tutor),
        db: Session = Depends(get_db)
):
    """Delete a future, available slot."""
    SlotService.delete_slot(db, slot_id, tutor)

    await publish_slot_event(SLOT_DELETED, tutor.id, {"slot_id": slot_id})

    return {"ok": True}
