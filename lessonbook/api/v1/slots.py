# ============================================================================
# FILE: lessonbook/api/v1/slots.py
# Student slot endpoints: hold, release, book - thin HTTP layer
# ============================================================================
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from lessonbook.config.database import get_db
from lessonbook.api.dependencies import get_current_profile, require_student
from lessonbook.models.profile import Profile
from lessonbook.services.slot.hold_service import SlotHoldService
from lessonbook.services.events.slot_events import (
    SLOT_BOOKED,
    SLOT_HELD,
    SLOT_RELEASED,
    publish_slot_event,
)

router = APIRouter(prefix="/slots", tags=["slots"])


@router.post("/{slot_id}/hold")
async def hold_slot(
        slot_id: str = Path(..., description="The slot ID"),
        student: Profile = Depends(require_student),
        db: Session = Depends(get_db)
):
    """
    Place a temporary hold on an available slot while the student checks out.
    Fails with 409 if someone else got there first.
    """
    slot, expires_at = SlotHoldService.place_hold(db, slot_id, student)

    await publish_slot_event(SLOT_HELD, slot.tutor_id, {
        "slot_id": str(slot.id),
        "hold_expires_at": expires_at.isoformat(),
    })

    return {"slot": slot.to_dict(), "hold_expires_at": expires_at.isoformat()}


@router.post("/{slot_id}/release")
async def release_slot(
        slot_id: str = Path(..., description="The slot ID"),
        current_profile: Profile = Depends(get_current_profile),
        db: Session = Depends(get_db)
):
    """
    Release the caller's hold. Safe to call repeatedly.
    """
    slot, released = SlotHoldService.release_hold(db, slot_id, current_profile)

    if released:
        await publish_slot_event(SLOT_RELEASED, slot.tutor_id, {"slot_id": str(slot.id)})

    return {"ok": True, "released": released, "message": "Hold released" if released else "Nothing to release"}


@router.post("/{slot_id}/book")
async def book_slot(
        slot_id: str = Path(..., description="The slot ID"),
        student: Profile = Depends(require_student),
        db: Session = Depends(get_db)
):
    """
    Convert the caller's live hold into a booking.
    Payment is not collected here; the booking is created as booked.
    """
    booking, slot = SlotHoldService.confirm_booking(db, slot_id, student)

    await publish_slot_event(SLOT_BOOKED, slot.tutor_id, {
        "slot_id": str(slot.id),
        "booking_id": str(booking.id),
    })

    return {"message": "Booked", "booking": booking.to_dict(), "slot": slot.to_dict()}
