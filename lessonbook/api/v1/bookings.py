# ============================================================================
# FILE: lessonbook/api/v1/bookings.py
# Session authenticated booking listings
# ============================================================================
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lessonbook.config.database import get_db
from lessonbook.api.dependencies import get_current_profile
from lessonbook.models.profile import Profile
from lessonbook.services.booking.booking_query_service import BookingQueryService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/me")
async def list_my_bookings(
        upcoming: bool = Query(False, description="Only future lessons that are still booked"),
        current_profile: Profile = Depends(get_current_profile),
        db: Session = Depends(get_db)
):
    """
    Bookings for the signed-in student, or lessons booked with the signed-in tutor.
    """
    bookings = BookingQueryService.list_for_profile(db, current_profile, upcoming_only=upcoming)
    return {"bookings": [booking.to_dict() for booking in bookings]}
