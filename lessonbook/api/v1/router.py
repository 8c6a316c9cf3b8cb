"""
API v1 router setup
Organized into: public tutor pages, student slot actions, and tutor schedule management
"""
from fastapi import APIRouter

from lessonbook.api.v1 import bookings, slots, tutor_schedule, tutor_slots, tutors

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (No authentication required)
# ============================================================================
api_v1_router.include_router(
    tutors.router,
    tags=["Public"]
)

# ============================================================================
# STUDENT ROUTES (JWT authentication, student role)
# ============================================================================
api_v1_router.include_router(
    slots.router,
    tags=["Student"]
)

api_v1_router.include_router(
    bookings.router,
    tags=["Student"]
)

# ============================================================================
# TUTOR ROUTES (JWT authentication, tutor role)
# ============================================================================
api_v1_router.include_router(
    tutor_slots.router,
    tags=["Tutor"]
)

api_v1_router.include_router(
    tutor_schedule.router,
    tags=["Tutor"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "No authentication required",
            "student": "JWT Bearer token required (student profile)",
            "tutor": "JWT Bearer token required (tutor profile)"
        }
    }
