# ===== lessonbook/tasks/schedule_tasks.py =====
from uuid import UUID
import logging

from sqlalchemy.exc import SQLAlchemyError

from lessonbook.config.celery_config import celery_app
from lessonbook.config.database import SessionLocal
from lessonbook.core.exceptions import NotFoundException
from lessonbook.services.availability.materializer import AvailabilityMaterializer
from lessonbook.services.booking.booking_query_service import BookingQueryService
from lessonbook.services.slot.hold_service import SlotHoldService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def sync_tutor_slots(self, tutor_id: str):
    """
    Materialize one tutor's pattern into slots

    Args:
        tutor_id: Profile id of the tutor
    """
    db = SessionLocal()
    try:
        result = AvailabilityMaterializer.sync(db, UUID(str(tutor_id)))
        return {"status": "success", "tutor_id": str(tutor_id), **result.to_dict()}

    except (NotFoundException, ValueError) as exc:
        logger.error(f"Cannot sync slots for tutor {tutor_id}: {exc}")
        return {"status": "failed", "tutor_id": str(tutor_id), "reason": "tutor_not_found"}

    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"Slot sync failed for tutor {tutor_id}: {exc}")

        # Retry with linear backoff: 1min, 2min, 3min
        raise self.retry(exc=exc, countdown=60 * (self.request.retries + 1))

    finally:
        db.close()


@celery_app.task
def roll_forward_all_tutors():
    """Nightly: extend every tutor's published slots to the full horizon"""
    db = SessionLocal()
    try:
        totals = AvailabilityMaterializer.sync_all(db)
        logger.info(f"Rolled availability forward: {totals}")
        return {"status": "success", **totals}
    finally:
        db.close()


@celery_app.task
def release_expired_holds():
    """Reset holds whose expiry has passed so the stored status matches what readers see"""
    db = SessionLocal()
    try:
        released = SlotHoldService.expire_stale_holds(db)
        return {"status": "success", "released": released}
    finally:
        db.close()


@celery_app.task
def complete_past_bookings():
    """Mark lessons that have ended as completed"""
    db = SessionLocal()
    try:
        completed = BookingQueryService.complete_past_bookings(db)
        return {"status": "success", "completed": completed}
    finally:
        db.close()
