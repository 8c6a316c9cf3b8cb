# ============================================================================
# lessonbook/services/schedule/week_grid_service.py
# Read model: per-day/per-hour schedule status for one tutor week
# ============================================================================
import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from lessonbook.config.settings import get_settings
from lessonbook.models.booking import Booking, BookingStatus
from lessonbook.models.profile import Profile
from lessonbook.models.slot import LessonSlot, SlotStatus
from lessonbook.services.availability.availability_service import (
    DAY_LABELS,
    AvailabilityService,
    normalize_pattern,
)
from lessonbook.utils.timezone_utils import (
    ensure_utc,
    get_zone,
    sunday_first_weekday,
    utcnow,
    week_start,
    zoned_to_utc,
)

logger = logging.getLogger(__name__)

CELL_AVAILABLE = "available"
CELL_UNAVAILABLE = "unavailable"
CELL_BOOKED = "booked"


class WeekGridService:
    """Builds the tutor's weekly status grid. Never writes."""

    @staticmethod
    def build_week(
            db: Session,
            tutor: Profile,
            start: Optional[date] = None,
            now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Combine slots, the recurring pattern, time off and bookings into a
        7 x 24 grid in the tutor's local time.

        Unavailable cells carry a reason: held, past, time_off, unpublished
        (in the pattern but no slot yet) or out_of_pattern.
        """
        now = ensure_utc(now) if now else utcnow()
        duration = timedelta(minutes=get_settings().SLOT_DURATION_MINUTES)

        pattern_row = AvailabilityService.get_pattern_row(db, tutor.id)
        tz_name = AvailabilityService.resolve_timezone(pattern_row, tutor)
        zone = get_zone(tz_name)
        pattern = normalize_pattern(pattern_row.hours_by_dow) if pattern_row else normalize_pattern(None)

        monday = week_start(start or now.astimezone(zone).date())
        days = [monday + timedelta(days=i) for i in range(7)]

        # Pad by a day on both sides; bucketing below is by local date anyway
        range_start = datetime.combine(monday - timedelta(days=1), datetime.min.time(), tzinfo=zone)
        range_end = datetime.combine(monday + timedelta(days=8), datetime.min.time(), tzinfo=zone)

        slots = db.query(LessonSlot).filter(
            LessonSlot.tutor_id == tutor.id,
            LessonSlot.status != SlotStatus.CANCELED.value,
            LessonSlot.starts_at >= ensure_utc(range_start),
            LessonSlot.starts_at < ensure_utc(range_end),
        ).order_by(LessonSlot.starts_at.asc()).all()

        slots_by_cell: Dict[Tuple[date, int], LessonSlot] = {}
        for slot in slots:
            local = slot.starts_at.astimezone(zone)
            # First occurrence wins when a fall-back hour repeats
            slots_by_cell.setdefault((local.date(), local.hour), slot)

        students = WeekGridService._students_for_slots(
            db, [s.id for s in slots if s.status == SlotStatus.BOOKED.value]
        )

        time_off = AvailabilityService.list_time_off(
            db, tutor.id, start=range_start, end=range_end
        )

        grid_days: List[Dict[str, Any]] = []
        for day in days:
            day_key = str(sunday_first_weekday(day))
            pattern_hours = set(pattern.get(day_key, []))
            cells = []

            for hour in range(24):
                starts_at = zoned_to_utc(day, hour, tz_name)
                if starts_at is None:
                    continue  # local hour does not exist (DST gap)

                cell: Dict[str, Any] = {
                    "hour": hour,
                    "starts_at": starts_at.isoformat(),
                    "status": CELL_UNAVAILABLE,
                    "reason": None,
                    "slot_id": None,
                    "student": None,
                }

                slot = slots_by_cell.get((day, hour))
                if slot is not None:
                    cell["slot_id"] = str(slot.id)
                    effective = slot.effective_status(now)
                    if effective == SlotStatus.BOOKED:
                        cell["status"] = CELL_BOOKED
                        cell["student"] = students.get(slot.id)
                    elif effective == SlotStatus.HELD:
                        cell["reason"] = "held"
                    elif slot.starts_at <= now:
                        cell["reason"] = "past"
                    else:
                        cell["status"] = CELL_AVAILABLE
                elif any(t.starts_at < starts_at + duration and starts_at < t.ends_at for t in time_off):
                    cell["reason"] = "time_off"
                elif hour in pattern_hours:
                    cell["reason"] = "past" if starts_at <= now else "unpublished"
                else:
                    cell["reason"] = "out_of_pattern"

                cells.append(cell)

            grid_days.append({
                "date": day.isoformat(),
                "weekday": DAY_LABELS[day_key],
                "cells": cells,
            })

        return {
            "tutor_id": str(tutor.id),
            "timezone": tz_name,
            "week_start": monday.isoformat(),
            "days": grid_days,
            "error": None,
        }

    @staticmethod
    def _students_for_slots(db: Session, slot_ids: List) -> Dict[Any, Dict[str, Any]]:
        """Map slot id -> student identity from the live booking on that slot"""
        if not slot_ids:
            return {}

        rows = db.query(Booking, Profile).join(
            Profile, Profile.id == Booking.student_id
        ).filter(
            Booking.slot_id.in_(slot_ids),
            Booking.status != BookingStatus.CANCELED.value,
        ).all()

        return {
            booking.slot_id: {
                "id": str(student.id),
                "display_name": student.public_name,
                "avatar_url": student.avatar_url,
                "booking_id": str(booking.id),
            }
            for booking, student in rows
        }

    @staticmethod
    def empty_week(tutor: Profile, start: Optional[date], message: str) -> Dict[str, Any]:
        """Degraded response when the grid cannot be built"""
        return {
            "tutor_id": str(tutor.id),
            "timezone": tutor.timezone,
            "week_start": week_start(start).isoformat() if start else None,
            "days": [],
            "error": message,
        }
