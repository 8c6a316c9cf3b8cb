# ===== lessonbook/services/availability/availability_service.py =====
from typing import List, Dict, Optional, Any
from datetime import datetime
from uuid import UUID
from sqlalchemy.orm import Session
import logging

from lessonbook.config.settings import get_settings
from lessonbook.core.exceptions import ValidationException
from lessonbook.core.permissions import ensure_can_publish
from lessonbook.models.availability import AvailabilityPattern, TimeOff
from lessonbook.models.profile import Profile
from lessonbook.utils.timezone_utils import ensure_utc, is_valid_timezone, utcnow

logger = logging.getLogger(__name__)

DAY_KEYS = ["0", "1", "2", "3", "4", "5", "6"]

# Monday-first display order, keys are Sunday=0
DAY_ORDER = ["1", "2", "3", "4", "5", "6", "0"]
DAY_LABELS = {
    "0": "Sun",
    "1": "Mon",
    "2": "Tue",
    "3": "Wed",
    "4": "Thu",
    "5": "Fri",
    "6": "Sat",
}


def empty_pattern() -> Dict[str, List[int]]:
    return {day: [] for day in DAY_KEYS}


def normalize_pattern(raw: Optional[Dict[Any, Any]]) -> Dict[str, List[int]]:
    """
    Return a pattern with all seven day keys and sorted unique hours.

    Day keys are 0 (Sunday) to 6. Hours must be integers in 0..23.
    """
    pattern = empty_pattern()
    if not raw:
        return pattern

    for key, hours in raw.items():
        day = str(key)
        if day not in pattern:
            raise ValidationException(f"Unknown day {key!r}; days are 0 (Sunday) to 6")
        if hours is None:
            continue
        if not isinstance(hours, (list, tuple, set)):
            raise ValidationException(f"Hours for day {day} must be a list")

        cleaned = set()
        for hour in hours:
            if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
                raise ValidationException(
                    f"Invalid hour {hour!r} for day {day}; hours must be whole numbers 0-23"
                )
            cleaned.add(hour)
        pattern[day] = sorted(cleaned)

    return pattern


def hours_to_ranges(hours: List[int]) -> List[Dict[str, int]]:
    """Collapse [9, 10, 11, 14] into [{start: 9, end: 12}, {start: 14, end: 15}]"""
    if not hours:
        return []
    ordered = sorted(hours)
    ranges = []
    range_start = prev = ordered[0]
    for hour in ordered[1:]:
        if hour == prev + 1:
            prev = hour
            continue
        ranges.append({"start": range_start, "end": prev + 1})
        range_start = prev = hour
    ranges.append({"start": range_start, "end": prev + 1})
    return ranges


def pattern_summary(pattern: Dict[str, List[int]]) -> List[Dict[str, str]]:
    """Per-day summary like ``{"day": "Mon", "summary": "09:00–12:00"}``"""
    summary = []
    for day in DAY_ORDER:
        ranges = hours_to_ranges(pattern.get(day, []))
        text = ", ".join(f"{r['start']:02d}:00–{r['end']:02d}:00" for r in ranges)
        summary.append({"day": DAY_LABELS[day], "summary": text or "—"})
    return summary


class AvailabilityService:
    """Tutor availability pattern and time-off records"""

    @staticmethod
    def resolve_timezone(pattern: Optional[AvailabilityPattern], tutor: Optional[Profile]) -> str:
        """Pattern timezone, then the tutor profile timezone, then the configured default"""
        if pattern and is_valid_timezone(pattern.timezone):
            return pattern.timezone
        if tutor and is_valid_timezone(tutor.timezone):
            return tutor.timezone
        return get_settings().DEFAULT_TIMEZONE

    @staticmethod
    def get_pattern_row(db: Session, tutor_id: UUID) -> Optional[AvailabilityPattern]:
        return db.query(AvailabilityPattern).filter(AvailabilityPattern.tutor_id == tutor_id).first()

    @staticmethod
    def get_pattern(db: Session, tutor_id: UUID) -> Dict[str, Any]:
        """Pattern for a tutor, normalized, with an empty default when none is saved"""
        row = AvailabilityService.get_pattern_row(db, tutor_id)
        tutor = db.query(Profile).filter(Profile.id == tutor_id).first()
        pattern = normalize_pattern(row.hours_by_dow) if row else empty_pattern()
        return {
            "tutor_id": str(tutor_id),
            "timezone": AvailabilityService.resolve_timezone(row, tutor),
            "hours_by_dow": pattern,
            "saved": row is not None,
            "summary": pattern_summary(pattern),
        }

    @staticmethod
    def save_pattern(
            db: Session,
            tutor: Profile,
            timezone: str,
            hours_by_dow: Dict[Any, Any]
    ) -> AvailabilityPattern:
        """Validate and upsert the tutor's weekly pattern"""
        ensure_can_publish(tutor)

        if not is_valid_timezone(timezone):
            raise ValidationException(f"Unknown timezone: {timezone}")
        pattern = normalize_pattern(hours_by_dow)

        row = AvailabilityService.get_pattern_row(db, tutor.id)
        if row is None:
            row = AvailabilityPattern(tutor_id=tutor.id)
            db.add(row)
        row.timezone = timezone
        row.hours_by_dow = pattern

        db.commit()
        db.refresh(row)

        logger.info(f"Saved availability pattern for tutor {tutor.id} ({timezone})")
        return row

    @staticmethod
    def add_time_off(
            db: Session,
            tutor: Profile,
            starts_at: datetime,
            ends_at: datetime,
            reason: Optional[str] = None
    ) -> TimeOff:
        ensure_can_publish(tutor)
        starts_at = ensure_utc(starts_at)
        ends_at = ensure_utc(ends_at)

        if ends_at <= starts_at:
            raise ValidationException("End must be after start.")

        entry = TimeOff(
            tutor_id=tutor.id,
            starts_at=starts_at,
            ends_at=ends_at,
            reason=(reason or "").strip() or None,
        )
        db.add(entry)
        db.commit()
        db.refresh(entry)

        logger.info(f"Time off {entry.id} added for tutor {tutor.id}")
        return entry

    @staticmethod
    def list_time_off(
            db: Session,
            tutor_id: UUID,
            now: Optional[datetime] = None,
            start: Optional[datetime] = None,
            end: Optional[datetime] = None
    ) -> List[TimeOff]:
        """Time off that has not ended yet, or that overlaps ``[start, end)`` when given"""
        query = db.query(TimeOff).filter(TimeOff.tutor_id == tutor_id)

        if start is not None and end is not None:
            query = query.filter(TimeOff.ends_at > ensure_utc(start), TimeOff.starts_at < ensure_utc(end))
        else:
            now = ensure_utc(now) if now else utcnow()
            query = query.filter(TimeOff.ends_at >= now)

        return query.order_by(TimeOff.starts_at.asc()).all()
