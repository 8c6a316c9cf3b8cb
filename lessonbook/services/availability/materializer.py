# ===== lessonbook/services/availability/materializer.py =====
"""
Turns a tutor's recurring weekly pattern into concrete lesson slots.

The pattern is the record of truth. Sync can run any number of times:
instants that already have a slot (in any status, canceled included) are
left alone, so a second run with unchanged inputs creates nothing.
"""
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Set
from uuid import UUID
from sqlalchemy.orm import Session
import logging

from lessonbook.config.settings import get_settings
from lessonbook.core.exceptions import NotFoundException
from lessonbook.models.availability import AvailabilityPattern, TimeOff
from lessonbook.models.profile import Profile
from lessonbook.models.slot import LessonSlot, SlotSource, SlotStatus
from lessonbook.services.availability.availability_service import (
    AvailabilityService,
    normalize_pattern,
)
from lessonbook.utils.timezone_utils import (
    ensure_utc,
    local_today,
    sunday_first_weekday,
    utcnow,
    zoned_to_utc,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    created: int = 0
    removed: int = 0
    skipped: int = 0
    timezone: Optional[str] = None

    def to_dict(self):
        return asdict(self)


def _in_time_off(start: datetime, end: datetime, time_off: List[TimeOff]) -> bool:
    return any(entry.starts_at < end and start < entry.ends_at for entry in time_off)


class AvailabilityMaterializer:
    """Publishes pattern slots for a rolling future window"""

    @staticmethod
    def target_instants(
            pattern: Dict[str, List[int]],
            tz_name: str,
            now: datetime,
            horizon_days: int,
            duration: timedelta,
            time_off: List[TimeOff]
    ) -> List[datetime]:
        """
        Every future start instant the pattern asks for within the horizon.

        Local times that fall in a DST gap do not exist and are skipped.
        Instants whose lesson would overlap time off are skipped too.
        """
        first_day = local_today(tz_name, now)
        instants: List[datetime] = []

        for offset in range(horizon_days):
            day = first_day + timedelta(days=offset)
            hours = pattern.get(str(sunday_first_weekday(day)), [])

            for hour in hours:
                starts_at = zoned_to_utc(day, hour, tz_name)
                if starts_at is None:
                    logger.debug(f"Skipping nonexistent local time {day} {hour:02d}:00 in {tz_name}")
                    continue
                if starts_at <= now:
                    continue
                if _in_time_off(starts_at, starts_at + duration, time_off):
                    continue
                instants.append(starts_at)

        return instants

    @staticmethod
    def sync(
            db: Session,
            tutor_id: UUID,
            now: Optional[datetime] = None,
            horizon_days: Optional[int] = None
    ) -> SyncResult:
        """
        Ensure exactly one slot exists per pattern instant in the horizon.

        Also prunes future pattern slots that are still plainly available
        but no longer wanted (pattern changed, or time off now covers
        them). Held, booked, canceled and manual slots are never touched.
        """
        settings = get_settings()
        now = ensure_utc(now) if now else utcnow()
        horizon_days = horizon_days if horizon_days is not None else settings.MATERIALIZE_HORIZON_DAYS
        duration = timedelta(minutes=settings.SLOT_DURATION_MINUTES)

        tutor = db.query(Profile).filter(Profile.id == tutor_id).first()
        if not tutor:
            raise NotFoundException("Tutor not found")

        row = AvailabilityService.get_pattern_row(db, tutor_id)
        tz_name = AvailabilityService.resolve_timezone(row, tutor)
        pattern = normalize_pattern(row.hours_by_dow) if row else {}

        result = SyncResult(timezone=tz_name)

        # The window starts at local midnight today, which may be before now in UTC
        window_start = zoned_to_utc(local_today(tz_name, now), 0, tz_name) or now
        window_start = min(window_start, now)
        window_end = now + timedelta(days=horizon_days + 1)

        time_off = AvailabilityService.list_time_off(
            db, tutor_id, start=window_start, end=window_end + duration
        )

        targets = AvailabilityMaterializer.target_instants(
            pattern, tz_name, now, horizon_days, duration, time_off
        )
        target_set: Set[datetime] = set(targets)

        existing = db.query(LessonSlot).filter(
            LessonSlot.tutor_id == tutor_id,
            LessonSlot.starts_at >= window_start,
            LessonSlot.starts_at < window_end,
        ).all()
        existing_starts = {slot.starts_at for slot in existing}
        result.skipped = len(existing_starts & target_set)

        price_cents = tutor.hourly_rate_cents or 0
        for starts_at in targets:
            if starts_at in existing_starts:
                continue
            db.add(LessonSlot(
                tutor_id=tutor_id,
                starts_at=starts_at,
                ends_at=starts_at + duration,
                price_cents=price_cents,
                status=SlotStatus.AVAILABLE.value,
                source=SlotSource.PATTERN.value,
            ))
            existing_starts.add(starts_at)
            result.created += 1

        stale_ids = [
            slot.id for slot in existing
            if slot.source == SlotSource.PATTERN.value
            and slot.starts_at > now
            and slot.starts_at not in target_set
            and slot.status == SlotStatus.AVAILABLE.value
        ]
        if stale_ids:
            result.removed = db.query(LessonSlot).filter(
                LessonSlot.id.in_(stale_ids),
                LessonSlot.status == SlotStatus.AVAILABLE.value,
            ).delete(synchronize_session=False)

        db.commit()

        logger.info(
            f"Synced slots for tutor {tutor_id}: created={result.created} "
            f"removed={result.removed} skipped={result.skipped} tz={tz_name}"
        )
        return result

    @staticmethod
    def sync_all(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        """Roll the horizon forward for every tutor with a saved pattern"""
        tutor_ids = [row.tutor_id for row in db.query(AvailabilityPattern.tutor_id).all()]
        totals = {"tutors": 0, "created": 0, "removed": 0, "failed": 0}

        for tutor_id in tutor_ids:
            try:
                result = AvailabilityMaterializer.sync(db, tutor_id, now=now)
            except Exception as e:
                db.rollback()
                logger.error(f"Slot sync failed for tutor {tutor_id}: {e}")
                totals["failed"] += 1
                continue
            totals["tutors"] += 1
            totals["created"] += result.created
            totals["removed"] += result.removed

        return totals
