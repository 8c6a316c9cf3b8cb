"""
Timezone helpers for turning tutor wall-clock hours into UTC instants.

Tutors describe their availability in local terms ("Mondays at 09:00
Europe/London"), so every conversion has to use the offset that applies
on that particular date rather than a fixed one.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_timezone(name: Optional[str]) -> bool:
    if not name or not isinstance(name, str):
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def get_zone(name: str) -> ZoneInfo:
    """Resolve an IANA zone name, raising ``ValueError`` when it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {name}") from exc


def zoned_to_utc(day: date, hour: int, tz_name: str) -> Optional[datetime]:
    """
    Resolve ``hour:00`` on ``day`` in ``tz_name`` to a UTC instant.

    The local wall time is built in the zone, converted to UTC and back, and
    the wall-clock components are compared. A mismatch means the local time
    falls in a spring-forward gap and does not exist; ``None`` is returned so
    callers can skip it. Ambiguous fall-back times resolve to their first
    occurrence (``fold=0``).
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour out of range: {hour}")

    zone = get_zone(tz_name)
    local = datetime.combine(day, time(hour=hour), tzinfo=zone)
    candidate = local.astimezone(timezone.utc)

    round_trip = candidate.astimezone(zone)
    if (round_trip.date(), round_trip.hour, round_trip.minute) != (day, hour, 0):
        return None
    return candidate


def local_today(tz_name: str, now: Optional[datetime] = None) -> date:
    """Calendar date in ``tz_name`` at ``now``."""
    now = ensure_utc(now) if now else utcnow()
    return now.astimezone(get_zone(tz_name)).date()


def week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def sunday_first_weekday(day: date) -> int:
    """Weekday index with Sunday = 0 ... Saturday = 6, as stored in patterns."""
    return (day.weekday() + 1) % 7
