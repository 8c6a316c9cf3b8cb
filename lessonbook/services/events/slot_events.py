# lessonbook/services/events/slot_events.py
"""Live slot change notifications over Redis pub/sub"""
import json
import logging
from typing import Any, Dict, Optional

from redis.exceptions import RedisError

from lessonbook.config.redis import RedisKeys, get_redis
from lessonbook.config.settings import get_settings
from lessonbook.utils.timezone_utils import utcnow

logger = logging.getLogger(__name__)

SLOT_HELD = "slot.held"
SLOT_RELEASED = "slot.released"
SLOT_BOOKED = "slot.booked"
SLOT_CREATED = "slot.created"
SLOT_DELETED = "slot.deleted"
SLOTS_SYNCED = "slots.synced"


def build_event(event_type: str, tutor_id, payload: Optional[Dict[str, Any]] = None) -> str:
    message = {
        "type": event_type,
        "tutor_id": str(tutor_id),
        "sent_at": utcnow().isoformat(),
    }
    message.update(payload or {})
    return json.dumps(message, default=str)


async def publish_slot_event(event_type: str, tutor_id, payload: Optional[Dict[str, Any]] = None) -> bool:
    """
    Publish a slot change for subscribed clients.

    Best-effort: clients re-fetch after their own mutations, so a failed
    publish is logged and never fails the request.
    """
    if not get_settings().SLOT_EVENTS_ENABLED:
        return False

    channel = RedisKeys.tutor_slots_channel(tutor_id)
    try:
        redis_client = await get_redis()
        await redis_client.publish(channel, build_event(event_type, tutor_id, payload))
    except (RedisError, OSError) as e:
        logger.warning(f"Could not publish {event_type} to {channel}: {e}")
        return False
    return True
