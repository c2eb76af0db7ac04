"""
vetclinic/app/services/events.py

Event emitter: pushes slot-hold lifecycle events to a Redis list so the
calendar UI (via the websocket consumer) can grey out or free up slots.

Queue:
- events:reservations - slot_reserved / slot_renewed / slot_released /
  slot_confirmed / slots_expired
"""

import json
import logging
import time

from redis import Redis

logger = logging.getLogger(__name__)

RESERVATION_EVENTS_QUEUE = "events:reservations"


class EventEmitter:
    """Fire-and-forget publisher; a Redis outage never fails a reservation."""

    def __init__(self, redis: Redis, queue: str = RESERVATION_EVENTS_QUEUE):
        self.redis = redis
        self.queue = queue

    def emit(self, event_type: str, payload: dict) -> None:
        event = {
            "type": event_type,
            **payload,
            "ts": int(time.time()),
        }
        try:
            self.redis.rpush(self.queue, json.dumps(event))
            logger.debug(f"Event emitted: {event_type} → {self.queue}")
        except Exception as e:
            logger.error(f"Failed to emit event {event_type}: {e}")
