import math
from datetime import datetime, timezone

import redis
from pydantic import ValidationError

from common.helpers import utcnow
from common.logger import get_logger
from common.tasks import Deadline

from .constants import DEFAULT_EVENT_CACHE_TTL, EVENT_KEY, EVENT_KEY_PREFIX
from .models import CachedEvent, EventResponse

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def event_ttl_seconds(event: EventResponse) -> int:
    """Seconds until the event ends, or the default TTL once it has ended."""
    remaining = (event.end_date - utcnow()).total_seconds()
    if remaining <= 0:
        return int(DEFAULT_EVENT_CACHE_TTL.total_seconds())
    return max(1, math.ceil(remaining))


class EventCache:
    """Best-effort Redis copy of event summaries. Misses and bad entries return None."""

    def __init__(self, client: redis.Redis, write_interval: float = 0.1):
        self.client = client
        self.write_interval = write_interval

    @staticmethod
    def key(event_id: int) -> str:
        return EVENT_KEY.format(event_id=event_id)

    def get_one(self, event_id: int) -> EventResponse | None:
        try:
            raw = self.client.get(self.key(event_id))
        except redis.RedisError as e:
            logger.error("Failed to read event %s from redis: %s", event_id, e)
            return None
        if raw is None:
            logger.debug("Event cache miss %s", event_id)
            return None
        try:
            return CachedEvent.model_validate_json(raw).to_event()
        except ValidationError as e:
            logger.error("Failed to decode cached event %s: %s", event_id, e)
            return None

    def get_many(self) -> list[EventResponse]:
        try:
            keys = list(self.client.scan_iter(match=EVENT_KEY_PREFIX + "*"))
        except redis.RedisError as e:
            logger.error("Failed to list event keys from redis: %s", e)
            return []

        events = []
        for key in keys:
            suffix = key[len(EVENT_KEY_PREFIX):]
            if not suffix.isdigit():
                continue
            event = self.get_one(int(suffix))
            if event is not None:
                events.append(event)
        # Same order as the store: most recently updated first.
        events.sort(key=lambda e: (e.updated_at or EPOCH, e.id), reverse=True)
        return events

    def store(self, event: EventResponse) -> None:
        payload = CachedEvent.from_event(event).model_dump_json(by_alias=True)
        self.client.set(self.key(event.id), payload, ex=event_ttl_seconds(event))

    def store_many(self, deadline: Deadline, events: list[EventResponse]) -> None:
        """Cache events one at a time, pausing between writes."""
        for event in events:
            deadline.check("event cache population")
            try:
                self.store(event)
            except redis.RedisError as e:
                logger.error("Failed to cache event %s: %s", event.id, e)
            deadline.sleep(self.write_interval)

    def delete(self, event_id: int) -> None:
        self.client.delete(self.key(event_id))
