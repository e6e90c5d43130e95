"""Event reads go through the cache; writes go to the database first.

Cache population runs on the CacheTaskQueue, so a caller can read stale
cache state right after a write.
"""

from fastapi import HTTPException

from common.helpers import as_utc
from common.responses import UNPROCESSABLE_ENTITY
from common.tasks import CacheTaskQueue, Deadline
from tickets.cache import TicketCache

from .cache import EventCache
from .crud import EventRepository
from .models import EventCreate, EventResponse, EventUpdate

END_BEFORE_START = "endDate must not be before date"


class EventService:
    def __init__(
        self,
        repository: EventRepository,
        cache: EventCache,
        ticket_cache: TicketCache,
        queue: CacheTaskQueue,
    ):
        self.repository = repository
        self.cache = cache
        self.ticket_cache = ticket_cache
        self.queue = queue

    def get_many(self) -> list[EventResponse]:
        cached = self.cache.get_many()
        if cached:
            return cached

        events = self.repository.get_many()
        self.queue.submit("cache events", self.cache.store_many, events)
        return events

    def get_one(self, event_id: int) -> EventResponse:
        cached = self.cache.get_one(event_id)
        if cached is not None:
            return cached

        event = self.repository.get_one(event_id)
        self.schedule_refresh(event)
        return event

    def create_one(self, event: EventCreate) -> EventResponse:
        created = self.repository.create_one(event)
        self.schedule_refresh(created)
        return created

    def update_one(self, event_id: int, update: EventUpdate) -> EventResponse:
        changes = update.changes()
        current = self.repository.get_one(event_id)
        start = changes.get("date", current.date)
        end = changes.get("end_date", current.end_date)
        if as_utc(end) < as_utc(start):
            raise HTTPException(status_code=UNPROCESSABLE_ENTITY, detail=END_BEFORE_START)

        updated = self.repository.update_one(event_id, changes)
        self.schedule_refresh(updated)
        holders = self.repository.get_ticket_holders(event_id)
        if holders:
            self.queue.submit(
                f"sync tickets of event {event_id}", self._sync_tickets, updated, holders
            )
        return updated

    def delete_one(self, event_id: int) -> None:
        # Tickets go with the event, so collect their keys first.
        holders = self.repository.get_ticket_holders(event_id)
        self.repository.delete_one(event_id)
        self.schedule_evict(event_id, holders)

    def schedule_refresh(self, event: EventResponse) -> None:
        self.queue.submit(f"cache event {event.id}", self._refresh, event)

    def schedule_evict(self, event_id: int, holders: list[tuple[int, int]] = ()) -> None:
        self.queue.submit(f"evict event {event_id}", self._evict, event_id, list(holders))

    def _refresh(self, deadline: Deadline, event: EventResponse) -> None:
        deadline.check()
        self.cache.store(event)

    def _evict(self, deadline: Deadline, event_id: int, holders: list[tuple[int, int]]) -> None:
        deadline.check()
        self.cache.delete(event_id)
        self.ticket_cache.evict_holders(holders, include_qrcodes=True)

    def _sync_tickets(
        self, deadline: Deadline, event: EventResponse, holders: list[tuple[int, int]]
    ) -> None:
        deadline.check()
        self.ticket_cache.expire_qrcodes(holders, event.end_date)
        self.ticket_cache.evict_holders(holders)
