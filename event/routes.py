import redis
from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from common.auth_utils import get_current_user
from common.config import Settings, get_settings
from common.database import get_db, get_redis_connection
from common.helpers import db_connection_handler
from common.responses import UNPROCESSABLE_ENTITY, no_content_response, success_response
from common.tasks import CacheTaskQueue, get_cache_queue
from common.validation import RequestValidator, get_validator
from tickets.cache import TicketCache

from .cache import EventCache
from .crud import SqlEventRepository
from .models import EventCreate, EventUpdate
from .service import EventService

event = APIRouter(dependencies=[Depends(get_current_user)])


def get_event_cache(
    redis_client: redis.Redis = Depends(get_redis_connection),
    settings: Settings = Depends(get_settings),
) -> EventCache:
    return EventCache(redis_client, settings.cache_write_interval)


def get_event_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_connection),
    settings: Settings = Depends(get_settings),
    cache: EventCache = Depends(get_event_cache),
    queue: CacheTaskQueue = Depends(get_cache_queue),
) -> EventService:
    ticket_cache = TicketCache(redis_client, settings.ticket_list_cache_seconds)
    return EventService(SqlEventRepository(db), cache, ticket_cache, queue)


@event.get("")
@db_connection_handler
def read_events(service: EventService = Depends(get_event_service)):
    """Get all events."""
    return success_response(service.get_many())


@event.post("")
@db_connection_handler
def create_event(
    payload: dict = Body(...),
    validator: RequestValidator = Depends(get_validator),
    service: EventService = Depends(get_event_service),
):
    """Create a new event."""
    new_event = validator.parse(EventCreate, payload, UNPROCESSABLE_ENTITY)
    created = service.create_one(new_event)
    return success_response(created, "Event created successfully", status.HTTP_201_CREATED)


@event.get("/{event_id}")
@db_connection_handler
def read_event(event_id: int, service: EventService = Depends(get_event_service)):
    """Get details of a specific event."""
    return success_response(service.get_one(event_id))


@event.put("/{event_id}")
@db_connection_handler
def update_event(
    event_id: int,
    payload: dict = Body(...),
    validator: RequestValidator = Depends(get_validator),
    service: EventService = Depends(get_event_service),
):
    """Update a specific event with the fields present in the body."""
    changes = validator.parse(EventUpdate, payload, UNPROCESSABLE_ENTITY)
    updated = service.update_one(event_id, changes)
    return success_response(updated, "Event updated successfully")


@event.delete("/{event_id}")
@db_connection_handler
def delete_event(event_id: int, service: EventService = Depends(get_event_service)):
    """Delete a specific event."""
    service.delete_one(event_id)
    return no_content_response()
