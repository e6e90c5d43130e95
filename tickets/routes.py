import redis
from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from common.auth_utils import CurrentUser, get_current_user
from common.config import Settings, get_settings
from common.database import get_db, get_redis_connection
from common.helpers import db_connection_handler, utcnow
from common.responses import UNPROCESSABLE_ENTITY, error_response, success_response
from common.tasks import CacheTaskQueue, get_cache_queue
from common.validation import RequestValidator, get_validator
from event.cache import EventCache
from event.crud import SqlEventRepository
from event.routes import get_event_cache

from .cache import TicketCache
from .constants import EVENT_ENDED, QRCODE_EXPIRED, QRCODE_UNAVAILABLE
from .crud import SqlTicketRepository
from .models import TicketCreate, TicketWithQRCode, ValidateTicket
from .qr import QRCodeEncoder
from .service import TicketService

ticket = APIRouter(dependencies=[Depends(get_current_user)])


def get_qr_encoder(settings: Settings = Depends(get_settings)) -> QRCodeEncoder:
    return QRCodeEncoder(settings.qr_level, settings.qr_size)


def get_ticket_service(
    db: Session = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis_connection),
    settings: Settings = Depends(get_settings),
    event_cache: EventCache = Depends(get_event_cache),
    encoder: QRCodeEncoder = Depends(get_qr_encoder),
    queue: CacheTaskQueue = Depends(get_cache_queue),
) -> TicketService:
    return TicketService(
        SqlTicketRepository(db),
        SqlEventRepository(db),
        TicketCache(redis_client, settings.ticket_list_cache_seconds),
        event_cache,
        encoder,
        queue,
    )


@ticket.get("")
@db_connection_handler
def read_tickets(
    user: CurrentUser = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    """List the caller's tickets."""
    return success_response(service.get_many(user.id))


@ticket.post("")
@db_connection_handler
def create_ticket(
    payload: dict = Body(...),
    user: CurrentUser = Depends(get_current_user),
    validator: RequestValidator = Depends(get_validator),
    service: TicketService = Depends(get_ticket_service),
):
    """Purchase a ticket for an event that has not ended yet."""
    purchase = validator.parse(TicketCreate, payload, UNPROCESSABLE_ENTITY)
    issued = service.create_one(user.id, purchase.event_id)
    return success_response(issued, "Ticket created successfully", status.HTTP_201_CREATED)


@ticket.post("/validate")
@db_connection_handler
def validate_ticket(
    payload: dict = Body(...),
    validator: RequestValidator = Depends(get_validator),
    service: TicketService = Depends(get_ticket_service),
):
    """Mark a ticket as entered at the gate."""
    body = validator.parse(ValidateTicket, payload, UNPROCESSABLE_ENTITY)
    validated = service.validate_one(body.ticket_id, body.owner_id)
    return success_response(validated, "Welcome to the show")


@ticket.get("/{ticket_id}")
@db_connection_handler
def read_ticket(
    ticket_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: TicketService = Depends(get_ticket_service),
):
    """Get one of the caller's tickets with its QR code."""
    found, qrcode = service.get_one(user.id, ticket_id)
    if qrcode is None:
        ended = found.event is not None and found.event.end_date <= utcnow()
        return error_response(
            status.HTTP_400_BAD_REQUEST,
            QRCODE_EXPIRED,
            {"ticket": found, "message": EVENT_ENDED if ended else QRCODE_UNAVAILABLE},
        )
    return success_response(TicketWithQRCode(ticket=found, qrcode=qrcode))
