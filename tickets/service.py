import base64

from fastapi import HTTPException, status

from common.helpers import as_utc, utcnow
from common.logger import get_logger
from common.tasks import CacheTaskQueue, Deadline
from event.cache import EventCache
from event.crud import EventRepository

from .cache import TicketCache
from .constants import EVENT_ENDED
from .crud import TicketRepository
from .models import IssuedTicket, TicketResponse
from .qr import QRCodeEncoder

logger = get_logger(__name__)


class TicketService:
    """Ticket purchase, lookup and gate validation.

    QR codes are only ever read back from the cache. Once the cache entry
    lapses (it expires when the event ends) the code is reported as expired
    and is not re-rendered.
    """

    def __init__(
        self,
        tickets: TicketRepository,
        events: EventRepository,
        cache: TicketCache,
        event_cache: EventCache,
        encoder: QRCodeEncoder,
        queue: CacheTaskQueue,
    ):
        self.tickets = tickets
        self.events = events
        self.cache = cache
        self.event_cache = event_cache
        self.encoder = encoder
        self.queue = queue

    def create_one(self, user_id: int, event_id: int) -> IssuedTicket:
        event = self.events.get_one(event_id)
        # Not atomic with the insert below: an event can end in between.
        if as_utc(event.end_date) <= utcnow():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=EVENT_ENDED)

        ticket = self.tickets.create_one(user_id, event_id)
        qrcode = base64.b64encode(self.encoder.encode(ticket.id, user_id)).decode("ascii")
        logger.info("Issued ticket %s for event %s to user %s", ticket.id, event_id, user_id)

        # Only copy of the code; it must exist before the response goes out.
        self.cache.store_qrcode(ticket, qrcode)
        self.queue.submit(f"cache issued ticket {ticket.id}", self._cache_issued, ticket)
        return IssuedTicket(**ticket.model_dump(), qrcode=qrcode)

    def get_one(self, user_id: int, ticket_id: int) -> tuple[TicketResponse, str | None]:
        ticket = self.cache.get_ticket(ticket_id, user_id)
        if ticket is None:
            ticket = self.tickets.get_one(user_id, ticket_id)
            self.queue.submit(f"cache ticket {ticket_id}", self._cache_ticket, ticket)

        return ticket, self.cache.get_qrcode(ticket_id, user_id)

    def get_many(self, user_id: int) -> list[TicketResponse]:
        cached = self.cache.get_list(user_id)
        if cached is not None:
            return cached

        tickets = self.tickets.get_many(user_id)
        self.queue.submit(f"cache tickets of user {user_id}", self._cache_list, user_id, tickets)
        return tickets

    def validate_one(self, ticket_id: int, owner_id: int) -> TicketResponse:
        ticket = self.tickets.mark_entered(owner_id, ticket_id)
        self.queue.submit(f"invalidate ticket {ticket_id}", self._invalidate, ticket)
        return ticket

    def _cache_issued(self, deadline: Deadline, ticket: TicketResponse) -> None:
        deadline.check()
        self.cache.store_ticket(ticket)
        self.cache.delete_list(ticket.user_id)
        self.event_cache.delete(ticket.event_id)

    def _cache_ticket(self, deadline: Deadline, ticket: TicketResponse) -> None:
        deadline.check()
        self.cache.store_ticket(ticket)

    def _cache_list(self, deadline: Deadline, user_id: int, tickets: list[TicketResponse]) -> None:
        deadline.check()
        self.cache.store_list(user_id, tickets)

    def _invalidate(self, deadline: Deadline, ticket: TicketResponse) -> None:
        deadline.check()
        self.cache.delete_ticket(ticket.id, ticket.user_id)
        self.cache.delete_list(ticket.user_id)
        self.event_cache.delete(ticket.event_id)
