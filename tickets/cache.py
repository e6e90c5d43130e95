"""Redis entries for tickets.

Ticket metadata and QR codes live until the event ends and never longer.
A user's ticket list uses a fixed TTL and is dropped whenever one of the
user's tickets changes.
"""

import math
from datetime import datetime

import redis
from pydantic import ValidationError

from common.helpers import as_utc, utcnow
from common.logger import get_logger

from .constants import QRCODE_KEY, TICKET_KEY, USER_TICKETS_KEY
from .models import CachedTicket, CachedTicketList, TicketResponse

logger = get_logger(__name__)


def seconds_until(moment: datetime) -> int:
    """Whole seconds until ``moment``; 0 once it has passed."""
    remaining = (as_utc(moment) - utcnow()).total_seconds()
    return max(0, math.ceil(remaining))


class TicketCache:
    def __init__(self, client: redis.Redis, list_ttl: int = 600):
        self.client = client
        self.list_ttl = list_ttl

    @staticmethod
    def ticket_key(ticket_id: int, owner_id: int) -> str:
        return TICKET_KEY.format(ticket_id=ticket_id, owner_id=owner_id)

    @staticmethod
    def qrcode_key(ticket_id: int, owner_id: int) -> str:
        return QRCODE_KEY.format(ticket_id=ticket_id, owner_id=owner_id)

    @staticmethod
    def list_key(owner_id: int) -> str:
        return USER_TICKETS_KEY.format(owner_id=owner_id)

    def get_ticket(self, ticket_id: int, owner_id: int) -> TicketResponse | None:
        try:
            raw = self.client.get(self.ticket_key(ticket_id, owner_id))
        except redis.RedisError as e:
            logger.error("Failed to read ticket %s from redis: %s", ticket_id, e)
            return None
        if raw is None:
            return None
        try:
            return CachedTicket.model_validate_json(raw).to_ticket()
        except ValidationError as e:
            logger.error("Failed to decode cached ticket %s: %s", ticket_id, e)
            return None

    def store_ticket(self, ticket: TicketResponse) -> bool:
        ttl = seconds_until(ticket.event.end_date) if ticket.event else 0
        if ttl <= 0:
            return False
        payload = CachedTicket.from_ticket(ticket).model_dump_json(by_alias=True)
        self.client.set(self.ticket_key(ticket.id, ticket.user_id), payload, ex=ttl)
        return True

    def get_qrcode(self, ticket_id: int, owner_id: int) -> str | None:
        """Base64 PNG, or None once the entry has expired. Redis errors propagate."""
        return self.client.get(self.qrcode_key(ticket_id, owner_id)) or None

    def store_qrcode(self, ticket: TicketResponse, qrcode: str) -> bool:
        ttl = seconds_until(ticket.event.end_date) if ticket.event else 0
        if ttl <= 0:
            return False
        self.client.set(self.qrcode_key(ticket.id, ticket.user_id), qrcode, ex=ttl)
        return True

    def get_list(self, owner_id: int) -> list[TicketResponse] | None:
        try:
            raw = self.client.get(self.list_key(owner_id))
        except redis.RedisError as e:
            logger.error("Failed to read ticket list of user %s from redis: %s", owner_id, e)
            return None
        if raw is None:
            return None
        try:
            return [t.to_ticket() for t in CachedTicketList.validate_json(raw)]
        except ValidationError as e:
            logger.error("Failed to decode ticket list of user %s: %s", owner_id, e)
            return None

    def store_list(self, owner_id: int, tickets: list[TicketResponse]) -> None:
        cached = [CachedTicket.from_ticket(t) for t in tickets]
        payload = CachedTicketList.dump_json(cached, by_alias=True)
        self.client.set(self.list_key(owner_id), payload, ex=self.list_ttl)

    def delete_ticket(self, ticket_id: int, owner_id: int) -> None:
        self.client.delete(self.ticket_key(ticket_id, owner_id))

    def delete_list(self, owner_id: int) -> None:
        self.client.delete(self.list_key(owner_id))

    def expire_qrcodes(self, holders: list[tuple[int, int]], end_date: datetime) -> None:
        """Clamp QR entries to a new event end; drop them once it has passed."""
        if not holders:
            return
        ttl = seconds_until(end_date)
        pipe = self.client.pipeline()
        for ticket_id, owner_id in holders:
            key = self.qrcode_key(ticket_id, owner_id)
            if ttl > 0:
                pipe.expire(key, ttl)
            else:
                pipe.delete(key)
        pipe.execute()

    def evict_holders(self, holders: list[tuple[int, int]], include_qrcodes: bool = False) -> None:
        """Drop ticket entries and their owners' lists."""
        keys = set()
        for ticket_id, owner_id in holders:
            keys.add(self.ticket_key(ticket_id, owner_id))
            keys.add(self.list_key(owner_id))
            if include_qrcodes:
                keys.add(self.qrcode_key(ticket_id, owner_id))
        if keys:
            self.client.delete(*keys)
