from datetime import datetime
from typing import Optional

from pydantic import TypeAdapter, conint, field_validator

from common.helpers import as_utc
from common.models import CamelModel


class TicketCreate(CamelModel):
    event_id: conint(gt=0)


class ValidateTicket(CamelModel):
    ticket_id: conint(gt=0)
    owner_id: conint(gt=0)


class TicketEvent(CamelModel):
    id: int
    name: str
    location: str
    date: datetime
    end_date: datetime

    @field_validator("date", "end_date")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class TicketResponse(CamelModel):
    id: int
    user_id: int
    event_id: int
    event: Optional[TicketEvent] = None
    entered: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class IssuedTicket(TicketResponse):
    """A freshly purchased ticket together with its base64 PNG QR code."""

    qrcode: str


class TicketWithQRCode(CamelModel):
    ticket: TicketResponse
    qrcode: str


class CachedTicket(CamelModel):
    id: int
    user_id: int
    event_id: int
    event: Optional[TicketEvent] = None
    entered: bool = False

    @classmethod
    def from_ticket(cls, ticket: TicketResponse) -> "CachedTicket":
        return cls.model_validate(ticket.model_dump())

    def to_ticket(self) -> TicketResponse:
        return TicketResponse.model_validate(self.model_dump())


CachedTicketList = TypeAdapter(list[CachedTicket])
