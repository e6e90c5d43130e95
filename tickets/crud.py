from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from common.helpers import RecordNotFound

from .models import TicketResponse
from .schemas import Ticket


class TicketRepository(ABC):
    """Persistence operations for tickets, always scoped to the owning user."""

    @abstractmethod
    def create_one(self, user_id: int, event_id: int) -> TicketResponse:
        ...

    @abstractmethod
    def get_one(self, user_id: int, ticket_id: int) -> TicketResponse:
        ...

    @abstractmethod
    def get_many(self, user_id: int) -> list[TicketResponse]:
        ...

    @abstractmethod
    def mark_entered(self, owner_id: int, ticket_id: int) -> TicketResponse:
        ...


class SqlTicketRepository(TicketRepository):
    def __init__(self, db: Session):
        self.db = db

    def _get_model(self, user_id: int, ticket_id: int) -> Ticket:
        db_ticket = (
            self.db.query(Ticket)
            .filter(Ticket.id == ticket_id, Ticket.user_id == user_id)
            .first()
        )
        if db_ticket is None:
            raise RecordNotFound("ticket", ticket_id)
        return db_ticket

    def create_one(self, user_id: int, event_id: int) -> TicketResponse:
        db_ticket = Ticket(user_id=user_id, event_id=event_id)
        self.db.add(db_ticket)
        self.db.commit()
        return self.get_one(user_id, db_ticket.id)

    def get_one(self, user_id: int, ticket_id: int) -> TicketResponse:
        return TicketResponse.model_validate(self._get_model(user_id, ticket_id))

    def get_many(self, user_id: int) -> list[TicketResponse]:
        db_tickets = (
            self.db.query(Ticket)
            .filter(Ticket.user_id == user_id)
            .order_by(Ticket.updated_at.desc(), Ticket.id.desc())
            .all()
        )
        return [TicketResponse.model_validate(t) for t in db_tickets]

    def mark_entered(self, owner_id: int, ticket_id: int) -> TicketResponse:
        db_ticket = self._get_model(owner_id, ticket_id)
        db_ticket.entered = True
        self.db.commit()
        self.db.refresh(db_ticket)
        return TicketResponse.model_validate(db_ticket)
