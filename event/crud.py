from abc import ABC, abstractmethod

from sqlalchemy import case, func
from sqlalchemy.orm import Session

from common.helpers import RecordNotFound
from tickets.schemas import Ticket

from .models import EventCreate, EventResponse
from .schemas import Event


class EventRepository(ABC):
    """Persistence operations for events. Missing ids raise RecordNotFound."""

    @abstractmethod
    def get_many(self) -> list[EventResponse]:
        ...

    @abstractmethod
    def get_one(self, event_id: int) -> EventResponse:
        ...

    @abstractmethod
    def create_one(self, event: EventCreate) -> EventResponse:
        ...

    @abstractmethod
    def update_one(self, event_id: int, changes: dict) -> EventResponse:
        ...

    @abstractmethod
    def delete_one(self, event_id: int) -> None:
        ...

    @abstractmethod
    def get_ticket_holders(self, event_id: int) -> list[tuple[int, int]]:
        """(ticket_id, owner_id) for every ticket of the event."""
        ...


class SqlEventRepository(EventRepository):
    def __init__(self, db: Session):
        self.db = db

    def _with_counts(self):
        entered = func.coalesce(func.sum(case((Ticket.entered.is_(True), 1), else_=0)), 0)
        return (
            self.db.query(Event, func.count(Ticket.id), entered)
            .outerjoin(Ticket, Ticket.event_id == Event.id)
            .group_by(Event.id)
        )

    @staticmethod
    def _to_response(row) -> EventResponse:
        db_event, purchased, entered = row
        response = EventResponse.model_validate(db_event)
        return response.model_copy(
            update={
                "total_tickets_purchased": int(purchased or 0),
                "total_tickets_entered": int(entered or 0),
            }
        )

    def _get_model(self, event_id: int) -> Event:
        db_event = self.db.query(Event).filter(Event.id == event_id).first()
        if db_event is None:
            raise RecordNotFound("event", event_id)
        return db_event

    def get_many(self) -> list[EventResponse]:
        rows = self._with_counts().order_by(Event.updated_at.desc(), Event.id.desc()).all()
        return [self._to_response(row) for row in rows]

    def get_one(self, event_id: int) -> EventResponse:
        row = self._with_counts().filter(Event.id == event_id).first()
        if row is None:
            raise RecordNotFound("event", event_id)
        return self._to_response(row)

    def create_one(self, event: EventCreate) -> EventResponse:
        db_event = Event(**event.model_dump())
        self.db.add(db_event)
        self.db.commit()
        self.db.refresh(db_event)
        return self.get_one(db_event.id)

    def update_one(self, event_id: int, changes: dict) -> EventResponse:
        db_event = self._get_model(event_id)
        for key, value in changes.items():
            setattr(db_event, key, value)
        self.db.commit()
        return self.get_one(event_id)

    def delete_one(self, event_id: int) -> None:
        db_event = self._get_model(event_id)
        self.db.delete(db_event)
        self.db.commit()

    def get_ticket_holders(self, event_id: int) -> list[tuple[int, int]]:
        rows = self.db.query(Ticket.id, Ticket.user_id).filter(Ticket.event_id == event_id).all()
        return [(ticket_id, owner_id) for ticket_id, owner_id in rows]
