from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from event.schemas import Event
from tickets.schemas import Ticket

from .models import Statistics


class StatisticsRepository(ABC):
    @abstractmethod
    def get_count(self) -> Statistics:
        ...


class SqlStatisticsRepository(StatisticsRepository):
    """Three separate counts; the snapshot is not transactionally consistent."""

    def __init__(self, db: Session):
        self.db = db

    def get_count(self) -> Statistics:
        total_events = self.db.query(Event).count()
        total_tickets = self.db.query(Ticket).count()
        validated_tickets = self.db.query(Ticket).filter(Ticket.entered.is_(True)).count()
        return Statistics(
            total_events=total_events,
            total_tickets=total_tickets,
            validated_tickets=validated_tickets,
        )
