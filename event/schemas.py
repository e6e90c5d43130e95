from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from common.database import Base
from common.helpers import utcnow


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False)
    date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, index=True)

    tickets = relationship(
        "Ticket", back_populates="event", cascade="all, delete-orphan"
    )
