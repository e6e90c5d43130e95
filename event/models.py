from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, constr, field_validator, model_validator

from common.helpers import as_utc
from common.models import CamelModel


class EventCreate(CamelModel):
    name: constr(min_length=1, max_length=255)
    location: constr(min_length=1, max_length=255)
    date: datetime
    end_date: datetime

    @field_validator("date", "end_date")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.date:
            raise ValueError("endDate must not be before date")
        return self


class EventUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[constr(min_length=1, max_length=255)] = None
    location: Optional[constr(min_length=1, max_length=255)] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("date", "end_date")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.date and self.end_date and self.end_date < self.date:
            raise ValueError("endDate must not be before date")
        return self

    def changes(self) -> dict:
        """Column -> value for the fields the client actually sent."""
        return {
            field: value
            for field, value in self.model_dump(exclude_unset=True).items()
            if value is not None
        }


class EventResponse(CamelModel):
    id: int
    name: str
    location: str
    date: datetime
    end_date: datetime
    total_tickets_purchased: int = 0
    total_tickets_entered: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("date", "end_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None


class CachedEvent(CamelModel):
    """Display-only projection of an event kept in Redis."""

    id: int
    name: str
    location: str
    date: datetime
    end_date: datetime
    total_tickets_purchased: int = 0
    total_tickets_entered: int = 0
    updated_at: Optional[datetime] = None

    @classmethod
    def from_event(cls, event: EventResponse) -> "CachedEvent":
        return cls.model_validate(event.model_dump())

    def to_event(self) -> EventResponse:
        return EventResponse.model_validate(self.model_dump())
