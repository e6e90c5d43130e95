from pydantic import BaseModel, Field


class Statistics(BaseModel):
    total_events: int = Field(serialization_alias="eventCount")
    total_tickets: int = Field(serialization_alias="ticketCount")
    validated_tickets: int = Field(serialization_alias="validationCount")
