from pydantic import BaseModel, Field, computed_field, field_validator
from typing import Optional, Set
from datetime import datetime


class EventBase(BaseModel):
    title: str
    description: str
    location: str
    date: datetime
    capacity: int
    imageRef: Optional[str] = None


class EventCreate(BaseModel):
    """Request body for creating an event.

    Every field is optional at the schema level so that missing values reach
    EventService, which reports all of them in a single ValidationError.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    date: Optional[datetime] = None
    capacity: Optional[int] = None
    imageRef: Optional[str] = None

    @field_validator("capacity", mode="before")
    @classmethod
    def reject_boolean_capacity(cls, value):
        """JSON true/false must not be read as 1/0"""
        if isinstance(value, bool):
            raise ValueError("capacity must be an integer, not a boolean")
        return value


class EventUpdate(EventCreate):
    """Partial update; omitted fields keep their stored value."""


class EventOut(EventBase):
    id: str
    createdBy: str
    attendees: Set[str] = Field(default_factory=set)

    @computed_field
    @property
    def attendeeCount(self) -> int:
        return len(self.attendees)

    @computed_field
    @property
    def spotsLeft(self) -> int:
        return max(self.capacity - len(self.attendees), 0)

    def is_attending(self, user_id: str) -> bool:
        return user_id in self.attendees
