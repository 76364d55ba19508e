"""
Event store contract and the single-process implementation.

Stores own durability and atomicity. Everything above this layer (capacity
guard, ownership guard, service) is stateless and relies on `try_join` being
one indivisible check-and-insert.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from eventhub.schemas.event import EventOut


class EventStore(ABC):
    """Persistence operations consumed by EventService.

    Lookups that miss return None (or False for deletes); the service turns
    those into NotFound.
    """

    @abstractmethod
    def create_event(self, fields: Dict[str, Any]) -> EventOut:
        ...

    @abstractmethod
    def get_event(self, event_id: str) -> Optional[EventOut]:
        ...

    @abstractmethod
    def list_upcoming(self, now: datetime) -> List[EventOut]:
        """Events with date >= now, earliest first."""

    @abstractmethod
    def list_created_by(self, user_id: str) -> List[EventOut]:
        ...

    @abstractmethod
    def list_attending(self, user_id: str) -> List[EventOut]:
        ...

    @abstractmethod
    def update_fields(
        self, event_id: str, partial: Dict[str, Any]
    ) -> Optional[EventOut]:
        """Apply `partial` atomically.

        Returns None without mutating when the event is missing or when the
        new capacity would be lower than the current attendee count.
        """

    @abstractmethod
    def delete_event(self, event_id: str) -> bool:
        ...

    @abstractmethod
    def try_join(self, event_id: str, user_id: str) -> Optional[EventOut]:
        """Atomically add `user_id` if absent and under capacity.

        Returns the updated event, or None (rejected, nothing written) when
        the event is missing, the user is already attending, or the event is
        full.
        """

    @abstractmethod
    def leave(self, event_id: str, user_id: str) -> Optional[EventOut]:
        """Atomically remove `user_id`; a no-op if not attending.

        Returns None only when the event is missing.
        """


class InMemoryEventStore(EventStore):
    """Dict-backed store; one lock serializes every read and write."""

    def __init__(self):
        self._events: Dict[str, EventOut] = {}
        self._lock = threading.Lock()

    def create_event(self, fields: Dict[str, Any]) -> EventOut:
        event = EventOut(id=str(uuid.uuid4()), attendees=set(), **fields)
        with self._lock:
            self._events[event.id] = event
        return event.model_copy(deep=True)

    def get_event(self, event_id: str) -> Optional[EventOut]:
        with self._lock:
            event = self._events.get(event_id)
            return event.model_copy(deep=True) if event is not None else None

    def list_upcoming(self, now: datetime) -> List[EventOut]:
        return self._select(lambda event: event.date >= now)

    def list_created_by(self, user_id: str) -> List[EventOut]:
        return self._select(lambda event: event.createdBy == user_id)

    def list_attending(self, user_id: str) -> List[EventOut]:
        return self._select(lambda event: user_id in event.attendees)

    def update_fields(
        self, event_id: str, partial: Dict[str, Any]
    ) -> Optional[EventOut]:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            capacity = partial.get("capacity")
            if capacity is not None and capacity < len(event.attendees):
                return None
            updated = event.model_copy(update=partial, deep=True)
            self._events[event_id] = updated
            return updated.model_copy(deep=True)

    def delete_event(self, event_id: str) -> bool:
        with self._lock:
            return self._events.pop(event_id, None) is not None

    def try_join(self, event_id: str, user_id: str) -> Optional[EventOut]:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            if user_id in event.attendees:
                return None
            if not len(event.attendees) < event.capacity:
                return None
            event.attendees.add(user_id)
            return event.model_copy(deep=True)

    def leave(self, event_id: str, user_id: str) -> Optional[EventOut]:
        with self._lock:
            event = self._events.get(event_id)
            if event is None:
                return None
            event.attendees.discard(user_id)
            return event.model_copy(deep=True)

    def _select(self, predicate) -> List[EventOut]:
        with self._lock:
            matches = [
                event.model_copy(deep=True)
                for event in self._events.values()
                if predicate(event)
            ]
        return sorted(matches, key=lambda event: event.date)
