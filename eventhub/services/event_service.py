import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from eventhub.database.event_store import EventStore
from eventhub.schemas.event import EventOut
from eventhub.services.capacity_guard import CapacityGuard
from eventhub.services.errors import NotFound, Unauthenticated, ValidationError
from eventhub.services.ownership_guard import authorize_mutation

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "description", "date", "location", "capacity")
TEXT_FIELDS = ("title", "description", "location")


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthenticated()
    return user_id


def _parse_date(value: Any) -> Optional[datetime]:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse_capacity(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not (value.isascii() and value.isdecimal()):
            return None
        value = int(value)
    if isinstance(value, int) and value > 0:
        return value
    return None


def _clean_fields(
    fields: Mapping[str, Any], partial: bool
) -> Tuple[Dict[str, Any], List[str]]:
    """Normalize event fields and collect the names of invalid ones.

    With partial=True, fields that are absent or None are treated as omitted.
    """
    cleaned: Dict[str, Any] = {}
    invalid: List[str] = []

    for name in REQUIRED_FIELDS:
        value = fields.get(name)
        if value is None:
            if not partial:
                invalid.append(name)
            continue

        if name in TEXT_FIELDS:
            if isinstance(value, str) and value.strip():
                cleaned[name] = value.strip()
            else:
                invalid.append(name)
        elif name == "date":
            date = _parse_date(value)
            if date is None:
                invalid.append(name)
            else:
                cleaned[name] = date
        elif name == "capacity":
            capacity = _parse_capacity(value)
            if capacity is None:
                invalid.append(name)
            else:
                cleaned[name] = capacity

    image_ref = fields.get("imageRef")
    if image_ref is not None:
        if isinstance(image_ref, str):
            cleaned["imageRef"] = image_ref
        else:
            invalid.append("imageRef")

    return cleaned, invalid


class EventService:
    """Create/read/update/delete/join/leave for events.

    The store is the only shared state; the service itself can be created
    per request.
    """

    def __init__(self, store: EventStore):
        self.store = store
        self.capacity_guard = CapacityGuard(store)

    def create(self, user_id: Optional[str], fields: Mapping[str, Any]) -> EventOut:
        """Validate and persist a new event owned by `user_id`"""
        user_id = _require_user(user_id)

        cleaned, invalid = _clean_fields(fields, partial=False)
        if invalid:
            raise ValidationError(invalid)

        event = self.store.create_event({**cleaned, "createdBy": user_id})
        logger.info(f"Event {event.id} created by {user_id} (capacity {event.capacity})")
        return event

    def get(self, event_id: str) -> EventOut:
        event = self.store.get_event(event_id)
        if event is None:
            raise NotFound()
        return event

    def update(
        self, user_id: Optional[str], event_id: str, partial: Mapping[str, Any]
    ) -> EventOut:
        """Apply the provided fields; NotFound takes precedence over Forbidden"""
        user_id = _require_user(user_id)

        event = self.get(event_id)
        authorize_mutation(event, user_id)

        cleaned, invalid = _clean_fields(partial, partial=True)
        if invalid:
            raise ValidationError(invalid)
        if not cleaned:
            return event

        updated = self.store.update_fields(event_id, cleaned)
        if updated is None:
            # Deleted meanwhile, or capacity below the admitted attendees
            current = self.get(event_id)
            raise ValidationError(
                ["capacity"],
                f"Capacity cannot be lower than the current attendee count "
                f"({current.attendeeCount})",
            )

        logger.info(f"Event {event_id} updated by {user_id}: {sorted(cleaned)}")
        return updated

    def delete(self, user_id: Optional[str], event_id: str) -> None:
        user_id = _require_user(user_id)

        event = self.get(event_id)
        authorize_mutation(event, user_id)

        if not self.store.delete_event(event_id):
            raise NotFound()
        logger.info(f"Event {event_id} deleted by {user_id}")

    def join(self, user_id: Optional[str], event_id: str) -> EventOut:
        return self.capacity_guard.join(event_id, _require_user(user_id))

    def leave(self, user_id: Optional[str], event_id: str) -> EventOut:
        return self.capacity_guard.leave(event_id, _require_user(user_id))

    def list_events(
        self,
        filter: Optional[Callable[[EventOut], bool]] = None,
        now: Optional[datetime] = None,
    ) -> List[EventOut]:
        """Upcoming events (date >= now), earliest first.

        `filter` is an optional caller predicate, e.g. "created by X".
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        events = self.store.list_upcoming(now)
        if filter is not None:
            events = [event for event in events if filter(event)]
        return events

    def list_created_by(self, user_id: Optional[str]) -> List[EventOut]:
        return self.store.list_created_by(_require_user(user_id))

    def list_attending(self, user_id: Optional[str]) -> List[EventOut]:
        return self.store.list_attending(_require_user(user_id))
