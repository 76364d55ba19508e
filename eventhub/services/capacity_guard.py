import logging

from eventhub.database.event_store import EventStore
from eventhub.schemas.event import EventOut
from eventhub.services.errors import AlreadyJoined, EventFull, NotFound

logger = logging.getLogger(__name__)


class CapacityGuard:
    """Join/leave on top of the store's atomic attendee primitives.

    The accept/reject decision for a join is made by a single
    `EventStore.try_join` call. The follow-up read after a rejection only
    classifies the error; it is not atomic with the join, so under heavy
    contention the reported reason can be stale (e.g. someone left between
    the two calls and EventFull is reported for an event with a free spot).
    The capacity and uniqueness guarantees do not depend on it.
    """

    def __init__(self, store: EventStore):
        self.store = store

    def join(self, event_id: str, user_id: str) -> EventOut:
        event = self.store.try_join(event_id, user_id)
        if event is not None:
            logger.info(f"User {user_id} joined event {event_id}")
            return event

        current = self.store.get_event(event_id)
        if current is None:
            raise NotFound()
        if current.is_attending(user_id):
            logger.info(f"Join rejected for user {user_id} on event {event_id}: already joined")
            raise AlreadyJoined()

        logger.info(
            f"Join rejected for user {user_id} on event {event_id}: "
            f"full ({current.attendeeCount}/{current.capacity})"
        )
        raise EventFull()

    def leave(self, event_id: str, user_id: str) -> EventOut:
        event = self.store.leave(event_id, user_id)
        if event is None:
            raise NotFound()
        logger.info(f"User {user_id} left event {event_id}")
        return event
