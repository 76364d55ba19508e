import logging

from eventhub.schemas.event import EventOut
from eventhub.services.errors import Forbidden

logger = logging.getLogger(__name__)


def authorize_mutation(event: EventOut, requesting_user_id: str) -> None:
    """Raise Forbidden unless the requester created the event.

    Pass the event as fetched for the current mutation attempt.
    """
    if event.createdBy != requesting_user_id:
        logger.warning(
            f"User {requesting_user_id} denied mutation of event {event.id} "
            f"owned by {event.createdBy}"
        )
        raise Forbidden()
