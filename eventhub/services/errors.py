from typing import Iterable, List


class EventServiceError(Exception):
    """Base class for failures reported to the caller of EventService."""

    status_code = 500
    default_message = "Event service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class ValidationError(EventServiceError):
    status_code = 400
    default_message = "Invalid event data"

    def __init__(self, fields: Iterable[str], message: str | None = None):
        self.fields: List[str] = list(fields)
        super().__init__(
            message or f"Missing or invalid fields: {', '.join(self.fields)}"
        )


class NotFound(EventServiceError):
    status_code = 404
    default_message = "Event not found"


class Forbidden(EventServiceError):
    status_code = 403
    default_message = "Not authorized to modify this event"


class Unauthenticated(EventServiceError):
    status_code = 401
    default_message = "Authorization required"


class AlreadyJoined(EventServiceError):
    status_code = 409
    default_message = "Already joined"


class EventFull(EventServiceError):
    status_code = 409
    default_message = "Event is full"
