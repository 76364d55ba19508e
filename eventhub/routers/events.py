import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from eventhub.routers.deps import get_current_user_id, get_event_service
from eventhub.schemas.event import EventCreate, EventOut, EventUpdate
from eventhub.services.errors import EventServiceError, Unauthenticated
from eventhub.services.event_service import EventService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def _http_error(error: EventServiceError) -> HTTPException:
    headers = None
    if isinstance(error, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(
        status_code=error.status_code, detail=str(error), headers=headers
    )


@router.get("/", response_model=List[EventOut])
def list_events(event_service: EventService = Depends(get_event_service)):
    """List upcoming events, earliest first"""
    try:
        return event_service.list_events()
    except Exception:
        logger.exception("List events error")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/mine/created", response_model=List[EventOut])
def list_my_created_events(
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Events created by the current user, including past ones"""
    try:
        return event_service.list_created_by(user_id)
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("My created events error")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/mine/attending", response_model=List[EventOut])
def list_my_attending_events(
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Events the current user has joined, including past ones"""
    try:
        return event_service.list_attending(user_id)
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("My attending events error")
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: str, event_service: EventService = Depends(get_event_service)):
    try:
        return event_service.get(event_id)
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Get event error")
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/", response_model=EventOut, status_code=201)
def create_event(
    event_data: EventCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Create an event owned by the current user"""
    try:
        return event_service.create(user_id, event_data.model_dump(exclude_none=True))
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Create event error")
        raise HTTPException(status_code=500, detail="Server error")


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: str,
    event_data: EventUpdate,
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Partially update an event; only the owner may do this"""
    try:
        return event_service.update(
            user_id, event_id, event_data.model_dump(exclude_none=True)
        )
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Update event error")
        raise HTTPException(status_code=500, detail="Server error")


@router.delete("/{event_id}", response_model=Dict[str, str])
def delete_event(
    event_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    try:
        event_service.delete(user_id, event_id)
        return {"message": "Event deleted"}
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("Delete event error")
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{event_id}/rsvp", response_model=EventOut)
def rsvp(
    event_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Join an event if there is a free spot"""
    try:
        return event_service.join(user_id, event_id)
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("RSVP error")
        raise HTTPException(status_code=500, detail="Server error")


@router.post("/{event_id}/unrsvp", response_model=EventOut)
def unrsvp(
    event_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    event_service: EventService = Depends(get_event_service),
):
    """Leave an event; leaving twice is not an error"""
    try:
        return event_service.leave(user_id, event_id)
    except EventServiceError as e:
        raise _http_error(e)
    except Exception:
        logger.exception("UnRSVP error")
        raise HTTPException(status_code=500, detail="Server error")
