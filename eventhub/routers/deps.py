import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from eventhub.config import settings
from eventhub.database.dynamodb import DynamoEventStore, get_db_connection
from eventhub.database.event_store import EventStore, InMemoryEventStore
from eventhub.services.event_service import EventService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Verified user id from the bearer token, or None for anonymous calls"""
    if credentials is None:
        return None

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        logger.warning("Rejected invalid or expired bearer token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return str(user_id)


@lru_cache
def get_event_store() -> EventStore:
    """One store per process, selected by EVENT_STORE_BACKEND"""
    backend = settings.event_store_backend
    if backend == "memory":
        return InMemoryEventStore()
    if backend == "dynamodb":
        return DynamoEventStore(get_db_connection(), settings.events_table_name)
    raise ValueError(f"Unknown event store backend: {backend}")


def get_event_service(store: EventStore = Depends(get_event_store)) -> EventService:
    """Dependency to get EventService instance"""
    return EventService(store)
