from .event import EventBase, EventCreate, EventUpdate, EventOut

__all__ = [
    "EventBase",
    "EventCreate",
    "EventUpdate",
    "EventOut",
]
