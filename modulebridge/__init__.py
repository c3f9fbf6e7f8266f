"""
ModuleBridge

Communication substrate for independently loaded UI modules sharing one runtime:
- Event channel with synchronous, ordered, fault-isolated delivery
- Namespaced persistent store announcing its mutations on the channel
- Pluggable durable media (memory, JSON file, Redis)
"""

from .event_models import (
    Event,
    EventType,
    KnownEvent,
    build_event,
    parse_event,
    register_event_type,
)
from .services.event_channel import EventChannel
from .services.persistent_store import PersistentStore, StoreResult
from .adapters.base import StorageMedium, StorageError, QuotaExceededError
from .runtime import Runtime, build_runtime

__all__ = [
    "Event",
    "EventType",
    "KnownEvent",
    "build_event",
    "parse_event",
    "register_event_type",
    "EventChannel",
    "PersistentStore",
    "StoreResult",
    "StorageMedium",
    "StorageError",
    "QuotaExceededError",
    "Runtime",
    "build_runtime",
]
