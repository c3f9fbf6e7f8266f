"""Event vocabulary shared by every module attached to the channel.

Each known event ``type`` has its own ``Event`` subclass whose payload model
pins down the payload shape, so consumers can dispatch on ``type`` and rely on
the fields they read. New kinds are added by subclassing ``Event`` and passing
the class to ``register_event_type``; tags nobody registered still travel as a
plain ``Event`` with an unchecked payload.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Annotated, Any, Literal, Mapping, Union
from enum import Enum
import copy
import time


def now_ms() -> int:
    return int(time.time() * 1000)


class EventType(str, Enum):
    """Tags of the built-in event vocabulary."""
    TASK_CREATED = "task:created"
    TASK_UPDATED = "task:updated"
    TASK_DELETED = "task:deleted"
    THEME_CHANGED = "theme:changed"
    CATEGORY_MODIFIED = "category:modified"
    DATA_SYNC = "data:sync"
    STORAGE_CHANGED = "storage:changed"
    STORAGE_REMOVED = "storage:removed"
    STORAGE_CLEARED = "storage:cleared"


class Payload(BaseModel):
    model_config = ConfigDict(frozen=True)


class Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str = Field(..., min_length=1, description="Event type discriminator")
    payload: Any = None
    timestamp: int = Field(default_factory=now_ms, description="Wall-clock milliseconds at creation")
    source: str = Field(default="unknown", description="Publishing module, diagnostics only")

    @field_validator("type")
    @classmethod
    def _unwrap_enum(cls, value: Any) -> Any:
        if isinstance(value, EventType):
            return value.value
        return value

    @field_validator("payload", mode="before")
    @classmethod
    def _snapshot_payload(cls, value: Any) -> Any:
        # Publishers keep their own objects; subscribers get a private copy.
        if isinstance(value, (Mapping, list, set, tuple)):
            return copy.deepcopy(value)
        return value


# Payload shapes

class TaskRecord(Payload):
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str
    title: str
    completed: bool = False
    description: str | None = None
    category: str | None = None
    priority: str | None = None
    due_date: str | None = None
    created_at: int | None = None


class TaskChanges(Payload):
    """Task id plus only the fields that changed."""
    model_config = ConfigDict(frozen=True, extra="allow")

    id: str


class TaskRef(Payload):
    id: str


class ThemePayload(Payload):
    theme: Literal["light", "dark"]


class CategoryPayload(Payload):
    action: Literal["add", "remove", "update"]
    category: str | dict[str, Any]


class SyncPayload(Payload):
    timestamp: int = Field(default_factory=now_ms)


class StorageChangedPayload(Payload):
    key: str
    value: Any = None


class StorageRemovedPayload(Payload):
    key: str


class StorageClearedPayload(Payload):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cleared_keys: int = Field(..., ge=0, alias="clearedKeys")


# Typed events

class TaskCreated(Event):
    type: Literal["task:created"] = "task:created"
    payload: TaskRecord


class TaskUpdated(Event):
    type: Literal["task:updated"] = "task:updated"
    payload: TaskChanges


class TaskDeleted(Event):
    type: Literal["task:deleted"] = "task:deleted"
    payload: TaskRef


class ThemeChanged(Event):
    type: Literal["theme:changed"] = "theme:changed"
    payload: ThemePayload


class CategoryModified(Event):
    type: Literal["category:modified"] = "category:modified"
    payload: CategoryPayload


class DataSync(Event):
    type: Literal["data:sync"] = "data:sync"
    payload: SyncPayload = Field(default_factory=SyncPayload)


class StorageChanged(Event):
    type: Literal["storage:changed"] = "storage:changed"
    payload: StorageChangedPayload


class StorageRemoved(Event):
    type: Literal["storage:removed"] = "storage:removed"
    payload: StorageRemovedPayload


class StorageCleared(Event):
    type: Literal["storage:cleared"] = "storage:cleared"
    payload: StorageClearedPayload


KnownEvent = Annotated[
    Union[
        TaskCreated,
        TaskUpdated,
        TaskDeleted,
        ThemeChanged,
        CategoryModified,
        DataSync,
        StorageChanged,
        StorageRemoved,
        StorageCleared,
    ],
    Field(discriminator="type"),
]

EVENT_MODELS: dict[str, type[Event]] = {}


def register_event_type(model: type[Event]) -> type[Event]:
    """
    Add an ``Event`` subclass to the vocabulary. Usable as a class decorator.

    The subclass must declare ``type`` as a ``Literal`` with a default tag.

    Raises:
        TypeError: If ``model`` is not an ``Event`` subclass
        ValueError: If the subclass carries no default tag
    """
    if not (isinstance(model, type) and issubclass(model, Event)):
        raise TypeError(f"expected an Event subclass, got {model!r}")
    tag = model.model_fields["type"].default
    if not isinstance(tag, str) or not tag:
        raise ValueError(f"{model.__name__} must declare a default 'type' tag")
    EVENT_MODELS[tag] = model
    return model


for _model in (
    TaskCreated,
    TaskUpdated,
    TaskDeleted,
    ThemeChanged,
    CategoryModified,
    DataSync,
    StorageChanged,
    StorageRemoved,
    StorageCleared,
):
    register_event_type(_model)


def model_for(event_type: str | EventType) -> type[Event]:
    """Return the registered model for a tag, or ``Event`` when unregistered."""
    if isinstance(event_type, EventType):
        event_type = event_type.value
    return EVENT_MODELS.get(event_type, Event)


def build_event(
    event_type: str | EventType,
    payload: Any = None,
    source: str = "unknown",
    timestamp: int | None = None,
) -> Event:
    """
    Build an event of the model registered for ``event_type``.

    Raises:
        pydantic.ValidationError: If the payload does not fit the tag's shape
    """
    if isinstance(event_type, EventType):
        event_type = event_type.value
    data: dict[str, Any] = {"type": event_type, "source": source}
    if payload is not None:
        data["payload"] = payload
    if timestamp is not None:
        data["timestamp"] = timestamp
    return model_for(event_type).model_validate(data)


def parse_event(data: Mapping[str, Any]) -> Event:
    """
    Build an event from its wire form (``type``, ``payload``, ``timestamp``, ``source``).

    Raises:
        TypeError: If ``data`` is not a mapping
        pydantic.ValidationError: If the fields do not fit the tag's shape
    """
    if not isinstance(data, Mapping):
        raise TypeError(f"event data must be a mapping, got {type(data).__name__}")
    event_type = data.get("type")
    model = model_for(event_type) if isinstance(event_type, str) else Event
    return model.model_validate(dict(data))
