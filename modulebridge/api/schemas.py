from pydantic import BaseModel, Field
from typing import Any, Dict, List
from ..event_models import Event, parse_event

class PublishRequest(BaseModel):
    type: str = Field(..., min_length=1)
    payload: Any = None
    source: str = "devtools"
    timestamp: int | None = None

    def to_event(self) -> Event:
        return parse_event(self.model_dump(exclude_none=True))

class PublishResponse(BaseModel):
    type: str
    status: str
    listeners: int
    timestamp: int

class ChannelResponse(BaseModel):
    total_listeners: int
    event_types: Dict[str, int]

class StoreValue(BaseModel):
    value: Any = None

class StoreEntry(BaseModel):
    key: str
    value: Any = None

class StoreExportResponse(BaseModel):
    prefix: str
    size: int
    entries: Dict[str, Any]

class StoreWriteResponse(BaseModel):
    key: str
    ok: bool

class StoreImportResponse(BaseModel):
    total: int
    imported: int
    failed: List[str]

class StoreClearResponse(BaseModel):
    prefix: str
    cleared_keys: int
